from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from course_matching.database import get_db
from course_matching.utils.auth import require_admin
from course_matching.schemas.notification_email import NotificationEmailIn, NotificationEmailOut
from course_matching.services import notifications

import logging
logger = logging.getLogger("course_matching.admin")


router = APIRouter(prefix="/admin/notification-emails", tags=["Admin - Notifications"])


@router.get("", response_model=list[NotificationEmailOut])
def list_emails(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return notifications.list_admin_notification_emails(db)


@router.post("", response_model=NotificationEmailOut)
def add_email(body: NotificationEmailIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return notifications.add_admin_notification_email(db, body.email, label=body.label)


@router.delete("/{email_id}")
def delete_email(email_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    logger.info("notification email %s deleted by %s", email_id, admin.id)
    notifications.delete_admin_notification_email(db, email_id)
    return {"detail": "deleted"}
