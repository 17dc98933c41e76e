from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from course_matching.database import get_db
from course_matching.utils.auth import require_admin, require_student
from course_matching.schemas.application import ApplicationCreate, ApplicationDetailOut, ApplicationOut
from course_matching.services import applications

router = APIRouter(tags=["Applications"])


@router.post("/courses/{course_id}/applications", response_model=ApplicationOut)
def apply_to_course(
    course_id: int,
    body: ApplicationCreate,
    db: Session = Depends(get_db),
    student=Depends(require_student),
):
    return applications.apply_to_course(
        db, course_id, student.id, window_ids=body.window_ids, time_requests=body.time_requests,
    )


@router.post("/applications/{application_id}/cancel", response_model=ApplicationOut)
def cancel_application(application_id: int, db: Session = Depends(get_db), student=Depends(require_student)):
    return applications.cancel_application(db, application_id, student.id)


@router.get("/courses/{course_id}/applications", response_model=list[ApplicationDetailOut])
def list_course_applications(
    course_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    status: Optional[str] = Query(None, description="pending / matched / cancelled"),
):
    return applications.list_applications(db, course_id, status=status)
