"""
Outbound notifications.

Delivery is fire-and-forget: ``notify`` never raises, so a failed email can
not undo or block the operation that triggered it. Admin recipients are a
list kept in the database and managed by admins.
"""

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import List, Optional, Protocol, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from course_matching.config import settings
from course_matching.errors import ConflictError, NotFoundError, ValidationError
from course_matching.models.admin_notification_email import AdminNotificationEmail
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.notifications")

Recipients = Union[str, Sequence[str]]
EMAIL_REGISTERED = "This email is already registered."


class EmailSender(Protocol):
    def send(self, to: List[str], subject: str, text: str) -> None: ...


class LoggingEmailSender:
    """Used when no SMTP host is configured: log and skip."""

    def send(self, to: List[str], subject: str, text: str) -> None:
        logger.warning("SMTP_HOST is not set. Skipping email send. to=%s subject=%s", to, subject)


class SmtpEmailSender:
    def __init__(self, host: str, port: int, user: str = "", password: str = "", sender: str = ""):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def send(self, to: List[str], subject: str, text: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(to)
        msg["Subject"] = subject
        msg.set_content(text)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)


def get_email_sender() -> EmailSender:
    if not settings.SMTP_HOST:
        return LoggingEmailSender()
    return SmtpEmailSender(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        sender=settings.EMAIL_FROM,
    )


def notify(sender: EmailSender, to: Recipients, subject: str, text: str) -> bool:
    recipients = [to] if isinstance(to, str) else [r for r in to if r]
    if not recipients:
        return False
    try:
        sender.send(recipients, subject, text)
        return True
    except Exception:
        logger.exception("email send failed subject=%s recipients=%d", subject, len(recipients))
        return False


def get_admin_notification_emails(db: Session) -> List[str]:
    try:
        rows = (
            db.query(AdminNotificationEmail.email)
            .order_by(AdminNotificationEmail.created_at.asc(), AdminNotificationEmail.id.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("failed to load admin notification emails")
        return []
    return [r[0] for r in rows if r[0]]


# --- admin recipient list ---

_EMAIL_PAT = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def list_admin_notification_emails(db: Session) -> List[AdminNotificationEmail]:
    with reading("list admin notification emails"):
        return (
            db.query(AdminNotificationEmail)
            .order_by(AdminNotificationEmail.created_at.asc(), AdminNotificationEmail.id.asc())
            .all()
        )


def add_admin_notification_email(db: Session, email: str, label: Optional[str] = None) -> AdminNotificationEmail:
    email = (email or "").strip().lower()
    if not _EMAIL_PAT.match(email):
        raise ValidationError("Enter a valid email address.")

    exists = db.query(AdminNotificationEmail.id).filter(AdminNotificationEmail.email == email).first()
    if exists:
        raise ConflictError(EMAIL_REGISTERED)

    row = AdminNotificationEmail(email=email, label=(label or "").strip() or None)
    with transaction(db, "add admin notification email", conflict_message=EMAIL_REGISTERED):
        db.add(row)

    db.refresh(row)
    logger.info("admin notification email %s added", row.id)
    return row


def delete_admin_notification_email(db: Session, email_id: int) -> None:
    with reading("load admin notification email"):
        row = db.query(AdminNotificationEmail).filter(AdminNotificationEmail.id == email_id).first()
    if not row:
        raise NotFoundError("Notification email not found")

    with transaction(db, "delete admin notification email"):
        db.delete(row)
