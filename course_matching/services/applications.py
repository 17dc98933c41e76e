import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from course_matching.errors import ConflictError, NotFoundError, ValidationError
from course_matching.models.application import Application, ApplicationTimeChoice, ApplicationTimeRequest
from course_matching.models.time_window import CourseTimeWindow
from course_matching.models.user import User
from course_matching.schemas.application import ApplicationDetailOut, TimeRequestIn
from course_matching.services.availability import replace_student_slots
from course_matching.services.notifications import (
    EmailSender, get_admin_notification_emails, get_email_sender, notify,
)
from course_matching.services.time_windows import get_course
from course_matching.utils.timeslots import build_slots_from_day_time_ranges, format_day_time, to_hhmm
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.applications")

ALREADY_APPLIED = "You have already applied to this course."
DELETED_TIME = "deleted time"
NO_SELECTION = "no selection"


def apply_to_course(
    db: Session,
    course_id: int,
    student_id: int,
    window_ids: Sequence[int] = (),
    time_requests: Sequence[TimeRequestIn] = (),
    sender: Optional[EmailSender] = None,
) -> Application:
    course = get_course(db, course_id)

    window_ids = list(dict.fromkeys(window_ids))
    if not window_ids and not time_requests:
        raise ValidationError("Select at least one time.")

    if window_ids:
        known = {
            wid for (wid,) in db.query(CourseTimeWindow.id)
            .filter(CourseTimeWindow.course_id == course_id, CourseTimeWindow.id.in_(window_ids))
            .all()
        }
        unknown = [w for w in window_ids if w not in known]
        if unknown:
            raise ValidationError(f"Unknown time windows for this course: {unknown}")

    request_slots = build_slots_from_day_time_ranges(time_requests)
    if len(request_slots) != len(time_requests):
        raise ValidationError("Check the requested times: each needs a day (0-6) and a start before its end.")

    existing = (
        db.query(Application)
        .filter(Application.course_id == course_id, Application.student_id == student_id)
        .first()
    )
    if existing and existing.status != "cancelled":
        raise ConflictError(ALREADY_APPLIED)

    # a concurrent apply losing the unique (course, student) race is a conflict too
    with transaction(db, f"apply to course {course_id}", conflict_message=ALREADY_APPLIED):
        if existing:
            # re-activate instead of inserting a duplicate
            app = existing
            app.status = "pending"
            # back of the queue: first-come-first-served starts over
            app.created_at = datetime.now(timezone.utc)
            app.time_choices.clear()
            app.time_requests.clear()
        else:
            app = Application(course_id=course_id, student_id=student_id, status="pending")
            db.add(app)
        app.time_choices.extend(ApplicationTimeChoice(window_id=w) for w in window_ids)
        app.time_requests.extend(
            ApplicationTimeRequest(
                day_of_week=r.day_of_week,
                start_time=to_hhmm(r.start_time),
                end_time=to_hhmm(r.end_time),
            )
            for r in time_requests
        )
        # concrete next occurrences feed auto-matching
        replace_student_slots(db, course_id, student_id, request_slots)

    db.refresh(app)
    logger.info("course %s: student %s applied (application %s)", course_id, student_id, app.id)

    student = db.query(User).filter(User.id == student_id).first()
    notify(
        sender or get_email_sender(),
        get_admin_notification_emails(db),
        f"[{course.title}] new application",
        f"{student.name if student else student_id} applied to {course.title}.",
    )
    return app


def cancel_application(
    db: Session,
    application_id: int,
    student_id: int,
    sender: Optional[EmailSender] = None,
) -> Application:
    # students may only touch their own row
    app = (
        db.query(Application)
        .filter(Application.id == application_id, Application.student_id == student_id)
        .first()
    )
    if not app:
        raise NotFoundError("Application not found")
    if app.status == "cancelled":
        return app

    with transaction(db, f"cancel application {application_id}"):
        app.status = "cancelled"

    db.refresh(app)
    course = get_course(db, app.course_id)
    notify(
        sender or get_email_sender(),
        get_admin_notification_emails(db),
        f"[{course.title}] application cancelled",
        f"Application {application_id} for {course.title} was cancelled by the student.",
    )
    return app


def choice_labels(app: Application, windows_by_id: Dict[int, CourseTimeWindow]) -> List[str]:
    labels = []
    for c in app.time_choices:
        w = windows_by_id.get(c.window_id)
        labels.append(format_day_time(w.day_of_week, w.start_time, w.end_time) if w else DELETED_TIME)
    return labels or [NO_SELECTION]


def list_applications(db: Session, course_id: int, status: Optional[str] = None) -> List[ApplicationDetailOut]:
    with reading("list applications"):
        q = (
            db.query(Application, User.name)
            .join(User, User.id == Application.student_id)
            .options(selectinload(Application.time_choices), selectinload(Application.time_requests))
            .filter(Application.course_id == course_id)
        )
        if status:
            q = q.filter(Application.status == status)
        rows = q.order_by(Application.created_at.asc(), Application.id.asc()).all()

        windows = db.query(CourseTimeWindow).filter(CourseTimeWindow.course_id == course_id).all()
    windows_by_id = {w.id: w for w in windows}

    out = []
    for app, name in rows:
        item = ApplicationDetailOut.model_validate(app)
        item.student_name = name
        item.choice_labels = choice_labels(app, windows_by_id)
        item.requested_times = [
            format_day_time(r.day_of_week, r.start_time, r.end_time) for r in app.time_requests
        ]
        out.append(item)
    return out
