"""
Confirmation and reconciliation of matches.

Every operation keeps three things in step inside one transaction: the match
row, its match_students rows, and the status of the students' applications
(``matched`` while assigned, back to ``pending`` when removed). Emails go out
after the commit and never fail the operation.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from course_matching.errors import ConflictError, NotFoundError, ValidationError
from course_matching.models.application import Application
from course_matching.models.match import ALLOWED_TRANSITIONS, Match, MatchStatus, MatchStudent
from course_matching.models.time_window import CourseTimeWindow
from course_matching.models.user import User
from course_matching.schemas.match import ConfirmScheduleIn
from course_matching.services.notifications import EmailSender, get_email_sender, notify
from course_matching.services.time_windows import get_course
from course_matching.utils.timeslots import as_utc, local_tz
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.confirmation")

LIVE_STATUSES = (MatchStatus.confirmed, MatchStatus.rescheduled)
SLOT_TAKEN = "This instructor already has a class at that time."


def _validate_range(start: datetime, end: datetime) -> None:
    if as_utc(end) <= as_utc(start):
        raise ValidationError("The end time must be later than the start time.")


def set_application_status(db: Session, course_id: int, student_ids: Iterable[int], status: str) -> None:
    ids = list(student_ids)
    if not ids:
        return
    (
        db.query(Application)
        .filter(
            Application.course_id == course_id,
            Application.student_id.in_(ids),
            Application.status != "cancelled",
        )
        .update({"status": status}, synchronize_session=False)
    )


def instructor_slot_taken(db: Session, course_id: int, instructor_id: int, start: datetime, end: datetime) -> bool:
    """Cancelled matches free their slot."""
    with reading("check instructor slot"):
        taken = (
            db.query(Match.id)
            .filter(
                Match.course_id == course_id,
                Match.instructor_id == instructor_id,
                Match.slot_start_at == as_utc(start),
                Match.slot_end_at == as_utc(end),
                Match.status != MatchStatus.cancelled,
            )
            .first()
        )
    return taken is not None


def _get_match(db: Session, match_id: int, for_update: bool = False) -> Match:
    with reading("load match"):
        q = db.query(Match).filter(Match.id == match_id)
        if for_update:
            q = q.with_for_update()
        match = q.first()
    if not match:
        raise NotFoundError("Match not found")
    return match


def transition_match(match: Match, new_status: MatchStatus) -> None:
    current = MatchStatus(match.status)
    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(f"A {current.value} match cannot become {new_status.value}.")
    match.status = new_status


def _format_slot(match: Match) -> str:
    start = as_utc(match.slot_start_at).astimezone(local_tz())
    end = as_utc(match.slot_end_at).astimezone(local_tz())
    return f"{start:%Y-%m-%d (%a) %H:%M} - {end:%H:%M}"


def _notify_students(db: Session, sender: EmailSender, match: Match, student_ids: List[int], subject: str) -> None:
    try:
        emails = [e for (e,) in db.query(User.email).filter(User.id.in_(student_ids)).all() if e]
    except Exception:
        logger.exception("match %s: could not load student emails for notification", match.id)
        return
    text = f"Your class is scheduled for {_format_slot(match)}."
    for email in emails:
        notify(sender, email, subject, text)


def confirm_schedule_from_proposal(
    db: Session,
    course_id: int,
    payload: Union[ConfirmScheduleIn, dict],
    actor_id: Optional[int] = None,
    sender: Optional[EmailSender] = None,
) -> Match:
    """
    Persist an (edited) proposal as a confirmed match.

    Validation happens before anything is written. The match and its students
    go in one transaction, so a failed student insert leaves no empty match.
    """
    if not isinstance(payload, ConfirmScheduleIn):
        try:
            payload = ConfirmScheduleIn.model_validate(payload)
        except SchemaValidationError:
            raise ValidationError("Check the schedule: start/end must be valid timestamps.")

    course = get_course(db, course_id)
    _validate_range(payload.slot_start_at, payload.slot_end_at)

    student_ids = list(dict.fromkeys(payload.student_ids))
    if not student_ids:
        raise ValidationError("Select at least one student to assign.")

    capacity = course.capacity
    if payload.window_id is not None:
        window = (
            db.query(CourseTimeWindow)
            .filter(CourseTimeWindow.id == payload.window_id, CourseTimeWindow.course_id == course_id)
            .first()
        )
        if window is not None and window.capacity is not None:
            capacity = window.capacity
    if len(student_ids) > capacity:
        raise ValidationError(f"Too many students: this class takes at most {capacity}.")

    if payload.instructor_id is not None and instructor_slot_taken(
        db, course_id, payload.instructor_id, payload.slot_start_at, payload.slot_end_at
    ):
        raise ConflictError(SLOT_TAKEN)

    match = Match(
        course_id=course_id,
        slot_start_at=as_utc(payload.slot_start_at),
        slot_end_at=as_utc(payload.slot_end_at),
        instructor_id=payload.instructor_id,
        instructor_name=payload.instructor_name,
        capacity=capacity,
        status=MatchStatus.confirmed,
        updated_by=actor_id,
    )
    with transaction(db, f"confirm schedule for course {course_id}"):
        db.add(match)
        try:
            db.flush()
        except IntegrityError:
            # lost a race for the same instructor slot
            raise ConflictError(SLOT_TAKEN)
        db.add_all([MatchStudent(match_id=match.id, student_id=sid) for sid in student_ids])
        db.flush()
        set_application_status(db, course_id, student_ids, "matched")

    db.refresh(match)
    logger.info("course %s: match %s confirmed with %d students", course_id, match.id, len(student_ids))

    _notify_students(db, sender or get_email_sender(), match, student_ids, "Your class schedule is confirmed")
    return match


def add_student_to_match(
    db: Session,
    match_id: int,
    student_id: int,
    actor_id: Optional[int] = None,
    sender: Optional[EmailSender] = None,
) -> MatchStudent:
    with transaction(db, f"add student {student_id} to match {match_id}"):
        # row lock: concurrent adds see each other's count
        match = _get_match(db, match_id, for_update=True)
        if match.status == MatchStatus.cancelled:
            raise ValidationError("Students cannot be added to a cancelled match.")

        exists = (
            db.query(MatchStudent.id)
            .filter(MatchStudent.match_id == match_id, MatchStudent.student_id == student_id)
            .first()
        )
        if exists:
            raise ConflictError("This student is already assigned to the match.")

        occupied = db.query(MatchStudent).filter(MatchStudent.match_id == match_id).count()
        if occupied >= match.capacity:
            raise ValidationError(f"This match is full ({match.capacity} students).")

        row = MatchStudent(match_id=match_id, student_id=student_id)
        db.add(row)
        db.flush()

        is_live = match.status in LIVE_STATUSES
        if is_live:
            set_application_status(db, match.course_id, [student_id], "matched")
        match.updated_by = actor_id

    db.refresh(row)
    if is_live:
        _notify_students(db, sender or get_email_sender(), match, [student_id], "Your class schedule is confirmed")
    return row


def remove_student_from_match(db: Session, match_id: int, student_id: int, actor_id: Optional[int] = None) -> bool:
    """
    Unassign one student. Returns True when the match lost its last student
    and was deleted with it.
    """
    match = _get_match(db, match_id)
    row = (
        db.query(MatchStudent)
        .filter(MatchStudent.match_id == match_id, MatchStudent.student_id == student_id)
        .first()
    )
    if not row:
        raise NotFoundError("Student is not assigned to this match")

    with transaction(db, f"remove student {student_id} from match {match_id}"):
        db.delete(row)
        db.flush()
        set_application_status(db, match.course_id, [student_id], "pending")
        remaining = db.query(MatchStudent).filter(MatchStudent.match_id == match_id).count()
        if remaining == 0:
            db.delete(match)
        else:
            match.updated_by = actor_id

    logger.info("match %s: student %s removed (%d left)", match_id, student_id, remaining)
    return remaining == 0


def delete_match(db: Session, match_id: int) -> List[int]:
    """Delete the match and send every assigned student back to pending."""
    match = _get_match(db, match_id)
    student_ids = [s.student_id for s in match.students]

    with transaction(db, f"delete match {match_id}"):
        set_application_status(db, match.course_id, student_ids, "pending")
        db.delete(match)

    logger.info("match %s deleted, %d applications back to pending", match_id, len(student_ids))
    return student_ids


def update_proposed_match_time(
    db: Session,
    match_id: int,
    slot_start_at: datetime,
    slot_end_at: datetime,
    actor_id: Optional[int] = None,
) -> Match:
    match = _get_match(db, match_id)
    if match.status != MatchStatus.proposed:
        raise ValidationError("Only proposed matches can have their time edited.")
    _validate_range(slot_start_at, slot_end_at)

    with transaction(db, f"update time of match {match_id}", conflict_message=SLOT_TAKEN):
        match.slot_start_at = as_utc(slot_start_at)
        match.slot_end_at = as_utc(slot_end_at)
        match.updated_by = actor_id

    db.refresh(match)
    return match


def confirm_match(
    db: Session,
    match_id: int,
    actor_id: Optional[int] = None,
    sender: Optional[EmailSender] = None,
) -> Match:
    """proposed -> confirmed (auto-matching output reviewed by an admin)."""
    match = _get_match(db, match_id)
    student_ids = [s.student_id for s in match.students]
    if not student_ids:
        raise ValidationError("Select at least one student to assign.")

    with transaction(db, f"confirm match {match_id}"):
        transition_match(match, MatchStatus.confirmed)
        match.updated_by = actor_id
        set_application_status(db, match.course_id, student_ids, "matched")

    db.refresh(match)
    _notify_students(db, sender or get_email_sender(), match, student_ids, "Your class schedule is confirmed")
    return match


def reschedule_match(
    db: Session,
    match_id: int,
    slot_start_at: datetime,
    slot_end_at: datetime,
    actor_id: Optional[int] = None,
    sender: Optional[EmailSender] = None,
) -> Match:
    match = _get_match(db, match_id)
    _validate_range(slot_start_at, slot_end_at)

    with transaction(db, f"reschedule match {match_id}", conflict_message=SLOT_TAKEN):
        transition_match(match, MatchStatus.rescheduled)
        match.slot_start_at = as_utc(slot_start_at)
        match.slot_end_at = as_utc(slot_end_at)
        match.updated_by = actor_id

    db.refresh(match)
    student_ids = [s.student_id for s in match.students]
    _notify_students(db, sender or get_email_sender(), match, student_ids, "Your class has been rescheduled")
    return match


def cancel_match(db: Session, match_id: int, actor_id: Optional[int] = None, note: Optional[str] = None) -> Match:
    """
    Cancelled matches keep their roster for history; the students' applications
    go back to pending so they can be matched again.
    """
    match = _get_match(db, match_id)
    student_ids = [s.student_id for s in match.students]

    with transaction(db, f"cancel match {match_id}"):
        transition_match(match, MatchStatus.cancelled)
        match.updated_by = actor_id
        if note:
            match.note = note
        set_application_status(db, match.course_id, student_ids, "pending")

    db.refresh(match)
    return match
