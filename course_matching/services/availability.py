"""
Concrete availability slots, the input of auto-matching.

Instructors declare them here (picked slots, or a range cut into hourly
slots); students get theirs from the free-form times of their application.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from course_matching.errors import NotFoundError, ValidationError
from course_matching.models.availability_slot import AvailabilitySlot
from course_matching.models.user import User
from course_matching.schemas.availability import SlotIn
from course_matching.services.time_windows import get_course
from course_matching.utils.timeslots import as_utc
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.availability")

SLOT_LENGTH = timedelta(hours=1)
# seats an instructor offers per slot; students take one
SLOT_CAPACITY = {"instructor": 4, "student": 1}


def split_range_hourly(start_at: datetime, end_at: datetime) -> List[Tuple[datetime, datetime]]:
    """
    10:00-12:30 -> [10:00-11:00, 11:00-12:00]; a trailing partial hour is dropped.
    """
    out = []
    cursor = as_utc(start_at)
    end = as_utc(end_at)
    while cursor + SLOT_LENGTH <= end:
        out.append((cursor, cursor + SLOT_LENGTH))
        cursor += SLOT_LENGTH
    return out


def add_availability_slots(
    db: Session,
    user: User,
    course_id: Optional[int] = None,
    slots: Sequence[SlotIn] = (),
    start_at: Optional[datetime] = None,
    end_at: Optional[datetime] = None,
) -> List[AvailabilitySlot]:
    if user.role not in SLOT_CAPACITY:
        raise ValidationError("Only instructors and students declare availability.")
    if course_id is not None:
        get_course(db, course_id)

    pairs = [(as_utc(s.start_at), as_utc(s.end_at)) for s in slots]
    if not pairs and start_at is not None and end_at is not None:
        pairs = split_range_hourly(start_at, end_at)
    if not pairs:
        raise ValidationError("Select at least one time.")
    if any(end <= start for start, end in pairs):
        raise ValidationError("The end time must be later than the start time.")

    rows = [
        AvailabilitySlot(
            course_id=course_id,
            user_id=user.id,
            role=user.role,
            start_at=start,
            end_at=end,
            capacity=SLOT_CAPACITY[user.role],
        )
        for start, end in dict.fromkeys(pairs)
    ]
    with transaction(db, f"add availability for user {user.id}"):
        db.add_all(rows)

    for r in rows:
        db.refresh(r)
    logger.info("user %s (%s): %d availability slots added", user.id, user.role, len(rows))
    return rows


def replace_student_slots(
    db: Session,
    course_id: int,
    student_id: int,
    pairs: Iterable[Tuple[datetime, datetime]],
) -> None:
    """Inside the caller's transaction: the student's slots for the course become `pairs`."""
    (
        db.query(AvailabilitySlot)
        .filter(AvailabilitySlot.course_id == course_id, AvailabilitySlot.user_id == student_id)
        .delete(synchronize_session=False)
    )
    db.add_all(
        AvailabilitySlot(course_id=course_id, user_id=student_id, role="student",
                         start_at=start, end_at=end, capacity=SLOT_CAPACITY["student"])
        for start, end in dict.fromkeys(pairs)
    )


def list_availability_slots(db: Session, user_id: int, course_id: Optional[int] = None) -> List[AvailabilitySlot]:
    with reading("list availability"):
        q = db.query(AvailabilitySlot).filter(AvailabilitySlot.user_id == user_id)
        if course_id is not None:
            q = q.filter(AvailabilitySlot.course_id == course_id)
        return q.order_by(AvailabilitySlot.start_at.asc(), AvailabilitySlot.id.asc()).all()


def delete_availability_slot(db: Session, slot_id: int, user_id: int) -> None:
    with reading("load availability slot"):
        slot = (
            db.query(AvailabilitySlot)
            .filter(AvailabilitySlot.id == slot_id, AvailabilitySlot.user_id == user_id)
            .first()
        )
    if not slot:
        raise NotFoundError("Availability slot not found")

    with transaction(db, f"delete availability slot {slot_id}"):
        db.delete(slot)
