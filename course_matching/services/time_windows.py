import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from course_matching.errors import NotFoundError, ValidationError
from course_matching.models.course import Course
from course_matching.models.time_window import CourseTimeWindow
from course_matching.models.user import User
from course_matching.schemas.time_window import TimeWindowIn
from course_matching.utils.timeslots import SlotSequence, generate_slots_from_windows, split_window_by_duration
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.time_windows")


def get_course(db: Session, course_id: int) -> Course:
    with reading("load course"):
        course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFoundError("Course not found")
    return course


def create_time_windows(db: Session, course_id: int, body: TimeWindowIn) -> List[CourseTimeWindow]:
    """
    Split the admin range by the course duration and store one row per slot.
    """
    course = get_course(db, course_id)

    if not 0 <= body.day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")

    # FK check
    if body.instructor_id is not None:
        instructor = db.query(User.id).filter(User.id == body.instructor_id, User.role == "instructor").first()
        if not instructor:
            raise ValidationError("instructor_id not found")

    slots = split_window_by_duration(body, course.duration_minutes)

    rows = [
        CourseTimeWindow(
            course_id=course_id,
            day_of_week=s.day_of_week,
            start_time=s.start_time,
            end_time=s.end_time,
            instructor_id=s.instructor_id,
            instructor_name=(s.instructor_name or None),
            capacity=s.capacity,
        )
        for s in slots
    ]
    with transaction(db, "create time windows"):
        db.add_all(rows)

    for r in rows:
        db.refresh(r)
    logger.info("course %s: %d window rows created for day %s %s-%s",
                course_id, len(rows), body.day_of_week, body.start_time, body.end_time)
    return rows


def delete_time_window(db: Session, window_id: int, course_id: Optional[int] = None) -> None:
    q = db.query(CourseTimeWindow).filter(CourseTimeWindow.id == window_id)
    if course_id is not None:
        q = q.filter(CourseTimeWindow.course_id == course_id)
    with reading("load time window"):
        w = q.first()
    if not w:
        raise NotFoundError("Time window not found")

    # application_time_choices keep the dangling id on purpose
    with transaction(db, "delete time window"):
        db.delete(w)


def list_time_windows(db: Session, course_id: int) -> List[CourseTimeWindow]:
    with reading("list time windows"):
        return (
            db.query(CourseTimeWindow)
            .filter(CourseTimeWindow.course_id == course_id)
            .order_by(CourseTimeWindow.day_of_week.asc(), CourseTimeWindow.start_time.asc())
            .all()
        )


def list_upcoming_slots(
    db: Session,
    course_id: int,
    days_ahead: Optional[int] = None,
    from_: Optional[datetime] = None,
) -> SlotSequence:
    """Student-facing listing: concrete future slots of the course's windows."""
    course = get_course(db, course_id)
    windows = list_time_windows(db, course_id)
    return generate_slots_from_windows(
        windows,
        days_ahead=days_ahead,
        duration_minutes=course.duration_minutes,
        from_=from_,
    )
