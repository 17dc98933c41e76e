"""
Schedule proposal engine.

Turns pending demand into admin-reviewable proposals. Nothing here writes to
the store: ``build_schedule_proposals`` is pure, ``generate_schedule_proposals``
only loads its inputs first.

Candidate order inside a window is first-come-first-served on the application
``created_at``; equal timestamps go to the older student, and students without
a birthdate sort after every dated one.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from functools import partial, reduce
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from course_matching.errors import ValidationError
from course_matching.models.time_window import CourseTimeWindow
from course_matching.schemas.proposal import (
    CourseEntity, PendingApplication, ProposalStudent,
    ScheduleProposal, ScheduleProposalResult, WindowEntity,
)
from course_matching.services.demand import aggregate_demand, load_pending_applications
from course_matching.services.time_windows import get_course
from course_matching.utils.timeslots import as_utc, combine_day_and_time, local_tz
from course_matching.utils.transaction import reading

logger = logging.getLogger("course_matching.proposals")

# (proposals so far, students placed so far)
_Acc = Tuple[Tuple[ScheduleProposal, ...], FrozenSet[int]]


def calculate_age(birthdate: Optional[date], today: date) -> Optional[int]:
    if birthdate is None:
        return None
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def candidate_sort_key(app: PendingApplication, today: date):
    age = calculate_age(app.birthdate, today)
    return (as_utc(app.created_at), age is None, -(age or 0))


def select_target_windows(windows: Iterable[WindowEntity], counts: dict, max_demand: int) -> List[WindowEntity]:
    if max_demand > 0:
        targets = [w for w in windows if counts.get(w.id, 0) == max_demand]
    else:
        targets = list(windows)
    # start_time compared as "HH:MM" strings
    return sorted(targets, key=lambda w: (w.day_of_week, w.start_time))


def _propose_window(
    acc: _Acc,
    window: WindowEntity,
    *,
    course: CourseEntity,
    applications: Sequence[PendingApplication],
    use_assigned_students: bool,
    generated_at: datetime,
    today: date,
) -> _Acc:
    proposals, placed = acc

    candidates = [
        app for app in applications
        if window.id in app.window_ids
        and not (use_assigned_students and app.student_id in placed)
    ]
    if not candidates:
        return acc

    candidates.sort(key=partial(candidate_sort_key, today=today))
    capacity = window.capacity if window.capacity is not None else course.capacity
    chosen = candidates[:capacity]

    slot_start = combine_day_and_time(window.day_of_week, window.start_time, generated_at)
    proposal = ScheduleProposal(
        window_id=window.id,
        slot_start_at=slot_start,
        slot_end_at=slot_start + timedelta(minutes=course.duration_minutes),
        instructor_id=window.instructor_id,
        instructor_name=window.instructor_name,
        capacity=capacity,
        students=[ProposalStudent(student_id=a.student_id, application_id=a.id) for a in chosen],
    )

    if use_assigned_students:
        placed = placed | {a.student_id for a in chosen}
    return proposals + (proposal,), placed


def build_schedule_proposals(
    course: CourseEntity,
    windows: Sequence[WindowEntity],
    applications: Sequence[PendingApplication],
    generated_at: Optional[datetime] = None,
    today: Optional[date] = None,
    mode: Optional[str] = None,
) -> ScheduleProposalResult:
    """
    mode=None picks "popular" when any window has demand, else "general".
    An admin may force "general" to get one exclusive placement over all windows.
    """
    if mode not in (None, "popular", "general"):
        raise ValidationError(f"Unknown proposal mode: {mode!r}")
    generated_at = generated_at or datetime.now(timezone.utc)
    today = today or as_utc(generated_at).astimezone(local_tz()).date()

    demand = aggregate_demand(applications, window_ids=[w.id for w in windows])
    mode = mode or ("popular" if demand.max_demand > 0 else "general")
    popular = mode == "popular"
    targets = select_target_windows(windows, demand.counts, demand.max_demand if popular else 0)

    # popular mode reports every top window for the admin to pick from,
    # so a student may show up in several of them
    use_assigned_students = not popular

    step = partial(
        _propose_window,
        course=course,
        applications=applications,
        use_assigned_students=use_assigned_students,
        generated_at=generated_at,
        today=today,
    )
    proposals, _placed = reduce(step, targets, ((), frozenset()))

    return ScheduleProposalResult(
        proposals=list(proposals),
        generated_at=generated_at,
        mode=mode,
        max_demand=demand.max_demand,
    )


def generate_schedule_proposals(
    db: Session,
    course_id: int,
    now: Optional[datetime] = None,
    mode: Optional[str] = None,
) -> ScheduleProposalResult:
    course = CourseEntity.model_validate(get_course(db, course_id))
    with reading("load windows for proposals"):
        rows = db.query(CourseTimeWindow).filter(CourseTimeWindow.course_id == course_id).all()
    windows = [WindowEntity.model_validate(r) for r in rows]
    applications = load_pending_applications(db, course_id)

    result = build_schedule_proposals(course, windows, applications, generated_at=now, mode=mode)
    logger.info(
        "course %s: %d proposals (%s mode, max demand %d, %d pending applications)",
        course_id, len(result.proposals), result.mode, result.max_demand, len(applications),
    )
    return result
