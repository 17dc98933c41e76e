"""
Automatic matching over declared availability slots.

Separate from the window/proposal flow: students and instructors declare
concrete availability_slots, and every pending application created inside the
requested range is paired with an instructor slot of the exact same start and
end. Matches are written as ``proposed`` right away, one commit per student;
an admin confirms them later. A student joining an already confirmed match
is matched at once, the same as an admin adding them.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from course_matching.config import settings
from course_matching.errors import ConflictError, MatchingError, ValidationError
from course_matching.models.application import Application
from course_matching.models.availability_slot import AvailabilitySlot
from course_matching.models.match import Match, MatchStatus, MatchStudent
from course_matching.models.matching_run import MatchingRun
from course_matching.schemas.matching import AutoMatchResult
from course_matching.services.confirmation import LIVE_STATUSES, set_application_status
from course_matching.services.time_windows import get_course
from course_matching.utils.timeslots import as_utc
from course_matching.utils.transaction import reading, transaction

logger = logging.getLogger("course_matching.auto_matching")

SlotKey = Tuple[datetime, datetime]
MatchKey = Tuple[Optional[int], datetime, datetime]


class _MatchingState:
    """What the run already knows about the course, updated after every commit."""

    def __init__(self, db: Session, course_id: int):
        with reading("load auto-matching state"):
            matches = db.query(Match).filter(Match.course_id == course_id).all()
            counts = (
                db.query(MatchStudent.match_id, func.count(MatchStudent.id))
                .join(Match, Match.id == MatchStudent.match_id)
                .filter(Match.course_id == course_id)
                .group_by(MatchStudent.match_id)
                .all()
            )
            placed = (
                db.query(MatchStudent.student_id)
                .join(Match, Match.id == MatchStudent.match_id)
                .filter(Match.course_id == course_id, Match.status != MatchStatus.cancelled)
                .all()
            )

        self.match_ids: Dict[MatchKey, int] = {}
        # confirmed or rescheduled: joining one makes the application matched
        self.live: set = set()
        self.capacity: Dict[int, int] = {}
        self.instructor_load: Dict[int, int] = defaultdict(int)
        for m in matches:
            # a cancelled match frees its slot for a new one
            if m.status == MatchStatus.cancelled:
                continue
            self.match_ids[(m.instructor_id, as_utc(m.slot_start_at), as_utc(m.slot_end_at))] = m.id
            self.capacity[m.id] = m.capacity
            if m.status in LIVE_STATUSES:
                self.live.add(m.id)
            if m.instructor_id is not None:
                self.instructor_load[m.instructor_id] += 1

        self.occupancy: Dict[int, int] = defaultdict(int, {mid: n for mid, n in counts})
        self.placed_students = {sid for (sid,) in placed}


def _slots_by_time(slots: List[AvailabilitySlot]) -> Dict[SlotKey, List[AvailabilitySlot]]:
    out: Dict[SlotKey, List[AvailabilitySlot]] = defaultdict(list)
    for s in slots:
        out[(as_utc(s.start_at), as_utc(s.end_at))].append(s)
    return out


def _place_student(
    db: Session,
    course_id: int,
    app: Application,
    student_slots: List[AvailabilitySlot],
    instructor_slots: Dict[SlotKey, List[AvailabilitySlot]],
    state: _MatchingState,
    requested_by: Optional[int],
) -> bool:
    for s in student_slots:
        key = (as_utc(s.start_at), as_utc(s.end_at))
        # least busy instructor first
        candidates = sorted(
            instructor_slots.get(key, []),
            key=lambda i: (state.instructor_load[i.user_id], i.id),
        )
        for inst in candidates:
            match_key = (inst.user_id, key[0], key[1])
            match_id = state.match_ids.get(match_key)
            capacity = min(inst.capacity, settings.AUTO_MATCH_MAX_CAPACITY)
            if match_id is not None and state.occupancy[match_id] >= min(capacity, state.capacity[match_id]):
                continue

            created = match_id is None
            with transaction(db, f"auto-match student {app.student_id} in course {course_id}"):
                if created:
                    match = Match(
                        course_id=course_id,
                        slot_start_at=key[0],
                        slot_end_at=key[1],
                        instructor_id=inst.user_id,
                        capacity=capacity,
                        status=MatchStatus.proposed,
                        updated_by=requested_by,
                    )
                    db.add(match)
                    db.flush()
                    match_id = match.id
                    state.capacity[match_id] = capacity
                db.add(MatchStudent(match_id=match_id, student_id=app.student_id))
                if match_id in state.live:
                    db.flush()
                    set_application_status(db, course_id, [app.student_id], "matched")

            state.match_ids[match_key] = match_id
            if created:
                state.instructor_load[inst.user_id] += 1
            state.occupancy[match_id] += 1
            state.placed_students.add(app.student_id)
            return True
    return False


def _match_applications(
    db: Session,
    course_id: int,
    range_from: datetime,
    range_to: datetime,
    requested_by: Optional[int],
) -> Tuple[int, int, int]:
    with reading("load auto-matching input"):
        applications = (
            db.query(Application)
            .filter(
                Application.course_id == course_id,
                Application.status == "pending",
                Application.created_at >= range_from,
                Application.created_at <= range_to,
            )
            .order_by(Application.created_at.asc(), Application.id.asc())
            .all()
        )
        slots = (
            db.query(AvailabilitySlot)
            .filter(AvailabilitySlot.course_id == course_id)
            .order_by(AvailabilitySlot.start_at.asc(), AvailabilitySlot.id.asc())
            .all()
        )

    student_slots: Dict[int, List[AvailabilitySlot]] = defaultdict(list)
    for s in slots:
        if s.role == "student":
            student_slots[s.user_id].append(s)
    instructor_slots = _slots_by_time([s for s in slots if s.role == "instructor"])

    state = _MatchingState(db, course_id)

    matched = unmatched = skipped = 0
    for app in applications:
        if app.student_id in state.placed_students:
            skipped += 1
            continue
        try:
            ok = _place_student(
                db, course_id, app, student_slots.get(app.student_id, []), instructor_slots, state, requested_by,
            )
        except MatchingError as e:
            # one bad student never stops the batch
            logger.warning("course %s: student %s skipped: %s", course_id, app.student_id, e)
            ok = False
        if ok:
            matched += 1
        else:
            unmatched += 1

    return matched, unmatched, skipped


def run_auto_matching(
    db: Session,
    course_id: int,
    range_from: datetime,
    range_to: datetime,
    requested_by: Optional[int] = None,
) -> AutoMatchResult:
    get_course(db, course_id)
    if as_utc(range_from) >= as_utc(range_to):
        raise ValidationError("The end of the range must be later than its start.")

    running = (
        db.query(MatchingRun.id)
        .filter(MatchingRun.course_id == course_id, MatchingRun.status == "running")
        .first()
    )
    if running:
        raise ConflictError("An auto-matching run is already in progress for this course.")

    run = MatchingRun(
        course_id=course_id,
        status="running",
        range_from=range_from,
        range_to=range_to,
        created_by=requested_by,
    )
    with transaction(db, f"start matching run for course {course_id}"):
        db.add(run)
    run_id = run.id

    try:
        matched, unmatched, skipped = _match_applications(db, course_id, range_from, range_to, requested_by)
    except Exception:
        db.rollback()
        with transaction(db, f"mark matching run {run_id} failed"):
            db.query(MatchingRun).filter(MatchingRun.id == run_id).update({"status": "failed"})
        raise

    with transaction(db, f"finish matching run {run_id}"):
        db.query(MatchingRun).filter(MatchingRun.id == run_id).update(
            {"status": "done", "matched_count": matched, "unmatched_count": unmatched}
        )

    logger.info(
        "course %s: matching run %s done, matched=%d unmatched=%d skipped=%d",
        course_id, run_id, matched, unmatched, skipped,
    )
    return AutoMatchResult(run_id=run_id, matched=matched, unmatched=unmatched, skipped=skipped)
