from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from course_matching.database import get_db
from course_matching.utils.auth import require_admin
from course_matching.schemas.match import ConfirmScheduleIn, MatchOut, MatchStudentIn, MatchTimeUpdate
from course_matching.schemas.matching import AutoMatchIn, AutoMatchResult
from course_matching.schemas.proposal import ScheduleProposalResult
from course_matching.services import confirmation
from course_matching.services.auto_matching import run_auto_matching
from course_matching.services.proposals import generate_schedule_proposals

import logging
logger = logging.getLogger("course_matching.admin")


router = APIRouter(prefix="/admin", tags=["Admin - Matching"])


@router.post("/courses/{course_id}/proposals", response_model=ScheduleProposalResult)
def generate_proposals(
    course_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    mode: Optional[str] = Query(None, description="popular / general, default picks by demand"),
):
    return generate_schedule_proposals(db, course_id, mode=mode)


@router.post("/courses/{course_id}/matches", response_model=MatchOut)
def confirm_proposal(
    course_id: int,
    body: ConfirmScheduleIn,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return confirmation.confirm_schedule_from_proposal(db, course_id, body, actor_id=admin.id)


@router.post("/courses/{course_id}/auto-match", response_model=AutoMatchResult)
def auto_match(
    course_id: int,
    body: AutoMatchIn,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    logger.info("auto-match requested by %s for course %s", admin.id, course_id)
    return run_auto_matching(db, course_id, body.range_from, body.range_to, requested_by=admin.id)


@router.post("/matches/{match_id}/students", response_model=MatchOut)
def add_student(match_id: int, body: MatchStudentIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    row = confirmation.add_student_to_match(db, match_id, body.student_id, actor_id=admin.id)
    return row.match


@router.delete("/matches/{match_id}/students/{student_id}")
def remove_student(match_id: int, student_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    match_deleted = confirmation.remove_student_from_match(db, match_id, student_id, actor_id=admin.id)
    return {"detail": "removed", "match_deleted": match_deleted}


@router.delete("/matches/{match_id}")
def delete_match(match_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    logger.info("match %s deleted by %s", match_id, admin.id)
    reverted = confirmation.delete_match(db, match_id)
    return {"detail": "deleted", "reverted_students": reverted}


@router.put("/matches/{match_id}/time", response_model=MatchOut)
def update_proposed_time(
    match_id: int,
    body: MatchTimeUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return confirmation.update_proposed_match_time(
        db, match_id, body.slot_start_at, body.slot_end_at, actor_id=admin.id
    )


@router.post("/matches/{match_id}/confirm", response_model=MatchOut)
def confirm_match(match_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return confirmation.confirm_match(db, match_id, actor_id=admin.id)


@router.post("/matches/{match_id}/reschedule", response_model=MatchOut)
def reschedule_match(
    match_id: int,
    body: MatchTimeUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return confirmation.reschedule_match(db, match_id, body.slot_start_at, body.slot_end_at, actor_id=admin.id)


@router.post("/matches/{match_id}/cancel", response_model=MatchOut)
def cancel_match(match_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    return confirmation.cancel_match(db, match_id, actor_id=admin.id)
