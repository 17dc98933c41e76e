from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from course_matching.database import get_db
from course_matching.utils.auth import get_current_user, require_admin
from course_matching.schemas.time_window import TimeWindowIn, TimeWindowOut
from course_matching.services import time_windows

import logging
logger = logging.getLogger("course_matching.admin")


router = APIRouter(prefix="/courses/{course_id}/time-windows", tags=["Time Windows"])


@router.get("", response_model=list[TimeWindowOut])
def list_course_time_windows(course_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    return time_windows.list_time_windows(db, course_id)


@router.post("", response_model=list[TimeWindowOut])
def create_course_time_windows(
    course_id: int,
    body: TimeWindowIn,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return time_windows.create_time_windows(db, course_id, body)


@router.delete("/{window_id}")
def delete_course_time_window(
    course_id: int,
    window_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    logger.info("time window %s of course %s deleted by %s", window_id, course_id, admin.id)
    time_windows.delete_time_window(db, window_id, course_id=course_id)
    return {"detail": "deleted"}


@router.get("/slots")
def list_course_slots(
    course_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    days: Optional[int] = Query(None, ge=1, le=60, description="horizon in days (default 14)"),
    from_: Optional[datetime] = Query(None, alias="from"),
):
    return [
        {"window_id": s.window_id, "start": s.start, "end": s.end}
        for s in time_windows.list_upcoming_slots(db, course_id, days_ahead=days, from_=from_)
    ]
