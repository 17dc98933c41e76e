from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from course_matching.database import get_db
from course_matching.utils.auth import require_role
from course_matching.schemas.availability import AvailabilityIn, AvailabilitySlotOut
from course_matching.services import availability

router = APIRouter(prefix="/availability", tags=["Availability"])

require_participant = require_role("instructor", "student")


@router.get("", response_model=list[AvailabilitySlotOut])
def list_my_slots(
    db: Session = Depends(get_db),
    user=Depends(require_participant),
    course_id: Optional[int] = Query(None),
):
    return availability.list_availability_slots(db, user.id, course_id=course_id)


@router.post("", response_model=list[AvailabilitySlotOut])
def add_slots(body: AvailabilityIn, db: Session = Depends(get_db), user=Depends(require_participant)):
    return availability.add_availability_slots(
        db, user, course_id=body.course_id, slots=body.slots, start_at=body.start_at, end_at=body.end_at,
    )


@router.delete("/{slot_id}")
def delete_slot(slot_id: int, db: Session = Depends(get_db), user=Depends(require_participant)):
    availability.delete_availability_slot(db, slot_id, user.id)
    return {"detail": "deleted"}
