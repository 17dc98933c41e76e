from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class SlotIn(BaseModel):
    start_at: datetime
    end_at: datetime


class AvailabilityIn(BaseModel):
    course_id: Optional[int] = None
    # picked slots; when empty, start_at..end_at is cut into hourly slots
    slots: List[SlotIn] = Field(default_factory=list)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


class AvailabilitySlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: Optional[int] = None
    user_id: int
    role: str
    start_at: datetime
    end_at: datetime
    capacity: int
