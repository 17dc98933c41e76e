from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class TimeWindowIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0=Sunday ... 6=Saturday")
    start_time: str = Field(description="HH:MM")
    end_time: str = Field(description="HH:MM")
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)


class TimeWindowOut(TimeWindowIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
