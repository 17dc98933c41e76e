from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TimeRequestIn(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str


class ApplicationCreate(BaseModel):
    window_ids: List[int] = Field(default_factory=list)
    time_requests: List[TimeRequestIn] = Field(default_factory=list)


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    student_id: int
    status: str
    created_at: datetime


class ApplicationDetailOut(ApplicationOut):
    student_name: Optional[str] = None
    # "Mon 10:00 - 11:00", "deleted time" for removed windows
    choice_labels: List[str] = []
    requested_times: List[str] = []
