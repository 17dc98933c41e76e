from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from course_matching.models.match import MatchStatus


class ConfirmScheduleIn(BaseModel):
    slot_start_at: datetime
    slot_end_at: datetime
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    # window the proposal came from; its capacity wins over the course's
    window_id: Optional[int] = None
    student_ids: List[int]


class MatchTimeUpdate(BaseModel):
    slot_start_at: datetime
    slot_end_at: datetime


class MatchStudentIn(BaseModel):
    student_id: int


class MatchStudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: int


class MatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    slot_start_at: datetime
    slot_end_at: datetime
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    capacity: int
    status: MatchStatus
    note: Optional[str] = None
    students: List[MatchStudentOut] = []
