from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# --- typed entities the proposal engine works on ---

class CourseEntity(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    duration_minutes: int
    capacity: int


class WindowEntity(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day_of_week: int
    start_time: str
    end_time: str
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    capacity: Optional[int] = None


class PendingApplication(BaseModel):
    id: int
    student_id: int
    created_at: datetime
    window_ids: List[int] = Field(default_factory=list)
    birthdate: Optional[date] = None


# --- engine output ---

class DemandResult(BaseModel):
    counts: Dict[int, int]
    max_demand: int


class ProposalStudent(BaseModel):
    student_id: int
    application_id: int


class ScheduleProposal(BaseModel):
    window_id: int
    slot_start_at: datetime
    slot_end_at: datetime
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    capacity: int
    students: List[ProposalStudent]


class ScheduleProposalResult(BaseModel):
    proposals: List[ScheduleProposal]
    generated_at: datetime
    # "popular" when some window has demand, otherwise "general"
    mode: str
    max_demand: int
