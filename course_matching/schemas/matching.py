from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AutoMatchIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    range_from: datetime = Field(alias="from")
    range_to: datetime = Field(alias="to")


class AutoMatchResult(BaseModel):
    run_id: int
    matched: int
    unmatched: int
    # students already placed in a live match of the course
    skipped: int = 0
