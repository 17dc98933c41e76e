from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class NotificationEmailIn(BaseModel):
    email: str = Field(max_length=255)
    label: Optional[str] = Field(default=None, max_length=100)


class NotificationEmailOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    label: Optional[str] = None
    created_at: datetime
