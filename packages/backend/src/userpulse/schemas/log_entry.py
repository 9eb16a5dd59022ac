"""Pydantic schemas for log entries."""

from datetime import datetime

from pydantic import BaseModel, Field


class LogEntryCreate(BaseModel):
    service: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1)


class LogEntryRead(BaseModel):
    id: int
    service: str
    message: str
    timestamp: datetime

    model_config = {"from_attributes": True}
