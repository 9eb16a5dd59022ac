"""Pydantic schemas for users.

Learn: Pydantic v2 models validate request/response data. Separate
"Create"/"Update" schemas (input) from "Read" schemas (output) for clean APIs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class UserUpdate(BaseModel):
    """Partial update. Omitted or empty fields are left unchanged."""
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
