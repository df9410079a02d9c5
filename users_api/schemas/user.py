from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserCreate(BaseModel):
    email: str = Field(description="Login email", max_length=255, pattern=EMAIL_PATTERN)
    name: str | None = Field(default=None, description="Display name", min_length=1, max_length=100)


class UserUpdate(BaseModel):
    email: str | None = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=100)


class UserRead(BaseModel):
    id: str
    email: str
    name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
