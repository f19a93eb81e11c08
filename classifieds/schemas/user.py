"""Pydantic schemas for user registration and profiles."""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)
_HEX_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


class UserCreate(BaseModel):
    email: str = Field(..., max_length=320)
    display_name: str = Field(..., min_length=1, max_length=128)
    public_key: str = Field(..., max_length=128, description="Ed25519 public key (hex)")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        if not _HEX_KEY_PATTERN.match(v):
            raise ValueError("public_key must be a 32-byte hex-encoded Ed25519 key")
        return v.lower()


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    display_name: str
    is_admin: bool
    created_at: datetime
