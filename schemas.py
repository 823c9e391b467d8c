"""
Database Schemas

MongoDB collection schemas as Pydantic models. Each model documents the
collection it is stored in; the store stamps `created_at` on insert.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class Role(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"


# Core auth/user data
class User(BaseModel):
    """Collection: "users". Email is stored trimmed and lowercased."""
    email: str = Field(..., description="Normalized email address")
    password_hash: str = Field(..., description="bcrypt hash (salt embedded)")
    role: Role = Field(Role.ADMIN, description="admin or superAdmin")


# Submission data
class Feedback(BaseModel):
    """Collection: "feedback_submissions"."""
    name: str = Field(..., min_length=2, max_length=100, description="Submitter name")
    email: Optional[EmailStr] = Field(None, description="Optional contact email")
    phone: str = Field(..., pattern=r"^\d{10}$", description="10-digit phone number")
    comments: str = Field(..., min_length=5, max_length=1000, description="Free-text comments")
    overall_rating: int = Field(..., ge=1, le=5, description="Overall star rating")
    q1_rating: Optional[int] = Field(None, ge=1, le=5, description="Web development content")
    q2_rating: Optional[int] = Field(None, ge=1, le=5, description="Career opportunities")
    q3_rating: Optional[int] = Field(None, ge=1, le=5, description="Skills discussion")
    q4_rating: Optional[int] = Field(None, ge=1, le=5, description="Getting started guidance")

    @field_validator("name", "phone", "comments", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class Prompt(BaseModel):
    """Collection: "prompt_submissions"."""
    name: str = Field(..., min_length=2, max_length=100, description="Submitter name")
    email: EmailStr = Field(..., description="Contact email")
    phone: str = Field(..., pattern=r"^[0-9+\-\s()]{7,15}$", description="Phone number")
    prompt: str = Field(..., min_length=10, max_length=2000, description="Submitted prompt text")

    @field_validator("name", "email", "phone", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


RATING_FIELDS = ("overall_rating", "q1_rating", "q2_rating", "q3_rating", "q4_rating")
FEEDBACK_COLUMNS = ("_id", "created_at", "name", "email", "phone", "comments") + RATING_FIELDS
PROMPT_COLUMNS = ("_id", "created_at", "name", "email", "phone", "prompt")
