"""Admin session schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class AdminSessionIn(BaseModel):
    """Operator the sign-in provider has already verified."""

    user_id: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None


class AdminSessionOut(BaseModel):
    token: str
    expires_in: int
