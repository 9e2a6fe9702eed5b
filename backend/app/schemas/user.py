"""
User schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    phone_number: str = Field(..., min_length=3, max_length=32)


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone_number: Optional[str] = Field(None, min_length=3, max_length=32)


class UserResponse(BaseModel):
    id: str
    full_name: str
    phone_number: str
    created_at: datetime

    class Config:
        from_attributes = True
