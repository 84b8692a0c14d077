"""User Pydantic schemas — dev login and profile output."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class DevLogin(BaseModel):
    """Fields accepted by the development sign-in endpoint."""
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)


class UserOut(BaseModel):
    """Public user representation returned by the API."""
    id: int
    email: str
    full_name: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SignUp(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=6, max_length=72)


class Login(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)
