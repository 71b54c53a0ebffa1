"""SubDesk Backend — Admin login schemas."""

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class LoginResponse(BaseModel):
    message: str = Field(default="Login successful")
    token: str = Field(description="Bearer token for the admin endpoints")
