"""
Authentication-related Pydantic schemas.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from schemas.user import UserRead


class Token(BaseModel):
    """Access token schema."""
    access_token: str
    token_type: str
    expires_in: int = Field(..., description="Token expiration time in seconds")


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)


class SignupResponse(BaseModel):
    message: str
    user: UserRead


class SigninRequest(BaseModel):
    email: str = Field(..., min_length=1, description="Email address or username")
    password: str = Field(..., min_length=1)


class SigninResponse(Token):
    message: str
    user: UserRead


class AdminSetupRequest(BaseModel):
    """First-run bootstrap of the initial administrator."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    displayName: str = Field(..., min_length=1, max_length=100)


class AdminSetupResponse(BaseModel):
    id: int
    email: str
    username: str
    role: str
