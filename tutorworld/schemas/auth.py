# tutorworld/schemas/auth.py
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# 1 uppercase, 1 lowercase, 1 digit, 1 special character, min 8 chars
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?~`]).{8,}$"
)
PASSWORD_MESSAGE = (
    "Password must be at least 8 characters with 1 uppercase, 1 lowercase, "
    "1 number, and 1 special character"
)


def validate_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_MESSAGE)
    return value


class UserResponse(BaseModel):
    """Public account data"""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    username: Optional[str] = None
    first_name: str
    last_name: str
    role: str
    grade: Optional[str] = None
    school: Optional[str] = None
    is_active: bool
    is_email_verified: bool
    created_at: datetime
    last_login: Optional[datetime] = None


# Registration
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    grade: Optional[str] = Field(None, max_length=20)
    school: Optional[str] = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        return validate_password_strength(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class RegisterResponse(BaseModel):
    user: UserResponse
    message: str


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class EmailOnlyRequest(BaseModel):
    email: EmailStr


# Login schemas
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class AuthResponse(BaseModel):
    """Standard authentication response"""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserResponse


# Password management
class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v):
        return validate_password_strength(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v):
        return validate_password_strength(v)


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    grade: Optional[str] = Field(None, max_length=20)
    school: Optional[str] = Field(None, max_length=255)
