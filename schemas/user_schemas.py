# schemas/user_schemas.py
import re
import uuid
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import EmailStr, constr, field_validator

from schemas.common_schemas import CamelModel

MIN_PASSWORD_LENGTH = 6
OTP_PATTERN = re.compile(r"^\d{6}$")


def check_password_strength(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
    if not re.search(r"[A-Za-z]", v):
        raise ValueError('Password must contain a letter')
    if not re.search(r"\d", v):
        raise ValueError('Password must contain a digit')
    return v


# --- Requests ---

class UserCreate(CamelModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator('password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class VerifyEmailRequest(CamelModel):
    email: EmailStr
    otp: str = ""

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class EmailRequest(CamelModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class GoogleLoginRequest(CamelModel):
    token: constr(min_length=1)


class ResetPasswordRequest(CamelModel):
    token: constr(min_length=1)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def password_strength(cls, v):
        return check_password_strength(v)


class ProfileUpdate(CamelModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    email: Optional[EmailStr] = None
    avatar: Optional[str] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v


class AdminUserUpdate(ProfileUpdate):
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None


# --- Responses ---

class UserSchema(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    avatar: Optional[str] = None


class UserBrief(CamelModel):
    id: uuid.UUID
    name: str
    email: str


class UserProfileSchema(UserSchema):
    is_email_verified: bool
    is_active: bool
    deleted_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class RegisterResponse(CamelModel):
    message: str
    requires_verification: bool = True
    email: str


class TokenResponse(CamelModel):
    message: str
    token: str
    user: UserSchema


class CurrentUserResponse(CamelModel):
    user: UserSchema


class ProfileResponse(CamelModel):
    user: UserProfileSchema


class ProfileUpdateResponse(CamelModel):
    message: str
    user: UserProfileSchema


class UserListResponse(CamelModel):
    users: List[UserProfileSchema]
    total_pages: int
    current_page: int
    total: int


class UserStats(CamelModel):
    total_media: int = 0
    total_size: int = 0
    total_views: int = 0
    total_downloads: int = 0
    total_galleries: int = 0
    total_shared_galleries: int = 0
    total_messages: int = 0


class UserStatsResponse(CamelModel):
    stats: UserStats
