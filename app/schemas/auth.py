from typing import Optional, Literal
from pydantic import BaseModel, EmailStr, field_validator

from app.schemas.user import UserResponse, UserRole


class LoginRequest(BaseModel):
    email: str
    password: str
    role: Optional[UserRole] = None  # роль, выбранная на форме входа


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    role: Literal["employee", "guard"] = "employee"  # админа создает только админ
    department: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError('Пароль должен содержать минимум 6 символов')
        return v


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # секунды до истечения access_token
    user: UserResponse


class RefreshRequest(BaseModel):
    refresh_token: str


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LogoutRequest(BaseModel):
    refresh_token: str
