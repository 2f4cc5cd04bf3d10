from typing import Optional, List, Literal
from pydantic import BaseModel, EmailStr, field_validator

UserRole = Literal["admin", "employee", "guard"]


class UserBase(BaseModel):
    email: EmailStr
    name: str
    department: Optional[str] = None


class UserCreate(UserBase):
    password: str
    role: UserRole = "employee"

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError('Пароль должен содержать минимум 6 символов')
        return v


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    department: Optional[str] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 6:
            raise ValueError('Пароль должен содержать минимум 6 символов')
        return v


class UserResponse(UserBase):
    id: str
    role: UserRole
    is_active: bool
    theme: str = "light"
    permissions: List[str] = []
    created_at: str
    last_login: Optional[str] = None

    class Config:
        from_attributes = True


class UsersListResponse(BaseModel):
    users: List[UserResponse]


class PreferencesUpdate(BaseModel):
    theme: Literal["light", "dark"]
