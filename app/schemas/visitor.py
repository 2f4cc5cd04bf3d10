from typing import Optional, List, Literal
from pydantic import BaseModel, EmailStr, field_validator, model_validator

PURPOSES = [
    "Business Meeting",
    "Interview",
    "Delivery",
    "Maintenance",
    "Training",
    "Conference",
    "Other",
]

DEPARTMENTS = [
    "Human Resources",
    "Finance",
    "Engineering",
    "Marketing",
    "Sales",
    "Operations",
    "Legal",
]

VisitorStatus = Literal["pending", "approved", "rejected", "checked-in", "checked-out"]


def resolve_purpose(purpose: str, purpose_other: Optional[str]) -> str:
    """Цель визита из списка; для "Other" берется свободный текст"""
    purpose = (purpose or "").strip()
    if purpose not in PURPOSES:
        raise ValueError(f"Цель визита должна быть одной из: {', '.join(PURPOSES)}")
    if purpose == "Other":
        other = (purpose_other or "").strip()
        if not other:
            raise ValueError("Для цели 'Other' нужно указать purpose_other")
        return other
    return purpose


class VisitorCreate(BaseModel):
    full_name: str
    contact_number: str
    email: EmailStr
    purpose: str
    purpose_other: Optional[str] = None
    company_name: Optional[str] = None
    host_employee_id: str
    host_department: Optional[str] = None
    photo_url: str  # снимок с камеры в виде data URL

    @field_validator("full_name", "contact_number", "host_employee_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Поле обязательно для заполнения")
        return v

    @field_validator("photo_url")
    @classmethod
    def validate_photo(cls, v: str) -> str:
        if not v.startswith("data:image/"):
            raise ValueError("Фото должно быть передано как data URL изображения")
        return v

    @model_validator(mode="after")
    def apply_purpose(self):
        self.purpose = resolve_purpose(self.purpose, self.purpose_other)
        return self


class VisitorResponse(BaseModel):
    id: str
    full_name: str
    contact_number: str
    email: str
    purpose: str
    company_name: Optional[str] = None
    host_employee_id: Optional[str] = None
    host_employee_name: str
    host_department: str
    photo_url: Optional[str] = None
    badge_number: str
    qr_code: str
    status: VisitorStatus
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    approval_time: Optional[str] = None
    approved_by: Optional[str] = None
    pre_approved: bool
    pre_approval_id: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None

    class Config:
        from_attributes = True


class VisitorsListResponse(BaseModel):
    visitors: List[VisitorResponse]
    total: int


class ReferenceListsResponse(BaseModel):
    purposes: List[str]
    departments: List[str]


class HostOption(BaseModel):
    id: str
    name: str
    department: Optional[str] = None

    class Config:
        from_attributes = True


class HostsListResponse(BaseModel):
    hosts: List[HostOption]
