from datetime import date, time
from typing import Any, Dict, Optional, List, Literal, Union
from pydantic import BaseModel, EmailStr, field_validator, model_validator

from app.schemas.visitor import resolve_purpose

PreApprovalStatus = Literal["active", "expired", "used"]
QrSentStatus = Literal["not-sent", "sending", "sent", "failed"]


class PreApprovalCreate(BaseModel):
    visitor_name: str
    visitor_email: EmailStr
    visitor_phone: str
    purpose: str
    purpose_other: Optional[str] = None
    scheduled_date: date
    start_time: time
    end_time: time

    @field_validator("visitor_name", "visitor_phone")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Поле обязательно для заполнения")
        return v

    @model_validator(mode="after")
    def validate_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time должен быть позже start_time")
        self.purpose = resolve_purpose(self.purpose, self.purpose_other)
        return self


class PreApprovalResponse(BaseModel):
    id: str
    visitor_name: str
    visitor_email: str
    visitor_phone: str
    purpose: str
    scheduled_date: str
    start_time: str
    end_time: str
    host_employee_id: str
    host_employee_name: str
    status: PreApprovalStatus
    qr_code: str
    qr_sent: bool
    qr_sent_at: Optional[str] = None
    qr_sent_status: QrSentStatus
    qr_message_id: Optional[str] = None
    qr_last_error: Optional[str] = None
    valid_until: str
    used_at: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None

    class Config:
        from_attributes = True


class PreApprovalSummary(BaseModel):
    """Счетчики для карточек над списком"""
    total: int
    sent: int
    active: int


class PreApprovalListResponse(BaseModel):
    pre_approvals: List[PreApprovalResponse]
    summary: PreApprovalSummary


class SendQrResponse(BaseModel):
    success: bool
    message_id: str
    recipient: str
    valid_until: str
    message: str
    pre_approval: PreApprovalResponse


class PassVerifyRequest(BaseModel):
    # Строка, считанная сканером, либо уже разобранный JSON
    payload: Union[str, Dict[str, Any]]


class PassVerifyResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    pre_approval: Optional[PreApprovalResponse] = None
