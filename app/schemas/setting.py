from typing import List, Optional
from pydantic import BaseModel, Field


NOTIFICATION_TYPES = [
    {"code": "visitor_registered", "title": "Посетитель зарегистрирован"},
    {"code": "visitor_approved", "title": "Визит одобрен"},
    {"code": "visitor_rejected", "title": "Визит отклонен"},
    {"code": "visitor_checked_in", "title": "Посетитель вошел"},
    {"code": "visitor_checked_out", "title": "Посетитель вышел"},
    {"code": "pre_approval_created", "title": "Создано предварительное одобрение"},
    {"code": "qr_sent", "title": "QR-пропуск отправлен"},
    {"code": "qr_send_failed", "title": "Не удалось отправить QR-пропуск"},
]

NOTIFICATION_TYPE_CODES = [item["code"] for item in NOTIFICATION_TYPES]


class NotificationProviderMaxViaGreenApi(BaseModel):
    enabled: bool = False
    base_url: Optional[str] = None
    instance_id: Optional[str] = None
    api_token: Optional[str] = None
    chat_id: Optional[str] = None


class NotificationProviderTelegram(BaseModel):
    enabled: bool = False
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None


class NotificationProviders(BaseModel):
    max_via_green_api: NotificationProviderMaxViaGreenApi = Field(default_factory=NotificationProviderMaxViaGreenApi)
    telegram: NotificationProviderTelegram = Field(default_factory=NotificationProviderTelegram)


class NotificationsSettings(BaseModel):
    providers: NotificationProviders = Field(default_factory=NotificationProviders)
    enabled_notification_types: List[str] = Field(default_factory=list)


class OrganizationSettings(BaseModel):
    company_name: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    notifications: NotificationsSettings
    organization: OrganizationSettings = Field(default_factory=OrganizationSettings)


class NotificationTypeMeta(BaseModel):
    code: str
    title: str


class NotificationsMeta(BaseModel):
    available_types: List[NotificationTypeMeta]


class SettingsMeta(BaseModel):
    notifications: NotificationsMeta


class SettingsResponse(BaseModel):
    notifications: NotificationsSettings
    organization: OrganizationSettings
    metadata: SettingsMeta
