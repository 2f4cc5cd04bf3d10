import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.setting import Setting
from app.models.user import User
from app.api.deps import require_permission
from app.schemas.setting import (
    SettingsUpdateRequest,
    SettingsResponse,
    NOTIFICATION_TYPE_CODES,
)
from app.services.auth import get_current_timestamp
from app.services.settings import (
    load_setting_value,
    normalize_notifications,
    normalize_organization,
    build_settings_metadata,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def build_settings_response(notifications: Any, organization: Any) -> Dict[str, Any]:
    return {
        "notifications": normalize_notifications(notifications),
        "organization": normalize_organization(organization),
        "metadata": build_settings_metadata(),
    }


def save_setting(db: Session, key: str, value: Dict[str, Any], user: User, timestamp: str) -> None:
    serialized = json.dumps(value, ensure_ascii=False)
    record = db.query(Setting).filter(Setting.key == key).first()
    if record:
        record.value = serialized
        record.updated_at = timestamp
        record.updated_by = user.id
    else:
        db.add(Setting(key=key, value=serialized, updated_at=timestamp, updated_by=user.id))


@router.get("/settings", response_model=SettingsResponse, response_model_exclude_none=True)
def get_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("manage_settings")),
):
    """Получить текущие настройки (только для админов)"""
    return build_settings_response(
        load_setting_value(db, "notifications"),
        load_setting_value(db, "organization"),
    )


@router.put("/settings", response_model=SettingsResponse, response_model_exclude_none=True)
def update_settings(
    payload: SettingsUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("manage_settings")),
):
    """Обновить настройки (только для админов)"""
    notifications = payload.notifications

    # Валидация активных провайдеров
    max_provider = notifications.providers.max_via_green_api
    if max_provider.enabled and (
        not max_provider.base_url
        or not max_provider.instance_id
        or not max_provider.api_token
        or not max_provider.chat_id
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Для max_via_green_api обязательны base_url, instance_id, api_token и chat_id",
        )

    telegram_provider = notifications.providers.telegram
    if telegram_provider.enabled and (not telegram_provider.bot_token or not telegram_provider.chat_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Для telegram обязательны bot_token и chat_id",
        )

    # Валидация типов уведомлений
    invalid_types = [
        notification_type
        for notification_type in notifications.enabled_notification_types
        if notification_type not in NOTIFICATION_TYPE_CODES
    ]
    if invalid_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Недопустимые типы уведомлений: {', '.join(invalid_types)}",
        )

    notifications_dict = notifications.model_dump(exclude_none=True)
    organization_dict = payload.organization.model_dump(exclude_none=True)

    timestamp = get_current_timestamp()
    save_setting(db, "notifications", notifications_dict, current_user, timestamp)
    save_setting(db, "organization", organization_dict, current_user, timestamp)
    db.commit()

    logger.info(f"Настройки обновлены: admin='{current_user.email}'")
    return build_settings_response(notifications_dict, organization_dict)
