import json
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.config import settings
from app.models.setting import Setting
from app.schemas.setting import NOTIFICATION_TYPES, NOTIFICATION_TYPE_CODES

logger = logging.getLogger(__name__)


def build_default_notifications() -> Dict[str, Any]:
    return {
        "providers": {
            "max_via_green_api": {"enabled": False},
            "telegram": {"enabled": False},
        },
        "enabled_notification_types": list(NOTIFICATION_TYPE_CODES),
    }


def normalize_notifications(value: Any) -> Dict[str, Any]:
    defaults = build_default_notifications()
    if not isinstance(value, dict):
        return defaults

    providers = value.get("providers")
    if isinstance(providers, dict):
        for provider_key in defaults["providers"].keys():
            provider_value = providers.get(provider_key)
            if isinstance(provider_value, dict):
                defaults["providers"][provider_key].update(provider_value)

    enabled_types = value.get("enabled_notification_types")
    if isinstance(enabled_types, list):
        defaults["enabled_notification_types"] = enabled_types

    return defaults


def build_default_organization() -> Dict[str, Any]:
    return {"company_name": settings.COMPANY_NAME}


def normalize_organization(value: Any) -> Dict[str, Any]:
    defaults = build_default_organization()
    if not isinstance(value, dict):
        return defaults

    company_name = value.get("company_name")
    if isinstance(company_name, str) and company_name.strip():
        defaults["company_name"] = company_name.strip()
    return defaults


def build_settings_metadata() -> Dict[str, Any]:
    return {
        "notifications": {
            "available_types": NOTIFICATION_TYPES
        }
    }


def load_setting_value(db: Session, key: str) -> Any:
    """JSON-значение настройки или None, если записи нет или она битая"""
    record = db.query(Setting).filter(Setting.key == key).first()
    if not record or not record.value:
        return None
    try:
        return json.loads(record.value)
    except json.JSONDecodeError:
        logger.warning(f"Не удалось распарсить настройку {key}")
        return None


def get_company_name(db: Session) -> str:
    return normalize_organization(load_setting_value(db, "organization"))["company_name"]
