import logging
from typing import Any, Dict

import httpx

from app.database import SessionLocal
from app.schemas.setting import NOTIFICATION_TYPES
from app.services.settings import build_default_notifications, load_setting_value, normalize_notifications


logger = logging.getLogger(__name__)


def load_notifications_settings() -> Dict[str, Any]:
    # Вызывается из фоновой задачи после ответа, поэтому своя сессия
    db = SessionLocal()
    try:
        return normalize_notifications(load_setting_value(db, "notifications"))
    except Exception:
        logger.exception("Не удалось загрузить настройки notifications")
        return build_default_notifications()
    finally:
        db.close()


def should_send_notification(event_type: str, notifications: Dict[str, Any]) -> bool:
    enabled_types = notifications.get("enabled_notification_types") or []
    return event_type in enabled_types


def get_notification_title(event_type: str) -> str:
    for item in NOTIFICATION_TYPES:
        if item["code"] == event_type:
            return item["title"]
    return event_type


def format_notification_message(event_type: str, payload: Dict[str, Any]) -> str:
    title = get_notification_title(event_type)
    lines = [f"Событие: {title}"]

    actor = payload.get("actor")
    if actor:
        lines.append(f"Действие: {actor}")

    visitor = payload.get("visitor")
    if isinstance(visitor, dict):
        lines.append(f"Посетитель: {visitor.get('full_name')}")
        if visitor.get("company_name"):
            lines.append(f"Компания: {visitor.get('company_name')}")
        lines.append(f"Принимающий: {visitor.get('host_employee_name')}")
        lines.append(f"Цель: {visitor.get('purpose')}")
        if visitor.get("badge_number"):
            lines.append(f"Бейдж: {visitor.get('badge_number')}")

    pre_approval = payload.get("pre_approval")
    if isinstance(pre_approval, dict):
        lines.append(f"Посетитель: {pre_approval.get('visitor_name')} <{pre_approval.get('visitor_email')}>")
        lines.append(f"Принимающий: {pre_approval.get('host_employee_name')}")
        lines.append(
            f"Дата/время: {pre_approval.get('scheduled_date')} "
            f"{pre_approval.get('start_time')}-{pre_approval.get('end_time')}"
        )

    if payload.get("error"):
        lines.append(f"Ошибка: {payload.get('error')}")

    return "\n".join(lines)


def send_max_via_green_api(provider: Dict[str, Any], message: str) -> None:
    base_url = str(provider.get("base_url")).rstrip("/")
    url = f"{base_url}/waInstance{provider.get('instance_id')}/sendMessage/{provider.get('api_token')}"
    payload = {
        "chatId": provider.get("chat_id"),
        "message": message,
    }
    try:
        response = httpx.post(url, json=payload, timeout=10)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "Ошибка отправки уведомления через max_via_green_api: %s",
            exc.response.text,
            exc_info=True,
        )
    except httpx.HTTPError:
        logger.exception("Ошибка отправки уведомления через max_via_green_api")


def send_telegram(bot_token: str, chat_id: str, message: str) -> None:
    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": message,
        "disable_web_page_preview": True,
    }
    try:
        response = httpx.post(url, json=payload, timeout=10)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "Ошибка отправки уведомления через telegram: %s",
            exc.response.text,
            exc_info=True,
        )
    except httpx.HTTPError:
        logger.exception("Ошибка отправки уведомления через telegram")


def send_notifications_for_event(event_type: str, payload: Dict[str, Any]) -> None:
    """Рассылка события по включенным провайдерам. Ошибки только логируются"""
    try:
        notifications = load_notifications_settings()
        if not should_send_notification(event_type, notifications):
            return

        providers = notifications.get("providers") or {}
        message = format_notification_message(event_type, payload)

        max_provider = providers.get("max_via_green_api") or {}
        if max_provider.get("enabled"):
            if all(max_provider.get(key) for key in ("base_url", "instance_id", "api_token", "chat_id")):
                send_max_via_green_api(max_provider, message)
            else:
                logger.warning("max_via_green_api включен, но настройки неполные")

        telegram_provider = providers.get("telegram") or {}
        if telegram_provider.get("enabled"):
            bot_token = telegram_provider.get("bot_token")
            chat_id = telegram_provider.get("chat_id")
            if bot_token and chat_id:
                send_telegram(bot_token, chat_id, message)
            else:
                logger.warning("telegram включен, но bot_token/chat_id отсутствуют")
    except Exception:
        logger.exception("Ошибка при отправке уведомлений")
