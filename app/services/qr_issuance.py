"""
Выпуск QR-пропуска по записи предварительного одобрения:
payload -> QR-картинка -> письмо -> отправка -> запись результата.

Шаги строго последовательные, без автоматических повторов. Повторная
отправка (Retry) - это новый вызов issue_pass из состояния failed.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.pre_approval import PreApproval
from app.services.auth import get_now, parse_timestamp
from app.services.email_delivery import DeliveryResult, EmailSender
from app.services.email_templates import render_pass_email
from app.services.pre_approvals import update_delivery_status
from app.services.qr_pass import QrEncoder, build_pass_payload, serialize_payload

logger = logging.getLogger(__name__)

# Запас сверх таймаута провайдера на сборку письма и запись статуса
SENDING_GRACE_SECONDS = 30


class IssuanceInProgressError(Exception):
    """Предыдущая отправка еще не завершилась"""


class EmailDeliveryError(Exception):
    """Провайдер не принял письмо; запись переведена в failed"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DeliveryStatusPersistError(Exception):
    """Письмо ушло, но статус sent сохранить не удалось"""

    def __init__(self, message_id: Optional[str]):
        super().__init__(message_id)
        self.message_id = message_id


class IssuanceResult(BaseModel):
    message_id: str
    recipient: str
    valid_until: str


def is_send_in_flight(entry: PreApproval, now: Optional[datetime] = None) -> bool:
    """
    sending блокирует новую отправку только пока идет запрос к провайдеру.
    Если запрос умер, не дописав результат, запись через таймаут снова доступна.
    """
    if entry.qr_sent_status != "sending":
        return False
    if not entry.updated_at:
        return False

    if now is None:
        now = get_now()
    window = timedelta(seconds=settings.EMAIL_TIMEOUT_SECONDS + SENDING_GRACE_SECONDS)
    return now - parse_timestamp(entry.updated_at) < window


def mark_failed(db: Session, entry_id: str, reason: str) -> None:
    """Перевести запись в failed; при ошибке БД только залогировать"""
    try:
        update_delivery_status(db, entry_id, "failed", error=reason)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Не удалось сохранить статус failed: ID={entry_id}")


def issue_pass(
    db: Session,
    entry: PreApproval,
    encoder: QrEncoder,
    sender: EmailSender,
    company_name: str,
    now: Optional[datetime] = None,
) -> IssuanceResult:
    if is_send_in_flight(entry, now):
        raise IssuanceInProgressError(entry.id)
    if entry.qr_sent_status == "sending":
        logger.warning(f"Зависшая отправка QR-пропуска, отправляем заново: ID={entry.id}")

    # Payload и картинка до смены статуса: ошибка генерации не трогает состояние отправки
    payload = build_pass_payload(entry, now=now)
    qr_png = encoder.encode(serialize_payload(payload))
    message = render_pass_email(entry, company_name, qr_png)

    update_delivery_status(db, entry.id, "sending")
    logger.info(f"Отправка QR-пропуска: ID={entry.id}, to={entry.visitor_email}")

    try:
        result = sender.send(message)
    except Exception as exc:
        logger.exception(f"Непредвиденная ошибка отправителя: ID={entry.id}")
        result = DeliveryResult(success=False, error=str(exc) or type(exc).__name__)

    if not result.success:
        reason = result.error or "Failed to send email"
        mark_failed(db, entry.id, reason)
        logger.warning(f"QR-пропуск не отправлен: ID={entry.id}, reason='{reason}'")
        raise EmailDeliveryError(reason)

    try:
        update_delivery_status(db, entry.id, "sent", sent_at=get_now(), message_id=result.message_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(f"Письмо отправлено, но статус не сохранен: ID={entry.id}, message_id={result.message_id}")
        mark_failed(
            db,
            entry.id,
            f"Email was sent (message_id={result.message_id}) but the delivery status could not be saved",
        )
        raise DeliveryStatusPersistError(result.message_id) from exc

    logger.info(f"QR-пропуск отправлен: ID={entry.id}, message_id={result.message_id}")
    return IssuanceResult(
        message_id=result.message_id,
        recipient=entry.visitor_email,
        valid_until=entry.valid_until,
    )
