"""
Данные QR-пропуска: сборка payload, подпись, проверка на проходной
и отрисовка QR-изображения.

Подпись - HMAC-SHA256 на серверном секрете (QR_SIGNING_SECRET) от
канонической JSON-сериализации payload без поля signature.
"""
import base64
import hashlib
import hmac
import io
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Union

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image

from app.config import settings
from app.models.pre_approval import PreApproval
from app.services.auth import ensure_aware, get_now, parse_timestamp

logger = logging.getLogger(__name__)


class QrGenerationError(Exception):
    """Не удалось построить QR-изображение"""


def serialize_payload(payload: Dict[str, Any]) -> str:
    """Каноническая строка: ключи по алфавиту, без пробелов, UTF-8 как есть"""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_signature(payload: Dict[str, Any], secret: Optional[str] = None) -> str:
    """HMAC-SHA256 от всех полей, кроме signature"""
    unsigned = {key: value for key, value in payload.items() if key != "signature"}
    key = (secret if secret is not None else settings.QR_SIGNING_SECRET).encode("utf-8")
    return hmac.new(key, serialize_payload(unsigned).encode("utf-8"), hashlib.sha256).hexdigest()


def build_pass_payload(
    entry: PreApproval,
    now: Optional[datetime] = None,
    secret: Optional[str] = None,
) -> Dict[str, Any]:
    """Подписанный payload пропуска для записи предварительного одобрения"""
    if now is None:
        now = get_now()

    payload: Dict[str, Any] = {
        "visitor_id": entry.id,
        "name": entry.visitor_name,
        "email": entry.visitor_email,
        "host_employee": entry.host_employee_name,
        "purpose": entry.purpose,
        "scheduled_date": entry.scheduled_date,
        "time_window": {
            "start": entry.start_time,
            "end": entry.end_time,
        },
        "valid_until": entry.valid_until,
        "created_at": now.isoformat(),
    }
    payload["signature"] = compute_signature(payload, secret)
    return payload


def parse_pass_payload(raw: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Строка со сканера или уже разобранный объект -> dict"""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("QR-код не содержит JSON") from exc
    if not isinstance(raw, dict):
        raise ValueError("QR-код должен содержать JSON-объект")
    return raw


def check_pass_payload(
    payload: Any,
    now: Optional[datetime] = None,
    secret: Optional[str] = None,
) -> Optional[str]:
    """
    Проверка пропуска без побочных эффектов.
    Возвращает None, если пропуск действителен, иначе причину отказа.
    now без часового пояса считается UTC.
    """
    if not isinstance(payload, dict):
        return "Некорректный формат пропуска"

    signature = payload.get("signature")
    if not isinstance(signature, str) or not signature:
        return "Пропуск не подписан"

    if not hmac.compare_digest(signature, compute_signature(payload, secret)):
        return "Подпись пропуска не совпадает"

    try:
        valid_until = parse_timestamp(payload["valid_until"])
    except (KeyError, TypeError, AttributeError, ValueError):
        return "Некорректный срок действия пропуска"

    if now is None:
        now = get_now()
    if ensure_aware(now) > valid_until:
        return "Срок действия пропуска истек"

    return None


def verify_pass_payload(
    payload: Any,
    now: Optional[datetime] = None,
    secret: Optional[str] = None,
) -> bool:
    """True, только если подпись совпадает и срок действия не истек"""
    return check_pass_payload(payload, now=now, secret=secret) is None


class QrEncoder(Protocol):
    def encode(self, data: str) -> bytes:
        ...


class QrcodeEncoder:
    """PNG-рендер через qrcode + Pillow: коррекция M, черное на белом, фиксированная ширина"""

    def __init__(
        self,
        width: Optional[int] = None,
        border: int = 2,
        fill_color: str = "black",
        back_color: str = "white",
    ):
        self.width = width or settings.QR_IMAGE_WIDTH
        self.border = border
        self.fill_color = fill_color
        self.back_color = back_color

    def encode(self, data: str) -> bytes:
        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=qrcode.constants.ERROR_CORRECT_M,
                box_size=10,
                border=self.border,
            )
            qr.add_data(data.encode("utf-8"))
            qr.make(fit=True)
            image = qr.make_image(fill_color=self.fill_color, back_color=self.back_color).get_image()
            if image.size[0] != self.width:
                image = image.resize((self.width, self.width), Image.NEAREST)

            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()
        except (DataOverflowError, ValueError, OSError) as exc:
            logger.error(f"Ошибка генерации QR-кода: {exc}")
            raise QrGenerationError(str(exc)) from exc


def to_data_url(png_bytes: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


def get_qr_encoder() -> QrEncoder:
    return QrcodeEncoder(width=settings.QR_IMAGE_WIDTH)
