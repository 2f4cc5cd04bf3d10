import base64
import logging
import time
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel

from app.config import settings
from app.services.email_templates import EmailMessage

logger = logging.getLogger(__name__)


class DeliveryResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> DeliveryResult:
        ...


class ResendEmailSender:
    """Отправка через HTTP API Resend"""

    def __init__(
        self,
        api_key: str,
        api_url: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url or settings.RESEND_API_URL
        self.from_email = from_email or settings.EMAIL_FROM
        self.timeout = timeout if timeout is not None else settings.EMAIL_TIMEOUT_SECONDS
        self.transport = transport

    def build_request_body(self, message: EmailMessage) -> dict:
        return {
            "from": self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
            "attachments": [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                    "content_type": attachment.content_type,
                    "content_id": attachment.content_id,
                }
                for attachment in message.attachments
            ],
        }

    def send(self, message: EmailMessage) -> DeliveryResult:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, json=self.build_request_body(message), headers=headers)
        except httpx.TimeoutException:
            logger.warning(f"Таймаут отправки письма: to={message.to}")
            return DeliveryResult(success=False, error="Email provider did not respond in time")
        except httpx.HTTPError as exc:
            logger.warning(f"Почтовый провайдер недоступен: to={message.to}, error={exc}")
            return DeliveryResult(success=False, error=f"Email provider unavailable: {exc}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            error = body.get("message") or f"Email provider returned HTTP {response.status_code}"
            logger.error(f"Resend отклонил письмо: to={message.to}, status={response.status_code}, body={response.text[:500]}")
            return DeliveryResult(success=False, error=error)

        message_id = body.get("id")
        if not message_id:
            return DeliveryResult(success=False, error="Email provider did not return a message id")

        logger.info(f"Письмо отправлено через Resend: to={message.to}, id={message_id}")
        return DeliveryResult(success=True, message_id=message_id)


class MockEmailSender:
    """Без RESEND_API_KEY: письмо не отправляется, отправка считается успешной"""

    def send(self, message: EmailMessage) -> DeliveryResult:
        message_id = f"mock-{int(time.time() * 1000)}"
        logger.warning(
            f"RESEND_API_KEY не задан, письмо не отправлено (mock): to={message.to}, "
            f"subject='{message.subject}', id={message_id}"
        )
        return DeliveryResult(success=True, message_id=message_id)


def get_email_sender() -> EmailSender:
    if settings.RESEND_API_KEY:
        return ResendEmailSender(api_key=settings.RESEND_API_KEY)
    return MockEmailSender()
