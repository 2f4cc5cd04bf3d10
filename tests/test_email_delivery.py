import base64
import json
from datetime import date

import httpx
import pytest

from app.models.pre_approval import PreApproval
from app.services.email_delivery import MockEmailSender, ResendEmailSender
from app.services.email_templates import QR_CONTENT_ID, render_pass_email
from app.services.pre_approvals import compute_valid_until

API_URL = "https://resend.test/emails"
PNG = b"\x89PNG\r\n\x1a\nqr"


def make_entry(**overrides) -> PreApproval:
    fields = dict(
        id="pa-1",
        visitor_name="Jane Roe",
        visitor_email="jane.roe@partner.com",
        visitor_phone="+1 555 0100",
        purpose="Business Meeting",
        scheduled_date="2025-03-01",
        start_time="10:00",
        end_time="11:00",
        host_employee_id="host-1",
        host_employee_name="John Smith",
        status="active",
        qr_code="QR-PRE-123456",
        valid_until=compute_valid_until(date(2025, 3, 1)).isoformat(),
        created_at="2025-02-20T09:00:00+03:00",
    )
    fields.update(overrides)
    return PreApproval(**fields)


@pytest.fixture
def message():
    return render_pass_email(make_entry(), "Tech Solutions Inc.", PNG)


def make_sender(handler) -> ResendEmailSender:
    return ResendEmailSender(
        api_key="re_test_key",
        api_url=API_URL,
        from_email="VMS Pro <passes@acme.com>",
        timeout=1,
        transport=httpx.MockTransport(handler),
    )


def test_render_pass_email(message):
    assert message.to == "jane.roe@partner.com"
    assert message.subject == "Your QR Pass for Visiting Tech Solutions Inc."
    assert 'src="cid:qrcode"' in message.html
    assert "10:00 - 11:00" in message.html
    assert "2025-03-01 23:59" in message.text
    assert "Present this QR code at the security gate" in message.text


def test_render_escapes_user_input():
    message = render_pass_email(make_entry(visitor_name="<script>alert(1)</script>"), "Acme & Co", PNG)

    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html
    assert "Acme &amp; Co" in message.html


def test_resend_request_and_success(message):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "re_123"})

    result = make_sender(handler).send(message)

    assert result.success is True
    assert result.message_id == "re_123"
    assert captured["url"] == API_URL
    assert captured["auth"] == "Bearer re_test_key"

    body = captured["body"]
    assert body["from"] == "VMS Pro <passes@acme.com>"
    assert body["to"] == ["jane.roe@partner.com"]
    assert body["subject"] == message.subject
    assert body["html"] == message.html
    attachment = body["attachments"][0]
    assert attachment["content_id"] == QR_CONTENT_ID
    assert attachment["filename"] == "visitor-qr-code.png"
    assert base64.b64decode(attachment["content"]) == PNG


def test_resend_error_message_is_reported(message):
    def handler(request):
        return httpx.Response(422, json={"name": "validation_error", "message": "Invalid `to` field"})

    result = make_sender(handler).send(message)

    assert result.success is False
    assert result.error == "Invalid `to` field"
    assert result.message_id is None


def test_resend_non_json_error(message):
    def handler(request):
        return httpx.Response(503, text="Service Unavailable")

    result = make_sender(handler).send(message)

    assert result.success is False
    assert result.error == "Email provider returned HTTP 503"


def test_resend_missing_message_id(message):
    def handler(request):
        return httpx.Response(200, json={})

    result = make_sender(handler).send(message)

    assert result.success is False
    assert result.error


def test_resend_timeout(message):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = make_sender(handler).send(message)

    assert result.success is False
    assert result.error == "Email provider did not respond in time"


def test_resend_unreachable(message):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = make_sender(handler).send(message)

    assert result.success is False
    assert result.error.startswith("Email provider unavailable")


def test_mock_sender(message):
    result = MockEmailSender().send(message)

    assert result.success is True
    assert result.message_id.startswith("mock-")
