import json
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.main import app
from app.models.pre_approval import PreApproval
from app.services import qr_issuance
from app.services.auth import get_now, parse_timestamp
from app.services.email_delivery import DeliveryResult, MockEmailSender, get_email_sender
from app.services.email_templates import QR_CONTENT_ID
from app.services.qr_pass import get_qr_encoder, serialize_payload, verify_pass_payload

from conftest import (
    FAKE_PNG,
    FailingEncoder,
    RecordingEncoder,
    RecordingSender,
    auth_headers,
    pre_approval_body,
)


@pytest.fixture
def encoder():
    encoder = RecordingEncoder()
    app.dependency_overrides[get_qr_encoder] = lambda: encoder
    return encoder


@pytest.fixture
def use_sender():
    def _use_sender(sender):
        app.dependency_overrides[get_email_sender] = lambda: sender
        return sender

    return _use_sender


@pytest.fixture
def entry(client, employee):
    response = client.post("/api/v1/pre-approvals", json=pre_approval_body(), headers=auth_headers(employee))
    assert response.status_code == 201
    return response.json()


def send_qr(client, user, entry_id):
    return client.post(f"/api/v1/pre-approvals/{entry_id}/send-qr", headers=auth_headers(user))


def get_entry(client, user, entry_id) -> dict:
    return client.get(f"/api/v1/pre-approvals/{entry_id}", headers=auth_headers(user)).json()


def test_mock_send_marks_entry_sent(client, employee, entry, encoder, use_sender):
    use_sender(MockEmailSender())
    triggered_at = get_now()

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["success"] is True
    assert data["message_id"].startswith("mock-")
    assert data["recipient"] == "jane.roe@partner.com"
    assert data["valid_until"] == entry["valid_until"]

    stored = data["pre_approval"]
    assert stored["qr_sent_status"] == "sent"
    assert stored["qr_sent"] is True
    assert stored["qr_message_id"] == data["message_id"]
    assert parse_timestamp(stored["qr_sent_at"]) >= triggered_at


def test_encoder_receives_canonical_payload(client, employee, entry, encoder, use_sender):
    use_sender(RecordingSender())

    assert send_qr(client, employee, entry["id"]).status_code == 200

    assert len(encoder.calls) == 1
    data = encoder.calls[0]
    payload = json.loads(data)
    assert serialize_payload(payload) == data
    assert payload["visitor_id"] == entry["id"]
    assert payload["name"] == "Jane Roe"
    assert verify_pass_payload(payload) is True


def test_email_carries_inline_qr(client, employee, entry, encoder, use_sender):
    sender = use_sender(RecordingSender())

    send_qr(client, employee, entry["id"])

    message = sender.messages[0]
    assert message.to == "jane.roe@partner.com"
    assert message.subject == "Your QR Pass for Visiting Tech Solutions Inc."
    assert f"cid:{QR_CONTENT_ID}" in message.html
    assert "Jane Roe" in message.html
    assert "John Smith" in message.text
    attachment = message.attachments[0]
    assert attachment.content == FAKE_PNG
    assert attachment.content_id == QR_CONTENT_ID
    assert attachment.filename == "visitor-qr-code.png"


def test_provider_error_marks_entry_failed_and_retry_succeeds(client, employee, entry, encoder, use_sender):
    use_sender(RecordingSender(DeliveryResult(success=False, error="Invalid API key")))

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 502
    assert response.json()["detail"] == "Invalid API key"
    failed = get_entry(client, employee, entry["id"])
    assert failed["qr_sent_status"] == "failed"
    assert failed["qr_sent"] is False
    assert failed["qr_sent_at"] is None
    assert failed["qr_last_error"] == "Invalid API key"

    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_retry")))
    retry = send_qr(client, employee, entry["id"])

    assert retry.status_code == 200
    sent = get_entry(client, employee, entry["id"])
    assert sent["qr_sent_status"] == "sent"
    assert sent["qr_message_id"] == "re_retry"
    assert sent["qr_last_error"] is None


def test_sender_exception_is_a_failed_dispatch(client, employee, entry, encoder, use_sender):
    class ExplodingSender:
        def send(self, message):
            raise RuntimeError("connection reset")

    use_sender(ExplodingSender())

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 502
    assert response.json()["detail"] == "connection reset"
    assert get_entry(client, employee, entry["id"])["qr_sent_status"] == "failed"


def test_resend_after_success_is_allowed(client, employee, entry, encoder, use_sender):
    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_first")))
    send_qr(client, employee, entry["id"])
    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_second")))

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 200
    assert response.json()["pre_approval"]["qr_message_id"] == "re_second"


def set_sending(db_session, entry_id, updated_at):
    db_session.query(PreApproval).filter(PreApproval.id == entry_id).update(
        {"qr_sent_status": "sending", "updated_at": updated_at.isoformat()}
    )
    db_session.commit()


def test_send_while_sending_is_conflict(client, db_session, employee, entry, encoder, use_sender):
    sender = use_sender(RecordingSender())
    set_sending(db_session, entry["id"], get_now())

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 409
    assert sender.messages == []
    assert encoder.calls == []
    assert get_entry(client, employee, entry["id"])["qr_sent_status"] == "sending"


def test_stale_sending_can_be_sent_again(client, db_session, employee, entry, encoder, use_sender):
    sender = use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_after_crash")))
    set_sending(db_session, entry["id"], get_now() - timedelta(seconds=settings.EMAIL_TIMEOUT_SECONDS + 60))

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 200, response.text
    assert len(sender.messages) == 1
    assert get_entry(client, employee, entry["id"])["qr_sent_status"] == "sent"


def test_lost_sent_write_leaves_entry_retryable(client, employee, entry, encoder, use_sender, monkeypatch):
    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_lost")))
    original_update = qr_issuance.update_delivery_status

    def update_failing_on_sent(db, entry_id, qr_sent_status, **kwargs):
        if qr_sent_status == "sent":
            raise OperationalError("UPDATE pre_approvals", {}, Exception("database is locked"))
        return original_update(db, entry_id, qr_sent_status, **kwargs)

    monkeypatch.setattr(qr_issuance, "update_delivery_status", update_failing_on_sent)

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 500
    stored = get_entry(client, employee, entry["id"])
    assert stored["qr_sent_status"] == "failed"
    assert "re_lost" in stored["qr_last_error"]

    monkeypatch.setattr(qr_issuance, "update_delivery_status", original_update)
    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_retry")))
    retry = send_qr(client, employee, entry["id"])

    assert retry.status_code == 200, retry.text
    assert get_entry(client, employee, entry["id"])["qr_message_id"] == "re_retry"


def test_lost_failed_write_does_not_block_retry(client, employee, entry, encoder, use_sender, monkeypatch):
    use_sender(RecordingSender(DeliveryResult(success=False, error="Invalid API key")))
    original_update = qr_issuance.update_delivery_status

    def update_failing_on_failed(db, entry_id, qr_sent_status, **kwargs):
        if qr_sent_status == "failed":
            raise OperationalError("UPDATE pre_approvals", {}, Exception("database is locked"))
        return original_update(db, entry_id, qr_sent_status, **kwargs)

    monkeypatch.setattr(qr_issuance, "update_delivery_status", update_failing_on_failed)

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 502
    assert response.json()["detail"] == "Invalid API key"
    assert get_entry(client, employee, entry["id"])["qr_sent_status"] == "sending"

    monkeypatch.setattr(qr_issuance, "update_delivery_status", original_update)
    monkeypatch.setattr(qr_issuance, "get_now", lambda: get_now() + timedelta(minutes=5))
    use_sender(RecordingSender(DeliveryResult(success=True, message_id="re_retry")))
    retry = send_qr(client, employee, entry["id"])

    assert retry.status_code == 200, retry.text


def test_generation_error_leaves_state_unchanged(client, employee, entry, use_sender):
    sender = use_sender(RecordingSender())
    app.dependency_overrides[get_qr_encoder] = lambda: FailingEncoder()

    response = send_qr(client, employee, entry["id"])

    assert response.status_code == 500
    assert "data too long" in response.json()["detail"]
    assert sender.messages == []
    stored = get_entry(client, employee, entry["id"])
    assert stored["qr_sent_status"] == "not-sent"
    assert stored["qr_sent_at"] is None


def test_used_entry_cannot_be_sent(client, db_session, employee, entry, encoder, use_sender):
    use_sender(RecordingSender())
    db_session.query(PreApproval).filter(PreApproval.id == entry["id"]).update({"status": "used"})
    db_session.commit()

    assert send_qr(client, employee, entry["id"]).status_code == 409


def test_other_host_cannot_send(client, other_employee, entry, encoder, use_sender):
    use_sender(RecordingSender())
    assert send_qr(client, other_employee, entry["id"]).status_code == 404


def test_company_name_from_settings(client, admin, employee, entry, encoder, use_sender):
    sender = use_sender(RecordingSender())
    response = client.put(
        "/api/v1/settings",
        json={"notifications": {}, "organization": {"company_name": "Acme Corp"}},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200

    send_qr(client, employee, entry["id"])

    assert sender.messages[0].subject == "Your QR Pass for Visiting Acme Corp"


def test_qr_preview(client, employee, entry):
    response = client.get(f"/api/v1/pre-approvals/{entry['id']}/qr-preview", headers=auth_headers(employee))

    assert response.status_code == 200
    data = response.json()
    assert data["qr_image"].startswith("data:image/png;base64,")
    assert data["payload"]["visitor_id"] == entry["id"]
    assert verify_pass_payload(data["payload"]) is True
