import re
from datetime import timedelta

import pytest

from app.models.pre_approval import PreApproval
from app.services.auth import get_now, parse_timestamp
from app.services.pre_approvals import expire_overdue, update_delivery_status

from conftest import auth_headers, pre_approval_body


def create_entry(client, user, **overrides) -> dict:
    response = client.post("/api/v1/pre-approvals", json=pre_approval_body(**overrides), headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_create_jane_roe(client, employee):
    response = client.post(
        "/api/v1/pre-approvals",
        json=pre_approval_body(scheduled_date="2025-03-01"),
        headers=auth_headers(employee),
    )

    assert response.status_code == 201
    data = response.json()
    assert re.fullmatch(r"QR-PRE-\d{6}", data["qr_code"])
    assert data["visitor_name"] == "Jane Roe"
    assert data["purpose"] == "Business Meeting"
    assert data["scheduled_date"] == "2025-03-01"
    assert data["start_time"] == "10:00"
    assert data["end_time"] == "11:00"
    assert data["valid_until"].startswith("2025-03-01T23:59:59.999")
    assert data["host_employee_id"] == employee.id
    assert data["host_employee_name"] == "John Smith"


def test_create_initial_state(client, employee):
    data = create_entry(client, employee)

    assert data["status"] == "active"
    assert data["qr_sent"] is False
    assert data["qr_sent_status"] == "not-sent"
    assert data["qr_sent_at"] is None
    assert data["qr_message_id"] is None


def test_create_with_other_purpose(client, employee):
    data = create_entry(client, employee, purpose="Other", purpose_other="Site audit")
    assert data["purpose"] == "Site audit"


@pytest.mark.parametrize(
    "overrides",
    [
        {"purpose": "Party"},
        {"purpose": "Other"},
        {"end_time": "09:00"},
        {"end_time": "10:00"},
        {"visitor_email": "not-an-email"},
        {"visitor_name": "   "},
    ],
)
def test_create_validation(client, employee, overrides):
    response = client.post(
        "/api/v1/pre-approvals",
        json=pre_approval_body(**overrides),
        headers=auth_headers(employee),
    )
    assert response.status_code == 422


def test_guard_cannot_pre_approve(client, guard):
    response = client.post("/api/v1/pre-approvals", json=pre_approval_body(), headers=auth_headers(guard))
    assert response.status_code == 403


def test_list_is_scoped_to_host(client, admin, employee, other_employee):
    create_entry(client, employee, visitor_name="First Guest")
    create_entry(client, employee, visitor_name="Second Guest")
    create_entry(client, other_employee, visitor_name="Finance Guest")

    own = client.get("/api/v1/pre-approvals", headers=auth_headers(employee)).json()
    assert [item["visitor_name"] for item in own["pre_approvals"]] == ["Second Guest", "First Guest"]
    assert own["summary"] == {"total": 2, "sent": 0, "active": 2}

    everything = client.get("/api/v1/pre-approvals", headers=auth_headers(admin)).json()
    assert everything["summary"]["total"] == 3


def test_other_host_cannot_read_entry(client, admin, employee, other_employee):
    entry = create_entry(client, employee)

    assert client.get(f"/api/v1/pre-approvals/{entry['id']}", headers=auth_headers(other_employee)).status_code == 404
    assert client.get(f"/api/v1/pre-approvals/{entry['id']}", headers=auth_headers(admin)).status_code == 200


def test_past_visit_expires_on_list(client, employee):
    yesterday = (get_now().date() - timedelta(days=1)).isoformat()
    past = create_entry(client, employee, scheduled_date=yesterday)
    upcoming = create_entry(client, employee)

    data = client.get("/api/v1/pre-approvals", headers=auth_headers(employee)).json()
    statuses = {item["id"]: item["status"] for item in data["pre_approvals"]}
    assert statuses == {past["id"]: "expired", upcoming["id"]: "active"}

    active_only = client.get("/api/v1/pre-approvals?status=active", headers=auth_headers(employee)).json()
    assert [item["id"] for item in active_only["pre_approvals"]] == [upcoming["id"]]


def test_expire_overdue_only_touches_active(client, db_session, employee):
    entry = create_entry(client, employee)
    used = create_entry(client, employee)
    db_session.query(PreApproval).filter(PreApproval.id == used["id"]).update({"status": "used"})
    db_session.commit()

    later = parse_timestamp(entry["valid_until"]) + timedelta(seconds=1)
    assert expire_overdue(db_session, now=later) == 1
    assert db_session.get(PreApproval, entry["id"]).status == "expired"
    assert db_session.get(PreApproval, used["id"]).status == "used"


def test_update_delivery_status_transitions(client, db_session, employee):
    entry_id = create_entry(client, employee)["id"]
    sent_at = get_now()

    entry = update_delivery_status(db_session, entry_id, "sent", sent_at=sent_at, message_id="re_1")
    assert entry.qr_sent == 1
    assert entry.qr_sent_at == sent_at.isoformat()
    assert entry.qr_message_id == "re_1"

    entry = update_delivery_status(db_session, entry_id, "failed", error="bounced")
    assert entry.qr_sent == 0
    assert entry.qr_sent_at is None
    assert entry.qr_last_error == "bounced"

    entry = update_delivery_status(db_session, entry_id, "sending")
    assert entry.qr_sent_status == "sending"
    assert entry.qr_last_error is None


def test_update_delivery_status_rejects_unknown_status(client, db_session, employee):
    entry_id = create_entry(client, employee)["id"]
    with pytest.raises(ValueError):
        update_delivery_status(db_session, entry_id, "delivered")


def test_filter_by_delivery_status(client, db_session, employee):
    first = create_entry(client, employee)
    create_entry(client, employee)
    update_delivery_status(db_session, first["id"], "failed", error="bounced")

    data = client.get("/api/v1/pre-approvals?qr_sent_status=failed", headers=auth_headers(employee)).json()
    assert [item["id"] for item in data["pre_approvals"]] == [first["id"]]
    assert data["pre_approvals"][0]["qr_last_error"] == "bounced"
