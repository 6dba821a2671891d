from repairdesk.api import deps
from repairdesk.models.enums import UserRole
from repairdesk.models.repair import Repair
from repairdesk.services import push_tokens
from repairdesk.services.identity_service import IdentityService


APNS_TOKEN = "0123456789ABCDEF" * 4


def _add_repair(db, business_id: str, mobile: str | None) -> None:
    db.add(Repair(business_id=business_id, customer_mobile=mobile, device="Pixel 7"))
    db.commit()


def test_broadcast_requires_authentication(client, fcm_sender):
    response = client.post("/notifications/broadcast", json={"businessId": "B1", "title": "T", "message": "M"})

    assert response.status_code == 401
    assert response.json()["detail"] == {"status": "unauthenticated", "message": "Request not authenticated"}
    assert fcm_sender.calls == []


def test_broadcast_rejects_invalid_token(client):
    response = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers={"Authorization": "Bearer forged"},
    )

    assert response.status_code == 401


def test_broadcast_requires_business_title_and_message(client, auth_headers, monkeypatch):
    def _no_store_access(*args, **kwargs):
        raise AssertionError("store must not be queried")

    monkeypatch.setattr(push_tokens.repair_repo, "list_customer_mobiles", _no_store_access)

    response = client.post("/notifications/broadcast", json={"businessId": "B1", "title": ""}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"]["status"] == "invalid-argument"
    assert response.json()["detail"]["message"] == "businessId, title, and message are required"


def test_broadcast_without_repairs_reports_no_recipients(client, auth_headers, fcm_sender, apns_provider):
    response = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "No customers found in repairs"
    assert (body["totalTokens"], body["totalSuccess"], body["totalFailure"]) == (0, 0, 0)
    assert fcm_sender.calls == []
    assert apns_provider.sessions == []


def test_broadcast_with_customers_but_no_tokens(client, db, add_user, auth_headers, fcm_sender):
    _add_repair(db, "B1", "+911111")
    add_user("+911111", fcm_tokens=[])

    response = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "No customers found with FCM or APNs tokens"
    assert response.json()["totalTokens"] == 0
    assert fcm_sender.calls == []


def test_broadcast_fans_out_to_customer_devices(client, db, add_user, auth_headers, fcm_sender, apns_provider):
    _add_repair(db, "B1", "+911111")
    _add_repair(db, "B1", "+922222")
    _add_repair(db, "B1", None)
    add_user("+911111", fcm_tokens=["fcm-a", APNS_TOKEN])
    add_user("+922222", fcm_token="fcm-b")
    add_user("+922222", fcm_tokens=["staff-device"], role=UserRole.STAFF)

    response = client.post(
        "/notifications/broadcast",
        json={
            "businessId": "B1",
            "title": "Holiday hours",
            "message": "Closed Monday",
            "imageUrl": "https://cdn.example.com/b.png",
            "data": {"screen": "offers"},
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Notification sent to 3 devices (includes APNs)"
    assert body["totalTokens"] == 3
    assert body["totalSuccess"] == 3
    assert body["totalFailure"] == 0
    assert [(r["batch"], r["type"]) for r in body["results"]] == [(1, "FCM"), (1, "APNs")]
    assert body["results"][0]["successCount"] == 2
    assert fcm_sender.calls == [["fcm-a", "fcm-b"]]
    assert apns_provider.sessions[0].close_calls == 1


def test_broadcast_reports_failed_batches_without_failing(client, db, add_user, auth_headers, fcm_sender):
    _add_repair(db, "B1", "+911111")
    add_user("+911111", fcm_tokens=["fcm-a"])
    fcm_sender.fail_on_calls = {1}

    response = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Notification sent to 0 devices"
    assert body["results"] == [{"batch": 1, "type": "FCM", "error": "FCM unavailable"}]


def test_broadcast_store_failure_is_internal_error(client, auth_headers, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(push_tokens.repair_repo, "list_customer_mobiles", _broken)

    response = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 500
    assert response.json()["detail"] == {"status": "internal", "message": "database is locked"}


def test_status_update_without_auth_returns_structured_error(client):
    response = client.post("/notifications/status-update", json={"mobile": "+911111", "title": "T", "message": "M"})

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Request not authenticated"}


def test_status_update_missing_fields_does_not_touch_store(client, auth_headers, monkeypatch):
    def _no_store_access(*args, **kwargs):
        raise AssertionError("store must not be queried")

    monkeypatch.setattr(push_tokens.user_repo, "list_by_mobile", _no_store_access)

    response = client.post("/notifications/status-update", json={"title": "T"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Missing required fields"}


def test_status_update_mixed_channels(client, add_user, auth_headers, fcm_sender, apns_provider):
    add_user("+911111", fcm_tokens=["fcm-1", "fcm-2"])
    add_user("+911111", fcm_tokens=["fcm-3", APNS_TOKEN, "fcm-1"])

    response = client.post(
        "/notifications/status-update",
        json={"mobile": "+911111", "title": "Repair ready", "message": "Pick it up"},
        headers=auth_headers,
    )

    body = response.json()
    assert body["success"] is True
    assert body["totalTokens"] == 4
    assert body["totalSuccess"] == 4
    assert [(r["batch"], r["type"]) for r in body["results"]] == [(1, "FCM"), (1, "APNs")]
    assert fcm_sender.calls == [["fcm-1", "fcm-2", "fcm-3"]]
    assert apns_provider.sessions[0].batches == [[APNS_TOKEN]]


def test_status_update_without_devices_is_success_with_zero_counts(client, auth_headers, fcm_sender):
    response = client.post(
        "/notifications/status-update",
        json={"mobile": "+900000", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    body = response.json()
    assert body["success"] is True
    assert (body["totalTokens"], body["totalSuccess"], body["totalFailure"]) == (0, 0, 0)
    assert fcm_sender.calls == []


def test_status_update_never_raises(client, auth_headers, monkeypatch):
    def _broken(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(push_tokens.user_repo, "list_by_mobile", _broken)

    response = client.post(
        "/notifications/status-update",
        json={"mobile": "+911111", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "store unavailable"}


def test_metrics_include_push_counters(client, add_user, auth_headers):
    add_user("+911111", fcm_tokens=["fcm-1"])
    client.post(
        "/notifications/status-update",
        json={"mobile": "+911111", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "push_batches_total" in response.text
    assert 'push_tokens_total{channel="FCM",outcome="success"}' in response.text


def test_verification_failure_treats_caller_as_anonymous(client, identity, auth_headers, fcm_sender):
    identity.verify_error = RuntimeError("certificate endpoint unreachable")

    status_update = client.post(
        "/notifications/status-update",
        json={"mobile": "+911111", "title": "T", "message": "M"},
        headers=auth_headers,
    )
    broadcast = client.post(
        "/notifications/broadcast",
        json={"businessId": "B1", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert status_update.status_code == 200
    assert status_update.json() == {"success": False, "error": "Request not authenticated"}
    assert broadcast.status_code == 401
    assert broadcast.json()["detail"]["status"] == "unauthenticated"
    assert fcm_sender.calls == []


def test_unconfigured_firebase_treats_caller_as_anonymous(client, auth_headers):
    client.app.dependency_overrides[deps.get_identity_service] = IdentityService

    response = client.post(
        "/notifications/status-update",
        json={"mobile": "+911111", "title": "T", "message": "M"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Request not authenticated"}
