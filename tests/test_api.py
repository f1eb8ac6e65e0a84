"""HTTP contract of the notify endpoint."""

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from avahanaa.services.notify.api import create_app, normalize_request
from avahanaa.services.notify.errors import ErrorKind, NotifyError
from avahanaa.services.notify.schemas import NotifyRequest

BODY = {"codeId": "qr1", "title": "Vehicle alert", "body": "Lights are on"}


@pytest.fixture
def client(make_service):
    return TestClient(create_app(make_service()))


def test_notify_success(client, seed):
    seed(vehicle_id="car-7")
    resp = client.post("/notify", json=BODY)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "ownerId": "owner-1", "vehicleId": "car-7"}


def test_callable_envelope_with_legacy_field_names(client, seed, gateway):
    seed(code_owner_id=None, token=None)
    payload = {
        "data": {
            "qrId": "qr1",
            "userId": "owner-1",
            "fcmToken": "legacy-token",
            "title": "Alert",
            "body": "Hello",
        }
    }
    resp = client.post("/notify", json=payload)
    assert resp.status_code == 200
    assert resp.json()["ownerId"] == "owner-1"
    assert resp.json()["vehicleId"] is None
    assert gateway.requests[0]["message"]["token"] == "legacy-token"


def test_missing_fields_are_400(client):
    resp = client.post("/notify", json={"codeId": "qr1"})
    assert resp.status_code == 400
    assert resp.json() == {"error": {"kind": "invalid-argument", "message": "Missing required fields: title, body"}}


def test_invalid_json_is_400(client):
    resp = client.post("/notify", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid-argument"


def test_unknown_code_is_404(client):
    resp = client.post("/notify", json=BODY)
    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not-found"


def test_stale_token_is_412(client, seed, gateway):
    seed()
    gateway.reject(404, "NOT_FOUND", "UNREGISTERED")
    resp = client.post("/notify", json=BODY)
    assert resp.status_code == 412
    assert resp.json()["error"]["kind"] == "failed-precondition"


def test_rate_limited_is_429_with_retry_after(client, seed):
    seed()
    headers = {"x-forwarded-for": "203.0.113.20", "user-agent": "pytest-browser"}
    for _ in range(3):
        assert client.post("/notify", json=BODY, headers=headers).status_code == 200
    resp = client.post("/notify", json=BODY, headers=headers)
    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["kind"] == "resource-exhausted"
    assert error["scope"] == "origin"
    assert error["retryAfterSeconds"] >= 5
    assert resp.headers["retry-after"] == str(error["retryAfterSeconds"])
    # A different origin still gets through.
    other = {"x-forwarded-for": "203.0.113.21", "user-agent": "pytest-browser"}
    assert client.post("/notify", json=BODY, headers=other).status_code == 200


def test_gateway_outage_is_500(client, seed, gateway):
    seed()
    gateway.reject(503, "UNAVAILABLE")
    resp = client.post("/notify", json=BODY)
    assert resp.status_code == 500
    assert resp.json()["error"]["kind"] == "internal"


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"ok": True}
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "notify_requests_total" in resp.text


def test_http_metrics_count_by_route(client):
    labels = {"service": "notify", "route": "/health", "method": "GET", "status_code": "200"}
    before = REGISTRY.get_sample_value("http_requests_total", labels) or 0.0
    client.get("/health")
    client.get("/health")
    assert REGISTRY.get_sample_value("http_requests_total", labels) == before + 2


def test_normalize_drops_blank_and_non_string_metadata():
    normalized = normalize_request(
        {**BODY, "metadata": {"reason": " lights ", "empty": "  ", "count": 3, "none": None}}
    )
    assert isinstance(normalized, NotifyRequest)
    assert normalized.metadata == {"reason": "lights"}


def test_normalize_rejects_malformed_types():
    normalized = normalize_request({**BODY, "title": 42})
    assert isinstance(normalized, NotifyError)
    assert normalized.kind is ErrorKind.INVALID_ARGUMENT
    assert normalized.message.startswith("Malformed fields:")


def test_normalize_non_object_payload_is_empty_request():
    normalized = normalize_request(["not", "an", "object"])
    assert isinstance(normalized, NotifyRequest)
    assert normalized.missing_fields() == ["codeId", "title", "body"]
