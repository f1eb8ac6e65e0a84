"""Pytest configuration and fixtures for notify service tests."""

import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("OTEL_ENABLED", "false")

import httpx
import pytest

from avahanaa.common.db import Base, create_session_factory
from avahanaa.services.notify.audit import AuditLogger
from avahanaa.services.notify.models import Owner, QrCode, Vehicle
from avahanaa.services.notify.push import PushDispatcher
from avahanaa.services.notify.rate_limit import RateLimiter, SqlCounterStore
from avahanaa.services.notify.resolver import OwnerResolver
from avahanaa.services.notify.service import NotifyService
from avahanaa.services.notify.tokens import TokenInvalidator

GATEWAY_URL = "https://push.test/v1/projects/avahanaa/messages:send"


class FakeClock:
    """Manually advanced wall clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway:
    """Records submitted messages and answers with a configurable response."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.headers: list[httpx.Headers] = []
        self.status_code = 200
        self.payload: dict | None = {"name": "projects/avahanaa/messages/0:1"}
        self.raise_error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        if self.raise_error is not None:
            raise self.raise_error
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def reject(self, status_code: int, status: str, error_code: str | None = None) -> None:
        details = []
        if error_code:
            details.append({"@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError", "errorCode": error_code})
        self.status_code = status_code
        self.payload = {"error": {"code": status_code, "message": f"{status} from gateway", "status": status, "details": details}}


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with all tables created."""

    factory = create_session_factory("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=factory.kw["bind"])
    return factory


@pytest.fixture
def broken_session_factory():
    """Session factory whose database has no tables, so every query fails."""

    return create_session_factory("sqlite+pysqlite:///:memory:")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def seed(session_factory):
    """Insert a linked code/owner pair; keyword overrides tweak either record."""

    def _seed(
        code_id: str = "qr1",
        owner_id: str | None = "owner-1",
        token: str | None = "owner-token",
        notifications_enabled: bool | None = True,
        code_owner_id: str | None = "__same__",
        **code_fields,
    ) -> None:
        with session_factory() as db:
            if owner_id is not None:
                db.add(
                    Owner(
                        owner_id=owner_id,
                        destination_token=token,
                        notifications_enabled=notifications_enabled,
                    )
                )
            db.add(
                QrCode(
                    code_id=code_id,
                    owner_id=owner_id if code_owner_id == "__same__" else code_owner_id,
                    **code_fields,
                )
            )
            db.commit()

    return _seed


@pytest.fixture
def add_vehicle(session_factory):
    def _add(owner_id: str, vehicle_id: str, **fields) -> None:
        with session_factory() as db:
            db.add(Vehicle(owner_id=owner_id, vehicle_id=vehicle_id, **fields))
            db.commit()

    return _add


@pytest.fixture
def make_service(session_factory, clock, gateway):
    """Build a fully wired orchestrator; components may be overridden."""

    def _make(**overrides) -> NotifyService:
        components = {
            "resolver": OwnerResolver(session_factory),
            "rate_limiter": RateLimiter(SqlCounterStore(session_factory), clock=clock),
            "dispatcher": PushDispatcher(gateway.client(), GATEWAY_URL, gateway_token="test-token"),
            "invalidator": TokenInvalidator(session_factory),
            "audit": AuditLogger(session_factory),
        }
        components.update(overrides)
        return NotifyService(**components)

    return _make
