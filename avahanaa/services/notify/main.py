"""Notify service process entrypoint.

Builds the process-lifetime handles (database sessions, counter store, push
gateway client) once and injects them into the orchestrator.
"""

import httpx
import redis

from avahanaa.common.config import Settings, settings
from avahanaa.common.db import create_session_factory
from avahanaa.common.logging import configure_logging
from avahanaa.common.startup import log_startup_config
from avahanaa.common.tracing import setup_tracing
from avahanaa.services.notify.api import create_app
from avahanaa.services.notify.audit import AuditLogger
from avahanaa.services.notify.push import PushDispatcher
from avahanaa.services.notify.rate_limit import RateLimiter, RedisCounterStore, SqlCounterStore
from avahanaa.services.notify.resolver import OwnerResolver
from avahanaa.services.notify.service import NotifyService
from avahanaa.services.notify.tokens import TokenInvalidator


def build_service(config: Settings) -> NotifyService:
    """Wire the orchestrator from configuration."""

    session_factory = create_session_factory(config.database_url)
    if config.rate_limit_backend == "redis":
        store = RedisCounterStore(redis.Redis.from_url(config.redis_url, decode_responses=True))
    elif config.rate_limit_backend == "sql":
        store = SqlCounterStore(
            session_factory,
            max_attempts=config.rate_limit_max_transaction_attempts,
            service_name=config.service_name,
        )
    else:
        raise ValueError(f"unknown RATE_LIMIT_BACKEND: {config.rate_limit_backend}")
    return NotifyService(
        resolver=OwnerResolver(session_factory),
        rate_limiter=RateLimiter(
            store,
            window_seconds=config.rate_limit_window_seconds,
            origin_max=config.rate_limit_origin_max,
            code_max=config.rate_limit_code_max,
            service_name=config.service_name,
        ),
        dispatcher=PushDispatcher(
            httpx.Client(timeout=config.push_timeout_seconds),
            config.push_gateway_url,
            gateway_token=config.push_gateway_token,
            channel_id=config.push_android_channel,
            click_action=config.push_click_action,
            service_name=config.service_name,
        ),
        invalidator=TokenInvalidator(session_factory, service_name=config.service_name),
        audit=AuditLogger(session_factory),
        source=config.push_source,
        service_name=config.service_name,
    )


configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "DATABASE_URL",
        "REDIS_URL",
        "RATE_LIMIT_BACKEND",
        "RATE_LIMIT_WINDOW_SECONDS",
        "RATE_LIMIT_ORIGIN_MAX",
        "RATE_LIMIT_CODE_MAX",
        "PUSH_GATEWAY_URL",
        "PUSH_GATEWAY_TOKEN",
    ],
)
service = build_service(settings)
app = create_app(service)
