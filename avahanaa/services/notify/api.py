"""HTTP surface of the notify service.

Normalizes whatever the caller sent (bare object or callable-style `data`
envelope) into one `NotifyRequest`, runs the orchestrator, and maps its
failure kinds to HTTP status codes.
"""

from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from avahanaa.common.config import settings
from avahanaa.common.logging import logger, trace_id_ctx
from avahanaa.common.metrics import install_http_metrics, metrics_response
from avahanaa.common.tracing import instrument_app
from avahanaa.services.notify.errors import ErrorKind, NotifyError
from avahanaa.services.notify.schemas import ConnectionContext, NotifyRequest
from avahanaa.services.notify.service import NotifyService

STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FAILED_PRECONDITION: 412,
    ErrorKind.RESOURCE_EXHAUSTED: 429,
    ErrorKind.INTERNAL: 500,
}


def normalize_request(payload: Any) -> NotifyRequest | NotifyError:
    """Collapse the supported request shapes into one typed request."""

    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    if not isinstance(payload, dict):
        payload = {}
    try:
        return NotifyRequest.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        return NotifyError.invalid_argument(f"Malformed fields: {', '.join(fields)}")


def connection_context(request: Request) -> ConnectionContext:
    return ConnectionContext(
        forwarded_for=request.headers.get("x-forwarded-for"),
        peer_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def error_response(error: NotifyError) -> JSONResponse:
    headers = {}
    if error.kind is ErrorKind.RESOURCE_EXHAUSTED and error.retry_after_seconds is not None:
        headers["Retry-After"] = str(error.retry_after_seconds)
    return JSONResponse(status_code=STATUS_BY_KIND[error.kind], content={"error": error.to_dict()}, headers=headers)


def create_app(service: NotifyService) -> FastAPI:
    """Build the FastAPI app around an already-wired orchestrator."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Release the push gateway client with the application lifecycle."""

        yield
        service.close()

    app = FastAPI(title="Avahanaa Notify Service", lifespan=lifespan)
    instrument_app(app)
    install_http_metrics(app, settings.service_name)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s error=%s", request.url.path, exc)
        return error_response(NotifyError.internal())

    @app.post("/notify")
    async def notify(request: Request):
        """Deliver one owner notification for a scanned code."""

        trace_id_ctx.set(request.headers.get("x-trace-id") or str(uuid4()))
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        normalized = normalize_request(payload)
        if isinstance(normalized, NotifyError):
            logger.warning("notify request rejected at boundary: %s", normalized.message)
            return error_response(normalized)
        result = await run_in_threadpool(service.notify, normalized, connection_context(request))
        if isinstance(result, NotifyError):
            return error_response(result)
        return JSONResponse(content=result.model_dump(by_alias=True))

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app
