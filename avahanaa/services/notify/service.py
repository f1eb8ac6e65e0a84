"""Notify orchestrator.

Sequences validation, owner resolution, rate limiting, push dispatch, stale
token cleanup and audit logging for one request, and maps every outcome to a
single success/failure contract. Each step returns its failure instead of
raising, so the pipeline short-circuits on the first classified error.
"""

from avahanaa.common import state_machine
from avahanaa.common.logging import code_id_ctx, logger, owner_id_ctx, safe_dumps
from avahanaa.common.metrics import notify_outcomes_total, notify_requests_total
from avahanaa.services.notify.audit import AuditLogger
from avahanaa.services.notify.errors import ErrorKind, NotifyError
from avahanaa.services.notify.identity import derive_identity
from avahanaa.services.notify.push import DeliveryFailure, PushDispatcher, build_data_payload
from avahanaa.services.notify.rate_limit import RateLimiter
from avahanaa.services.notify.resolver import OwnerResolver
from avahanaa.services.notify.schemas import ConnectionContext, NotifyRequest, NotifyResponse
from avahanaa.services.notify.tokens import TokenInvalidator

STALE_TOKEN_MESSAGE = "The owner's notification token is no longer valid. Ask the owner to refresh the app token."


class NotifyService:
    """Owns the notify pipeline state machine for one request at a time."""

    def __init__(
        self,
        resolver: OwnerResolver,
        rate_limiter: RateLimiter,
        dispatcher: PushDispatcher,
        invalidator: TokenInvalidator,
        audit: AuditLogger,
        source: str = "avahanaa-web",
        service_name: str = "notify",
    ) -> None:
        self.resolver = resolver
        self.rate_limiter = rate_limiter
        self.dispatcher = dispatcher
        self.invalidator = invalidator
        self.audit = audit
        self.source = source
        self.service_name = service_name

    def _advance(self, current: str, new: str) -> str:
        state_machine.validate_transition(current, new)
        logger.debug("notify state %s -> %s", current, new)
        return new

    def _fail(self, state: str, error: NotifyError) -> NotifyError:
        self._advance(state, state_machine.ERROR_CLASSIFYING)
        notify_outcomes_total.labels(service=self.service_name, outcome=error.kind.value).inc()
        if error.kind is not ErrorKind.INTERNAL:
            logger.info("notify rejected state=%s kind=%s message=%s", state, error.kind.value, error.message)
        return error

    def notify(self, request: NotifyRequest, context: ConnectionContext | None = None) -> NotifyResponse | NotifyError:
        """Run one notification attempt end to end."""

        notify_requests_total.labels(service=self.service_name).inc()
        code_token = code_id_ctx.set(request.code_id)
        owner_token = owner_id_ctx.set("")
        try:
            return self._run(request, context)
        finally:
            code_id_ctx.reset(code_token)
            owner_id_ctx.reset(owner_token)

    def _run(self, request: NotifyRequest, context: ConnectionContext | None) -> NotifyResponse | NotifyError:
        state = state_machine.VALIDATING
        missing = request.missing_fields()
        if missing:
            logger.warning(
                "notify called with missing fields missing=%s payload=%s",
                missing,
                safe_dumps(request.model_dump()),
            )
            return self._fail(state, NotifyError.invalid_argument(f"Missing required fields: {', '.join(missing)}"))
        identity = derive_identity(context)

        state = self._advance(state, state_machine.RESOLVING)
        resolved = self.resolver.resolve(request)
        if isinstance(resolved, NotifyError):
            return self._fail(state, resolved)
        owner_id_ctx.set(resolved.owner_id)

        state = self._advance(state, state_machine.RATE_CHECKING)
        rejection = self.rate_limiter.check(request.code_id, identity)
        if rejection is not None:
            return self._fail(state, rejection)

        state = self._advance(state, state_machine.DISPATCHING)
        data = build_data_payload(
            request.code_id, resolved.owner_id, resolved.vehicle_id, resolved.metadata, self.source
        )
        outcome = self.dispatcher.send(resolved.destination_token, request.title, request.body, data)
        if isinstance(outcome, DeliveryFailure):
            if outcome.permanent:
                self.invalidator.invalidate(resolved.owner_id)
                return self._fail(state, NotifyError.failed_precondition(STALE_TOKEN_MESSAGE))
            logger.error(
                "push dispatch failed owner_id=%s status_code=%s error=%s",
                resolved.owner_id,
                outcome.status_code,
                outcome.message,
            )
            return self._fail(state, NotifyError.internal(f"Failed to deliver notification: {outcome.message}"))

        state = self._advance(state, state_machine.LOGGING)
        recorded = self.audit.record(request.code_id, resolved, request.body)
        if isinstance(recorded, NotifyError):
            return self._fail(state, recorded)

        self._advance(state, state_machine.DONE)
        notify_outcomes_total.labels(service=self.service_name, outcome="sent").inc()
        logger.info("notification sent owner_id=%s message_id=%s", resolved.owner_id, outcome)
        return NotifyResponse(owner_id=resolved.owner_id, vehicle_id=resolved.vehicle_id or None)

    def close(self) -> None:
        self.dispatcher.close()
