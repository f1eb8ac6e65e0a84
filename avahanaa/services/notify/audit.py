"""Audit trail of dispatched notifications."""

from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from avahanaa.common.logging import logger
from avahanaa.services.notify.errors import NotifyError
from avahanaa.services.notify.models import Notification
from avahanaa.services.notify.resolver import ResolvedOwner

DEFAULT_REASON = "other"
UNLOGGED_MESSAGE = "Notification was sent but could not be recorded."


class AuditLogger:
    """Appends one `notifications` row per push accepted by the gateway."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def record(self, code_id: str, resolved: ResolvedOwner, body: str) -> Notification | NotifyError:
        entry = Notification(
            code_id=code_id,
            owner_id=resolved.owner_id,
            vehicle_id=resolved.vehicle_id or None,
            reason=resolved.metadata.get("reason") or DEFAULT_REASON,
            message=resolved.metadata.get("message") or body,
            sent_at=datetime.now(timezone.utc),
            status="sent",
            read=False,
            read_at=None,
        )
        try:
            with self.session_factory() as db:
                db.add(entry)
                db.commit()
        except SQLAlchemyError:
            # The push already left; the caller still sees a failure.
            logger.exception("notification audit write failed code_id=%s owner_id=%s", code_id, resolved.owner_id)
            return NotifyError.internal(UNLOGGED_MESSAGE)
        return entry
