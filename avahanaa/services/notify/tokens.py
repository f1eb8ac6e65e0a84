"""Stale destination token cleanup after permanent delivery failures."""

from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from avahanaa.common.logging import logger
from avahanaa.common.metrics import stale_tokens_cleared_total
from avahanaa.services.notify.models import Owner


class TokenInvalidator:
    """Clears the owner's stored token; cleanup failures are logged only."""

    def __init__(self, session_factory, service_name: str = "notify") -> None:
        self.session_factory = session_factory
        self.service_name = service_name

    def invalidate(self, owner_id: str) -> bool:
        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(Owner)
                    .where(Owner.owner_id == owner_id)
                    .values(destination_token=None, updated_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception("stale token cleanup failed owner_id=%s", owner_id)
            return False
        if result.rowcount:
            stale_tokens_cleared_total.labels(service=self.service_name).inc()
        logger.info("stale destination token cleared owner_id=%s", owner_id)
        return True
