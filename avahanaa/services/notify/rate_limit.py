"""Dual-scope sliding-window abuse limiter.

Every attempt is checked against a per-origin quota (code + requester
fingerprint) and a per-code quota inside one atomic transaction: either both
counters advance or neither does.
"""

import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

import redis
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from avahanaa.common.logging import logger
from avahanaa.common.metrics import rate_limit_conflicts_total, rate_limit_rejections_total
from avahanaa.services.notify.errors import NotifyError, RateLimitScope
from avahanaa.services.notify.identity import RequesterIdentity
from avahanaa.services.notify.models import RateLimitCounter

MIN_RETRY_AFTER_SECONDS = 5


@dataclass(frozen=True)
class QuotaRule:
    scope: RateLimitScope
    window_ms: int
    max_attempts: int


@dataclass(frozen=True)
class WindowDecision:
    """Result of checking one counter snapshot against its rule."""

    count: int
    window_start_ms: int
    retry_after_seconds: int | None = None

    @property
    def exhausted(self) -> bool:
        return self.retry_after_seconds is not None


def evaluate_window(
    rule: QuotaRule, now_ms: int, count: int | None, window_start_ms: int | None
) -> WindowDecision:
    """Apply one sliding-window step to a counter snapshot.

    A missing counter behaves as one whose window expired long ago.
    """

    elapsed = now_ms - window_start_ms if window_start_ms is not None else now_ms
    expired = window_start_ms is None or elapsed > rule.window_ms
    next_count = 1 if expired else (count or 0) + 1
    if next_count > rule.max_attempts:
        retry_after = max(MIN_RETRY_AFTER_SECONDS, math.ceil((rule.window_ms - elapsed) / 1000))
        return WindowDecision(count=count or 0, window_start_ms=window_start_ms or now_ms, retry_after_seconds=retry_after)
    return WindowDecision(count=next_count, window_start_ms=now_ms if expired else window_start_ms)


def decide(
    checks: list[tuple[QuotaRule, str]], snapshots: list[tuple[int | None, int | None]], now_ms: int
) -> tuple[list[WindowDecision], NotifyError | None]:
    """Evaluate every scope; the first exhausted one rejects the attempt."""

    decisions = [
        evaluate_window(rule, now_ms, count, window_start)
        for (rule, _), (count, window_start) in zip(checks, snapshots)
    ]
    for (rule, _), decision in zip(checks, decisions):
        if decision.exhausted:
            return decisions, NotifyError.resource_exhausted(decision.retry_after_seconds, rule.scope)
    return decisions, None


class CounterStore(Protocol):
    def apply(self, checks: list[tuple[QuotaRule, str]], now_ms: int) -> NotifyError | None:
        """Atomically check and advance all counters; return the rejection if any."""


class RateLimitTransactionError(RuntimeError):
    """Counter transaction kept conflicting with concurrent writers."""


class _CounterConflict(Exception):
    pass


def _as_datetime(now_ms: int) -> datetime:
    return datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)


class SqlCounterStore:
    """Counters in `rate_limit_counters`, guarded by row locks and a version column.

    A concurrent writer is detected either by a version mismatch on UPDATE or a
    primary-key collision on INSERT; the whole read-check-write unit then rolls
    back and runs again.
    """

    backend = "sql"

    def __init__(self, session_factory, max_attempts: int = 5, service_name: str = "notify") -> None:
        self.session_factory = session_factory
        self.max_attempts = max_attempts
        self.service_name = service_name

    def _read_counter(self, db, scope: str, identity: str) -> RateLimitCounter | None:
        return db.execute(
            select(RateLimitCounter)
            .where(RateLimitCounter.scope == scope, RateLimitCounter.identity == identity)
            .with_for_update()
        ).scalar_one_or_none()

    def _write_counter(
        self, db, row: RateLimitCounter | None, scope: str, identity: str, decision: WindowDecision, now_ms: int
    ) -> None:
        if row is None:
            db.add(
                RateLimitCounter(
                    scope=scope,
                    identity=identity,
                    count=decision.count,
                    window_start_ms=decision.window_start_ms,
                    updated_at=_as_datetime(now_ms),
                    version=1,
                )
            )
            db.flush()
            return
        current_version = row.version
        result = db.execute(
            update(RateLimitCounter)
            .where(
                RateLimitCounter.scope == scope,
                RateLimitCounter.identity == identity,
                RateLimitCounter.version == current_version,
            )
            .values(
                count=decision.count,
                window_start_ms=decision.window_start_ms,
                updated_at=_as_datetime(now_ms),
                version=current_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise _CounterConflict(f"counter {scope}:{identity} changed (expected version {current_version})")

    def apply(self, checks: list[tuple[QuotaRule, str]], now_ms: int) -> NotifyError | None:
        for attempt in range(1, self.max_attempts + 1):
            with self.session_factory() as db:
                try:
                    rows = [self._read_counter(db, rule.scope.value, identity) for rule, identity in checks]
                    snapshots = [(row.count, row.window_start_ms) if row else (None, None) for row in rows]
                    decisions, rejection = decide(checks, snapshots, now_ms)
                    if rejection is not None:
                        db.rollback()
                        return rejection
                    for (rule, identity), row, decision in zip(checks, rows, decisions):
                        self._write_counter(db, row, rule.scope.value, identity, decision, now_ms)
                    db.commit()
                    return None
                except (IntegrityError, _CounterConflict) as exc:
                    db.rollback()
                    rate_limit_conflicts_total.labels(service=self.service_name, backend=self.backend).inc()
                    logger.info("rate limit transaction conflict attempt=%s error=%s", attempt, exc)
        raise RateLimitTransactionError(f"counter transaction failed after {self.max_attempts} attempts")

    def prune(self, window_ms: int, now_ms: int) -> int:
        """Delete counters idle for more than two windows; return rows deleted.

        Such a counter would be reset on its next hit anyway, so removing it
        never changes a limiter decision.
        """

        cutoff = now_ms - 2 * window_ms
        with self.session_factory() as db:
            result = db.execute(delete(RateLimitCounter).where(RateLimitCounter.window_start_ms < cutoff))
            db.commit()
            return result.rowcount


class RedisCounterStore:
    """Counters as Redis hashes, updated inside WATCH/MULTI/EXEC.

    `Redis.transaction` re-runs the callable whenever a watched key changes
    before EXEC, so concurrent attempts never lose an increment.
    """

    backend = "redis"

    def __init__(self, rdb: redis.Redis, prefix: str = "ratelimit") -> None:
        self.rdb = rdb
        self.prefix = prefix

    def _key(self, scope: RateLimitScope, identity: str) -> str:
        return f"{self.prefix}:{scope.value}:{identity}"

    def apply(self, checks: list[tuple[QuotaRule, str]], now_ms: int) -> NotifyError | None:
        keys = [self._key(rule.scope, identity) for rule, identity in checks]

        def _transaction(pipe) -> NotifyError | None:
            snapshots = []
            for key in keys:
                raw = pipe.hgetall(key)
                if raw:
                    snapshots.append((int(raw["count"]), int(raw["window_start_ms"])))
                else:
                    snapshots.append((None, None))
            decisions, rejection = decide(checks, snapshots, now_ms)
            if rejection is not None:
                return rejection
            pipe.multi()
            for key, (rule, _), decision in zip(keys, checks, decisions):
                pipe.hset(
                    key,
                    mapping={
                        "count": decision.count,
                        "window_start_ms": decision.window_start_ms,
                        "scope": rule.scope.value,
                        "updated_at": _as_datetime(now_ms).isoformat(),
                    },
                )
            return None

        return self.rdb.transaction(_transaction, *keys, value_from_callable=True)


class RateLimiter:
    """Applies the origin and code quotas for one notify attempt."""

    def __init__(
        self,
        store: CounterStore,
        window_seconds: int = 60,
        origin_max: int = 3,
        code_max: int = 8,
        clock: Callable[[], float] = time.time,
        service_name: str = "notify",
    ) -> None:
        self.store = store
        self.origin_rule = QuotaRule(RateLimitScope.ORIGIN, window_seconds * 1000, origin_max)
        self.code_rule = QuotaRule(RateLimitScope.CODE, window_seconds * 1000, code_max)
        self.clock = clock
        self.service_name = service_name

    def checks_for(self, code_id: str, identity: RequesterIdentity) -> list[tuple[QuotaRule, str]]:
        checks = []
        # Without connection metadata only the per-code quota applies.
        if not identity.anonymous:
            checks.append((self.origin_rule, f"{code_id}:{identity.fingerprint}"))
        checks.append((self.code_rule, code_id))
        return checks

    def check(self, code_id: str, identity: RequesterIdentity) -> NotifyError | None:
        """Count this attempt, or return a `resource-exhausted` failure."""

        if not code_id:
            return None
        now_ms = int(self.clock() * 1000)
        try:
            rejection = self.store.apply(self.checks_for(code_id, identity), now_ms)
        except (SQLAlchemyError, redis.RedisError, RateLimitTransactionError):
            logger.exception("rate limit transaction failed code_id=%s", code_id)
            return NotifyError.internal()
        if rejection is not None:
            rate_limit_rejections_total.labels(service=self.service_name, scope=rejection.scope.value).inc()
            logger.warning(
                "rate limit exceeded code_id=%s scope=%s retry_after_s=%s",
                code_id,
                rejection.scope.value,
                rejection.retry_after_seconds,
            )
        return rejection
