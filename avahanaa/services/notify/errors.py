"""Failure taxonomy returned (not raised) across notify pipeline components."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    FAILED_PRECONDITION = "failed-precondition"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    INTERNAL = "internal"


class RateLimitScope(str, Enum):
    ORIGIN = "origin"
    CODE = "code"


GENERIC_INTERNAL_MESSAGE = "Failed to deliver notification."


@dataclass(frozen=True)
class NotifyError:
    """Classified failure of one notify attempt.

    `retry_after_seconds` and `scope` are only set for `resource-exhausted`.
    """

    kind: ErrorKind
    message: str
    retry_after_seconds: int | None = None
    scope: RateLimitScope | None = None

    @classmethod
    def invalid_argument(cls, message: str) -> "NotifyError":
        return cls(ErrorKind.INVALID_ARGUMENT, message)

    @classmethod
    def not_found(cls, message: str) -> "NotifyError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def failed_precondition(cls, message: str) -> "NotifyError":
        return cls(ErrorKind.FAILED_PRECONDITION, message)

    @classmethod
    def resource_exhausted(cls, retry_after_seconds: int, scope: RateLimitScope) -> "NotifyError":
        return cls(
            ErrorKind.RESOURCE_EXHAUSTED,
            f"Too many notification attempts; retry in {retry_after_seconds} seconds.",
            retry_after_seconds=retry_after_seconds,
            scope=scope,
        )

    @classmethod
    def internal(cls, message: str = GENERIC_INTERNAL_MESSAGE) -> "NotifyError":
        return cls(ErrorKind.INTERNAL, message)

    def to_dict(self) -> dict:
        body: dict = {"kind": self.kind.value, "message": self.message}
        if self.kind is ErrorKind.RESOURCE_EXHAUSTED:
            body["retryAfterSeconds"] = self.retry_after_seconds
            body["scope"] = self.scope.value if self.scope else None
        return body
