"""Coarse requester identity used only to scope abuse rate limits."""

import hashlib
from dataclasses import dataclass

from avahanaa.services.notify.schemas import ConnectionContext

ANONYMOUS_FINGERPRINT = "anonymous"
UNKNOWN_IP = "unknown"
FINGERPRINT_LENGTH = 32


@dataclass(frozen=True)
class RequesterIdentity:
    fingerprint: str
    ip: str

    @property
    def anonymous(self) -> bool:
        return self.fingerprint == ANONYMOUS_FINGERPRINT


ANONYMOUS = RequesterIdentity(fingerprint=ANONYMOUS_FINGERPRINT, ip=UNKNOWN_IP)


def resolve_ip(context: ConnectionContext) -> str:
    """First forwarded-for hop, else the transport peer, else `unknown`."""

    if context.forwarded_for:
        first_hop = context.forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if context.peer_address:
        return context.peer_address
    return UNKNOWN_IP


def derive_identity(context: ConnectionContext | None) -> RequesterIdentity:
    """Hash ip and user agent into a truncated, non-reversible fingerprint.

    Identical ip + user agent pairs intentionally collapse to one identity.
    """

    if context is None:
        return ANONYMOUS
    ip = resolve_ip(context)
    raw = f"{ip}|{context.user_agent or ''}"
    fingerprint = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
    return RequesterIdentity(fingerprint=fingerprint, ip=ip)
