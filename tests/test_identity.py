"""Requester fingerprint derivation."""

import hashlib

from avahanaa.services.notify.identity import ANONYMOUS, derive_identity
from avahanaa.services.notify.schemas import ConnectionContext


def test_missing_context_is_anonymous():
    identity = derive_identity(None)
    assert identity == ANONYMOUS
    assert identity.fingerprint == "anonymous"
    assert identity.ip == "unknown"
    assert identity.anonymous


def test_first_forwarded_hop_wins():
    identity = derive_identity(
        ConnectionContext(forwarded_for=" 203.0.113.9 , 10.1.1.1", peer_address="10.1.1.1", user_agent="UA")
    )
    assert identity.ip == "203.0.113.9"


def test_peer_address_fallback_then_unknown():
    assert derive_identity(ConnectionContext(peer_address="192.0.2.4")).ip == "192.0.2.4"
    assert derive_identity(ConnectionContext(forwarded_for=" , ")).ip == "unknown"


def test_fingerprint_is_truncated_sha256_of_ip_and_agent():
    identity = derive_identity(ConnectionContext(peer_address="192.0.2.4", user_agent="Mozilla/5.0"))
    expected = hashlib.sha256(b"192.0.2.4|Mozilla/5.0").hexdigest()[:32]
    assert identity.fingerprint == expected
    assert len(identity.fingerprint) == 32
    assert not identity.anonymous


def test_same_ip_and_agent_collapse_to_one_identity():
    a = derive_identity(ConnectionContext(forwarded_for="198.51.100.1", peer_address="10.0.0.1", user_agent="UA"))
    b = derive_identity(ConnectionContext(forwarded_for="198.51.100.1", peer_address="10.0.0.2", user_agent="UA"))
    c = derive_identity(ConnectionContext(forwarded_for="198.51.100.1", user_agent="Other"))
    assert a == b
    assert a.fingerprint != c.fingerprint
