"""
Cache key derivation.

Keys combine the request kind, the caller's credential fingerprint and
the upstream resource id. Raw API keys never appear in a key.
"""
import hashlib
from enum import Enum
from typing import Optional

SERVER_FINGERPRINT = "server"
_FINGERPRINT_PREFIX = "byok-"
_FINGERPRINT_LENGTH = 12


class RequestKind(str, Enum):
    """Upstream operations that get their own cache namespace."""
    CONNECT = "connect"
    MESSAGES = "messages"


def fingerprint(credential: Optional[str]) -> str:
    """
    Short, non-reversible identifier for a caller-supplied API key.

    Requests made with the server's own key share the ``"server"``
    fingerprint. Bring-your-own keys get a ``byok-`` prefixed digest, so
    they can never collide with the sentinel.
    """
    if not credential:
        return SERVER_FINGERPRINT
    digest = hashlib.sha256(credential.encode("utf-8")).hexdigest()
    return f"{_FINGERPRINT_PREFIX}{digest[:_FINGERPRINT_LENGTH]}"


def cache_key(kind: RequestKind, resource_id: str, caller: str) -> str:
    """Generate the cache key for one resource as seen by one caller."""
    # Fingerprints never contain ':' and the resource id goes last,
    # so distinct inputs cannot produce the same key.
    return f"yt:{RequestKind(kind).value}:{caller}:{resource_id}"


def lock_key(key: str) -> str:
    """Generate the distributed lock key guarding refreshes of ``key``."""
    return f"{key}:lock"
