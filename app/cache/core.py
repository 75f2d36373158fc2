"""
Core cache data structures.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional


Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class InvalidPayloadError(ValueError):
    """Raised when a payload read back from the durable tier is malformed."""


class DurableState(Enum):
    """Connection state of the shared durable tier, decided once at startup."""
    UNCONFIGURED = "unconfigured"  # No connection settings, local-only
    CONNECTED = "connected"        # Client built, failures handled per call
    UNAVAILABLE = "unavailable"    # Client could not be built, local-only


@dataclass(frozen=True)
class CachedPayload:
    """
    A fetched value with its freshness window.

    Payloads are never mutated; a newer fetch supersedes the old one
    under the same key.
    """
    value: Any
    fetched_at: int
    expires_at: int
    continuation_token: Optional[str] = None

    def is_expired(self, now: int) -> bool:
        """Check if the payload is past its TTL at ``now`` (epoch ms)."""
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "value": self.value,
            "fetchedAt": self.fetched_at,
            "expiresAt": self.expires_at,
            "continuationToken": self.continuation_token,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "CachedPayload":
        """
        Build a payload from its serialized form.

        The durable tier is shared with other processes, so its contents
        are validated rather than trusted.

        Raises:
            InvalidPayloadError: If required fields are missing or mistyped
        """
        if not isinstance(raw, dict):
            raise InvalidPayloadError(f"expected object, got {type(raw).__name__}")
        if "value" not in raw:
            raise InvalidPayloadError("missing 'value'")

        fetched_at = raw.get("fetchedAt")
        expires_at = raw.get("expiresAt")
        for name, stamp in (("fetchedAt", fetched_at), ("expiresAt", expires_at)):
            if isinstance(stamp, bool) or not isinstance(stamp, int):
                raise InvalidPayloadError(f"'{name}' must be an integer timestamp")

        token = raw.get("continuationToken")
        if token is not None and not isinstance(token, str):
            raise InvalidPayloadError("'continuationToken' must be a string")

        return cls(
            value=raw["value"],
            fetched_at=fetched_at,
            expires_at=expires_at,
            continuation_token=token,
        )


@dataclass
class FetchResult:
    """What an upstream fetch adapter hands back to the cache."""
    value: Any
    ttl_ms: int
    continuation_token: Optional[str] = None


@dataclass
class CacheResult:
    """
    Result of a get-or-fetch call, included in API responses.
    """
    value: Any
    from_cache: bool
    fetched_at: int

    def to_dict(self) -> dict:
        """Cache metadata for JSON responses (the value is reported separately)."""
        return {
            "fromCache": self.from_cache,
            "fetchedAt": self.fetched_at,
        }
