"""
Request coalescing to prevent duplicate upstream API calls.

When multiple concurrent requests ask for the same data, only one
upstream call is made and all requesters share the result.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress upstream request."""
    task: asyncio.Future
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key starts the fetch as its own task
    - Every request for the key, the first included, awaits that task
    - When fetch completes, all waiters receive the same result or error
    - Registration is dropped as soon as the fetch settles

    Cancelling any one caller, including the one that started the fetch,
    leaves the fetch running for the others.

    Scoped to one process and one event loop; other processes are
    coordinated through the distributed lock instead.

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="yt:messages:server:...",
            fetch_fn=fetch_messages,
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Coroutine function to call if we need to fetch

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            Exception: Any error from fetch_fn is propagated to every caller
        """
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            # Join existing request
            in_flight.waiter_count += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
        else:
            # Register before the first suspension so concurrent callers see it
            in_flight = InFlightRequest(task=asyncio.ensure_future(fetch_fn()))
            self._in_flight[cache_key] = in_flight
            in_flight.task.add_done_callback(
                lambda task: self._settle(cache_key, in_flight, task)
            )
            logger.debug(f"Initiating fetch for {cache_key}")

        # A cancelled caller must not cancel the shared fetch
        return await asyncio.shield(in_flight.task)

    def _settle(self, cache_key: str, in_flight: InFlightRequest, task: asyncio.Future) -> None:
        # Runs before any caller resumes with the outcome
        if self._in_flight.get(cache_key) is in_flight:
            del self._in_flight[cache_key]
        if task.cancelled():
            return
        # Retrieving the error here keeps it from being reported as unhandled
        # when every caller has already gone away
        error = task.exception()
        if error is not None:
            logger.warning(f"Fetch failed for {cache_key}: {error}")

    def is_in_flight(self, cache_key: str) -> bool:
        """Check whether a fetch for ``cache_key`` is currently running."""
        return cache_key in self._in_flight

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }
