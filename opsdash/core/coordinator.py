"""Request coordination for query fetches.

The coordinator sits between query engines and the remote store:

- identical requests (same canonical key) share one in-flight fetch,
- a consumer that moves on to a different key has its older request
  cancelled cooperatively (the fetch may finish, its result is not delivered),
- transport failures are retried with linear backoff,
- successful pages are written through to the shared result cache,
- a page that loaded while its namespace was written is reloaded before
  it is delivered.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Generator, Hashable
from dataclasses import dataclass
from typing import Any

import backoff

from opsdash.cache.results import ResultCache
from opsdash.core.constants import DEFAULT_RETRY_BASE_DELAY, MAX_STALE_RELOADS, RetryConstants
from opsdash.exceptions import RequestCancelledError, TransportError
from opsdash.models.page import Page
from opsdash.models.query import QueryParams

logger = logging.getLogger(__name__)

Fetcher = Callable[[QueryParams], Awaitable[Page[Any]]]


def linear(delay: float = DEFAULT_RETRY_BASE_DELAY) -> Generator[float, Any, None]:
    """Wait generator for ``backoff``: ``delay * attempt`` for attempt 1, 2, 3, ..."""
    # Advance past backoff's initial .send(None)
    yield  # type: ignore[misc]
    attempt = 1
    while True:
        yield delay * attempt
        attempt += 1


@dataclass
class _PendingRequest:
    key: str
    waiter: asyncio.Future


def _relay(waiter: asyncio.Future, task: asyncio.Task) -> None:
    """Copy a shared fetch outcome into one consumer's waiter."""
    if task.cancelled():
        if not waiter.done():
            waiter.cancel()
        return

    # Always retrieve the exception so asyncio does not report it as unhandled
    exc = task.exception()
    if waiter.done():
        return
    if exc is not None:
        waiter.set_exception(exc)
    else:
        waiter.set_result(task.result())


class RequestCoordinator:
    """De-duplicates, cancels and retries query fetches."""

    def __init__(
        self,
        cache: ResultCache,
        max_retries: int = int(RetryConstants.MAX_RETRIES),
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    ) -> None:
        """Initialize the coordinator.

        Args:
            cache: Shared result cache used for lookups and write-through
            max_retries: Retries after the first failed attempt
            base_delay: Linear backoff unit in seconds
        """
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.cache = cache
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._in_flight: dict[str, asyncio.Task] = {}
        self._pending: dict[Hashable, _PendingRequest] = {}
        self._epochs: dict[str, int] = {}

    async def execute(
        self,
        params: QueryParams,
        fetcher: Fetcher,
        *,
        namespace: str,
        consumer: Hashable | None = None,
        force: bool = False,
    ) -> Page[Any]:
        """Resolve a page for ``params``.

        Args:
            params: Query to resolve
            fetcher: Remote fetch used on a cache miss
            namespace: Entity type the query belongs to (cache namespace)
            consumer: Logical requester; its older request for another key is cancelled
            force: Skip the cache lookup and go to the store

        Returns:
            The page of results

        Raises:
            RequestCancelledError: A newer request from the same consumer superseded this one
            TransportError: The store stayed unreachable after all retries
        """
        key = params.canonical_key(namespace)
        if consumer is not None:
            self._supersede(consumer, key)

        if not force:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        task = self._in_flight.get(key)
        if task is None:
            epoch = self._epochs.get(namespace, 0)
            task = asyncio.create_task(self._fetch(key, params, fetcher, namespace, epoch))
            self._in_flight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            logger.debug(f"Joining in-flight request: {key}")

        waiter = asyncio.get_running_loop().create_future()
        task.add_done_callback(functools.partial(_relay, waiter))
        pending = _PendingRequest(key, waiter)
        if consumer is not None:
            self._pending[consumer] = pending

        try:
            return await waiter
        finally:
            if consumer is not None and self._pending.get(consumer) is pending:
                del self._pending[consumer]

    def release(self, consumer: Hashable) -> None:
        """Cancel whatever the consumer is still waiting for."""
        self._supersede(consumer, None)

    def invalidate(self, namespace: str) -> int:
        """Drop cached pages of a namespace after a write.

        Fetches that started before the invalidation will not write their
        result back into the cache, and new requests no longer join them.
        Their waiters receive a page loaded after the write instead: either
        from a newer fetch of the same key or from a reload.

        Returns:
            Number of dropped cache entries
        """
        self._epochs[namespace] = self._epochs.get(namespace, 0) + 1
        # Later requests must not join a fetch that may return pre-write data
        prefix = f"{namespace}:"
        for key in [key for key in self._in_flight if key.startswith(prefix)]:
            del self._in_flight[key]
        removed = self.cache.invalidate_namespace(namespace)
        logger.debug(f"Invalidated namespace {namespace} ({removed} entries)")
        return removed

    def in_flight_count(self) -> int:
        """Number of distinct fetches currently running."""
        return len(self._in_flight)

    def _supersede(self, consumer: Hashable, key: str | None) -> None:
        pending = self._pending.get(consumer)
        if pending is None or pending.key == key or pending.waiter.done():
            return
        logger.debug(f"Cancelling superseded request: {pending.key}")
        pending.waiter.set_exception(RequestCancelledError(pending.key))

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch(
        self, key: str, params: QueryParams, fetcher: Fetcher, namespace: str, epoch: int
    ) -> Page[Any]:
        def log_retry(details: dict[str, Any]) -> None:
            logger.debug(f"Retrying {key} in {details['wait']:.2f}s after attempt {details['tries']} failed")

        def log_giveup(details: dict[str, Any]) -> None:
            logger.warning(f"Giving up on {key} after {details['tries']} attempts: {details.get('exception')}")

        @backoff.on_exception(
            linear,
            TransportError,
            max_tries=self.max_retries + 1,
            jitter=None,
            on_backoff=log_retry,
            on_giveup=log_giveup,
            logger=None,
            delay=self.base_delay,
        )
        async def attempt() -> Page[Any]:
            return await fetcher(params)

        page = await attempt()

        reloads = 0
        while self._epochs.get(namespace, 0) != epoch:
            # The namespace was written while this page loaded; it may predate the write
            newer = self._in_flight.get(key)
            if newer is not None:
                logger.debug(f"Handing {key} over to the fetch started after the {namespace} write")
                return await asyncio.shield(newer)
            if reloads == MAX_STALE_RELOADS:
                logger.warning(f"Not caching {key}: {namespace} kept changing while it was loading")
                return page
            reloads += 1
            logger.debug(f"Reloading {key}: {namespace} changed while it was loading")
            epoch = self._epochs.get(namespace, 0)
            page = await attempt()

        self.cache.set(key, page, namespace=namespace)
        return page
