"""Debounced composition of query parameters from incremental UI edits."""

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from opsdash.core.constants import DEFAULT_QUIET_PERIOD
from opsdash.exceptions import ComposerDisposedError
from opsdash.models.query import QueryParams

logger = logging.getLogger(__name__)

Subscriber = Callable[[QueryParams], Any]


class QueryComposer:
    """Merges query patches and emits the result after a quiet period.

    Every patch restarts a single timer; subscribers receive one emission per
    burst carrying the latest merged params. Subscribers may be plain
    callables or coroutine functions.
    """

    def __init__(self, initial: QueryParams | None = None, quiet_period: float = DEFAULT_QUIET_PERIOD) -> None:
        if quiet_period < 0:
            raise ValueError("quiet_period cannot be negative")
        self.quiet_period = quiet_period
        self._params = initial or QueryParams()
        self._subscribers: list[Subscriber] = []
        self._timer: asyncio.TimerHandle | None = None
        self._emitted: asyncio.Future | None = None
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False

    @property
    def params(self) -> QueryParams:
        """Latest merged params, including edits not emitted yet."""
        return self._params

    @property
    def pending(self) -> bool:
        """Whether an emission is waiting for the quiet period to pass."""
        return self._timer is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber.

        Returns:
            Function that removes the subscriber again
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def patch(self, changes: Mapping[str, Any] | None = None, **fields: Any) -> QueryParams:
        """Merge a partial update and restart the quiet period.

        Args:
            changes: Field updates as a mapping
            **fields: Field updates as keywords (applied after ``changes``)

        Returns:
            The merged params that will be emitted unless further patches arrive
        """
        if self._disposed:
            raise ComposerDisposedError()

        update = dict(changes or {})
        update.update(fields)
        self._params = self._params.merge(update)

        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.quiet_period, self._emit)
        if self._emitted is None or self._emitted.done():
            self._emitted = loop.create_future()
        return self._params

    def flush(self) -> bool:
        """Emit pending params now instead of waiting for the quiet period.

        Returns:
            True if there was something to emit
        """
        if self._timer is None:
            return False
        self._timer.cancel()
        self._emit()
        return True

    async def drain(self) -> QueryParams | None:
        """Wait for the pending emission, if any.

        Returns:
            The emitted params, or None when nothing was pending
        """
        if self._emitted is None or self._emitted.done():
            return None
        return await asyncio.shield(self._emitted)

    def dispose(self) -> None:
        """Cancel the pending emission and drop all subscribers."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._subscribers.clear()
        if self._emitted is not None and not self._emitted.done():
            self._emitted.set_result(None)
        self._disposed = True

    def _emit(self) -> None:
        self._timer = None
        params = self._params
        logger.debug(f"Emitting query params after quiet period: page={params.page} search={params.search_text!r}")

        for callback in list(self._subscribers):
            try:
                result = callback(params)
            except Exception as e:
                logger.error(f"Query subscriber {callback!r} failed: {e}")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._subscriber_done)

        if self._emitted is not None and not self._emitted.done():
            self._emitted.set_result(params)

    def _subscriber_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async query subscriber failed: {exc}")
