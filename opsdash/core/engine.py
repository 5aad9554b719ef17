"""Paginated query engine: the "current page of results" view model."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from opsdash.core.composer import QueryComposer
from opsdash.core.constants import DEFAULT_QUIET_PERIOD
from opsdash.core.coordinator import Fetcher, RequestCoordinator
from opsdash.exceptions import RequestCancelledError, TransportError
from opsdash.models.page import Page
from opsdash.models.query import QueryParams

logger = logging.getLogger(__name__)

T = TypeVar("T")

StateListener = Callable[["QueryState"], None]


class QueryState(BaseModel):
    """Snapshot exposed to the UI.

    ``data`` is always the page produced by ``params``; both are replaced in
    the same snapshot.
    """

    model_config = ConfigDict(frozen=True)

    data: Page
    params: QueryParams
    loading: bool = False
    error: str | None = None


class PaginatedQueryEngine(Generic[T]):
    """Keeps one page of results in sync with debounced query params.

    Only the latest load may write state: every load gets a generation number
    and the engine is the coordinator consumer, so superseded requests are
    cancelled and late responses are dropped.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        coordinator: RequestCoordinator,
        *,
        namespace: str,
        initial_params: QueryParams | None = None,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        composer: QueryComposer | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            fetcher: Remote fetch for one page
            coordinator: Shared request coordinator
            namespace: Entity type, used as the cache namespace
            initial_params: Params for the first load
            quiet_period: Debounce quiet period when no composer is given
            composer: Existing composer to listen to
        """
        self.fetcher = fetcher
        self.coordinator = coordinator
        self.namespace = str(namespace)
        self.composer = composer or QueryComposer(initial_params, quiet_period)
        self._unsubscribe = self.composer.subscribe(self._on_params)

        params = self.composer.params
        self._state = QueryState(data=Page.empty(params.page_size), params=params)
        self._listeners: list[StateListener] = []
        self._generation = 0
        self._task: asyncio.Task | None = None
        self._task_params: QueryParams | None = None

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def data(self) -> Page:
        return self._state.data

    @property
    def params(self) -> QueryParams:
        return self._state.params

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> str | None:
        return self._state.error

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> QueryState:
        """Initial load; served from the cache when possible."""
        return await self.refetch(force=False)

    def update_params(self, patch: Mapping[str, Any] | None = None, **fields: Any) -> QueryParams:
        """Queue a params change; the load starts once the quiet period passes."""
        params = self.composer.patch(patch, **fields)
        self._update_state(loading=True)
        return params

    async def refetch(self, force: bool = False) -> QueryState:
        """Load the current params.

        A refresh that is already running for the same params is joined
        rather than restarted, unless ``force`` is set. ``force`` also skips
        the result cache.

        Returns:
            State after the load settled
        """
        # Pending edits go out now; the emission starts a regular load
        self.composer.flush()
        params = self.composer.params

        running = self._task
        if running is not None and not running.done() and not force and self._task_params == params:
            logger.debug(f"Refresh of {self.namespace} already in progress; joining it")
        else:
            running = self._load(params, force=force, awaited=True)

        await asyncio.shield(running)
        return self._state

    async def settle(self) -> QueryState:
        """Wait until no edit is pending and the latest load finished."""
        while True:
            await self.composer.drain()
            task = self._task
            if task is not None and not task.done():
                await asyncio.wait({task})
            if not self.composer.pending and (self._task is None or self._task.done()):
                return self._state

    def close(self) -> None:
        """Stop listening for edits and abandon the running load."""
        self._unsubscribe()
        self.composer.dispose()
        self.coordinator.release(self)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._listeners.clear()

    def _on_params(self, params: QueryParams) -> None:
        self._load(params, force=False)

    def _load(self, params: QueryParams, force: bool, awaited: bool = False) -> asyncio.Task:
        self._generation += 1
        self._update_state(loading=True)
        task = asyncio.create_task(self._run(self._generation, params, force, awaited))
        task.add_done_callback(self._load_done)
        self._task = task
        self._task_params = params
        return task

    async def _run(self, generation: int, params: QueryParams, force: bool, awaited: bool) -> None:
        try:
            page = await self.coordinator.execute(
                params, self.fetcher, namespace=self.namespace, consumer=self, force=force
            )
        except RequestCancelledError:
            logger.debug(f"Dropped superseded {self.namespace} load (generation {generation})")
            return
        except TransportError as e:
            if generation == self._generation:
                logger.warning(f"Loading {self.namespace} failed: {e}")
                # Keep the last good page on screen
                self._update_state(loading=False, error=str(e))
            return
        except Exception as e:
            if generation == self._generation:
                logger.error(f"Loading {self.namespace} failed unexpectedly: {e}")
                self._update_state(loading=False, error=str(e))
            # Loads started by edits have nobody to raise to
            if awaited:
                raise
            return

        if generation != self._generation:
            logger.debug(f"Dropped stale {self.namespace} response (generation {generation})")
            return

        self._set_state(QueryState(data=page, params=params, loading=False, error=None))

    def _load_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        # Only awaited loads end with an exception, and the refetch caller has it
        task.exception()

    def _update_state(self, **changes: Any) -> None:
        self._set_state(self._state.model_copy(update=changes))

    def _set_state(self, state: QueryState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener {listener!r} failed: {e}")
