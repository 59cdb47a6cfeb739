"""Keep the visible page in sync with the table state.

The orchestrator listens to a :class:`TableStateController`.  Each change
to pagination, sorting, filters or search starts a fetch in an asyncio
task.  Every fetch is numbered, and only the response of the most recent
one is applied: a slower, older response that arrives later is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.exceptions import FetchError
from reflex_advanced_table.models import DataSourceParams, DataSourceResult
from reflex_advanced_table.state import DATA_FIELDS, TableState, TableStateController

logger = logging.getLogger(__name__)

_DEFAULT_SEARCH_DEBOUNCE: float = 0.3

ResultListener = Callable[[DataSourceResult], None]


class FetchOrchestrator:
    """Fetch the current page whenever the query state changes.

    Args:
        source: Where rows come from.
        controller: The state to follow.
        search_debounce: Seconds a search-only change waits for further
            input before fetching.  Other changes fetch immediately and
            cancel a pending search debounce.
    """

    def __init__(
        self,
        source: DataSource,
        controller: TableStateController,
        *,
        search_debounce: float = _DEFAULT_SEARCH_DEBOUNCE,
    ) -> None:
        self.source = source
        self.controller = controller
        self.search_debounce = search_debounce

        self.rows: list[dict[str, Any]] = []
        self.total: int = 0
        self.page: int = controller.page
        self.page_size: int = controller.page_size
        self.total_pages: int = 0
        self.is_loading: bool = False
        self.error: FetchError | None = None
        self.last_result: DataSourceResult | None = None
        self.last_params: DataSourceParams | None = None

        self._sequence = 0
        self._applied_sequence = 0
        self._stale = True
        self._tasks: set[asyncio.Task[Any]] = set()
        self._debounce_task: asyncio.Task[None] | None = None
        self._listeners: list[ResultListener] = []
        self._unsubscribe = controller.subscribe(self._on_state_change)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def sequence(self) -> int:
        """Number of the most recently started fetch."""
        return self._sequence

    @property
    def is_stale(self) -> bool:
        """``True`` when a state change could not be fetched yet (no event loop)."""
        return self._stale

    def subscribe(self, listener: ResultListener) -> Callable[[], None]:
        """Call *listener* with every applied result; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def refetch(self) -> asyncio.Task[None] | None:
        """Fetch the current state again, skipping any debounce.

        Returns the fetch task, or ``None`` when called outside a running
        event loop (the orchestrator is then marked stale and the next
        :meth:`settle` fetches).
        """
        self._cancel_debounce()
        return self._start_fetch()

    async def load(self) -> DataSourceResult | None:
        """Fetch the current state and wait for the result."""
        self.refetch()
        await self.settle()
        return self.last_result

    async def settle(self) -> None:
        """Wait until no fetch or debounce is pending."""
        if self._stale and not self._tasks:
            self._start_fetch()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop following the controller and cancel pending work."""
        self._unsubscribe()
        self._cancel_debounce()
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_state_change(self, state: TableState, changed: frozenset[str]) -> None:
        if not changed & DATA_FIELDS:
            return
        search_only = "search" in changed and not changed & {"sorting", "filters"}
        if search_only and self.search_debounce > 0:
            self._schedule_debounced()
        else:
            self.refetch()

    def _track(self, coro: Any) -> asyncio.Task[Any] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self._stale = True
            logger.debug("no running event loop, fetch deferred")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def _schedule_debounced(self) -> None:
        self._cancel_debounce()
        self._debounce_task = self._track(self._debounced())

    async def _debounced(self) -> None:
        await asyncio.sleep(self.search_debounce)
        self._debounce_task = None
        self._start_fetch()

    def _start_fetch(self) -> asyncio.Task[None] | None:
        self._sequence += 1
        params = self.controller.params()
        task = self._track(self._run(self._sequence, params))
        if task is not None:
            self._stale = False
            self.is_loading = True
            self.error = None
        return task

    async def _run(self, sequence: int, params: DataSourceParams) -> None:
        logger.debug("fetch #%d started", sequence)
        try:
            result = await self.source.fetch(params)
        except Exception as exc:
            if sequence != self._sequence:
                logger.debug("fetch #%d failed after being superseded: %s", sequence, exc)
                return
            self.error = exc if isinstance(exc, FetchError) else FetchError(exc)
            self.is_loading = False
            self.last_params = params
            logger.warning("fetch #%d failed: %s", sequence, exc)
            return

        if sequence != self._sequence:
            logger.debug("discarding stale response #%d (latest is #%d)", sequence, self._sequence)
            return
        self._apply(sequence, params, result)

    def _apply(self, sequence: int, params: DataSourceParams, result: DataSourceResult) -> None:
        self._applied_sequence = sequence
        self.rows = list(result.rows)
        self.total = result.total
        self.page = result.page
        self.page_size = result.page_size
        self.total_pages = result.total_pages
        self.is_loading = False
        self.error = None
        self.last_result = result
        self.last_params = params
        logger.debug("fetch #%d applied: %d of %d rows", sequence, len(result.rows), result.total)

        for listener in list(self._listeners):
            listener(result)

        # The current page disappeared (rows deleted or the total shrank).
        if not result.rows and 0 < result.total_pages < self.controller.page:
            self.controller.set_page(result.total_pages)
