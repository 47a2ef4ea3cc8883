"""
Browse session: one open listing view.

The session asks for the viewer location once when it opens, then re-runs the
listing pipeline on every filter or query change. Changes are not de-duplicated;
instead each refresh takes a ticket from a `RequestSequencer` and only the newest
ticket may publish its result. A slow early response that lands after a later one
is dropped, and so is anything that arrives after `close()`.

Must be used from inside a running event loop (refreshes are scheduled as tasks).
"""

from __future__ import annotations

import asyncio
import logging

from medshare.domain.models import Coordinate
from medshare.filters.state import FilterState
from medshare.listing.pipeline import ListingPipeline, PipelineResult
from medshare.location.provider import GeolocationProvider, locate_or_none

logger = logging.getLogger(__name__)


class RequestSequencer:
    """Monotonic request tickets; only the most recently issued one is current."""

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, ticket: int) -> bool:
        return ticket == self._latest


class BrowseSession:
    def __init__(
        self,
        pipeline: ListingPipeline,
        provider: GeolocationProvider,
        filters: FilterState | None = None,
        *,
        query: str = "",
    ):
        self._pipeline = pipeline
        self._provider = provider
        self._filters = filters or FilterState()
        self._query = query
        self._location: Coordinate | None = None
        self._sequencer = RequestSequencer()
        self._result: PipelineResult | None = None
        self._result_ticket = 0
        self._pending: set[asyncio.Task] = set()
        self._unsubscribe = None
        self._closed = False

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def location(self) -> Coordinate | None:
        return self._location

    @property
    def query(self) -> str:
        return self._query

    @property
    def result(self) -> PipelineResult | None:
        """Latest published result (None until the first refresh lands)."""
        return self._result

    @property
    def result_ticket(self) -> int:
        return self._result_ticket

    async def open(self) -> PipelineResult | None:
        self._location = await locate_or_none(self._provider)
        self._unsubscribe = self._filters.subscribe(lambda _values: self._schedule())
        return await self.refresh()

    def close(self) -> None:
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_query(self, query: str) -> None:
        self._query = query
        self._schedule()

    async def retry_location(self) -> Coordinate | None:
        """Ask for the location again (user agreed to share it) and refresh."""
        self._location = await locate_or_none(self._provider)
        self._schedule()
        return self._location

    async def refresh(self) -> PipelineResult | None:
        """Run the pipeline for the current state; returns None if the answer went stale."""
        ticket = self._sequencer.issue()
        query, values, location = self._query, self._filters.values(), self._location
        result = await self._pipeline.run(query, values, location)

        if self._closed:
            logger.debug("Dropping result #%d: session closed", ticket)
            return None
        if not self._sequencer.is_current(ticket):
            logger.debug("Dropping stale result #%d (latest #%d)", ticket, self._sequencer.latest)
            return None

        self._result = result
        self._result_ticket = ticket
        return result

    def _schedule(self) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_idle(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
