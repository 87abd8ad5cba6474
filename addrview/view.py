"""Address view model.

Orchestrates the independent backend queries behind one address page:

    initialize()
      ├─ summary query ──success──► subtitle, summary
      │                  │            ├─► transaction table (count = nonce)
      │                  │            └─► internal traces (contracts only)
      │                  └─failure──► defaults kept, table with count 0
      └─ signed-count query ────────► summary.signed_block_count

Every query runs as its own asyncio task and owns a disjoint slice of
ViewState. Results are applied as discrete events through `apply()`, so
the summary and signed-count replies may arrive in either order. A failed
query leaves its slice at the safe default and never blocks its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Coroutine, Union

from addrview.columns import ColumnRenderPipeline
from addrview.exceptions import AddrviewError, ViewClosedError
from addrview.fetchers.base import ExplorerBackend
from addrview.models import DEFAULT_PAGE_SIZE, AddressSummary, InternalTrace, SortRule
from addrview.pagination import DEFAULT_SORT, PageFetcher, TableState

logger = logging.getLogger(__name__)

ADDRESS_TITLE = "Address"
CONTRACT_TITLE = "Contract Address"
DEFAULT_TAB = "transactions"


# ── Update events ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SummaryLoaded:
    summary: AddressSummary


@dataclass(frozen=True)
class SummaryFailed:
    error: AddrviewError


@dataclass(frozen=True)
class SignedCountLoaded:
    signed: int


@dataclass(frozen=True)
class SignedCountFailed:
    error: AddrviewError


@dataclass(frozen=True)
class TracesLoaded:
    traces: list[InternalTrace]


@dataclass(frozen=True)
class TracesFailed:
    error: AddrviewError


ViewEvent = Union[
    SummaryLoaded,
    SummaryFailed,
    SignedCountLoaded,
    SignedCountFailed,
    TracesLoaded,
    TracesFailed,
]


@dataclass
class ViewState:
    """Everything the address page displays."""

    address_hash: str
    summary: AddressSummary
    title: str = ADDRESS_TITLE
    subtitle: str = ""
    active_tab: str = DEFAULT_TAB
    internal_transactions: list[InternalTrace] | None = None
    summary_error: AddrviewError | None = None
    signed_error: AddrviewError | None = None
    traces_error: AddrviewError | None = None
    table: TableState = field(default_factory=TableState)

    @property
    def degraded(self) -> bool:
        return self.summary_error is not None or self.signed_error is not None

    def to_dict(self) -> dict[str, Any]:
        traces = self.internal_transactions
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "active_tab": self.active_tab,
            "address": self.summary.to_dict(),
            "degraded": self.degraded,
            "errors": {
                "summary": self.summary_error.to_dict() if self.summary_error else None,
                "signed": self.signed_error.to_dict() if self.signed_error else None,
                "traces": self.traces_error.to_dict() if self.traces_error else None,
            },
            "transactions": self.table.to_dict(),
            "internal_transactions": (
                [t.to_dict() for t in traces] if traces is not None else None
            ),
        }


def apply_event(state: ViewState, event: ViewEvent) -> None:
    """Fold one update event into `state`; each event touches only its own slice."""
    if isinstance(event, SummaryLoaded):
        # Replaced wholesale; the signed count belongs to the other query
        state.summary = event.summary.with_signed(state.summary.signed_block_count)
        state.summary_error = None
        state.subtitle = event.summary.checksummed_address
        if event.summary.is_contract:
            state.title = CONTRACT_TITLE
    elif isinstance(event, SummaryFailed):
        state.summary_error = event.error
    elif isinstance(event, SignedCountLoaded):
        state.summary = state.summary.with_signed(event.signed)
        state.signed_error = None
    elif isinstance(event, SignedCountFailed):
        state.signed_error = event.error
    elif isinstance(event, TracesLoaded):
        state.internal_transactions = list(event.traces)
        state.traces_error = None
    elif isinstance(event, TracesFailed):
        state.traces_error = event.error
    else:
        raise TypeError(f"Unknown view event: {event!r}")


class AddressViewModel:
    """
    View model for one activation of an address page.

    Usage:
        model = AddressViewModel(backend)
        state = await model.initialize("0xabc...", "internal")
        await model.settle()      # wait for every fetch to land
        await model.close()       # late replies can no longer touch state
    """

    def __init__(
        self,
        backend: ExplorerBackend,
        page_length: int = DEFAULT_PAGE_SIZE,
        sort: SortRule = DEFAULT_SORT,
        now: datetime | None = None,
    ) -> None:
        self._backend = backend
        self._page_length = page_length
        self._sort = sort
        self._now = now
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self.state: ViewState | None = None
        self.table: PageFetcher | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def initialize(self, address_hash: str, url_fragment: str | None = None) -> ViewState:
        """
        Set synchronous defaults and launch the summary and signed-count queries.

        Returns immediately with the pre-fetch state; calling it again on
        the same model returns the existing state without refetching.
        """
        if self._closed:
            raise ViewClosedError("Cannot initialize a closed view")
        if self.state is not None:
            return self.state

        self.table = PageFetcher(
            self._backend,
            address_hash,
            pipeline=ColumnRenderPipeline(address_hash, now=self._now),
            page_length=self._page_length,
            sort=self._sort,
        )
        self.state = ViewState(
            address_hash=address_hash,
            summary=AddressSummary.placeholder(address_hash),
            subtitle=address_hash,
            active_tab=url_fragment or DEFAULT_TAB,
            table=self.table.state,
        )

        self._spawn(self._load_summary(address_hash))
        self._spawn(self._load_signed(address_hash))
        return self.state

    def apply(self, event: ViewEvent) -> bool:
        """Apply an update event. Returns False if the view is closed."""
        if self._closed or self.state is None:
            logger.debug("Dropping %s for closed view", type(event).__name__)
            return False
        apply_event(self.state, event)
        return True

    async def settle(self) -> ViewState:
        """Wait until every scheduled fetch, including fanned-out ones, has landed."""
        while self._tasks:
            results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    raise result
        if self.state is None:
            raise ViewClosedError("View was never initialized")
        return self.state

    async def close(self) -> None:
        """Tear down: cancel pending fetches and drop any reply still on its way."""
        self._closed = True
        if self.table is not None:
            self.table.close()
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()

    # ──────────────────────────────────────────────────────────────
    # Fetches
    # ──────────────────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _load_summary(self, address: str) -> None:
        try:
            summary = await self._backend.get_summary(address)
        except AddrviewError as e:
            logger.warning("Summary query for %s failed: %s", address, e)
            if self.apply(SummaryFailed(e)):
                # Table still loads, against the default count
                self._spawn(self._load_table(0))
            return

        if not self.apply(SummaryLoaded(summary)):
            return
        self._spawn(self._load_table(summary.transaction_count))
        if summary.is_contract:
            self._spawn(self._load_traces(address))

    async def _load_signed(self, address: str) -> None:
        try:
            signed = await self._backend.get_signed_count(address)
        except AddrviewError as e:
            logger.warning("Signed-count query for %s failed: %s", address, e)
            self.apply(SignedCountFailed(e))
            return
        self.apply(SignedCountLoaded(signed))

    async def _load_traces(self, address: str) -> None:
        try:
            traces = await self._backend.get_internal_traces(address)
        except AddrviewError as e:
            logger.warning("Internal-trace query for %s failed: %s", address, e)
            self.apply(TracesFailed(e))
            return
        self.apply(TracesLoaded(traces))

    async def _load_table(self, count: int) -> None:
        if self.table is None or self._closed:
            return
        await self.table.mount(count)
