"""Server-side paginated transaction table.

The PageFetcher owns one table: it validates each PageQuery, encodes it
as a server-side-processing form body, POSTs it, and applies the reply
only if it belongs to the latest request. The client never windows,
sorts or filters rows itself.

Staleness:
  Every dispatch takes a new generation token (sent as `draw`). When a
  reply arrives, it is applied only if its token is still the latest;
  superseded replies are dropped, never cancelled mid-flight.

Failure:
  A failed request keeps the previously rendered page and records a
  retryable error; `retry()` re-issues the last query.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from addrview.columns import ColumnRenderPipeline, RenderedCell
from addrview.exceptions import AddrviewError, InvalidPageQueryError
from addrview.fetchers.base import ExplorerBackend
from addrview.models import (
    ALLOWED_PAGE_SIZES,
    COL_TIMESTAMP,
    DEFAULT_PAGE_SIZE,
    HIDDEN_COLUMNS,
    ROW_WIDTH,
    UNORDERABLE_COLUMNS,
    PageQuery,
    PageResult,
    SortRule,
)

logger = logging.getLogger(__name__)

ZERO_RECORDS_MESSAGE = "No transactions found"
EMPTY_FILTER_MESSAGE = "No results"
FILTERED_CAPTION = "(filtered from {total} total txs)"

DEFAULT_SORT = SortRule(COL_TIMESTAMP, "desc")


def build_envelope(query: PageQuery, count: int, generation: int) -> dict[str, str]:
    """
    Form body for one table request: addr, count and the pagination envelope.

    Column descriptors follow the server-side-processing table protocol;
    the hidden key column is neither searchable nor orderable.
    """
    envelope = {
        "addr": query.subject_address,
        "count": str(count),
        "draw": str(generation),
        "start": str(query.offset),
        "length": str(query.page_size),
        "search[value]": query.search_term or "",
        "search[regex]": "false",
        "order[0][column]": str(query.sort.column),
        "order[0][dir]": query.sort.direction,
    }
    for col in range(ROW_WIDTH):
        prefix = f"columns[{col}]"
        searchable = col not in HIDDEN_COLUMNS
        orderable = col not in UNORDERABLE_COLUMNS and col not in HIDDEN_COLUMNS
        envelope[f"{prefix}[data]"] = str(col)
        envelope[f"{prefix}[name]"] = ""
        envelope[f"{prefix}[searchable]"] = "true" if searchable else "false"
        envelope[f"{prefix}[orderable]"] = "true" if orderable else "false"
        envelope[f"{prefix}[search][value]"] = ""
        envelope[f"{prefix}[search][regex]"] = "false"
    return envelope


def empty_message(result: PageResult | None) -> str | None:
    """Which empty-state message, if any, the table shows for `result`."""
    if result is None:
        return None
    if result.total_records == 0:
        return ZERO_RECORDS_MESSAGE
    if result.total_filtered_records == 0:
        return EMPTY_FILTER_MESSAGE
    return None


def filter_caption(result: PageResult | None) -> str | None:
    """Caption citing the unfiltered total when a filter narrows the set."""
    if result is None or result.total_records == 0:
        return None
    if result.total_filtered_records < result.total_records:
        return FILTERED_CAPTION.format(total=result.total_records)
    return None


@dataclass
class TableState:
    """What the table currently shows. Rows survive failed requests."""

    query: PageQuery | None = None
    result: PageResult | None = None
    rows: list[list[RenderedCell]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    loading: bool = False
    error: AddrviewError | None = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable

    @property
    def message(self) -> str | None:
        return empty_message(self.result)

    @property
    def caption(self) -> str | None:
        return filter_caption(self.result)

    @property
    def page_count(self) -> int:
        if self.result is None or self.query is None:
            return 0
        return math.ceil(self.result.total_filtered_records / self.query.page_size)

    @property
    def info(self) -> str:
        if self.result is None or self.query is None:
            return "Showing 0 to 0 of 0 entries"
        if not self.rows:
            return f"Showing 0 to 0 of {self.result.total_filtered_records} entries"
        first = self.query.offset + 1
        last = self.query.offset + len(self.rows)
        return f"Showing {first} to {last} of {self.result.total_filtered_records} entries"

    def to_dict(self) -> dict:
        return {
            "columns": self.columns,
            "page_index": self.query.page_index if self.query else None,
            "page_size": self.query.page_size if self.query else None,
            "sort": (
                {"column": self.query.sort.column, "direction": self.query.sort.direction}
                if self.query
                else None
            ),
            "search": self.query.search_term if self.query else None,
            "total_records": self.result.total_records if self.result else 0,
            "total_filtered_records": (
                self.result.total_filtered_records if self.result else 0
            ),
            "rows": [[c.to_dict() for c in row] for row in self.rows],
            "message": self.message,
            "caption": self.caption,
            "info": self.info,
            "loading": self.loading,
            "error": self.error.to_dict() if self.error else None,
        }


class PageFetcher:
    """
    One transaction table bound to one subject address.

    `known_count` is the row count learned from the address summary; it is
    forwarded with every request so the server can skip its own count.
    """

    def __init__(
        self,
        backend: ExplorerBackend,
        subject_address: str,
        pipeline: ColumnRenderPipeline | None = None,
        page_length: int = DEFAULT_PAGE_SIZE,
        sort: SortRule = DEFAULT_SORT,
    ) -> None:
        if page_length not in ALLOWED_PAGE_SIZES:
            raise InvalidPageQueryError(
                f"page_length must be one of {list(ALLOWED_PAGE_SIZES)}, got {page_length}"
            )
        self._backend = backend
        self.subject_address = subject_address
        self.pipeline = pipeline or ColumnRenderPipeline(subject_address)
        self.page_length = page_length
        self.default_sort = sort
        self.known_count = 0
        self.state = TableState(columns=self.pipeline.visible_titles())
        self._generation = 0
        self._latest: PageQuery | None = None
        self._closed = False
        self.initial_query().validate()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def initial_query(self) -> PageQuery:
        return PageQuery(
            subject_address=self.subject_address,
            page_index=0,
            page_size=self.page_length,
            sort=self.default_sort,
        )

    def current_query(self) -> PageQuery:
        """The most recently requested query (applied or still in flight)."""
        return self._latest or self.initial_query()

    async def mount(self, count: int) -> PageResult | None:
        """First request for the table, using `count` as the known row total."""
        self.known_count = max(int(count), 0)
        return await self.query(self.initial_query())

    async def query(self, query: PageQuery) -> PageResult | None:
        """
        Request one page.

        Returns:
            The applied PageResult, or None if the request failed, was
            superseded by a newer one, or the table was closed meanwhile.

        Raises:
            InvalidPageQueryError: page size or sort column breaks the
                table contract; nothing is dispatched.
        """
        if self._closed:
            return None
        query.validate()

        self._generation += 1
        generation = self._generation
        self._latest = query
        self.state.loading = True
        envelope = build_envelope(query, self.known_count, generation)

        try:
            result = await self._backend.get_transactions_page(envelope)
        except AddrviewError as e:
            if not self._is_current(generation):
                logger.debug("Dropping failure of superseded page request %d", generation)
                return None
            logger.warning("Transaction page request failed: %s", e)
            self.state.loading = False
            self.state.error = e
            return None

        if not self._is_current(generation):
            logger.debug(
                "Discarding stale page %d (latest is %d)", generation, self._generation
            )
            return None
        if result.generation and result.generation != generation:
            logger.debug(
                "Discarding page echoing draw %d for request %d",
                result.generation,
                generation,
            )
            return None

        result.generation = generation
        self.state.query = query
        self.state.result = result
        self.state.rows = self.pipeline.render_rows(result.rows)
        self.state.loading = False
        self.state.error = None
        return result

    async def goto_page(self, page_index: int) -> PageResult | None:
        return await self.query(self.current_query().with_changes(page_index=page_index))

    async def set_page_size(self, page_size: int) -> PageResult | None:
        """Change the page length, keeping the first visible row on screen."""
        current = self.current_query()
        if page_size not in ALLOWED_PAGE_SIZES:
            raise InvalidPageQueryError(
                f"page_size must be one of {list(ALLOWED_PAGE_SIZES)}, got {page_size}",
                details={"page_size": page_size},
            )
        return await self.query(
            current.with_changes(page_size=page_size, page_index=current.offset // page_size)
        )

    async def sort_by(self, column: int, direction: str = "asc") -> PageResult | None:
        """Re-sort on `column`; ordering changes return to the first page."""
        return await self.query(
            self.current_query().with_changes(
                sort=SortRule(column, direction), page_index=0
            )
        )

    async def search(self, term: str | None) -> PageResult | None:
        """Filter by `term`; filter changes return to the first page."""
        return await self.query(
            self.current_query().with_changes(search_term=term or None, page_index=0)
        )

    async def retry(self) -> PageResult | None:
        """Re-issue the latest query after a failure."""
        return await self.query(self.current_query())

    def close(self) -> None:
        """Tear down: replies still in flight will be dropped."""
        self._closed = True

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation
