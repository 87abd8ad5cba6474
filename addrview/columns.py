"""Per-column render rules for the transaction table.

Rules are pure and synchronous: the same raw cell value and subject
address always render to the same RenderedCell, and the underlying
TransactionRow is never mutated.

Targets:
  0      tx hash      → link /tx/<hash>
  1      block number → link /block/<number>
  2, 3   from / to    → link /addr/<address>, plain text for the subject address
  5      hidden key   → never rendered
  6      timestamp    → "time ago" string relative to the pipeline clock
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable

from addrview.models import (
    COL_BLOCK,
    COL_FROM,
    COL_HIDDEN_KEY,
    COL_TIMESTAMP,
    COL_TO,
    COL_TX_HASH,
    COL_VALUE,
    HIDDEN_COLUMNS,
    TransactionRow,
)

COLUMN_TITLES = {
    COL_TX_HASH: "TxHash",
    COL_BLOCK: "Block",
    COL_FROM: "From",
    COL_TO: "To",
    COL_VALUE: "Value",
    COL_HIDDEN_KEY: "",
    COL_TIMESTAMP: "Age",
}

_UNITS = (
    ("yr", 365 * 86400),
    ("day", 86400),
    ("hr", 3600),
    ("min", 60),
    ("sec", 1),
)


@dataclass(frozen=True)
class RenderedCell:
    """Display form of one cell: text plus an optional link target."""

    text: str
    href: str | None = None

    @property
    def is_link(self) -> bool:
        return self.href is not None

    def to_html(self) -> str:
        text = html.escape(self.text)
        if self.href is None:
            return text
        return f'<a href="{html.escape(self.href, quote=True)}">{text}</a>'

    def to_dict(self) -> dict:
        return {"text": self.text, "href": self.href}


def _from_epoch(seconds: float) -> datetime | None:
    # Out-of-range, NaN and infinite epochs are not timestamps
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """Timestamp cell → aware datetime; None if the value is not a timestamp."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    text = str(value).strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return _from_epoch(seconds)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def format_duration(timestamp: Any, now: datetime) -> str:
    """
    Human "time ago" string for an absolute timestamp.

    Uses the two largest non-zero units: '2 days 3 hrs ago', '45 secs ago'.
    Unparseable values are returned unchanged as text.
    """
    then = parse_timestamp(timestamp)
    if then is None:
        return "" if timestamp is None else str(timestamp)

    remaining = int((now - then).total_seconds())
    if remaining <= 0:
        return "just now"

    parts: list[str] = []
    for name, size in _UNITS:
        qty, remaining = divmod(remaining, size)
        if qty:
            parts.append(f"{qty} {name}" + ("s" if qty != 1 else ""))
        if len(parts) == 2:
            break
    return " ".join(parts) + " ago"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class ColumnRenderPipeline:
    """
    Column rules bound to one subject address and one reference clock.

    The clock is fixed when the pipeline is built so repeated renders of
    the same page agree.
    """

    def __init__(self, subject_address: str, now: datetime | None = None) -> None:
        self.subject_address = subject_address
        self.now = now or datetime.now(tz=UTC)
        self._rules: list[tuple[frozenset[int], Callable[[Any], RenderedCell]]] = [
            (frozenset({COL_FROM, COL_TO}), self._render_address),
            (frozenset({COL_BLOCK}), self._render_block),
            (frozenset({COL_TX_HASH}), self._render_tx),
            (frozenset({COL_TIMESTAMP}), self._render_age),
        ]

    def render_cell(self, column: int, value: Any) -> RenderedCell:
        for targets, rule in self._rules:
            if column in targets:
                return rule(value)
        return RenderedCell(_text(value))

    def render_row(self, row: TransactionRow) -> list[RenderedCell]:
        """Render every visible column of a row; hidden columns are dropped."""
        return [
            self.render_cell(col, value)
            for col, value in enumerate(row.cells())
            if col not in HIDDEN_COLUMNS
        ]

    def render_rows(self, rows: list[TransactionRow]) -> list[list[RenderedCell]]:
        return [self.render_row(r) for r in rows]

    def visible_titles(self, width: int = len(COLUMN_TITLES)) -> list[str]:
        return [
            COLUMN_TITLES.get(col, f"Col {col}")
            for col in range(width)
            if col not in HIDDEN_COLUMNS
        ]

    def is_subject(self, address: Any) -> bool:
        return _text(address).lower() == self.subject_address.lower()

    # ── rules ────────────────────────────────────────────────────────────────

    def _render_address(self, value: Any) -> RenderedCell:
        text = _text(value)
        if not text or self.is_subject(text):
            return RenderedCell(text)
        return RenderedCell(text, f"/addr/{text}")

    def _render_block(self, value: Any) -> RenderedCell:
        text = _text(value)
        return RenderedCell(text, f"/block/{text}")

    def _render_tx(self, value: Any) -> RenderedCell:
        text = _text(value)
        return RenderedCell(text, f"/tx/{text}")

    def _render_age(self, value: Any) -> RenderedCell:
        return RenderedCell(format_duration(value, self.now))
