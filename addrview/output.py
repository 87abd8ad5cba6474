"""Output format routing for addrview.

Converts result dicts to the requested format: json or table.

Design rules:
- JSON: 2-space indent, deterministic key order, utf-8, Decimal as string
- Table: Rich-formatted; linked cells keep their href as a link style

All functions return strings. The caller writes to stdout.
"""

from __future__ import annotations

import io
import json
from decimal import Decimal
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.style import Style
from rich.table import Table
from rich.text import Text

VALID_FORMATS = {"json", "table"}


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that keeps Decimal balances exact."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


def format_output(data: Any, fmt: str, color: bool = True) -> str:
    """
    Format data for stdout output.

    Args:
        data: Result dict, list, or any JSON-serialisable value.
        fmt: "json" | "table"
        color: Emit ANSI styling in table output.

    Raises:
        ValueError: If fmt is not a recognised format.
    """
    fmt = fmt.lower()
    if fmt not in VALID_FORMATS:
        raise ValueError(f"Unknown format {fmt!r}. Valid: {sorted(VALID_FORMATS)}")

    if fmt == "table":
        return format_table(data, color=color)
    return format_json(data)


# ── JSON ─────────────────────────────────────────────────────────────────────


def format_json(data: Any) -> str:
    """Pretty-print data as JSON (2-space indent)."""
    return json.dumps(data, indent=2, cls=DecimalEncoder, ensure_ascii=False)


# ── Table ────────────────────────────────────────────────────────────────────


def format_table(data: Any, color: bool = True) -> str:
    """
    Format as Rich terminal tables.

    Handles:
    - Address view (dict with 'address' and 'transactions')
    - Internal traces (dict with 'internal_transactions' only)
    - Contract lookup (dict with 'contract')
    - Generic dict fallback
    """
    buf = io.StringIO()
    console = Console(
        file=buf,
        highlight=False,
        markup=True,
        width=160,
        no_color=not color,
        force_terminal=color,
    )

    if isinstance(data, dict) and "transactions" in data and "address" in data:
        _render_view(console, data)
    elif isinstance(data, dict) and "internal_transactions" in data:
        _render_traces(console, data.get("internal_transactions") or [])
    elif isinstance(data, dict) and "contract" in data:
        _render_contract(console, data)
    else:
        console.print_json(json.dumps(data, cls=DecimalEncoder))

    return buf.getvalue()


def _cell_text(cell: dict[str, Any]) -> Text:
    href = cell.get("href")
    if href:
        return Text(cell.get("text", ""), style=Style(color="cyan", link=href))
    return Text(cell.get("text", ""))


def _render_view(console: Console, data: dict[str, Any]) -> None:
    addr = data.get("address", {})
    summary = Table(
        title=escape(f"{data.get('title', 'Address')} {data.get('subtitle', '')}"),
        show_header=False,
        header_style="bold blue",
    )
    summary.add_column("Field", style="bold")
    summary.add_column("Value")
    summary.add_row("Balance", str(addr.get("balance", 0)))
    summary.add_row("Transactions", str(addr.get("count", 0)))
    summary.add_row("Signed blocks", str(addr.get("signed", 0)))
    summary.add_row("Contract", "yes" if addr.get("is_contract") else "no")
    console.print(summary)

    for name, err in (data.get("errors") or {}).items():
        if err:
            message = escape(str(err.get("message", "")))
            console.print(f"[yellow]{name} unavailable:[/yellow] {message}")

    _render_transactions(console, data.get("transactions", {}))

    traces = data.get("internal_transactions")
    if traces is not None:
        _render_traces(console, traces)

    contract = data.get("contract_source")
    if contract and contract.get("loaded"):
        if contract.get("found"):
            _render_contract(console, {"contract": contract.get("contract")})
        elif not contract.get("error"):
            console.print("[dim]No verified contract source[/dim]")


def _render_transactions(console: Console, table_data: dict[str, Any]) -> None:
    titles = table_data.get("columns") or ["TxHash", "Block", "From", "To", "Value", "Age"]
    table = Table(title="Transactions", show_header=True, header_style="bold blue")
    for title in titles:
        table.add_column(title, no_wrap=True)
    for row in table_data.get("rows", []):
        table.add_row(*[_cell_text(c) for c in row])
    console.print(table)

    if table_data.get("message"):
        console.print(Text(str(table_data["message"]), style="italic"))
    info = table_data.get("info", "")
    caption = table_data.get("caption")
    console.print(Text(f"{info} {caption}" if caption else info))
    error = table_data.get("error")
    if error:
        message = escape(str(error.get("message", "")))
        console.print(f"[red]Could not load transactions:[/red] {message}")


def _render_traces(console: Console, traces: list[dict[str, Any]]) -> None:
    table = Table(title="Internal Transactions", header_style="bold blue")
    table.add_column("TxHash", no_wrap=True)
    table.add_column("Block", justify="right")
    table.add_column("Type")
    table.add_column("From", no_wrap=True)
    table.add_column("To", no_wrap=True)
    table.add_column("Value", justify="right")
    for t in traces:
        table.add_row(
            *[
                Text(str(v))
                for v in (
                    t.get("tx_hash", ""),
                    t.get("block_number") or "",
                    t.get("type", ""),
                    t.get("from", ""),
                    t.get("to", ""),
                    t.get("value", ""),
                )
            ]
        )
    console.print(table)


def _render_contract(console: Console, data: dict[str, Any]) -> None:
    contract = data.get("contract")
    if not contract:
        console.print("[dim]No verified contract source[/dim]")
        return
    console.print(
        f"[bold]{escape(str(contract.get('contract_name') or 'Contract'))}[/bold] "
        f"compiler {escape(str(contract.get('compiler_version') or '-'))} "
        f"optimization {'on' if contract.get('optimization') else 'off'}"
    )
    console.print(contract.get("source_code", ""), markup=False)
