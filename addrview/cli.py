"""Click CLI entry point for addrview.

All commands are thin orchestration wrappers — business logic lives in
view, pagination, columns, contract, lifecycle and fetchers modules.

Exit codes:
  0 — success (a degraded view is still a success)
  1 — generic error
  2 — API error, malformed response, rate limit
  3 — network error
  4 — data error (invalid address, invalid page query)
  5 — config error
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
import sys
from pathlib import Path
from typing import Any

import click

from addrview import __version__
from addrview.config import (
    AddrviewConfig,
    get_default_config_path,
    load_config,
    save_config,
)
from addrview.exceptions import AddrviewError, InvalidAddressError
from addrview.fetchers import get_backend
from addrview.lifecycle import ViewLifecycle
from addrview.models import ALLOWED_PAGE_SIZES, ROW_WIDTH
from addrview.output import format_output

logger = logging.getLogger("addrview")

# 0x + 40 hex chars
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ── Error handler ─────────────────────────────────────────────────────────────


def _output_error(err: AddrviewError | Exception) -> None:
    """Write error JSON to stderr."""
    if isinstance(err, AddrviewError):
        payload = err.to_dict()
        exit_code = err.exit_code
    else:
        payload = {"error": "unknown_error", "message": str(err), "details": {}}
        exit_code = 1
    sys.stderr.write(json.dumps(payload) + "\n")
    sys.stderr.flush()
    sys.exit(exit_code)


def _configure_logging(level: str) -> None:
    root = logging.getLogger("addrview")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    else:
        # stderr may have been swapped since the first call
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setStream(sys.stderr)
    root.setLevel(level.upper())


def _validate_address(address: str) -> None:
    if not ADDRESS_RE.match(address):
        raise InvalidAddressError(
            f"Invalid address: {address!r}. Must be 0x + 40 hex chars.",
            details={"address": address},
        )


# ── Root group ────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    envvar="ADDRVIEW_CONFIG",
    default=None,
    help="Config file path (default: ~/.addrview/config.toml)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default=None,
    help="Output format (overrides config default)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (overrides config)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    output_format: str | None,
    log_level: str | None,
) -> None:
    """addrview — blockchain address page from an explorer backend."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except AddrviewError as e:
        # On config errors, use defaults (so config init still works)
        config = AddrviewConfig()
        ctx.obj["config_error"] = e.to_dict()

    _configure_logging(log_level or config.logging.level)
    if "config_error" in ctx.obj:
        logger.warning("Ignoring invalid config: %s", ctx.obj["config_error"]["message"])

    ctx.obj["config"] = config
    ctx.obj["format"] = output_format or config.output.default_format
    ctx.obj["config_path"] = config_path


# ── Address view ──────────────────────────────────────────────────────────────


@cli.command("show")
@click.argument("address")
@click.option("--tab", default=None, help="Initially active tab (location fragment)")
@click.option("--page", default=0, type=click.IntRange(0), show_default=True)
@click.option(
    "--page-size",
    default=None,
    type=click.Choice([str(s) for s in ALLOWED_PAGE_SIZES]),
    help="Rows per page (default from config)",
)
@click.option(
    "--sort-column",
    default=None,
    type=click.IntRange(0, ROW_WIDTH - 1),
    help="Column to order by (0, 2, 3 and 5 are not orderable)",
)
@click.option("--sort-dir", default=None, type=click.Choice(["asc", "desc"]))
@click.option("--search", default=None, help="Filter transactions")
@click.option("--no-contract", is_flag=True, help="Skip the contract source lookup")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default=None)
@click.pass_context
def show_command(
    ctx: click.Context,
    address: str,
    tab: str | None,
    page: int,
    page_size: str | None,
    sort_column: int | None,
    sort_dir: str | None,
    search: str | None,
    no_contract: bool,
    fmt: str | None,
) -> None:
    """Show balance, counts and transactions for ADDRESS."""
    config: AddrviewConfig = ctx.obj["config"]
    fmt = fmt or ctx.obj.get("format", "table")

    if page_size is not None:
        config.table.page_length = int(page_size)
    if sort_column is not None:
        config.table.sort_column = sort_column
        config.table.sort_direction = sort_dir or "asc"
    elif sort_dir is not None:
        config.table.sort_direction = sort_dir

    async def _run() -> dict[str, Any]:
        _validate_address(address)
        backend = get_backend(config)
        location = f"/addr/{address}#{tab}" if tab else f"/addr/{address}"
        try:
            async with ViewLifecycle(
                backend, table=config.table, mount_contract_panel=not no_contract
            ) as lifecycle:
                await lifecycle.activate(address, location)
                state = await lifecycle.settle()

                table = lifecycle.view.table
                if search:
                    await table.search(search)
                if page:
                    await table.goto_page(page)

                result = state.to_dict()
                if lifecycle.contract_panel is not None:
                    result["contract_source"] = lifecycle.contract_panel.to_dict()
                return result
        finally:
            await backend.close()

    try:
        result = asyncio.run(_run())
        click.echo(format_output(result, fmt, color=config.output.color))
    except AddrviewError as e:
        _output_error(e)


@cli.command("traces")
@click.argument("address")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default=None)
@click.pass_context
def traces_command(ctx: click.Context, address: str, fmt: str | None) -> None:
    """List internal transactions attributed to ADDRESS."""
    config: AddrviewConfig = ctx.obj["config"]
    fmt = fmt or ctx.obj.get("format", "table")

    async def _run() -> dict[str, Any]:
        _validate_address(address)
        backend = get_backend(config)
        try:
            traces = await backend.get_internal_traces(address)
        finally:
            await backend.close()
        return {
            "address": address,
            "count": len(traces),
            "internal_transactions": [t.to_dict() for t in traces],
        }

    try:
        result = asyncio.run(_run())
        click.echo(format_output(result, fmt, color=config.output.color))
    except AddrviewError as e:
        _output_error(e)


@cli.command("contract")
@click.argument("address")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default=None)
@click.pass_context
def contract_command(ctx: click.Context, address: str, fmt: str | None) -> None:
    """Show verified contract source for ADDRESS."""
    config: AddrviewConfig = ctx.obj["config"]
    fmt = fmt or ctx.obj.get("format", "table")

    async def _run() -> dict[str, Any]:
        _validate_address(address)
        backend = get_backend(config)
        try:
            artifact = await backend.find_contract(address)
        finally:
            await backend.close()
        return {
            "address": address,
            "found": artifact is not None,
            "contract": artifact.to_dict() if artifact else None,
        }

    try:
        result = asyncio.run(_run())
        click.echo(format_output(result, fmt, color=config.output.color))
    except AddrviewError as e:
        _output_error(e)


# ── Config commands ───────────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Manage addrview configuration."""


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing config")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Initialize default config at ~/.addrview/config.toml."""
    provided = ctx.obj.get("config_path")
    config_path = Path(provided) if provided else get_default_config_path()

    if config_path.exists() and not force:
        click.echo(
            json.dumps(
                {
                    "status": "already_exists",
                    "config_path": str(config_path),
                    "hint": "Use --force to reinitialize",
                }
            )
        )
        return

    status = "initialized"
    backup = None
    if config_path.exists() and force:
        backup = str(config_path) + ".bak"
        shutil.copy2(config_path, backup)
        status = "reinitialized"

    save_config(AddrviewConfig(), str(config_path))
    result: dict[str, Any] = {"status": status, "config_path": str(config_path)}
    if backup:
        result["backup_path"] = backup
    click.echo(json.dumps(result))


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the resolved configuration."""
    config: AddrviewConfig = ctx.obj["config"]
    provided = ctx.obj.get("config_path")
    result = {
        "config_path": provided or str(get_default_config_path()),
        "backend": {
            "base_url": config.backend.base_url,
            "timeout_seconds": config.backend.timeout_seconds,
            "summary_path": config.backend.summary_path,
            "signed_path": config.backend.signed_path,
            "transactions_path": config.backend.transactions_path,
            "trace_path": config.backend.trace_path,
            "contract_path": config.backend.contract_path,
        },
        "table": {
            "page_length": config.table.page_length,
            "sort_column": config.table.sort_column,
            "sort_direction": config.table.sort_direction,
        },
        "output": {
            "default_format": config.output.default_format,
            "color": config.output.color,
        },
        "logging": {"level": config.logging.level},
    }
    click.echo(format_output(result, "json"))
