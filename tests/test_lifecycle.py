"""Tests for addrview/lifecycle.py — activation and teardown."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from addrview.config import TableConfig
from addrview.exceptions import ViewClosedError
from addrview.lifecycle import ViewLifecycle, parse_fragment
from addrview.models import AddressSummary

from tests.conftest import NOW, OTHER, SUBJECT


@pytest.mark.parametrize(
    "location, expected",
    [
        (None, None),
        ("", None),
        (f"/addr/{SUBJECT}", None),
        (f"/addr/{SUBJECT}#", None),
        (f"/addr/{SUBJECT}#internal", "internal"),
        ("#contract", "contract"),
    ],
)
def test_parse_fragment(location, expected) -> None:
    assert parse_fragment(location) == expected


async def test_activate_sets_tab_and_mounts_panel(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(backend, now=NOW)
    state = await lifecycle.activate(SUBJECT, f"/addr/{SUBJECT}#contract")
    await lifecycle.settle()

    assert state.active_tab == "contract"
    assert lifecycle.contract_panel is not None
    assert lifecycle.contract_panel.loaded is True
    backend.find_contract.assert_awaited_once_with(SUBJECT)
    await lifecycle.deactivate()


async def test_activate_defaults_to_transactions_tab(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(backend, now=NOW)
    state = await lifecycle.activate(SUBJECT, f"/addr/{SUBJECT}")
    assert state.active_tab == "transactions"
    await lifecycle.deactivate()


async def test_activate_is_idempotent(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(backend, now=NOW)
    first = await lifecycle.activate(SUBJECT, "#internal")
    second = await lifecycle.activate(SUBJECT, "#internal")
    await lifecycle.settle()

    assert first is second
    assert lifecycle.activations == 1
    backend.get_summary.assert_awaited_once()
    backend.get_signed_count.assert_awaited_once()
    backend.find_contract.assert_awaited_once()
    await lifecycle.deactivate()


async def test_new_address_reactivates(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(backend, now=NOW)
    await lifecycle.activate(SUBJECT)
    old_view = lifecycle.view
    await lifecycle.activate(OTHER)

    assert lifecycle.activations == 2
    assert old_view is not None and old_view.closed
    assert lifecycle.view is not old_view
    await lifecycle.deactivate()


async def test_table_config_drives_first_query(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(
        backend, table=TableConfig(page_length=50, sort_column=1, sort_direction="asc"), now=NOW
    )
    await lifecycle.activate(SUBJECT)
    await lifecycle.settle()

    envelope = backend.get_transactions_page.await_args.args[0]
    assert envelope["length"] == "50"
    assert envelope["order[0][column]"] == "1"
    assert envelope["order[0][dir]"] == "asc"
    await lifecycle.deactivate()


async def test_panel_can_be_skipped(backend: MagicMock) -> None:
    lifecycle = ViewLifecycle(backend, mount_contract_panel=False, now=NOW)
    await lifecycle.activate(SUBJECT)
    await lifecycle.settle()
    assert lifecycle.contract_panel is None
    backend.find_contract.assert_not_awaited()


async def test_settle_before_activate_raises(backend: MagicMock) -> None:
    with pytest.raises(ViewClosedError):
        await ViewLifecycle(backend).settle()


async def test_deactivate_drops_pending_replies(backend: MagicMock, summary: AddressSummary) -> None:
    gate = asyncio.Event()

    async def slow_summary(address: str) -> AddressSummary:
        await gate.wait()
        return summary

    backend.get_summary = AsyncMock(side_effect=slow_summary)
    async with ViewLifecycle(backend, now=NOW) as lifecycle:
        state = await lifecycle.activate(SUBJECT)
        await asyncio.sleep(0)

    gate.set()
    await asyncio.sleep(0)
    assert lifecycle.active is False
    assert state.summary.transaction_count == 0
    backend.get_transactions_page.assert_not_awaited()
