"""Pytest fixtures shared across all addrview tests."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from addrview.config import (
    AddrviewConfig,
    BackendConfig,
    LoggingConfig,
    OutputConfig,
    TableConfig,
)
from addrview.models import AddressSummary, ContractArtifact, InternalTrace, PageResult

SUBJECT = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
SUBJECT_CHECKSUMMED = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
OTHER = "0x28c6c06298d514db089934071355e5743bf21d60"
BASE_URL = "http://explorer.test"

NOW = datetime(2026, 2, 22, 12, 0, 0, tzinfo=UTC)
NOW_TS = int(NOW.timestamp())


def make_row(
    i: int = 0,
    from_addr: str = OTHER,
    to_addr: str = SUBJECT,
    ts: int | None = None,
) -> list[Any]:
    """One raw table row in column-contract order."""
    return [
        f"0xtx{i:04d}",
        18_000_000 + i,
        from_addr,
        to_addr,
        "1.5",
        f"key{i}",
        ts if ts is not None else NOW_TS - 3600 * (i + 1),
    ]


def make_page_payload(
    rows: list[list[Any]],
    total: int,
    filtered: int | None = None,
    draw: int | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "recordsTotal": total,
        "recordsFiltered": total if filtered is None else filtered,
        "data": rows,
    }
    if draw is not None:
        payload["draw"] = draw
    return payload


def page_from_envelope(envelope: dict[str, str], total: int = 50) -> PageResult:
    """Fake server: honours start/length and echoes draw."""
    start = int(envelope["start"])
    length = int(envelope["length"])
    rows = [make_row(i) for i in range(start, min(start + length, total))]
    return PageResult.from_response(
        make_page_payload(rows, total, draw=int(envelope["draw"]))
    )


@pytest.fixture
def summary_payload() -> dict[str, Any]:
    """Summary-service response for a plain account."""
    return {
        "balance": "12.345678901234567890",
        "count": 50,
        "bytecode": "0x",
        "checksummedAddr": SUBJECT_CHECKSUMMED,
        "isContract": False,
    }


@pytest.fixture
def contract_summary_payload(summary_payload: dict[str, Any]) -> dict[str, Any]:
    return {**summary_payload, "bytecode": "0x6080604052", "isContract": True}


@pytest.fixture
def trace_payload() -> list[dict[str, Any]]:
    """Internal-trace response in nested (action/result) form."""
    return [
        {
            "action": {
                "callType": "call",
                "from": SUBJECT,
                "to": OTHER,
                "value": "0xde0b6b3a7640000",
                "gas": "0x2710",
            },
            "blockNumber": 18000001,
            "result": {"gasUsed": "0x5208", "output": "0x"},
            "subtraces": 0,
            "traceAddress": [0],
            "transactionHash": "0xtx0001",
            "type": "call",
        }
    ]


@pytest.fixture
def contract_payload() -> dict[str, Any]:
    return {
        "address": SUBJECT,
        "contractName": "Token",
        "compilerVersion": "v0.8.19+commit.7dd6d404",
        "optimization": True,
        "sourceCode": "contract Token {}",
        "abi": "[]",
        "byteCode": "0x6080",
    }


@pytest.fixture
def summary() -> AddressSummary:
    return AddressSummary(
        address_hash=SUBJECT,
        checksummed_address=SUBJECT_CHECKSUMMED,
        balance=Decimal("12.5"),
        transaction_count=50,
        is_contract=False,
    )


@pytest.fixture
def backend(summary: AddressSummary) -> MagicMock:
    """ExplorerBackend double; every service succeeds by default."""
    b = MagicMock()
    b.get_summary = AsyncMock(return_value=summary)
    b.get_signed_count = AsyncMock(return_value=7)
    b.get_transactions_page = AsyncMock(side_effect=page_from_envelope)
    b.get_internal_traces = AsyncMock(
        return_value=[
            InternalTrace(
                tx_hash="0xtx0001",
                block_number=18_000_001,
                call_type="call",
                from_addr=SUBJECT,
                to_addr=OTHER,
                value=Decimal(1),
            )
        ]
    )
    b.find_contract = AsyncMock(
        return_value=ContractArtifact(address=SUBJECT, source_code="contract A {}")
    )
    b.close = AsyncMock()
    return b


@pytest.fixture
def sample_config() -> AddrviewConfig:
    """Minimal valid AddrviewConfig for tests."""
    return AddrviewConfig(
        backend=BackendConfig(base_url=BASE_URL, timeout_seconds=5.0),
        table=TableConfig(page_length=20, sort_column=6, sort_direction="desc"),
        output=OutputConfig(default_format="json", color=False),
        logging=LoggingConfig(level="WARNING"),
    )
