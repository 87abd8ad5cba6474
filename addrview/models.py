"""
Shared data models for addrview.

These dataclasses are the canonical data shapes used across all modules:
fetchers build them from backend payloads, the view model owns them,
output renders them. Raw dicts never travel past the fetcher boundary;
each record validates its payload in ``from_response`` and raises
MalformedResponseError on shape violations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any

from addrview.exceptions import InvalidPageQueryError, MalformedResponseError

# Row column contract for the paged-transactions response (0-indexed)
COL_TX_HASH = 0
COL_BLOCK = 1
COL_FROM = 2
COL_TO = 3
COL_VALUE = 4
COL_HIDDEN_KEY = 5
COL_TIMESTAMP = 6
ROW_WIDTH = 7

ALLOWED_PAGE_SIZES = (10, 20, 50, 100, 250)
DEFAULT_PAGE_SIZE = 20
UNORDERABLE_COLUMNS = frozenset({COL_TX_HASH, COL_FROM, COL_TO})
HIDDEN_COLUMNS = frozenset({COL_HIDDEN_KEY})
SORT_DIRECTIONS = ("asc", "desc")

SUMMARY_OPTIONS = ["balance", "count", "bytecode", "checksummedAddr"]


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise MalformedResponseError(f"{name} is not an integer: {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedResponseError(f"{name} is not an integer: {value!r}") from e
    if result < 0:
        raise MalformedResponseError(f"{name} must be non-negative, got {result}")
    return result


def _to_decimal(value: Any, name: str) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedResponseError(f"{name} is not numeric: {value!r}") from e


def _quantity(value: Any) -> int | None:
    """Integer from a JSON-RPC hex quantity or a decimal value; None passes through."""
    if value is None:
        return None
    if isinstance(value, str) and value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)


@dataclass(frozen=True)
class AddressSummary:
    """
    Aggregate view of one address.

    Immutable: a re-fetch replaces the whole value, the signed-block count
    is carried over with ``with_signed``.
    """

    address_hash: str
    checksummed_address: str
    balance: Decimal = Decimal(0)
    transaction_count: int = 0
    is_contract: bool = False
    signed_block_count: int = 0
    bytecode: str | None = None

    @classmethod
    def placeholder(cls, address_hash: str) -> AddressSummary:
        """Pre-fetch defaults: balance 0, count 0, signed 0."""
        return cls(address_hash=address_hash, checksummed_address=address_hash)

    @classmethod
    def from_response(
        cls, address_hash: str, raw: Any, signed_block_count: int = 0
    ) -> AddressSummary:
        """Build from a summary-service payload."""
        if not isinstance(raw, dict):
            raise MalformedResponseError(
                f"Summary response must be an object, got {type(raw).__name__}"
            )
        bytecode = raw.get("bytecode")
        is_contract = raw.get("isContract")
        if is_contract is None:
            is_contract = bool(bytecode) and bytecode not in ("0x", "0x0")
        return cls(
            address_hash=address_hash,
            checksummed_address=raw.get("checksummedAddr") or address_hash,
            balance=_to_decimal(raw.get("balance"), "balance"),
            transaction_count=_to_int(raw.get("count", 0), "count"),
            is_contract=bool(is_contract),
            signed_block_count=signed_block_count,
            bytecode=bytecode or None,
        )

    def with_signed(self, signed_block_count: int) -> AddressSummary:
        return replace(self, signed_block_count=signed_block_count)

    def to_dict(self) -> dict:
        return {
            "address": self.address_hash,
            "checksummed_address": self.checksummed_address,
            "balance": self.balance,
            "count": self.transaction_count,
            "is_contract": self.is_contract,
            "signed": self.signed_block_count,
        }


def parse_signed_count(raw: Any) -> int:
    """Extract the signed-block count from a signed-service payload."""
    if not isinstance(raw, dict) or "signed" not in raw:
        raise MalformedResponseError("Signed response is missing 'signed'")
    return _to_int(raw["signed"], "signed")


@dataclass
class TransactionRow:
    """One row of a transaction page. Lives only inside its PageResult."""

    tx_hash: str
    block_number: Any
    from_addr: str
    to_addr: str
    value: Any
    hidden_key: Any
    timestamp: Any              # unix seconds, numeric string or ISO8601
    extra: tuple = ()           # columns past the timestamp (gas info, ...)

    @classmethod
    def from_response(cls, raw: Any) -> TransactionRow:
        if isinstance(raw, dict):
            # Object rows keyed by column index
            raw = [raw.get(str(i), raw.get(i)) for i in range(max(ROW_WIDTH, len(raw)))]
        if not isinstance(raw, (list, tuple)) or len(raw) < ROW_WIDTH:
            raise MalformedResponseError(
                f"Transaction row must have at least {ROW_WIDTH} columns: {raw!r}"
            )
        return cls(
            tx_hash=str(raw[COL_TX_HASH]),
            block_number=raw[COL_BLOCK],
            from_addr="" if raw[COL_FROM] is None else str(raw[COL_FROM]),
            to_addr="" if raw[COL_TO] is None else str(raw[COL_TO]),
            value=raw[COL_VALUE],
            hidden_key=raw[COL_HIDDEN_KEY],
            timestamp=raw[COL_TIMESTAMP],
            extra=tuple(raw[ROW_WIDTH:]),
        )

    def cells(self) -> list[Any]:
        """Cells in column-contract order."""
        return [
            self.tx_hash,
            self.block_number,
            self.from_addr,
            self.to_addr,
            self.value,
            self.hidden_key,
            self.timestamp,
            *self.extra,
        ]


@dataclass(frozen=True)
class SortRule:
    """A single server-side ordering rule."""

    column: int
    direction: str = "desc"


@dataclass(frozen=True)
class PageQuery:
    """One window/sort/filter request against the transaction table."""

    subject_address: str
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    sort: SortRule = field(default_factory=lambda: SortRule(COL_TIMESTAMP, "desc"))
    search_term: str | None = None

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    def validate(self) -> None:
        """Reject the query before dispatch if it breaks the table contract."""
        if self.page_size not in ALLOWED_PAGE_SIZES:
            raise InvalidPageQueryError(
                f"page_size must be one of {list(ALLOWED_PAGE_SIZES)}, got {self.page_size}",
                details={"page_size": self.page_size},
            )
        if self.page_index < 0:
            raise InvalidPageQueryError(
                f"page_index must be non-negative, got {self.page_index}",
                details={"page_index": self.page_index},
            )
        if self.sort.direction not in SORT_DIRECTIONS:
            raise InvalidPageQueryError(
                f"sort direction must be 'asc' or 'desc', got {self.sort.direction!r}",
                details={"direction": self.sort.direction},
            )
        if (
            self.sort.column in UNORDERABLE_COLUMNS
            or self.sort.column in HIDDEN_COLUMNS
            or not 0 <= self.sort.column < ROW_WIDTH
        ):
            raise InvalidPageQueryError(
                f"Column {self.sort.column} is not orderable",
                details={"column": self.sort.column},
            )

    def with_changes(self, **changes: Any) -> PageQuery:
        return replace(self, **changes)


@dataclass
class PageResult:
    """Rows for one page plus the server's record totals."""

    rows: list[TransactionRow]
    total_records: int
    total_filtered_records: int
    generation: int = 0

    @classmethod
    def from_response(cls, raw: Any, generation: int = 0) -> PageResult:
        """Build from a server-side-processing table payload."""
        if not isinstance(raw, dict):
            raise MalformedResponseError(
                f"Table response must be an object, got {type(raw).__name__}"
            )
        if "error" in raw and raw["error"]:
            raise MalformedResponseError(f"Table backend error: {raw['error']}")

        total = _to_int(raw.get("recordsTotal", 0), "recordsTotal")
        filtered = _to_int(raw.get("recordsFiltered", total), "recordsFiltered")
        if filtered > total:
            raise MalformedResponseError(
                f"recordsFiltered ({filtered}) exceeds recordsTotal ({total})"
            )
        data = raw.get("data", [])
        if not isinstance(data, list):
            raise MalformedResponseError("Table response 'data' must be a list")

        if "draw" in raw:
            generation = _to_int(raw["draw"], "draw")

        return cls(
            rows=[TransactionRow.from_response(r) for r in data],
            total_records=total,
            total_filtered_records=filtered,
            generation=generation,
        )


@dataclass
class InternalTrace:
    """One internal call made by contract code during a transaction."""

    tx_hash: str
    block_number: int | None
    call_type: str
    from_addr: str
    to_addr: str
    value: Decimal
    gas_used: int | None = None
    trace_address: list[int] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_response(cls, raw: Any) -> InternalTrace:
        """Accepts nested (``action``/``result``) and flat trace records."""
        if not isinstance(raw, dict):
            raise MalformedResponseError(f"Trace record must be an object: {raw!r}")
        action = raw.get("action") or raw
        result = raw.get("result") or {}
        if not isinstance(action, dict):
            raise MalformedResponseError(f"Trace action must be an object: {action!r}")
        if not isinstance(result, dict):
            raise MalformedResponseError(f"Trace result must be an object: {result!r}")

        try:
            value = action.get("value", 0)
            if isinstance(value, str) and value.lower().startswith("0x"):
                value = int(value, 16)
            gas_used = _quantity(result.get("gasUsed", raw.get("gasUsed")))
            block = _quantity(raw.get("blockNumber"))
            trace_address = [int(i) for i in raw.get("traceAddress") or []]
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedResponseError(f"Invalid trace record: {e}") from e

        return cls(
            tx_hash=str(raw.get("transactionHash") or raw.get("hash") or ""),
            block_number=block,
            call_type=str(action.get("callType") or raw.get("type") or "call"),
            from_addr=str(action.get("from") or ""),
            to_addr=str(action.get("to") or action.get("address") or ""),
            value=_to_decimal(value, "value"),
            gas_used=gas_used,
            trace_address=trace_address,
            error=raw.get("error"),
        )

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "type": self.call_type,
            "from": self.from_addr,
            "to": self.to_addr,
            "value": self.value,
            "gas_used": self.gas_used,
            "trace_address": self.trace_address,
            "error": self.error,
        }


def parse_trace_set(raw: Any) -> list[InternalTrace]:
    """Build the ordered internal-trace set for an address."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise MalformedResponseError(
            f"Trace response must be a list, got {type(raw).__name__}"
        )
    return [InternalTrace.from_response(r) for r in raw]


@dataclass(frozen=True)
class ContractArtifact:
    """Verified source and metadata for a contract address."""

    address: str
    contract_name: str = ""
    compiler_version: str = ""
    optimization: bool = False
    source_code: str = ""
    abi: Any = None
    bytecode: str = ""

    @classmethod
    def from_response(cls, address: str, raw: Any) -> ContractArtifact | None:
        """Return None for the lookup service's "not found" answers."""
        if not raw or not isinstance(raw, dict):
            return None
        if raw.get("valid") is False or raw.get("found") is False:
            return None
        source = raw.get("sourceCode") or raw.get("source") or ""
        if not source and not raw.get("abi"):
            return None
        return cls(
            address=raw.get("address") or address,
            contract_name=raw.get("contractName", ""),
            compiler_version=raw.get("compilerVersion", ""),
            optimization=bool(raw.get("optimization", False)),
            source_code=source,
            abi=raw.get("abi"),
            bytecode=raw.get("byteCode") or raw.get("bytecode") or "",
        )

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "contract_name": self.contract_name,
            "compiler_version": self.compiler_version,
            "optimization": self.optimization,
            "source_code": self.source_code,
            "abi": self.abi,
        }
