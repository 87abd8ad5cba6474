"""Backend protocol shared by the view components."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from addrview.models import AddressSummary, ContractArtifact, InternalTrace, PageResult


@runtime_checkable
class ExplorerBackend(Protocol):
    """
    Protocol for the five explorer services an address view consumes.

    Backends are responsible for:
    - Making the HTTP calls
    - Mapping transport failures into the addrview exception hierarchy
    - Building typed records from the payloads (models.*.from_response)

    Backends are NOT responsible for:
    - Deciding when a fetch happens (that's view.py)
    - Pagination state or staleness (that's pagination.py)
    - Cell formatting (that's columns.py)
    """

    async def get_summary(self, address: str) -> AddressSummary:
        """
        Fetch balance, nonce, bytecode and checksummed form for `address`.

        Raises:
            NetworkError: Request never reached the backend or never returned
            ServerError: Non-success response or malformed payload
        """
        ...

    async def get_signed_count(self, address: str) -> int:
        """Number of blocks signed by `address`."""
        ...

    async def get_transactions_page(self, envelope: dict[str, str]) -> PageResult:
        """
        POST one server-side-processing request and return its page.

        `envelope` is the complete form body (addr, count and the
        pagination fields) built by the page fetcher. A page with zero
        rows is a valid result, not an error.
        """
        ...

    async def get_internal_traces(self, address: str) -> list[InternalTrace]:
        """Ordered internal-call records attributed to `address`."""
        ...

    async def find_contract(self, address: str) -> ContractArtifact | None:
        """Verified contract source for `address`, or None if not found."""
        ...

    async def close(self) -> None:
        ...
