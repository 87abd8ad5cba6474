"""
Explorer relay client — async httpx client for the address-view services.

Services (paths configurable, see config.BackendConfig):
  summary         POST JSON {addr, options}          → balance/count/bytecode/...
  signed count    POST JSON {addr}                   → {signed}
  transactions    POST form {addr, count, envelope}  → server-side table page
  internal traces POST JSON {addr_trace}             → [trace, ...]
  contract lookup POST JSON {addr, action: "find"}   → artifact | not-found

Design decisions:
- One shared httpx.AsyncClient per view; requests are independent tasks.
- Transport failures map to NetworkError subclasses, non-2xx to ServerError.
- Payloads are validated into typed records here, never passed on raw.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from addrview.config import BackendConfig
from addrview.exceptions import (
    ConnectionFailedError,
    MalformedResponseError,
    NetworkError,
    NetworkTimeoutError,
    RateLimitError,
    ServerError,
)
from addrview.models import (
    SUMMARY_OPTIONS,
    AddressSummary,
    ContractArtifact,
    InternalTrace,
    PageResult,
    parse_signed_count,
    parse_trace_set,
)

logger = logging.getLogger(__name__)


class RelayClient:
    """
    Async client for an explorer backend.

    All methods POST to the configured service paths under `base_url`.
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or BackendConfig()
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
        )

    async def get_summary(self, address: str) -> AddressSummary:
        data = await self._post_json(
            self._config.summary_path,
            {"addr": address, "options": list(SUMMARY_OPTIONS)},
        )
        return AddressSummary.from_response(address, data)

    async def get_signed_count(self, address: str) -> int:
        data = await self._post_json(self._config.signed_path, {"addr": address})
        return parse_signed_count(data)

    async def get_transactions_page(self, envelope: dict[str, str]) -> PageResult:
        data = await self._request(self._config.transactions_path, data=envelope)
        return PageResult.from_response(data)

    async def get_internal_traces(self, address: str) -> list[InternalTrace]:
        data = await self._post_json(self._config.trace_path, {"addr_trace": address})
        return parse_trace_set(data)

    async def find_contract(self, address: str) -> ContractArtifact | None:
        data = await self._post_json(
            self._config.contract_path, {"addr": address, "action": "find"}
        )
        return ContractArtifact.from_response(address, data)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RelayClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────────────────────

    async def _post_json(self, path: str, body: dict[str, Any]) -> Any:
        return await self._request(path, json=body)

    async def _request(self, path: str, **kwargs: Any) -> Any:
        """POST and decode the JSON body, mapping failures to addrview errors."""
        logger.debug("POST %s", path)
        try:
            resp = await self._client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(f"Timeout calling {path}: {e}") from e
        except httpx.ConnectError as e:
            raise ConnectionFailedError(f"Cannot connect to backend for {path}: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Transport failure calling {path}: {e}") from e

        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After", "60")
            raise RateLimitError(
                f"Rate limited on {path}",
                retry_after=int(retry_after) if retry_after.isdigit() else 60,
            )
        if not resp.is_success:
            raise ServerError(
                f"{path} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                path=path,
            )

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"{path} returned non-JSON body") from e
