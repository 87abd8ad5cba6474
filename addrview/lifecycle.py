"""View activation and teardown for the address page."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from addrview.config import TableConfig
from addrview.contract import ContractSourcePanel
from addrview.exceptions import ViewClosedError
from addrview.fetchers.base import ExplorerBackend
from addrview.models import SortRule
from addrview.view import AddressViewModel, ViewState

logger = logging.getLogger(__name__)


def parse_fragment(location: str | None) -> str | None:
    """Tab name after '#' in a location, or None when there is none."""
    if not location:
        return None
    parts = location.split("#", 1)
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


class ViewLifecycle:
    """
    Binds one address page to its view model and contract panel.

    `activate()` does the one-time setup for an activation: a fresh view
    model, the active tab from the location fragment, and the contract
    panel mount. Activating again with the same address and location is a
    no-op; a different one tears the old activation down first.

    Usage:
        async with ViewLifecycle(backend) as lifecycle:
            await lifecycle.activate("0xabc...", "/addr/0xabc...#contract")
            state = await lifecycle.settle()
    """

    def __init__(
        self,
        backend: ExplorerBackend,
        table: TableConfig | None = None,
        mount_contract_panel: bool = True,
        now: datetime | None = None,
    ) -> None:
        self._backend = backend
        self._table = table or TableConfig()
        self._mount_contract_panel = mount_contract_panel
        self._now = now
        self._key: tuple[str, str | None] | None = None
        self.activations = 0
        self.view: AddressViewModel | None = None
        self.contract_panel: ContractSourcePanel | None = None

    @property
    def active(self) -> bool:
        return self._key is not None

    async def activate(self, address_hash: str, location: str | None = None) -> ViewState:
        fragment = parse_fragment(location)
        key = (address_hash, fragment)
        if self._key == key and self.view is not None and self.view.state is not None:
            return self.view.state
        if self.active:
            await self.deactivate()

        self.activations += 1
        self._key = key
        logger.debug("Activating address view for %s (tab=%s)", address_hash, fragment)

        self.view = AddressViewModel(
            self._backend,
            page_length=self._table.page_length,
            sort=SortRule(self._table.sort_column, self._table.sort_direction),
            now=self._now,
        )
        state = await self.view.initialize(address_hash, fragment)

        if self._mount_contract_panel:
            self.contract_panel = ContractSourcePanel(self._backend, address_hash)
            self.contract_panel.mount()
        return state

    async def settle(self) -> ViewState:
        """Wait for the view model and the contract panel to finish loading."""
        if self.view is None:
            raise ViewClosedError("settle() called before activate()")
        state = await self.view.settle()
        if self.contract_panel is not None:
            await self.contract_panel.wait()
        return state

    async def deactivate(self) -> None:
        """Release every pending reply so nothing can touch the old view."""
        if self.contract_panel is not None:
            self.contract_panel.unmount()
        if self.view is not None:
            await self.view.close()
        self._key = None

    async def __aenter__(self) -> ViewLifecycle:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.deactivate()
