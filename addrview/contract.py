"""Contract source panel: one lazy lookup per mount."""

from __future__ import annotations

import asyncio
import logging

from addrview.exceptions import AddrviewError
from addrview.fetchers.base import ExplorerBackend
from addrview.models import ContractArtifact

logger = logging.getLogger(__name__)


class ContractSourcePanel:
    """
    Verified source and ABI for one address.

    The lookup runs once when the panel mounts, independently of the
    address summary; later summary or table updates never trigger it
    again. "Not found" is stored as ``artifact = None`` with no error.
    """

    def __init__(self, backend: ExplorerBackend, address_hash: str) -> None:
        self._backend = backend
        self.address_hash = address_hash
        self.artifact: ContractArtifact | None = None
        self.error: AddrviewError | None = None
        self.loaded = False
        self._task: asyncio.Task | None = None
        self._mounted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> asyncio.Task:
        """Schedule the lookup. Mounting an already-mounted panel is a no-op."""
        if self._task is not None and self._mounted:
            return self._task
        self._mounted = True
        self.loaded = False
        self._task = asyncio.create_task(self._run())
        return self._task

    def unmount(self) -> None:
        """Detach; a reply still in flight is dropped."""
        self._mounted = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> ContractArtifact | None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self.artifact

    async def load(self, address_hash: str) -> ContractArtifact | None:
        """Look up the contract; failures are logged and kept on the panel only."""
        try:
            artifact = await self._backend.find_contract(address_hash)
        except AddrviewError as e:
            logger.warning("Contract lookup for %s failed: %s", address_hash, e)
            if self._mounted:
                self.error = e
                self.loaded = True
            return None

        if not self._mounted:
            return artifact
        self.artifact = artifact
        self.error = None
        self.loaded = True
        if artifact is None:
            logger.info("No verified contract source for %s", address_hash)
        return artifact

    async def _run(self) -> None:
        await self.load(self.address_hash)

    def to_dict(self) -> dict:
        return {
            "loaded": self.loaded,
            "found": self.artifact is not None,
            "contract": self.artifact.to_dict() if self.artifact else None,
            "error": self.error.to_dict() if self.error else None,
        }
