"""
Fetcher layer for addrview.

Provides a factory function `get_backend()` that returns the configured
explorer backend. All backends implement ExplorerBackend.

Usage:
    from addrview.fetchers import get_backend
    backend = get_backend(config)
    summary = await backend.get_summary(address)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from addrview.fetchers.base import ExplorerBackend

if TYPE_CHECKING:
    from addrview.config import AddrviewConfig

__all__ = ["ExplorerBackend", "get_backend"]


def get_backend(config: AddrviewConfig) -> ExplorerBackend:
    """
    Factory: return an explorer backend for the configured base URL.

    Args:
        config: AddrviewConfig with backend location and service paths

    Returns:
        Configured ExplorerBackend implementation
    """
    from addrview.fetchers.relay import RelayClient

    return RelayClient(config.backend)
