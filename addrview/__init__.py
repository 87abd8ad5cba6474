"""addrview — address page view-state orchestration for blockchain explorers."""

__version__ = "0.1.0"
