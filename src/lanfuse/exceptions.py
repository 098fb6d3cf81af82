"""Exception types raised by lanfuse."""

from __future__ import annotations


class LanfuseError(Exception):
    """Base class for lanfuse errors."""


class ScanInProgressError(LanfuseError, RuntimeError):
    """Raised when a workflow starts while another one owns the registry."""

    def __init__(self, running: str) -> None:
        super().__init__(f"A '{running}' scan is already in progress")
        self.running = running


class ProbeError(LanfuseError, OSError):
    """A single probe failed; callers treat it as an absent signal."""
