"""Custom exception hierarchy for gadgetsync."""

from __future__ import annotations


class GadgetSyncError(Exception):
    """Base exception for all gadgetsync errors."""


class GadgetSyncConfigError(GadgetSyncError):
    """Invalid or missing configuration."""


class LingerParseError(GadgetSyncConfigError):
    """Linger duration value is absent or not an integer.

    Never escapes :func:`gadgetsync.config.resolve_linger_ms`, which
    substitutes the default linger instead.
    """


class FlagStoreWriteError(GadgetSyncError):
    """The flag store rejected a write.

    The debouncer does not retry; its in-memory state has already
    transitioned by the time this is raised.
    """

    def __init__(
        self,
        message: str,
        *,
        enabled: bool,
        target: str = "",
    ) -> None:
        self.enabled = enabled
        self.target = target
        super().__init__(message)


class UsbStatePayloadError(GadgetSyncError):
    """USB state payload could not be decoded into an object."""
