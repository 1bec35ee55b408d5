"""Backends for the persisted sync flag."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from gadgetsync._constants import PROPERTY_SYNC_ENABLE
from gadgetsync.config import GadgetSyncConfig
from gadgetsync.exceptions import FlagStoreWriteError

_logger = logging.getLogger(__name__)

# Consumers of the flag run as other users.
_PROPERTY_FILE_MODE = 0o644


class FlagStore(Protocol):
    """Write-only persisted boolean.  Last write wins."""

    def set_enabled(self, enabled: bool) -> None: ...


class MemoryFlagStore:
    """Keeps the flag in memory and remembers every write."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._writes: list[bool] = []

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._writes.append(bool(enabled))

    @property
    def writes(self) -> list[bool]:
        with self._lock:
            return list(self._writes)

    @property
    def value(self) -> bool | None:
        """Last written value, ``None`` if never written."""
        with self._lock:
            return self._writes[-1] if self._writes else None


class PropertyFileFlagStore:
    """Publishes the flag as ``"1"``/``"0"`` in ``<directory>/<name>``.

    Writes go through a temporary file in the same directory followed by
    :func:`os.replace`, so readers never see a partial value.  The
    directory must already exist.  The published file is world-readable.
    """

    def __init__(self, directory: str | os.PathLike[str], name: str = PROPERTY_SYNC_ENABLE) -> None:
        self._directory = Path(directory)
        self._name = name

    @property
    def path(self) -> Path:
        return self._directory / self._name

    def set_enabled(self, enabled: bool) -> None:
        target = self.path
        value = "1" if enabled else "0"
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._name}.", dir=self._directory)
            with os.fdopen(fd, "w", encoding="ascii") as fh:
                os.fchmod(fh.fileno(), _PROPERTY_FILE_MODE)
                fh.write(f"{value}\n")
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise FlagStoreWriteError(
                f"Failed to write {self._name}={value}: {exc}",
                enabled=enabled,
                target=str(target),
            ) from exc
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
        _logger.debug("Property %s set to %s", self._name, value)


def flag_store_from_config(config: GadgetSyncConfig) -> FlagStore:
    """Pick the flag backend for *config*.

    Without a ``property_dir`` the flag lives in memory only.
    """
    if config.property_dir is None:
        return MemoryFlagStore()
    return PropertyFileFlagStore(config.property_dir, config.flag_property)
