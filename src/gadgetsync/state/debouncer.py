"""Debounced control of the persisted sync flag.

This is the only component allowed to write the flag.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from gadgetsync._constants import MAX_LINGER_MS
from gadgetsync.config import GadgetSyncConfig
from gadgetsync.exceptions import GadgetSyncConfigError
from gadgetsync.flag_store import FlagStore
from gadgetsync.models.usb_state import UsbStateEvent
from gadgetsync.scheduler import CancellableTimer, Scheduler
from gadgetsync.state.policy import DebounceAction, DebounceState, decide

_logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class _PendingCutoff:
    """An outstanding delayed disable.

    Identity is the cancellation token: a fired timer only acts if its
    cutoff is still the pending one.
    """

    timer: CancellableTimer | None = None


class Debouncer:
    """Drives the sync flag from USB state events.

    ``handle`` calls must be serialized by the caller.  The cutoff timer
    may fire on another thread; a single lock makes cancel and fire
    mutually exclusive.
    """

    def __init__(self, linger_ms: int, scheduler: Scheduler, store: FlagStore) -> None:
        if not 0 <= linger_ms <= MAX_LINGER_MS:
            raise GadgetSyncConfigError(f"linger_ms must be between 0 and {MAX_LINGER_MS}, got {linger_ms}")
        self._linger_ms = linger_ms
        self._scheduler = scheduler
        self._store = store
        self._lock = threading.Lock()
        self._pending: _PendingCutoff | None = None
        self._enabled = False

    @classmethod
    def from_config(cls, config: GadgetSyncConfig, scheduler: Scheduler, store: FlagStore) -> Debouncer:
        return cls(config.linger_ms, scheduler, store)

    @property
    def linger_ms(self) -> int:
        return self._linger_ms

    @property
    def has_pending_cutoff(self) -> bool:
        with self._lock:
            return self._pending is not None

    @property
    def state(self) -> DebounceState:
        with self._lock:
            return self._state_locked()

    def _state_locked(self) -> DebounceState:
        if self._pending is not None:
            return DebounceState.PENDING_DISABLE
        return DebounceState.ENABLED if self._enabled else DebounceState.DISABLED

    def handle(self, event: UsbStateEvent) -> DebounceState:
        """Apply one USB state event and return the resulting state.

        Raises :class:`~gadgetsync.exceptions.FlagStoreWriteError` if the
        store rejects the write; the state has transitioned regardless.
        """
        action = decide(data_up=event.data_up, mode_ok=event.mode_ok)
        with self._lock:
            _logger.debug(
                "USB state connected=%s configured=%s unlocked=%s mass_storage=%s -> %s",
                event.connected,
                event.configured,
                event.unlocked,
                event.mass_storage,
                action,
            )
            if action == DebounceAction.ENABLE:
                self._cancel_cutoff_locked()
                self._write_locked(True)
            elif action == DebounceAction.DEFER_DISABLE:
                self._post_cutoff_locked()
            else:
                self._cancel_cutoff_locked()
                self._write_locked(False)
            return self._state_locked()

    def _post_cutoff_locked(self) -> None:
        if self._pending is not None:
            # Repeats must not extend the linger.
            _logger.debug("Cutoff already pending, keeping original deadline")
            return
        if self._linger_ms == 0:
            self._write_locked(False)
            return
        pending = _PendingCutoff()
        pending.timer = self._scheduler.after(self._linger_ms / 1000.0, lambda: self._fire(pending))
        self._pending = pending
        _logger.debug("Cutoff scheduled in %sms", self._linger_ms)

    def _cancel_cutoff_locked(self) -> None:
        pending = self._pending
        if pending is None:
            return
        self._pending = None
        if pending.timer is not None:
            self._scheduler.cancel(pending.timer)
        _logger.debug("Pending cutoff cancelled")

    def _fire(self, pending: _PendingCutoff) -> None:
        with self._lock:
            if self._pending is not pending:
                _logger.debug("Ignoring superseded cutoff")
                return
            self._pending = None
            _logger.debug("Cutoff fired after %sms", self._linger_ms)
            self._write_locked(False)

    def _write_locked(self, enabled: bool) -> None:
        self._enabled = enabled
        self._store.set_enabled(enabled)
