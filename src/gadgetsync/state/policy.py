"""Sync flag hysteresis policy.

No timers or I/O here; :mod:`gadgetsync.state.debouncer` applies the
decisions.
"""

from __future__ import annotations

from enum import StrEnum


class DebounceAction(StrEnum):
    ENABLE = "enable"
    DEFER_DISABLE = "defer_disable"
    DISABLE = "disable"


class DebounceState(StrEnum):
    DISABLED = "disabled"
    ENABLED = "enabled"
    PENDING_DISABLE = "pending_disable"


def decide(*, data_up: bool, mode_ok: bool) -> DebounceAction:
    """Pick the action for a derived USB condition.

    Policy, in priority order:
    - link up and mode authorized: enable now.
    - mode authorized but link down: ambiguous (link about to drop or
      about to come up), disable after the linger.
    - anything else: disable now.  A link that is up without an
      authorized mode is deliberately treated like a link that is down.
    """
    if data_up and mode_ok:
        return DebounceAction.ENABLE
    if mode_ok:
        return DebounceAction.DEFER_DISABLE
    return DebounceAction.DISABLE
