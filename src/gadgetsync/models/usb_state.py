"""USB gadget state as delivered by the host's state broadcasts."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})


def coerce_flag(value: Any) -> bool:
    """Interpret a raw broadcast extra as a boolean.

    Mirrors a boolean extra lookup with a ``False`` default: anything
    that is not recognisably true reads as ``False``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


Flag = Annotated[bool, BeforeValidator(coerce_flag)]


class UsbStateEvent(BaseModel):
    """One USB state notification.

    The four facts are independent; the derived ``data_up`` and
    ``mode_ok`` properties are what the debouncer acts on.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    connected: Flag = False
    configured: Flag = False
    unlocked: Flag = False
    mass_storage: Flag = False

    @property
    def data_up(self) -> bool:
        """Data link is electrically up (connected or already configured)."""
        return self.connected or self.configured

    @property
    def mode_ok(self) -> bool:
        """Data access is unlocked and the mass storage function is active."""
        return self.unlocked and self.mass_storage
