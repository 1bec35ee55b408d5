"""Data models for USB gadget state."""

from gadgetsync.models.usb_state import UsbStateEvent, coerce_flag

__all__ = [
    "UsbStateEvent",
    "coerce_flag",
]
