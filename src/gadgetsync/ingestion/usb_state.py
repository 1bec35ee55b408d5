"""Normalize raw USB state notifications into events."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from gadgetsync._constants import (
    ACTION_USB_STATE,
    EXTRA_USB_CONFIGURED,
    EXTRA_USB_CONNECTED,
    EXTRA_USB_DATA_UNLOCKED,
    EXTRA_USB_FUNCTION_MASS_STORAGE,
)
from gadgetsync.exceptions import UsbStatePayloadError
from gadgetsync.models.usb_state import UsbStateEvent

_EXTRA_KEYS: tuple[str, ...] = (
    EXTRA_USB_CONNECTED,
    EXTRA_USB_CONFIGURED,
    EXTRA_USB_DATA_UNLOCKED,
    EXTRA_USB_FUNCTION_MASS_STORAGE,
)


def event_from_extras(extras: Mapping[str, Any] | None) -> UsbStateEvent:
    """Build an event from broadcast extras.

    Unknown keys are ignored; missing keys read as ``False``.
    """
    if not extras:
        return UsbStateEvent()
    return UsbStateEvent.model_validate({key: extras[key] for key in _EXTRA_KEYS if key in extras})


def split_payload(payload: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    """Return ``(action, extras)`` for a decoded broadcast payload.

    A payload with an ``extras`` object carries its own ``action``;
    anything else is treated as the extras of a USB state broadcast.
    """
    extras = payload.get("extras")
    if isinstance(extras, Mapping):
        action = payload.get("action")
        return (action if isinstance(action, str) and action else ACTION_USB_STATE), dict(extras)
    return ACTION_USB_STATE, {k: v for k, v in payload.items() if k != "action"}


def event_from_payload(payload: Mapping[str, Any]) -> UsbStateEvent:
    _action, extras = split_payload(payload)
    return event_from_extras(extras)


def decode_usb_state_payload(payload: bytes) -> tuple[str, dict[str, Any]]:
    """Decode a JSON broadcast payload into ``(action, extras)``."""
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise UsbStatePayloadError(f"USB state payload is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise UsbStatePayloadError("USB state payload decoded to non-object JSON")
    return split_payload(parsed)
