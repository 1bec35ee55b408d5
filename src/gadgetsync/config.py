"""Configuration for gadgetsync."""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from pathlib import Path
from typing import Any

from gadgetsync._constants import DEFAULT_LINGER_MS, MAX_LINGER_MS, PROPERTY_SYNC_ENABLE, PROPERTY_SYNC_LINGER
from gadgetsync.exceptions import GadgetSyncConfigError, LingerParseError

_logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"[+-]?\d+")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_linger_ms(raw: Any) -> int:
    """Parse a raw linger value into integer milliseconds.

    Only an optionally signed decimal integer is accepted.  ``None``,
    empty strings, fractions and anything else raise
    :class:`LingerParseError`.
    """
    if isinstance(raw, bool):
        raise LingerParseError(f"linger must be an integer, got {raw!r}")
    if isinstance(raw, int):
        return raw
    if raw is None:
        raise LingerParseError("linger is not set")
    text = str(raw).strip()
    if not _INTEGER_RE.fullmatch(text):
        raise LingerParseError(f"linger must be an integer, got {raw!r}")
    return int(text)


def clamp_linger_ms(value: int) -> int:
    return min(max(value, 0), MAX_LINGER_MS)


def resolve_linger_ms(raw: Any) -> int:
    """Return the effective linger for *raw*, clamped to ``[0, MAX_LINGER_MS]``.

    Malformed or absent values fall back to :data:`DEFAULT_LINGER_MS`.
    """
    try:
        return clamp_linger_ms(parse_linger_ms(raw))
    except LingerParseError as exc:
        _logger.debug("Using default linger %sms: %s", DEFAULT_LINGER_MS, exc)
        return DEFAULT_LINGER_MS


def read_property(directory: str | os.PathLike[str], name: str) -> str | None:
    """Return the stripped value of property *name*, ``None`` if it is unset."""
    try:
        return (Path(directory) / name).read_text(encoding="ascii").strip()
    except (OSError, UnicodeDecodeError) as exc:
        _logger.debug("Property %s unreadable: %s", name, exc)
        return None


@dataclasses.dataclass(frozen=True)
class GadgetSyncConfig:
    """Runtime configuration.

    Parameters
    ----------
    linger_ms : int
        Delay in milliseconds between an ambiguous "about to turn off"
        USB state and actually disabling sync.  Expected to be already
        clamped; use :func:`resolve_linger_ms` for raw values.
    property_dir : str or None
        Directory holding one file per property.  ``None`` keeps the flag
        in memory only.
    flag_property : str
        Property (file name) the flag is published under.
    mqtt_enabled : bool
        Receive USB state broadcasts from an MQTT broker.
    mqtt_host : str
        Broker host name.
    mqtt_port : int
        Broker port.
    mqtt_topic : str
        Topic the USB state payloads are published on.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    linger_ms: int = DEFAULT_LINGER_MS
    property_dir: str | None = None
    flag_property: str = PROPERTY_SYNC_ENABLE
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "gadget/usb_state"
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        linger = self.linger_ms
        if isinstance(linger, bool) or not isinstance(linger, int) or not 0 <= linger <= MAX_LINGER_MS:
            raise GadgetSyncConfigError(f"linger_ms must be an integer between 0 and {MAX_LINGER_MS}, got {linger!r}")

    @classmethod
    def from_env(cls, **overrides: Any) -> GadgetSyncConfig:
        """Create configuration from ``GADGETSYNC_*`` environment variables.

        The linger value is read once here and resolved with
        :func:`resolve_linger_ms`.  Without ``GADGETSYNC_LINGER_MS`` it is
        read from the ``light.sync.linger`` property in the property
        directory.  Explicit keyword arguments override environment
        values; a ``linger_ms`` override is resolved the same way.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}

        _ENV_CONFIG_MAP = {
            "GADGETSYNC_PROPERTY_DIR": "property_dir",
            "GADGETSYNC_FLAG_PROPERTY": "flag_property",
            "GADGETSYNC_MQTT_HOST": "mqtt_host",
            "GADGETSYNC_MQTT_TOPIC": "mqtt_topic",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("GADGETSYNC_MQTT_ENABLED"), False)

        port_env = env.get("GADGETSYNC_MQTT_PORT")
        if port_env is not None and "mqtt_port" not in overrides:
            config_kwargs["mqtt_port"] = int(port_env)

        keepalive_env = env.get("GADGETSYNC_MQTT_KEEPALIVE")
        if keepalive_env is not None and "mqtt_keepalive" not in overrides:
            config_kwargs["mqtt_keepalive"] = int(keepalive_env)

        if "linger_ms" in overrides:
            raw_linger = overrides.pop("linger_ms")
        else:
            raw_linger = env.get("GADGETSYNC_LINGER_MS")
            property_dir = overrides.get("property_dir", config_kwargs.get("property_dir"))
            if raw_linger is None and property_dir is not None:
                raw_linger = read_property(property_dir, PROPERTY_SYNC_LINGER)
        config_kwargs["linger_ms"] = resolve_linger_ms(raw_linger)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
