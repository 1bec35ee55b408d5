#!/usr/bin/env python3
"""Publish USB state broadcasts to an MQTT broker for lab testing.

Each ``--step`` is a comma separated list of the USB extras that are
true (``connected``, ``configured``, ``unlocked``, ``mass_storage``),
or ``boot`` for a boot-completed broadcast.  Steps are published in
order with ``--interval`` milliseconds between them, which makes it easy
to reproduce link flicker around the linger window, e.g.::

    publish_usb_state.py --step connected,configured,unlocked,mass_storage \
        --step unlocked,mass_storage --step connected,unlocked,mass_storage
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from gadgetsync._constants import (  # noqa: E402
    ACTION_BOOT_COMPLETED,
    ACTION_USB_STATE,
    EXTRA_USB_CONFIGURED,
    EXTRA_USB_CONNECTED,
    EXTRA_USB_DATA_UNLOCKED,
    EXTRA_USB_FUNCTION_MASS_STORAGE,
)
from gadgetsync.config import GadgetSyncConfig  # noqa: E402

try:
    import paho.mqtt.client as mqtt
except ImportError as exc:  # pragma: no cover - environment/setup issue
    raise SystemExit(
        "Missing dependency 'paho-mqtt'. Install with: pip install paho-mqtt",
    ) from exc

_LOG = logging.getLogger("publish_usb_state")

_EXTRA_KEYS = (
    EXTRA_USB_CONNECTED,
    EXTRA_USB_CONFIGURED,
    EXTRA_USB_DATA_UNLOCKED,
    EXTRA_USB_FUNCTION_MASS_STORAGE,
)


def _parse_args() -> argparse.Namespace:
    config = GadgetSyncConfig.from_env()
    parser = argparse.ArgumentParser(
        description="Publish USB state broadcasts to MQTT.",
    )
    parser.add_argument("--host", default=config.mqtt_host, help="Broker host.")
    parser.add_argument("--port", type=int, default=config.mqtt_port, help="Broker port.")
    parser.add_argument("--topic", default=config.mqtt_topic, help="Topic to publish on.")
    parser.add_argument(
        "--step",
        action="append",
        default=[],
        help="True extras for one broadcast (repeatable), or 'boot'.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=100,
        help="Milliseconds between steps.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def _build_payload(step: str) -> dict[str, Any]:
    if step.strip().lower() == "boot":
        return {"action": ACTION_BOOT_COMPLETED, "extras": {}}
    flags = {name.strip() for name in step.split(",") if name.strip()}
    unknown = flags - set(_EXTRA_KEYS)
    if unknown:
        raise SystemExit(f"Unknown USB extras: {', '.join(sorted(unknown))}")
    return {
        "action": ACTION_USB_STATE,
        "extras": {key: key in flags for key in _EXTRA_KEYS},
    }


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.step:
        _LOG.error("Nothing to publish; pass at least one --step")
        return 2

    payloads = [_build_payload(step) for step in args.step]

    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        protocol=mqtt.MQTTv5,
    )
    client.enable_logger(_LOG)
    client.connect(args.host, args.port)
    client.loop_start()
    try:
        for index, payload in enumerate(payloads):
            if index:
                time.sleep(args.interval / 1000.0)
            info = client.publish(args.topic, json.dumps(payload), qos=1)
            info.wait_for_publish()
            _LOG.info("Published %s", json.dumps(payload, separators=(",", ":")))
    finally:
        client.disconnect()
        client.loop_stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
