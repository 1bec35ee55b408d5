from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest

from gadgetsync._constants import ACTION_USB_STATE
from gadgetsync._mqtt import GadgetMqttRuntime, MqttEndpoint
from gadgetsync.config import GadgetSyncConfig


@dataclass
class _Message:
    topic: str
    payload: bytes


@pytest.mark.asyncio
async def test_message_delivered_on_loop() -> None:
    received: list[tuple[str, dict[str, Any]]] = []
    runtime = GadgetMqttRuntime(
        loop=asyncio.get_running_loop(),
        on_broadcast=lambda action, extras: received.append((action, extras)),
    )

    runtime._on_message(None, None, _Message("gadget/usb_state", b'{"connected": true}'))  # type: ignore[arg-type]
    await asyncio.sleep(0)

    assert received == [(ACTION_USB_STATE, {"connected": True})]


@pytest.mark.asyncio
async def test_undecodable_message_dropped() -> None:
    received: list[Any] = []
    runtime = GadgetMqttRuntime(loop=asyncio.get_running_loop(), on_broadcast=lambda *args: received.append(args))

    runtime._on_message(None, None, _Message("gadget/usb_state", b"\x00garbage"))  # type: ignore[arg-type]
    await asyncio.sleep(0)

    assert received == []
    assert not runtime.is_running


def test_endpoint_from_config() -> None:
    endpoint = MqttEndpoint.from_config(GadgetSyncConfig(mqtt_host="broker.lab", mqtt_port=8883, mqtt_topic="lab/usb"))

    assert endpoint.host == "broker.lab"
    assert endpoint.port == 8883
    assert endpoint.topic == "lab/usb"
    assert endpoint.client_id.startswith("gadgetsync_")


@dataclass
class _ReasonCode:
    value: int


class _RecordingClient:
    def __init__(self) -> None:
        self.subscriptions: list[tuple[str, int]] = []

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append((topic, qos))


@pytest.mark.asyncio
async def test_connect_subscribes_only_when_accepted() -> None:
    runtime = GadgetMqttRuntime(loop=asyncio.get_running_loop(), on_broadcast=lambda *args: None)
    runtime._topic = "gadget/usb_state"  # type: ignore[attr-defined]
    client = _RecordingClient()

    runtime._on_connect(client, None, None, _ReasonCode(135), None)  # type: ignore[arg-type]
    assert client.subscriptions == []

    runtime._on_connect(client, None, None, _ReasonCode(0), None)  # type: ignore[arg-type]
    assert client.subscriptions == [("gadget/usb_state", 1)]
