"""Internal MQTT runtime delivering USB state broadcasts."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from gadgetsync.config import GadgetSyncConfig
from gadgetsync.ingestion.usb_state import decode_usb_state_payload


@dataclass(frozen=True)
class MqttEndpoint:
    """Broker details required to receive USB state broadcasts."""

    host: str
    port: int
    topic: str
    client_id: str

    @classmethod
    def from_config(cls, config: GadgetSyncConfig) -> MqttEndpoint:
        return cls(
            host=config.mqtt_host,
            port=config.mqtt_port,
            topic=config.mqtt_topic,
            client_id=f"gadgetsync_{secrets.token_hex(4)}",
        )


class GadgetMqttRuntime:
    """Threaded paho-mqtt runtime that emits broadcasts onto an asyncio loop.

    ``on_broadcast`` receives ``(action, extras)`` on the loop's thread.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_broadcast: Callable[[str, dict[str, Any]], None],
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_broadcast = on_broadcast
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _on_message(self, _c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            action, extras = decode_usb_state_payload(msg.payload)
        except Exception:
            self._logger.debug("USB state payload parse failure topic=%s", msg.topic, exc_info=True)
            return
        self._logger.debug("USB state broadcast topic=%s action=%s extras=%s", msg.topic, action, extras)
        self._loop.call_soon_threadsafe(self._on_broadcast, action, extras)

    def _on_connect(self, c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
        if reason_code.value != 0:
            self._logger.warning("USB state broker refused connection: %s", reason_code)
            return
        # Resubscribe on every (re)connect; the session is not persistent.
        if self._topic:
            c.subscribe(self._topic, qos=1)

    def start(self, endpoint: MqttEndpoint) -> None:
        """Connect to the broker and start receiving on ``endpoint.topic``."""
        self.stop()
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=endpoint.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        client.on_connect = self._on_connect
        client.on_message = self._on_message
        self._topic = endpoint.topic

        client.connect(endpoint.host, endpoint.port, keepalive=self._keepalive)
        client.loop_start()
        self._client = client
        self._running = True
        self._logger.debug("Receiving USB state from %s:%s topic=%s", endpoint.host, endpoint.port, endpoint.topic)

    def stop(self) -> None:
        """Disconnect and stop the network loop; no-op when not started."""
        client, self._client = self._client, None
        self._running = False
        self._topic = None
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
