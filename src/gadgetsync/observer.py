"""USB state observer.

Owns:
- serialized delivery of USB state events to the debouncer
- the boot-time snapshot query
- the optional MQTT runtime feeding broadcasts
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any

from gadgetsync._constants import ACTION_BOOT_COMPLETED, ACTION_USB_STATE
from gadgetsync._mqtt import GadgetMqttRuntime, MqttEndpoint
from gadgetsync.config import GadgetSyncConfig
from gadgetsync.exceptions import FlagStoreWriteError
from gadgetsync.ingestion.usb_state import event_from_extras
from gadgetsync.models.usb_state import UsbStateEvent
from gadgetsync.state.debouncer import Debouncer

_logger = logging.getLogger(__name__)

SnapshotQuery = Callable[[], Mapping[str, Any] | None]


class GadgetObserver:
    """Feeds USB state events to a :class:`Debouncer` one at a time.

    Usage::

        async with GadgetObserver(debouncer, snapshot=query_usb_state) as observer:
            observer.on_broadcast(action, extras)

    Events may arrive from any thread via :meth:`submit_threadsafe`; a
    single worker task hands them to the debouncer in arrival order.
    """

    def __init__(
        self,
        debouncer: Debouncer,
        *,
        snapshot: SnapshotQuery | None = None,
        config: GadgetSyncConfig | None = None,
        on_error: Callable[[FlagStoreWriteError], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._debouncer = debouncer
        self._snapshot = snapshot
        self._config = config
        self._on_error = on_error
        self._logger = logger or _logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[UsbStateEvent] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._mqtt_runtime: GadgetMqttRuntime | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> GadgetObserver:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="gadgetsync-observer")
        try:
            # Initial state: nothing is broadcast until the link changes.
            self.query_snapshot()
            if self._config is not None and self._config.mqtt_enabled:
                await self._start_mqtt(self._config)
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._stop_mqtt()
        worker = self._worker
        self._worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        self._queue = None
        self._loop = None

    async def _start_mqtt(self, config: GadgetSyncConfig) -> None:
        assert self._loop is not None
        runtime = GadgetMqttRuntime(
            loop=self._loop,
            on_broadcast=self.on_broadcast,
            keepalive=config.mqtt_keepalive,
            logger=self._logger,
        )
        try:
            await self._loop.run_in_executor(None, runtime.start, MqttEndpoint.from_config(config))
        except Exception:
            self._logger.debug("MQTT runtime start failed", exc_info=True)
            return
        self._mqtt_runtime = runtime

    async def _stop_mqtt(self) -> None:
        runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if runtime is None or self._loop is None:
            return
        try:
            await self._loop.run_in_executor(None, runtime.stop)
        except Exception:
            self._logger.debug("MQTT runtime stop failed", exc_info=True)

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def on_broadcast(self, action: str, extras: Mapping[str, Any] | None) -> None:
        """Handle a raw broadcast; must be called on the observer's loop."""
        if action == ACTION_BOOT_COMPLETED:
            self.query_snapshot()
            return
        if action == ACTION_USB_STATE:
            self.submit(event_from_extras(extras))
            return
        self._logger.debug("Ignoring broadcast action=%s", action)

    def query_snapshot(self) -> None:
        if self._snapshot is None:
            return
        extras = self._snapshot()
        if extras is None:
            self._logger.debug("USB state snapshot unavailable")
            return
        self.submit(event_from_extras(extras))

    def submit(self, event: UsbStateEvent) -> None:
        if self._queue is None:
            raise RuntimeError("GadgetObserver is not running")
        self._queue.put_nowait(event)

    def submit_threadsafe(self, event: UsbStateEvent) -> None:
        loop = self._loop
        if loop is None:
            raise RuntimeError("GadgetObserver is not running")
        loop.call_soon_threadsafe(self.submit, event)

    async def join(self) -> None:
        """Wait until every submitted event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                self._debouncer.handle(event)
            except FlagStoreWriteError as exc:
                self._logger.warning("Sync flag write failed (enabled=%s): %s", exc.enabled, exc)
                self._report_error(exc)
            except Exception:
                # The worker must outlive any single event.
                self._logger.exception("USB state event handling failed")
            finally:
                queue.task_done()

    def _report_error(self, exc: FlagStoreWriteError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            self._logger.exception("on_error callback failed")
