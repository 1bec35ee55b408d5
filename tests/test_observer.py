from __future__ import annotations

import asyncio
import threading
from typing import Any

import pytest

from gadgetsync._constants import ACTION_BOOT_COMPLETED, ACTION_USB_STATE
from gadgetsync.config import GadgetSyncConfig
from gadgetsync.exceptions import FlagStoreWriteError
from gadgetsync.flag_store import MemoryFlagStore
from gadgetsync.models.usb_state import UsbStateEvent
from gadgetsync.observer import GadgetObserver
from gadgetsync.scheduler import AsyncioScheduler
from gadgetsync.state.debouncer import Debouncer
from gadgetsync.state.policy import DebounceState

ALL_UP: dict[str, Any] = {"connected": True, "configured": True, "unlocked": True, "mass_storage": True}
MODE_ONLY: dict[str, Any] = {"unlocked": True, "mass_storage": True}


def _debouncer(linger_ms: int = 400) -> tuple[Debouncer, MemoryFlagStore]:
    store = MemoryFlagStore()
    return Debouncer(linger_ms, AsyncioScheduler(), store), store


@pytest.mark.asyncio
async def test_boot_snapshot_applied_on_enter() -> None:
    debouncer, store = _debouncer()

    async with GadgetObserver(debouncer, snapshot=lambda: ALL_UP) as observer:
        await observer.join()

    assert store.writes == [True]
    assert debouncer.state == DebounceState.ENABLED


@pytest.mark.asyncio
async def test_missing_snapshot_is_skipped() -> None:
    debouncer, store = _debouncer()

    async with GadgetObserver(debouncer, snapshot=lambda: None) as observer:
        await observer.join()

    assert store.writes == []


@pytest.mark.asyncio
async def test_broadcasts_handled_in_order() -> None:
    debouncer, store = _debouncer()
    snapshots = [ALL_UP, {}]

    async with GadgetObserver(debouncer, snapshot=lambda: snapshots.pop(0)) as observer:
        observer.on_broadcast(ACTION_USB_STATE, {"connected": True})
        observer.on_broadcast("android.intent.action.SCREEN_ON", ALL_UP)
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        observer.on_broadcast(ACTION_BOOT_COMPLETED, None)
        await observer.join()

    assert store.writes == [True, False, True, False]
    assert snapshots == []


@pytest.mark.asyncio
async def test_submit_threadsafe_from_worker_thread() -> None:
    debouncer, store = _debouncer()

    async with GadgetObserver(debouncer) as observer:
        thread = threading.Thread(target=observer.submit_threadsafe, args=(UsbStateEvent(**ALL_UP),))
        thread.start()
        await asyncio.get_running_loop().run_in_executor(None, thread.join)
        await asyncio.sleep(0)
        await observer.join()

    assert store.writes == [True]


@pytest.mark.asyncio
async def test_write_failure_reported_and_worker_keeps_running() -> None:
    errors: list[FlagStoreWriteError] = []

    class _FlakyStore(MemoryFlagStore):
        def set_enabled(self, enabled: bool) -> None:
            if enabled:
                raise FlagStoreWriteError("busy", enabled=enabled)
            super().set_enabled(enabled)

    store = _FlakyStore()
    debouncer = Debouncer(400, AsyncioScheduler(), store)

    async with GadgetObserver(debouncer, on_error=errors.append) as observer:
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        observer.on_broadcast(ACTION_USB_STATE, {})
        await observer.join()

    assert [e.enabled for e in errors] == [True]
    assert store.writes == [False]


@pytest.mark.asyncio
async def test_cutoff_fires_on_event_loop() -> None:
    debouncer, store = _debouncer(20)

    async with GadgetObserver(debouncer) as observer:
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        observer.on_broadcast(ACTION_USB_STATE, MODE_ONLY)
        await observer.join()
        assert debouncer.state == DebounceState.PENDING_DISABLE
        await asyncio.sleep(0.2)

    assert debouncer.state == DebounceState.DISABLED
    assert store.writes == [True, False]


@pytest.mark.asyncio
async def test_mqtt_start_failure_does_not_break_observer(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_start(self: Any, endpoint: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr("gadgetsync._mqtt.GadgetMqttRuntime.start", fake_start)
    debouncer, store = _debouncer()

    async with GadgetObserver(debouncer, config=GadgetSyncConfig(mqtt_enabled=True)) as observer:
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        await observer.join()

    assert store.writes == [True]


def test_submit_requires_running_observer() -> None:
    debouncer, _store = _debouncer()
    observer = GadgetObserver(debouncer)

    with pytest.raises(RuntimeError):
        observer.submit(UsbStateEvent())


@pytest.mark.asyncio
async def test_failing_error_callback_does_not_stop_worker() -> None:
    class _FlakyStore(MemoryFlagStore):
        def set_enabled(self, enabled: bool) -> None:
            if enabled:
                raise FlagStoreWriteError("busy", enabled=enabled)
            super().set_enabled(enabled)

    def on_error(exc: FlagStoreWriteError) -> None:
        raise RuntimeError("handler bug")

    store = _FlakyStore()
    debouncer = Debouncer(400, AsyncioScheduler(), store)

    async with GadgetObserver(debouncer, on_error=on_error) as observer:
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        observer.on_broadcast(ACTION_USB_STATE, {})
        await asyncio.wait_for(observer.join(), timeout=1.0)

    assert store.writes == [False]


@pytest.mark.asyncio
async def test_unexpected_store_error_does_not_stop_worker() -> None:
    class _BrokenStore(MemoryFlagStore):
        def set_enabled(self, enabled: bool) -> None:
            if enabled:
                raise OSError("disk gone")
            super().set_enabled(enabled)

    store = _BrokenStore()
    debouncer = Debouncer(400, AsyncioScheduler(), store)

    async with GadgetObserver(debouncer) as observer:
        observer.on_broadcast(ACTION_USB_STATE, ALL_UP)
        observer.on_broadcast(ACTION_USB_STATE, {})
        await asyncio.wait_for(observer.join(), timeout=1.0)

    assert store.writes == [False]


@pytest.mark.asyncio
async def test_failing_snapshot_stops_worker() -> None:
    debouncer, _store = _debouncer()

    def snapshot() -> dict[str, Any]:
        raise RuntimeError("usb service unavailable")

    observer = GadgetObserver(debouncer, snapshot=snapshot)
    with pytest.raises(RuntimeError, match="usb service unavailable"):
        await observer.__aenter__()

    assert observer._worker is None  # noqa: SLF001
    tasks = {t.get_name() for t in asyncio.all_tasks()}
    assert "gadgetsync-observer" not in tasks
    with pytest.raises(RuntimeError):
        observer.submit(UsbStateEvent())
