"""gadgetsync - Debounced USB gadget sync flag control."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gadgetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from gadgetsync.config import GadgetSyncConfig, resolve_linger_ms
from gadgetsync.exceptions import (
    FlagStoreWriteError,
    GadgetSyncConfigError,
    GadgetSyncError,
    LingerParseError,
    UsbStatePayloadError,
)
from gadgetsync.flag_store import FlagStore, MemoryFlagStore, PropertyFileFlagStore, flag_store_from_config
from gadgetsync.models import UsbStateEvent
from gadgetsync.observer import GadgetObserver
from gadgetsync.scheduler import AsyncioScheduler, Scheduler, ThreadingScheduler
from gadgetsync.state.debouncer import Debouncer
from gadgetsync.state.policy import DebounceAction, DebounceState, decide

__all__ = [
    "__version__",
    "AsyncioScheduler",
    "DebounceAction",
    "DebounceState",
    "Debouncer",
    "FlagStore",
    "FlagStoreWriteError",
    "GadgetObserver",
    "GadgetSyncConfig",
    "GadgetSyncConfigError",
    "GadgetSyncError",
    "LingerParseError",
    "MemoryFlagStore",
    "PropertyFileFlagStore",
    "Scheduler",
    "ThreadingScheduler",
    "UsbStateEvent",
    "UsbStatePayloadError",
    "decide",
    "flag_store_from_config",
    "resolve_linger_ms",
]
