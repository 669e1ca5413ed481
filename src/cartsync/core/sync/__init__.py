"""Device sync engine and SD card layout helpers."""

from cartsync.core.sync.device import DeviceLayout, remove_from_device
from cartsync.core.sync.engine import SyncEngine, SyncResult

__all__ = ["DeviceLayout", "SyncEngine", "SyncResult", "remove_from_device"]
