from __future__ import annotations

from pathlib import Path


class CartSyncError(Exception):
    """Base class for library and sync failures."""


class DataFolderAccessError(CartSyncError):
    """The library data folder cannot be created (read-only disk, zip extraction)."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Could not create game-data folder '{path}': {reason}")
        self.path = path


class UnknownPlatformError(CartSyncError):
    """A title references a platform id that is not configured."""


class OperationCancelled(CartSyncError):
    """Raised from a progress callback to stop a long-running operation between items."""


class AssetDownloadError(CartSyncError):
    """A core or BIOS asset could not be made available locally."""
