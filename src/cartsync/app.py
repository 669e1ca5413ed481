from __future__ import annotations

import logging
from pathlib import Path
import sys
import tkinter.messagebox as messagebox

import customtkinter as ctk

from cartsync.config.settings import ensure_data_folder_access, load_settings
from cartsync.core.errors import DataFolderAccessError
from cartsync.ui.main_window import MainWindow

LOG_FILENAME = "cartsync.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(app_root: Path, level: int = logging.INFO) -> None:
    """Log to stderr and to ``cartsync.log`` inside the data folder."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        handlers.append(logging.FileHandler(app_root / LOG_FILENAME, encoding="utf-8"))
    except OSError as exc:
        print(f"File logging disabled: {exc}", file=sys.stderr)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # aiohttp logs every connection reset at warning level.
    logging.getLogger("aiohttp").setLevel(logging.ERROR)


def _set_windows_dpi_aware() -> None:
    """Make the process DPI-aware on Windows so Tk reports correct scale."""
    if sys.platform != "win32":
        return
    import ctypes

    try:
        ctypes.windll.shcore.SetProcessDpiAwareness(2)
    except (AttributeError, OSError):
        ctypes.windll.user32.SetProcessDPIAware()


def main() -> None:
    settings = load_settings()
    try:
        ensure_data_folder_access(settings.app_root)
    except DataFolderAccessError as exc:
        # Usually a read-only install location or a run from inside a zip.
        messagebox.showerror("CartSync", f"{exc}\n\nMove CartSync to a writable folder and start it again.")
        sys.exit(1)

    configure_logging(settings.app_root)
    logging.getLogger(__name__).info("Data folder: %s", settings.app_root.resolve())

    _set_windows_dpi_aware()
    ctk.set_appearance_mode("dark")
    ctk.set_default_color_theme("blue")

    app = MainWindow(settings)
    app.mainloop()


if __name__ == "__main__":
    main()
