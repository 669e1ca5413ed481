from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from pathlib import Path
from queue import Empty, Queue
import threading
import time
import tkinter.filedialog as filedialog
import tkinter.messagebox as messagebox

import customtkinter as ctk

from cartsync.config.settings import AppSettings
from cartsync.core.catalog import CatalogClient
from cartsync.core.downloads import AssetCache
from cartsync.core.enrichment import EnrichmentEngine, EnrichmentResult, load_rom_mappings
from cartsync.core.errors import OperationCancelled
from cartsync.core.images import ImageResizer
from cartsync.core.ingest import IngestionPipeline, IngestResult
from cartsync.core.library import LibraryStore, ProgressCallback
from cartsync.core.sync import SyncEngine, SyncResult
from cartsync.ui.progress_log import ProgressLog
from cartsync.ui.title_list import TitleListPane

logger = logging.getLogger(__name__)

Operation = Callable[[ProgressCallback], Awaitable[object]]


class MainWindow(ctk.CTk):
    """Top-level UI coordinator.

    Import, scrape and sync each run as one ``asyncio.run`` call on a worker
    thread. Workers only talk to the UI through ``result_queue``; the library
    list is disabled while one runs so selection toggles never race a worker.
    """

    def __init__(self, settings: AppSettings) -> None:
        super().__init__()
        self.title("CartSync")
        self.geometry("1200x780")
        self.minsize(900, 600)

        self.settings = settings
        self.store = LibraryStore(settings.games_root, settings.platforms)
        self.result_queue: Queue[tuple[str, object]] = Queue()
        self._busy = False
        self._cancel_event = threading.Event()
        self._progress_lock = threading.Lock()
        self._last_progress_emit = 0.0
        self._progress_emit_interval_sec = 0.15

        self._build_layout()
        self.after(100, self._poll_queue)
        self.after(200, self._on_load)

    def _build_layout(self) -> None:
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=3)
        self.grid_rowconfigure(3, weight=1)

        controls = ctk.CTkFrame(self)
        controls.grid(row=0, column=0, padx=12, pady=12, sticky="ew")
        controls.grid_columnconfigure(6, weight=1)

        self.import_button = ctk.CTkButton(controls, text="➕ Import ROMs", width=120, command=self._on_import)
        self.import_button.grid(row=0, column=0, padx=(10, 6), pady=10)
        self.scrape_button = ctk.CTkButton(controls, text="🔎 Scrape", width=100, command=self._on_scrape)
        self.scrape_button.grid(row=0, column=1, padx=(0, 6), pady=10)
        self.delete_button = ctk.CTkButton(controls, text="🗑 Delete", width=90, command=self._on_delete)
        self.delete_button.grid(row=0, column=2, padx=(0, 6), pady=10)
        self.stop_button = ctk.CTkButton(controls, text="⏹ Stop", width=80, command=self._on_stop, state="disabled")
        self.stop_button.grid(row=0, column=3, padx=(0, 6), pady=10)

        ctk.CTkLabel(controls, text="Cartridge name").grid(row=0, column=4, padx=(12, 6), pady=10)
        self.cartridge_entry = ctk.CTkEntry(controls, placeholder_text="My Cartridge", width=180)
        self.cartridge_entry.grid(row=0, column=5, padx=(0, 6), pady=10, sticky="w")
        self.sync_button = ctk.CTkButton(controls, text="💾 Sync to SD", width=120, command=self._on_sync)
        self.sync_button.grid(row=0, column=7, padx=(0, 10), pady=10, sticky="e")

        self.status_label = ctk.CTkLabel(self, text="Loading library...", anchor="w", text_color=("gray40", "gray75"))
        self.status_label.grid(row=1, column=0, padx=14, pady=(0, 6), sticky="ew")

        self.title_list = TitleListPane(self)
        self.title_list.grid(row=2, column=0, padx=12, pady=(0, 8), sticky="nsew")
        self.title_list.set_on_toggle(self._on_toggle_selection)

        self.progress_log = ProgressLog(self)
        self.progress_log.grid(row=3, column=0, padx=12, pady=(0, 12), sticky="nsew")

    # Actions

    def _on_load(self) -> None:
        async def load(progress: ProgressCallback) -> object:
            return await asyncio.to_thread(self.store.load, progress)

        self._start_operation("load", load)

    def _on_import(self) -> None:
        if self._busy:
            return
        extensions = sorted({ext for platform in self.store.platforms for ext in platform.rom_file_extensions})
        chosen = filedialog.askopenfilenames(
            title="Select ROM files",
            filetypes=[("ROM files", " ".join(f"*{ext}" for ext in extensions)), ("All files", "*.*")],
        )
        if not chosen:
            return
        pipeline = IngestionPipeline(self.store)
        paths = [Path(item) for item in chosen]
        self.progress_log.log(f"Importing {len(paths)} file(s)")

        async def ingest(progress: ProgressCallback) -> object:
            return await pipeline.ingest(paths, progress)

        self._start_operation("import", ingest)

    def _on_scrape(self) -> None:
        if self._busy:
            return
        if not self.settings.catalog_api_key:
            self._set_status("No catalog API key configured (secrets.json or CARTSYNC_TGDB_API_KEY).", is_error=True)
            return
        title_ids = self.title_list.highlighted_ids() or [
            title.id for title in self.store.titles if title.catalog_id is None
        ]
        if not title_ids:
            self._set_status("Nothing to scrape.")
            return
        rom_mappings = load_rom_mappings()
        settings = self.settings
        store = self.store

        async def scrape(progress: ProgressCallback) -> object:
            # aiohttp sessions belong to the loop that created them.
            resizer = ImageResizer(store)
            try:
                async with CatalogClient(settings.catalog_api_key, settings.catalog_base_url) as catalog:
                    engine = EnrichmentEngine(store, catalog, resizer, rom_mappings)
                    return await engine.enrich_ids(title_ids, progress)
            finally:
                await resizer.close()

        self.progress_log.log(f"Scraping {len(title_ids)} title(s)")
        self._start_operation("scrape", scrape)

    def _on_sync(self) -> None:
        if self._busy:
            return
        if not self.store.selected_titles():
            self._set_status("Select at least one title to sync.", is_error=True)
            return
        target = filedialog.askdirectory(title="Select the cartridge SD card root")
        if not target:
            return
        cartridge_name = self.cartridge_entry.get().strip() or "My Cartridge"
        store = self.store
        settings = self.settings

        async def sync(progress: ProgressCallback) -> object:
            assets = AssetCache(settings.downloads_root)
            try:
                engine = SyncEngine(store, assets, settings.bios_root)
                return await engine.sync_to_device(Path(target), cartridge_name, progress)
            finally:
                await assets.close()

        self.progress_log.log(f"Syncing to {target}")
        self._start_operation("sync", sync)

    def _on_delete(self) -> None:
        if self._busy:
            return
        title_ids = self.title_list.highlighted_ids()
        if not title_ids:
            self._set_status("Highlight the titles to delete first.", is_error=True)
            return
        names = [self.store.list_title(self.store.get(title_id)) for title_id in title_ids]
        preview = "\n".join(names[:10]) + ("\n..." if len(names) > 10 else "")
        if not messagebox.askyesno("Delete titles", f"Delete {len(names)} title(s) from the library?\n\n{preview}"):
            return
        self.store.delete(title_ids)
        self.progress_log.log(f"Deleted {len(title_ids)} title(s)")
        self._refresh_titles()

    def _on_stop(self) -> None:
        if not self._busy or self._cancel_event.is_set():
            return
        self._cancel_event.set()
        self.stop_button.configure(state="disabled", text="⏳ Stopping...")
        self.progress_log.log("Stop requested. Finishing current item...")

    def _on_toggle_selection(self, title_ids: list[str], selected: bool) -> None:
        for title_id in title_ids:
            self.store.set_selected(title_id, selected)

    # Worker plumbing

    def _start_operation(self, name: str, operation: Operation) -> None:
        self._cancel_event.clear()
        with self._progress_lock:
            self._last_progress_emit = 0.0
        self._set_busy(True)
        self.progress_log.reset_progress()
        self._set_status(f"Running {name}...")
        worker = threading.Thread(target=self._operation_worker, args=(name, operation), daemon=True)
        worker.start()

    def _operation_worker(self, name: str, operation: Operation) -> None:
        def progress(label: str, current: int, total: int) -> None:
            if self._cancel_event.is_set():
                raise OperationCancelled(f"{name} cancelled by user.")
            self._enqueue_progress(label, current, total)

        try:
            result = asyncio.run(operation(progress))
            self.result_queue.put((f"{name}_complete", result))
        except OperationCancelled as exc:
            self.result_queue.put(("cancelled", str(exc)))
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s failed", name)
            self.result_queue.put(("error", f"{name} failed: {exc}"))

    def _enqueue_progress(self, label: str, current: int, total: int) -> None:
        now = time.monotonic()
        with self._progress_lock:
            if current < total and now - self._last_progress_emit < self._progress_emit_interval_sec:
                return
            self._last_progress_emit = now
        self.result_queue.put(("progress", (label, current, total)))

    def _poll_queue(self) -> None:
        # Worker threads publish events to this queue; UI consumes them here.
        try:
            while True:
                event_type, payload = self.result_queue.get_nowait()
                if event_type == "progress":
                    label, current, total = payload  # type: ignore[misc]
                    self.progress_log.show_progress(label, current, total)
                elif event_type == "load_complete":
                    self._finish(f"Loaded {payload} title(s).")
                elif event_type == "import_complete":
                    self._on_import_complete(payload)  # type: ignore[arg-type]
                elif event_type == "scrape_complete":
                    self._on_scrape_complete(payload)  # type: ignore[arg-type]
                elif event_type == "sync_complete":
                    self._on_sync_complete(payload)  # type: ignore[arg-type]
                elif event_type == "cancelled":
                    self.progress_log.log(f"[stage] {payload}")
                    self._finish(str(payload))
                elif event_type == "error":
                    self.progress_log.log(f"[error] {payload}")
                    self._finish(str(payload), is_error=True)
        except Empty:
            pass
        finally:
            self.after(100, self._poll_queue)

    def _on_import_complete(self, result: IngestResult) -> None:
        for path in result.duplicates:
            self.progress_log.log(f"[skip] already in library: {path.name}")
        for path in result.unmapped:
            self.progress_log.log(f"[skip] no platform for: {path.name}")
        self._log_warnings(result.warnings)
        self._finish(f"Imported {len(result.titles)} title(s).")

    def _on_scrape_complete(self, result: EnrichmentResult) -> None:
        self._log_warnings(result.warnings)
        self._finish(
            f"Scraped {len(result.matched)} title(s): {len(result.matched_by_hash)} by CRC, "
            f"{len(result.matched_by_name)} by name, {result.banners_found} banner(s)."
        )

    def _on_sync_complete(self, result: SyncResult) -> None:
        for title_id in result.removed_ids:
            self.progress_log.log(f"Removed from device: {title_id}")
        self._log_warnings(result.warnings)
        self._finish(f"Synced {result.titles_synced} title(s) to {result.target_root}, {result.files_copied} file(s) copied.")

    def _log_warnings(self, warnings: list[str]) -> None:
        for warning in warnings:
            self.progress_log.log(f"[warn] {warning}")

    def _finish(self, message: str, is_error: bool = False) -> None:
        self.progress_log.log(message)
        self._set_status(message, is_error=is_error)
        self._set_busy(False)
        self._refresh_titles()

    def _refresh_titles(self) -> None:
        self.title_list.set_titles(self.store.titles)

    def _set_busy(self, busy: bool) -> None:
        # Shared busy state to prevent conflicting actions while workers run.
        self._busy = busy
        state = "disabled" if busy else "normal"
        self.import_button.configure(state=state)
        self.scrape_button.configure(state=state)
        self.delete_button.configure(state=state)
        self.sync_button.configure(state=state)
        self.cartridge_entry.configure(state=state)
        self.title_list.set_enabled(not busy)
        self.stop_button.configure(state="normal" if busy else "disabled", text="⏹ Stop")

    def _set_status(self, message: str, is_error: bool = False) -> None:
        self.status_label.configure(
            text=message,
            text_color=("#b91c1c", "#fca5a5") if is_error else ("gray40", "gray75"),
        )
