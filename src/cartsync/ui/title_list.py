"""Library title table built on ttk.Treeview.

The ``[x]`` column is the sync selection stored on each title; the Treeview's
own row highlight picks the titles that scrape and delete act on.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Callable
import tkinter as tk
from tkinter import ttk

import customtkinter as ctk

from cartsync.core.models import ImageSlot, Title

ALL_PLATFORMS = "All Platforms"


@dataclass
class TitleRowRecord:
    """Display strings for one title, cached for filtering and sorting."""

    key: str
    platform: str
    title: str
    rom_file: str
    artwork: str
    selected: bool
    recently_added: bool


def _artwork_label(title: Title) -> str:
    parts = []
    if any(title.artwork_ref(slot) for slot in (ImageSlot.SMALL, ImageSlot.MEDIUM, ImageSlot.LARGE)):
        parts.append("🖼 BOX")
    if title.artwork_ref(ImageSlot.BANNER):
        parts.append("🏞 BANNER")
    if title.catalog_id is not None:
        parts.append("📘 INFO")
    return " | ".join(parts) if parts else "⚪ NONE"


class TitleListViewModel:
    """Row records for every library title plus the platform filter index."""

    def __init__(self, titles: Iterable[Title]) -> None:
        self._rows_by_key: dict[str, TitleRowRecord] = {}
        self._platform_to_keys: dict[str, list[str]] = {}
        for title in sorted(titles, key=lambda item: (item.title.lower(), item.id)):
            platform = title.platform_name or str(title.platform_id)
            record = TitleRowRecord(
                key=title.id,
                platform=platform,
                title=title.title,
                rom_file=title.original_rom_file_name,
                artwork=_artwork_label(title),
                selected=title.selected,
                recently_added=title.recently_added,
            )
            self._rows_by_key[title.id] = record
            self._platform_to_keys.setdefault(platform, []).append(title.id)

    def rows_by_key(self) -> dict[str, TitleRowRecord]:
        return self._rows_by_key

    def platforms(self) -> list[str]:
        return sorted(self._platform_to_keys)

    def filtered_keys(self, platform_filter: str, text_filter: str = "") -> list[str]:
        if platform_filter == ALL_PLATFORMS:
            keys = list(self._rows_by_key)
        else:
            keys = list(self._platform_to_keys.get(platform_filter, []))
        needle = text_filter.strip().lower()
        if needle:
            keys = [key for key in keys if needle in self._rows_by_key[key].title.lower() or needle in key]
        return keys

    def selected_count(self) -> int:
        return sum(1 for record in self._rows_by_key.values() if record.selected)

    def set_selected(self, key: str, selected: bool) -> None:
        record = self._rows_by_key.get(key)
        if record is not None:
            record.selected = selected


class TitleListPane(ctk.CTkFrame):
    def __init__(self, master, **kwargs):
        super().__init__(master, **kwargs)
        self.configure(border_width=1, border_color=("#cfd4dc", "#2f3745"))
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        self._view_model: TitleListViewModel | None = None
        self._visible_keys: list[str] = []
        self._on_toggle: Callable[[list[str], bool], None] | None = None
        self._enabled = True

        self.title_label = ctk.CTkLabel(
            self,
            text="🎮 Library",
            font=ctk.CTkFont(size=16, weight="bold"),
            text_color=("#0f172a", "#f8fafc"),
        )
        self.title_label.grid(row=0, column=0, padx=10, pady=(10, 4), sticky="w")

        self.controls_frame = ctk.CTkFrame(self, fg_color="transparent")
        self.controls_frame.grid(row=1, column=0, padx=10, pady=(0, 8), sticky="ew")
        self.controls_frame.grid_columnconfigure(4, weight=1)

        self.platform_filter_var = ctk.StringVar(value=ALL_PLATFORMS)
        self.platform_filter = ctk.CTkOptionMenu(
            self.controls_frame,
            variable=self.platform_filter_var,
            values=[ALL_PLATFORMS],
            command=lambda _: self._refresh_table(),
            width=150,
        )
        self.platform_filter.grid(row=0, column=0, padx=(0, 6), sticky="w")

        self.search_entry = ctk.CTkEntry(self.controls_frame, placeholder_text="Filter titles", width=180)
        self.search_entry.grid(row=0, column=1, padx=(0, 6), sticky="w")
        self.search_entry.bind("<KeyRelease>", lambda _event: self._refresh_table())

        self.select_visible_btn = ctk.CTkButton(
            self.controls_frame, text="Sync Visible", width=105, command=lambda: self._toggle_visible(True)
        )
        self.select_visible_btn.grid(row=0, column=2, padx=(0, 6), sticky="w")
        self.clear_visible_btn = ctk.CTkButton(
            self.controls_frame, text="Skip Visible", width=105, command=lambda: self._toggle_visible(False)
        )
        self.clear_visible_btn.grid(row=0, column=3, padx=(0, 6), sticky="w")
        self.selection_label = ctk.CTkLabel(self.controls_frame, text="To sync: 0", anchor="e")
        self.selection_label.grid(row=0, column=4, padx=(6, 0), sticky="e")

        table = ctk.CTkFrame(self, fg_color=("#f8fafc", "#0b1220"), border_width=1, border_color=("#d7dde7", "#344056"))
        table.grid(row=2, column=0, padx=10, pady=(0, 10), sticky="nsew")
        table.grid_columnconfigure(0, weight=1)
        table.grid_rowconfigure(0, weight=1)

        self._tree = ttk.Treeview(
            table,
            columns=("sync", "platform", "title", "rom_file", "artwork"),
            show="headings",
            selectmode="extended",
            style="TitleList.Treeview",
        )
        _apply_dark_treeview_style(self._tree)
        self._tree.heading("sync", text="")
        self._tree.heading("platform", text="🎯 Platform")
        self._tree.heading("title", text="🏷 Title")
        self._tree.heading("rom_file", text="🕹 ROM File")
        self._tree.heading("artwork", text="📦 Artwork")
        self._tree.column("sync", width=42, minwidth=42, stretch=False)
        self._tree.column("platform", width=150, minwidth=100, stretch=False)
        self._tree.column("title", width=300, minwidth=180, stretch=True)
        self._tree.column("rom_file", width=280, minwidth=160, stretch=True)
        self._tree.column("artwork", width=220, minwidth=160, stretch=False)
        self._tree.tag_configure("recent", foreground="#fde68a")

        scrollbar = tk.Scrollbar(table, orient=tk.VERTICAL, command=self._tree.yview)
        self._tree.configure(yscrollcommand=scrollbar.set)
        self._tree.grid(row=0, column=0, sticky="nsew")
        scrollbar.grid(row=0, column=1, sticky="ns")

        self._tree.bind("<Double-1>", self._on_row_activate)
        self._tree.bind("<space>", self._on_space)

    def set_on_toggle(self, callback: Callable[[list[str], bool], None]) -> None:
        self._on_toggle = callback

    def set_titles(self, titles: Iterable[Title]) -> None:
        self._view_model = TitleListViewModel(titles)
        platforms = [ALL_PLATFORMS] + self._view_model.platforms()
        self.platform_filter.configure(values=platforms)
        if self.platform_filter_var.get() not in platforms:
            self.platform_filter_var.set(ALL_PLATFORMS)
        self._refresh_table()

    def highlighted_ids(self) -> list[str]:
        return list(self._tree.selection())

    def set_enabled(self, enabled: bool) -> None:
        state = "normal" if enabled else "disabled"
        self.platform_filter.configure(state=state)
        self.search_entry.configure(state=state)
        self.select_visible_btn.configure(state=state)
        self.clear_visible_btn.configure(state=state)
        self._enabled = enabled

    def _refresh_table(self) -> None:
        self._tree.delete(*self._tree.get_children())
        if self._view_model is None:
            self._visible_keys = []
            return
        self._visible_keys = self._view_model.filtered_keys(self.platform_filter_var.get(), self.search_entry.get())
        rows = self._view_model.rows_by_key()
        for key in self._visible_keys:
            record = rows[key]
            self._tree.insert(
                "",
                "end",
                iid=key,
                values=("[x]" if record.selected else "[ ]", record.platform, record.title, record.rom_file, record.artwork),
                tags=("recent",) if record.recently_added else (),
            )
        self._update_selection_label()

    def _on_row_activate(self, event) -> None:
        if self._tree.identify_region(event.x, event.y) != "cell":
            return
        iid = self._tree.identify_row(event.y)
        if iid:
            self._toggle([iid])

    def _on_space(self, event) -> None:
        keys = self.highlighted_ids() or ([self._tree.focus()] if self._tree.focus() else [])
        if keys:
            self._toggle(keys)

    def _toggle(self, keys: list[str]) -> None:
        if self._view_model is None or not self._enabled:
            return
        rows = self._view_model.rows_by_key()
        # A mixed highlight is switched on as a whole.
        selected = not all(rows[key].selected for key in keys if key in rows)
        self._apply_selection(keys, selected)

    def _toggle_visible(self, selected: bool) -> None:
        self._apply_selection(list(self._visible_keys), selected)

    def _apply_selection(self, keys: list[str], selected: bool) -> None:
        if self._view_model is None or not keys:
            return
        for key in keys:
            self._view_model.set_selected(key, selected)
            if self._tree.exists(key):
                self._tree.set(key, "sync", "[x]" if selected else "[ ]")
        self._update_selection_label()
        if self._on_toggle is not None:
            self._on_toggle(keys, selected)

    def _update_selection_label(self) -> None:
        count = self._view_model.selected_count() if self._view_model else 0
        self.selection_label.configure(text=f"To sync: {count}")


def _apply_dark_treeview_style(widget: ttk.Treeview) -> None:
    style = ttk.Style(widget)
    style.theme_use("clam")
    style.configure(
        "TitleList.Treeview",
        background="#1e293b",
        foreground="#e2e8f0",
        fieldbackground="#1e293b",
        borderwidth=0,
        rowheight=26,
    )
    style.configure("TitleList.Treeview.Heading", background="#334155", foreground="#f1f5f9")
    style.map("TitleList.Treeview", background=[("selected", "#475569")], foreground=[("selected", "#f8fafc")])
