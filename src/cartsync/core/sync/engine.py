from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Protocol

from cartsync.core.library import LibraryStore, ProgressCallback
from cartsync.core.models import Cartridge, EmulatorCore, ImageSlot, Platform, SpecialHandling, Title
from cartsync.core.sync.device import DeviceLayout, copy_if_newer, remove_from_device
from cartsync.core.sync.scripts import render_launch_script, template_for

logger = logging.getLogger(__name__)

PROGRESS_LABEL = "Syncing Games"


class AssetProvider(Protocol):
    async def get_local_path(self, source_url: str, source_path: str | None = None) -> Path: ...


@dataclass(slots=True)
class SyncResult:
    target_root: Path
    titles_synced: int = 0
    files_copied: int = 0
    removed_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class SyncEngine:
    """Projects the selected library titles onto a cartridge SD card.

    Every copy is newer-wins and every generated file is rewritten in full,
    so running a sync twice leaves the card unchanged. Titles that were
    synced before and are now deselected are removed first; files of titles
    the library does not know are never touched.
    """

    def __init__(self, store: LibraryStore, assets: AssetProvider, bios_root: Path) -> None:
        self.store = store
        self.assets = assets
        self.bios_root = bios_root

    async def sync_to_device(
        self,
        target_root: Path,
        cartridge_name: str,
        progress: ProgressCallback | None = None,
    ) -> SyncResult:
        layout = DeviceLayout(Path(target_root))
        result = SyncResult(target_root=layout.root)

        layout.root.mkdir(parents=True, exist_ok=True)
        _write_json(layout.manifest_path, Cartridge(cartridge_name=cartridge_name).to_dict())
        layout.game_dir.mkdir(parents=True, exist_ok=True)

        for synced_id in layout.synced_ids():
            title = self.store.get(synced_id)
            if title is not None and not title.selected:
                self.remove_from_device(synced_id, layout.root)
                result.removed_ids.append(synced_id)

        selected = self.store.selected_titles()
        for index, title in enumerate(selected, start=1):
            if progress is not None:
                progress(PROGRESS_LABEL, index, len(selected))
            result.files_copied += await self._sync_title(layout, title, result)
            result.titles_synced += 1
        return result

    def remove_from_device(self, title_id: str, target_root: Path) -> list[Path]:
        return remove_from_device(title_id, Path(target_root))

    async def _sync_title(self, layout: DeviceLayout, title: Title, result: SyncResult) -> int:
        platform = self.store.platform_for(title)
        uses_default_core = title.emulator_core is None
        core = platform.find_core(title.emulator_core)
        if core is None and not uses_default_core:
            result.warnings.append(f"{title.id}: core '{title.emulator_core}' is not configured for {platform.name}")
        copied = 0

        if core is not None:
            copied += await self._copy_core_assets(layout, platform, core, uses_default_core)

        images_dir = self.store.images_dir(title.id)
        if images_dir.is_dir():
            for image in sorted(images_dir.iterdir()):
                if image.is_file() and await asyncio.to_thread(copy_if_newer, image, layout.game_dir / image.name):
                    copied += 1

        if title.is_multi_disc or not uses_default_core:
            rom_target_dir = layout.roms_dir
        else:
            rom_target_dir = layout.rom_dir(platform.special.default_core_rom_dir)
        rom_target_dir.mkdir(parents=True, exist_ok=True)

        copied_rom_names: list[str] = []
        rom_dir = self.store.rom_dir(title.id)
        rom_files = sorted(path for path in rom_dir.iterdir() if path.is_file()) if rom_dir.is_dir() else []
        for rom_file in rom_files:
            # Discs keep their names so the playlist can reference them.
            target_name = rom_file.name if title.is_multi_disc else title.rom_file_name
            if await asyncio.to_thread(copy_if_newer, rom_file, rom_target_dir / target_name):
                copied += 1
            copied_rom_names.append(target_name)

        playlist_name: str | None = None
        if title.is_multi_disc:
            playlist_name = f"{title.sync_title}.m3u"
            _write_text(rom_target_dir / playlist_name, "".join(f"{name}\n" for name in copied_rom_names))

        device_rom_file_name = title.rom_file_name
        if core is not None and not core.auto_launch:
            device_rom_file_name = self._write_launcher(
                layout, title, platform, core, uses_default_core, playlist_name, rom_target_dir.name
            )

        _write_json(layout.descriptor_path(title.id), device_descriptor(title, device_rom_file_name))
        return copied

    async def _copy_core_assets(
        self,
        layout: DeviceLayout,
        platform: Platform,
        core: EmulatorCore,
        uses_default_core: bool,
    ) -> int:
        copied = 0
        for core_file in core.files:
            source = await self.assets.get_local_path(core_file.source_url, core_file.source_path)
            if await asyncio.to_thread(copy_if_newer, source, layout.root / core_file.target_path):
                copied += 1

        # Built-in emulators read /bios, RetroArch cores read retroarch/system.
        bios_target_dir = layout.bios_dir if uses_default_core else layout.retroarch_system_dir
        for bios_file in platform.bios_files:
            source = self.bios_root / platform.alias / bios_file
            if not source.is_file():
                logger.debug("BIOS file %s missing locally; not copied", source)
                continue
            if await asyncio.to_thread(copy_if_newer, source, bios_target_dir / bios_file):
                copied += 1
        return copied

    def _write_launcher(
        self,
        layout: DeviceLayout,
        title: Title,
        platform: Platform,
        core: EmulatorCore,
        uses_default_core: bool,
        playlist_name: str | None,
        rom_dir_name: str,
    ) -> str:
        """Write the files a non-autolaunch core needs; returns the rom name for the descriptor."""
        if uses_default_core and platform.special is SpecialHandling.MAME:
            _write_text(layout.cue_path(title.id), title.preferred_rom_file_name)
            return layout.cue_path(title.id).name

        marker = layout.marker_path(title.id)
        if not marker.exists():
            marker.write_bytes(b"")
        layout.special_dir.mkdir(parents=True, exist_ok=True)
        script = render_launch_script(
            template_for(uses_default_core),
            core.core_file_name,
            playlist_name or title.preferred_rom_file_name,
            rom_dir_name,
        )
        layout.script_path(title.id).write_bytes(script.encode("utf-8"))
        return Path(title.rom_file_name).stem


def device_descriptor(title: Title, rom_file_name: str) -> dict[str, object]:
    return {
        "id": title.id,
        "romTitle": title.title,
        "romFileName": rom_file_name,
        "romPlatform": title.platform_name or "",
        "romDescription": title.description or "",
        "romPlayers": title.players if title.players is not None else 1,
        "romReleaseDate": title.release_date or "",
        "romGenre": title.genre or "",
        "image": title.artwork_ref(ImageSlot.SMALL) or "",
        "imageHD": title.artwork_ref(ImageSlot.MEDIUM) or "",
        "image1080": title.artwork_ref(ImageSlot.LARGE) or "",
        "imageBanner": title.artwork_ref(ImageSlot.BANNER) or "",
    }


def _write_json(path: Path, payload: dict[str, object]) -> None:
    _write_text(path, json.dumps(payload, indent=2))


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode("utf-8"))
