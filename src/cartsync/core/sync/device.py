from __future__ import annotations

from dataclasses import dataclass
from glob import escape as glob_escape
import logging
from pathlib import Path
import re
import shutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeviceLayout:
    """Directory layout the cartridge firmware expects on the SD card."""

    root: Path

    @property
    def manifest_path(self) -> Path:
        return self.root / "cartridge.json"

    @property
    def game_dir(self) -> Path:
        return self.root / "game"

    @property
    def roms_dir(self) -> Path:
        return self.root / "roms"

    @property
    def mame_dir(self) -> Path:
        return self.root / "mame"

    @property
    def bios_dir(self) -> Path:
        return self.root / "bios"

    @property
    def retroarch_system_dir(self) -> Path:
        return self.root / "retroarch" / "system"

    @property
    def special_dir(self) -> Path:
        return self.root / "special"

    def rom_dir(self, name: str) -> Path:
        return self.root / name

    def descriptor_path(self, title_id: str) -> Path:
        return self.game_dir / f"{title_id}.json"

    def cue_path(self, title_id: str) -> Path:
        return self.game_dir / f"{title_id}.cue"

    def marker_path(self, title_id: str) -> Path:
        return self.game_dir / title_id

    def script_path(self, title_id: str) -> Path:
        return self.special_dir / f"{title_id}.sh"

    def synced_ids(self) -> list[str]:
        if not self.game_dir.is_dir():
            return []
        return sorted(path.stem for path in self.game_dir.glob("*.json") if path.is_file())


def copy_if_newer(source: Path, destination: Path) -> bool:
    """Copy ``source`` unless ``destination`` exists and is at least as new.

    Timestamps are preserved so an unchanged source is skipped next time.
    """
    if destination.exists() and destination.stat().st_mtime >= source.stat().st_mtime:
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)
    return True


def remove_from_device(title_id: str, target_root: Path) -> list[Path]:
    """Delete the device files written for one title; returns the removed paths.

    Roms copied into ``roms/`` are not tracked per title and stay on the card.
    """
    layout = DeviceLayout(target_root)
    if not layout.descriptor_path(title_id).exists():
        return []

    removed: list[Path] = []
    cue_path = layout.cue_path(title_id)
    if cue_path.exists():
        mame_rom_name = cue_path.read_text(encoding="utf-8").strip()
        mame_rom = layout.mame_dir / mame_rom_name
        if mame_rom_name and mame_rom.is_file():
            mame_rom.unlink()
            removed.append(mame_rom)

    script_path = layout.script_path(title_id)
    if script_path.exists():
        script_path.unlink()
        removed.append(script_path)

    for path in _game_dir_files(layout, title_id):
        path.unlink()
        removed.append(path)
    logger.debug("Removed %d device files for '%s'", len(removed), title_id)
    return removed


def _game_dir_files(layout: DeviceLayout, title_id: str) -> list[Path]:
    # Descriptor, rom, cue and marker files, then numbered artwork and the banner.
    artwork_re = re.compile(rf"{re.escape(title_id)}[012](?:_hd|_1080)?\.png")
    escaped = glob_escape(title_id)
    matches: set[Path] = set(layout.game_dir.glob(f"{escaped}.*"))
    for digit in "012":
        matches.update(path for path in layout.game_dir.glob(f"{escaped}{digit}*.png") if artwork_re.fullmatch(path.name))
    matches.update(layout.game_dir.glob(f"{escaped}_gamebanner.png"))
    marker = layout.marker_path(title_id)
    if marker.is_file():
        matches.add(marker)
    return sorted(path for path in matches if path.is_file())
