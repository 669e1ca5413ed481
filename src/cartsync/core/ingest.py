from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
import shutil

from cartsync.core.hashing import HashProvider, compute_hashes, normalize_crc
from cartsync.core.library import LibraryStore, ProgressCallback
from cartsync.core.models import Platform, Title
from cartsync.core.titles import assign_identifier

logger = logging.getLogger(__name__)

MULTI_DISC_RE = re.compile(r"\(disk\s+(\d+)\s+of\s+(\d+)\)", re.IGNORECASE)
PROGRESS_LABEL = "Importing game(s)"


@dataclass(slots=True)
class IngestResult:
    titles: list[Title] = field(default_factory=list)
    duplicates: list[Path] = field(default_factory=list)
    unmapped: list[Path] = field(default_factory=list)
    extra_discs: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _DiscGroup:
    title_id: str
    base_title: str


class IngestionPipeline:
    """Turns rom files into new library titles.

    Files whose content is already owned are skipped, as are files no
    platform accepts. Consecutive ``(Disk N of M)`` files are folded into the
    title created for disk 1. Re-importing a set already in the library only
    reports its discs as duplicates.
    """

    def __init__(self, store: LibraryStore, hash_provider: HashProvider = compute_hashes) -> None:
        self.store = store
        self.hash_provider = hash_provider

    async def ingest(self, rom_paths: list[Path], progress: ProgressCallback | None = None) -> IngestResult:
        result = IngestResult()
        group: _DiscGroup | None = None
        total = len(rom_paths)

        for index, rom_path in enumerate(rom_paths, start=1):
            if progress is not None:
                progress(PROGRESS_LABEL, index, total)
            rom_path = Path(rom_path)

            crc32, md5 = await asyncio.to_thread(self.hash_provider, rom_path)
            crc32 = normalize_crc(crc32) or crc32
            title = rom_path.stem
            ext = rom_path.suffix.lower()
            title_id: str | None = None
            disc = MULTI_DISC_RE.search(title)
            starts_group = disc is not None and int(disc.group(1)) == 1 and disc.start() > 0

            if self.store.has_crc(crc32):
                result.duplicates.append(rom_path)
                if starts_group:
                    # Later discs of an already imported set rejoin its title.
                    owner = self.store.find_by_crc(crc32)
                    group = _DiscGroup(owner.id, title[: disc.start()].strip()) if owner is not None else None
                continue

            if starts_group:
                base_title = title[: disc.start()].strip()
                title_id = assign_identifier(base_title, self.store.ids)
                group = _DiscGroup(title_id=title_id, base_title=base_title)
                title = base_title
            elif disc is not None and group is not None and title[: disc.start()].strip() == group.base_title:
                destination = self.store.rom_dir(group.title_id) / rom_path.name
                if await self._holds_content(destination, crc32):
                    result.duplicates.append(rom_path)
                else:
                    await asyncio.to_thread(_copy_rom, rom_path, destination)
                    result.extra_discs.append(rom_path)
                continue
            elif disc is not None and await self._find_disc_owner(rom_path.name, crc32) is not None:
                result.duplicates.append(rom_path)
                group = None
                continue
            else:
                group = None

            platform = self.resolve_platform(ext)
            if platform is None:
                logger.warning("No platform accepts extension '%s'; skipped %s", ext, rom_path)
                result.unmapped.append(rom_path)
                group = None
                continue

            if title_id is None:
                title_id = assign_identifier(title, self.store.ids)

            new_title = Title(
                id=title_id,
                title=title,
                platform_id=platform.id,
                platform_name=platform.name,
                crc32=crc32,
                md5=md5,
                rom_file_name=rom_path.name if platform.special.keeps_rom_file_names else f"{title_id}{ext}",
                original_rom_file_name=rom_path.name,
                recently_added=True,
                is_multi_disc=group is not None and group.title_id == title_id,
            )
            if platform.default_core is None and platform.emulator_cores:
                new_title.emulator_core = platform.emulator_cores[0].core_file_name

            self.store.ensure_title_dirs(title_id)
            await asyncio.to_thread(_copy_rom, rom_path, self.store.rom_dir(title_id) / rom_path.name)
            self.store.save(new_title)
            self.store.add(new_title)
            result.titles.append(new_title)
            logger.debug("Imported %s as '%s' (%s)", rom_path.name, title_id, platform.alias)

        return result

    def resolve_platform(self, extension: str) -> Platform | None:
        """Pick the platform for an extension.

        Platforms without a built-in core come first, then built-in cores that
        cannot autolaunch, then the rest; declaration order breaks ties.
        """
        candidates = self.store.platforms_for_extension(extension)
        if not candidates:
            return None
        return sorted(candidates, key=_autolaunch_rank)[0]

    async def _holds_content(self, path: Path, crc32: str) -> bool:
        if not path.is_file():
            return False
        existing_crc, _ = await asyncio.to_thread(self.hash_provider, path)
        return normalize_crc(existing_crc) == crc32

    async def _find_disc_owner(self, file_name: str, crc32: str) -> Title | None:
        """Return the multi-disc title whose rom folder already holds this disc."""
        for title in self.store.titles:
            if title.is_multi_disc and await self._holds_content(self.store.rom_dir(title.id) / file_name, crc32):
                return title
        return None


def _autolaunch_rank(platform: Platform) -> int:
    if platform.default_core is None:
        return 0
    return 2 if platform.default_core.auto_launch else 1


def _copy_rom(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)
