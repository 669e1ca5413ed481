from __future__ import annotations

from collections.abc import Iterable, Iterator
import json
import logging
from pathlib import Path
import shutil
from typing import Callable

from cartsync.core.errors import UnknownPlatformError
from cartsync.core.hashing import normalize_crc
from cartsync.core.models import ImageSlot, Platform, Title

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]

SUBFOLDER_IMAGES = "images"
SUBFOLDER_IMAGES_SOURCE = "source"
SUBFOLDER_ROM = "rom"


class LibraryStore:
    """In-memory index of all titles with a JSON record per title on disk.

    Titles are indexed by id and by CRC32. Every mutation is followed by an
    explicit ``save``; nothing is flushed in the background. The store is not
    thread-safe: callers run one import/scrape/sync/delete at a time.
    """

    def __init__(self, games_root: Path, platforms: Iterable[Platform]) -> None:
        self.games_root = games_root
        self.platforms: list[Platform] = list(platforms)
        self._titles: dict[str, Title] = {}
        self._ids_by_crc: dict[str, str] = {}
        self.games_root.mkdir(parents=True, exist_ok=True)

    def __len__(self) -> int:
        return len(self._titles)

    def __iter__(self) -> Iterator[Title]:
        return iter(list(self._titles.values()))

    def __contains__(self, title_id: object) -> bool:
        return title_id in self._titles

    @property
    def titles(self) -> list[Title]:
        return list(self._titles.values())

    @property
    def ids(self) -> set[str]:
        return set(self._titles)

    def get(self, title_id: str) -> Title | None:
        return self._titles.get(title_id)

    def find_by_crc(self, crc32: str) -> Title | None:
        title_id = self._ids_by_crc.get(normalize_crc(crc32) or "")
        return self._titles.get(title_id) if title_id else None

    def has_crc(self, crc32: str) -> bool:
        return (normalize_crc(crc32) or "") in self._ids_by_crc

    def selected_titles(self) -> list[Title]:
        return [title for title in self._titles.values() if title.selected]

    # Paths

    def title_dir(self, title_id: str) -> Path:
        return self.games_root / title_id

    def record_path(self, title_id: str) -> Path:
        return self.title_dir(title_id) / f"{title_id}.json"

    def images_dir(self, title_id: str) -> Path:
        return self.title_dir(title_id) / SUBFOLDER_IMAGES

    def rom_dir(self, title_id: str) -> Path:
        return self.title_dir(title_id) / SUBFOLDER_ROM

    def image_path(self, title_id: str, slot: ImageSlot) -> Path:
        return self.images_dir(title_id) / slot.file_name(title_id)

    @staticmethod
    def source_image_path(image_path: Path) -> Path:
        return image_path.parent / SUBFOLDER_IMAGES_SOURCE / image_path.name

    def ensure_title_dirs(self, title_id: str) -> None:
        # Creating images/source also creates images/.
        (self.images_dir(title_id) / SUBFOLDER_IMAGES_SOURCE).mkdir(parents=True, exist_ok=True)
        self.rom_dir(title_id).mkdir(parents=True, exist_ok=True)

    # Platforms

    def platform_by_id(self, platform_id: int) -> Platform | None:
        for platform in self.platforms:
            if platform.id == platform_id:
                return platform
        return None

    def platform_for(self, title: Title) -> Platform:
        platform = self.platform_by_id(title.platform_id)
        if platform is None:
            raise UnknownPlatformError(f"Title '{title.id}' references unknown platform {title.platform_id}")
        return platform

    def platforms_for_extension(self, extension: str | None) -> list[Platform]:
        if not extension:
            return []
        return [platform for platform in self.platforms if platform.accepts(extension)]

    def list_title(self, title: Title | None) -> str:
        if title is None:
            return ""
        return f"{title.title} [{title.platform_name}]"

    # Mutation

    def add(self, title: Title) -> None:
        if title.id in self._titles:
            raise ValueError(f"Duplicate title id: {title.id}")
        crc = normalize_crc(title.crc32) or ""
        if crc in self._ids_by_crc:
            raise ValueError(f"Duplicate content hash {crc} for title {title.id}")
        self._titles[title.id] = title
        self._ids_by_crc[crc] = title.id

    def save(self, title: Title) -> None:
        if not title.platform_name:
            platform = self.platform_by_id(title.platform_id)
            title.platform_name = platform.name if platform is not None else None
        path = self.record_path(title.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(title.to_dict(), indent=2), encoding="utf-8")

    def set_selected(self, title_id: str, selected: bool) -> Title | None:
        title = self._titles.get(title_id)
        if title is None or title.selected == selected:
            return title
        title.selected = selected
        self.save(title)
        return title

    def delete(self, title_ids: Iterable[str]) -> None:
        for title_id in title_ids:
            title_dir = self.title_dir(title_id)
            if title_dir.exists():
                shutil.rmtree(title_dir)
            title = self._titles.pop(title_id, None)
            if title is not None:
                self._ids_by_crc.pop(normalize_crc(title.crc32) or "", None)

    def clear_image(self, title: Title, slot: ImageSlot, persist: bool = True) -> None:
        image_path = self.image_path(title.id, slot)
        image_path.unlink(missing_ok=True)
        self.source_image_path(image_path).unlink(missing_ok=True)
        title.set_artwork_ref(slot, None)
        if persist:
            self.save(title)

    # Loading

    def load(self, progress: ProgressCallback | None = None) -> int:
        """Read every title folder under the games root; returns the number loaded.

        Folders with a missing, unreadable or mismatching record, or without
        rom files, are skipped and left on disk untouched.
        """
        if not self.games_root.exists():
            return 0
        title_dirs = sorted(path for path in self.games_root.iterdir() if path.is_dir())
        loaded = 0
        for index, title_dir in enumerate(title_dirs, start=1):
            if progress is not None:
                progress("Loading games", index, len(title_dirs))
            record = title_dir / f"{title_dir.name}.json"
            if not record.exists():
                continue
            try:
                title = Title.from_dict(json.loads(record.read_text(encoding="utf-8")))
            except (OSError, ValueError, TypeError) as exc:
                logger.warning("Skipping unreadable title record %s: %s", record, exc)
                continue
            if title.id != title_dir.name:
                logger.warning("Skipping title record %s: id '%s' does not match folder", record, title.id)
                continue
            rom_dir = self.rom_dir(title.id)
            if not rom_dir.is_dir() or not any(rom_dir.iterdir()):
                logger.warning("Skipping title '%s': no rom files in %s", title.id, rom_dir)
                continue
            crc = normalize_crc(title.crc32) or ""
            if title.id in self._titles or crc in self._ids_by_crc:
                logger.warning("Skipping title '%s': already loaded", title.id)
                continue
            self.ensure_title_dirs(title.id)
            self._titles[title.id] = title
            self._ids_by_crc[crc] = title.id
            loaded += 1
        return loaded
