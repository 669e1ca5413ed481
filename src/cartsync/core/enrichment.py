from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
import json
import logging
from pathlib import Path
from typing import Protocol

from cartsync.config.platforms import catalog_platform_aliases, map_genre
from cartsync.core.catalog import BANNER_IMAGE_TYPES, CatalogGame, CatalogImage, CatalogPage
from cartsync.core.hashing import normalize_crc
from cartsync.core.library import LibraryStore, ProgressCallback
from cartsync.core.models import BOX_ART_SLOTS, ImageSlot, Title
from cartsync.core.titles import clean_title, compare_key

logger = logging.getLogger(__name__)

LABEL_BY_HASH = "Scraping Game info by CRC code"
LABEL_BY_NAME = "Scraping Game info by name"
LABEL_BANNERS = "Looking for banner images"
LABEL_SAVE = "Updating game database"

ROM_MAPPINGS_RESOURCE = Path(__file__).resolve().parents[1] / "resources" / "rom_mappings.json"


class Catalog(Protocol):
    async def find_by_ids(self, ids: Iterable[int]) -> CatalogPage: ...

    async def find_by_name(self, name: str, page: int = 1, platform_ids: Iterable[int] = ()) -> CatalogPage: ...

    async def images_by_ids(self, ids: Iterable[int], image_types: Iterable[str] = BANNER_IMAGE_TYPES) -> CatalogPage: ...


class Resizer(Protocol):
    async def resize(self, source_url: str, title: Title, slots: Iterable[ImageSlot]) -> list[ImageSlot]: ...


@dataclass(slots=True)
class EnrichmentResult:
    matched_by_hash: list[Title] = field(default_factory=list)
    matched_by_name: list[Title] = field(default_factory=list)
    banners_found: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def matched(self) -> list[Title]:
        return self.matched_by_hash + self.matched_by_name


def load_rom_mappings(*paths: Path) -> dict[str, int]:
    """Merge CRC32 -> catalog game id tables; later files win on conflicts."""
    mappings: dict[str, int] = {}
    for path in paths or (ROM_MAPPINGS_RESOURCE,):
        if not path.exists():
            continue
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable rom mapping file %s: %s", path, exc)
            continue
        if not isinstance(payload, dict):
            continue
        for crc, catalog_id in payload.items():
            key = normalize_crc(str(crc))
            if key is None:
                continue
            try:
                mappings[key] = int(catalog_id)
            except (TypeError, ValueError):
                continue
    return mappings


class EnrichmentEngine:
    """Fills in metadata and artwork for library titles from the game catalog.

    Titles are first matched by rom CRC through a precomputed mapping, the
    rest by searching the catalog for their cleaned name. A name match is only
    trusted when every equally named candidate is on the same platform, and it
    never renames the local title.

    Each title is saved as soon as a catalog match is applied to it, so a
    cancelled run leaves memory and disk in agreement.
    """

    def __init__(
        self,
        store: LibraryStore,
        catalog: Catalog,
        resizer: Resizer,
        rom_mappings: dict[str, int],
        platform_aliases: dict[int, int] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.resizer = resizer
        self.rom_mappings = {normalize_crc(crc): catalog_id for crc, catalog_id in rom_mappings.items()}
        self.platform_aliases = (
            platform_aliases if platform_aliases is not None else catalog_platform_aliases(store.platforms)
        )

    async def enrich_ids(self, title_ids: Iterable[str], progress: ProgressCallback | None = None) -> EnrichmentResult:
        titles = [title for title in (self.store.get(title_id) for title_id in title_ids) if title is not None]
        return await self.enrich(titles, progress)

    async def enrich(self, titles: Iterable[Title], progress: ProgressCallback | None = None) -> EnrichmentResult:
        titles = list(titles)
        result = EnrichmentResult()
        mapped: dict[int, list[Title]] = {}

        for title in titles:
            catalog_id = self.rom_mappings.get(normalize_crc(title.crc32))
            if catalog_id is not None:
                mapped.setdefault(catalog_id, []).append(title)
                result.matched_by_hash.append(title)

        await self._match_by_hash(mapped, len(result.matched_by_hash), result, progress)

        hashed_ids = {title.id for title in result.matched_by_hash}
        unmapped = [title for title in titles if title.id not in hashed_ids]
        for index, title in enumerate(unmapped, start=1):
            game, page = await self._match_by_name(title)
            _report(progress, LABEL_BY_NAME, index, len(unmapped))
            if game is None or page is None:
                continue
            title.catalog_id = game.id
            mapped.setdefault(game.id, []).append(title)
            result.matched_by_name.append(title)
            self._apply_metadata(title, game, overwrite_title=False)
            await self._apply_box_art(title, game, page)
            self.store.save(title)

        if mapped:
            result.banners_found = await self._find_banners(mapped, len(result.matched), progress)

        matched = result.matched
        for index, title in enumerate(matched, start=1):
            _report(progress, LABEL_SAVE, index, len(matched))
            self.store.save(title)
        return result

    async def _match_by_hash(
        self,
        mapped: dict[int, list[Title]],
        total: int,
        result: EnrichmentResult,
        progress: ProgressCallback | None,
    ) -> None:
        if not mapped:
            return
        processed = 0
        page: CatalogPage | None = await self.catalog.find_by_ids(list(mapped))
        while page is not None:
            if not page.ok:
                result.warnings.append(f"Catalog lookup by id failed with code {page.code}")
                break
            for game in page.games:
                for title in mapped.get(game.id, []):
                    processed += 1
                    _report(progress, LABEL_BY_HASH, processed, total)
                    title.catalog_id = game.id
                    self._apply_metadata(title, game, overwrite_title=True)
                    await self._apply_box_art(title, game, page)
                    self.store.save(title)
            page = await page.next_page() if page.has_next else None

    async def _match_by_name(self, title: Title) -> tuple[CatalogGame | None, CatalogPage | None]:
        name = clean_title(title.title)
        if name is None:
            return None, None
        platform_ids = [
            catalog_platform_id
            for platform in self.store.platforms_for_extension(title.rom_extension)
            for catalog_platform_id in platform.catalog_platform_ids
        ]
        page = await self.catalog.find_by_name(name, 1, platform_ids)
        if not page.ok:
            logger.warning("Catalog name search for '%s' failed with code %s", name, page.code)
            return None, None

        local_key = compare_key(title.title)
        candidates = [game for game in page.games if compare_key(game.game_title) == local_key]
        if not candidates:
            return None, None
        if any(game.platform != candidates[0].platform for game in candidates):
            logger.debug("Ambiguous catalog match for '%s' across platforms; skipped", title.title)
            return None, None
        return candidates[0], page

    async def _find_banners(
        self,
        mapped: dict[int, list[Title]],
        total: int,
        progress: ProgressCallback | None,
    ) -> int:
        processed = 0
        found = 0
        page: CatalogPage | None = await self.catalog.images_by_ids(list(mapped), BANNER_IMAGE_TYPES)
        while page is not None:
            if not page.ok:
                logger.warning("Catalog image lookup failed with code %s", page.code)
                break
            for catalog_id, images in page.images.items():
                for title in mapped.get(catalog_id, []):
                    processed += 1
                    _report(progress, LABEL_BANNERS, processed, total)
                    image = _first_by_type(images)
                    if image is None:
                        continue
                    written = await self.resizer.resize(
                        f"{page.image_base_url}{image.file_name}", title, [ImageSlot.BANNER]
                    )
                    if written:
                        title.set_artwork_ref(ImageSlot.BANNER, ImageSlot.BANNER.file_name(title.id))
                        self.store.save(title)
                        found += 1
            page = await page.next_page() if page.has_next else None
        return found

    def _apply_metadata(self, title: Title, game: CatalogGame, *, overwrite_title: bool) -> None:
        title.description = game.overview
        title.players = game.players if game.players is not None else 1
        title.release_date = _format_release_date(game.release_date)
        platform_id = self.platform_aliases.get(game.platform) if game.platform is not None else None
        if platform_id is not None and platform_id != title.platform_id:
            title.platform_id = platform_id
            platform = self.store.platform_by_id(platform_id)
            title.platform_name = platform.name if platform is not None else None
        if overwrite_title and game.game_title and game.game_title.strip():
            title.title = game.game_title
        title.genre = map_genre(game.genres)

    async def _apply_box_art(self, title: Title, game: CatalogGame, page: CatalogPage) -> None:
        images = page.box_art.get(game.id) or []
        if not images:
            return
        image = sorted(images, key=lambda item: 0 if item.side == "front" else 1)[0]
        written = await self.resizer.resize(f"{page.box_art_base_url}{image.file_name}", title, BOX_ART_SLOTS)
        for slot in written:
            title.set_artwork_ref(slot, slot.file_name(title.id))


def _first_by_type(images: list[CatalogImage]) -> CatalogImage | None:
    def rank(image: CatalogImage) -> int:
        return BANNER_IMAGE_TYPES.index(image.type) if image.type in BANNER_IMAGE_TYPES else len(BANNER_IMAGE_TYPES)

    ranked = sorted(images, key=rank)
    return ranked[0] if ranked else None


def _format_release_date(value: str | None) -> str:
    if not value:
        return ""
    try:
        return date.fromisoformat(value[:10]).strftime("%Y-%m-%d")
    except ValueError:
        return ""


def _report(progress: ProgressCallback | None, label: str, current: int, total: int) -> None:
    if progress is not None:
        progress(label, current, total)
