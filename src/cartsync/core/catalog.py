"""Async client for the TheGamesDB v1 API.

Only the fields the enrichment engine consumes are parsed. Transport errors
are logged and surface as a page with ``code == 0`` so callers can treat them
like any other non-200 answer.
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
import logging
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
GAME_FIELDS: tuple[str, ...] = ("players", "publishers", "genres", "overview", "platform")
BOXART_INCLUDE: tuple[str, ...] = ("boxart",)
BANNER_IMAGE_TYPES: tuple[str, ...] = ("screenshot", "titlescreen", "fanart")


@dataclass(slots=True)
class CatalogGame:
    id: int
    game_title: str | None = None
    release_date: str | None = None
    platform: int | None = None
    players: int | None = None
    overview: str | None = None
    genres: list[int] = field(default_factory=list)


@dataclass(slots=True)
class CatalogImage:
    id: int
    type: str | None = None
    side: str | None = None
    file_name: str = ""


@dataclass(slots=True)
class CatalogPage:
    code: int
    games: list[CatalogGame] = field(default_factory=list)
    box_art_base_url: str = ""
    box_art: dict[int, list[CatalogImage]] = field(default_factory=dict)
    image_base_url: str = ""
    images: dict[int, list[CatalogImage]] = field(default_factory=dict)
    next_url: str | None = None
    client: CatalogClient | None = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.code == 200

    @property
    def has_next(self) -> bool:
        return bool(self.next_url)

    async def next_page(self) -> CatalogPage | None:
        if not self.next_url or self.client is None:
            return None
        return await self.client.fetch_url(self.next_url)


class CatalogClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.thegamesdb.net",
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        return self._session

    async def find_by_ids(
        self,
        ids: Iterable[int],
        include: Iterable[str] = BOXART_INCLUDE,
        fields: Iterable[str] = GAME_FIELDS,
    ) -> CatalogPage:
        params = {
            "id": _join(ids),
            "fields": _join(fields),
            "include": _join(include),
        }
        return await self.fetch_url(f"{self.base_url}/v1/Games/ByGameID", params)

    async def find_by_name(
        self,
        name: str,
        page: int = 1,
        platform_ids: Iterable[int] = (),
        include: Iterable[str] = BOXART_INCLUDE,
        fields: Iterable[str] = GAME_FIELDS,
    ) -> CatalogPage:
        params = {
            "name": name,
            "page": str(page),
            "fields": _join(fields),
            "include": _join(include),
        }
        platform_filter = _join(platform_ids)
        if platform_filter:
            params["filter[platform]"] = platform_filter
        return await self.fetch_url(f"{self.base_url}/v1.1/Games/ByGameName", params)

    async def images_by_ids(
        self,
        ids: Iterable[int],
        image_types: Iterable[str] = BANNER_IMAGE_TYPES,
    ) -> CatalogPage:
        params = {
            "games_id": _join(ids),
            "filter[type]": _join(image_types),
        }
        return await self.fetch_url(f"{self.base_url}/v1/Games/Images", params)

    async def fetch_url(self, url: str, params: dict[str, str] | None = None) -> CatalogPage:
        query = dict(params or {})
        if "apikey=" not in url:
            query["apikey"] = self.api_key
        session = self._get_session()
        try:
            async with session.get(url, params=query) as response:
                if response.status != 200:
                    logger.warning("Catalog request %s failed with HTTP %s", url, response.status)
                    return CatalogPage(code=response.status, client=self)
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Catalog request %s failed: %s", url, exc)
            return CatalogPage(code=0, client=self)
        page = parse_page(payload if isinstance(payload, dict) else {})
        page.client = self
        return page


def parse_page(payload: dict[str, Any]) -> CatalogPage:
    data = payload.get("data") or {}
    include = payload.get("include") or {}
    boxart = include.get("boxart") or {}
    pages = payload.get("pages") or {}

    page = CatalogPage(code=_int(payload.get("code")) or 200, next_url=pages.get("next") or None)
    page.games = [_parse_game(item) for item in data.get("games") or [] if isinstance(item, dict)]
    page.box_art_base_url = _medium_url(boxart.get("base_url"))
    page.box_art = _parse_image_map(boxart.get("data"))
    page.image_base_url = _medium_url(data.get("base_url"))
    page.images = _parse_image_map(data.get("images"))
    return page


def _parse_game(item: dict[str, Any]) -> CatalogGame:
    genres = [_int(value) for value in item.get("genres") or []]
    return CatalogGame(
        id=_int(item.get("id")) or 0,
        game_title=item.get("game_title"),
        release_date=item.get("release_date") or None,
        platform=_int(item.get("platform")),
        players=_int(item.get("players")),
        overview=item.get("overview"),
        genres=[value for value in genres if value is not None],
    )


def _parse_image_map(raw: Any) -> dict[int, list[CatalogImage]]:
    if not isinstance(raw, dict):
        return {}
    images: dict[int, list[CatalogImage]] = {}
    for key, entries in raw.items():
        game_id = _int(key)
        if game_id is None or not isinstance(entries, list):
            continue
        images[game_id] = [
            CatalogImage(
                id=_int(entry.get("id")) or 0,
                type=entry.get("type"),
                side=entry.get("side"),
                file_name=entry.get("filename") or "",
            )
            for entry in entries
            if isinstance(entry, dict)
        ]
    return images


def _medium_url(base_url: Any) -> str:
    if isinstance(base_url, dict):
        return str(base_url.get("medium") or base_url.get("original") or "")
    return ""


def _int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _join(values: Iterable[Any]) -> str:
    return ",".join(str(value) for value in values)
