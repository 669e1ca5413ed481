from __future__ import annotations

import asyncio
from collections.abc import Iterable
from io import BytesIO
import logging
from pathlib import Path

import aiohttp
from PIL import Image, ImageOps, UnidentifiedImageError

from cartsync.core.library import LibraryStore
from cartsync.core.models import ImageSlot, Title

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class ImageResizer:
    """Downloads catalog artwork and writes one PNG per requested slot.

    The downloaded original is kept next to each slot under ``images/source``
    so a slot can be regenerated without going back to the network.
    """

    def __init__(
        self,
        store: LibraryStore,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def resize(self, source_url: str, title: Title, slots: Iterable[ImageSlot]) -> list[ImageSlot]:
        data = await self._download(source_url)
        if data is None:
            return []
        return await asyncio.to_thread(self.resize_bytes, data, title.id, list(slots))

    def resize_bytes(self, data: bytes, title_id: str, slots: list[ImageSlot]) -> list[ImageSlot]:
        try:
            with Image.open(BytesIO(data)) as opened:
                source = opened.convert("RGBA")
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Could not decode artwork for '%s': %s", title_id, exc)
            return []

        written: list[ImageSlot] = []
        for slot in slots:
            target = self.store.image_path(title_id, slot)
            _save_png(source, self.store.source_image_path(target))
            _save_png(ImageOps.pad(source, slot.size, method=Image.Resampling.LANCZOS, color=(0, 0, 0, 0)), target)
            written.append(slot)
        return written

    async def _download(self, url: str) -> bytes | None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True
        try:
            async with self._session.get(url) as response:
                if response.status != 200:
                    logger.warning("Artwork download %s failed with HTTP %s", url, response.status)
                    return None
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Artwork download %s failed: %s", url, exc)
            return None


def _save_png(image: Image.Image, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")
