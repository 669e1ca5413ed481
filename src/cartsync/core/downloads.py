from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
import shutil
from urllib.parse import urlparse
import zipfile

import aiohttp

from cartsync.core.errors import AssetDownloadError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
_CHUNK_SIZE = 64 * 1024


class AssetCache:
    """Local cache for emulator core files downloaded from the web.

    Archives are extracted on demand when a member path is requested; both the
    archive and the extracted member stay cached, so a file is downloaded at
    most once.
    """

    def __init__(
        self,
        cache_root: Path,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.cache_root = cache_root
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def cached_path(self, source_url: str) -> Path:
        parsed = urlparse(source_url)
        parts = [part for part in PurePosixPath(parsed.path).parts if part not in ("/", "..", ".")]
        return self.cache_root.joinpath(parsed.netloc or "local", *parts)

    def extracted_path(self, source_url: str, source_path: str) -> Path:
        archive = self.cached_path(source_url)
        member_parts = [part for part in PurePosixPath(source_path).parts if part not in ("/", "..", ".")]
        return archive.with_name(f"{archive.name}.d").joinpath(*member_parts)

    async def get_local_path(self, source_url: str, source_path: str | None = None) -> Path:
        """Return a local file for ``source_url``, downloading it when missing.

        When ``source_path`` is given and the download is a zip archive, the
        named member is extracted and its path returned instead.
        """
        downloaded = self.cached_path(source_url)
        if not downloaded.exists():
            await self._download(source_url, downloaded)
        if not source_path or not zipfile.is_zipfile(downloaded):
            return downloaded

        extracted = self.extracted_path(source_url, source_path)
        if not extracted.exists():
            await asyncio.to_thread(_extract_member, downloaded, source_path, extracted)
        return extracted

    async def _download(self, url: str, destination: Path) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
            self._owns_session = True

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(f"{destination.name}.part")
        logger.info("Downloading %s", url)
        try:
            async with self._session.get(url) as response:
                if response.status != 200:
                    raise AssetDownloadError(f"Download of {url} failed with HTTP {response.status}")
                with partial.open("wb") as handle:
                    async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                        handle.write(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            partial.unlink(missing_ok=True)
            raise AssetDownloadError(f"Download of {url} failed: {exc}") from exc
        partial.replace(destination)


def _extract_member(archive: Path, member: str, destination: Path) -> None:
    with zipfile.ZipFile(archive) as bundle:
        try:
            info = bundle.getinfo(member)
        except KeyError as exc:
            raise AssetDownloadError(f"'{member}' not found in {archive.name}") from exc
        destination.parent.mkdir(parents=True, exist_ok=True)
        with bundle.open(info) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
