from __future__ import annotations

from io import BytesIO
from pathlib import Path
import sys
import tempfile
import unittest
import zipfile

from aiohttp import test_utils, web

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.downloads import AssetCache
from cartsync.core.errors import AssetDownloadError


def _zip_bytes(members: dict[str, bytes]) -> bytes:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, content in members.items():
            bundle.writestr(name, content)
    return buffer.getvalue()


class AssetCacheTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.hits: list[str] = []
        app = web.Application()
        app.router.add_get("/cores/gpsp_libretro.so.zip", self._core_zip)
        app.router.add_get("/bios/readme.txt", self._plain)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.cache = AssetCache(Path(self._temp_dir.name) / "downloads")

    async def asyncTearDown(self) -> None:
        await self.cache.close()
        await self.server.close()
        self._temp_dir.cleanup()

    async def _core_zip(self, request: web.Request) -> web.Response:
        self.hits.append(request.path)
        return web.Response(body=_zip_bytes({"gpsp_libretro.so": b"\x7fELF core"}), content_type="application/zip")

    async def _plain(self, request: web.Request) -> web.Response:
        self.hits.append(request.path)
        return web.Response(text="hello")

    def _url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def test_extracts_member_and_reuses_cache(self) -> None:
        url = self._url("/cores/gpsp_libretro.so.zip")

        first = await self.cache.get_local_path(url, "gpsp_libretro.so")
        second = await self.cache.get_local_path(url, "gpsp_libretro.so")

        self.assertEqual(first, second)
        self.assertEqual(first.name, "gpsp_libretro.so")
        self.assertEqual(first.read_bytes(), b"\x7fELF core")
        self.assertEqual(self.hits, ["/cores/gpsp_libretro.so.zip"])
        self.assertTrue(self.cache.cached_path(url).is_file())
        self.assertFalse(self.cache.cached_path(url).with_name("gpsp_libretro.so.zip.part").exists())

    async def test_plain_file_is_returned_as_downloaded(self) -> None:
        url = self._url("/bios/readme.txt")

        path = await self.cache.get_local_path(url, "ignored")

        self.assertEqual(path, self.cache.cached_path(url))
        self.assertEqual(path.read_text(encoding="utf-8"), "hello")

    async def test_missing_member_raises(self) -> None:
        with self.assertRaises(AssetDownloadError):
            await self.cache.get_local_path(self._url("/cores/gpsp_libretro.so.zip"), "other.so")

    async def test_http_error_raises_and_leaves_no_file(self) -> None:
        url = self._url("/cores/missing.zip")

        with self.assertRaises(AssetDownloadError):
            await self.cache.get_local_path(url)

        self.assertFalse(self.cache.cached_path(url).exists())

    def test_cached_path_stays_inside_cache_root(self) -> None:
        path = self.cache.cached_path("https://example.org/a/../../etc/passwd")
        self.assertTrue(str(path).startswith(str(self.cache.cache_root)))


if __name__ == "__main__":
    unittest.main()
