from __future__ import annotations

import json
from pathlib import Path
import sys
import tempfile
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.errors import UnknownPlatformError
from cartsync.core.library import LibraryStore
from cartsync.core.models import ImageSlot, Platform, Title

PLATFORMS = [
    Platform(id=3, alias="nes", name="Nintendo Entertainment System", rom_file_extensions=(".nes",)),
    Platform(id=30, alias="famicom", name="Famicom", rom_file_extensions=(".nes", ".fds")),
]


def _title(title_id: str, crc32: str, **overrides) -> Title:
    values = dict(
        id=title_id,
        title=title_id.title(),
        platform_id=3,
        crc32=crc32,
        md5="0" * 32,
        rom_file_name=f"{title_id}.nes",
        original_rom_file_name=f"{title_id.title()} (USA).nes",
    )
    values.update(overrides)
    return Title(**values)


def _persist(store: LibraryStore, title: Title, with_rom: bool = True) -> None:
    store.ensure_title_dirs(title.id)
    if with_rom:
        (store.rom_dir(title.id) / title.original_rom_file_name).write_bytes(b"rom")
    store.save(title)


class LibraryStoreTests(unittest.TestCase):
    def test_save_and_load_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            games_root = Path(temp_dir) / "games"
            store = LibraryStore(games_root, PLATFORMS)
            title = _title("tetris", "1A2B3C4D", selected=True, genre="Puzzle")
            _persist(store, title)

            record = json.loads(store.record_path("tetris").read_text(encoding="utf-8"))
            self.assertEqual(record["platform_name"], "Nintendo Entertainment System")

            reloaded = LibraryStore(games_root, PLATFORMS)
            self.assertEqual(reloaded.load(), 1)
            loaded = reloaded.get("tetris")
            self.assertIsNotNone(loaded)
            assert loaded is not None
            self.assertTrue(loaded.selected)
            self.assertEqual(loaded.genre, "Puzzle")
            self.assertTrue(reloaded.has_crc("1a2b3c4d"))
            self.assertIs(reloaded.find_by_crc("0x1A2B3C4D"), loaded)

    def test_load_skips_broken_folders(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            games_root = Path(temp_dir) / "games"
            store = LibraryStore(games_root, PLATFORMS)
            _persist(store, _title("good", "00000001"))
            _persist(store, _title("norom", "00000002"), with_rom=False)

            mismatch = _title("other", "00000003")
            store.ensure_title_dirs("mismatch")
            (store.rom_dir("mismatch") / "x.nes").write_bytes(b"rom")
            store.record_path("mismatch").write_text(json.dumps(mismatch.to_dict()), encoding="utf-8")

            store.ensure_title_dirs("corrupt")
            (store.rom_dir("corrupt") / "x.nes").write_bytes(b"rom")
            store.record_path("corrupt").write_text("{not json", encoding="utf-8")

            (games_root / "empty").mkdir()

            seen: list[tuple[str, int, int]] = []
            reloaded = LibraryStore(games_root, PLATFORMS)
            count = reloaded.load(lambda label, current, total: seen.append((label, current, total)))

            self.assertEqual(count, 1)
            self.assertEqual(reloaded.ids, {"good"})
            self.assertEqual(len(seen), 5)
            self.assertEqual(seen[-1], ("Loading games", 5, 5))
            # Skipped folders stay on disk.
            self.assertTrue((games_root / "corrupt").exists())

    def test_load_recreates_image_folders(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            games_root = Path(temp_dir) / "games"
            store = LibraryStore(games_root, PLATFORMS)
            _persist(store, _title("tetris", "00000001"))
            (store.images_dir("tetris") / "source").rmdir()

            reloaded = LibraryStore(games_root, PLATFORMS)
            reloaded.load()
            self.assertTrue((reloaded.images_dir("tetris") / "source").is_dir())

    def test_add_rejects_duplicate_id_and_hash(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            store.add(_title("tetris", "00000001"))
            with self.assertRaises(ValueError):
                store.add(_title("tetris", "00000002"))
            with self.assertRaises(ValueError):
                store.add(_title("tetris2", "00000001"))
            self.assertEqual(len(store), 1)

    def test_delete_removes_folder_and_indexes(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            title = _title("tetris", "00000001")
            _persist(store, title)
            store.add(title)

            store.delete(["tetris", "unknown"])

            self.assertNotIn("tetris", store)
            self.assertFalse(store.has_crc("00000001"))
            self.assertFalse(store.title_dir("tetris").exists())

    def test_set_selected_persists_only_on_change(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            title = _title("tetris", "00000001")
            store.add(title)

            store.set_selected("tetris", False)
            self.assertFalse(store.record_path("tetris").exists())

            store.set_selected("tetris", True)
            record = json.loads(store.record_path("tetris").read_text(encoding="utf-8"))
            self.assertTrue(record["selected"])
            self.assertEqual([item.id for item in store.selected_titles()], ["tetris"])
            self.assertIsNone(store.set_selected("missing", True))

    def test_clear_image_removes_slot_and_source(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            title = _title("tetris", "00000001", image_hd="tetris0_hd.png", image="tetris0.png")
            _persist(store, title)
            image_path = store.image_path("tetris", ImageSlot.MEDIUM)
            image_path.write_bytes(b"png")
            source_path = LibraryStore.source_image_path(image_path)
            source_path.write_bytes(b"png")

            store.clear_image(title, ImageSlot.MEDIUM)

            self.assertFalse(image_path.exists())
            self.assertFalse(source_path.exists())
            self.assertIsNone(title.image_hd)
            self.assertEqual(title.image, "tetris0.png")
            record = json.loads(store.record_path("tetris").read_text(encoding="utf-8"))
            self.assertIsNone(record["image_hd"])

    def test_platform_lookups(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            self.assertEqual([p.alias for p in store.platforms_for_extension(".NES")], ["nes", "famicom"])
            self.assertEqual(store.platforms_for_extension(None), [])
            title = _title("tetris", "00000001", platform_name="NES")
            self.assertEqual(store.platform_for(title).alias, "nes")
            self.assertEqual(store.list_title(title), "Tetris [NES]")
            self.assertEqual(store.list_title(None), "")
            with self.assertRaises(UnknownPlatformError):
                store.platform_for(_title("ghost", "00000002", platform_id=99))

    def test_image_paths_follow_slot_templates(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = LibraryStore(Path(temp_dir), PLATFORMS)
            self.assertEqual(store.image_path("mario", ImageSlot.SMALL).name, "mario0.png")
            self.assertEqual(store.image_path("mario", ImageSlot.LARGE).name, "mario0_1080.png")
            banner = store.image_path("mario", ImageSlot.BANNER)
            self.assertEqual(banner.name, "mario_gamebanner.png")
            self.assertEqual(LibraryStore.source_image_path(banner).parent.name, "source")


if __name__ == "__main__":
    unittest.main()
