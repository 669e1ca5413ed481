from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.sync.device import DeviceLayout, remove_from_device


def _touch(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class RemoveFromDeviceTests(unittest.TestCase):
    def test_without_descriptor_nothing_is_removed(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            artwork = _touch(root / "game" / "sonic0.png")
            script = _touch(root / "special" / "sonic.sh")

            self.assertEqual(remove_from_device("sonic", root), [])
            self.assertTrue(artwork.exists())
            self.assertTrue(script.exists())

    def test_other_titles_sharing_a_prefix_are_kept(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            game = root / "game"
            owned = [
                _touch(game / "sonic.json", "{}"),
                _touch(game / "sonic.md"),
                _touch(game / "sonic0.png"),
                _touch(game / "sonic0_hd.png"),
                _touch(game / "sonic0_1080.png"),
                _touch(game / "sonic_gamebanner.png"),
            ]
            others = [
                _touch(game / "sonic1.json", "{}"),
                _touch(game / "sonic10.png"),
                _touch(game / "sonic10_hd.png"),
                _touch(game / "sonic1_gamebanner.png"),
                _touch(game / "sonicknuckles0.png"),
            ]

            removed = remove_from_device("sonic", root)

            self.assertEqual(sorted(removed), sorted(owned))
            for path in owned:
                self.assertFalse(path.exists(), path.name)
            for path in others:
                self.assertTrue(path.exists(), path.name)

    def test_cue_marker_removes_mame_rom(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            _touch(root / "game" / "sf2.json", "{}")
            _touch(root / "game" / "sf2.cue", "sf2.zip\n")
            mame_rom = _touch(root / "mame" / "sf2.zip")
            other_rom = _touch(root / "mame" / "mslug.zip")

            removed = remove_from_device("sf2", root)

            self.assertIn(mame_rom, removed)
            self.assertFalse(mame_rom.exists())
            self.assertTrue(other_rom.exists())
            self.assertFalse((root / "game" / "sf2.cue").exists())

    def test_script_and_marker_are_removed(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            _touch(root / "game" / "gpspgame.json", "{}")
            marker = _touch(root / "game" / "gpspgame")
            script = _touch(root / "special" / "gpspgame.sh", "#!/bin/sh\n")
            rom = _touch(root / "roms" / "gpspgame.gba")

            remove_from_device("gpspgame", root)

            self.assertFalse(marker.exists())
            self.assertFalse(script.exists())
            self.assertTrue(rom.exists())


class DeviceLayoutTests(unittest.TestCase):
    def test_paths_and_synced_ids(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            layout = DeviceLayout(Path(temp_dir))
            self.assertEqual(layout.synced_ids(), [])
            _touch(layout.descriptor_path("zelda"), "{}")
            _touch(layout.descriptor_path("mario"), "{}")
            _touch(layout.cue_path("mario"), "mario.zip")

            self.assertEqual(layout.synced_ids(), ["mario", "zelda"])
            self.assertEqual(layout.script_path("mario"), Path(temp_dir) / "special" / "mario.sh")
            self.assertEqual(layout.retroarch_system_dir, Path(temp_dir) / "retroarch" / "system")
            self.assertEqual(layout.manifest_path.name, "cartridge.json")


if __name__ == "__main__":
    unittest.main()
