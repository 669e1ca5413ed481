from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.models import Cartridge, EmulatorCore, ImageSlot, Platform, SpecialHandling, Title


class ImageSlotTests(unittest.TestCase):
    def test_sizes_and_file_names(self) -> None:
        self.assertEqual(ImageSlot.SMALL.size, (112, 157))
        self.assertEqual(ImageSlot.MEDIUM.size, (260, 358))
        self.assertEqual(ImageSlot.LARGE.size, (474, 666))
        self.assertEqual(ImageSlot.BANNER.size, (1920, 551))
        self.assertEqual(ImageSlot.SMALL.file_name("zelda"), "zelda0.png")
        self.assertEqual(ImageSlot.MEDIUM.file_name("zelda"), "zelda0_hd.png")
        self.assertEqual(ImageSlot.LARGE.file_name("zelda"), "zelda0_1080.png")
        self.assertEqual(ImageSlot.BANNER.file_name("zelda"), "zelda_gamebanner.png")


class TitleTests(unittest.TestCase):
    def _title(self) -> Title:
        return Title(
            id="zelda",
            title='Zelda: "Link\'s" Awakening',
            platform_id=6,
            crc32="00000001",
            md5="0" * 32,
            rom_file_name="zelda.GB",
            original_rom_file_name="Zelda.GB",
        )

    def test_sync_title_and_extension(self) -> None:
        title = self._title()
        self.assertEqual(title.sync_title, "Zelda Link's Awakening")
        self.assertEqual(title.rom_extension, ".gb")

    def test_dict_round_trip_ignores_unknown_keys(self) -> None:
        title = self._title()
        title.set_artwork_ref(ImageSlot.BANNER, "zelda_gamebanner.png")
        payload = title.to_dict()
        payload["legacyField"] = True

        restored = Title.from_dict(payload)

        self.assertEqual(restored, title)
        self.assertEqual(restored.artwork_ref(ImageSlot.BANNER), "zelda_gamebanner.png")


class PlatformTests(unittest.TestCase):
    def test_core_lookup_and_extension_match(self) -> None:
        builtin = EmulatorCore("gb")
        gambatte = EmulatorCore("gambatte_libretro.so")
        platform = Platform(
            id=6,
            alias="gb",
            name="Game Boy",
            rom_file_extensions=(".gb",),
            default_core=builtin,
            emulator_cores=[gambatte],
        )
        self.assertIs(platform.find_core(None), builtin)
        self.assertIs(platform.find_core("gambatte_libretro.so"), gambatte)
        self.assertIsNone(platform.find_core("missing"))
        self.assertTrue(platform.accepts(".GB"))
        self.assertFalse(platform.accepts(".gbc"))

    def test_special_handling_rules(self) -> None:
        self.assertEqual(SpecialHandling.MAME.default_core_rom_dir, "mame")
        self.assertEqual(SpecialHandling.NONE.default_core_rom_dir, "game")
        self.assertTrue(SpecialHandling.MAME.keeps_rom_file_names)
        self.assertFalse(SpecialHandling.NONE.keeps_rom_file_names)

    def test_cartridge_manifest(self) -> None:
        self.assertEqual(Cartridge("Weekend Pack").to_dict(), {"cartridgeName": "Weekend Pack"})


if __name__ == "__main__":
    unittest.main()
