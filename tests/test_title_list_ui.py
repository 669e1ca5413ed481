"""Tests for the library table view model (no Tk window needed)."""
from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.models import Title
from cartsync.ui.progress_log import format_progress
from cartsync.ui.title_list import ALL_PLATFORMS, TitleListViewModel


def _title(title_id: str, title: str, platform_name: str, **fields) -> Title:
    return Title(
        id=title_id,
        title=title,
        platform_id=1,
        platform_name=platform_name,
        crc32=title_id,
        md5="0" * 32,
        rom_file_name=f"{title_id}.bin",
        original_rom_file_name=f"{title} (USA).bin",
        **fields,
    )


def _titles() -> list[Title]:
    return [
        _title("zelda", "Zelda", "NES", selected=True, image="zelda0.png", catalog_id=5),
        _title("mario", "Super Mario Bros", "NES", recently_added=True),
        _title("sonic", "Sonic", "Mega Drive", image_banner="sonic_gamebanner.png"),
    ]


class TitleListViewModelTests(unittest.TestCase):
    def test_rows_sorted_by_title(self) -> None:
        model = TitleListViewModel(_titles())
        self.assertEqual(model.filtered_keys(ALL_PLATFORMS), ["sonic", "mario", "zelda"])
        self.assertEqual(model.platforms(), ["Mega Drive", "NES"])

    def test_platform_and_text_filters(self) -> None:
        model = TitleListViewModel(_titles())
        self.assertEqual(model.filtered_keys("NES"), ["mario", "zelda"])
        self.assertEqual(model.filtered_keys(ALL_PLATFORMS, "MARIO"), ["mario"])
        self.assertEqual(model.filtered_keys("Mega Drive", "zelda"), [])
        self.assertEqual(model.filtered_keys("Unknown"), [])

    def test_selection_count_tracks_updates(self) -> None:
        model = TitleListViewModel(_titles())
        self.assertEqual(model.selected_count(), 1)
        model.set_selected("mario", True)
        model.set_selected("missing", True)
        self.assertEqual(model.selected_count(), 2)

    def test_row_display_values(self) -> None:
        rows = TitleListViewModel(_titles()).rows_by_key()
        self.assertEqual(rows["zelda"].rom_file, "Zelda (USA).bin")
        self.assertIn("BOX", rows["zelda"].artwork)
        self.assertIn("INFO", rows["zelda"].artwork)
        self.assertIn("BANNER", rows["sonic"].artwork)
        self.assertIn("NONE", rows["mario"].artwork)
        self.assertTrue(rows["mario"].recently_added)

    def test_progress_format(self) -> None:
        self.assertEqual(format_progress("Syncing Games", 2, 5), "Syncing Games (2/5)")
        self.assertEqual(format_progress("Loading games", 0, 0), "Loading games")


if __name__ == "__main__":
    unittest.main()
