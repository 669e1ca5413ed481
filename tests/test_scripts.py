from __future__ import annotations

from pathlib import Path
import sys
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from cartsync.core.sync.scripts import (
    BUILTIN_CORE_TEMPLATE,
    RETROARCH_CORE_TEMPLATE,
    load_template,
    render_launch_script,
    template_for,
)


class LaunchScriptTests(unittest.TestCase):
    def test_placeholders_are_replaced_and_carriage_returns_removed(self) -> None:
        template = "#!/bin/sh\r\nrun {CORE_FILENAME} \"{ROM_FILENAME}\"\r\necho {ROM_FILENAME}\r\n"

        script = render_launch_script(template, "gpsp_libretro.so", "Final Fantasy VII.m3u")

        self.assertEqual(
            script,
            "#!/bin/sh\nrun gpsp_libretro.so \"Final Fantasy VII.m3u\"\necho Final Fantasy VII.m3u\n",
        )

    def test_rom_dir_defaults_to_game_folder(self) -> None:
        template = "ROM=\"/mnt/sdcard/{ROM_DIR}/{ROM_FILENAME}\"\n"

        self.assertEqual(render_launch_script(template, "core", "sonic.md"), "ROM=\"/mnt/sdcard/game/sonic.md\"\n")
        self.assertEqual(
            render_launch_script(template, "core", "Snatcher.m3u", "roms"),
            "ROM=\"/mnt/sdcard/roms/Snatcher.m3u\"\n",
        )

    def test_template_choice_follows_core_kind(self) -> None:
        self.assertEqual(template_for(True), load_template(BUILTIN_CORE_TEMPLATE))
        self.assertEqual(template_for(False), load_template(RETROARCH_CORE_TEMPLATE))
        self.assertNotEqual(template_for(True), template_for(False))

    def test_bundled_templates_carry_placeholders(self) -> None:
        for name in (BUILTIN_CORE_TEMPLATE, RETROARCH_CORE_TEMPLATE):
            template = load_template(name)
            self.assertIn("{CORE_FILENAME}", template)
            self.assertIn("{ROM_FILENAME}", template)
            self.assertIn("{ROM_DIR}", template)
            self.assertTrue(template.startswith("#!/bin/sh"))


if __name__ == "__main__":
    unittest.main()
