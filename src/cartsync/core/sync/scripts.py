"""Launch scripts for cores that cannot autolaunch a rom reference."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

TEMPLATES_ROOT = Path(__file__).resolve().parents[2] / "resources"
BUILTIN_CORE_TEMPLATE = "special_bash.sh"
RETROARCH_CORE_TEMPLATE = "special_bash_ra.sh"

CORE_FILENAME_PLACEHOLDER = "{CORE_FILENAME}"
ROM_FILENAME_PLACEHOLDER = "{ROM_FILENAME}"
ROM_DIR_PLACEHOLDER = "{ROM_DIR}"


@lru_cache(maxsize=None)
def load_template(name: str, root: Path = TEMPLATES_ROOT) -> str:
    return (root / name).read_text(encoding="utf-8")


def template_for(uses_default_core: bool) -> str:
    return load_template(BUILTIN_CORE_TEMPLATE if uses_default_core else RETROARCH_CORE_TEMPLATE)


def render_launch_script(template: str, core_file_name: str, rom_file_name: str, rom_dir: str = "game") -> str:
    """Fill in a launch template; ``rom_dir`` is the card folder the rom was copied to."""
    # Scripts run on the device shell, so Windows line endings are stripped.
    return (
        template.replace(CORE_FILENAME_PLACEHOLDER, core_file_name)
        .replace(ROM_FILENAME_PLACEHOLDER, rom_file_name)
        .replace(ROM_DIR_PLACEHOLDER, rom_dir)
        .replace("\r", "")
    )
