from __future__ import annotations

from cartsync.core.models import CoreFile, EmulatorCore, Platform, SpecialHandling

LIBRETRO_BUILDBOT_URL = "https://buildbot.libretro.com/nightly/linux/armhf/latest"
RETROARCH_CORES_DIR = "retroarch/cores"


def retroarch_core(name: str, auto_launch: bool = True) -> EmulatorCore:
    """Build a RetroArch core entry that is fetched from the libretro buildbot."""
    core_file_name = f"{name}_libretro.so"
    return EmulatorCore(
        core_file_name=core_file_name,
        files=[
            CoreFile(
                source_url=f"{LIBRETRO_BUILDBOT_URL}/{core_file_name}.zip",
                source_path=core_file_name,
                target_path=f"{RETROARCH_CORES_DIR}/{core_file_name}",
            )
        ],
        auto_launch=auto_launch,
    )


def builtin_core(name: str, auto_launch: bool = True) -> EmulatorCore:
    """Core that ships with the device firmware; nothing has to be copied."""
    return EmulatorCore(core_file_name=name, files=[], auto_launch=auto_launch)


# Declaration order matters: it breaks ties when several platforms accept an extension.
DEFAULT_PLATFORMS: tuple[Platform, ...] = (
    Platform(
        id=1,
        alias="arcade",
        name="Arcade",
        rom_file_extensions=(".zip",),
        default_core=retroarch_core("mame2003_plus", auto_launch=False),
        emulator_cores=[retroarch_core("fbneo", auto_launch=False)],
        catalog_platform_ids=(23,),
        special=SpecialHandling.MAME,
    ),
    Platform(
        id=2,
        alias="atari2600",
        name="Atari 2600",
        rom_file_extensions=(".a26",),
        default_core=builtin_core("stella"),
        emulator_cores=[retroarch_core("stella2014")],
        catalog_platform_ids=(22,),
    ),
    Platform(
        id=3,
        alias="nes",
        name="Nintendo Entertainment System",
        rom_file_extensions=(".nes",),
        default_core=builtin_core("nes"),
        emulator_cores=[retroarch_core("fceumm"), retroarch_core("nestopia")],
        catalog_platform_ids=(7,),
    ),
    Platform(
        id=4,
        alias="snes",
        name="Super Nintendo",
        rom_file_extensions=(".sfc", ".smc"),
        default_core=builtin_core("snes"),
        emulator_cores=[retroarch_core("snes9x2010"), retroarch_core("snes9x")],
        catalog_platform_ids=(6,),
    ),
    Platform(
        id=5,
        alias="megadrive",
        name="Mega Drive / Genesis",
        rom_file_extensions=(".md", ".gen", ".smd"),
        emulator_cores=[retroarch_core("genesis_plus_gx"), retroarch_core("picodrive")],
        catalog_platform_ids=(18, 36),
    ),
    Platform(
        id=6,
        alias="gb",
        name="Game Boy",
        rom_file_extensions=(".gb",),
        default_core=builtin_core("gb"),
        emulator_cores=[retroarch_core("gambatte")],
        catalog_platform_ids=(4,),
    ),
    Platform(
        id=7,
        alias="gbc",
        name="Game Boy Color",
        rom_file_extensions=(".gbc",),
        default_core=builtin_core("gbc"),
        emulator_cores=[retroarch_core("gambatte")],
        catalog_platform_ids=(41,),
    ),
    Platform(
        id=8,
        alias="gba",
        name="Game Boy Advance",
        rom_file_extensions=(".gba",),
        default_core=builtin_core("gba"),
        emulator_cores=[retroarch_core("mgba"), retroarch_core("gpsp", auto_launch=False)],
        bios_files=("gba_bios.bin",),
        catalog_platform_ids=(5,),
    ),
    Platform(
        id=9,
        alias="lynx",
        name="Atari Lynx",
        rom_file_extensions=(".lnx",),
        default_core=builtin_core("lynx"),
        emulator_cores=[retroarch_core("handy")],
        bios_files=("lynxboot.img",),
        catalog_platform_ids=(4924,),
    ),
    Platform(
        id=10,
        alias="psx",
        name="PlayStation",
        rom_file_extensions=(".bin", ".cue", ".chd", ".pbp"),
        emulator_cores=[retroarch_core("pcsx_rearmed", auto_launch=False)],
        bios_files=("scph1001.bin",),
        catalog_platform_ids=(10,),
    ),
    Platform(
        id=11,
        alias="mastersystem",
        name="Master System",
        rom_file_extensions=(".sms",),
        emulator_cores=[retroarch_core("genesis_plus_gx"), retroarch_core("smsplus")],
        catalog_platform_ids=(35,),
    ),
    Platform(
        id=12,
        alias="gamegear",
        name="Game Gear",
        rom_file_extensions=(".gg",),
        emulator_cores=[retroarch_core("genesis_plus_gx")],
        catalog_platform_ids=(20,),
    ),
    Platform(
        id=13,
        alias="pcengine",
        name="PC Engine / TurboGrafx-16",
        rom_file_extensions=(".pce",),
        emulator_cores=[retroarch_core("mednafen_pce_fast")],
        catalog_platform_ids=(34,),
    ),
)


# TheGamesDB genre ids.
CATALOG_GENRES: dict[int, str] = {
    1: "Action",
    2: "Adventure",
    3: "Construction and Management Simulation",
    4: "Role-Playing",
    5: "Puzzle",
    6: "Strategy",
    7: "Racing",
    8: "Shooter",
    9: "Life Simulation",
    10: "Fighting",
    11: "Sports",
    12: "Sandbox",
    13: "Flight Simulator",
    14: "MMO",
    15: "Platform",
    16: "Stealth",
    17: "Music",
    18: "Horror",
    19: "Vehicle Simulation",
    20: "Board",
    21: "Education",
    22: "Family",
    23: "Party",
    24: "Productivity",
    25: "Quiz",
    26: "Utility",
    27: "Virtual Console",
    28: "Unofficial",
    29: "GBA Video / PSP Video",
}


def catalog_platform_aliases(platforms: tuple[Platform, ...] | list[Platform]) -> dict[int, int]:
    """Map catalog platform ids to local platform ids; the first platform claiming an id wins."""
    aliases: dict[int, int] = {}
    for platform in platforms:
        for catalog_platform_id in platform.catalog_platform_ids:
            aliases.setdefault(catalog_platform_id, platform.id)
    return aliases


def map_genre(genre_ids: list[int] | None) -> str | None:
    if not genre_ids:
        return None
    for genre_id in genre_ids:
        name = CATALOG_GENRES.get(genre_id)
        if name:
            return name
    return None
