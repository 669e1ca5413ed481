from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path

from cartsync.core.titles import remove_invalid_file_chars


class ImageSlot(str, Enum):
    """Artwork slots stored per title, with device size and file-name template."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    BANNER = "banner"

    @property
    def size(self) -> tuple[int, int]:
        return _SLOT_SIZES[self]

    @property
    def ref_field(self) -> str:
        return _SLOT_REF_FIELDS[self]

    def file_name(self, title_id: str) -> str:
        return _SLOT_FILE_TEMPLATES[self].format(id=title_id)


_SLOT_SIZES: dict[ImageSlot, tuple[int, int]] = {
    ImageSlot.SMALL: (112, 157),
    ImageSlot.MEDIUM: (260, 358),
    ImageSlot.LARGE: (474, 666),
    ImageSlot.BANNER: (1920, 551),
}

_SLOT_FILE_TEMPLATES: dict[ImageSlot, str] = {
    ImageSlot.SMALL: "{id}0.png",
    ImageSlot.MEDIUM: "{id}0_hd.png",
    ImageSlot.LARGE: "{id}0_1080.png",
    ImageSlot.BANNER: "{id}_gamebanner.png",
}

_SLOT_REF_FIELDS: dict[ImageSlot, str] = {
    ImageSlot.SMALL: "image",
    ImageSlot.MEDIUM: "image_hd",
    ImageSlot.LARGE: "image_1080",
    ImageSlot.BANNER: "image_banner",
}

BOX_ART_SLOTS: tuple[ImageSlot, ...] = (ImageSlot.LARGE, ImageSlot.MEDIUM, ImageSlot.SMALL)


class SpecialHandling(str, Enum):
    """Platform families that need their own device placement rules."""

    NONE = "none"
    MAME = "mame"

    @property
    def default_core_rom_dir(self) -> str:
        return "mame" if self is SpecialHandling.MAME else "game"

    @property
    def keeps_rom_file_names(self) -> bool:
        # Arcade sets are looked up by archive name, so they are never renamed.
        return self is SpecialHandling.MAME


@dataclass(slots=True)
class CoreFile:
    source_url: str
    target_path: str
    source_path: str | None = None


@dataclass(slots=True)
class EmulatorCore:
    core_file_name: str
    files: list[CoreFile] = field(default_factory=list)
    auto_launch: bool = True


@dataclass(slots=True)
class Platform:
    id: int
    alias: str
    name: str
    rom_file_extensions: tuple[str, ...] = ()
    emulator_cores: list[EmulatorCore] = field(default_factory=list)
    default_core: EmulatorCore | None = None
    bios_files: tuple[str, ...] = ()
    catalog_platform_ids: tuple[int, ...] = ()
    special: SpecialHandling = SpecialHandling.NONE

    def accepts(self, extension: str) -> bool:
        return extension.lower() in self.rom_file_extensions

    def find_core(self, core_file_name: str | None) -> EmulatorCore | None:
        if core_file_name is None:
            return self.default_core
        for core in self.emulator_cores:
            if core.core_file_name == core_file_name:
                return core
        return None


@dataclass(slots=True)
class Title:
    id: str
    title: str
    platform_id: int
    crc32: str
    md5: str
    rom_file_name: str
    original_rom_file_name: str
    platform_name: str | None = None
    selected: bool = False
    is_multi_disc: bool = False
    recently_added: bool = False
    catalog_id: int | None = None
    description: str | None = None
    players: int | None = None
    release_date: str | None = None
    genre: str | None = None
    image: str | None = None
    image_hd: str | None = None
    image_1080: str | None = None
    image_banner: str | None = None
    emulator_core: str | None = None

    @property
    def sync_title(self) -> str:
        return remove_invalid_file_chars(self.title)

    @property
    def preferred_rom_file_name(self) -> str:
        return self.rom_file_name

    @property
    def rom_extension(self) -> str:
        return Path(self.rom_file_name).suffix.lower()

    def artwork_ref(self, slot: ImageSlot) -> str | None:
        return getattr(self, slot.ref_field)

    def set_artwork_ref(self, slot: ImageSlot, value: str | None) -> None:
        setattr(self, slot.ref_field, value)

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> Title:
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in known})


@dataclass(slots=True)
class Cartridge:
    cartridge_name: str

    def to_dict(self) -> dict[str, str]:
        return {"cartridgeName": self.cartridge_name}
