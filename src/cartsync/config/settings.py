from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path

from cartsync.config.platforms import DEFAULT_PLATFORMS
from cartsync.core.errors import DataFolderAccessError
from cartsync.core.models import CoreFile, EmulatorCore, Platform, SpecialHandling

logger = logging.getLogger(__name__)

DEFAULT_APP_ROOT = Path("cartsync-data")
DEFAULT_CATALOG_BASE_URL = "https://api.thegamesdb.net"
APP_SETTINGS_FILENAME = "appsettings.json"
SECRETS_FILENAME = "secrets.json"

ENV_APP_ROOT = "CARTSYNC_HOME"
ENV_CATALOG_API_KEY = "CARTSYNC_TGDB_API_KEY"


@dataclass(slots=True)
class AppSettings:
    app_root: Path = DEFAULT_APP_ROOT
    catalog_base_url: str = DEFAULT_CATALOG_BASE_URL
    catalog_api_key: str | None = None
    platforms: list[Platform] = field(default_factory=lambda: list(DEFAULT_PLATFORMS))

    @property
    def games_root(self) -> Path:
        return self.app_root / "games"

    @property
    def bios_root(self) -> Path:
        return self.app_root / "bios"

    @property
    def downloads_root(self) -> Path:
        return self.app_root / "downloads"

    def platform_by_id(self, platform_id: int) -> Platform | None:
        for platform in self.platforms:
            if platform.id == platform_id:
                return platform
        return None


def ensure_data_folder_access(app_root: Path) -> None:
    """Create the data folder or fail before anything else initializes."""
    try:
        app_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DataFolderAccessError(app_root, str(exc)) from exc


def load_settings(app_root: Path | None = None) -> AppSettings:
    """Load settings from the data folder, falling back to built-in defaults.

    ``appsettings.json`` may override the catalog URL and the platform table;
    the API key comes from the environment or ``secrets.json``.
    """
    root = app_root or Path(os.environ.get(ENV_APP_ROOT, "") or DEFAULT_APP_ROOT)
    settings = AppSettings(app_root=root)

    payload = _read_json(root / APP_SETTINGS_FILENAME)
    if payload:
        base_url = payload.get("catalogBaseUrl")
        if isinstance(base_url, str) and base_url.strip():
            settings.catalog_base_url = base_url.strip().rstrip("/")
        raw_platforms = payload.get("platforms")
        if isinstance(raw_platforms, list) and raw_platforms:
            try:
                settings.platforms = [platform_from_dict(item) for item in raw_platforms]
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Ignoring invalid platform table in %s: %s", APP_SETTINGS_FILENAME, exc)

    api_key = os.environ.get(ENV_CATALOG_API_KEY, "").strip()
    if not api_key:
        secrets = _read_json(root / SECRETS_FILENAME)
        api_key = str(secrets.get("catalogApiKey") or "").strip()
    settings.catalog_api_key = api_key or None
    return settings


def platform_from_dict(payload: dict) -> Platform:
    default_core = payload.get("defaultCore")
    return Platform(
        id=int(payload["id"]),
        alias=str(payload["alias"]),
        name=str(payload.get("name") or payload["alias"]),
        rom_file_extensions=tuple(str(ext).lower() for ext in payload.get("romFileExtensions", [])),
        emulator_cores=[_core_from_dict(item) for item in payload.get("emulatorCores", [])],
        default_core=_core_from_dict(default_core) if default_core else None,
        bios_files=tuple(str(name) for name in payload.get("biosFiles", [])),
        catalog_platform_ids=tuple(int(value) for value in payload.get("catalogPlatformIds", [])),
        special=SpecialHandling(payload.get("special", SpecialHandling.NONE.value)),
    )


def _core_from_dict(payload: dict) -> EmulatorCore:
    return EmulatorCore(
        core_file_name=str(payload["coreFileName"]),
        files=[
            CoreFile(
                source_url=str(item["sourceUrl"]),
                target_path=str(item["targetPath"]),
                source_path=item.get("sourcePath"),
            )
            for item in payload.get("files", [])
        ],
        auto_launch=bool(payload.get("autoLaunch", True)),
    )


def _read_json(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s, using defaults: %s", path, exc)
        return {}
    return loaded if isinstance(loaded, dict) else {}
