from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable
import zlib

HashProvider = Callable[[Path], tuple[str, str]]

_CHUNK_SIZE = 1024 * 1024


def compute_hashes(path: Path) -> tuple[str, str]:
    """Return ``(crc32, md5)`` of a file as lower-case hex strings."""
    crc = 0
    md5 = hashlib.md5()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_CHUNK_SIZE)
            if not chunk:
                break
            crc = zlib.crc32(chunk, crc)
            md5.update(chunk)
    return f"{crc & 0xFFFFFFFF:08x}", md5.hexdigest()


def normalize_crc(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        return None
    return text.zfill(8)
