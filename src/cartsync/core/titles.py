"""Title text helpers: cleaning, fuzzy compare keys and short id generation."""
from __future__ import annotations

from collections.abc import Iterable
import re

MAX_ID_LENGTH = 16
ID_STOP_WORDS: frozenset[str] = frozenset({"the", "and", "a"})

_INVALID_FILE_CHARS = set('"<>|:*?\\/') | {chr(code) for code in range(32)}
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


def clean_title(raw: str | None) -> str | None:
    """Drop trailing region/revision annotations such as ``(USA)`` or ``[!]``."""
    if raw is None or not raw.strip():
        return None
    positions = [index for index in (raw.find("("), raw.find("[")) if index >= 0]
    if positions and min(positions) > 1:
        raw = raw[: min(positions)]
    return raw.strip()


def compare_key(raw: str | None) -> str | None:
    """Return the key used to decide whether two titles name the same game.

    Lower-cases, turns ``&`` into ``and``, collapses punctuation to single
    spaces and drops every standalone ``s`` token wherever it appears, so
    ``Kirby's`` reduces to ``kirby``. The key is only ever compared, never
    stored.
    """
    cleaned = clean_title(raw)
    if cleaned is None:
        return None
    text = cleaned.lower().replace("&", " and ")
    tokens = _NON_ALNUM_RE.sub(" ", text).split()
    # Possessive residue; the token is dropped at any position.
    tokens = [token for token in tokens if token != "s"]
    return " ".join(tokens)


def titles_match(left: str | None, right: str | None) -> bool:
    left_key = compare_key(left)
    return left_key is not None and left_key == compare_key(right)


def assign_identifier(title: str, existing_ids: Iterable[str] | set[str]) -> str:
    """Generate a short, filesystem-safe id that is unique within ``existing_ids``.

    The result only depends on ``title`` and the ids already taken, so
    importing the same files in the same order always yields the same ids.
    """
    taken = existing_ids if isinstance(existing_ids, (set, frozenset, dict)) else set(existing_ids)
    words = [
        word
        for word in title.strip().lower().split()
        if not (word.startswith("(") and word.endswith(")")) and word not in ID_STOP_WORDS
    ]
    candidate = _NON_ALNUM_RE.sub("", "".join(words))[:MAX_ID_LENGTH] or "game"

    counter = 2
    while candidate in taken:
        base = candidate.split("_", 1)[0]
        candidate = f"{base}_{counter}"
        counter += 1
        while len(candidate) > MAX_ID_LENGTH:
            separator = candidate.rindex("_")
            candidate = candidate[: separator - 1] + candidate[separator:]
    return candidate


def remove_invalid_file_chars(value: str) -> str:
    return "".join(char for char in value if char not in _INVALID_FILE_CHARS)
