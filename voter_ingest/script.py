"""Writing-system detection for cell values and search queries."""

from __future__ import annotations

DEVANAGARI_RANGES = (
    (0x0900, 0x097F),
    (0xA8E0, 0xA8FF),
)


def is_devanagari_char(ch: str) -> bool:
    point = ord(ch)
    return any(start <= point <= end for start, end in DEVANAGARI_RANGES)


def is_secondary_script(text: str | None) -> bool:
    """True when ``text`` holds at least one Devanagari code point."""
    if not text:
        return False
    return any(is_devanagari_char(ch) for ch in text)


def search_language(text: str | None) -> str:
    return "mr" if is_secondary_script(text) else "en"
