"""
Header label normalisation and tiered field resolution.

A raw row is an ordered sequence of ``(label, value)`` pairs exactly as they
appear in the sheet, or any mapping of label -> value. Resolution walks four
tiers, loosest last, and returns the first non-blank cell:

    1. exact label after case-fold + trim
    2. underscores read as spaces, whitespace collapsed
    3. full ``normalize_key``
    4. normalised candidate contained in the normalised label

``normalize_key`` reads punctuation as a word break rather than deleting it:
``"Sr.No"`` becomes ``"sr no"``, not ``"srno"``, so tier 3 and the substring
tier see the same token boundaries as labels written with spaces.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

RawRow = Union[Mapping[str, Any], Sequence[tuple[str, Any]]]

# period, colon, hyphen, slash, parentheses, Devanagari danda, underscore
_PUNCT_RE = re.compile(r"[.:\-/()।_]")
_SPACE_RE = re.compile(r"\s+")

TIERS = (1, 2, 3, 4)


def normalize_key(label: Any) -> str:
    if label is None:
        return ""
    text = str(label).replace("\x00", "").casefold()
    text = _PUNCT_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def _fold(label: str) -> str:
    return label.strip().casefold()


def _collapse(label: str) -> str:
    return _SPACE_RE.sub(" ", label.replace("_", " ").casefold()).strip()


@lru_cache(maxsize=4096)
def _keys(label: str) -> tuple[str, str, str]:
    return _fold(label), _collapse(label), normalize_key(label)


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; blanks, NaN and None become ""."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).replace("\x00", "").strip()


def row_items(row: RawRow) -> list[tuple[str, Any]]:
    if isinstance(row, Mapping):
        return [("" if label is None else str(label), value) for label, value in row.items()]
    return [("" if label is None else str(label), value) for label, value in row]


def _tier_matches(tier: int, label_keys: tuple[str, str, str], cand_keys: tuple[str, str, str]) -> bool:
    if tier == 4:
        needle = cand_keys[2]
        return bool(needle) and needle in label_keys[2]
    key = tier - 1
    return bool(cand_keys[key]) and label_keys[key] == cand_keys[key]


def match_tier(label: str, candidates: Iterable[str]) -> int | None:
    """Return the strongest tier at which ``label`` matches any candidate."""
    label_keys = _keys(label)
    best: int | None = None
    for candidate in candidates:
        cand_keys = _keys(candidate)
        for tier in TIERS:
            if best is not None and tier >= best:
                break
            if _tier_matches(tier, label_keys, cand_keys):
                best = tier
                break
        if best == 1:
            return best
    return best


def _eligible_columns(
    items: list[tuple[str, Any]],
    candidates: Sequence[str],
    exclude: Sequence[str],
) -> list[tuple[str, Any]]:
    if not exclude:
        return items
    eligible = []
    for label, value in items:
        competing = match_tier(label, exclude)
        if competing is not None:
            own = match_tier(label, candidates)
            if own is None or competing <= own:
                continue
        eligible.append((label, value))
    return eligible


def resolve_field(
    row: RawRow,
    candidates: Sequence[str],
    exclude: Sequence[str] = (),
    accept: Optional[Callable[[str], bool]] = None,
) -> str:
    """
    Return the first non-blank value whose column label matches a candidate.

    ``exclude`` lists another field's labels: a column matching those at
    least as strongly as it matches ``candidates`` is ignored. ``accept``,
    when given, skips cell values it rejects.
    """
    columns = [
        (_keys(label), text)
        for label, value in _eligible_columns(row_items(row), candidates, exclude)
        for text in (cell_text(value),)
        if text and (accept is None or accept(text))
    ]
    if not columns:
        return ""
    cand_keys = [_keys(candidate) for candidate in candidates]
    for tier in TIERS:
        for keys in cand_keys:
            for label_keys, text in columns:
                if _tier_matches(tier, label_keys, keys):
                    return text
    return ""


def column_present(row: RawRow, candidates: Sequence[str], exclude: Sequence[str] = ()) -> bool:
    """True when some column matches ``candidates``, whether or not its cell is blank."""
    for label, _ in _eligible_columns(row_items(row), candidates, exclude):
        if match_tier(label, candidates) is not None:
            return True
    return False
