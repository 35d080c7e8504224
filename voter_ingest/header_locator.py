"""
Find the real header row in a sheet that may start with title or report
metadata rows.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from voter_ingest.labels import HEADER_TOKEN_GROUPS
from voter_ingest.matching import normalize_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCAN_ROWS = 20


def score_header_row(
    row: Sequence[Any],
    token_groups: Mapping[str, Sequence[str]] = HEADER_TOKEN_GROUPS,
) -> int:
    """One point per field group with a token inside any normalised cell."""
    cells = [normalize_key(cell) for cell in row]
    cells = [cell for cell in cells if cell]
    if not cells:
        return 0
    score = 0
    for tokens in token_groups.values():
        needles = [normalize_key(token) for token in tokens]
        if any(needle and needle in cell for needle in needles for cell in cells):
            score += 1
    return score


def locate_header_row(
    rows: Sequence[Sequence[Any]],
    max_scan_rows: int = DEFAULT_MAX_SCAN_ROWS,
    token_groups: Mapping[str, Sequence[str]] = HEADER_TOKEN_GROUPS,
) -> int:
    best_idx, best_score = 0, -1
    for idx, row in enumerate(rows[: max(0, max_scan_rows)]):
        score = score_header_row(row, token_groups)
        if score > best_score:
            best_idx, best_score = idx, score
    logger.info(
        "Header row located: index=%d score=%d scanned=%d",
        best_idx,
        max(best_score, 0),
        min(len(rows), max(0, max_scan_rows)),
    )
    return best_idx
