"""
Turn raw sheet rows into canonical bilingual voter records.

Latin-script and Devanagari-script values land in separate slots
(``name``/``name_mr``, ``gender``/``gender_mr``). A slot whose own column
exists but is blank stays blank; it is never filled from the other script.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from voter_ingest.labels import (
    BILINGUAL_FIELD_LABELS,
    RELATIVE_NAME_LABELS,
    SCALAR_FIELD_LABELS,
)
from voter_ingest.matching import RawRow, cell_text, column_present, resolve_field, row_items
from voter_ingest.script import is_secondary_script

logger = logging.getLogger(__name__)

_AGE_RE = re.compile(r"^\s*(\d+)")

DOCUMENT_FIELDS = {
    "serial_number": "serialNumber",
    "house_number": "houseNumber",
    "name": "name",
    "name_mr": "name_mr",
    "gender": "gender",
    "gender_mr": "gender_mr",
    "age": "age",
    "voter_id_card": "voterIdCard",
    "mobile_number": "mobileNumber",
}


@dataclass
class VoterRecord:
    serial_number: str = ""
    house_number: str = ""
    name: str = ""
    name_mr: str = ""
    gender: str = ""
    gender_mr: str = ""
    age: int = 0
    voter_id_card: str = ""
    mobile_number: str = ""
    source_row: int | None = field(default=None, compare=False)

    def to_document(self) -> dict[str, Any]:
        return {doc_key: getattr(self, attr) for attr, doc_key in DOCUMENT_FIELDS.items()}


@dataclass
class SheetRow:
    row_number: int
    cells: list[tuple[str, Any]]


@dataclass
class TransformResult:
    records: list[VoterRecord]
    skipped_rows: list[int]

    @property
    def total_rows(self) -> int:
        return len(self.records) + len(self.skipped_rows)


def _labels_except(*keep: Sequence[str]) -> tuple[str, ...]:
    everything: list[Sequence[str]] = list(SCALAR_FIELD_LABELS.values())
    for groups in BILINGUAL_FIELD_LABELS.values():
        everything.extend(groups)
    everything.append(RELATIVE_NAME_LABELS)
    kept = {id(group) for group in keep}
    return tuple(label for group in everything if id(group) not in kept for label in group)


_SCALAR_EXCLUDES = {name: _labels_except(labels) for name, labels in SCALAR_FIELD_LABELS.items()}
# Labels of every unrelated field; each language set is added on top of these.
_BILINGUAL_OTHERS = {name: _labels_except(*groups) for name, groups in BILINGUAL_FIELD_LABELS.items()}


def parse_age(raw: str) -> int:
    match = _AGE_RE.match(raw or "")
    if not match:
        return 0
    try:
        return int(match.group(1))
    except ValueError:
        return 0


def _is_latin(text: str) -> bool:
    return not is_secondary_script(text)


def resolve_bilingual(row: RawRow, field_name: str) -> tuple[str, str]:
    """Resolve ``(latin, devanagari)`` values for a bilingual field."""
    en_labels, mr_labels, generic_labels = BILINGUAL_FIELD_LABELS[field_name]
    others = _BILINGUAL_OTHERS[field_name]
    en_exclude = mr_labels + others
    mr_exclude = en_labels + others

    en_present = column_present(row, en_labels, en_exclude)
    mr_present = column_present(row, mr_labels, mr_exclude)
    en_value = resolve_field(row, en_labels, en_exclude) if en_present else ""
    mr_value = resolve_field(row, mr_labels, mr_exclude) if mr_present else ""

    if en_present and mr_present:
        return en_value, mr_value

    # legacy sheets: each absent slot takes the first generic value in its own script
    generic_exclude = en_labels + mr_labels + others
    if not en_present:
        en_value = resolve_field(row, generic_labels, generic_exclude, accept=_is_latin)
    if not mr_present:
        mr_value = resolve_field(row, generic_labels, generic_exclude, accept=is_secondary_script)
    return en_value, mr_value


def transform_row(row: RawRow, row_index: int) -> VoterRecord | None:
    """Build a record from one raw row, or ``None`` when it carries no name."""
    items = row_items(row)
    scalars = {
        field_name: resolve_field(items, labels, _SCALAR_EXCLUDES[field_name])
        for field_name, labels in SCALAR_FIELD_LABELS.items()
    }
    name, name_mr = resolve_bilingual(items, "name")
    gender, gender_mr = resolve_bilingual(items, "gender")

    if not name and not name_mr:
        logger.debug("Row %d: no name in either script, skipping", row_index)
        return None

    return VoterRecord(
        serial_number=scalars["serialNumber"],
        house_number=scalars["houseNumber"],
        name=name,
        name_mr=name_mr,
        gender=gender,
        gender_mr=gender_mr,
        age=parse_age(scalars["age"]),
        voter_id_card=scalars["voterIdCard"],
        mobile_number=scalars["mobileNumber"],
        source_row=row_index,
    )


def build_raw_rows(rows: Sequence[Sequence[Any]], header_index: int) -> list[SheetRow]:
    """
    Pair every row below ``header_index`` with the header labels.

    Fully blank rows are dropped; row numbers are 1-based sheet positions.
    """
    if header_index >= len(rows):
        return []
    header = [cell_text(cell) for cell in rows[header_index]]
    width = len(header)
    sheet_rows: list[SheetRow] = []
    for offset, row in enumerate(rows[header_index + 1 :], start=header_index + 2):
        values = list(row[:width]) + [""] * max(0, width - len(row))
        if not any(cell_text(value) for value in values):
            continue
        cells = [(label, value) for label, value in zip(header, values) if label]
        sheet_rows.append(SheetRow(row_number=offset, cells=cells))
    return sheet_rows


def transform_rows(sheet_rows: Sequence[SheetRow]) -> TransformResult:
    records: list[VoterRecord] = []
    skipped: list[int] = []
    for sheet_row in sheet_rows:
        record = transform_row(sheet_row.cells, sheet_row.row_number)
        if record is None:
            skipped.append(sheet_row.row_number)
        else:
            records.append(record)
    logger.info("Rows transformed: valid=%d skipped=%d", len(records), len(skipped))
    return TransformResult(records=records, skipped_rows=skipped)
