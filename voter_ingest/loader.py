"""
loader.py — read an uploaded voter-roll file into raw, header-less rows

Supports: .xlsx .xlsm .xls .ods .csv .tsv .txt

Public API:
    sheet = load_rows(content, "roll.xlsx")
    rows  = sheet.rows      # list[list[Any]], row 0 is the sheet's first row

No header is assumed: title and report-metadata rows above the real header
are kept so the header locator can see them.
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import chardet
import openpyxl
import pandas as pd

from voter_ingest.errors import MalformedInputError

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS     = {".csv", ".tsv", ".txt"}
OPENPYXL_FORMATS = {".xlsx", ".xlsm"}
PANDAS_FORMATS   = {".xls", ".ods"}
ALL_FORMATS      = TEXT_FORMATS | OPENPYXL_FORMATS | PANDAS_FORMATS


@dataclass
class LoadedSheet:
    rows: list[list[Any]]
    detected_format: str
    sheet_name: Optional[str] = None
    sheet_names: list[str] = field(default_factory=list)
    encoding: Optional[str] = None
    delimiter: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT FILES
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw[:200_000])
    detected = result.get("encoding") or "utf-8"
    return detected


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8 (Devanagari exports are almost always UTF-8)
      2. Try preferred_encoding (chardet result)
      3. CP1252 with replace (never crashes)
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to the candidate giving the widest
    consistent rows.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim, best_score = ",", float("-inf")
    for delim in [",", ";", "\t", "|"]:
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_delim, best_score = delim, score
    return best_delim


def _load_text(raw: bytes, suffix: str) -> LoadedSheet:
    encoding = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    try:
        rows = [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as exc:
        raise MalformedInputError(f"Could not parse {suffix} file: {exc}") from exc
    return LoadedSheet(
        rows=rows,
        detected_format=suffix.lstrip("."),
        encoding=encoding,
        delimiter=delimiter,
    )


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOKS
# ══════════════════════════════════════════════════════════════════════════════

def _trim_trailing_empty_cells(row: list[Any]) -> list[Any]:
    trimmed = list(row)
    while trimmed and (trimmed[-1] is None or not str(trimmed[-1]).strip()):
        trimmed.pop()
    return trimmed


def _choose_sheet(all_sheets: list[str], sheet_name: Optional[str], suffix: str) -> tuple[str, list[str]]:
    if not all_sheets:
        raise MalformedInputError(
            f"{suffix} workbook has no sheets",
            message_hi="Excel फाइल खाली है या कोई शीट नहीं है",
        )
    warnings: list[str] = []
    if sheet_name is not None:
        if sheet_name not in all_sheets:
            raise MalformedInputError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
        return sheet_name, warnings
    chosen = all_sheets[0]
    if len(all_sheets) > 1:
        others = [name for name in all_sheets if name != chosen]
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. Ignored: {others}"
        )
    return chosen, warnings


def _load_openpyxl(raw: bytes, suffix: str, sheet_name: Optional[str]) -> LoadedSheet:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
    except Exception as exc:
        raise MalformedInputError(f"Could not open workbook: {exc}") from exc
    try:
        chosen, warnings = _choose_sheet(list(workbook.sheetnames), sheet_name, suffix)
        rows = [
            _trim_trailing_empty_cells(list(values))
            for values in workbook[chosen].iter_rows(values_only=True)
        ]
        all_sheets = list(workbook.sheetnames)
    finally:
        workbook.close()
    return LoadedSheet(
        rows=rows,
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


def _load_with_pandas(raw: bytes, suffix: str, sheet_name: Optional[str]) -> LoadedSheet:
    if suffix == ".xls":
        engine = None
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd — run: pip install xlrd")
    else:
        engine = "odf"
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy — run: pip install odfpy")

    try:
        with pd.ExcelFile(io.BytesIO(raw), engine=engine) as xf:
            all_sheets = [str(name) for name in xf.sheet_names]
            chosen, warnings = _choose_sheet(all_sheets, sheet_name, suffix)
            df = xf.parse(chosen, header=None, dtype=str)
    except MalformedInputError:
        raise
    except Exception as exc:
        raise MalformedInputError(f"Could not open workbook: {exc}") from exc

    rows = [
        _trim_trailing_empty_cells(["" if value is None else str(value) for value in row])
        for row in df.fillna("").itertuples(index=False, name=None)
    ]
    return LoadedSheet(
        rows=rows,
        detected_format=suffix.lstrip("."),
        sheet_name=chosen,
        sheet_names=all_sheets,
        warnings=warnings,
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_rows(
    source: "bytes | str | Path",
    filename: Optional[str] = None,
    sheet_name: Optional[str] = None,
) -> LoadedSheet:
    """
    Load an uploaded file (raw bytes) or a path into raw rows.

    ``filename`` supplies the extension when ``source`` is bytes; for paths
    it defaults to the path itself. Only the first sheet of a workbook is
    read unless ``sheet_name`` is given.

    Raises:
        MalformedInputError  unsupported or unreadable file, or no sheets.
        ImportError          an optional reader (xlrd, odfpy) is missing.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        raw = path.read_bytes()
        filename = filename or path.name
    else:
        raw = source

    suffix = Path(filename or "").suffix.lower()
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise MalformedInputError(
            f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}"
        )
    if not raw:
        raise MalformedInputError("Uploaded file is empty", message_hi="Excel फाइल खाली है")

    if suffix in TEXT_FORMATS:
        return _load_text(raw, suffix)
    if suffix in OPENPYXL_FORMATS:
        return _load_openpyxl(raw, suffix, sheet_name)
    return _load_with_pandas(raw, suffix, sheet_name)
