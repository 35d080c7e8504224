"""
End-to-end upload flow shared by the HTTP API, the CLI and the web page.

    bytes -> load_rows -> locate_header_row -> build_raw_rows
          -> transform_rows -> ingest_records -> upload payload

Every structural problem is raised before the store is touched.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from voter_ingest.config import Settings
from voter_ingest.contracts import build_contract, build_run_summary
from voter_ingest.errors import (
    EmptyInputError,
    NoValidRecordsError,
    ReaderUnavailableError,
    UploadTooLargeError,
)
from voter_ingest.header_locator import locate_header_row
from voter_ingest.ingestor import IngestReport, RecordSink, ingest_records
from voter_ingest.loader import LoadedSheet, load_rows
from voter_ingest.matching import cell_text
from voter_ingest.transform import TransformResult, build_raw_rows, transform_rows

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5


@dataclass
class PreparedUpload:
    filename: str
    sheet: LoadedSheet
    header_index: int
    header: list[str]
    result: TransformResult


def prepare_upload(
    content: bytes,
    filename: str,
    settings: Settings,
    sheet_name: Optional[str] = None,
) -> PreparedUpload:
    if len(content) > settings.max_upload_bytes:
        raise UploadTooLargeError(
            f"Upload is {len(content)} bytes; the limit is {settings.max_upload_mb} MB",
            message_hi=f"फाइल बहुत बड़ी है। अधिकतम {settings.max_upload_mb}MB अनुमति है",
        )
    logger.info("Upload received: filename=%s bytes=%d", filename, len(content))

    try:
        sheet = load_rows(content, filename, sheet_name)
    except ImportError as exc:
        raise ReaderUnavailableError(str(exc)) from exc
    rows = sheet.rows
    if not any(cell_text(cell) for row in rows for cell in row):
        raise EmptyInputError("The sheet has no content")

    header_index = locate_header_row(rows, settings.max_header_scan_rows)
    sheet_rows = build_raw_rows(rows, header_index)
    if not sheet_rows:
        raise EmptyInputError(f"No data rows below the header row (row {header_index + 1})")

    result = transform_rows(sheet_rows)
    if not result.records:
        raise NoValidRecordsError(
            f"None of the {result.total_rows} data rows has a name in either script"
        )

    return PreparedUpload(
        filename=filename,
        sheet=sheet,
        header_index=header_index,
        header=[cell_text(cell) for cell in rows[header_index]],
        result=result,
    )


def _upload_payload(prepared: PreparedUpload, report: IngestReport) -> dict[str, Any]:
    inserted = report.inserted_count
    errors = report.error_count
    if errors:
        message = f"Uploaded {inserted} records; {errors} failed"
        message_hi = f"{inserted} रिकॉर्ड्स अपलोड हुए, {errors} विफल"
    else:
        message = f"Uploaded {inserted} records"
        message_hi = f"डेटा सफलतापूर्वक अपलोड हो गया ({inserted} रिकॉर्ड्स)"
    warnings = [*prepared.sheet.warnings, *report.warnings]
    metrics = {
        "inserted": inserted,
        "errors": errors,
        "skipped": len(prepared.result.skipped_rows),
        "chunks": len(report.chunks),
    }
    return {
        "success": True,
        "message": message,
        "message_hi": message_hi,
        "insertedCount": inserted,
        "totalProcessed": report.total_processed,
        "skippedCount": len(prepared.result.skipped_rows),
        "errorCount": errors,
        "errorSamples": [failure.to_dict() for failure in report.error_samples],
        "sample": [record.to_document() for record in prepared.result.records[:SAMPLE_SIZE]],
        "headerRowIndex": prepared.header_index,
        "sheetName": prepared.sheet.sheet_name,
        "warnings": warnings,
        "contract": build_contract("voter_ingest.upload"),
        "summary": build_run_summary(
            operation="upload",
            source=prepared.filename,
            status="partial" if errors else "ok",
            metrics=metrics,
            warnings=warnings,
        ),
    }


def ingest_upload(
    content: bytes,
    filename: str,
    store: RecordSink,
    settings: Settings,
    sheet_name: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Parse, transform and persist one uploaded sheet.

    Raises an ``IngestError`` subclass for unusable input and
    ``TransportFailure`` when the store connection drops mid-run.
    """
    prepared = prepare_upload(content, filename, settings, sheet_name)
    report = ingest_records(
        prepared.result.records,
        store,
        batch_size=settings.batch_size,
        pause_seconds=settings.chunk_pause_seconds,
        max_error_samples=settings.max_error_samples,
        sleep=sleep,
    )
    logger.info(
        "Upload finished: filename=%s inserted=%d errors=%d skipped=%d",
        filename,
        report.inserted_count,
        report.error_count,
        len(prepared.result.skipped_rows),
    )
    return _upload_payload(prepared, report)


def preview_upload(
    content: bytes,
    filename: str,
    settings: Settings,
    sheet_name: Optional[str] = None,
    limit: int = SAMPLE_SIZE,
) -> dict[str, Any]:
    """Run everything up to persistence and describe what would be written."""
    prepared = prepare_upload(content, filename, settings, sheet_name)
    result = prepared.result
    return {
        "success": True,
        "headerRowIndex": prepared.header_index,
        "header": prepared.header,
        "sheetName": prepared.sheet.sheet_name,
        "totalRows": result.total_rows,
        "validCount": len(result.records),
        "skippedCount": len(result.skipped_rows),
        "skippedRows": result.skipped_rows[:50],
        "sample": [record.to_document() for record in result.records[: max(0, limit)]],
        "warnings": list(prepared.sheet.warnings),
        "contract": build_contract("voter_ingest.preview"),
    }
