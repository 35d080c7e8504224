"""
Chunked bulk insertion with per-record failure isolation.

Chunks are written one after another. Inside a chunk the insert is
unordered, so one bad record never blocks the rest. Failures come back as
data (``RecordFailure``); only a lost store connection stops the run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol, Sequence

from pymongo.errors import BulkWriteError, ConnectionFailure, DuplicateKeyError, PyMongoError

from voter_ingest.errors import RecordFailure, TransportFailure
from voter_ingest.transform import VoterRecord

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_ERROR_SAMPLES = 10
MAX_ERROR_MESSAGE_CHARS = 300


class RecordSink(Protocol):
    def insert_many(self, documents: list[dict[str, Any]]) -> int: ...

    def insert_one(self, document: dict[str, Any]) -> None: ...


@dataclass
class ChunkResult:
    start: int
    size: int
    inserted_count: int
    failures: list[RecordFailure] = field(default_factory=list)
    fallback: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class IngestReport:
    inserted_count: int
    error_count: int
    error_samples: list[RecordFailure]
    chunks: list[ChunkResult]
    warnings: list[str] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.inserted_count + self.error_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "insertedCount": self.inserted_count,
            "errorCount": self.error_count,
            "errorSamples": [failure.to_dict() for failure in self.error_samples],
            "chunks": len(self.chunks),
            "warnings": list(self.warnings),
        }


def iter_chunks(records: Sequence[VoterRecord], size: int) -> Iterator[tuple[int, Sequence[VoterRecord]]]:
    for start in range(0, len(records), size):
        yield start, records[start : start + size]


def _short(message: Any) -> str:
    text = str(message)
    return text if len(text) <= MAX_ERROR_MESSAGE_CHARS else text[: MAX_ERROR_MESSAGE_CHARS - 3] + "..."


def _failure(start: int, offset: int, chunk: Sequence[VoterRecord], code: Any, message: Any) -> RecordFailure:
    record = chunk[offset] if 0 <= offset < len(chunk) else None
    return RecordFailure(
        index=start + offset,
        row=record.source_row if record is not None else None,
        code=code if isinstance(code, int) else None,
        message=_short(message),
    )


def _already_written(exc: PyMongoError) -> bool:
    """True for a duplicate ``_id``: an earlier bulk call wrote this very document."""
    if not isinstance(exc, DuplicateKeyError):
        return False
    details = exc.details or {}
    if details.get("keyPattern") == {"_id": 1}:
        return True
    return "index: _id_ " in str(details.get("errmsg") or exc)


def _insert_one_by_one(
    sink: RecordSink,
    start: int,
    chunk: Sequence[VoterRecord],
    documents: list[dict[str, Any]],
) -> ChunkResult:
    inserted = 0
    failures: list[RecordFailure] = []
    for offset, document in enumerate(documents):
        try:
            sink.insert_one(document)
        except ConnectionFailure:
            raise
        except PyMongoError as exc:
            if _already_written(exc):
                inserted += 1
            else:
                failures.append(_failure(start, offset, chunk, getattr(exc, "code", None), exc))
        else:
            inserted += 1
    return ChunkResult(start=start, size=len(chunk), inserted_count=inserted, failures=failures, fallback=True)


def _write_concern_warnings(start: int, details: dict[str, Any]) -> list[str]:
    return [
        _short(f"Chunk at {start}: write concern not satisfied ({error.get('code')}): {error.get('errmsg', '')}")
        for error in details.get("writeConcernErrors") or []
    ]


def insert_chunk(sink: RecordSink, start: int, chunk: Sequence[VoterRecord]) -> ChunkResult:
    """
    Insert one chunk; ``ConnectionFailure`` propagates to the caller.

    A ``BulkWriteError`` with write errors is split into per-record failures.
    Without write errors the server wrote ``nInserted`` documents and only the
    write concern failed; that is reported as a chunk warning. Any other store
    error, or a bulk error that leaves documents unaccounted for, is retried
    record by record. Documents keep the ``_id`` assigned by the first
    attempt, so a retry of an already written document counts as inserted.
    """
    documents = [record.to_document() for record in chunk]
    try:
        inserted = sink.insert_many(documents)
    except BulkWriteError as exc:
        details = exc.details or {}
        write_errors = details.get("writeErrors") or []
        warnings = _write_concern_warnings(start, details)
        if not write_errors:
            written = details.get("nInserted")
            if isinstance(written, int) and written >= len(chunk):
                logger.warning("Chunk at %d written with write concern errors", start)
                return ChunkResult(start=start, size=len(chunk), inserted_count=written, warnings=warnings)
            logger.warning("Chunk at %d failed without per-record detail, inserting one by one", start)
            result = _insert_one_by_one(sink, start, chunk, documents)
            result.warnings.extend(warnings)
            return result
        failures = [
            _failure(start, int(error.get("index", -1)), chunk, error.get("code"), error.get("errmsg", ""))
            for error in write_errors
        ]
        inserted = int(details.get("nInserted", len(chunk) - len(failures)))
        return ChunkResult(start=start, size=len(chunk), inserted_count=inserted, failures=failures, warnings=warnings)
    except ConnectionFailure:
        raise
    except PyMongoError as exc:
        logger.warning("Chunk at %d failed (%s), inserting one by one", start, exc)
        return _insert_one_by_one(sink, start, chunk, documents)
    return ChunkResult(start=start, size=len(chunk), inserted_count=inserted)


def ingest_records(
    records: Sequence[VoterRecord],
    sink: RecordSink,
    batch_size: int = DEFAULT_BATCH_SIZE,
    pause_seconds: float = 0.0,
    max_error_samples: int = DEFAULT_MAX_ERROR_SAMPLES,
    sleep: Callable[[float], None] = time.sleep,
) -> IngestReport:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    inserted_total = 0
    error_total = 0
    samples: list[RecordFailure] = []
    chunks: list[ChunkResult] = []
    warnings: list[str] = []

    for chunk_no, (start, chunk) in enumerate(iter_chunks(records, batch_size)):
        if chunk_no and pause_seconds > 0:
            sleep(pause_seconds)
        try:
            result = insert_chunk(sink, start, chunk)
        except ConnectionFailure as exc:
            logger.error(
                "Store connection lost at chunk %d (records %d-%d); aborting with %d inserted",
                chunk_no + 1,
                start,
                start + len(chunk) - 1,
                inserted_total,
            )
            raise TransportFailure(
                f"Store connection lost while inserting records {start}-{start + len(chunk) - 1}: {exc}",
                inserted_count=inserted_total,
                error_count=error_total,
            ) from exc

        chunks.append(result)
        inserted_total += result.inserted_count
        error_total += len(result.failures)
        room = max(0, max_error_samples - len(samples))
        samples.extend(result.failures[:room])
        warnings.extend(result.warnings)
        logger.info(
            "Chunk %d committed: records=%d inserted=%d failed=%d",
            chunk_no + 1,
            result.size,
            result.inserted_count,
            len(result.failures),
        )

    return IngestReport(
        inserted_count=inserted_total,
        error_count=error_total,
        error_samples=samples,
        chunks=chunks,
        warnings=warnings,
    )
