from __future__ import annotations

import io
from typing import Any, Callable, Iterable, Optional, Sequence

from openpyxl import Workbook
from pymongo.errors import (
    BulkWriteError,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from voter_ingest.transform import VoterRecord


def make_records(count: int, start_row: int = 2) -> list[VoterRecord]:
    return [
        VoterRecord(serial_number=str(i), name=f"Voter {i}", age=20 + i % 60, source_row=start_row + i)
        for i in range(count)
    ]


def xlsx_bytes(rows: Iterable[Sequence[Any]], title: str = "Sheet1", extra_sheets: Sequence[str] = ()) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    for row in rows:
        ws.append(list(row))
    for name in extra_sheets:
        wb.create_sheet(name).append(["Name"])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class FakeStore:
    """
    In-memory stand-in for ``VoterStore``.

    ``reject`` marks documents the store refuses (duplicate key). Call numbers
    in ``generic_failure_calls`` make ``insert_many`` fail without per-record
    detail after writing the first ``applied_before_failure`` documents. Calls
    in ``bulk_error_without_detail_calls`` write everything and then report a
    write concern error. ``disconnect_on_call`` makes that ``insert_many`` call
    lose the connection. Like mongod, a document whose ``_id`` is already
    stored is refused with a duplicate ``_id`` error.
    """

    def __init__(
        self,
        reject: Optional[Callable[[dict[str, Any]], bool]] = None,
        generic_failure_calls: Iterable[int] = (),
        disconnect_on_call: Optional[int] = None,
        bulk_error_without_detail_calls: Iterable[int] = (),
        applied_before_failure: int = 0,
    ) -> None:
        self.documents: list[dict[str, Any]] = []
        self.reject = reject or (lambda document: False)
        self.generic_failure_calls = set(generic_failure_calls)
        self.bulk_error_without_detail_calls = set(bulk_error_without_detail_calls)
        self.disconnect_on_call = disconnect_on_call
        self.applied_before_failure = applied_before_failure
        self.insert_many_calls: list[int] = []
        self.insert_one_calls = 0
        self.closed = False
        self._next_id = 1

    def _store(self, document: dict[str, Any]) -> None:
        document.setdefault("_id", f"{self._next_id:024x}")
        self._next_id += 1
        self.documents.append(dict(document))

    # ── writes ────────────────────────────────────────────────────────────────

    def insert_many(self, documents: list[dict[str, Any]]) -> int:
        self.insert_many_calls.append(len(documents))
        call_no = len(self.insert_many_calls)
        if call_no == self.disconnect_on_call:
            raise ServerSelectionTimeoutError("localhost:27017: connection refused")
        if call_no in self.generic_failure_calls:
            for document in documents[: self.applied_before_failure]:
                self._store(document)
            raise OperationFailure("interrupted at shutdown", code=11600)
        if call_no in self.bulk_error_without_detail_calls:
            # the documents are written; only the write concern times out
            for document in documents:
                self._store(document)
            raise BulkWriteError(
                {
                    "writeErrors": [],
                    "writeConcernErrors": [{"code": 64, "errmsg": "waiting for replication timed out"}],
                    "nInserted": len(documents),
                }
            )

        write_errors = []
        inserted = 0
        for index, document in enumerate(documents):
            if self.reject(document):
                write_errors.append(
                    {
                        "index": index,
                        "code": 11000,
                        "errmsg": f"E11000 duplicate key error dup key: {{ voterIdCard: {document.get('voterIdCard')!r} }}",
                    }
                )
            else:
                self._store(document)
                inserted += 1
        if write_errors:
            raise BulkWriteError({"writeErrors": write_errors, "nInserted": inserted})
        return inserted

    def insert_one(self, document: dict[str, Any]) -> None:
        self.insert_one_calls += 1
        if any(stored["_id"] == document.get("_id") for stored in self.documents):
            raise DuplicateKeyError(
                "E11000 duplicate key error index: _id_ dup key",
                code=11000,
                details={"code": 11000, "keyPattern": {"_id": 1}, "keyValue": {"_id": document["_id"]}},
            )
        if self.reject(document):
            raise DuplicateKeyError(
                "E11000 duplicate key error index: voterIdCard_1 dup key",
                code=11000,
                details={"code": 11000, "keyPattern": {"voterIdCard": 1}},
            )
        self._store(document)

    def delete_all(self) -> int:
        deleted = len(self.documents)
        self.documents = []
        return deleted

    # ── reads ─────────────────────────────────────────────────────────────────

    def _page(self, documents: list[dict[str, Any]], skip: int, limit: int) -> list[dict[str, Any]]:
        newest_first = list(reversed(documents))
        return [dict(document) for document in newest_first[skip : skip + limit]]

    def list_page(self, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        return self._page(self.documents, skip, limit), len(self.documents)

    def search(self, fields: Sequence[str], text: str, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        needle = text.casefold()
        matches = [
            document
            for document in self.documents
            if any(needle in str(document.get(name, "")).casefold() for name in fields)
        ]
        return self._page(matches, skip, limit), len(matches)

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        for document in self.documents:
            if document["_id"] == record_id:
                return dict(document)
        return None

    def status(self) -> dict[str, Any]:
        return {"state": "connected", "database": "voter_ingest_test"}

    def close(self) -> None:
        self.closed = True
