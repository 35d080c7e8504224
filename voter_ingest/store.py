"""
Document store for voter records, backed by a pymongo collection.

Every write stamps ``createdAt``/``updatedAt`` in UTC. Reads hand back plain
dicts with ``_id`` rendered as a string and datetimes as ISO-8601 text so
they can go straight into a JSON response.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from voter_ingest.config import Settings

logger = logging.getLogger(__name__)

APP_NAME = "voter-ingest"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def serialize_document(document: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in document.items():
        if isinstance(value, ObjectId):
            result[key] = str(value)
        elif isinstance(value, datetime):
            result[key] = _iso(value)
        else:
            result[key] = value
    return result


def partial_match_filter(fields: Sequence[str], text: str) -> dict[str, Any]:
    """Case-insensitive substring match on any of ``fields``; the text is matched literally."""
    pattern = re.escape(text)
    return {"$or": [{name: {"$regex": pattern, "$options": "i"}} for name in fields]}


class VoterStore:
    def __init__(self, collection: Collection, client: Optional[MongoClient] = None) -> None:
        self.collection = collection
        self.client = client

    # ── writes ────────────────────────────────────────────────────────────────

    def insert_many(self, documents: list[dict[str, Any]]) -> int:
        """
        Unordered bulk insert; returns the number of documents written.

        The documents are stamped in place, and pymongo assigns ``_id`` in
        place as well, so a retry of the same dicts cannot insert twice.
        """
        if not documents:
            return 0
        now = _now()
        for document in documents:
            document.setdefault("createdAt", now)
            document["updatedAt"] = now
        result = self.collection.insert_many(documents, ordered=False)
        return len(result.inserted_ids)

    def insert_one(self, document: dict[str, Any]) -> None:
        now = _now()
        document.setdefault("createdAt", now)
        document["updatedAt"] = now
        self.collection.insert_one(document)

    def delete_all(self) -> int:
        result = self.collection.delete_many({})
        logger.info("Deleted %d voter records", result.deleted_count)
        return result.deleted_count

    # ── reads ─────────────────────────────────────────────────────────────────

    def count(self, query: Optional[dict[str, Any]] = None) -> int:
        return self.collection.count_documents(query or {})

    def find_page(self, query: Optional[dict[str, Any]], skip: int, limit: int) -> list[dict[str, Any]]:
        cursor = (
            self.collection.find(query or {})
            .sort("createdAt", DESCENDING)
            .skip(max(0, skip))
            .limit(max(0, limit))
        )
        return [serialize_document(document) for document in cursor]

    def list_page(self, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        return self.find_page(None, skip, limit), self.count()

    def search(self, fields: Sequence[str], text: str, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        query = partial_match_filter(fields, text)
        return self.find_page(query, skip, limit), self.count(query)

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        try:
            oid = ObjectId(record_id)
        except (InvalidId, TypeError):
            return None
        document = self.collection.find_one({"_id": oid})
        return serialize_document(document) if document is not None else None

    # ── health ────────────────────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        info: dict[str, Any] = {"database": self.collection.database.name}
        if self.client is None:
            info["state"] = "unknown"
            return info
        try:
            self.client.admin.command("ping")
        except PyMongoError as exc:
            info["state"] = "error"
            info["error"] = str(exc)
        else:
            info["state"] = "connected"
        return info

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def connect_store(settings: Settings) -> VoterStore:
    """
    Build the process-wide client. pymongo connects lazily, so this never
    blocks; the first operation surfaces an unreachable server.
    """
    client: MongoClient = MongoClient(
        settings.mongodb_uri,
        appname=APP_NAME,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        tz_aware=True,
    )
    collection = client[settings.database][settings.collection]
    logger.info("Store configured: database=%s collection=%s", settings.database, settings.collection)
    return VoterStore(collection, client)
