"""
FastAPI application exposing upload, listing, detail, search and bulk delete
for voter records.

    uvicorn --factory voter_ingest.api:create_app
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, PyMongoError
from starlette.concurrency import run_in_threadpool

from voter_ingest import __version__
from voter_ingest.config import Settings
from voter_ingest.contracts import build_contract, utc_now_iso
from voter_ingest.errors import (
    IngestError,
    InvalidRequestError,
    RecordNotFoundError,
    TransportFailure,
)
from voter_ingest.models import (
    DeleteResponse,
    DetailResponse,
    ErrorResponse,
    HealthResponse,
    PageResponse,
    SearchResponse,
    UploadResponse,
)
from voter_ingest.pipeline import ingest_upload
from voter_ingest.search import build_search
from voter_ingest.store import VoterStore, connect_store

logger = logging.getLogger(__name__)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> VoterStore:
    store = request.app.state.store
    if store is None:
        store = connect_store(request.app.state.settings)
        request.app.state.store = store
    return store


def _page_bounds(page: int, limit: Optional[int], settings: Settings) -> tuple[int, int]:
    size = limit or settings.default_page_size
    return (page - 1) * size, size


def _total_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size else 0


def _error_response(exc: IngestError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def build_router(settings: Settings) -> APIRouter:
    router = APIRouter(prefix=settings.api_prefix, tags=["voters"])

    @router.post("/upload", status_code=201, response_model=UploadResponse, responses={**ERROR_RESPONSES, 413: {"model": ErrorResponse}})
    async def upload_voters(
        file: UploadFile = File(...),
        sheet: Optional[str] = Form(None),
        store: VoterStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        # one byte past the limit is enough to reject oversize uploads
        content = await file.read(settings.max_upload_bytes + 1)
        return await run_in_threadpool(
            ingest_upload, content, file.filename or "", store, settings, sheet or None
        )

    # registered before "/{record_id}" so "search" is not read as an id
    @router.get("/search", response_model=SearchResponse, responses=ERROR_RESPONSES)
    def search_voters(
        query: str = Query(""),
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        store: VoterStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        try:
            plan = build_search(query)
        except ValueError as exc:
            raise InvalidRequestError(str(exc), message_hi="कृपया खोज शब्द दर्ज करें") from exc
        skip, size = _page_bounds(page, limit, settings)
        data, total = store.search(plan.fields, plan.text, skip, size)
        return {
            "success": True,
            "query": plan.text,
            "searchLanguage": plan.language,
            "count": len(data),
            "totalCount": total,
            "currentPage": page,
            "totalPages": _total_pages(total, size),
            "data": data,
            "contract": build_contract("voter_ingest.search"),
        }

    @router.get("", response_model=PageResponse, responses=ERROR_RESPONSES)
    def list_voters(
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        store: VoterStore = Depends(get_store),
        settings: Settings = Depends(get_settings),
    ) -> dict[str, Any]:
        skip, size = _page_bounds(page, limit, settings)
        data, total = store.list_page(skip, size)
        return {
            "success": True,
            "count": len(data),
            "totalCount": total,
            "currentPage": page,
            "totalPages": _total_pages(total, size),
            "data": data,
        }

    @router.get("/{record_id}", response_model=DetailResponse, responses={404: {"model": ErrorResponse}})
    def get_voter(record_id: str, store: VoterStore = Depends(get_store)) -> dict[str, Any]:
        document = store.get(record_id)
        if document is None:
            raise RecordNotFoundError(f"No voter record with id {record_id!r}")
        return {"success": True, "data": document}

    @router.delete("", response_model=DeleteResponse, responses=ERROR_RESPONSES)
    def delete_voters(store: VoterStore = Depends(get_store)) -> dict[str, Any]:
        deleted = store.delete_all()
        return {
            "success": True,
            "message": f"Deleted {deleted} records",
            "message_hi": "सभी डेटा सफलतापूर्वक डिलीट हो गया",
            "deletedCount": deleted,
        }

    return router


def create_app(settings: Optional[Settings] = None, store: Optional[VoterStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.store is not None and app.state.owns_store:
            app.state.store.close()

    app = FastAPI(title="voter-ingest", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.owns_store = store is None

    origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(IngestError)
    async def handle_ingest_error(request: Request, exc: IngestError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in exc.errors()
        )
        return _error_response(InvalidRequestError(details or "Invalid request"))

    @app.exception_handler(PyMongoError)
    async def handle_store_error(request: Request, exc: PyMongoError) -> JSONResponse:
        logger.error("%s %s store error: %s", request.method, request.url.path, exc)
        if isinstance(exc, ConnectionFailure):
            return _error_response(TransportFailure(f"Store unavailable: {exc}"))
        return _error_response(IngestError(f"Store error: {exc}"))

    @app.get("/")
    def index() -> dict[str, Any]:
        prefix = settings.api_prefix
        return {
            "message": "Voter roll ingestion API",
            "status": "running",
            "version": __version__,
            "endpoints": {
                "uploadExcel": f"POST {prefix}/upload",
                "getAllVoters": f"GET {prefix}",
                "getVoterById": f"GET {prefix}/{{id}}",
                "searchVoters": f"GET {prefix}/search?query=...",
                "deleteAllVoters": f"DELETE {prefix}",
                "health": "GET /health",
            },
        }

    @app.get("/health", response_model=HealthResponse)
    def health(store: VoterStore = Depends(get_store)) -> dict[str, Any]:
        mongodb = store.status()
        return {
            "status": "ok" if mongodb.get("state") == "connected" else "degraded",
            "timestamp": utc_now_iso(),
            "mongodb": mongodb,
        }

    app.include_router(build_router(settings))
    return app
