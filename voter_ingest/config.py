"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

ENV_PREFIX = "VOTER_INGEST_"

DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE = "voter_ingest"
DEFAULT_COLLECTION = "voterdatas"
DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_HEADER_SCAN_ROWS = 20
DEFAULT_CHUNK_PAUSE_SECONDS = 0.1
DEFAULT_MAX_ERROR_SAMPLES = 10
DEFAULT_MAX_UPLOAD_MB = 25
DEFAULT_PAGE_SIZE = 50
DEFAULT_API_PREFIX = "/api/voters"
DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 10_000

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must not be negative, got {value}")
    return value


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str = DEFAULT_MONGODB_URI
    database: str = DEFAULT_DATABASE
    collection: str = DEFAULT_COLLECTION
    batch_size: int = DEFAULT_BATCH_SIZE
    max_header_scan_rows: int = DEFAULT_MAX_HEADER_SCAN_ROWS
    chunk_pause_seconds: float = DEFAULT_CHUNK_PAUSE_SECONDS
    max_error_samples: int = DEFAULT_MAX_ERROR_SAMPLES
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    default_page_size: int = DEFAULT_PAGE_SIZE
    api_prefix: str = DEFAULT_API_PREFIX
    cors_origins: tuple[str, ...] = field(default=("*",))
    server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from ``VOTER_INGEST_*`` variables.

        ``MONGODB_URI`` is honoured when the prefixed variable is unset so
        existing deployments keep working.
        """
        env = os.environ if env is None else env
        mongodb_uri = _env_str(env, "MONGODB_URI", env.get("MONGODB_URI") or DEFAULT_MONGODB_URI)
        origins = tuple(
            origin.strip()
            for origin in _env_str(env, "CORS_ORIGINS", "*").split(",")
            if origin.strip()
        )
        return cls(
            mongodb_uri=mongodb_uri,
            database=_env_str(env, "DATABASE", DEFAULT_DATABASE),
            collection=_env_str(env, "COLLECTION", DEFAULT_COLLECTION),
            batch_size=_env_int(env, "BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
            max_header_scan_rows=_env_int(env, "MAX_HEADER_SCAN_ROWS", DEFAULT_MAX_HEADER_SCAN_ROWS, minimum=1),
            chunk_pause_seconds=_env_float(env, "CHUNK_PAUSE_SECONDS", DEFAULT_CHUNK_PAUSE_SECONDS),
            max_error_samples=_env_int(env, "MAX_ERROR_SAMPLES", DEFAULT_MAX_ERROR_SAMPLES),
            max_upload_mb=_env_int(env, "MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB, minimum=1),
            default_page_size=_env_int(env, "DEFAULT_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1),
            api_prefix=_env_str(env, "API_PREFIX", DEFAULT_API_PREFIX).rstrip("/"),
            cors_origins=origins or ("*",),
            server_selection_timeout_ms=_env_int(
                env, "SERVER_SELECTION_TIMEOUT_MS", DEFAULT_SERVER_SELECTION_TIMEOUT_MS, minimum=1
            ),
            log_level=_env_str(env, "LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("voter_ingest").setLevel(resolved)
