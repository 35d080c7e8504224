"""
Download a voter roll shared through a public link.

Share links from Google Sheets/Drive, Dropbox, OneDrive, Box and GitHub are
rewritten to their direct-download form before fetching.
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import ParseResult, parse_qs, urlencode, urlparse, urlunparse

import requests

from voter_ingest.errors import MalformedInputError, UploadTooLargeError
from voter_ingest.loader import ALL_FORMATS

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 60

CONTENT_TYPE_EXTENSIONS = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-excel.sheet.macroenabled.12": ".xlsm",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.oasis.opendocument.spreadsheet": ".ods",
    "text/csv": ".csv",
    "text/tab-separated-values": ".tsv",
}


def _host_is(host: str, *domains: str) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def _with_query_flag(parsed: ParseResult, query: dict[str, list[str]], flag: str) -> str:
    query[flag] = ["1"]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def _github_raw(parsed: ParseResult, query: dict[str, list[str]]) -> Optional[str]:
    if "/blob/" not in parsed.path:
        return None
    owner_repo, blob_path = parsed.path.lstrip("/").split("/blob/", 1)
    return f"https://raw.githubusercontent.com/{owner_repo}/{blob_path}"


def _google_export(parsed: ParseResult, query: dict[str, list[str]]) -> Optional[str]:
    sheet = re.search(r"/spreadsheets/d/([^/]+)", parsed.path)
    if sheet:
        gid = query.get("gid", ["0"])[0]
        return f"https://docs.google.com/spreadsheets/d/{sheet.group(1)}/export?format=xlsx&gid={gid}"
    drive_file = re.search(r"/file/d/([^/]+)", parsed.path)
    file_id = drive_file.group(1) if drive_file else query.get("id", [None])[0]
    return f"https://drive.google.com/uc?export=download&id={file_id}" if file_id else None


ShareLinkRewrite = Callable[[ParseResult, dict[str, list[str]]], Optional[str]]

# (hosts, rewrite) pairs; the first host match whose rewrite applies wins.
SHARE_LINK_RULES: tuple[tuple[tuple[str, ...], ShareLinkRewrite], ...] = (
    (("github.com",), _github_raw),
    (("dropbox.com",), lambda parsed, query: _with_query_flag(parsed, query, "dl")),
    (("box.com",), lambda parsed, query: _with_query_flag(parsed, query, "download")),
    (("drive.google.com", "docs.google.com"), _google_export),
    (("1drv.ms", "onedrive.live.com"), lambda parsed, query: _with_query_flag(parsed, query, "download")),
)


def normalize_public_url(raw_url: str) -> str:
    """Rewrite a share link to its direct-download form; other URLs pass through."""
    url = raw_url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    for domains, rewrite in SHARE_LINK_RULES:
        if _host_is(host, *domains):
            direct = rewrite(parsed, parse_qs(parsed.query, keep_blank_values=True))
            if direct:
                return direct
    return url


def remote_filename(raw_url: str, response: requests.Response) -> str:
    content_disposition = response.headers.get("content-disposition", "")
    match = re.search(r"filename\*=UTF-8''([^;]+)|filename=\"([^\"]+)\"|filename=([^;]+)", content_disposition, re.I)
    if match:
        for group in match.groups():
            if group:
                return Path(group.strip().strip('"')).name
    redirected = response.url or raw_url
    return Path(urlparse(redirected).path).name or Path(urlparse(raw_url).path).name or "voter_roll"


def infer_extension(raw_url: str, content_type: str, filename: str, content: bytes) -> str:
    ext = Path(filename).suffix.lower()
    if ext in ALL_FORMATS:
        return ext

    content_type = content_type.split(";")[0].strip().lower()
    if content_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[content_type]

    parsed = urlparse(raw_url)
    if "docs.google.com" in parsed.netloc.lower() and "/spreadsheets/" in parsed.path:
        return ".xlsx"

    if content.startswith(b"PK"):
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                names = set(zf.namelist())
        except zipfile.BadZipFile:
            names = set()
        if "mimetype" in names:
            return ".ods"
        if "xl/vbaProject.bin" in names:
            return ".xlsm"
        if "xl/workbook.xml" in names:
            return ".xlsx"

    if content[:8] == b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1":
        return ".xls"

    sample = content[:8192].decode("utf-8", errors="replace")
    lines = [line for line in sample.splitlines() if line.strip()][:5]
    if not lines:
        return ext
    if any("\t" in line for line in lines):
        return ".tsv"
    return ".csv"


def fetch_remote_source(raw_url: str, max_bytes: int) -> tuple[str, bytes]:
    """Return ``(filename, content)``; the filename always carries a supported extension."""
    url = normalize_public_url(raw_url)
    logger.info("Fetching remote sheet: %s", url)
    response = requests.get(url, timeout=REQUEST_TIMEOUT_SECONDS, allow_redirects=True, stream=True)
    try:
        response.raise_for_status()
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise UploadTooLargeError(f"Remote file is larger than {max_bytes} bytes")

        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > max_bytes:
                raise UploadTooLargeError(f"Remote file is larger than {max_bytes} bytes")
            chunks.append(chunk)
        content = b"".join(chunks)
    finally:
        response.close()

    filename = remote_filename(raw_url, response)
    ext = infer_extension(raw_url, response.headers.get("content-type", ""), filename, content)
    if ext not in ALL_FORMATS:
        raise MalformedInputError(f"Unsupported remote file type: {ext or '[missing extension]'}")
    if Path(filename).suffix.lower() != ext:
        filename = f"{Path(filename).stem or 'voter_roll'}{ext}"
    return filename, content
