#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import requests
import streamlit as st
from pymongo.errors import PyMongoError

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voter_ingest.config import Settings, configure_logging  # noqa: E402
from voter_ingest.errors import IngestError  # noqa: E402
from voter_ingest.loader import ALL_FORMATS  # noqa: E402
from voter_ingest.pipeline import ingest_upload, preview_upload  # noqa: E402
from voter_ingest.remote import fetch_remote_source  # noqa: E402
from voter_ingest.search import build_search  # noqa: E402
from voter_ingest.store import VoterStore, connect_store  # noqa: E402

PREVIEW_ROWS = 20


@st.cache_resource(show_spinner=False)
def load_settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return settings


@st.cache_resource(show_spinner=False)
def load_store() -> VoterStore:
    return connect_store(load_settings())


def ensure_state() -> None:
    st.session_state.setdefault("source", None)
    st.session_state.setdefault("preview", None)
    st.session_state.setdefault("upload_result", None)


def resolve_source(upload, raw_url: str, settings: Settings) -> Optional[tuple[str, bytes]]:
    if upload is not None:
        return upload.name, upload.getvalue()
    if raw_url.strip():
        return fetch_remote_source(raw_url, settings.max_upload_bytes)
    return None


def show_error(exc: IngestError) -> None:
    st.error(f"{exc.message}\n\n{exc.message_hi}")


def render_preview(preview: dict) -> None:
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Header row", preview["headerRowIndex"] + 1)
    c2.metric("Data rows", preview["totalRows"])
    c3.metric("Valid records", preview["validCount"])
    c4.metric("Skipped rows", preview["skippedCount"])
    st.caption("Header: " + " | ".join(cell for cell in preview["header"] if cell))
    for warning in preview["warnings"]:
        st.warning(warning)
    if preview["sample"]:
        st.dataframe(pd.DataFrame(preview["sample"]), width="stretch", hide_index=True)


def render_upload_result(result: dict) -> None:
    if result["errorCount"]:
        st.warning(result["message"])
    else:
        st.success(result["message"])
    c1, c2, c3 = st.columns(3)
    c1.metric("Inserted", result["insertedCount"])
    c2.metric("Failed", result["errorCount"])
    c3.metric("Skipped rows", result["skippedCount"])
    if result["errorSamples"]:
        st.dataframe(pd.DataFrame(result["errorSamples"]), width="stretch", hide_index=True)


def render_search(store: VoterStore) -> None:
    st.subheader("Search")
    query = st.text_input("Name or gender (English or मराठी)", key="search_input")
    if not query.strip():
        return
    plan = build_search(query)
    try:
        data, total = store.search(plan.fields, plan.text, 0, PREVIEW_ROWS)
    except PyMongoError as exc:
        st.error(f"Store unavailable: {exc}")
        return
    st.caption(f"{total} match(es), searched {', '.join(plan.fields)}")
    if data:
        st.dataframe(pd.DataFrame(data).drop(columns=["_id"], errors="ignore"), width="stretch", hide_index=True)


def main() -> None:
    st.set_page_config(page_title="voter-ingest", page_icon="🗳️", layout="wide", initial_sidebar_state="collapsed")
    ensure_state()
    settings = load_settings()

    st.title("voter-ingest")
    st.caption("Upload a voter-roll sheet or paste a public sheet URL, check the preview, then commit it to the store.")

    upload = st.file_uploader("Voter roll", type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)])
    raw_url = st.text_input(
        "Public sheet URL",
        placeholder="Google Sheets, Drive, Dropbox, OneDrive, Box or GitHub links",
    )
    st.caption(f"Files above {settings.max_upload_mb} MB are rejected.")

    if st.button("Preview", type="primary", disabled=upload is None and not raw_url.strip()):
        try:
            source = resolve_source(upload, raw_url, settings)
            if source is not None:
                filename, content = source
                st.session_state["preview"] = preview_upload(content, filename, settings, limit=PREVIEW_ROWS)
                st.session_state["source"] = source
                st.session_state["upload_result"] = None
        except IngestError as exc:
            st.session_state["preview"] = None
            show_error(exc)
        except (requests.RequestException, ValueError) as exc:
            st.session_state["preview"] = None
            st.error(f"Could not fetch the sheet: {exc}")

    preview = st.session_state["preview"]
    if preview is not None:
        render_preview(preview)
        if st.button("Commit to store", disabled=st.session_state["upload_result"] is not None):
            filename, content = st.session_state["source"]
            with st.spinner("Inserting records..."):
                try:
                    st.session_state["upload_result"] = ingest_upload(content, filename, load_store(), settings)
                except IngestError as exc:
                    show_error(exc)

    if st.session_state["upload_result"] is not None:
        render_upload_result(st.session_state["upload_result"])

    st.divider()
    render_search(load_store())


if __name__ == "__main__":
    main()
