"""Pick the record fields a free-text query is matched against."""

from __future__ import annotations

from dataclasses import dataclass

from voter_ingest.script import search_language

SEARCH_FIELDS = {
    "en": ("name", "gender"),
    "mr": ("name_mr", "gender_mr"),
}


@dataclass(frozen=True)
class SearchPlan:
    text: str
    language: str
    fields: tuple[str, ...]


def build_search(query: str | None) -> SearchPlan:
    """
    A Devanagari query searches the Devanagari slots, anything else the
    Latin ones. Raises ``ValueError`` for a blank query.
    """
    text = (query or "").strip()
    if not text:
        raise ValueError("Search query must not be empty")
    language = search_language(text)
    return SearchPlan(text=text, language=language, fields=SEARCH_FIELDS[language])
