"""Bilingual voter-roll spreadsheet ingestion."""

__version__ = "0.1.0"
