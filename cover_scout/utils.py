"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import re

ILLEGAL_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
WHITESPACE_PATTERN = re.compile(r"\s+")
MAX_FILENAME_CHARS = 100


def sanitize_filename(value: str, fallback: str = "untitled") -> str:
    """Make a display title safe to use as a file stem, keeping any script."""
    cleaned = ILLEGAL_FILENAME_PATTERN.sub("", value)
    cleaned = WHITESPACE_PATTERN.sub("_", cleaned)
    cleaned = cleaned[:MAX_FILENAME_CHARS]
    return cleaned or fallback


def shorten(value: str, limit: int = 50) -> str:
    """Trim long URLs (especially data URIs) for log output."""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."
