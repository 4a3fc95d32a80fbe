"""Catalog ingestion: read book titles from CSV and normalise them."""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from typing import List, Optional

from .errors import CatalogError

logger = logging.getLogger("cover_scout")

ORDINAL_PREFIX = re.compile(r"^\d+\.\s*")
DEFAULT_TITLE_COLUMN = "Title"


def clean_title(raw: str, keep: Optional[str] = None) -> str:
    """Strip a leading ``"12. "`` ordinal and, optionally, foreign characters.

    ``keep`` is the body of a regex character class (for example
    ``"\\u0B80-\\u0BFF"``); when given, every character outside it that is
    not whitespace is removed.
    """
    title = ORDINAL_PREFIX.sub("", raw.strip())
    if keep:
        title = re.sub(f"[^{keep}\\s]", "", title)
    return " ".join(title.split())


def read_titles(
    path: Path,
    column: str = DEFAULT_TITLE_COLUMN,
    keep: Optional[str] = None,
) -> List[str]:
    """Load cleaned titles from ``path`` in file order, skipping empty rows."""
    titles: List[str] = []
    try:
        with path.open(newline="", encoding="utf-8-sig") as handle:
            reader = csv.DictReader(handle)
            if reader.fieldnames is None:
                raise CatalogError(f"{path} is empty")
            reader.fieldnames = [name.strip() for name in reader.fieldnames]
            if column not in reader.fieldnames:
                raise CatalogError(
                    f"{path} has no {column!r} column (found: {', '.join(reader.fieldnames)})"
                )
            for line_number, row in enumerate(reader, start=2):
                raw = row.get(column) or ""
                title = clean_title(raw, keep) if raw.strip() else ""
                if not title:
                    logger.info("Skipping empty or invalid row %d in %s", line_number, path.name)
                    continue
                logger.debug("Read book title: %s", title)
                titles.append(title)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise CatalogError(f"Failed to read catalog {path}: {exc}") from exc
    logger.info("Finished reading %s. Total books: %d", path.name, len(titles))
    return titles
