"""Data models used throughout the acquisition pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class SearchResult:
    """Best candidate extracted from a source's result page."""

    display_title: str
    image_ref: Optional[str]


@dataclass(frozen=True)
class ImageArtifact:
    """Cover image persisted on disk."""

    source: str
    title: str
    path: Path
    size: int
    origin: str


class TitleState(enum.Enum):
    PENDING = "pending"
    TRYING = "trying"
    DONE = "done"


@dataclass
class AttemptRecord:
    """Result of invoking one source for one title."""

    source: str
    found: bool
    seconds: float


@dataclass
class TitleOutcome:
    """Final state of a title after the waterfall finished with it."""

    title: str
    state: TitleState = TitleState.PENDING
    artifact: Optional[ImageArtifact] = None
    attempts: List[AttemptRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None

    @property
    def source(self) -> Optional[str]:
        return self.artifact.source if self.artifact else None
