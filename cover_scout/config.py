"""Configuration objects and constants for the cover pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
MAC_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.114 Safari/537.36"
)
TABLET_USER_AGENT = (
    "Mozilla/5.0 (iPad; CPU OS 12_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/12.1 Mobile/15E148 Safari/604.1"
)

DEFAULT_IMAGE_ROOT = Path("images")
DEFAULT_INTER_ATTEMPT_DELAY = 2.0
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_NAVIGATION_TIMEOUT = 30.0
DEFAULT_DOWNLOAD_TIMEOUT = 10.0
DEFAULT_MIN_IMAGE_BYTES = 200
DEFAULT_PLACEHOLDER_MARKERS: Tuple[str, ...] = ("no-image.jpg",)
DEFAULT_EXTENSION = ".jpg"
BACKGROUND_URL_PATTERN = r"url\(['\"]?(.*?)['\"]?\)"

COLLISION_POLICIES = ("overwrite", "suffix")
RENDERERS = ("browser", "static")

# Unicode blocks usable as the title filter; values are regex class bodies.
SCRIPT_RANGES: Dict[str, str] = {
    "tamil": "\u0B80-\u0BFF",
    "devanagari": "\u0900-\u097F",
    "bengali": "\u0980-\u09FF",
    "telugu": "\u0C00-\u0C7F",
    "kannada": "\u0C80-\u0CFF",
    "malayalam": "\u0D00-\u0D7F",
    "latin": "A-Za-z0-9\u00C0-\u024F",
}


@dataclass(frozen=True)
class ExtractionRule:
    """Declarative description of where a source keeps its first result."""

    title_selector: str
    image_selector: str
    image_source: str = "attribute"
    image_attribute: str = "src"
    background_pattern: str = BACKGROUND_URL_PATTERN
    require_title: bool = True
    wait_for_selector: Optional[str] = None
    wait_for_timeout: float = 10.0
    thumbnail_rewrite: Optional[Tuple[str, str]] = None

    def __post_init__(self) -> None:
        if self.image_source not in ("attribute", "background"):
            raise ValueError(f"Unknown image source {self.image_source!r}")


@dataclass(frozen=True)
class SourceConfig:
    """A single search endpoint queried for cover images."""

    name: str
    search_url: str
    extraction: ExtractionRule
    user_agent: str = DESKTOP_USER_AGENT
    viewport: Optional[Tuple[int, int]] = None
    navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT
    settle_delay: float = DEFAULT_SETTLE_DELAY
    renderer: str = "browser"
    min_image_bytes: Optional[int] = None

    def __post_init__(self) -> None:
        if "{query}" not in self.search_url:
            raise ValueError(f"Search URL for {self.name} lacks a {{query}} placeholder")
        if self.renderer not in RENDERERS:
            raise ValueError(f"Unknown renderer {self.renderer!r} for {self.name}")


DEFAULT_SOURCES: Tuple[SourceConfig, ...] = (
    SourceConfig(
        name="commonfolks",
        search_url="https://www.commonfolks.in/search?sv={query}",
        extraction=ExtractionRule(
            title_selector=".item h4 a",
            image_selector=".product_list_img",
            image_source="background",
            thumbnail_rewrite=("/images/", "/images_full/"),
        ),
        user_agent=MAC_USER_AGENT,
    ),
    SourceConfig(
        name="noolulagam",
        search_url="https://www.noolulagam.com/s/?si=1&stext={query}&post_type=product",
        extraction=ExtractionRule(
            title_selector=".woocommerce ul.products li.product .title",
            image_selector=".woocommerce ul.products li.product a img",
        ),
        user_agent=TABLET_USER_AGENT,
    ),
    SourceConfig(
        name="amazon",
        search_url="https://www.amazon.in/s?k={query}",
        extraction=ExtractionRule(
            title_selector="h2 .a-text-normal",
            image_selector=".s-image",
            require_title=False,
            wait_for_selector=".s-image",
        ),
        user_agent=DESKTOP_USER_AGENT,
        viewport=(1200, 800),
    ),
)


@dataclass
class PipelineConfig:
    """Top-level settings that control the acquisition waterfall."""

    image_root: Path = DEFAULT_IMAGE_ROOT
    sources: List[SourceConfig] = field(default_factory=lambda: list(DEFAULT_SOURCES))
    inter_attempt_delay: float = DEFAULT_INTER_ATTEMPT_DELAY
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    min_image_bytes: int = DEFAULT_MIN_IMAGE_BYTES
    placeholder_markers: Tuple[str, ...] = DEFAULT_PLACEHOLDER_MARKERS
    download_user_agent: str = DESKTOP_USER_AGENT
    collision: str = "overwrite"
    headless: bool = True

    def __post_init__(self) -> None:
        if self.collision not in COLLISION_POLICIES:
            raise ValueError(f"Unknown collision policy {self.collision!r}")

    def threshold_for(self, source: SourceConfig) -> int:
        if source.min_image_bytes is not None:
            return source.min_image_bytes
        return self.min_image_bytes


def get_source(name: str) -> SourceConfig:
    """Look up one of the built-in sources by name."""
    for source in DEFAULT_SOURCES:
        if source.name == name:
            return source
    known = ", ".join(s.name for s in DEFAULT_SOURCES)
    raise ValueError(f"Unknown source {name!r} (expected one of: {known})")


def select_sources(
    names: Iterable[str],
    settle_delay: Optional[float] = None,
    navigation_timeout: Optional[float] = None,
) -> List[SourceConfig]:
    """Build a priority list from source names, applying shared overrides."""
    selected: List[SourceConfig] = []
    for name in names:
        source = get_source(name.strip())
        if settle_delay is not None:
            source = replace(source, settle_delay=settle_delay)
        if navigation_timeout is not None:
            source = replace(source, navigation_timeout=navigation_timeout)
        selected.append(source)
    return selected
