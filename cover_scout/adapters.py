"""Generic source adapter driven by declarative extraction rules."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

from .config import PipelineConfig, SourceConfig
from .errors import AcquisitionError, NoMatch
from .images import ImageWriter
from .models import ImageArtifact, SearchResult
from .render import RenderedPage, Renderer
from .utils import shorten

logger = logging.getLogger("cover_scout")


def build_search_url(source: SourceConfig, title: str) -> str:
    return source.search_url.format(query=quote(title, safe=""))


def rewrite_thumbnail(source: SourceConfig, image_ref: Optional[str]) -> Optional[str]:
    """Swap a thumbnail path for the full-resolution one when the source allows."""
    rewrite = source.extraction.thumbnail_rewrite
    if not image_ref or not rewrite:
        return image_ref
    old, new = rewrite
    if old in image_ref:
        return image_ref.replace(old, new)
    return image_ref


async def extract_result(
    source: SourceConfig,
    page: RenderedPage,
    query_title: str,
) -> SearchResult:
    """Run the source's extraction rule once against a rendered page.

    Raises ``NoMatch`` when the page has no usable result.
    """
    rule = source.extraction
    display_title = await page.text(rule.title_selector)
    if display_title is None and rule.require_title:
        raise NoMatch(f"no result title matching {rule.title_selector!r}")
    if not display_title:
        # A blank provider title still needs a usable filename.
        display_title = query_title

    if rule.image_source == "background":
        image_ref = None
        style = await page.style(rule.image_selector, "background-image")
        if style:
            match = re.search(rule.background_pattern, style, re.IGNORECASE)
            if match:
                image_ref = match.group(1) or None
    else:
        image_ref = await page.attribute(rule.image_selector, rule.image_attribute)

    if not image_ref:
        raise NoMatch(f"result {display_title!r} carries no image")
    return SearchResult(display_title=display_title, image_ref=image_ref)


class SourceAdapter:
    """Query one source for a title and hand the best candidate to the writer."""

    def __init__(
        self,
        source: SourceConfig,
        renderer: Renderer,
        writer: ImageWriter,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.source = source
        self.renderer = renderer
        self.writer = writer
        self.config = config or writer.config

    @property
    def name(self) -> str:
        return self.source.name

    async def search(self, title: str) -> bool:
        """Return True iff an image was found and accepted for ``title``."""
        return await self.attempt(title) is not None

    async def attempt(self, title: str) -> Optional[ImageArtifact]:
        source = self.source
        url = build_search_url(source, title)
        try:
            async with self.renderer.open(
                url,
                user_agent=source.user_agent,
                viewport=source.viewport,
                timeout=source.navigation_timeout,
            ) as page:
                rule = source.extraction
                if rule.wait_for_selector:
                    await page.wait_for(rule.wait_for_selector, rule.wait_for_timeout)
                await page.settle(source.settle_delay)
                result = await extract_result(source, page, title)

            image_ref = rewrite_thumbnail(source, result.image_ref)
            logger.info(
                'Found: "%s" with image URL: %s',
                result.display_title,
                shorten(image_ref or "None"),
            )
            return self.writer.write(
                image_ref,
                result.display_title,
                source.name,
                min_bytes=self.config.threshold_for(source),
            )
        except AcquisitionError as exc:
            logger.info("No results found on %s for title: %s (%s)", source.name, title, exc)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Error scraping %s for title: %s", source.name, title)
        return None
