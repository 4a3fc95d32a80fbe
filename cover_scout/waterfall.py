"""High-level orchestration of the source waterfall for each title."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from playwright.async_api import async_playwright

from .adapters import SourceAdapter
from .config import DEFAULT_INTER_ATTEMPT_DELAY, PipelineConfig
from .images import ImageWriter
from .models import AttemptRecord, ImageArtifact, TitleOutcome, TitleState
from .render import PlaywrightRenderer, Renderer, StaticRenderer

logger = logging.getLogger("cover_scout")

Sleeper = Callable[[float], Awaitable[None]]


class Adapter(Protocol):
    name: str

    async def attempt(self, title: str) -> Optional[ImageArtifact]: ...


@dataclass
class DelayPolicy:
    """Fixed pause taken after every unsuccessful source attempt."""

    inter_attempt: float = DEFAULT_INTER_ATTEMPT_DELAY
    sleep: Sleeper = asyncio.sleep

    async def pause(self) -> None:
        if self.inter_attempt > 0:
            await self.sleep(self.inter_attempt)


class Waterfall:
    """Try each source in priority order until one yields a stored image."""

    def __init__(
        self,
        adapters: Sequence[Adapter],
        delay: Optional[DelayPolicy] = None,
    ) -> None:
        self.adapters = list(adapters)
        self.delay = delay or DelayPolicy()

    async def process_title(self, title: str) -> TitleOutcome:
        outcome = TitleOutcome(title=title)
        logger.info("========== Processing book: %s ==========", title)
        for adapter in self.adapters:
            outcome.state = TitleState.TRYING
            logger.debug("Trying %s for %s", adapter.name, title)
            started = time.perf_counter()
            artifact = await adapter.attempt(title)
            outcome.attempts.append(
                AttemptRecord(
                    source=adapter.name,
                    found=artifact is not None,
                    seconds=time.perf_counter() - started,
                )
            )
            if artifact is not None:
                outcome.artifact = artifact
                logger.info(
                    "Image found and saved from %s. Skipping other sources.", adapter.name
                )
                break
            await self.delay.pause()
        else:
            logger.info("No cover found for %s on any source", title)
        outcome.state = TitleState.DONE
        logger.info("========== Finished processing book: %s ==========", title)
        return outcome

    async def run(self, titles: Sequence[str]) -> List[TitleOutcome]:
        """Resolve titles one at a time, in order."""
        outcomes: List[TitleOutcome] = []
        for title in titles:
            outcomes.append(await self.process_title(title))
        return outcomes


def build_adapters(
    config: PipelineConfig,
    renderers: Dict[str, Renderer],
    writer: ImageWriter,
) -> List[SourceAdapter]:
    """Bind every configured source to the renderer it asks for."""
    return [
        SourceAdapter(source, renderers[source.renderer], writer, config)
        for source in config.sources
    ]


async def run_pipeline(
    titles: Sequence[str],
    config: PipelineConfig,
    writer: Optional[ImageWriter] = None,
) -> List[TitleOutcome]:
    """Run the waterfall over ``titles`` with live renderers."""
    writer = writer or ImageWriter(config)
    delay = DelayPolicy(inter_attempt=config.inter_attempt_delay)
    renderers: Dict[str, Renderer] = {"static": StaticRenderer(writer.session)}

    if not any(source.renderer == "browser" for source in config.sources):
        return await Waterfall(build_adapters(config, renderers, writer), delay).run(titles)

    async with async_playwright() as playwright:
        renderers["browser"] = PlaywrightRenderer(playwright, headless=config.headless)
        waterfall = Waterfall(build_adapters(config, renderers, writer), delay)
        return await waterfall.run(titles)
