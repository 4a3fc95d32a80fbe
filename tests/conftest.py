from pathlib import Path

import pytest

from cover_scout.config import PipelineConfig
from cover_scout.images import ImageWriter
from fakes import FakeSession


@pytest.fixture
def config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(image_root=tmp_path / "images", inter_attempt_delay=2.0)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def writer(config, session) -> ImageWriter:
    return ImageWriter(config, session=session)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return _sleep
