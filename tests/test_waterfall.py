from pathlib import Path

import pytest

from cover_scout.adapters import SourceAdapter
from cover_scout.catalog import clean_title
from cover_scout.config import ExtractionRule, PipelineConfig, SourceConfig
from cover_scout.models import ImageArtifact, TitleState
from cover_scout.waterfall import DelayPolicy, Waterfall, build_adapters, run_pipeline
from fakes import FakePage, FakeRenderer, FakeResponse, jpeg_bytes


class RecordingAdapter:
    def __init__(self, name, succeed=False):
        self.name = name
        self.succeed = succeed
        self.calls = []

    async def attempt(self, title):
        self.calls.append(title)
        if not self.succeed:
            return None
        return ImageArtifact(
            source=self.name,
            title=title,
            path=Path(self.name) / f"{title}.jpg",
            size=1000,
            origin="url",
        )


def make_source(name):
    return SourceConfig(
        name=name,
        search_url=f"https://{name}.example/search?q={{query}}",
        extraction=ExtractionRule(title_selector=".title", image_selector="img.cover"),
        settle_delay=0,
    )


async def test_first_success_short_circuits(fake_sleep, sleeps):
    first = RecordingAdapter("first")
    second = RecordingAdapter("second", succeed=True)
    third = RecordingAdapter("third", succeed=True)
    waterfall = Waterfall([first, second, third], DelayPolicy(2.0, sleep=fake_sleep))

    outcome = await waterfall.process_title("Sample Book")

    assert outcome.state is TitleState.DONE
    assert outcome.source == "second"
    assert [attempt.source for attempt in outcome.attempts] == ["first", "second"]
    assert third.calls == []
    assert sleeps == [2.0]


async def test_all_sources_failing_is_a_normal_outcome(fake_sleep, sleeps):
    adapters = [RecordingAdapter(name) for name in ("first", "second", "third")]
    waterfall = Waterfall(adapters, DelayPolicy(2.0, sleep=fake_sleep))

    outcome = await waterfall.process_title("Sample Book")

    assert outcome.state is TitleState.DONE
    assert outcome.artifact is None
    assert not outcome.succeeded
    assert all(adapter.calls == ["Sample Book"] for adapter in adapters)
    assert sleeps == [2.0, 2.0, 2.0]


async def test_titles_are_processed_in_order(fake_sleep):
    adapter = RecordingAdapter("only", succeed=True)
    waterfall = Waterfall([adapter], DelayPolicy(0, sleep=fake_sleep))

    outcomes = await waterfall.run(["A", "B", "C"])

    assert adapter.calls == ["A", "B", "C"]
    assert [outcome.title for outcome in outcomes] == ["A", "B", "C"]


async def test_zero_delay_never_sleeps(fake_sleep, sleeps):
    waterfall = Waterfall([RecordingAdapter("a"), RecordingAdapter("b")], DelayPolicy(0, sleep=fake_sleep))

    await waterfall.process_title("Sample Book")

    assert sleeps == []


async def test_fallback_to_second_source_writes_one_artifact(writer, session, config, fake_sleep):
    title = clean_title("28. Sample Book")
    assert title == "Sample Book"

    renderers = {
        "first": FakeRenderer(FakePage()),
        "second": FakeRenderer(
            FakePage(
                texts={".title": "Sample Book"},
                attributes={("img.cover", "src"): "https://x/img/a.jpg"},
            )
        ),
        "third": FakeRenderer(
            FakePage(
                texts={".title": "Sample Book"},
                attributes={("img.cover", "src"): "https://x/img/b.jpg"},
            )
        ),
    }
    session.responses["https://x/img/a.jpg"] = FakeResponse(chunks=[jpeg_bytes(1200)])
    session.responses["https://x/img/b.jpg"] = FakeResponse(chunks=[jpeg_bytes(1200)])
    adapters = [
        SourceAdapter(make_source(name), renderers[name], writer)
        for name in ("first", "second", "third")
    ]
    waterfall = Waterfall(adapters, DelayPolicy(2.0, sleep=fake_sleep))

    outcome = await waterfall.process_title(title)

    expected = config.image_root / "second" / "Sample_Book.jpg"
    assert outcome.artifact is not None
    assert outcome.artifact.path == expected
    assert sorted(p for p in config.image_root.rglob("*") if p.is_file()) == [expected]
    assert renderers["third"].opened == []
    assert [call["url"] for call in session.calls] == ["https://x/img/a.jpg"]
    assert all(renderer.closed == len(renderer.opened) for renderer in renderers.values())


async def test_all_real_adapters_failing_writes_nothing(writer, session, config, fake_sleep):
    adapters = [
        SourceAdapter(make_source(name), FakeRenderer(FakePage()), writer)
        for name in ("first", "second", "third")
    ]
    waterfall = Waterfall(adapters, DelayPolicy(2.0, sleep=fake_sleep))

    outcome = await waterfall.process_title("Sample Book")

    assert outcome.state is TitleState.DONE
    assert outcome.artifact is None
    assert session.calls == []
    assert not config.image_root.exists() or not any(
        p.is_file() for p in config.image_root.rglob("*")
    )


def test_build_adapters_binds_renderer_per_source(writer):
    static_source = SourceConfig(
        name="plain",
        search_url="https://plain/?q={query}",
        extraction=ExtractionRule(title_selector="h1", image_selector="img"),
        renderer="static",
    )
    config = PipelineConfig(image_root=writer.config.image_root, sources=[make_source("js"), static_source])
    browser, static = FakeRenderer(), FakeRenderer()

    adapters = build_adapters(config, {"browser": browser, "static": static}, writer)

    assert [adapter.name for adapter in adapters] == ["js", "plain"]
    assert adapters[0].renderer is browser
    assert adapters[1].renderer is static


async def test_run_pipeline_with_static_sources_only(tmp_path, monkeypatch):
    source = SourceConfig(
        name="plain",
        search_url="https://plain/?q={query}",
        extraction=ExtractionRule(title_selector="h1", image_selector="img"),
        renderer="static",
    )
    config = PipelineConfig(image_root=tmp_path, sources=[source], inter_attempt_delay=0)

    async def fake_attempt(self, title):
        return None

    monkeypatch.setattr(SourceAdapter, "attempt", fake_attempt)

    outcomes = await run_pipeline(["A", "B"], config)

    assert [outcome.state for outcome in outcomes] == [TitleState.DONE, TitleState.DONE]
    assert [len(outcome.attempts) for outcome in outcomes] == [1, 1]


@pytest.mark.parametrize("delay", [0.0, 1.5])
async def test_delay_policy_pause(delay, fake_sleep, sleeps):
    await DelayPolicy(delay, sleep=fake_sleep).pause()
    assert sleeps == ([delay] if delay else [])
