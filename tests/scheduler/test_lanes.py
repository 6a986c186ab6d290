from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from yield_crawler.engine import (
    ErrorKind,
    FieldExtractor,
    LaunchFailure,
    NavigationError,
    RenderedPage,
    RetryPolicy,
    SourceResult,
)
from yield_crawler.engine.results import ExtractionMethod, FieldValue
from yield_crawler.scheduler import SourceScheduler

RATEX_TOKENS = ["xSOL", "hyUSD", "sHYUSD", "hylosol", "jitoSOL"]


class FakeSession:
    def __init__(self, launch_error: Exception | None = None) -> None:
        self.launch_error = launch_error
        self.shared_calls = 0
        self.isolated_calls = 0

    async def acquire_shared(self):
        self.shared_calls += 1
        if self.launch_error is not None:
            raise self.launch_error
        return "shared-browser"

    @asynccontextmanager
    async def isolated(self):
        self.isolated_calls += 1
        if self.launch_error is not None:
            raise self.launch_error
        yield "isolated-browser"


class ScriptedFetcher:
    """Return canned text (or raise) per source key, tracking concurrency."""

    def __init__(self, pages: dict[str, object], delay: float = 0.0) -> None:
        self.pages = pages
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.peak = 0

    async def render(self, browser, request) -> RenderedPage:
        self.calls.append((request.source.key, browser))
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        outcome = self.pages[request.source.key]
        if isinstance(outcome, Exception):
            raise outcome
        return RenderedPage(url=request.url, text=str(outcome))


def build_scheduler(sources, pages, session=None, delay=0.0, max_parallel=3):
    fetcher = ScriptedFetcher(pages, delay=delay)
    scheduler = SourceScheduler(
        sources,
        session=session or FakeSession(),
        fetcher=fetcher,
        extractor=FieldExtractor(),
        retry=RetryPolicy(retry_delay=0),
        max_parallel=max_parallel,
    )
    return scheduler, fetcher


@pytest.mark.asyncio
async def test_parallel_lane_isolates_failures(sample_source) -> None:
    sources = [sample_source(token_hint=token) for token in RATEX_TOKENS]
    pages: dict[str, object] = {
        source.key: f"Fixed APY {index + 1}.5%\nTotal Combined APY {index + 10}%"
        for index, source in enumerate(sources)
    }
    pages["ratex-hyusd"] = NavigationError("net::ERR_CONNECTION_RESET")
    pages["ratex-jitosol"] = NavigationError("net::ERR_TIMED_OUT")
    scheduler, fetcher = build_scheduler(sources, pages, delay=0.01)

    report = await scheduler.collect_report()
    fields = report.snapshot.fields

    assert sorted(report.failed_sources) == ["ratex-hyusd", "ratex-jitosol"]
    assert fields["ratex_xSOL"] == 10.0
    assert fields["ratex_PT_xSOL"] == 1.5
    assert fields["ratex_hylosol"] == 13.0
    assert fields["ratex_hyUSD"] is None
    assert fields["ratex_PT_jitoSOL"] is None
    assert report.snapshot.partial is True
    assert report.failed_outright is False
    assert len(fields) == 10
    assert fetcher.peak <= 3
    # Failed sources are retried up to the profile's attempt limit.
    assert sum(1 for key, _ in fetcher.calls if key == "ratex-hyusd") == 2


@pytest.mark.asyncio
async def test_sequential_lane_runs_in_configured_order(exponent_source) -> None:
    sources = [exponent_source(token_hint=token) for token in ["xSOL", "hyUSD", "sHYUSD"]]
    pages = {source.key: "Total APY 7.25%" for source in sources}
    session = FakeSession()
    scheduler, fetcher = build_scheduler(sources, pages, session=session, delay=0.005)

    snapshot = await scheduler.collect()

    assert [key for key, _ in fetcher.calls] == [source.key for source in sources]
    assert all(browser == "shared-browser" for _, browser in fetcher.calls)
    assert fetcher.peak == 1
    assert session.isolated_calls == 0
    assert snapshot.partial is False
    assert dict(snapshot.fields) == {
        "exponent_xSOL": 7.25,
        "exponent_hyUSD": 7.25,
        "exponent_sHYUSD": 7.25,
    }


@pytest.mark.asyncio
async def test_lanes_use_their_own_browser_kind(sample_source, exponent_source) -> None:
    simple = exponent_source()
    labeled = sample_source()
    pages = {simple.key: "Total APY 5%", labeled.key: "Fixed APY 6%"}
    session = FakeSession()
    scheduler, fetcher = build_scheduler([simple, labeled], pages, session=session)

    await scheduler.collect()

    assert dict(fetcher.calls) == {simple.key: "shared-browser", labeled.key: "isolated-browser"}
    assert session.shared_calls == 1
    assert session.isolated_calls == 1


def test_merge_prefers_first_non_null_in_configured_order(sample_source) -> None:
    first = sample_source(key="ratex-primary", field_map={"shared": "xSOL"})
    second = sample_source(key="ratex-backup", field_map={"shared": "xSOL", "extra": "PT-xSOL"})
    scheduler, _ = build_scheduler([first, second], {})

    def ok(percent):
        value = FieldValue(percent=percent, raw_context="", extraction_method=ExtractionMethod.EXPLICIT)
        return SourceResult.success({"xSOL": value, "PT-xSOL": value})

    stamp = datetime(2025, 1, 1, tzinfo=timezone.utc)
    merged = scheduler.merge({"ratex-primary": ok(1.0), "ratex-backup": ok(2.0)}, stamp)
    assert dict(merged.fields) == {"shared": 1.0, "extra": 2.0}
    assert merged.fetched_at == stamp

    merged = scheduler.merge(
        {"ratex-primary": SourceResult.failure(ErrorKind.TIMEOUT), "ratex-backup": ok(2.0)}, stamp
    )
    assert merged.fields["shared"] == 2.0


@pytest.mark.asyncio
async def test_blank_page_is_extraction_empty(exponent_source) -> None:
    source = exponent_source(profile={"max_attempts": 1, "pre_signal_delay_ms": 0})
    scheduler, _ = build_scheduler([source], {source.key: "   "})

    result = await scheduler.run_source(source)

    assert not result.ok
    assert result.failure_reason is ErrorKind.EXTRACTION_EMPTY


@pytest.mark.asyncio
async def test_page_without_figures_is_ok_with_null_fields(sample_source) -> None:
    source = sample_source()
    scheduler, _ = build_scheduler([source], {source.key: "Connect your wallet"})

    report = await scheduler.collect_report()

    assert report.failed_sources == []
    assert report.snapshot.fields == {"ratex_xSOL": None, "ratex_PT_xSOL": None}
    assert report.snapshot.partial is True


@pytest.mark.asyncio
async def test_launch_failures_mark_engine_unusable(sample_source, exponent_source) -> None:
    sources = [exponent_source(), sample_source()]
    session = FakeSession(launch_error=LaunchFailure("chromium missing"))
    scheduler, fetcher = build_scheduler(sources, {}, session=session)

    report = await scheduler.collect_report()

    assert report.failed_outright
    assert report.engine_unusable
    assert fetcher.calls == []
    assert all(value is None for value in report.snapshot.fields.values())
