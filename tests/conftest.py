"""Shared fixtures: sample configuration and in-memory Playwright doubles."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from yield_crawler.config import (
    ConfigLocator,
    ConfigRepository,
    GlobalConfig,
    LabelSet,
    SourceDescriptor,
    SourceType,
)
from yield_crawler.engine import AggregateSnapshot

RATEX_LABELS = {
    "markers": [
        ["Fixed APY", "pt"],
        ["Total Combined APY", "base"],
        ["Variable APY", "base"],
    ],
    "labels": {
        "Fixed APY": "pt",
        "Total Combined APY": "base",
        "Variable APY": "base",
    },
}


class FakePage:
    """Minimal stand-in for ``playwright.async_api.Page``."""

    def __init__(
        self,
        context: "FakeContext",
        text: str = "",
        html: str | None = None,
        goto_error: Exception | None = None,
        signal_error: Exception | None = None,
    ) -> None:
        self.context = context
        self.text = text
        self.html = html if html is not None else f"<html><body>{text}</body></html>"
        self.goto_error = goto_error
        self.signal_error = signal_error
        self.goto_calls: list[dict[str, Any]] = []
        self.evaluated: list[str] = []
        self.signals: list[dict[str, Any]] = []
        self.closed = False

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.goto_calls.append({"url": url, **kwargs})
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: float | None = None) -> None:
        self.signals.append({"arg": arg, "timeout": timeout})
        if self.signal_error is not None:
            raise self.signal_error

    async def evaluate(self, expression: str) -> Any:
        self.evaluated.append(expression)
        if "innerText" in expression:
            return self.text
        return 0

    async def content(self) -> str:
        return self.html

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, browser: "FakeBrowser", **options: Any) -> None:
        self.browser = browser
        self.options = options
        self.init_scripts: list[str] = []
        self.pages: list[FakePage] = []
        self.closed = False

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def new_page(self) -> FakePage:
        page = FakePage(self, **self.browser.page_options)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Browser double handing out pages configured by ``page_options``."""

    def __init__(self, **page_options: Any) -> None:
        self.page_options = page_options
        self.contexts: list[FakeContext] = []
        self.connected = True
        self.closed = False

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(self, **options)
        self.contexts.append(context)
        return context

    def is_connected(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.closed = True
        self.connected = False


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        sources_dir=tmp_path / "sources",
        retry_delay_seconds=0.0,
        max_parallel_browsers=3,
    )


@pytest.fixture
def sample_source() -> Callable[..., SourceDescriptor]:
    def _builder(**overrides: Any) -> SourceDescriptor:
        token = overrides.pop("token_hint", "xSOL")
        base: dict[str, Any] = {
            "key": f"ratex-{token.lower()}",
            "url": f"https://app.example.io/points?symbol={token}",
            "source_type": SourceType.ISOLATED_BROWSER_LABELED,
            "token_hint": token,
            "label_set": LabelSet.model_validate(RATEX_LABELS),
            "field_map": {f"ratex_{token}": token, f"ratex_PT_{token}": f"PT-{token}"},
        }
        base.update(overrides)
        return SourceDescriptor(**base)

    return _builder


@pytest.fixture
def exponent_source() -> Callable[..., SourceDescriptor]:
    def _builder(**overrides: Any) -> SourceDescriptor:
        token = overrides.pop("token_hint", "hyUSD")
        base: dict[str, Any] = {
            "key": f"exponent-{token.lower()}",
            "url": f"https://www.example.finance/liquidity/{token.lower()}",
            "source_type": SourceType.SHARED_BROWSER_SIMPLE,
            "token_hint": token,
            "label_set": LabelSet(labels={"Total APY": "base"}),
            "field_map": {f"exponent_{token}": token},
        }
        base.update(overrides)
        return SourceDescriptor(**base)

    return _builder


@pytest.fixture
def make_snapshot() -> Callable[..., AggregateSnapshot]:
    def _builder(values: dict[str, float | None] | None = None, **kwargs: Any) -> AggregateSnapshot:
        values = values if values is not None else {"ratex_xSOL": 11.2, "ratex_PT_xSOL": 9.8}
        fetched_at = kwargs.get("fetched_at", datetime(2025, 11, 1, 12, 0, tzinfo=timezone.utc))
        return AggregateSnapshot.build(list(values), values, fetched_at)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("YIELD_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def fake_browser() -> Callable[..., FakeBrowser]:
    """Factory for browser doubles; keyword arguments configure every page."""

    return FakeBrowser
