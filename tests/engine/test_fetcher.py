from __future__ import annotations

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from yield_crawler.engine import NavigationError, PageFetcher, RenderRequest
from yield_crawler.engine.antibot.strategies import DEFAULT_USER_AGENT, DISMISS_DIALOGS_SCRIPT, STEALTH_SCRIPT
from yield_crawler.infra import UserAgentPool

FAST = {"settle_ms": 0, "pre_signal_delay_ms": 0}


@pytest.mark.asyncio
async def test_render_applies_directive_and_cleans_up(sample_global_config, sample_source, fake_browser) -> None:
    source = sample_source(profile=FAST)
    browser = fake_browser(text="Fixed APY 12.5%")
    fetcher = PageFetcher(sample_global_config)

    rendered = await fetcher.render(browser, RenderRequest.for_source(source))

    assert rendered.text == "Fixed APY 12.5%"
    assert rendered.signal_found is True
    assert rendered.html and "Fixed APY" in rendered.html

    context = browser.contexts[0]
    assert context.options["user_agent"] == DEFAULT_USER_AGENT
    assert context.options["viewport"] == {"width": 1366, "height": 768}
    assert context.options["locale"] == "en-US"
    assert context.options["extra_http_headers"]["Accept-Language"].startswith("en-US")
    assert STEALTH_SCRIPT in context.init_scripts

    page = context.pages[0]
    assert page.goto_calls == [
        {"url": source.url, "wait_until": "networkidle", "timeout": 45000}
    ]
    assert page.signals == [{"arg": "Fixed APY", "timeout": 30000}]
    assert page.closed and context.closed


@pytest.mark.asyncio
async def test_missing_content_signal_is_not_fatal(sample_global_config, sample_source, fake_browser) -> None:
    source = sample_source(profile=FAST)
    browser = fake_browser(text="Loading…", signal_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"))
    rendered = await PageFetcher(sample_global_config).render(browser, RenderRequest.for_source(source))

    assert rendered.signal_found is False
    assert rendered.text == "Loading…"


@pytest.mark.asyncio
async def test_navigation_failure_raises_and_closes_page(sample_global_config, sample_source, fake_browser) -> None:
    source = sample_source(profile=FAST)
    browser = fake_browser(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

    with pytest.raises(NavigationError):
        await PageFetcher(sample_global_config).render(browser, RenderRequest.for_source(source))

    context = browser.contexts[0]
    assert context.pages[0].closed
    assert context.closed


@pytest.mark.asyncio
async def test_simple_sources_dismiss_dialogs(sample_global_config, exponent_source, fake_browser) -> None:
    source = exponent_source(profile=FAST)
    browser = fake_browser(text="Total APY 8%")
    await PageFetcher(sample_global_config).render(browser, RenderRequest.for_source(source))

    page = browser.contexts[0].pages[0]
    assert DISMISS_DIALOGS_SCRIPT in page.evaluated
    assert "extra_http_headers" not in browser.contexts[0].options


@pytest.mark.asyncio
async def test_user_agent_pool_overrides_default(sample_global_config, sample_source, fake_browser) -> None:
    source = sample_source(profile=FAST)
    browser = fake_browser(text="Fixed APY 1%")
    fetcher = PageFetcher(sample_global_config, ua_pool=UserAgentPool(["UA-Test/1.0"]))
    await fetcher.render(browser, RenderRequest.for_source(source))

    assert browser.contexts[0].options["user_agent"] == "UA-Test/1.0"
