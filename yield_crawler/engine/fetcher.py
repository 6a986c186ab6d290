"""Headless page rendering with anti-bot strategy integration."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import structlog
from playwright.async_api import Error as PlaywrightError

from ..config import GlobalConfig, RenderProfile, SourceDescriptor
from ..infra import UserAgentPool
from .antibot import strategies
from .antibot.chain import AntiBotChain, AntiBotContext
from .errors import NavigationError

_SIGNAL_PREDICATE = "marker => !!document.body && document.body.innerText.includes(marker)"
_BODY_TEXT = "() => document.body ? document.body.innerText : ''"


@dataclass(slots=True)
class RenderRequest:
    """Everything needed to render one source page."""

    source: SourceDescriptor
    profile: RenderProfile

    @property
    def url(self) -> str:
        return self.source.url

    @classmethod
    def for_source(cls, source: SourceDescriptor) -> "RenderRequest":
        return cls(source=source, profile=source.render_profile())


@dataclass(slots=True)
class RenderedPage:
    """Visible text (and DOM) of a page after rendering."""

    url: str
    text: str
    html: str | None = field(default=None, repr=False)
    signal_found: bool = True


class PageFetcher:
    """Open, navigate and read pages on a Playwright browser."""

    def __init__(
        self,
        global_config: GlobalConfig,
        ua_pool: UserAgentPool | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.global_config = global_config
        self.ua_pool = ua_pool
        self.logger = logger or structlog.get_logger("yield_crawler.fetcher")

    async def render(self, browser: Any, request: RenderRequest) -> RenderedPage:
        """Full navigate → signal → settle → read cycle with guaranteed cleanup."""

        context, chain = self._build_chain(request)
        async with self.page(browser, request, context, chain) as page:
            await self.navigate(page, request, context, chain)
            profile = request.profile
            if profile.pre_signal_delay_ms:
                await self.settle(profile.pre_signal_delay_ms)
            signal_found = True
            if profile.content_signal:
                signal_found = await self.await_content_signal(
                    page, profile.content_signal, profile.signal_timeout_ms
                )
            if profile.settle_ms:
                await self.settle(profile.settle_ms)
            text = await self.read_text(page)
            html = await self.read_html(page)
            return RenderedPage(url=request.url, text=text, html=html, signal_found=signal_found)

    @asynccontextmanager
    async def page(
        self,
        browser: Any,
        request: RenderRequest,
        context: AntiBotContext | None = None,
        chain: AntiBotChain | None = None,
    ) -> AsyncIterator[Any]:
        page = await self.open(browser, request, context, chain)
        try:
            yield page
        finally:
            await self.close(page)

    async def open(
        self,
        browser: Any,
        request: RenderRequest,
        context: AntiBotContext | None = None,
        chain: AntiBotChain | None = None,
    ) -> Any:
        if context is None or chain is None:
            context, chain = self._build_chain(request)
        directive = chain.prepare(context)
        context_kwargs: dict[str, Any] = {"user_agent": directive.user_agent}
        if directive.viewport:
            context_kwargs["viewport"] = {
                "width": directive.viewport[0],
                "height": directive.viewport[1],
            }
        if directive.locale:
            context_kwargs["locale"] = directive.locale
        if directive.headers:
            context_kwargs["extra_http_headers"] = dict(directive.headers)
        browser_context = await browser.new_context(**context_kwargs)
        try:
            for script in directive.init_scripts:
                await browser_context.add_init_script(script)
            return await browser_context.new_page()
        except Exception:
            await self._close_context(browser_context)
            raise

    async def navigate(
        self,
        page: Any,
        request: RenderRequest,
        context: AntiBotContext | None = None,
        chain: AntiBotChain | None = None,
    ) -> None:
        profile = request.profile
        try:
            await page.goto(
                request.url,
                wait_until=profile.wait_until,
                timeout=profile.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {request.url} failed: {exc}") from exc
        if context is None or chain is None:
            context, chain = self._build_chain(request)
        await chain.after_navigation(context, page)

    async def await_content_signal(self, page: Any, signal: str, wait_timeout_ms: int) -> bool:
        """Wait for ``signal`` in the body text; a miss is logged, never raised."""

        try:
            await page.wait_for_function(_SIGNAL_PREDICATE, arg=signal, timeout=wait_timeout_ms)
            return True
        except PlaywrightError as exc:
            self.logger.warning(
                "content_signal_missed", signal=signal, timeout_ms=wait_timeout_ms, error=str(exc)
            )
            return False

    async def settle(self, duration_ms: int) -> None:
        await asyncio.sleep(max(0, duration_ms) / 1000)

    async def read_text(self, page: Any) -> str:
        text = await page.evaluate(_BODY_TEXT)
        return str(text or "")

    async def read_html(self, page: Any) -> str | None:
        try:
            return await page.content()
        except PlaywrightError as exc:
            self.logger.debug("page_content_failed", error=str(exc))
            return None

    async def close(self, page: Any) -> None:
        browser_context = getattr(page, "context", None)
        try:
            await page.close()
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("page_close_failed", error=str(exc))
        if browser_context is not None:
            await self._close_context(browser_context)

    # ------------------------------------------------------------------
    def _build_chain(self, request: RenderRequest) -> tuple[AntiBotContext, AntiBotChain]:
        return strategies.build_chain(
            request.source, self.global_config, self.ua_pool, profile=request.profile
        )

    async def _close_context(self, browser_context: Any) -> None:
        try:
            await browser_context.close()
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("context_close_failed", error=str(exc))


__all__ = ["PageFetcher", "RenderRequest", "RenderedPage"]
