"""Playwright browser lifecycle: one shared instance plus on-demand isolated ones."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog

from ..config import BrowserOptions
from .errors import LaunchFailure

# Sandboxing is unavailable in most containers; the rest hides automation hints.
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
]


class BrowserSession:
    """Own the rendering engine process(es).

    At most one launch of the shared browser is in flight at any time: callers
    arriving during a launch wait on the same future instead of starting a
    second process.
    """

    def __init__(
        self,
        options: BrowserOptions | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.options = options or BrowserOptions()
        self.logger = logger or structlog.get_logger("yield_crawler.browser")
        self._playwright: Any = None
        self._shared: Any = None
        self._launching: asyncio.Future | None = None
        self._closed = False

    async def init(self) -> None:
        """Start the Playwright driver ahead of the first launch."""

        await self._ensure_driver()

    async def acquire_shared(self) -> Any:
        if self._shared is not None and self._is_connected(self._shared):
            return self._shared
        if self._launching is not None:
            return await asyncio.shield(self._launching)

        loop = asyncio.get_running_loop()
        launching = loop.create_future()
        self._launching = launching
        self._shared = None
        try:
            browser = await self._launch()
        except LaunchFailure as exc:
            launching.set_exception(exc)
            # Waiters (if any) receive the same failure; mark it retrieved for the rest.
            launching.exception()
            raise
        except BaseException:
            # Launcher was cancelled; waiters must not hang on the future.
            launching.set_exception(LaunchFailure("Browser launch was cancelled"))
            launching.exception()
            raise
        else:
            self._shared = browser
            self._closed = False
            launching.set_result(browser)
            self.logger.info("browser_launched", shared=True)
            return browser
        finally:
            self._launching = None

    async def acquire_isolated(self) -> Any:
        """Launch an independent browser; the caller must close it."""

        browser = await self._launch()
        self.logger.info("browser_launched", shared=False)
        return browser

    @asynccontextmanager
    async def isolated(self) -> AsyncIterator[Any]:
        browser = await self.acquire_isolated()
        try:
            yield browser
        finally:
            await self._close_quietly(browser)

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        shared, self._shared = self._shared, None
        if shared is not None:
            await self._close_quietly(shared)
        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("playwright_stop_failed", error=str(exc))
        self.logger.info("browser_session_closed")

    # ------------------------------------------------------------------
    async def _ensure_driver(self) -> Any:
        if self._playwright is None:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            self._closed = False
        return self._playwright

    async def _launch(self) -> Any:
        try:
            playwright = await self._ensure_driver()
            launch_kwargs: dict[str, Any] = {
                "headless": self.options.headless,
                "args": [*LAUNCH_ARGS, *self.options.extra_args],
            }
            if self.options.executable_path:
                launch_kwargs["executable_path"] = self.options.executable_path
            return await playwright.chromium.launch(**launch_kwargs)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("browser_launch_failed", error=str(exc))
            raise LaunchFailure(f"Failed to launch browser: {exc}") from exc

    async def _close_quietly(self, browser: Any) -> None:
        try:
            await browser.close()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("browser_close_failed", error=str(exc))

    @staticmethod
    def _is_connected(browser: Any) -> bool:
        checker = getattr(browser, "is_connected", None)
        return bool(checker()) if callable(checker) else True


__all__ = ["BrowserSession", "LAUNCH_ARGS"]
