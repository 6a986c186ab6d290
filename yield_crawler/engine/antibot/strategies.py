"""Concrete anti-bot strategies used by the chain."""

from __future__ import annotations

from typing import Any

import structlog

from ...config import GlobalConfig, RenderProfile, SourceDescriptor
from ...infra import UserAgentPool
from .chain import AntiBotChain, AntiBotContext, PageDirective, Strategy

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""

DISMISS_DIALOGS_SCRIPT = """
() => {
  const selectors = [
    'button[aria-label*="close" i]',
    'button[aria-label*="dismiss" i]',
    '[role="dialog"] button',
    '.modal button',
  ];
  let clicked = 0;
  document.querySelectorAll(selectors.join(',')).forEach((button) => {
    try { button.click(); clicked += 1; } catch (e) {}
  });
  return clicked;
}
"""


class StealthStrategy(Strategy):
    """Spoof the properties automation detectors look at."""

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        directive.init_scripts.append(STEALTH_SCRIPT)

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        return


class UserAgentStrategy(Strategy):
    """Assign a realistic user agent, rotating from the pool when configured."""

    def __init__(self, pool: UserAgentPool | None) -> None:
        self.pool = pool

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        ua = self.pool.get() if self.pool else None
        directive.user_agent = ua or DEFAULT_USER_AGENT

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        return


class HeaderStrategy(Strategy):
    """Attach per-source request headers (language/accept)."""

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        directive.headers.update(context.profile.extra_headers)

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        return


class ViewportStrategy(Strategy):
    """Use a desktop-sized viewport and locale instead of headless defaults."""

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        options = context.global_config.browser
        directive.viewport = options.viewport_size
        directive.locale = options.locale

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        return


class DialogDismissStrategy(Strategy):
    """Click common close controls on interstitial dialogs after load."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("yield_crawler.antibot")

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        return

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        if not context.profile.dismiss_dialogs:
            return
        try:
            clicked = await page.evaluate(DISMISS_DIALOGS_SCRIPT)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("dialog_dismiss_failed", source=context.source.key, error=str(exc))
            return
        if clicked:
            self.logger.debug("dialogs_dismissed", source=context.source.key, clicked=clicked)


def build_chain(
    source: SourceDescriptor,
    global_config: GlobalConfig,
    ua_pool: UserAgentPool | None,
    profile: RenderProfile | None = None,
) -> tuple[AntiBotContext, AntiBotChain]:
    """Utility to build a ready-to-use chain from config."""

    context = AntiBotContext(
        source=source,
        global_config=global_config,
        profile=profile or source.render_profile(),
    )
    strategies: list[Strategy] = [
        StealthStrategy(),
        UserAgentStrategy(ua_pool),
        HeaderStrategy(),
        ViewportStrategy(),
        DialogDismissStrategy(),
    ]
    return context, AntiBotChain(strategies)


__all__ = [
    "DEFAULT_USER_AGENT",
    "DialogDismissStrategy",
    "HeaderStrategy",
    "StealthStrategy",
    "UserAgentStrategy",
    "ViewportStrategy",
    "build_chain",
]
