"""Strategy chain orchestrating anti-bot adaptations of a browser page."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from ...config import GlobalConfig, RenderProfile, SourceDescriptor


@dataclass
class PageDirective:
    """Mutable set of options applied when a page context is created."""

    user_agent: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    init_scripts: list[str] = field(default_factory=list)
    viewport: tuple[int, int] | None = None
    locale: str | None = None


@dataclass
class AntiBotContext:
    """Shared state for all strategies in the chain."""

    source: SourceDescriptor
    global_config: GlobalConfig
    profile: RenderProfile


class Strategy(Protocol):
    """Strategy behaviour expected by the chain."""

    def before_page(self, context: AntiBotContext, directive: PageDirective) -> None:
        """Mutate directive ahead of creating the page context."""

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        """Act on the loaded page (e.g. close interstitials)."""


class AntiBotChain:
    """Compose multiple strategies and expose a simple API for the fetcher."""

    def __init__(self, strategies: Optional[List[Strategy]] = None) -> None:
        self.strategies = strategies or []

    # ------------------------------------------------------------------
    def prepare(self, context: AntiBotContext) -> PageDirective:
        directive = PageDirective()
        for strategy in self.strategies:
            strategy.before_page(context, directive)
        return directive

    async def after_navigation(self, context: AntiBotContext, page: Any) -> None:
        for strategy in self.strategies:
            await strategy.after_navigation(context, page)


__all__ = ["AntiBotChain", "AntiBotContext", "PageDirective", "Strategy"]
