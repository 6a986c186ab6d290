"""Anti-bot strategy chain applied to every rendered page."""

from .chain import AntiBotChain, AntiBotContext, PageDirective, Strategy
from .strategies import build_chain

__all__ = ["AntiBotChain", "AntiBotContext", "PageDirective", "Strategy", "build_chain"]
