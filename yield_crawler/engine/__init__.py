"""Engine components: browser → fetch → extract → retry → cache."""

from .browser import BrowserSession
from .cache import ResultCache
from .errors import (
    CollectionUnavailable,
    CrawlerError,
    ErrorKind,
    ExtractionEmpty,
    LaunchFailure,
    NavigationError,
)
from .extractor import FieldExtractor
from .fetcher import PageFetcher, RenderedPage, RenderRequest
from .results import AggregateSnapshot, CacheEntry, ExtractionMethod, FieldValue, SourceResult
from .retry import RetryPolicy

__all__ = [
    "AggregateSnapshot",
    "BrowserSession",
    "CacheEntry",
    "CollectionUnavailable",
    "CrawlerError",
    "ErrorKind",
    "ExtractionEmpty",
    "ExtractionMethod",
    "FieldExtractor",
    "FieldValue",
    "LaunchFailure",
    "NavigationError",
    "PageFetcher",
    "RenderRequest",
    "RenderedPage",
    "ResultCache",
    "RetryPolicy",
    "SourceResult",
]
