"""Exception hierarchy and failure taxonomy for the extraction pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Why a source produced no result in a collection pass."""

    TIMEOUT = "timeout"
    NAVIGATION = "navigation"
    EXTRACTION_EMPTY = "extraction_empty"
    LAUNCH_FAILURE = "launch_failure"


class CrawlerError(Exception):
    """Base class for pipeline errors; ``kind`` drives retry classification."""

    kind: ErrorKind = ErrorKind.NAVIGATION


class LaunchFailure(CrawlerError):
    """The rendering engine could not be started."""

    kind = ErrorKind.LAUNCH_FAILURE


class NavigationError(CrawlerError):
    """The page failed to load within its navigation budget."""

    kind = ErrorKind.NAVIGATION


class ExtractionEmpty(CrawlerError):
    """The page loaded but rendered no text at all."""

    kind = ErrorKind.EXTRACTION_EMPTY


class CollectionUnavailable(CrawlerError):
    """No source could be collected and no cached snapshot exists."""

    kind = ErrorKind.LAUNCH_FAILURE


__all__ = [
    "CollectionUnavailable",
    "CrawlerError",
    "ErrorKind",
    "ExtractionEmpty",
    "LaunchFailure",
    "NavigationError",
]
