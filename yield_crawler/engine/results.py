"""Value objects passed between pipeline layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .errors import ErrorKind


class ExtractionMethod(str, Enum):
    EXPLICIT = "explicit"
    SAME_ELEMENT = "same-element"
    SIBLING = "sibling"
    FALLBACK_SCAN = "fallback-scan"


@dataclass(frozen=True, slots=True)
class FieldValue:
    """One extracted figure together with the text it was read from."""

    percent: float | None
    raw_context: str
    extraction_method: ExtractionMethod


@dataclass(frozen=True, slots=True)
class SourceResult:
    """Outcome of one source in one collection pass."""

    ok: bool
    fields: Mapping[str, FieldValue | None] = field(default_factory=dict)
    failure_reason: ErrorKind | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def success(cls, fields: Mapping[str, FieldValue | None]) -> "SourceResult":
        return cls(ok=True, fields=fields)

    @classmethod
    def failure(cls, reason: ErrorKind) -> "SourceResult":
        return cls(ok=False, fields={}, failure_reason=reason)

    def percent(self, key: str) -> float | None:
        value = self.fields.get(key)
        return value.percent if value is not None else None


@dataclass(frozen=True, slots=True)
class AggregateSnapshot:
    """Canonical field map produced by one full collection pass."""

    fields: Mapping[str, float | None]
    fetched_at: datetime
    partial: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def build(
        cls,
        canonical: Iterable[str],
        values: Mapping[str, float | None],
        fetched_at: datetime | None = None,
    ) -> "AggregateSnapshot":
        """Project ``values`` onto the canonical key set and derive ``partial``."""

        fields = {name: values.get(name) for name in canonical}
        return cls(
            fields=fields,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            partial=any(value is None for value in fields.values()),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.fields)
        payload["fetched_at"] = self.fetched_at.isoformat()
        payload["partial"] = self.partial
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AggregateSnapshot":
        data = dict(payload)
        fetched_at = datetime.fromisoformat(str(data.pop("fetched_at")))
        partial = bool(data.pop("partial"))
        fields = {key: (float(value) if value is not None else None) for key, value in data.items()}
        return cls(fields=fields, fetched_at=fetched_at, partial=partial)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """The single cache slot: a snapshot and the epoch time (seconds) it was stored."""

    timestamp: float
    snapshot: AggregateSnapshot


__all__ = [
    "AggregateSnapshot",
    "CacheEntry",
    "ExtractionMethod",
    "FieldValue",
    "SourceResult",
]
