"""Map rendered page text onto canonical yield fields.

Extraction runs an ordered list of strategies, each returning a match or
``None`` and never raising:

1. explicit markers (fixed/combined-rate phrases), same segment only;
2. the label dictionary, same segment first and the sibling region second;
3. a global scan for ``<number>%`` next to an APY keyword, used only when
   nothing matched so far.

Segments are bounded-length element texts from the rendered DOM (via
selectolax) followed by the individual lines of the visible text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from selectolax.parser import HTMLParser, Node

from ..config import FieldRole, SourceDescriptor
from .results import ExtractionMethod, FieldValue

_PERCENT_RE = re.compile(r"(?<![\d.,])(-?\d{1,3}(?:,\d{3})+(?:\.\d+)?|-?\d+(?:\.\d+)?)\s*%")
_APY_KEYWORD = "apy"
_SKIPPED_TAGS = ["script", "style", "noscript", "template", "svg"]
DEFAULT_MAX_SEGMENT_LENGTH = 160
FALLBACK_WINDOW = 80


def _normalise(text: str) -> str:
    return " ".join(text.split())


def parse_percent(text: str, context: str | None = None) -> tuple[float, str] | None:
    """Return the first acceptable percentage in ``text`` and its literal form.

    Thousands separators are stripped; malformed numbers never match. A literal
    100% is rejected unless ``context`` (defaults to ``text``) mentions APY.
    """

    haystack = (context if context is not None else text).lower()
    for match in _PERCENT_RE.finditer(text):
        try:
            value = float(match.group(1).replace(",", ""))
        except ValueError:
            continue
        if value == 100.0 and _APY_KEYWORD not in haystack:
            continue
        return value, match.group(0)
    return None


@dataclass(frozen=True, slots=True)
class TextSegment:
    text: str
    sibling: str = ""


@dataclass(slots=True)
class ExtractionContext:
    source: SourceDescriptor
    text: str
    segments: list[TextSegment]


class SameSegmentStrategy:
    """Percentage following the phrase inside the same segment."""

    method = ExtractionMethod.SAME_ELEMENT

    def find(self, context: ExtractionContext, phrase: str) -> FieldValue | None:
        pattern = re.compile(re.escape(phrase), re.IGNORECASE)
        for segment in context.segments:
            match = pattern.search(segment.text)
            if match is None:
                continue
            found = parse_percent(segment.text[match.end():], context=segment.text)
            if found is not None:
                return FieldValue(percent=found[0], raw_context=segment.text, extraction_method=self.method)
        return None


class ExplicitMarkerStrategy(SameSegmentStrategy):
    """Fixed/combined-rate marker phrases; same-segment lookup tagged as explicit."""

    method = ExtractionMethod.EXPLICIT


class SiblingStrategy:
    """Percentage in the region next to the segment holding the phrase."""

    method = ExtractionMethod.SIBLING

    def find(self, context: ExtractionContext, phrase: str) -> FieldValue | None:
        needle = phrase.lower()
        for segment in context.segments:
            if not segment.sibling or needle not in segment.text.lower():
                continue
            combined = f"{segment.text} {segment.sibling}"
            found = parse_percent(segment.sibling, context=combined)
            if found is not None:
                return FieldValue(percent=found[0], raw_context=combined, extraction_method=self.method)
        return None


class GlobalScanStrategy:
    """Last resort: any percentage shortly after an APY keyword, nearest label wins."""

    method = ExtractionMethod.FALLBACK_SCAN

    def __init__(self, window: int = FALLBACK_WINDOW) -> None:
        self.window = window

    def scan(self, context: ExtractionContext) -> dict[str, FieldValue]:
        source = context.source
        phrases = _phrases(source)
        flat = _normalise(context.text)
        resolved: dict[str, FieldValue] = {}
        for match in _PERCENT_RE.finditer(flat):
            window = flat[max(0, match.start() - self.window):match.start()]
            lowered = window.lower()
            if _APY_KEYWORD not in lowered:
                continue
            nearest = _nearest_phrase(lowered, phrases)
            if nearest is None:
                continue
            key = source.extractor_key(nearest[1])
            if key in resolved:
                continue
            found = parse_percent(match.group(0), context=window)
            if found is None:
                continue
            resolved[key] = FieldValue(
                percent=found[0],
                raw_context=f"{window}{match.group(0)}".strip(),
                extraction_method=self.method,
            )
        return resolved


def _phrases(source: SourceDescriptor) -> list[tuple[str, FieldRole]]:
    seen: dict[str, FieldRole] = {}
    for phrase, role in [*source.label_set.markers, *source.label_set.labels.items()]:
        seen.setdefault(phrase, role)
    return list(seen.items())


def _nearest_phrase(
    lowered_window: str, phrases: Iterable[tuple[str, FieldRole]]
) -> tuple[str, FieldRole] | None:
    best: tuple[int, int, str, FieldRole] | None = None
    for phrase, role in phrases:
        position = lowered_window.rfind(phrase.lower())
        if position < 0:
            continue
        rank = (position + len(phrase), len(phrase))
        if best is None or rank > best[:2]:
            best = (*rank, phrase, role)
    return (best[2], best[3]) if best else None


class FieldExtractor:
    """Turn rendered text into canonical numeric fields for one source."""

    def __init__(self, max_segment_length: int = DEFAULT_MAX_SEGMENT_LENGTH) -> None:
        self.max_segment_length = max_segment_length
        self.explicit = ExplicitMarkerStrategy()
        self.label_strategies = (SameSegmentStrategy(), SiblingStrategy())
        self.global_scan = GlobalScanStrategy()

    def extract(
        self, text: str, source: SourceDescriptor, html: str | None = None
    ) -> dict[str, FieldValue | None]:
        """Return ``{extractor_key: FieldValue | None}`` for every key the source maps."""

        context = ExtractionContext(
            source=source,
            text=text or "",
            segments=list(self.segments(text or "", html)),
        )
        resolved: dict[str, FieldValue] = {}

        for phrase, role in source.label_set.markers:
            key = source.extractor_key(role)
            if key in resolved:
                continue
            value = self.explicit.find(context, phrase)
            if value is not None:
                resolved[key] = value

        for label, role in source.label_set.labels.items():
            key = source.extractor_key(role)
            if key in resolved:
                continue
            for strategy in self.label_strategies:
                value = strategy.find(context, label)
                if value is not None:
                    resolved[key] = value
                    break

        if not resolved:
            resolved.update(self.global_scan.scan(context))

        return {key: resolved.get(key) for key in source.extractor_keys()}

    # ------------------------------------------------------------------
    def segments(self, text: str, html: str | None = None) -> Iterator[TextSegment]:
        if html:
            yield from self._html_segments(html)
        yield from self._line_segments(text)

    def _line_segments(self, text: str) -> Iterator[TextSegment]:
        lines = [line for line in (_normalise(raw) for raw in text.splitlines()) if line]
        for index, line in enumerate(lines):
            if len(line) > self.max_segment_length:
                continue
            sibling = lines[index + 1] if index + 1 < len(lines) else ""
            if len(sibling) > self.max_segment_length:
                sibling = ""
            yield TextSegment(text=line, sibling=sibling)

    def _html_segments(self, html: str) -> Iterator[TextSegment]:
        tree = HTMLParser(html)
        tree.strip_tags(_SKIPPED_TAGS)
        root = tree.body or tree.root
        if root is None:
            return
        for node in root.traverse(include_text=False):
            text = _normalise(node.text(deep=True, separator=" "))
            if not text or len(text) > self.max_segment_length:
                continue
            yield TextSegment(text=text, sibling=self._sibling_text(node))

    def _sibling_text(self, node: Node) -> str:
        current: Node | None = node
        # Climb at most one level when the element is the last of its parent.
        for _ in range(2):
            if current is None:
                break
            sibling = current.next
            while sibling is not None:
                text = _normalise(sibling.text(deep=True, separator=" "))
                if text:
                    return text if len(text) <= self.max_segment_length else ""
                sibling = sibling.next
            current = current.parent
        return ""


__all__ = [
    "ExplicitMarkerStrategy",
    "FieldExtractor",
    "GlobalScanStrategy",
    "SameSegmentStrategy",
    "SiblingStrategy",
    "TextSegment",
    "parse_percent",
]
