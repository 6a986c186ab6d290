"""Run every configured source once and fold the results into one snapshot."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Sequence

import structlog

from ..config import Lane, SourceDescriptor, canonical_fields
from ..engine import (
    AggregateSnapshot,
    BrowserSession,
    ErrorKind,
    ExtractionEmpty,
    FieldExtractor,
    FieldValue,
    PageFetcher,
    RenderRequest,
    RetryPolicy,
    SourceResult,
)

LoggerFactory = Callable[[str], structlog.BoundLogger]


@dataclass(frozen=True, slots=True)
class CollectionReport:
    """Snapshot of one pass plus the per-source outcomes it was built from."""

    snapshot: AggregateSnapshot
    results: Mapping[str, SourceResult] = field(default_factory=dict)

    @property
    def failed_sources(self) -> list[str]:
        return [key for key, result in self.results.items() if not result.ok]

    @property
    def failed_outright(self) -> bool:
        """Every source failed; nothing in the snapshot came from this pass."""

        return bool(self.results) and all(not result.ok for result in self.results.values())

    @property
    def engine_unusable(self) -> bool:
        """Every source failed because no browser could be launched."""

        return self.failed_outright and all(
            result.failure_reason is ErrorKind.LAUNCH_FAILURE for result in self.results.values()
        )


class SourceScheduler:
    """Balance the shared sequential lane against the isolated parallel lane.

    No caching and no retries happen here beyond what ``RetryPolicy`` does per
    source; a failing source only nulls its own canonical fields.
    """

    def __init__(
        self,
        sources: Sequence[SourceDescriptor],
        session: BrowserSession,
        fetcher: PageFetcher,
        extractor: FieldExtractor,
        retry: RetryPolicy,
        max_parallel: int = 3,
        logger: structlog.BoundLogger | None = None,
        logger_factory: LoggerFactory | None = None,
    ) -> None:
        self.sources = list(sources)
        self.session = session
        self.fetcher = fetcher
        self.extractor = extractor
        self.retry = retry
        self.max_parallel = max(1, max_parallel)
        self.logger = logger or structlog.get_logger("yield_crawler.scheduler")
        self._logger_factory = logger_factory
        self.canonical_fields = canonical_fields(self.sources)

    @staticmethod
    def partition(
        sources: Iterable[SourceDescriptor],
    ) -> tuple[list[SourceDescriptor], list[SourceDescriptor]]:
        sequential: list[SourceDescriptor] = []
        parallel: list[SourceDescriptor] = []
        for source in sources:
            lane = source.render_profile().lane
            (sequential if lane is Lane.SEQUENTIAL else parallel).append(source)
        return sequential, parallel

    async def collect(self) -> AggregateSnapshot:
        report = await self.collect_report()
        return report.snapshot

    async def collect_report(self) -> CollectionReport:
        sequential, parallel = self.partition(self.sources)
        self.logger.info(
            "collection_started", sequential=len(sequential), parallel=len(parallel)
        )
        seq_results, par_results = await asyncio.gather(
            self._run_sequential(sequential),
            self._run_parallel(parallel),
        )
        results = {**seq_results, **par_results}
        snapshot = self.merge(results)
        failed = [key for key, result in results.items() if not result.ok]
        self.logger.info(
            "collection_finished",
            partial=snapshot.partial,
            failed=failed,
            missing=[name for name, value in snapshot.fields.items() if value is None],
        )
        return CollectionReport(snapshot=snapshot, results=results)

    def merge(
        self, results: Mapping[str, SourceResult], fetched_at: datetime | None = None
    ) -> AggregateSnapshot:
        values: dict[str, float | None] = {}
        for source in self.sources:
            result = results.get(source.key)
            if result is None or not result.ok:
                continue
            for canonical, extractor_key in source.field_map.items():
                percent = result.percent(extractor_key)
                if percent is not None and values.get(canonical) is None:
                    values[canonical] = percent
        return AggregateSnapshot.build(
            self.canonical_fields, values, fetched_at or datetime.now(timezone.utc)
        )

    async def run_source(self, source: SourceDescriptor) -> SourceResult:
        request = RenderRequest.for_source(source)
        profile = request.profile
        log = self._source_logger(source)

        async def attempt() -> Mapping[str, FieldValue | None]:
            if profile.lane is Lane.SEQUENTIAL:
                browser = await self.session.acquire_shared()
                page = await self.fetcher.render(browser, request)
            else:
                async with self.session.isolated() as browser:
                    page = await self.fetcher.render(browser, request)
            if not page.text.strip():
                raise ExtractionEmpty(f"{source.url} rendered no text")
            fields = self.extractor.extract(page.text, source, html=page.html)
            log.info(
                "source_extracted",
                signal_found=page.signal_found,
                fields={key: (value.percent if value else None) for key, value in fields.items()},
                methods={key: value.extraction_method.value for key, value in fields.items() if value},
            )
            return fields

        return await self.retry.run(
            attempt,
            max_attempts=profile.max_attempts,
            per_attempt_timeout_ms=profile.attempt_timeout_ms,
            logger=log,
        )

    # ------------------------------------------------------------------
    async def _run_sequential(self, sources: list[SourceDescriptor]) -> dict[str, SourceResult]:
        results: dict[str, SourceResult] = {}
        for source in sources:
            results[source.key] = await self._guarded(source)
        return results

    async def _run_parallel(self, sources: list[SourceDescriptor]) -> dict[str, SourceResult]:
        if not sources:
            return {}
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def bounded(source: SourceDescriptor) -> SourceResult:
            async with semaphore:
                return await self._guarded(source)

        outcomes = await asyncio.gather(*(bounded(source) for source in sources))
        return {source.key: outcome for source, outcome in zip(sources, outcomes)}

    async def _guarded(self, source: SourceDescriptor) -> SourceResult:
        try:
            return await self.run_source(source)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.logger.error("source_crashed", source=source.key, error=str(exc))
            return SourceResult.failure(ErrorKind.NAVIGATION)

    def _source_logger(self, source: SourceDescriptor) -> structlog.BoundLogger:
        if self._logger_factory is not None:
            return self._logger_factory(source.key)
        return self.logger.bind(source=source.key)


__all__ = ["CollectionReport", "SourceScheduler"]
