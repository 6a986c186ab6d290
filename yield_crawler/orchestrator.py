"""Process-scoped service wiring browser, scheduler, cache and background refresh."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal

import structlog

from .config import (
    ConfigRepository,
    GlobalConfig,
    ServiceSettings,
    SourceDescriptor,
    validate_timeouts,
)
from .engine import (
    AggregateSnapshot,
    BrowserSession,
    CollectionUnavailable,
    FieldExtractor,
    PageFetcher,
    ResultCache,
    RetryPolicy,
)
from .engine.cache import build_backend
from .infra import UserAgentPool
from .logging_conf import configure_logging, source_logger
from .scheduler import APSchedulerAdapter, CollectionReport, SourceScheduler

SnapshotOrigin = Literal["cache", "live", "stale"]


@dataclass(frozen=True, slots=True)
class ServedSnapshot:
    snapshot: AggregateSnapshot
    origin: SnapshotOrigin


class YieldService:
    """Own the pipeline lifecycle and answer snapshot requests.

    Cache misses share one in-flight collection task, so concurrent requests
    never start a second pass against the upstream sites. The task runs
    independently of any caller: a caller that stops waiting does not cancel
    it, and its result still lands in the cache.
    """

    def __init__(
        self,
        scheduler: SourceScheduler,
        cache: ResultCache,
        session: BrowserSession,
        settings: ServiceSettings | None = None,
        refresher: APSchedulerAdapter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.cache = cache
        self.session = session
        self.settings = settings or ServiceSettings()
        self.refresher = refresher
        self.logger = logger or structlog.get_logger("yield_crawler").bind(component="service")
        self._inflight: asyncio.Task[CollectionReport] | None = None
        self._started = False

    @classmethod
    def from_config(
        cls,
        settings: ServiceSettings,
        repository: ConfigRepository | None = None,
        sources: list[SourceDescriptor] | None = None,
    ) -> "YieldService":
        repository = repository or ConfigRepository()
        global_config: GlobalConfig = repository.load_global_config()
        sources = sources if sources is not None else repository.list_sources()
        validate_timeouts(sources, settings)
        logger = configure_logging()
        session = BrowserSession(global_config.browser)
        fetcher = PageFetcher(global_config, UserAgentPool.from_config(global_config.user_agent_list))
        scheduler = SourceScheduler(
            sources,
            session=session,
            fetcher=fetcher,
            extractor=FieldExtractor(global_config.max_segment_length),
            retry=RetryPolicy(retry_delay=global_config.retry_delay_seconds),
            max_parallel=global_config.max_parallel_browsers,
            logger_factory=source_logger,
        )
        cache = ResultCache(
            build_backend(settings, repository.locator.data_dir),
            ttl_seconds=settings.cache_ttl_seconds,
        )
        refresher = APSchedulerAdapter() if settings.refresh_interval_seconds > 0 else None
        return cls(
            scheduler,
            cache,
            session,
            settings=settings,
            refresher=refresher,
            logger=logger.bind(component="service"),
        )

    @property
    def canonical_fields(self) -> tuple[str, ...]:
        return self.scheduler.canonical_fields

    # ------------------------------------------------------------------
    async def init(self) -> None:
        if self._started:
            return
        self._started = True
        if self.refresher is not None:
            self.refresher.schedule_refresh(
                self.refresh, self.settings.refresh_interval_seconds, run_immediately=True
            )
            self.refresher.start()
        self.logger.info(
            "service_started",
            sources=len(self.scheduler.sources),
            fields=len(self.canonical_fields),
            refresh_interval=self.settings.refresh_interval_seconds,
        )

    async def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        if self.refresher is not None:
            self.refresher.shutdown()
        task, self._inflight = self._inflight, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.session.shutdown()
        await self.cache.close()
        self.logger.info("service_stopped")

    # ------------------------------------------------------------------
    async def snapshot(self, force: bool = False) -> ServedSnapshot:
        """Cached snapshot when fresh, otherwise the result of a (shared) live pass."""

        cached = self.cache.get_forced() if force else await self.cache.get()
        if cached is not None:
            return ServedSnapshot(cached, "cache")

        report = await self._join_collection()
        if not report.failed_outright:
            return ServedSnapshot(report.snapshot, "live")

        stale = await self.cache.peek()
        if stale is not None:
            self.logger.warning("serving_stale_snapshot", cached_at=stale.timestamp)
            return ServedSnapshot(stale.snapshot, "stale")
        if report.engine_unusable:
            raise CollectionUnavailable("No browser could be launched and no snapshot is cached")
        return ServedSnapshot(report.snapshot, "live")

    async def refresh(self) -> CollectionReport:
        """Background job entry point: one pass and cache write."""

        return await self._join_collection()

    # ------------------------------------------------------------------
    async def _join_collection(self) -> CollectionReport:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._collect(), name="yield-collection")
            self._inflight = task
            task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _collect(self) -> CollectionReport:
        report = await self.scheduler.collect_report()
        if report.failed_outright:
            self.logger.error("collection_failed_outright", sources=report.failed_sources)
        else:
            await self.cache.set(report.snapshot)
        return report


__all__ = ["ServedSnapshot", "YieldService"]
