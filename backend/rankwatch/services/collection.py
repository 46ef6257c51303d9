"""Collection pipeline: weekly snapshots, alerts, status, discovery, retention.

One parameterized pipeline serves three triggers:

- ``run_collection``: current week, every tracked URL, snapshots upserted,
  alerts and status updates applied, report sent, old snapshots swept
- ``run_collection_for_url``: the same restricted to one URL, without the
  retention sweep
- ``run_backfill``: several past weeks, create-only snapshots, no alerting
  or notification

Execution is sequential. Each keyword's snapshot and alert are committed as
soon as they are written, so a failure later in the run never loses them.
A failing source degrades one URL to empty results; a failing URL is rolled
back and skipped. Only loading config or URLs, or missing credentials, fails
the whole run, and even then a ``RunResult`` is returned instead of raising.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.config import Settings
from rankwatch.core.database import db_manager
from rankwatch.core.logging import collection_logger, get_logger
from rankwatch.integrations.dataforseo import DataForSEOClient, SerpPosition
from rankwatch.integrations.search_console import SearchAnalyticsRow, SearchConsoleClient
from rankwatch.integrations.telegram import TelegramClient
from rankwatch.repositories.alert import AlertRepository
from rankwatch.repositories.config import ConfigRepository
from rankwatch.repositories.keyword import KeywordRepository
from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.repositories.tracked_url import TrackedUrlRepository
from rankwatch.schemas.collection import RunCounts, RunResult
from rankwatch.services.alert_classifier import classify_position_change
from rankwatch.services.discovery import KeywordDiscovery
from rankwatch.services.periods import Period, SerpMode, backfill_periods, current_period
from rankwatch.services.pipeline_config import PipelineConfig
from rankwatch.services.reconciler import (
    KeywordTarget,
    PositionTransition,
    SnapshotReconciler,
    SnapshotWriteMode,
    WriteOutcome,
)
from rankwatch.services.report import AlertEvent, format_weekly_report
from rankwatch.services.retention import RetentionSweep
from rankwatch.services.status import StatusUpdater
from rankwatch.services.tracked_url import TrackedUrlNotFoundError

logger = get_logger(__name__)


class CollectionError(Exception):
    """Base exception for run-level collection failures."""

    pass


class ConfigurationMissingError(CollectionError):
    """Raised when a credential or setting the run cannot do without is absent."""

    pass


def _error_code(error: Exception) -> str:
    if isinstance(error, TrackedUrlNotFoundError):
        return "NOT_FOUND"
    if isinstance(error, ConfigurationMissingError):
        return "CONFIGURATION_MISSING"
    return "RUN_FAILED"


@dataclass(frozen=True)
class PipelinePlan:
    """Everything that distinguishes one kind of run from another."""

    mode: str
    now: datetime
    periods: tuple[Period, ...]
    write_mode: SnapshotWriteMode
    url_id: str | None = None
    run_alerting: bool = False
    run_notification: bool = False
    run_discovery: bool = False
    run_retention: bool = False

    @property
    def needs_serp(self) -> bool:
        return any(period.serp_mode is not SerpMode.NONE for period in self.periods)


def collection_plan(now: datetime, url_id: str | None = None) -> PipelinePlan:
    """Plan for the live weekly run, optionally restricted to one URL."""
    return PipelinePlan(
        mode="collection",
        now=now,
        periods=(current_period(now),),
        write_mode=SnapshotWriteMode.UPSERT,
        url_id=url_id,
        run_alerting=True,
        run_notification=True,
        run_discovery=True,
        run_retention=url_id is None,
    )


def backfill_plan(
    now: datetime,
    weeks_back: int,
    url_id: str | None = None,
    use_historical_serp: bool = False,
) -> PipelinePlan:
    """Plan for filling gaps in past weeks, oldest week first.

    Each week's prior position then comes from the week written before it.
    """
    periods = backfill_periods(now, weeks_back, use_historical_serp)
    return PipelinePlan(
        mode="backfill",
        now=now,
        periods=tuple(reversed(periods)),
        write_mode=SnapshotWriteMode.CREATE_ONLY,
        url_id=url_id,
    )


@dataclass
class UrlTarget:
    """Plain copy of a tracked URL and its tracked keywords."""

    id: str
    url: str
    title: str
    keywords: list[KeywordTarget] = field(default_factory=list)


class RunLog:
    """Ordered human-readable progress lines, mirrored to the JSON log."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self.lines: list[str] = []

    def add(self, line: str) -> None:
        self.lines.append(line)
        collection_logger.run_line(self.run_id, line)


@dataclass
class _RunState:
    """Mutable bookkeeping for one run."""

    log: RunLog
    counts: RunCounts = field(default_factory=RunCounts)
    events: list[AlertEvent] = field(default_factory=list)
    processed_url_ids: set[str] = field(default_factory=set)


class CollectionPipeline:
    """Runs collection plans against the database and the external sources."""

    def __init__(
        self,
        session: AsyncSession,
        serp_client: DataForSEOClient,
        analytics_client: SearchConsoleClient,
        notifier: TelegramClient,
        dashboard_url: str | None = None,
        default_property: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session = session
        self.serp_client = serp_client
        self.analytics_client = analytics_client
        self.notifier = notifier
        self.dashboard_url = dashboard_url
        self.default_property = default_property
        self._clock = clock or (lambda: datetime.now(UTC))

        self.config_repository = ConfigRepository(session)
        self.url_repository = TrackedUrlRepository(session)
        self.keyword_repository = KeywordRepository(session)
        self.snapshot_repository = SnapshotRepository(session)
        self.alert_repository = AlertRepository(session)

        self.reconciler = SnapshotReconciler(self.snapshot_repository)
        self.status_updater = StatusUpdater(self.url_repository)
        self.discovery = KeywordDiscovery(self.keyword_repository)
        self.retention = RetentionSweep(self.snapshot_repository)

    @classmethod
    def from_settings(
        cls,
        session: AsyncSession,
        settings: Settings,
        serp_client: DataForSEOClient,
        analytics_client: SearchConsoleClient,
        notifier: TelegramClient,
    ) -> "CollectionPipeline":
        """Build a pipeline with the process-level settings it needs."""
        return cls(
            session,
            serp_client,
            analytics_client,
            notifier,
            dashboard_url=settings.dashboard_url,
            default_property=settings.gsc_property,
        )

    async def run_collection(self) -> RunResult:
        """Collect the current week for every tracked URL."""
        return await self.run(collection_plan(self._clock()))

    async def run_collection_for_url(self, url_id: str) -> RunResult:
        """Collect the current week for one tracked URL."""
        return await self.run(collection_plan(self._clock(), url_id=url_id))

    async def run_backfill(
        self,
        weeks_back: int,
        url_id: str | None = None,
        use_historical_serp: bool = False,
    ) -> RunResult:
        """Fill missing snapshots for the last ``weeks_back`` weeks."""
        return await self.run(
            backfill_plan(self._clock(), weeks_back, url_id, use_historical_serp)
        )

    async def run(self, plan: PipelinePlan) -> RunResult:
        """Execute a plan and report what happened. Never raises."""
        run_id = str(uuid4())[:8]
        state = _RunState(log=RunLog(run_id))
        start_time = time.monotonic()
        collection_logger.run_start(run_id, plan.mode, len(plan.periods), plan.url_id)

        try:
            targets = await self._load_targets(plan.url_id)
            config = PipelineConfig.from_entries(
                await self.config_repository.get_all(),
                default_property=self.default_property,
            )
            target_domain = self._check_requirements(plan, config)

            keyword_total = sum(len(target.keywords) for target in targets)
            state.log.add(
                f"Loaded {len(targets)} URL(s) with {keyword_total} tracked keyword(s)"
            )
            analytics_enabled = self._analytics_enabled(config, state.log)

            for period in plan.periods:
                state.log.add(
                    f"Week of {period.week_starting.isoformat()}: "
                    f"traffic {period.analytics_start.isoformat()} to "
                    f"{period.analytics_end.isoformat()}, SERP {period.serp_mode.value}"
                )
                for target in targets:
                    await self._process_target_safely(
                        plan, period, target, config, target_domain, analytics_enabled, state
                    )
                state.counts.periods_processed += 1

            state.counts.urls_processed = len(state.processed_url_ids)

            if plan.run_notification:
                await self._notify(plan.periods[0], targets, state)
            if plan.run_retention:
                await self._sweep(plan.now, config, state)

        except Exception as e:
            await self._safe_rollback()
            collection_logger.run_failed(run_id, e)
            state.log.add(f"FATAL ERROR: {e}")
            return RunResult(
                ok=False,
                run_id=run_id,
                duration_seconds=round(time.monotonic() - start_time, 2),
                counts=state.counts,
                log=state.log.lines,
                error=str(e),
                error_code=_error_code(e),
            )

        duration_seconds = round(time.monotonic() - start_time, 2)
        if plan.run_alerting:
            state.log.add(f"Alerts raised: {state.counts.alerts_total}")
        state.log.add(f"Done in {duration_seconds}s")
        collection_logger.run_complete(run_id, duration_seconds, state.counts.model_dump())
        return RunResult(
            ok=True,
            run_id=run_id,
            duration_seconds=duration_seconds,
            counts=state.counts,
            log=state.log.lines,
        )

    async def _load_targets(self, url_id: str | None) -> list[UrlTarget]:
        if url_id is not None:
            tracked_url = await self.url_repository.get_by_id(url_id)
            if tracked_url is None:
                raise TrackedUrlNotFoundError(url_id)
            urls = [tracked_url]
        else:
            urls = await self.url_repository.list_all()

        keywords = await self.keyword_repository.list_tracked_for_urls([u.id for u in urls])
        return [
            UrlTarget(
                id=u.id,
                url=u.url,
                title=u.title,
                keywords=[KeywordTarget(id=k.id, keyword=k.keyword) for k in keywords.get(u.id, [])],
            )
            for u in urls
        ]

    def _check_requirements(self, plan: PipelinePlan, config: PipelineConfig) -> str:
        """Fail fast on missing SERP credentials or target domain."""
        target_domain = config.resolved_target_domain
        if plan.needs_serp:
            if not self.serp_client.available:
                raise ConfigurationMissingError(
                    "DataForSEO credentials are not configured"
                )
            if not target_domain:
                raise ConfigurationMissingError(
                    "Target domain is not configured (set target_domain or gsc_property)"
                )
        return target_domain

    def _analytics_enabled(self, config: PipelineConfig, run_log: RunLog) -> bool:
        if not self.analytics_client.available:
            run_log.add("Search Console not configured, traffic metrics skipped")
            return False
        if not config.gsc_property:
            run_log.add("Search Console property not configured, traffic metrics skipped")
            return False
        return True

    async def _process_target_safely(
        self,
        plan: PipelinePlan,
        period: Period,
        target: UrlTarget,
        config: PipelineConfig,
        target_domain: str,
        analytics_enabled: bool,
        state: _RunState,
    ) -> None:
        """Process one URL, isolating any failure to that URL."""
        try:
            await self._process_target(
                plan, period, target, config, target_domain, analytics_enabled, state
            )
        except Exception as e:
            await self._safe_rollback()
            state.counts.url_failures += 1
            collection_logger.url_failed(state.log.run_id, target.id, e)
            state.log.add(f"x {target.title}: failed ({type(e).__name__}: {e})")
            return
        state.processed_url_ids.add(target.id)

    async def _process_target(
        self,
        plan: PipelinePlan,
        period: Period,
        target: UrlTarget,
        config: PipelineConfig,
        target_domain: str,
        analytics_enabled: bool,
        state: _RunState,
    ) -> None:
        keywords = [keyword.keyword for keyword in target.keywords]
        transitions: list[PositionTransition] = []

        if keywords:
            analytics = (
                await self._fetch_analytics(period, target, config, keywords, state.log)
                if analytics_enabled
                else {}
            )
            serp = await self._fetch_serp(period, target, config, target_domain, keywords, state.log)
            prev_positions = await self.snapshot_repository.get_previous_positions(
                [keyword.id for keyword in target.keywords], period.week_starting
            )

            for keyword in target.keywords:
                transition = await self.reconciler.reconcile(
                    keyword,
                    period.week_starting,
                    analytics,
                    serp,
                    prev_positions.get(keyword.id),
                    plan.write_mode,
                )
                self._count_write(transition.outcome, state.counts)
                if plan.run_alerting:
                    await self._raise_alert(transition, target, config, state)
                await self.session.commit()
                transitions.append(transition)
                state.counts.keywords_processed += 1

            written = sum(1 for t in transitions if t.outcome is not WriteOutcome.SKIPPED)
            found = sum(1 for t in transitions if t.current_position is not None)
            state.log.add(
                f"ok {target.title}: {written} snapshot(s) written, "
                f"{len(transitions) - written} skipped, {found}/{len(transitions)} ranked"
            )
        else:
            state.log.add(f"- {target.title}: no tracked keywords")

        if plan.run_discovery and config.auto_discovery_enabled and analytics_enabled:
            await self._discover(period, target, config, state)

        if plan.run_alerting:
            status = await self.status_updater.update(
                target.id, transitions, active_keywords=len(target.keywords)
            )
            await self.session.commit()
            if status is not None:
                state.log.add(f"{target.title}: status set to {status.value}")

    async def _fetch_analytics(
        self,
        period: Period,
        target: UrlTarget,
        config: PipelineConfig,
        keywords: list[str],
        run_log: RunLog,
    ) -> dict[str, SearchAnalyticsRow]:
        try:
            return await self.analytics_client.get_keyword_metrics(
                config.gsc_property or "",
                target.url,
                period.analytics_start,
                period.analytics_end,
                keywords,
            )
        except Exception as e:
            logger.warning(
                "Search Console lookup failed, continuing without traffic data",
                extra={"url_id": target.id, "error": str(e)},
                exc_info=True,
            )
            run_log.add(f"! {target.title}: Search Console failed ({e})")
            return {}

    async def _fetch_serp(
        self,
        period: Period,
        target: UrlTarget,
        config: PipelineConfig,
        target_domain: str,
        keywords: list[str],
        run_log: RunLog,
    ) -> dict[str, SerpPosition]:
        try:
            if period.serp_mode is SerpMode.LIVE:
                return await self.serp_client.get_serp_positions(
                    keywords, target_domain, config.serp_country, config.serp_language
                )
            if period.serp_mode is SerpMode.HISTORICAL and period.serp_date is not None:
                return await self.serp_client.get_historical_serp_positions(
                    keywords,
                    target_domain,
                    period.serp_date,
                    config.serp_country,
                    config.serp_language,
                )
        except Exception as e:
            logger.warning(
                "SERP lookup failed, continuing without positions",
                extra={"url_id": target.id, "serp_mode": period.serp_mode.value, "error": str(e)},
                exc_info=True,
            )
            run_log.add(f"! {target.title}: SERP lookup failed ({e})")
        return {}

    async def _raise_alert(
        self,
        transition: PositionTransition,
        target: UrlTarget,
        config: PipelineConfig,
        state: _RunState,
    ) -> None:
        decision = classify_position_change(
            transition.prev_position, transition.current_position, config.alert_threshold
        )
        if decision is None:
            return

        await self.alert_repository.create(
            keyword_id=transition.keyword_id,
            alert_type=decision.type.value,
            severity=decision.severity.value,
            details=decision.details,
        )
        counter = f"alerts_{decision.severity.value}"
        setattr(state.counts, counter, getattr(state.counts, counter) + 1)
        state.events.append(
            AlertEvent(
                keyword=transition.keyword,
                url_title=target.title,
                severity=decision.severity,
                details=decision.details,
            )
        )
        state.log.add(
            f"{decision.severity.value.upper()} {decision.type.value}: "
            f'"{transition.keyword}" {decision.details}'
        )

    async def _discover(
        self,
        period: Period,
        target: UrlTarget,
        config: PipelineConfig,
        state: _RunState,
    ) -> None:
        try:
            candidates = await self.analytics_client.get_top_queries(
                config.gsc_property or "",
                target.url,
                period.analytics_start,
                period.analytics_end,
                min_impressions=config.auto_discovery_min_impressions,
            )
        except Exception as e:
            logger.warning(
                "Top query lookup failed, skipping discovery",
                extra={"url_id": target.id, "error": str(e)},
                exc_info=True,
            )
            state.log.add(f"! {target.title}: keyword discovery skipped ({e})")
            return

        added = await self.discovery.discover(
            target.id,
            candidates,
            tracked_count=len(target.keywords),
            max_keywords=config.max_keywords_per_url,
        )
        await self.session.commit()
        if added:
            state.counts.keywords_discovered += len(added)
            state.log.add(f"+ {target.title}: now tracking {', '.join(added)}")

    async def _notify(self, period: Period, targets: list[UrlTarget], state: _RunState) -> None:
        if not state.events:
            state.log.add("No alerts, notification skipped")
            return

        keyword_total = sum(len(t.keywords) for t in targets) + state.counts.keywords_discovered
        message = format_weekly_report(
            period.week_starting,
            state.events,
            url_count=len(targets),
            keyword_count=keyword_total,
            dashboard_url=self.dashboard_url,
        )
        result = await self.notifier.send_message(message)
        if result.success:
            state.counts.notification_sent = True
            state.log.add(f"Report sent ({len(state.events)} alert(s))")
        elif result.skipped:
            state.log.add("Telegram not configured, report not sent")
        else:
            state.log.add(f"Report delivery failed: {result.error}")

    async def _sweep(self, now: datetime, config: PipelineConfig, state: _RunState) -> None:
        try:
            deleted = await self.retention.sweep(now, config.archive_weeks)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._safe_rollback()
            logger.error(
                "Retention sweep failed",
                extra={"error_type": type(e).__name__, "error_message": str(e)},
                exc_info=True,
            )
            state.log.add(f"Retention sweep failed: {e}")
            return
        state.counts.snapshots_archived = deleted
        state.log.add(f"Archived: deleted {deleted} old snapshot(s)")

    @staticmethod
    def _count_write(outcome: WriteOutcome, counts: RunCounts) -> None:
        if outcome is WriteOutcome.CREATED:
            counts.snapshots_created += 1
        elif outcome is WriteOutcome.UPDATED:
            counts.snapshots_updated += 1
        else:
            counts.snapshots_skipped += 1

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback after failure did not complete", exc_info=True)


async def run_scheduled_collection(
    settings: Settings,
    serp_client: DataForSEOClient,
    analytics_client: SearchConsoleClient,
    notifier: TelegramClient,
) -> RunResult:
    """Scheduler entry point: run the weekly collection in a fresh session."""
    async with db_manager.session_scope() as session:
        pipeline = CollectionPipeline.from_settings(
            session, settings, serp_client, analytics_client, notifier
        )
        result = await pipeline.run_collection()

    if not result.ok:
        logger.error(
            "Scheduled collection failed",
            extra={"run_id": result.run_id, "error": result.error},
        )
    return result
