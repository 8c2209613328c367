"""Process-wide journaling state: history, derived stats, missions and connectivity.

One ``Store`` is built at startup. Commands replace the whole history tuple and
recompute every derived value before subscribers are notified with the new
``StoreSnapshot``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from aura.apps.api.core import metrics
from aura.apps.api.services.inference.gateway import InferenceGateway
from aura.apps.api.services.journaling.pipeline import EntryPipeline
from aura.apps.api.services.journaling.reconcile import (
    ReconciliationError,
    ReconciliationFlow,
    merge_reconciled,
)
from aura.apps.api.services.media.staging import LocalMediaStaging
from aura.apps.api.services.storage.reports_repo import (
    InMemoryReportRepository,
    PostgresReportRepository,
    ReportRepository,
)
from aura.apps.api.services.weather.client import OpenMeteoWeather
from aura.apps.engine.companion import engine as companion_engine
from aura.apps.engine.forecast.engine import compute_forecast
from aura.apps.engine.gamification.engine import (
    calculate_level,
    check_achievements,
    display_achievements,
)
from aura.apps.engine.missions import engine as missions_engine
from aura.apps.engine.weekly_review.engine import compute_weekly_digest
from aura.libs.llm_router import LLMRouteConfig, LLMRouter, OpenRouterProvider, RetryPolicy, Task
from aura.libs.schemas.report import LocationInfo, MediaFile, NightRitual, Report
from aura.libs.schemas.settings import AppSettings, get_settings
from aura.libs.schemas.stats import (
    Achievement,
    Companion,
    ForecastResult,
    LevelInfo,
    Mission,
    WeeklyDigest,
)

logger = logging.getLogger(__name__)

Listener = Callable[["StoreSnapshot"], None]


class OfflineError(RuntimeError):
    """The command needs connectivity."""


class EnrichmentUnavailableError(RuntimeError):
    """On-demand generation returned nothing usable."""


@dataclass(frozen=True)
class StoreSnapshot:
    history: Tuple[Report, ...] = ()
    online: bool = True
    level: LevelInfo = field(default_factory=lambda: calculate_level(()))
    achievements: Tuple[Achievement, ...] = ()
    streak: int = 0
    forecast: Optional[ForecastResult] = None
    weekly_digest: Optional[WeeklyDigest] = None
    missions: Tuple[Mission, ...] = ()
    companion: Optional[Companion] = None

    @property
    def pending(self) -> Tuple[Report, ...]:
        return tuple(report for report in self.history if report.pending_analysis)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Store:
    def __init__(
        self,
        *,
        user_id: str,
        user_name: str = "Viajante",
        repository: ReportRepository,
        pipeline: EntryPipeline,
        reconciler: ReconciliationFlow,
        gateway: InferenceGateway,
        online: bool = True,
        auto_reconcile: bool = True,
        clock: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._user_id = user_id
        self._user_name = user_name
        self._repository = repository
        self._pipeline = pipeline
        self._reconciler = reconciler
        self._gateway = gateway
        self._auto_reconcile = auto_reconcile
        self._clock = clock or _local_now
        self._tz = tz

        self._online = online
        self._history: Tuple[Report, ...] = ()
        self._unlocked: Dict[str, datetime] = {}
        self._missions: Tuple[Mission, ...] = ()
        self._missions_date: Optional[date] = None
        self._companion: Optional[Companion] = None
        self._listeners: List[Listener] = []
        self._snapshot = StoreSnapshot(online=online)

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def online(self) -> bool:
        return self._online

    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    def get_report(self, report_id: str) -> Report:
        for report in self._history:
            if report.id == report_id:
                return report
        raise KeyError(report_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every new snapshot; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self) -> StoreSnapshot:
        reports = await self._repository.list_by_user(self._user_id)
        self._history = tuple(sorted(reports, key=lambda r: r.created_at, reverse=True))
        logger.info("[Store] loaded %s reports for %s", len(self._history), self._user_id)
        await self.refresh_companion()
        return self._snapshot

    async def set_online(self, online: bool) -> StoreSnapshot:
        reconnected = online and not self._online
        self._online = online
        logger.info("[Store] connectivity set to %s", "online" if online else "offline")
        snapshot = await self._commit()
        if reconnected:
            if self._auto_reconcile and snapshot.pending:
                await self.reconcile_pending()
            await self.refresh_companion()
            snapshot = self._snapshot
        return snapshot

    async def submit_entry(
        self,
        text: str,
        *,
        photo: MediaFile | None = None,
        audio: MediaFile | None = None,
        location: LocationInfo | None = None,
    ) -> Report:
        report = await self._pipeline.process(
            text,
            self._user_id,
            photo=photo,
            audio=audio,
            location=location,
            history=self._history,
            online=self._online,
        )
        await self._repository.append(report)
        self._history = (report, *self._history)
        await self._commit()
        return report

    async def reconcile(self, report_id: str) -> Report:
        """Reanalyse one pending report. Finished reports are returned unchanged."""

        report = self.get_report(report_id)
        if not report.pending_analysis:
            return report
        reconciled = await self._reconciler.reanalyze(report, self._history, online=self._online)
        # Other commands may have patched the report while the analysis ran.
        try:
            current = self.get_report(report_id)
        except KeyError:
            logger.info("[Store] report %s vanished during reconciliation; result discarded", report_id)
            return reconciled
        if not current.pending_analysis:
            return current
        merged = merge_reconciled(current, reconciled)
        await self._apply_patch(merged)
        await self._commit()
        return merged

    async def reconcile_pending(self) -> List[Report]:
        """Single pass over pending reports; failures are left pending for a later trigger."""

        if not self._online:
            raise ReconciliationError("cannot reconcile while offline")
        reconciled: List[Report] = []
        for report in self._snapshot.pending:
            try:
                reconciled.append(await self.reconcile(report.id))
            except Exception as exc:
                logger.warning("[Store] reconciliation of %s failed: %s", report.id, exc)
        return reconciled

    async def toggle_checklist_item(self, report_id: str, task_id: str) -> Report:
        report = self.get_report(report_id)
        if not any(task.id == task_id for task in report.self_care_checklist):
            raise KeyError(task_id)
        checklist = [
            task.model_copy(update={"is_completed": not task.is_completed}) if task.id == task_id else task
            for task in report.self_care_checklist
        ]
        updated = report.model_copy(update={"self_care_checklist": checklist})
        await self._apply_patch(updated)
        await self._commit()
        return updated

    async def create_night_ritual(self, report_id: str) -> Optional[Report]:
        if not self._online:
            raise OfflineError("night ritual requires connectivity")
        report = self.get_report(report_id)
        content = await self._gateway.generate_night_content(report.summary or "", report.emotion or "")
        if content is None:
            raise EnrichmentUnavailableError("night ritual content unavailable")

        audio_ref: Optional[str] = None
        try:
            audio_ref = await self._gateway.generate_night_audio(content.story)
        except Exception as exc:
            metrics.enrichment_failures.labels(feature="night_audio").inc()
            logger.warning("[Store] night narration unavailable: %s", exc)

        ritual = NightRitual(
            story=content.story, meditation=content.meditation, poem=content.poem, audio_ref=audio_ref
        )
        return await self._late_patch(report_id, {"night_ritual": ritual})

    async def generate_scene(self, report_id: str, style: str) -> Optional[Report]:
        if not self._online:
            return None
        report = self.get_report(report_id)
        scene_ref = await self._gateway.generate_scene(report.emotion or "", report.summary or "", style)
        if scene_ref is None:
            return None
        return await self._late_patch(report_id, {"scene_ref": scene_ref, "scene_style": style})

    async def refresh_companion(self) -> Companion:
        self._companion = await companion_engine.refresh_companion(
            self._companion,
            self._history,
            user_name=self._user_name,
            level=calculate_level(self._history).level,
            online=self._online,
            gateway=self._gateway,
            now=self._clock(),
            tz=self._tz,
        )
        await self._commit()
        return self._companion

    def current_missions(self) -> List[Mission]:
        today = self._clock().date()
        missions, generated_on = missions_engine.refresh_missions(self._missions, self._missions_date, today)
        if generated_on != self._missions_date:
            self._missions, self._missions_date = tuple(missions), generated_on
            self._snapshot = _replace_snapshot(self._snapshot, missions=self._missions)
        return list(self._missions)

    async def complete_mission(self, mission_id: str, evidence: str | MediaFile | None = None) -> bool:
        mission = next((m for m in self.current_missions() if m.id == mission_id), None)
        if mission is None:
            raise KeyError(mission_id)
        verified = await missions_engine.verify_mission(
            mission, evidence, online=self._online, gateway=self._gateway
        )
        if verified:
            self._missions = tuple(missions_engine.complete_mission(self._missions, mission_id))
            await self._commit()
        return verified

    async def _late_patch(self, report_id: str, update: Dict[str, object]) -> Optional[Report]:
        # Results of slow generations only land if the report is still in history.
        try:
            current = self.get_report(report_id)
        except KeyError:
            logger.info("[Store] report %s no longer present; discarding late result", report_id)
            return None
        updated = current.model_copy(update=update)
        await self._apply_patch(updated)
        await self._commit()
        return updated

    async def _apply_patch(self, report: Report) -> bool:
        if not any(existing.id == report.id for existing in self._history):
            return False
        await self._repository.patch(report)
        self._history = tuple(report if existing.id == report.id else existing for existing in self._history)
        return True

    async def _commit(self) -> StoreSnapshot:
        history = self._history
        now = self._clock()
        self._unlocked = check_achievements(history, self._unlocked, now=now)
        self.current_missions()
        self._snapshot = StoreSnapshot(
            history=history,
            online=self._online,
            level=calculate_level(history),
            achievements=tuple(display_achievements(self._unlocked)),
            streak=len(history),
            forecast=await compute_forecast(history, online=self._online, gateway=self._gateway, tz=self._tz),
            weekly_digest=compute_weekly_digest(history, now=now, tz=self._tz),
            missions=self._missions,
            companion=self._companion,
        )
        for listener in list(self._listeners):
            listener(self._snapshot)
        return self._snapshot


def _replace_snapshot(snapshot: StoreSnapshot, **changes: object) -> StoreSnapshot:
    values = {name: getattr(snapshot, name) for name in StoreSnapshot.__dataclass_fields__}
    values.update(changes)
    return StoreSnapshot(**values)


def build_router(settings: AppSettings) -> LLMRouter:
    retry = RetryPolicy(
        max_attempts=settings.inference_max_attempts,
        base_delay=settings.inference_backoff_seconds,
        multiplier=settings.inference_backoff_multiplier,
    )

    def _count_retry(task: Task, provider: str, attempt: int, exc: BaseException) -> None:
        metrics.inference_retries.labels(task=task.value).inc()

    router = LLMRouter(config=LLMRouteConfig(retry=retry), on_retry=_count_retry)
    if settings.openrouter_api_key:
        router.register_provider(
            "openrouter",
            OpenRouterProvider(
                api_key=settings.openrouter_api_key,
                base_url=settings.llm_base_url,
                timeout=settings.inference_timeout,
            ),
        )
        for task in Task:
            router.set_policy(task, ["openrouter"])
    else:
        logger.warning("[Store] no inference provider configured; online analysis will fail")
    return router


def build_store(
    settings: AppSettings | None = None,
    *,
    repository: ReportRepository | None = None,
    router: LLMRouter | None = None,
) -> Store:
    settings = settings or get_settings()
    router = router or build_router(settings)
    if repository is None:
        repository = PostgresReportRepository() if settings.database_url else InMemoryReportRepository()

    gateway = InferenceGateway(router, settings)
    media = LocalMediaStaging(settings=settings)
    pipeline = EntryPipeline(gateway, media, OpenMeteoWeather(settings))
    return Store(
        user_id=settings.default_user_id,
        user_name=settings.default_user_name,
        repository=repository,
        pipeline=pipeline,
        reconciler=ReconciliationFlow(pipeline, media),
        gateway=gateway,
        auto_reconcile=settings.auto_reconcile_on_reconnect,
        tz=ZoneInfo(settings.timezone) if settings.timezone else None,
    )


__all__ = [
    "EnrichmentUnavailableError",
    "OfflineError",
    "Store",
    "StoreSnapshot",
    "build_router",
    "build_store",
]
