"""ReconciliationEngine: the single owned aggregate exposed to the caller.

Wires JobStatusStore, HealthMonitor and PollingReconciler around one root
CancellationToken and routes push-channel events to them. Callers only read
through accessors and write through the entry points below; they never touch
JobRecord fields directly.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ValidationError

from jobpulse.core.config import HealthMonitorConfig, ReconcilerConfig
from jobpulse.core.exceptions import JobNotTrackedError
from jobpulse.core.interfaces.api_client import ApiClientPort
from jobpulse.core.interfaces.backoff import BackoffPort
from jobpulse.core.interfaces.observers import HealthObserver, JobStatusObserver
from jobpulse.core.interfaces.push_channel import PushChannelPort, Unsubscribe
from jobpulse.core.managers.health_monitor import HealthMonitor
from jobpulse.core.managers.job_status_store import JobStatusStore
from jobpulse.core.managers.polling_reconciler import PollingReconciler
from jobpulse.core.models.events import (
    ConnectionHealthChangedEvent,
    ProgressUpdateEvent,
    parse_push_event,
)
from jobpulse.core.models.health import HealthState
from jobpulse.core.models.job import JobRecord, JobStatus
from jobpulse.core.settings import logger
from jobpulse.core.utils.cancellation import CancellationToken
from jobpulse.core.utils.clock import Clock, utc_now


class ReconciliationEngine:
    def __init__(
        self,
        api_client: ApiClientPort,
        reconciler_config: Optional[ReconcilerConfig] = None,
        health_config: Optional[HealthMonitorConfig] = None,
        backoff: Optional[BackoffPort] = None,
        job_observers: Optional[List[JobStatusObserver]] = None,
        health_observers: Optional[List[HealthObserver]] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._token = CancellationToken()
        self._store = JobStatusStore(clock=clock)
        self.health_monitor = HealthMonitor(
            api_client,
            config=health_config,
            backoff=backoff,
            observers=health_observers,
            token=self._token.child(),
            clock=clock,
        )
        self.reconciler = PollingReconciler(
            api_client,
            self._store,
            config=reconciler_config,
            observers=job_observers,
            token=self._token.child(),
            clock=clock,
        )
        self._unsubscribers: List[Unsubscribe] = []
        self._started = False

    # ---------------- Lifecycle -----------------
    def start(self) -> None:
        if self._started or self._token.cancelled:
            return
        self._started = True
        self.health_monitor.start()
        self.reconciler.start()
        logger.info("[engine:start] reconciliation engine running")

    def stop(self) -> None:
        """Tear down: no further ticks, probes or writes. Safe to call twice."""
        if self._token.cancelled:
            return
        self._token.cancel("engine stopped")
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.reconciler.stop()
        self.health_monitor.stop()
        logger.info("[engine:stop] reconciliation engine stopped")

    async def shutdown(self) -> None:
        self.stop()
        await self.reconciler.shutdown()
        await self.health_monitor.shutdown()

    @property
    def stopped(self) -> bool:
        return self._token.cancelled

    # ---------------- Push channel -----------------
    def attach_push_channel(self, channel: PushChannelPort) -> None:
        self._unsubscribers.append(channel.subscribe(self.handle_push_event))

    async def handle_push_event(self, event: Mapping[str, Any] | BaseModel) -> None:
        """Route a push event; malformed payloads are logged and dropped."""
        if self._token.cancelled:
            return
        try:
            parsed = parse_push_event(event)
        except ValidationError as exc:
            logger.warning("[engine:push] dropping malformed event errors=%s", exc.error_count())
            return

        if isinstance(parsed, ProgressUpdateEvent):
            await self.reconciler.apply_push_update(parsed)
        elif isinstance(parsed, ConnectionHealthChangedEvent):
            await self.health_monitor.handle_connection_event(parsed)

    # ---------------- Caller entry points -----------------
    def track(
        self,
        job_id: str,
        status: JobStatus | str = JobStatus.processing,
        progress: float = 0.0,
    ) -> Optional[JobRecord]:
        return self.reconciler.track(job_id, status=status, progress=progress)

    def untrack(self, job_id: str) -> Optional[JobRecord]:
        return self.reconciler.untrack(job_id)

    def notify_progress(self, job_id: str, progress: float) -> Optional[JobRecord]:
        return self.reconciler.notify_progress(job_id, progress)

    async def retry_health_check(self) -> HealthState:
        return await self.health_monitor.retry_now()

    # ---------------- Read accessors -----------------
    @property
    def health(self) -> HealthState:
        return self.health_monitor.state

    def get_job(self, job_id: str) -> JobRecord:
        record = self._store.get(job_id)
        if record is None:
            raise JobNotTrackedError(job_id)
        return record

    def find_job(self, job_id: str) -> Optional[JobRecord]:
        return self._store.get(job_id)

    def jobs(self) -> List[JobRecord]:
        return self._store.records()

    @property
    def in_flight_count(self) -> int:
        return self.reconciler.in_flight_count

    def diagnostics(self) -> Dict[str, Any]:
        records = self._store.records()
        by_status: Dict[str, int] = {}
        for record in records:
            by_status[str(record.status)] = by_status.get(str(record.status), 0) + 1
        return {
            "tracked_jobs": len(records),
            "jobs_by_status": by_status,
            "in_flight_corrections": self.reconciler.in_flight_count,
            "polling_enabled": self.reconciler.config.enabled,
            "polling_running": self.reconciler.running,
            "health": self.health.model_dump(mode="json"),
            "stopped": self.stopped,
        }
