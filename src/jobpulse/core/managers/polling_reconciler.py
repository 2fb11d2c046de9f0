"""PollingReconciler: corrective fetches for jobs the push channel went quiet on.

Every `polling_interval` seconds one tick:

1. Collects PROCESSING jobs whose last trusted update is older than
   `stale_threshold` and that have no correction outstanding.
2. Truncates them, in registration order, to the free concurrency slots
   (`max_concurrent_polls` minus fetches still in flight).
3. Marks them in flight and fetches them concurrently with settle-all
   semantics, so one failing fetch never blocks or cancels the others.
4. Applies each result as it completes; terminal jobs leave tracking.

A healthy push channel keeps refreshing `last_update_time` through
`notify_progress` / `apply_push_update`, which keeps jobs out of the
candidate set and suppresses polling entirely.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set

from jobpulse.core.config import ReconcilerConfig
from jobpulse.core.interfaces.api_client import ApiClientPort
from jobpulse.core.interfaces.observers import JobStatusObserver
from jobpulse.core.managers.job_status_store import JobStatusStore
from jobpulse.core.models.events import ProgressUpdateEvent
from jobpulse.core.models.job import JobRecord, JobSnapshot, JobStatus, UpdateSource
from jobpulse.core.settings import logger
from jobpulse.core.utils.cancellation import CancellationToken
from jobpulse.core.utils.clock import Clock, utc_now


class PollingReconciler:
    """Owns job registration, push bookkeeping and the polling loop.

    Attributes:
        config: Immutable configuration (interval, threshold, concurrency cap)
    """

    def __init__(
        self,
        api_client: ApiClientPort,
        store: JobStatusStore,
        config: Optional[ReconcilerConfig] = None,
        observers: Optional[List[JobStatusObserver]] = None,
        token: Optional[CancellationToken] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._api = api_client
        self._store = store
        self.config = config or ReconcilerConfig()
        self._observers = observers or []
        self._token = token or CancellationToken()
        self._clock = clock
        self._job_tokens: Dict[str, CancellationToken] = {}
        # Job ids with a fetch outstanding; outlives untrack() so a re-tracked
        # job cannot get a second concurrent fetch
        self._outstanding: Set[str] = set()
        self._tick_task: Optional[asyncio.Task] = None
        self._batch_tasks: Set[asyncio.Task] = set()

    # ---------------- Registration -----------------
    def track(
        self,
        job_id: str,
        status: JobStatus | str = JobStatus.processing,
        progress: float = 0.0,
    ) -> Optional[JobRecord]:
        """Begin tracking a job.

        The record starts with `last_update_time=now`, giving the push channel a
        full stale window before the first correction. Tracking an already
        tracked job returns its current record unchanged; terminal jobs are
        not tracked at all.
        """
        status = JobStatus.parse(status)
        if status.is_terminal:
            logger.debug("[reconciler:track] ignoring terminal job job_id=%s status=%s", job_id, status)
            return None
        existing = self._store.get(job_id)
        if existing is not None:
            return existing
        self._job_tokens[job_id] = self._token.child()
        logger.debug("[reconciler:track] tracking job_id=%s status=%s", job_id, status)
        return self._store.upsert(
            job_id, UpdateSource.local, status=status, last_known_progress=progress
        )

    def untrack(self, job_id: str) -> Optional[JobRecord]:
        """Stop tracking a job; an outstanding fetch for it is left to finish but ignored."""
        token = self._job_tokens.pop(job_id, None)
        if token is not None:
            token.cancel("job untracked")
        removed = self._store.remove(job_id)
        if removed is not None:
            logger.debug("[reconciler:untrack] job_id=%s", job_id)
        return removed

    def notify_progress(self, job_id: str, progress: float) -> Optional[JobRecord]:
        """Record that the caller observed a push event for `job_id`.

        Refreshes `last_update_time` and `last_known_progress`, which keeps the
        job out of the next tick's candidates. Unknown jobs are registered as
        PROCESSING since a progress event implies the job is running.
        """
        if self._token.cancelled:
            return None
        if job_id not in self._store:
            self._job_tokens[job_id] = self._token.child()
            return self._store.upsert(
                job_id, UpdateSource.push, status=JobStatus.processing, last_known_progress=progress
            )
        return self._store.upsert(job_id, UpdateSource.push, last_known_progress=progress)

    async def apply_push_update(self, event: ProgressUpdateEvent) -> Optional[JobRecord]:
        """Apply a `progress_update` push event, finishing the job if terminal."""
        if self._token.cancelled:
            return None
        if event.job_id not in self._store:
            if event.status.is_terminal:
                logger.debug(
                    "[reconciler:push] terminal event for untracked job job_id=%s status=%s",
                    event.job_id, event.status,
                )
                return None
            self._job_tokens[event.job_id] = self._token.child()

        fields = {"status": event.status, "last_known_progress": event.progress}
        if event.message is not None:
            fields["message"] = event.message
        updated = self._store.upsert(
            event.job_id, UpdateSource.push, event_time=event.timestamp, **fields
        )
        if updated is not None and updated.is_in_terminal_state():
            await self._finish(event.job_id)
        return updated

    # ---------------- Read accessors -----------------
    @property
    def in_flight_count(self) -> int:
        return len(self._outstanding)

    @property
    def running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    # ---------------- Lifecycle -----------------
    def start(self) -> None:
        if not self.config.enabled:
            logger.info("[reconciler:start] polling disabled; not starting tick loop")
            return
        if self.running or self._token.cancelled:
            return
        logger.debug(
            "[reconciler:start] interval=%ss stale_threshold=%ss max_concurrent=%s",
            self.config.polling_interval, self.config.stale_threshold, self.config.max_concurrent_polls,
        )
        self._tick_task = asyncio.create_task(self._run())

    def stop(self) -> None:
        self._token.cancel("reconciler stopped")
        if self._tick_task is not None:
            self._tick_task.cancel()

    async def shutdown(self) -> None:
        """Stop ticking and wait for dispatched fetches to settle (results dropped)."""
        self.stop()
        pending = list(self._batch_tasks)
        if self._tick_task is not None:
            pending.append(self._tick_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tick_task = None

    async def drain(self) -> None:
        """Wait until every dispatched batch has been applied."""
        while self._batch_tasks:
            await asyncio.gather(*list(self._batch_tasks), return_exceptions=True)

    # ---------------- Polling -----------------
    async def _run(self) -> None:
        while not self._token.cancelled:
            await asyncio.sleep(self.config.polling_interval)
            try:
                self.tick()
            except Exception as exc:
                logger.error("[reconciler:tick] unexpected error err=%s", exc)

    def select_candidates(self) -> List[str]:
        """Stale PROCESSING jobs without a correction in flight, FIFO, capped to free slots."""
        slots = self.config.max_concurrent_polls - len(self._outstanding)
        if slots <= 0:
            return []
        now = self._clock()
        candidates: List[str] = []
        for record in self._store.records():
            if len(candidates) >= slots:
                break
            if record.status != JobStatus.processing:
                continue
            if record.in_flight_correction or record.id in self._outstanding:
                continue
            if record.age(now) >= self.config.stale_threshold:
                candidates.append(record.id)
        return candidates

    def tick(self) -> List[str]:
        """Run one reconciliation pass and return the job ids dispatched.

        Fetches run in a background task; the tick itself never waits for them.
        """
        if self._token.cancelled or not self.config.enabled:
            return []
        job_ids = self.select_candidates()
        if not job_ids:
            return []

        logger.info("[reconciler:tick] correcting %s stale job(s): %s", len(job_ids), job_ids)
        tokens: Dict[str, CancellationToken] = {}
        for job_id in job_ids:
            self._store.upsert(job_id, UpdateSource.local, in_flight_correction=True)
            self._outstanding.add(job_id)
            tokens[job_id] = self._job_tokens.get(job_id) or self._token.child()

        task = asyncio.create_task(self._correct_batch(tokens))
        self._batch_tasks.add(task)
        task.add_done_callback(self._batch_tasks.discard)
        return job_ids

    async def _correct_batch(self, tokens: Dict[str, CancellationToken]) -> None:
        results = await asyncio.gather(
            *(self._correct(job_id, token) for job_id, token in tokens.items()),
            return_exceptions=True,
        )
        for job_id, result in zip(tokens, results):
            if isinstance(result, BaseException):
                logger.error("[reconciler:fetch] unexpected error applying result job_id=%s err=%s", job_id, result)

    async def _correct(self, job_id: str, token: CancellationToken) -> None:
        snapshot: Optional[JobSnapshot] = None
        error: Optional[str] = None
        try:
            snapshot = await asyncio.wait_for(
                self._api.fetch_job(job_id, timeout=self.config.fetch_timeout),
                timeout=self.config.fetch_timeout,
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self.config.fetch_timeout}s"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        finally:
            self._outstanding.discard(job_id)

        if token.cancelled:
            logger.debug("[reconciler:fetch] discarding late result job_id=%s reason=%s", job_id, token.reason)
            return
        if job_id not in self._store:
            return

        if snapshot is None:
            logger.warning("[reconciler:fetch] corrective fetch failed job_id=%s err=%s", job_id, error)
            self._store.upsert(job_id, UpdateSource.local, in_flight_correction=False)
            return

        await self._apply_snapshot(job_id, snapshot)

    async def _apply_snapshot(self, job_id: str, snapshot: JobSnapshot) -> None:
        current = self._store.get(job_id)
        if current is None:
            return
        fields = {
            "status": snapshot.status,
            "correction_attempts": current.correction_attempts + 1,
            "in_flight_correction": False,
        }
        if snapshot.progress is not None:
            fields["last_known_progress"] = snapshot.progress
        if snapshot.message is not None:
            fields["message"] = snapshot.message

        updated = self._store.upsert(job_id, UpdateSource.poll, **fields)

        logger.debug(
            "[reconciler:fetch] corrected job_id=%s status=%s progress=%s attempts=%s",
            job_id, updated.status, updated.last_known_progress, updated.correction_attempts,
        )
        await self._notify_corrected(updated)
        if updated.is_in_terminal_state():
            await self._finish(job_id)

    async def _finish(self, job_id: str) -> None:
        token = self._job_tokens.pop(job_id, None)
        if token is not None:
            token.cancel("job finished")
        record = self._store.remove(job_id)
        if record is None:
            return
        logger.info("[reconciler:finish] job_id=%s status=%s source=%s", job_id, record.status, record.last_source)
        for observer in self._observers:
            try:
                await observer.on_job_finished(record.model_copy())
            except Exception as exc:
                logger.error(
                    "[observer:error] on_job_finished failed observer=%s job_id=%s error=%s",
                    type(observer).__name__, job_id, exc,
                )

    async def _notify_corrected(self, record: JobRecord) -> None:
        for observer in self._observers:
            try:
                await observer.on_job_corrected(record.model_copy())
            except Exception as exc:
                logger.error(
                    "[observer:error] on_job_corrected failed observer=%s job_id=%s error=%s",
                    type(observer).__name__, record.id, exc,
                )
