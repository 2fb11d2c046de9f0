"""JobStatusStore: in-memory bookkeeping of tracked jobs.

Plain dict keyed by job id. Insertion order is preserved and doubles as the
reconciler's FIFO priority: earliest-registered jobs are corrected first.
All access happens on the event loop thread, so no lock is needed.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from jobpulse.core.models.job import JobRecord, JobStatus, UpdateSource
from jobpulse.core.settings import logger
from jobpulse.core.utils.clock import Clock, ensure_aware, utc_now

# Managed by the store itself; callers cannot overwrite them through upsert
_PROTECTED_FIELDS = frozenset(
    {"id", "last_update_time", "last_source", "registered_at", "last_event_time"}
)


class JobStatusStore:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._records: Dict[str, JobRecord] = {}
        self._clock = clock

    def get(self, job_id: str) -> Optional[JobRecord]:
        record = self._records.get(job_id)
        return record.model_copy() if record else None

    def upsert(
        self,
        job_id: str,
        source: UpdateSource,
        event_time: Optional[datetime] = None,
        **fields: Any,
    ) -> Optional[JobRecord]:
        """Merge `fields` into the record for `job_id`, creating it if absent.

        Authoritative sources (push, poll) stamp `last_update_time` with the
        local clock, so writes across channels are ordered by arrival. Local
        updates never touch it.

        `event_time` is the producer timestamp of a push event. A non-terminal
        push whose `event_time` is older than the last push event already
        applied arrived out of order; it is dropped and None is returned.
        Terminal statuses are always applied.
        """
        for name in fields:
            if name in _PROTECTED_FIELDS or name not in JobRecord.model_fields:
                raise ValueError(f"Field cannot be set through upsert: {name}")
        if "status" in fields:
            fields["status"] = JobStatus.parse(fields["status"])
        if event_time is not None:
            event_time = ensure_aware(event_time)

        now = self._clock()
        record = self._records.get(job_id)
        if record is None:
            record = JobRecord(
                id=job_id,
                last_update_time=now,
                registered_at=now,
                last_source=source,
            )
            self._records[job_id] = record
        elif self._is_stale_push(record, source, event_time, fields.get("status")):
            logger.debug(
                "[store] dropping out-of-order push job_id=%s event_time=%s last_event_time=%s",
                job_id, event_time.isoformat(), record.last_event_time.isoformat(),
            )
            return None
        elif source.is_authoritative:
            record.last_update_time = now
            record.last_source = source

        if source is UpdateSource.push and event_time is not None:
            record.last_event_time = event_time
        for name, value in fields.items():
            setattr(record, name, value)
        return record.model_copy()

    @staticmethod
    def _is_stale_push(
        record: JobRecord,
        source: UpdateSource,
        event_time: Optional[datetime],
        status: Optional[JobStatus],
    ) -> bool:
        if source is not UpdateSource.push or event_time is None or record.last_event_time is None:
            return False
        if status is not None and status.is_terminal:
            return False
        return event_time < record.last_event_time

    def remove(self, job_id: str) -> Optional[JobRecord]:
        return self._records.pop(job_id, None)

    def records(self) -> List[JobRecord]:
        """Copies of all records in insertion order."""
        return [r.model_copy() for r in self._records.values()]

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    def __len__(self) -> int:
        return len(self._records)
