from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from datetime import datetime, timezone
from enum import StrEnum


class JobStatus(StrEnum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        """Coerce a remote status string, accepting legacy aliases."""
        if isinstance(value, JobStatus):
            return value
        key = str(value).strip().lower()
        return cls(_STATUS_ALIASES.get(key, key))

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Older backends report "pending" for jobs waiting in the queue
_STATUS_ALIASES = {"pending": "queued", "running": "processing"}

TERMINAL_STATUSES = frozenset({JobStatus.completed, JobStatus.failed})


class UpdateSource(StrEnum):
    push = "push"
    poll = "poll"
    local = "local"

    @property
    def is_authoritative(self) -> bool:
        return self is not UpdateSource.local


class JobSnapshot(BaseModel):
    """Status body returned by `GET /jobs/{id}`.

    Unknown fields are kept (`extra="allow"`) so callers receiving the snapshot
    through an observer still see whatever else the backend reported.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    status: JobStatus
    progress: Optional[float] = Field(default=None, ge=0)
    message: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> JobStatus:
        return JobStatus.parse(value)


class JobRecord(BaseModel):
    """Last known state of one tracked job.

    Notes:
    - `last_update_time` only moves on authoritative writes (push event or
      corrective fetch result); local bookkeeping such as toggling
      `in_flight_correction` leaves it untouched.
    - `last_update_time` is always the local arrival time, so writes from
      different channels are ordered by arrival. `last_event_time` keeps the
      producer timestamp of the latest push event and only orders push events
      against each other.
    - `last_known_progress` is the most recently written value, not the
      largest one seen.
    """

    id: str
    status: JobStatus = JobStatus.queued
    last_known_progress: float = 0.0
    last_update_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correction_attempts: int = 0
    in_flight_correction: bool = False
    message: Optional[str] = None
    last_source: UpdateSource = UpdateSource.local
    registered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_event_time: Optional[datetime] = None

    def is_in_terminal_state(self) -> bool:
        return self.status.is_terminal

    def age(self, now: datetime) -> float:
        """Seconds since the last trusted update."""
        return (now - self.last_update_time).total_seconds()
