"""Concrete observer implementations.

- CallbackJobObserver: adapts plain callables to the JobStatusObserver protocol
- JobEventLogObserver: keeps a bounded in-memory log of job outcomes
- HealthBannerObserver: tracks the text a UI would show while the backend is down
"""

import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from jobpulse.core.models.health import HealthState
from jobpulse.core.models.job import JobRecord


logger = logging.getLogger(__name__)

RecordCallback = Callable[[JobRecord], Union[Awaitable[None], None]]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class CallbackJobObserver:
    """Forwards reconciler results to caller-supplied callbacks (sync or async)."""

    def __init__(
        self,
        on_corrected: Optional[RecordCallback] = None,
        on_finished: Optional[RecordCallback] = None,
    ):
        self._on_corrected = on_corrected
        self._on_finished = on_finished

    async def on_job_corrected(self, record: JobRecord) -> None:
        if self._on_corrected is not None:
            await _maybe_await(self._on_corrected(record))

    async def on_job_finished(self, record: JobRecord) -> None:
        if self._on_finished is not None:
            await _maybe_await(self._on_finished(record))


class JobEventLogObserver:
    """Records corrections and completions for the diagnostics endpoint.

    Only the most recent `max_entries` events are kept.
    """

    def __init__(self, max_entries: int = 200):
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=max_entries)

    async def on_job_corrected(self, record: JobRecord) -> None:
        self._append("corrected", record)
        logger.debug(
            f"[observer:log] corrected job_id={record.id} status={record.status} "
            f"attempts={record.correction_attempts}"
        )

    async def on_job_finished(self, record: JobRecord) -> None:
        self._append("finished", record)
        logger.debug(f"[observer:log] finished job_id={record.id} status={record.status}")

    def entries(self) -> List[Dict[str, Any]]:
        return list(self._entries)

    def _append(self, kind: str, record: JobRecord) -> None:
        self._entries.append(
            {
                "event": kind,
                "job_id": record.id,
                "status": str(record.status),
                "progress": record.last_known_progress,
                "source": str(record.last_source),
                "at": record.last_update_time.isoformat(),
            }
        )


class HealthBannerObserver:
    """Holds the banner a UI should display; None while the backend is reachable."""

    def __init__(self):
        self.banner: Optional[str] = None

    async def on_health_changed(self, state: HealthState) -> None:
        if state.healthy:
            self.banner = None
            logger.info("[observer:banner] backend reachable; banner cleared")
            return
        self.banner = "Connection to the server was lost. Retrying automatically."
        if state.next_check_delay is not None:
            self.banner += f" Next attempt in {int(state.next_check_delay)}s."
        logger.info(f"[observer:banner] {self.banner}")
