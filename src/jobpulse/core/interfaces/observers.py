"""Observer protocols for job and backend state transitions.

Observers are how the caller learns about state it did not write itself:
corrective fetch results, jobs leaving tracking, and health flips that should
drive a "backend unreachable" banner.
"""

from typing import Protocol

from jobpulse.core.models.health import HealthState
from jobpulse.core.models.job import JobRecord


class JobStatusObserver(Protocol):
    """Observer protocol for job record updates.

    - on_job_corrected: after a corrective fetch result was applied
    - on_job_finished: once, when a job leaves tracking in a terminal state

    Records handed to observers are copies; mutating them has no effect on
    the store.
    """

    async def on_job_corrected(self, record: JobRecord) -> None:
        """Called after a corrective fetch updated the job.

        Args:
            record: Updated record (may already be terminal)
        """
        ...

    async def on_job_finished(self, record: JobRecord) -> None:
        """Called after a job reached COMPLETED or FAILED and was untracked.

        Args:
            record: Final record
        """
        ...


class HealthObserver(Protocol):
    """Observer protocol for backend reachability changes."""

    async def on_health_changed(self, state: HealthState) -> None:
        """Called whenever `healthy` flips.

        Args:
            state: Snapshot of the new HealthState
        """
        ...
