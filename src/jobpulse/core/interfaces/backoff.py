from typing import Protocol


class BackoffPort(Protocol):
    """Delay policy for re-probing an unreachable backend.

    Keeps the HealthMonitor decoupled from a specific library (tenacity/backoff).
    """
    def delay_for(self, consecutive_failures: int) -> float:  # pragma: no cover - protocol
        """Seconds to wait before the next probe after `consecutive_failures` misses.

        Args:
            consecutive_failures: Number of failed probes in a row (>= 1).
        Returns:
            Delay in seconds, never above the policy's ceiling.
        """
        ...
