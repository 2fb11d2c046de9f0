from tenacity import RetryCallState, wait_exponential


class TenacityBackoffAdapter:
    """Tenacity-based backoff adapter implementing BackoffPort.

    Reuses tenacity's `wait_exponential` so the delay after the n-th failure is
    ``min(base_delay * 2 ** (n - 1), max_delay)``: 30, 60, 120, 240, 240, ...
    with the defaults. Tenacity only reads `attempt_number` from the call
    state, so a bare RetryCallState stands in for a real retry loop.
    """

    def __init__(self, base_delay: float = 30.0, max_delay: float = 240.0) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._wait = wait_exponential(multiplier=base_delay, max=max_delay)

    def delay_for(self, consecutive_failures: int) -> float:
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        state.attempt_number = max(1, consecutive_failures)
        return float(self._wait(state))
