"""HealthMonitor: cheap synchronous answer to "is the backend reachable?".

State machine::

    Healthy --(probe fails)--> Unhealthy --(probe succeeds)--> Healthy

While healthy nothing is scheduled; probing is reactive (push-channel
connectivity loss, manual retry). While unhealthy exactly one timer is kept
armed with an exponential backoff delay from the BackoffPort. A
connectivity-restored signal from the push channel is taken as presumptive
evidence of health and short-circuits the probe cycle.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Set

from jobpulse.adapters.backoff_tenacity import TenacityBackoffAdapter
from jobpulse.core.config import HealthMonitorConfig
from jobpulse.core.interfaces.api_client import ApiClientPort
from jobpulse.core.interfaces.backoff import BackoffPort
from jobpulse.core.interfaces.observers import HealthObserver
from jobpulse.core.models.events import ConnectionHealthChangedEvent
from jobpulse.core.models.health import HealthState
from jobpulse.core.settings import logger
from jobpulse.core.utils.cancellation import CancellationToken
from jobpulse.core.utils.clock import Clock, utc_now


class HealthMonitor:
    def __init__(
        self,
        api_client: ApiClientPort,
        config: Optional[HealthMonitorConfig] = None,
        backoff: Optional[BackoffPort] = None,
        observers: Optional[List[HealthObserver]] = None,
        token: Optional[CancellationToken] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._api = api_client
        self.config = config or HealthMonitorConfig()
        self._backoff = backoff or TenacityBackoffAdapter(
            base_delay=self.config.base_delay, max_delay=self.config.max_delay
        )
        self._observers = observers or []
        self._token = token or CancellationToken()
        self._clock = clock
        self._state = HealthState()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    # ---------------- Read accessors -----------------
    @property
    def state(self) -> HealthState:
        return self._state.model_copy()

    @property
    def healthy(self) -> bool:
        return self._state.healthy

    @property
    def has_pending_check(self) -> bool:
        return self._timer is not None

    # ---------------- Lifecycle -----------------
    def start(self) -> None:
        """Kick off the initial reachability check."""
        logger.debug("[health:start] initial probe")
        self._spawn_probe()

    def stop(self) -> None:
        self._token.cancel("health monitor stopped")
        self._cancel_timer()

    async def shutdown(self) -> None:
        """Stop and wait for an outstanding probe to settle (its result is dropped)."""
        self.stop()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ---------------- Probing -----------------
    async def probe(self) -> HealthState:
        """Issue one health request unless one is already outstanding."""
        if self._token.cancelled:
            return self.state
        if self._state.checking:
            logger.debug("[health:probe] probe already in flight; skipping")
            return self.state

        self._state.checking = True
        ok = False
        try:
            ok = await asyncio.wait_for(
                self._api.check_health(timeout=self.config.probe_timeout),
                timeout=self.config.probe_timeout,
            )
            if not ok:
                logger.debug("[health:probe] backend answered with non-200 status")
        except asyncio.TimeoutError:
            logger.debug("[health:probe] timed out after %ss", self.config.probe_timeout)
        except Exception as exc:
            logger.debug("[health:probe] request failed err=%s", exc)
        finally:
            if not self._token.cancelled:
                self._state.checking = False

        if self._token.cancelled:
            logger.debug("[health:probe] monitor stopped; discarding probe result ok=%s", ok)
            return self.state

        self._state.last_checked = self._clock()
        if ok:
            await self._mark_healthy(reason="probe succeeded")
        else:
            await self._mark_unhealthy()
        return self.state

    async def retry_now(self) -> HealthState:
        """User-initiated retry: drop any scheduled probe and check immediately."""
        self._cancel_timer()
        return await self.probe()

    async def handle_connection_event(self, event: ConnectionHealthChangedEvent) -> None:
        """React to a `connection_health_changed` event from the push channel."""
        if self._token.cancelled:
            return
        if event.is_degraded:
            logger.debug(
                "[health:signal] push channel degraded healthy=%s connected=%s; probing",
                event.healthy, event.connected,
            )
            self._spawn_probe()
            return
        logger.debug("[health:signal] push channel recovered; assuming backend healthy")
        await self._mark_healthy(reason="push channel recovered")

    # ---------------- State transitions -----------------
    async def _mark_healthy(self, reason: str) -> None:
        was_healthy = self._state.healthy
        self._state.healthy = True
        self._state.consecutive_failures = 0
        self._cancel_timer()
        if not was_healthy:
            logger.info("[health] backend reachable again (%s)", reason)
            await self._notify()

    async def _mark_unhealthy(self) -> None:
        was_healthy = self._state.healthy
        self._state.healthy = False
        self._state.consecutive_failures += 1
        self._schedule_next_check()
        if was_healthy:
            logger.warning(
                "[health] backend unreachable; next probe in %ss", self._state.next_check_delay
            )
            await self._notify()
        else:
            logger.debug(
                "[health] still unreachable failures=%s next_probe_in=%ss",
                self._state.consecutive_failures,
                self._state.next_check_delay,
            )

    def _schedule_next_check(self) -> None:
        self._cancel_timer()
        delay = self._backoff.delay_for(self._state.consecutive_failures)
        self._state.next_check_delay = delay
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._state.next_check_delay = None
        if self._token.cancelled:
            return
        self._spawn_probe()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._state.next_check_delay = None

    def _spawn_probe(self) -> None:
        if self._token.cancelled:
            return
        task = asyncio.create_task(self.probe())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _notify(self) -> None:
        snapshot = self.state
        for observer in self._observers:
            try:
                await observer.on_health_changed(snapshot)
            except Exception as exc:
                logger.error(
                    "[observer:error] on_health_changed failed observer=%s error=%s",
                    type(observer).__name__, exc,
                )
