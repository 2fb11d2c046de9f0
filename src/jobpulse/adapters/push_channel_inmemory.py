"""In-memory implementation of PushChannelPort.

Fan-out publisher used by the web adapter (`POST /events`) and by tests. A
real deployment would replace it with an adapter around the backend's
websocket stream; the engine only sees the port.
"""
from __future__ import annotations

import inspect
import logging
from typing import List

from jobpulse.core.interfaces.push_channel import (
    PushChannelPort,
    PushEventHandler,
    RawOrParsedEvent,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class InMemoryPushChannel(PushChannelPort):
    def __init__(self) -> None:
        self._handlers: List[PushEventHandler] = []
        self.published = 0

    def subscribe(self, handler: PushEventHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: RawOrParsedEvent) -> None:
        """Deliver `event` to every subscriber in subscription order.

        A failing subscriber is logged and does not prevent delivery to the rest.
        """
        self.published += 1
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error(f"[push:error] subscriber failed handler={handler!r} error={exc}")
