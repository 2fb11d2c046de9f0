from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Union

from jobpulse.core.models.events import PushEvent

RawOrParsedEvent = Union[PushEvent, Mapping[str, Any]]
PushEventHandler = Callable[[RawOrParsedEvent], Union[Awaitable[None], None]]
Unsubscribe = Callable[[], None]


class PushChannelPort(ABC):
    """Best-effort event stream of job progress and connectivity changes.

    The channel owns its transport and reconnect logic. Subscribers receive
    events in the order the channel delivers them, which is not necessarily
    the order the backend produced them.
    """

    @abstractmethod
    def subscribe(self, handler: PushEventHandler) -> Unsubscribe:
        """Register a handler and return a callable that removes it again."""
        raise NotImplementedError
