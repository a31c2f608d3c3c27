"""
Discovery event publishing
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List

from .models import DiscoveryEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[DiscoveryEvent], object]


class DiscoveryEvents:
    """Subscriber registry; callbacks may be plain functions or coroutines"""

    def __init__(self):
        self._subscribers: List[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register callback, returns a function that removes it again"""
        self._subscribers.append(callback)

        def unsubscribe():
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: EventCallback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def emit(self, event: DiscoveryEvent):
        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Discovery event callback failed ({event.type.value}): {e}")


class EventHistory:
    """Keeps the most recent events for the status API"""

    def __init__(self, max_events: int = 50):
        self._events: Deque[DiscoveryEvent] = deque(maxlen=max_events)

    def __call__(self, event: DiscoveryEvent):
        self._events.append(event)

    def recent(self) -> List[DiscoveryEvent]:
        return list(self._events)
