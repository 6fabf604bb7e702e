"""
Sync Events - in-process fan-out of sync progress to UI listeners
"""
import asyncio
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

SYNC_PROGRESS = "sync-progress"
SYNC_COMPLETE = "sync-complete"


class SyncEventBroker:
    """
    Each subscriber gets its own bounded queue. A slow listener loses
    events instead of stalling the sync pass.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: List[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, data: Dict[str, Any]) -> None:
        message = {"event": event, "data": data}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.debug(f"Dropping {event} for a slow listener")


# Global broker shared by the scheduler and the API
_broker = None


def get_event_broker() -> SyncEventBroker:
    global _broker
    if _broker is None:
        _broker = SyncEventBroker()
    return _broker
