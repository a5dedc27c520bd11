"""
In-process publish/subscribe hub for live cooking tips.

Each websocket connection owns one bounded ``asyncio.Queue``. Publishing is
fire-and-forget: a subscriber whose queue is full simply misses the message.

Limitations:
- Single process only
- No ordering or delivery guarantee across subscribers
"""
import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_TIP = "Add ingredients gradually for better mixing"
QUEUE_SIZE = 32


class TipChannel:
    def __init__(self, queue_size: int = QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @contextmanager
    def subscribe(self) -> Iterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug("Tip subscriber added (%d total)", len(self._subscribers))
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)
            logger.debug("Tip subscriber removed (%d left)", len(self._subscribers))

    def publish(self, message: Dict[str, Any]) -> int:
        """Offer ``message`` to every subscriber; returns how many accepted it."""
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug("Dropping tip for slow subscriber")
        return delivered


def tip_for(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Build the ``cooking-tip`` event answering a ``cooking-assistance`` request."""
    event: Dict[str, Any] = {"event": "cooking-tip", "tip": DEFAULT_TIP}
    data = data or {}
    if data.get("recipe_id") is not None:
        event["recipe_id"] = data["recipe_id"]
    if data.get("step") is not None:
        event["step"] = data["step"]
    return event


_channel: Optional[TipChannel] = None


def get_tip_channel() -> TipChannel:
    global _channel
    if _channel is None:
        _channel = TipChannel()
    return _channel
