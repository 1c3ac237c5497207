# driver_onboarding/realtime.py
import asyncio
import json
import logging
from typing import AsyncIterator, Set

logger = logging.getLogger(__name__)

# frames a slow reviewer may fall behind before events are dropped for them
SUBSCRIBER_BACKLOG = 100


class _Hub:
    """
    Onboarding change feed for the review console (server-sent events).
    Every open feed has its own queue; with nobody listening, events go nowhere.
    """

    def __init__(self, backlog: int = SUBSCRIBER_BACKLOG) -> None:
        self._backlog = backlog
        self._subscribers: Set["asyncio.Queue[str]"] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: str, payload: dict) -> None:
        data = json.dumps(payload, ensure_ascii=False)
        # SSE frame: event: <name>\ndata: <json>\n\n
        msg = f"event: {event}\ndata: {data}\n\n"
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(msg)
            except asyncio.QueueFull:
                logger.warning("event feed subscriber is behind, dropped %s", event)

    async def subscribe(self) -> AsyncIterator[str]:
        """
        Async generator of SSE frames published after the call.
        """
        queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=self._backlog)
        self._subscribers.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)


hub = _Hub()
