"""Fan-out event channel between the state machine and its listeners."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from frontdesk.models.events import EscalationEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[EscalationEvent], Awaitable[object]]


class EventChannel:
    """Delivers every published event to each subscriber's own queue.

    Publishing never blocks and never fails because of a slow subscriber.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[EscalationEvent]] = []

    def subscribe(self) -> asyncio.Queue[EscalationEvent]:
        queue: asyncio.Queue[EscalationEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[EscalationEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event: EscalationEvent) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)


async def pump(queue: asyncio.Queue[EscalationEvent], handler: EventHandler) -> None:
    """Feed queued events to ``handler`` until cancelled.

    A failing handler is logged; the pump keeps going.
    """
    while True:
        event = await queue.get()
        try:
            await handler(event)
        except Exception:
            logger.exception("Event handler failed for %s %s", event.kind, event.id)
        finally:
            queue.task_done()


class EventLogger:
    """Audit subscriber: writes each lifecycle event to the log."""

    async def __call__(self, event: EscalationEvent) -> None:
        logger.info("[EVENT] %s %s", event.kind, event.model_dump_json())
