"""NotificationDispatcher: pushes resolved answers to the requester's session."""

from __future__ import annotations

import logging

from frontdesk.core.protocols import IEventPublisher, IRealtimeChannel
from frontdesk.escalation.replies import format_answer
from frontdesk.escalation.soft_state import DedupLedger, ResponseCache
from frontdesk.models.events import (
    DeliveryChannel,
    EscalationEvent,
    RequestExpired,
    RequestResolved,
    ResponseDelivered,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Listens on the event channel and delivers each answer at most once."""

    def __init__(
        self,
        *,
        channel: IRealtimeChannel,
        ledger: DedupLedger,
        cache: ResponseCache,
        events: IEventPublisher | None = None,
        session_prefix: str = "call-",
    ) -> None:
        self._channel = channel
        self._ledger = ledger
        self._cache = cache
        self._events = events
        self._session_prefix = session_prefix

    def session_key(self, requester_id: str) -> str:
        return f"{self._session_prefix}{requester_id}"

    async def __call__(self, event: EscalationEvent) -> None:
        if isinstance(event, RequestResolved):
            await self.on_resolved(event)
        elif isinstance(event, RequestExpired):
            self.on_expired(event)

    async def on_resolved(self, event: RequestResolved) -> bool:
        """Push the answer unless some path already delivered it.

        The ledger mark is taken before the push so concurrent notifications
        for the same request push once. A failed push gives the mark back and
        leaves the answer cached, so the next message or poll surfaces it.
        """
        if not self._ledger.mark_delivered(event.requester_id, event.id):
            logger.info("Help request %s response already delivered to %s; skipping push",
                        event.id, event.requester_id)
            return False

        self._cache.put(
            event.requester_id,
            answer=event.answer,
            request_id=event.id,
            question=event.question,
            resolved_at=event.occurred_at,
        )
        session = self.session_key(event.requester_id)
        sent = await self._channel.push(session, format_answer(event.answer))
        if not sent:
            self._ledger.release(event.requester_id, event.id)
            logger.warning("Failed to push supervisor response for %s to %s; left for the next message or poll",
                           event.id, session)
            return False

        logger.info("Supervisor response for %s sent to %s", event.id, session)
        if self._events is not None:
            self._events.publish(ResponseDelivered(
                id=event.id, requester_id=event.requester_id, channel=DeliveryChannel.PUSH,
            ))
        return True

    def on_expired(self, event: RequestExpired) -> None:
        # Nothing to deliver; close the ledger so no path surfaces this request.
        self._ledger.mark_delivered(event.requester_id, event.id)
        logger.info("Help request %s for %r expired (requester %s)",
                    event.id, event.question, event.requester_id)
