"""EscalationCoordinator: the facade behind every requester-facing path.

Message handling tries, in order: the knowledge base, the response cache,
a recently resolved request, and finally escalation to a human reviewer.
Knowledge before escalation keeps reviewers out of answerable questions,
cache before store keeps polling cheap, and delivery is de-duplicated by
request id rather than by answer text.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from frontdesk.core.config import EscalationConfig
from frontdesk.core.exceptions import StoreUnavailableError
from frontdesk.core.protocols import IEventPublisher, IHelpRequestStore
from frontdesk.core.types import Clock, utcnow
from frontdesk.escalation import replies
from frontdesk.escalation.knowledge import KnowledgeBase
from frontdesk.escalation.soft_state import DedupLedger, ResponseCache
from frontdesk.escalation.state_machine import HelpRequestStateMachine
from frontdesk.models.events import DeliveryChannel, ResponseDelivered
from frontdesk.models.help_request import HelpRequest
from frontdesk.models.outcomes import PollResult

logger = logging.getLogger(__name__)


class EscalationCoordinator:
    def __init__(
        self,
        *,
        store: IHelpRequestStore,
        state_machine: HelpRequestStateMachine,
        knowledge: KnowledgeBase,
        cache: ResponseCache,
        ledger: DedupLedger,
        config: EscalationConfig | None = None,
        events: IEventPublisher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._state_machine = state_machine
        self._knowledge = knowledge
        self._cache = cache
        self._ledger = ledger
        self._config = config or EscalationConfig()
        self._events = events
        self._clock = clock

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    async def handle(self, requester_id: str, message: str) -> str:
        requester_id = str(requester_id).strip()
        status_check = replies.is_status_check(message)

        if not status_check:
            answer = self._knowledge.lookup(message)
            if answer is not None:
                return answer

        # A cached answer may still be undelivered when its push failed.
        cached = self._cache.get(requester_id)
        if cached is not None and self._claim(requester_id, cached.request_id, DeliveryChannel.MESSAGE):
            logger.info("Delivering cached supervisor response %s to %s", cached.request_id, requester_id)
            return replies.format_answer(cached.answer)

        window = self._config.status_check_window_seconds if status_check else self._config.ambient_window_seconds
        try:
            recent = await self._store.list_resolved_since(
                requester_id, self._clock() - timedelta(seconds=window),
            )
        except StoreUnavailableError:
            logger.exception("Error checking for supervisor responses for %s", requester_id)
            recent = []

        fresh = self._claim_first_undelivered(requester_id, recent, DeliveryChannel.MESSAGE)
        if fresh is not None:
            logger.info("Found supervisor response for %s: %s", requester_id, fresh.answer)
            return replies.format_answer(fresh.answer)

        if status_check:
            return replies.ALREADY_DELIVERED if recent or cached is not None else replies.NO_SUPERVISOR_RESPONSE

        try:
            outcome = await self._state_machine.create(message, requester_id)
        except StoreUnavailableError:
            logger.exception("Error creating help request for %s", requester_id)
            return replies.FALLBACK
        if not outcome.created:
            return replies.WAITING_FOR_SUPERVISOR
        return replies.CHECKING_WITH_SUPERVISOR.format(question=message)

    def _claim(self, requester_id: str, request_id: str, channel: DeliveryChannel) -> bool:
        """Mark a request delivered to the requester; only the first caller wins."""
        if not self._ledger.mark_delivered(requester_id, request_id):
            return False
        if self._events is not None:
            self._events.publish(ResponseDelivered(id=request_id, requester_id=requester_id, channel=channel))
        return True

    def _claim_first_undelivered(
        self, requester_id: str, resolved: list[HelpRequest], channel: DeliveryChannel,
    ) -> HelpRequest | None:
        for request in resolved:
            if request.answer is None:
                continue
            if self._claim(requester_id, request.id, channel):
                self._cache.put(
                    requester_id,
                    answer=request.answer,
                    request_id=request.id,
                    question=request.question,
                    resolved_at=request.resolved_at,
                )
                return request
        return None

    # ------------------------------------------------------------------
    # Poll paths
    # ------------------------------------------------------------------

    async def poll_response(self, requester_id: str) -> PollResult:
        """Dedicated poll endpoint."""
        return await self._poll(requester_id, self._config.poll_window_seconds, DeliveryChannel.POLL)

    async def poll_webhook(self, requester_id: str) -> PollResult:
        """Webhook-style poll endpoint."""
        return await self._poll(requester_id, self._config.webhook_window_seconds, DeliveryChannel.WEBHOOK)

    async def _poll(self, requester_id: str, window_seconds: int, channel: DeliveryChannel) -> PollResult:
        requester_id = normalize_requester_id(requester_id)

        # Repeat polls inside the cache TTL see the same answer and request id,
        # which is what clients de-duplicate on.
        cached = self._cache.get(requester_id)
        if cached is not None:
            self._claim(requester_id, cached.request_id, channel)
            return PollResult(
                found=True,
                answer=cached.answer,
                question=cached.question,
                request_id=cached.request_id,
                resolved_at=cached.resolved_at,
                from_cache=True,
            )

        try:
            recent = await self._store.list_resolved_since(
                requester_id, self._clock() - timedelta(seconds=window_seconds),
            )
        except StoreUnavailableError:
            logger.exception("Poll for %s degraded to not-found", requester_id)
            return PollResult(found=False)

        fresh = self._claim_first_undelivered(requester_id, recent, channel)
        if fresh is None:
            return PollResult(found=False)
        logger.info("Found supervisor response for %s: %s", requester_id, fresh.answer)
        return PollResult(
            found=True,
            answer=fresh.answer,
            question=fresh.question,
            request_id=fresh.id,
            resolved_at=fresh.resolved_at,
        )


def normalize_requester_id(requester_id: str) -> str:
    """Strip the `caller-` participant prefix some clients send along with the id."""
    requester_id = str(requester_id).strip()
    if requester_id.startswith("caller-"):
        requester_id = requester_id[len("caller-"):]
    return requester_id
