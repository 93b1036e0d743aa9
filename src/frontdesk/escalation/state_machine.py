"""HelpRequestStateMachine: owns the help request lifecycle.

    pending -> resolved     (reviewer answer; terminal)
    pending -> unresolved   (timeout; terminal)

Transitions are conditional writes on the current status, so a reviewer
resolution racing a timeout sweep on the same request has exactly one winner.
Side effects are published as events; delivery is someone else's job.
"""

from __future__ import annotations

import logging

from frontdesk.core.exceptions import HelpRequestNotFoundError, RequestClosedError, StoreUnavailableError
from frontdesk.core.protocols import IEventPublisher, IHelpRequestStore
from frontdesk.core.types import Clock, utcnow
from frontdesk.escalation.knowledge import KnowledgeBase
from frontdesk.models.events import RequestCreated, RequestExpired, RequestResolved
from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry, KnowledgeSource
from frontdesk.models.outcomes import CreateOutcome, ResolveOutcome

logger = logging.getLogger(__name__)


class HelpRequestStateMachine:
    """The only component allowed to mutate help requests."""

    def __init__(
        self,
        *,
        store: IHelpRequestStore,
        knowledge: KnowledgeBase,
        events: IEventPublisher,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._knowledge = knowledge
        self._events = events
        self._clock = clock

    async def get(self, request_id: str) -> HelpRequest:
        request = await self._store.get(request_id)
        if request is None:
            raise HelpRequestNotFoundError(request_id)
        return request

    async def list_requests(self, status: HelpRequestStatus | None = None) -> list[HelpRequest]:
        return await self._store.list_requests(status)

    async def create(self, question: str, requester_id: str) -> CreateOutcome:
        """Open a pending request unless an identical one is already pending."""
        requester_id = str(requester_id).strip()
        candidate = HelpRequest(question=question, requester_id=requester_id, created_at=self._clock())
        request, created = await self._store.create_pending(candidate)
        if not created:
            logger.info("Pending help request %s already covers %r for %s",
                        request.id, question, requester_id)
            return CreateOutcome(request=request, created=False)

        logger.info('Hey, I need help answering: "%s" (requester %s)', question, requester_id)
        self._events.publish(RequestCreated(
            id=request.id, requester_id=requester_id, question=question,
        ))
        return CreateOutcome(request=request, created=True)

    async def resolve(self, request_id: str, answer: str) -> ResolveOutcome:
        """Record the reviewer's answer; a second resolution is a no-op."""
        current = await self.get(request_id)
        if current.status is HelpRequestStatus.RESOLVED:
            logger.info("Help request %s already resolved; keeping the first answer", request_id)
            entry = None
            if current.knowledge_entry_id is None:
                # An earlier resolution could not record its knowledge entry.
                current, entry = await self._learn(current)
            return ResolveOutcome(request=current, already_resolved=True, knowledge_entry=entry)
        if current.status is HelpRequestStatus.UNRESOLVED:
            raise RequestClosedError(request_id, current.status.value)

        updated = await self._store.transition(
            request_id,
            expected=HelpRequestStatus.PENDING,
            status=HelpRequestStatus.RESOLVED,
            resolved_at=self._clock(),
            answer=answer,
        )
        if updated is None:
            # Lost the check-and-set to another resolution or to the timeout sweep.
            latest = await self.get(request_id)
            if latest.status is HelpRequestStatus.RESOLVED:
                return ResolveOutcome(request=latest, already_resolved=True)
            raise RequestClosedError(request_id, latest.status.value)

        logger.info("Help request %s resolved for %s", request_id, updated.requester_id)
        self._events.publish(RequestResolved(
            id=updated.id,
            requester_id=updated.requester_id,
            question=updated.question,
            answer=answer,
        ))
        updated, entry = await self._learn(updated)
        return ResolveOutcome(request=updated, knowledge_entry=entry)

    async def _learn(self, request: HelpRequest) -> tuple[HelpRequest, KnowledgeEntry | None]:
        """Record a resolved answer in the knowledge base and link it.

        A store failure is logged and leaves the request unlinked; the next
        resolve call for the same request retries.
        """
        try:
            entry = await self._knowledge.add(request.question, request.answer, KnowledgeSource.REVIEWER)
            await self._store.link_knowledge_entry(request.id, entry.id)
        except StoreUnavailableError:
            logger.exception("Could not add help request %s to the knowledge base", request.id)
            return request, None
        return request.model_copy(update={"knowledge_entry_id": entry.id}), entry

    async def expire(self, request_id: str) -> HelpRequest | None:
        """Close a still-pending request as unresolved. No-op otherwise."""
        updated = await self._store.transition(
            request_id,
            expected=HelpRequestStatus.PENDING,
            status=HelpRequestStatus.UNRESOLVED,
            resolved_at=self._clock(),
        )
        if updated is None:
            return None
        logger.info('Help request auto-marked as unresolved (timeout): "%s" (requester %s)',
                    updated.question, updated.requester_id)
        self._events.publish(RequestExpired(
            id=updated.id, requester_id=updated.requester_id, question=updated.question,
        ))
        return updated
