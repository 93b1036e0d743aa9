"""Protocol interfaces for the collaborators the escalation core consumes.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry


# ---------------------------------------------------------------------------
# Persistence: Help Requests
# ---------------------------------------------------------------------------

@runtime_checkable
class IHelpRequestStore(Protocol):
    """Relational-style store for help requests with check-and-set transitions."""

    async def get(self, request_id: str) -> HelpRequest | None: ...

    async def create_pending(self, request: HelpRequest) -> tuple[HelpRequest, bool]: ...

    async def find_pending(self, requester_id: str, question: str) -> HelpRequest | None: ...

    async def transition(
        self,
        request_id: str,
        *,
        expected: HelpRequestStatus,
        status: HelpRequestStatus,
        resolved_at: datetime,
        answer: str | None = None,
    ) -> HelpRequest | None: ...

    async def link_knowledge_entry(self, request_id: str, entry_id: str) -> None: ...

    async def list_resolved_since(self, requester_id: str, since: datetime) -> list[HelpRequest]: ...

    async def list_stale_pending(self, cutoff: datetime) -> list[HelpRequest]: ...

    async def list_requests(self, status: HelpRequestStatus | None = None) -> list[HelpRequest]: ...


# ---------------------------------------------------------------------------
# Persistence: Knowledge Base
# ---------------------------------------------------------------------------

@runtime_checkable
class IKnowledgeStore(Protocol):
    """Store of learned and curated question/answer pairs."""

    async def add(self, entry: KnowledgeEntry) -> KnowledgeEntry: ...

    async def list_entries(self) -> list[KnowledgeEntry]: ...

    async def delete(self, entry_id: str) -> bool: ...


# ---------------------------------------------------------------------------
# Real-time Channel
# ---------------------------------------------------------------------------

@runtime_checkable
class IRealtimeChannel(Protocol):
    """Fire-and-forget delivery to a named session."""

    async def push(self, session_key: str, payload: str) -> bool: ...


# ---------------------------------------------------------------------------
# Event Stream
# ---------------------------------------------------------------------------

@runtime_checkable
class IEventPublisher(Protocol):
    """Sink for lifecycle events; publishing never blocks."""

    def publish(self, event: Any) -> None: ...
