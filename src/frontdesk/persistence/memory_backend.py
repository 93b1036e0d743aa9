"""In-memory backends: the default for local runs and the unit-test fakes.

Each operation completes without suspending, so a check-and-set is atomic
with respect to other coroutines on the same event loop.
"""

from __future__ import annotations

from datetime import datetime

from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry


class MemoryHelpRequestStore:
    """Dict-backed IHelpRequestStore."""

    def __init__(self) -> None:
        self._requests: dict[str, HelpRequest] = {}

    def _pending_match(self, requester_id: str, question: str) -> HelpRequest | None:
        for request in self._requests.values():
            if (
                request.is_pending
                and request.requester_id == requester_id
                and request.question == question
            ):
                return request
        return None

    async def get(self, request_id: str) -> HelpRequest | None:
        request = self._requests.get(request_id)
        return request.model_copy() if request else None

    async def create_pending(self, request: HelpRequest) -> tuple[HelpRequest, bool]:
        existing = self._pending_match(request.requester_id, request.question)
        if existing is not None:
            return existing.model_copy(), False
        self._requests[request.id] = request.model_copy()
        return request, True

    async def find_pending(self, requester_id: str, question: str) -> HelpRequest | None:
        existing = self._pending_match(requester_id, question)
        return existing.model_copy() if existing else None

    async def transition(
        self,
        request_id: str,
        *,
        expected: HelpRequestStatus,
        status: HelpRequestStatus,
        resolved_at: datetime,
        answer: str | None = None,
    ) -> HelpRequest | None:
        current = self._requests.get(request_id)
        if current is None or current.status != expected:
            return None
        updated = HelpRequest.model_validate(
            {**current.model_dump(), "status": status, "resolved_at": resolved_at, "answer": answer}
        )
        self._requests[request_id] = updated
        return updated.model_copy()

    async def link_knowledge_entry(self, request_id: str, entry_id: str) -> None:
        current = self._requests.get(request_id)
        if current is not None:
            self._requests[request_id] = current.model_copy(update={"knowledge_entry_id": entry_id})

    async def list_resolved_since(self, requester_id: str, since: datetime) -> list[HelpRequest]:
        matches = [
            r.model_copy()
            for r in self._requests.values()
            if r.requester_id == requester_id
            and r.status is HelpRequestStatus.RESOLVED
            and r.resolved_at is not None
            and r.resolved_at >= since
        ]
        return sorted(matches, key=lambda r: r.resolved_at, reverse=True)

    async def list_stale_pending(self, cutoff: datetime) -> list[HelpRequest]:
        stale = [r.model_copy() for r in self._requests.values() if r.is_pending and r.created_at <= cutoff]
        return sorted(stale, key=lambda r: r.created_at)

    async def list_requests(self, status: HelpRequestStatus | None = None) -> list[HelpRequest]:
        requests = [
            r.model_copy() for r in self._requests.values() if status is None or r.status == status
        ]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)


class MemoryKnowledgeStore:
    """Dict-backed IKnowledgeStore; preserves insertion order."""

    def __init__(self, entries: list[KnowledgeEntry] | None = None) -> None:
        self._entries: dict[str, KnowledgeEntry] = {e.id: e for e in entries or []}

    async def add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        self._entries[entry.id] = entry
        return entry

    async def list_entries(self) -> list[KnowledgeEntry]:
        return list(self._entries.values())

    async def delete(self, entry_id: str) -> bool:
        return self._entries.pop(entry_id, None) is not None
