"""Knowledge base lookup that can answer a question without escalation."""

from __future__ import annotations

import logging
import math

from frontdesk.core.protocols import IEventPublisher, IKnowledgeStore
from frontdesk.models.events import KnowledgeEntryAdded
from frontdesk.models.help_request import KnowledgeEntry, KnowledgeSource

logger = logging.getLogger(__name__)


class KnowledgeMatcher:
    """In-memory keyword-overlap matcher over the known answers.

    An exact case-insensitive question match wins. Otherwise the first entry
    (in insertion order) whose keywords overlap at least ``ratio`` of the
    incoming keywords answers; keywords are whitespace-separated words of at
    least ``min_word_length`` characters and overlap is substring containment
    in either direction.
    """

    def __init__(self, ratio: float = 0.5, min_word_length: int = 4) -> None:
        self._ratio = ratio
        self._min_word_length = min_word_length
        self._entries: dict[str, KnowledgeEntry] = {}
        self._keywords: dict[str, list[str]] = {}

    def _tokenize(self, text: str) -> list[str]:
        return [w for w in text.lower().split() if len(w) >= self._min_word_length]

    def remember(self, entry: KnowledgeEntry) -> None:
        self._entries[entry.id] = entry
        self._keywords[entry.id] = self._tokenize(entry.question)

    def forget(self, entry_id: str) -> None:
        self._entries.pop(entry_id, None)
        self._keywords.pop(entry_id, None)

    def replace_all(self, entries: list[KnowledgeEntry]) -> None:
        self._entries.clear()
        self._keywords.clear()
        for entry in entries:
            self.remember(entry)

    def lookup(self, message: str) -> str | None:
        lowered = message.strip().lower()
        if not lowered:
            return None
        for entry in self._entries.values():
            if entry.question.strip().lower() == lowered:
                return entry.answer

        keywords = self._tokenize(lowered)
        if not keywords:
            return None
        required = math.ceil(len(keywords) * self._ratio)
        for entry_id, entry in self._entries.items():
            entry_keywords = self._keywords[entry_id]
            overlap = sum(
                1 for kw in keywords
                if any(ek in kw or kw in ek for ek in entry_keywords)
            )
            if overlap >= required:
                return entry.answer
        return None

    def __len__(self) -> int:
        return len(self._entries)


class KnowledgeBase:
    """Knowledge store plus the matcher's in-memory view of it."""

    def __init__(
        self,
        *,
        store: IKnowledgeStore,
        matcher: KnowledgeMatcher,
        events: IEventPublisher | None = None,
    ) -> None:
        self._store = store
        self._matcher = matcher
        self._events = events

    @property
    def matcher(self) -> KnowledgeMatcher:
        return self._matcher

    async def load(self) -> int:
        entries = await self._store.list_entries()
        self._matcher.replace_all(entries)
        logger.info("Loaded %d entries into knowledge base", len(entries))
        return len(entries)

    async def add(self, question: str, answer: str,
                  source: KnowledgeSource = KnowledgeSource.MANUAL) -> KnowledgeEntry:
        entry = await self._store.add(KnowledgeEntry(question=question, answer=answer, source=source))
        self._matcher.remember(entry)
        logger.info("Added to knowledge base (%s): %r -> %r", source.value, question, answer)
        if self._events is not None:
            self._events.publish(KnowledgeEntryAdded(id=entry.id, question=question, source=source))
        return entry

    async def delete(self, entry_id: str) -> bool:
        deleted = await self._store.delete(entry_id)
        self._matcher.forget(entry_id)
        return deleted

    async def list_entries(self) -> list[KnowledgeEntry]:
        entries = await self._store.list_entries()
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def lookup(self, message: str) -> str | None:
        return self._matcher.lookup(message)
