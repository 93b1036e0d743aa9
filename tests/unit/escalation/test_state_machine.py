"""Tests for HelpRequestStateMachine transitions and events."""

from __future__ import annotations

import asyncio

import pytest

from frontdesk.core.exceptions import HelpRequestNotFoundError, RequestClosedError, StoreUnavailableError
from frontdesk.escalation.knowledge import KnowledgeBase, KnowledgeMatcher
from frontdesk.escalation.state_machine import HelpRequestStateMachine
from frontdesk.models.events import RequestCreated, RequestExpired, RequestResolved
from frontdesk.models.help_request import HelpRequestStatus, KnowledgeSource
from tests.fakes import FakeClock, MemoryHelpRequestStore, MemoryKnowledgeStore, RecordingPublisher


@pytest.fixture
def parts():
    clock = FakeClock()
    store = MemoryHelpRequestStore()
    knowledge = KnowledgeBase(store=MemoryKnowledgeStore(), matcher=KnowledgeMatcher())
    events = RecordingPublisher()
    machine = HelpRequestStateMachine(store=store, knowledge=knowledge, events=events, clock=clock)
    return machine, store, knowledge, events, clock


class TestCreate:
    def test_creates_pending_request_and_signals(self, parts):
        machine, _, _, events, clock = parts
        outcome = asyncio.run(machine.create("Do you do perms?", " 42 "))
        assert outcome.created
        assert outcome.request.status is HelpRequestStatus.PENDING
        assert outcome.request.requester_id == "42"
        assert outcome.request.created_at == clock.now
        assert events.events == [RequestCreated(
            id=outcome.request.id, requester_id="42", question="Do you do perms?",
            occurred_at=events.events[0].occurred_at,
        )]

    def test_identical_pending_request_is_returned_not_duplicated(self, parts):
        machine, store, _, events, _ = parts
        first = asyncio.run(machine.create("Do you do perms?", "42"))
        second = asyncio.run(machine.create("Do you do perms?", "42"))
        assert not second.created
        assert second.request.id == first.request.id
        assert len(asyncio.run(store.list_requests())) == 1
        assert len(events.events) == 1

    def test_concurrent_identical_creates_yield_one_request(self, parts):
        machine, store, _, _, _ = parts

        async def scenario():
            return await asyncio.gather(*(machine.create("Do you do perms?", "42") for _ in range(10)))

        outcomes = asyncio.run(scenario())
        assert sum(o.created for o in outcomes) == 1
        assert len({o.request.id for o in outcomes}) == 1
        assert len(asyncio.run(store.list_requests(HelpRequestStatus.PENDING))) == 1

    def test_different_requester_or_text_creates_new_request(self, parts):
        machine, store, _, _, _ = parts
        asyncio.run(machine.create("Do you do perms?", "42"))
        assert asyncio.run(machine.create("Do you do perms?", "43")).created
        assert asyncio.run(machine.create("do you do perms?", "42")).created
        assert len(asyncio.run(store.list_requests())) == 3


class TestResolve:
    def test_resolve_sets_answer_and_learns_it(self, parts):
        machine, store, knowledge, events, clock = parts
        request = asyncio.run(machine.create("Do you do perms?", "42")).request
        clock.advance(minutes=2)

        outcome = asyncio.run(machine.resolve(request.id, "Yes, $80"))

        assert not outcome.already_resolved
        assert outcome.request.status is HelpRequestStatus.RESOLVED
        assert outcome.request.answer == "Yes, $80"
        assert outcome.request.resolved_at == clock.now
        assert outcome.knowledge_entry.source is KnowledgeSource.REVIEWER
        assert outcome.request.knowledge_entry_id == outcome.knowledge_entry.id
        stored = asyncio.run(store.get(request.id))
        assert stored.knowledge_entry_id == outcome.knowledge_entry.id
        assert knowledge.lookup("Do you do perms?") == "Yes, $80"
        resolved = events.events[-1]
        assert isinstance(resolved, RequestResolved)
        assert (resolved.id, resolved.requester_id, resolved.answer) == (request.id, "42", "Yes, $80")

    def test_second_resolve_keeps_first_answer(self, parts):
        machine, _, _, events, _ = parts
        request = asyncio.run(machine.create("Do you do perms?", "42")).request
        asyncio.run(machine.resolve(request.id, "Yes, $80"))

        again = asyncio.run(machine.resolve(request.id, "No"))

        assert again.already_resolved
        assert again.request.answer == "Yes, $80"
        assert again.knowledge_entry is None
        assert sum(isinstance(e, RequestResolved) for e in events.events) == 1

    def test_unknown_id_raises_not_found(self, parts):
        machine = parts[0]
        with pytest.raises(HelpRequestNotFoundError):
            asyncio.run(machine.resolve("missing", "answer"))

    def test_expired_request_cannot_be_resolved(self, parts):
        machine = parts[0]
        request = asyncio.run(machine.create("Do you do perms?", "42")).request
        asyncio.run(machine.expire(request.id))
        with pytest.raises(RequestClosedError):
            asyncio.run(machine.resolve(request.id, "Yes, $80"))

    def test_resolve_and_expire_race_has_one_winner(self, parts):
        machine, store, _, events, _ = parts
        request = asyncio.run(machine.create("Do you do perms?", "42")).request

        async def race():
            return await asyncio.gather(
                machine.resolve(request.id, "Yes, $80"),
                machine.expire(request.id),
                return_exceptions=True,
            )

        asyncio.run(race())
        final = asyncio.run(store.get(request.id))
        assert final.status in (HelpRequestStatus.RESOLVED, HelpRequestStatus.UNRESOLVED)
        terminal = [e for e in events.events if isinstance(e, (RequestResolved, RequestExpired))]
        assert len(terminal) == 1


class FlakyKnowledgeStore(MemoryKnowledgeStore):
    """Knowledge store whose first write fails like an unreachable database."""

    def __init__(self):
        super().__init__()
        self.failures = 1

    async def add(self, entry):
        if self.failures:
            self.failures -= 1
            raise StoreUnavailableError("database unreachable")
        return await super().add(entry)


class TestResolveWithKnowledgeStoreDown:
    def test_resolution_is_announced_and_learning_retried(self):
        store = MemoryHelpRequestStore()
        knowledge_store = FlakyKnowledgeStore()
        events = RecordingPublisher()
        machine = HelpRequestStateMachine(
            store=store,
            knowledge=KnowledgeBase(store=knowledge_store, matcher=KnowledgeMatcher()),
            events=events,
            clock=FakeClock(),
        )
        request = asyncio.run(machine.create("Do you do perms?", "42")).request

        first = asyncio.run(machine.resolve(request.id, "Yes, $80"))

        assert first.request.status is HelpRequestStatus.RESOLVED
        assert first.knowledge_entry is None
        assert sum(isinstance(e, RequestResolved) for e in events.events) == 1
        assert asyncio.run(knowledge_store.list_entries()) == []

        retry = asyncio.run(machine.resolve(request.id, "Yes, $80"))

        assert retry.already_resolved
        assert retry.knowledge_entry.answer == "Yes, $80"
        assert asyncio.run(store.get(request.id)).knowledge_entry_id == retry.knowledge_entry.id
        assert len(asyncio.run(knowledge_store.list_entries())) == 1
        assert sum(isinstance(e, RequestResolved) for e in events.events) == 1


class TestExpire:
    def test_expire_pending_request(self, parts):
        machine, _, _, events, clock = parts
        request = asyncio.run(machine.create("Do you do perms?", "42")).request
        expired = asyncio.run(machine.expire(request.id))
        assert expired.status is HelpRequestStatus.UNRESOLVED
        assert expired.resolved_at == clock.now
        assert expired.answer is None
        assert isinstance(events.events[-1], RequestExpired)

    def test_expire_is_noop_for_non_pending(self, parts):
        machine, _, _, events, _ = parts
        request = asyncio.run(machine.create("Do you do perms?", "42")).request
        asyncio.run(machine.resolve(request.id, "Yes, $80"))
        count = len(events.events)
        assert asyncio.run(machine.expire(request.id)) is None
        assert asyncio.run(machine.expire("missing")) is None
        assert len(events.events) == count

    def test_expired_question_can_be_asked_again(self, parts):
        machine = parts[0]
        first = asyncio.run(machine.create("Do you do perms?", "42")).request
        asyncio.run(machine.expire(first.id))
        again = asyncio.run(machine.create("Do you do perms?", "42"))
        assert again.created
        assert again.request.id != first.id
