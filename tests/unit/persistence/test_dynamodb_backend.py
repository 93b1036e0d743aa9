"""Unit tests for the DynamoDB help request and knowledge stores using moto."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from frontdesk.core.exceptions import StoreUnavailableError
from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry, KnowledgeSource
from frontdesk.persistence.dynamodb_backend import (
    HELP_REQUESTS_TABLE,
    DynamoDBHelpRequestStore,
    DynamoDBKnowledgeStore,
)

# Make scripts/ importable
sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "scripts"))

from seed_dynamodb import create_tables  # noqa: E402

TABLE_SUFFIX = "-test"
REGION = "us-east-1"
T0 = datetime(2025, 5, 11, 12, 0, tzinfo=timezone.utc)


def _request(question: str = "Do you do perms?", requester_id: str = "42", minutes: int = 0) -> HelpRequest:
    return HelpRequest(question=question, requester_id=requester_id, created_at=T0 + timedelta(minutes=minutes))


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        create_tables(ddb, suffix=TABLE_SUFFIX)
        yield ddb


@pytest.fixture
def store(aws):
    return DynamoDBHelpRequestStore(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def knowledge(aws):
    return DynamoDBKnowledgeStore(table_suffix=TABLE_SUFFIX, region=REGION)


def _resolve(store, request_id, minutes, answer="Yes, $80"):
    return asyncio.run(store.transition(
        request_id,
        expected=HelpRequestStatus.PENDING,
        status=HelpRequestStatus.RESOLVED,
        resolved_at=T0 + timedelta(minutes=minutes),
        answer=answer,
    ))


# ---------- create / get ----------

class TestCreatePending:
    def test_round_trips_request(self, store):
        request, created = asyncio.run(store.create_pending(_request()))
        assert created
        fetched = asyncio.run(store.get(request.id))
        assert fetched == request

    def test_duplicate_pending_returns_existing(self, store):
        first, _ = asyncio.run(store.create_pending(_request()))
        second, created = asyncio.run(store.create_pending(_request(minutes=1)))
        assert not created
        assert second.id == first.id
        assert len(asyncio.run(store.list_requests())) == 1

    def test_find_pending(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        assert asyncio.run(store.find_pending("42", "Do you do perms?")).id == request.id
        assert asyncio.run(store.find_pending("43", "Do you do perms?")) is None

    def test_guard_released_after_resolution(self, store):
        first, _ = asyncio.run(store.create_pending(_request()))
        _resolve(store, first.id, 2)
        assert asyncio.run(store.find_pending("42", "Do you do perms?")) is None
        second, created = asyncio.run(store.create_pending(_request(minutes=3)))
        assert created
        assert second.id != first.id

    def test_get_missing_returns_none(self, store):
        assert asyncio.run(store.get("missing")) is None


# ---------- transition ----------

class TestTransition:
    def test_resolve_sets_fields(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        updated = _resolve(store, request.id, 2)
        assert updated.status is HelpRequestStatus.RESOLVED
        assert updated.answer == "Yes, $80"
        assert updated.resolved_at == T0 + timedelta(minutes=2)

    def test_wrong_expected_status_is_rejected(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        _resolve(store, request.id, 2)
        assert _resolve(store, request.id, 3, answer="No") is None
        assert asyncio.run(store.get(request.id)).answer == "Yes, $80"

    def test_expire(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        updated = asyncio.run(store.transition(
            request.id,
            expected=HelpRequestStatus.PENDING,
            status=HelpRequestStatus.UNRESOLVED,
            resolved_at=T0 + timedelta(minutes=30),
        ))
        assert updated.status is HelpRequestStatus.UNRESOLVED
        assert updated.answer is None

    def test_missing_request(self, store):
        assert _resolve(store, "missing", 1) is None

    def test_link_knowledge_entry(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        _resolve(store, request.id, 2)
        asyncio.run(store.link_knowledge_entry(request.id, "entry-1"))
        assert asyncio.run(store.get(request.id)).knowledge_entry_id == "entry-1"


# ---------- queries ----------

class TestQueries:
    def test_list_resolved_since_newest_first(self, store):
        old, _ = asyncio.run(store.create_pending(_request("q1")))
        new, _ = asyncio.run(store.create_pending(_request("q2")))
        other, _ = asyncio.run(store.create_pending(_request("q3", requester_id="43")))
        _resolve(store, old.id, 1)
        _resolve(store, new.id, 5)
        _resolve(store, other.id, 5)

        since = asyncio.run(store.list_resolved_since("42", T0))
        assert [r.id for r in since] == [new.id, old.id]
        recent = asyncio.run(store.list_resolved_since("42", T0 + timedelta(minutes=2)))
        assert [r.id for r in recent] == [new.id]

    def test_expired_requests_not_listed_as_resolved(self, store):
        request, _ = asyncio.run(store.create_pending(_request()))
        asyncio.run(store.transition(
            request.id,
            expected=HelpRequestStatus.PENDING,
            status=HelpRequestStatus.UNRESOLVED,
            resolved_at=T0 + timedelta(minutes=30),
        ))
        assert asyncio.run(store.list_resolved_since("42", T0)) == []

    def test_list_stale_pending_includes_cutoff(self, store):
        stale, _ = asyncio.run(store.create_pending(_request("q1")))
        asyncio.run(store.create_pending(_request("q2", minutes=10)))
        found = asyncio.run(store.list_stale_pending(T0))
        assert [r.id for r in found] == [stale.id]

    def test_list_requests_by_status(self, store):
        first, _ = asyncio.run(store.create_pending(_request("q1")))
        asyncio.run(store.create_pending(_request("q2", minutes=1)))
        _resolve(store, first.id, 2)
        pending = asyncio.run(store.list_requests(HelpRequestStatus.PENDING))
        assert [r.question for r in pending] == ["q2"]
        assert [r.question for r in asyncio.run(store.list_requests())] == ["q2", "q1"]


# ---------- failures ----------

class TestStoreUnavailable:
    def test_missing_table_raises_store_unavailable(self, aws):
        aws.Table(f"{HELP_REQUESTS_TABLE}{TABLE_SUFFIX}").delete()
        store = DynamoDBHelpRequestStore(table_suffix=TABLE_SUFFIX, region=REGION)
        with pytest.raises(StoreUnavailableError):
            asyncio.run(store.get("anything"))


# ---------- knowledge ----------

class TestDynamoDBKnowledgeStore:
    def test_add_list_delete(self, knowledge):
        first = asyncio.run(knowledge.add(KnowledgeEntry(
            question="What are your hours?", answer="9 to 7", created_at=T0,
        )))
        second = asyncio.run(knowledge.add(KnowledgeEntry(
            question="Do you do perms?", answer="Yes, $80",
            source=KnowledgeSource.REVIEWER, created_at=T0 + timedelta(minutes=1),
        )))

        entries = asyncio.run(knowledge.list_entries())
        assert [e.id for e in entries] == [first.id, second.id]
        assert entries[1].source is KnowledgeSource.REVIEWER

        assert asyncio.run(knowledge.delete(first.id))
        assert not asyncio.run(knowledge.delete(first.id))
        assert [e.id for e in asyncio.run(knowledge.list_entries())] == [second.id]
