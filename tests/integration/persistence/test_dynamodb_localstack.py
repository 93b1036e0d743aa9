"""Integration tests for the DynamoDB stores against LocalStack."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from frontdesk.escalation.knowledge import KnowledgeBase, KnowledgeMatcher
from frontdesk.escalation.state_machine import HelpRequestStateMachine
from frontdesk.models.help_request import HelpRequestStatus
from frontdesk.persistence.dynamodb_backend import DynamoDBHelpRequestStore, DynamoDBKnowledgeStore
from tests.fakes import RecordingPublisher
from tests.integration.conftest import LOCALSTACK_URL, skip_no_localstack


@pytest.mark.integration
@skip_no_localstack
class TestDynamoDBIntegration:
    @pytest.fixture
    def stores(self, seeded_tables):
        kwargs = {"table_suffix": seeded_tables, "region": "us-east-1", "endpoint_url": LOCALSTACK_URL}
        return DynamoDBHelpRequestStore(**kwargs), DynamoDBKnowledgeStore(**kwargs)

    def test_seeded_knowledge_answers_hours(self, stores):
        _, knowledge_store = stores
        knowledge = KnowledgeBase(store=knowledge_store, matcher=KnowledgeMatcher())
        asyncio.run(knowledge.load())
        assert knowledge.lookup("What are your hours?") is not None

    def test_concurrent_creates_share_one_request(self, stores):
        help_requests, knowledge_store = stores
        machine = HelpRequestStateMachine(
            store=help_requests,
            knowledge=KnowledgeBase(store=knowledge_store, matcher=KnowledgeMatcher()),
            events=RecordingPublisher(),
        )
        requester = uuid.uuid4().hex

        async def burst():
            return await asyncio.gather(*(machine.create("Do you do perms?", requester) for _ in range(5)))

        outcomes = asyncio.run(burst())
        assert sum(o.created for o in outcomes) == 1
        assert len({o.request.id for o in outcomes}) == 1

        outcome = asyncio.run(machine.resolve(outcomes[0].request.id, "Yes, $80"))
        assert outcome.request.status is HelpRequestStatus.RESOLVED
