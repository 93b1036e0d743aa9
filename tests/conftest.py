"""Fixtures shared by unit tests."""

from __future__ import annotations

import pytest

from frontdesk.core.config import AppSettings
from frontdesk.orchestration.runtime import EscalationRuntime
from tests.fakes import FakeClock, MemoryHelpRequestStore, MemoryKnowledgeStore, MemoryRealtimeChannel


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def channel():
    return MemoryRealtimeChannel()


@pytest.fixture
def runtime(settings, channel, clock):
    return EscalationRuntime(
        settings=settings,
        help_requests=MemoryHelpRequestStore(),
        knowledge_store=MemoryKnowledgeStore(),
        channel=channel,
        clock=clock,
    )
