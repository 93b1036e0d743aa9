"""Lifecycle events published on the escalation event stream."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal, Union

from pydantic import BaseModel, Field

from frontdesk.core.types import utcnow
from frontdesk.models.help_request import KnowledgeSource


class DeliveryChannel(StrEnum):
    PUSH = "push"
    MESSAGE = "message"
    POLL = "poll"
    WEBHOOK = "webhook"


class RequestCreated(BaseModel):
    kind: Literal["request_created"] = "request_created"
    id: str
    requester_id: str
    question: str
    occurred_at: datetime = Field(default_factory=utcnow)


class RequestResolved(BaseModel):
    kind: Literal["request_resolved"] = "request_resolved"
    id: str
    requester_id: str
    question: str
    answer: str
    occurred_at: datetime = Field(default_factory=utcnow)


class RequestExpired(BaseModel):
    kind: Literal["request_expired"] = "request_expired"
    id: str
    requester_id: str
    question: str
    occurred_at: datetime = Field(default_factory=utcnow)


class ResponseDelivered(BaseModel):
    """A resolved answer reached the requester; ``id`` is the help request id."""

    kind: Literal["response_delivered"] = "response_delivered"
    id: str
    requester_id: str
    channel: DeliveryChannel
    occurred_at: datetime = Field(default_factory=utcnow)


class KnowledgeEntryAdded(BaseModel):
    kind: Literal["knowledge_entry_added"] = "knowledge_entry_added"
    id: str
    question: str
    source: KnowledgeSource
    occurred_at: datetime = Field(default_factory=utcnow)


EscalationEvent = Union[RequestCreated, RequestResolved, RequestExpired, ResponseDelivered, KnowledgeEntryAdded]
