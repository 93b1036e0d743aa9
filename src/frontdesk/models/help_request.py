"""Help request and knowledge base models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from frontdesk.core.types import utcnow


def new_id() -> str:
    return uuid4().hex


class HelpRequestStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class KnowledgeSource(StrEnum):
    REVIEWER = "reviewer"
    MANUAL = "manual"


class HelpRequest(BaseModel):
    """A question escalated to a human reviewer.

    ``resolved_at`` and ``answer`` are both unset while pending and both set
    once resolved; an unresolved (expired) request has ``resolved_at`` but no
    answer.
    """

    id: str = Field(default_factory=new_id)
    question: str
    requester_id: str
    status: HelpRequestStatus = HelpRequestStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    answer: Optional[str] = None
    knowledge_entry_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_lifecycle_fields(self) -> HelpRequest:
        if self.status is HelpRequestStatus.PENDING:
            if self.resolved_at is not None or self.answer is not None:
                raise ValueError("pending request cannot carry resolved_at or answer")
        elif self.status is HelpRequestStatus.RESOLVED:
            if self.resolved_at is None or self.answer is None:
                raise ValueError("resolved request needs resolved_at and answer")
        elif self.resolved_at is None or self.answer is not None:
            raise ValueError("unresolved request needs resolved_at and no answer")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status is HelpRequestStatus.PENDING


class KnowledgeEntry(BaseModel):
    """A question/answer pair the responder can answer without escalation."""

    id: str = Field(default_factory=new_id)
    question: str
    answer: str
    source: KnowledgeSource = KnowledgeSource.MANUAL
    created_at: datetime = Field(default_factory=utcnow)
