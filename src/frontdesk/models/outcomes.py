"""Results returned by escalation operations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from frontdesk.models.help_request import HelpRequest, KnowledgeEntry


class CreateOutcome(BaseModel):
    request: HelpRequest
    created: bool


class ResolveOutcome(BaseModel):
    """Result of a reviewer resolution.

    ``already_resolved`` marks the idempotent case: ``request`` is then the
    prior record, untouched.
    """

    request: HelpRequest
    already_resolved: bool = False
    knowledge_entry: Optional[KnowledgeEntry] = None


class PollResult(BaseModel):
    """Answer surfaced to a polling client."""

    found: bool
    answer: Optional[str] = None
    question: Optional[str] = None
    request_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    from_cache: bool = False


class SweepReport(BaseModel):
    """Ids touched by one timeout sweep."""

    expired: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
