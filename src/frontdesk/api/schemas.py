"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from frontdesk.models.help_request import HelpRequest, KnowledgeEntry


class MessageIn(BaseModel):
    requester_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class MessageOut(BaseModel):
    response: str


class PollIn(BaseModel):
    requester_id: str = Field(min_length=1)


class HelpRequestIn(BaseModel):
    question: str = Field(min_length=1)
    requester_id: str = Field(min_length=1)


class ResolveIn(BaseModel):
    answer: str = Field(min_length=1)


class KnowledgeEntryIn(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class HelpRequestPage(BaseModel):
    data: list[HelpRequest]
    pagination: Pagination


class KnowledgeEntryPage(BaseModel):
    data: list[KnowledgeEntry]
    pagination: Pagination


class ResolveOut(BaseModel):
    request: HelpRequest
    already_resolved: bool
    knowledge_base_updated: bool


class PollOut(BaseModel):
    found_response: bool
    supervisor_response: Optional[str] = None
    question: Optional[str] = None
    request_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    from_cache: bool = False
    message: Optional[str] = None


def paginate(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=page, limit=limit, pages=-(-total // limit))
