"""Reviewer and admin endpoints: help request queue and knowledge base."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from frontdesk.api.deps import get_runtime
from frontdesk.api.schemas import (
    HelpRequestPage,
    KnowledgeEntryIn,
    KnowledgeEntryPage,
    ResolveIn,
    ResolveOut,
    paginate,
)
from frontdesk.core.exceptions import HelpRequestNotFoundError, RequestClosedError
from frontdesk.models.help_request import HelpRequest, HelpRequestStatus, KnowledgeEntry
from frontdesk.orchestration.runtime import EscalationRuntime

router = APIRouter(tags=["supervisor"])

MAX_LIMIT = 100


@router.get("/help-requests")
async def list_help_requests(
    status: Optional[HelpRequestStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    runtime: EscalationRuntime = Depends(get_runtime),
) -> HelpRequestPage:
    requests = await runtime.state_machine.list_requests(status)
    start = (page - 1) * limit
    return HelpRequestPage(
        data=requests[start:start + limit],
        pagination=paginate(len(requests), page, limit),
    )


@router.post("/help-requests/{request_id}/resolve")
async def resolve_help_request(
    request_id: str, body: ResolveIn, runtime: EscalationRuntime = Depends(get_runtime),
) -> ResolveOut:
    try:
        outcome = await runtime.state_machine.resolve(request_id, body.answer)
    except HelpRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RequestClosedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ResolveOut(
        request=outcome.request,
        already_resolved=outcome.already_resolved,
        knowledge_base_updated=outcome.knowledge_entry is not None,
    )


@router.post("/help-requests/{request_id}/expire")
async def expire_help_request(
    request_id: str, runtime: EscalationRuntime = Depends(get_runtime),
) -> HelpRequest:
    try:
        await runtime.state_machine.expire(request_id)
        return await runtime.state_machine.get(request_id)
    except HelpRequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/knowledge-base")
async def list_knowledge_base(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    runtime: EscalationRuntime = Depends(get_runtime),
) -> KnowledgeEntryPage:
    entries = await runtime.knowledge.list_entries()
    start = (page - 1) * limit
    return KnowledgeEntryPage(
        data=entries[start:start + limit],
        pagination=paginate(len(entries), page, limit),
    )


@router.post("/knowledge-base")
async def add_knowledge_entry(
    body: KnowledgeEntryIn, runtime: EscalationRuntime = Depends(get_runtime),
) -> KnowledgeEntry:
    return await runtime.knowledge.add(body.question, body.answer)


@router.delete("/knowledge-base/{entry_id}")
async def delete_knowledge_entry(
    entry_id: str, runtime: EscalationRuntime = Depends(get_runtime),
) -> dict[str, bool]:
    if not await runtime.knowledge.delete(entry_id):
        raise HTTPException(status_code=404, detail="Entry not found")
    return {"success": True}
