"""Requester-facing endpoints: messaging, polling and the real-time session."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from frontdesk.api.deps import get_runtime
from frontdesk.api.schemas import HelpRequestIn, MessageIn, MessageOut, PollIn, PollOut
from frontdesk.models.help_request import HelpRequest
from frontdesk.models.outcomes import PollResult
from frontdesk.orchestration.runtime import EscalationRuntime
from frontdesk.realtime.channel import WebSocketSessionHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["agent"])


def _poll_out(result: PollResult) -> PollOut:
    if not result.found:
        return PollOut(found_response=False, message="No recent supervisor responses found")
    return PollOut(
        found_response=True,
        supervisor_response=result.answer,
        question=result.question,
        request_id=result.request_id,
        resolved_at=result.resolved_at,
        from_cache=result.from_cache,
    )


@router.post("/message")
async def message(body: MessageIn, runtime: EscalationRuntime = Depends(get_runtime)) -> MessageOut:
    """Answer a requester message, escalating when nothing else can."""
    reply = await runtime.coordinator.handle(body.requester_id, body.message)
    return MessageOut(response=reply)


@router.post("/supervisor-response")
async def supervisor_response(body: PollIn, runtime: EscalationRuntime = Depends(get_runtime)) -> PollOut:
    return _poll_out(await runtime.coordinator.poll_response(body.requester_id))


@router.get("/webhook/supervisor-response/{requester_id}")
async def webhook_supervisor_response(
    requester_id: str, runtime: EscalationRuntime = Depends(get_runtime),
) -> PollOut:
    return _poll_out(await runtime.coordinator.poll_webhook(requester_id))


@router.post("/help-request")
async def create_help_request(
    body: HelpRequestIn, runtime: EscalationRuntime = Depends(get_runtime),
) -> HelpRequest:
    outcome = await runtime.state_machine.create(body.question, body.requester_id)
    return outcome.request


@router.websocket("/ws/{requester_id}")
async def session(websocket: WebSocket, requester_id: str) -> None:
    """Real-time session: pushes arrive here, text frames are handled as messages."""
    runtime: EscalationRuntime = websocket.app.state.runtime
    hub = runtime.channel
    session_key = runtime.dispatcher.session_key(requester_id)
    await websocket.accept()
    if isinstance(hub, WebSocketSessionHub):
        hub.register(session_key, websocket)
    logger.info("Real-time session %s opened", session_key)
    try:
        while True:
            text = (await websocket.receive_text()).strip()
            if not text:
                continue
            reply = await runtime.coordinator.handle(requester_id, text)
            await websocket.send_text(reply)
    except WebSocketDisconnect:
        logger.info("Real-time session %s closed", session_key)
    finally:
        if isinstance(hub, WebSocketSessionHub):
            hub.unregister(session_key, websocket)
