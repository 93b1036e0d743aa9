"""Real-time channel implementations of IRealtimeChannel."""

from __future__ import annotations

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketSessionHub:
    """Routes pushes to websocket sessions registered by the agent route.

    Session lifecycle belongs to the route; the hub only looks sessions up.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, WebSocket] = {}

    def register(self, session_key: str, websocket: WebSocket) -> None:
        self._sessions[session_key] = websocket

    def unregister(self, session_key: str, websocket: WebSocket) -> None:
        if self._sessions.get(session_key) is websocket:
            del self._sessions[session_key]

    def is_connected(self, session_key: str) -> bool:
        return session_key in self._sessions

    async def push(self, session_key: str, payload: str) -> bool:
        websocket = self._sessions.get(session_key)
        if websocket is None:
            logger.warning("No real-time session %s to push to", session_key)
            return False
        try:
            await websocket.send_text(payload)
        except Exception as exc:
            logger.error("Error sending data to session %s: %s", session_key, exc)
            self.unregister(session_key, websocket)
            return False
        return True


class MemoryRealtimeChannel:
    """Recording IRealtimeChannel for tests and headless runs."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.pushes: list[tuple[str, str]] = []

    async def push(self, session_key: str, payload: str) -> bool:
        if self.fail:
            return False
        self.pushes.append((session_key, payload))
        return True
