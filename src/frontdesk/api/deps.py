"""Request-scoped accessors for application state."""

from __future__ import annotations

from fastapi import Request

from frontdesk.orchestration.runtime import EscalationRuntime


def get_runtime(request: Request) -> EscalationRuntime:
    return request.app.state.runtime
