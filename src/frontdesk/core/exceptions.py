"""FrontDesk exception hierarchy."""

from __future__ import annotations


class FrontDeskError(Exception):
    """Base exception for all FrontDesk errors."""


class HelpRequestNotFoundError(FrontDeskError):
    """No help request exists with the given id."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Help request {request_id!r} not found")


class RequestClosedError(FrontDeskError):
    """Transition attempted out of a terminal state."""

    def __init__(self, request_id: str, status: str) -> None:
        self.request_id = request_id
        self.status = status
        super().__init__(f"Help request {request_id!r} is already {status}")


class StoreUnavailableError(FrontDeskError):
    """Persistent store operation failed; callers degrade instead of failing."""
