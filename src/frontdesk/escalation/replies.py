"""Reply texts and status-check detection for the message-handling path."""

from __future__ import annotations

SUPERVISOR_RESPONSE_PREFIX = "I've consulted with my supervisor and they say: "
CHECKING_WITH_SUPERVISOR = 'Let me check with my supervisor about "{question}" and get back to you.'
WAITING_FOR_SUPERVISOR = (
    "I'm still waiting for my supervisor to answer your question. "
    "I'll let you know as soon as I hear back."
)
NO_SUPERVISOR_RESPONSE = "I haven't received any supervisor responses yet."
ALREADY_DELIVERED = "Yes, your supervisor has responded. I've already sent you their response."
FALLBACK = "I'm sorry, I don't know the answer to that. Please try asking something else."

CHECK_COMMAND = "__CHECK_SUPERVISOR_RESPONSES__"

STATUS_CHECK_PHRASES = frozenset({
    CHECK_COMMAND,
    "Has my supervisor replied with an answer yet?",
    "What did my supervisor say?",
    "What was the supervisor's response?",
    "Did the supervisor answer my question?",
})

STATUS_CHECK_FRAGMENTS = (
    "has my supervisor responded",
    "what did my supervisor say",
    "any response from supervisor",
)


def format_answer(answer: str) -> str:
    return f"{SUPERVISOR_RESPONSE_PREFIX}{answer}"


def is_status_check(message: str) -> bool:
    """Best-effort detection of "did my supervisor answer yet?" messages."""
    if not message:
        return False
    if message in STATUS_CHECK_PHRASES:
        return True
    lowered = message.lower()
    if any(fragment in lowered for fragment in STATUS_CHECK_FRAGMENTS):
        return True
    return "supervisor" in lowered and any(
        word in lowered for word in ("replied", "responded", "answer")
    )
