from __future__ import annotations

from prometheus_client import Counter, Gauge

REQUEST_TRANSITIONS_TOTAL = Counter(
    "relaydesk_request_transitions_total",
    "Applied request status transitions",
    labelnames=("source", "target"),
)

REQUEST_TRANSITION_REJECTED_TOTAL = Counter(
    "relaydesk_request_transition_rejected_total",
    "Transitions refused before reaching the store, grouped by reason",
    labelnames=("reason",),
)

CONVERSATION_OUTCOMES_TOTAL = Counter(
    "relaydesk_conversation_outcomes_total",
    "Conversation events grouped by entry point and result tag",
    labelnames=("entry_point", "result"),
)

ASSIGNMENT_CONFLICTS_TOTAL = Counter(
    "relaydesk_assignment_conflicts_total",
    "Take/reject races resolved as conflicts",
    labelnames=("operation", "reason"),
)

ASSIGNMENT_COMPENSATIONS_TOTAL = Counter(
    "relaydesk_assignment_compensations_total",
    "Request writes reverted after the paired actor write failed",
    labelnames=("operation",),
)

NOTIFICATIONS_TOTAL = Counter(
    "relaydesk_notifications_total",
    "Outbound notifications grouped by channel kind and outcome",
    labelnames=("channel", "operation", "outcome"),
)

STALE_SESSIONS_TOTAL = Counter(
    "relaydesk_stale_sessions_total",
    "Sessions cleared because the referenced request moved on",
    labelnames=("flow",),
)

ACTIVE_SESSIONS_GAUGE = Gauge(
    "relaydesk_active_sessions",
    "Sessions currently held by the in-process session store",
)


def record_transition(*, source: str, target: str) -> None:
    REQUEST_TRANSITIONS_TOTAL.labels(source=source, target=target).inc()


def record_transition_rejected(*, reason: str) -> None:
    REQUEST_TRANSITION_REJECTED_TOTAL.labels(reason=reason).inc()


def record_conversation_outcome(*, entry_point: str, result: str) -> None:
    # Collapse "rejected:text_too_short" style tags to bound label cardinality.
    CONVERSATION_OUTCOMES_TOTAL.labels(entry_point=entry_point, result=result.split(":", 1)[0]).inc()


def record_assignment_conflict(*, operation: str, reason: str) -> None:
    ASSIGNMENT_CONFLICTS_TOTAL.labels(operation=operation, reason=reason).inc()


def record_assignment_compensation(*, operation: str) -> None:
    ASSIGNMENT_COMPENSATIONS_TOTAL.labels(operation=operation).inc()


def record_notification(*, channel: str, operation: str, outcome: str) -> None:
    NOTIFICATIONS_TOTAL.labels(channel=channel, operation=operation, outcome=outcome).inc()


def record_stale_session(*, flow: str) -> None:
    STALE_SESSIONS_TOTAL.labels(flow=flow).inc()


def set_active_sessions(count: int) -> None:
    ACTIVE_SESSIONS_GAUGE.set(max(0, count))
