"""Prometheus instruments for authentication and account administration events."""

from __future__ import annotations

from prometheus_client import Counter

AUTH_EVENTS = Counter(
    "user_service_auth_events_total",
    "Authentication attempts by operation and outcome.",
    ["operation", "outcome"],
)

ACCOUNT_CHANGES = Counter(
    "user_service_account_changes_total",
    "Administrative account changes by operation.",
    ["operation"],
)


def record_auth(operation: str, outcome: str) -> None:
    AUTH_EVENTS.labels(operation=operation, outcome=outcome).inc()


def record_account_change(operation: str) -> None:
    ACCOUNT_CHANGES.labels(operation=operation).inc()
