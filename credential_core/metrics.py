"""
Credential Metrics
==================
Prometheus metric definitions for authentication decisions and credential lifecycle.
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest

# Custom registry so embedding services can mount it alongside their own
CREDENTIAL_REGISTRY = CollectorRegistry()

AUTH_DECISIONS = Counter(
    name="credential_auth_decisions_total",
    documentation="Signed-request authentication decisions",
    labelnames=["decision", "reason"],
    registry=CREDENTIAL_REGISTRY,
)

CREDENTIAL_OPERATIONS = Counter(
    name="credential_operations_total",
    documentation="Credential lifecycle operations",
    labelnames=["operation", "outcome"],
    registry=CREDENTIAL_REGISTRY,
)

REPLAY_REJECTIONS = Counter(
    name="credential_replay_rejections_total",
    documentation="Requests rejected by the replay guard",
    labelnames=["reason"],
    registry=CREDENTIAL_REGISTRY,
)

SWEEPER_EXPIRED = Counter(
    name="credential_sweeper_expired_total",
    documentation="Credentials transitioned to EXPIRED by the sweeper",
    registry=CREDENTIAL_REGISTRY,
)

SWEEPER_FAILURES = Counter(
    name="credential_sweeper_failures_total",
    documentation="Sweeper item or tick failures",
    registry=CREDENTIAL_REGISTRY,
)


def record_auth_decision(allowed: bool, reason: str = "ok") -> None:
    AUTH_DECISIONS.labels(decision="allow" if allowed else "block", reason=reason).inc()


def record_operation(operation: str, outcome: str) -> None:
    CREDENTIAL_OPERATIONS.labels(operation=operation, outcome=outcome).inc()


def get_metrics_text() -> bytes:
    """Prometheus exposition text for the credential registry."""
    return generate_latest(CREDENTIAL_REGISTRY)
