"""
DEALROOM Test Configuration
===========================

Pytest fixtures for the access engine unit tests. Every fixture runs on
a ManualClock so expiry and timeouts move only when a test says so.
"""

import pytest
from datetime import datetime, timedelta, timezone

from shared.dealroom_core.audit_log import AuditLog, InMemoryAuditBackend
from shared.dealroom_core.clock import ManualClock
from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.models import Role, Subject


START = datetime(2026, 1, 30, 12, 0, tzinfo=timezone.utc)
ROOM_EXPIRY = datetime(2026, 2, 15, 0, 0, tzinfo=timezone.utc)
ROOM_ID = "DR-1001"


class FlakyBackend(InMemoryAuditBackend):
    """In-memory backend that fails the next `failures` writes."""

    def __init__(self, failures: int = 0, error: Exception = None):
        super().__init__()
        self.failures = failures
        self.error = error or OSError("disk unavailable")
        self.attempts = 0

    def write(self, event):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        super().write(event)


@pytest.fixture
def clock():
    """Manual clock at a fixed start time."""
    return ManualClock(START)


@pytest.fixture
def flaky_backend():
    """Factory for backends that fail their next N writes."""
    return FlakyBackend


@pytest.fixture
def backend():
    return FlakyBackend()


@pytest.fixture
def audit_log(backend, clock):
    """Audit log that never sleeps between retries."""
    return AuditLog(backend=backend, clock=clock, sleep=lambda _: None)


@pytest.fixture
def engine(clock, audit_log):
    """Engine with one ACTIVE room (grace 14 days) and no grants."""
    engine = AccessDecisionEngine(clock=clock, audit_log=audit_log)
    engine.lifecycle.create_room(ROOM_ID, "D-1001", ROOM_EXPIRY)
    return engine


@pytest.fixture
def document(engine):
    return engine.documents.add_document(ROOM_ID, "CIM.pdf", 48, document_id="doc_cim")


@pytest.fixture
def issuer():
    return Subject.of("cfo@issuer.com", "ISSUER")


@pytest.fixture
def admin():
    return Subject.of("ops@dealroom.io", "ADMIN")


@pytest.fixture
def investor():
    return Subject.of("lp@fund.com", "INVESTOR")


@pytest.fixture
def market_maker():
    return Subject.of("desk@mm.com", "MARKET_MAKER")


@pytest.fixture
def external():
    return Subject.of("counsel@law.com", "EXTERNAL")


@pytest.fixture
def investor_grant(engine, clock):
    """INVESTOR grant for lp@fund.com expiring in 30 days."""
    return engine.grants.create_grant(
        ROOM_ID, Role.INVESTOR, "lp@fund.com", clock.now() + timedelta(days=30), clock.now()
    )
