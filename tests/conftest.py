"""Shared fixtures: a simulated clock, in-memory audit storage and a wired ledger."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from timelock.audit import AuditLogger
from timelock.clock import SimulatedClock
from timelock.context import AppContext
from timelock.ledger import LedgerService
from timelock.models.account import Account
from timelock.queries import QueryExecutor
from timelock.services.storage import InMemoryAuditStorage

START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return SimulatedClock(START)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def context():
    return AppContext()


@pytest.fixture
def ledger(context, clock, audit_storage):
    return LedgerService(context, clock=clock, audit_logger=AuditLogger(audit_storage))


@pytest.fixture
def queries(context, clock):
    return QueryExecutor(context, clock=clock)


@pytest.fixture
def make_account(context, clock):
    """Register an account directly on the context."""
    def _make(username="alice", balance="1000.00", password="secret", is_active=True):
        account = Account(
            username=username,
            password=password,
            registered_at=clock.now(),
            balance=Decimal(balance),
            is_active=is_active,
        )
        context.add_account(account)
        return account
    return _make
