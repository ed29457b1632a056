"""
Shared fixtures.

Everything runs against in-memory storage; no external services are called.
"""

import pytest

from group_ledger.audit import AuditLogger
from group_ledger.config import LedgerSettings
from group_ledger.ledger_service import GroupLedger
from group_ledger.models.group import SettlementPolicy, UserIdentity
from group_ledger.queries import LedgerQueries
from group_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryUserDirectory,
)


@pytest.fixture
def settings():
    return LedgerSettings(
        allow_solo_groups=False,
        currency_decimal_places=2,
        default_settlement_policy=SettlementPolicy.FORGIVE,
        recent_activity_limit=5,
    )


@pytest.fixture
def alice():
    return UserIdentity(name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return UserIdentity(name="Bob Builder", email="bob@example.com")


@pytest.fixture
def storage():
    return InMemoryGroupStorage()


@pytest.fixture
def directory(alice, bob):
    return InMemoryUserDirectory([alice, bob])


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def ledger(storage, directory, audit_storage, settings):
    return GroupLedger(
        storage,
        user_directory=directory,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
    )


@pytest.fixture
def queries(storage, settings):
    return LedgerQueries(storage, settings=settings)
