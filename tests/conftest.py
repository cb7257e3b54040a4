"""Shared fixtures for ledger, capability and client tests."""

import itertools
from datetime import datetime, timedelta

import pytest

from daocredit.client import ContributionClient
from daocredit.db import open_database
from daocredit.services.fhe import LocalFHECapability
from daocredit.services.ledger import Ledger

LEDGER_ADDRESS = "0x00000000000000000000000000000000000da0c4"
ALICE = "0xa11ce00000000000000000000000000000000001"
BOB = "0xb0b0000000000000000000000000000000000002"


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def database():
    db = open_database("sqlite://")
    yield db
    db.dispose()


@pytest.fixture
def fhe():
    return LocalFHECapability()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(database, fhe, clock):
    return Ledger(database, fhe, LEDGER_ADDRESS, clock=clock)


@pytest.fixture
def client(ledger, fhe):
    counter = itertools.count(1)
    return ContributionClient(ledger, fhe, id_factory=lambda: f"contribution-{next(counter)}")


@pytest.fixture
def submit(ledger, fhe):
    """Encrypt a score and submit it directly to the ledger."""

    def _submit(contribution_id, score, submitter=ALICE, **kwargs):
        encrypted = fhe.encrypt(LEDGER_ADDRESS, submitter, score)
        return ledger.submit_contribution(contribution_id, encrypted, submitter, **kwargs)

    return _submit


@pytest.fixture
def verify(ledger, fhe):
    """Publicly decrypt a stored score and confirm it to the ledger."""

    def _verify(contribution_id):
        handle = ledger.get_encrypted_score(contribution_id)
        result = fhe.public_decrypt([handle])
        return ledger.verify_contribution(contribution_id, result.clear_payload, result.proof)

    return _verify
