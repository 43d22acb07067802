import pytest
from unittest.mock import patch

from smsverify.settings import settings
from smsverify.store.records import InMemoryRecordStore


class RecordingSender:
    """Stands in for the SMS collaborator; keeps every message it was asked to send."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent = []

    def send(self, handle, destination, text):
        self.sent.append((handle, destination, text))
        return self.ok

    @property
    def last_handle(self) -> str:
        return self.sent[-1][0]

    @property
    def last_challenge(self) -> str:
        return self.sent[-1][2].rsplit(" ", 1)[-1]


@pytest.fixture(autouse=True)
def local_settings():
    # No Redis for counters, cheapest bcrypt cost
    with patch.object(settings, "METRICS_ENABLED", False), \
         patch.object(settings, "PASSWORD_HASH_ROUNDS", 4):
        yield


@pytest.fixture
def store():
    return InMemoryRecordStore(prefix="test:")


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def make_sender():
    return RecordingSender
