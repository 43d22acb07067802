import pytest
from unittest.mock import patch

from smsverify.core.errors import AlreadyExists, Conflict, CredentialMismatch, InvalidState, NotFound
from smsverify.core.facade import VerificationFacade, build_store
from smsverify.settings import settings
from smsverify.store.records import InMemoryRecordStore
from smsverify.store.redis_records import RedisRecordStore

NUMBER = "+15550003333"


@pytest.fixture
def facade(store, sender):
    return VerificationFacade(store=store, sms_sender=sender)


def test_end_to_end_contracts(facade, sender):
    client = facade.create_client()
    assert client == {"id": client["id"], "verified": False}

    out = facade.request_challenge(client["id"], NUMBER, "pw")
    assert set(out) == {"clientChallenge"}

    verified = facade.verify_challenge(NUMBER, "pw", sender.last_challenge, out["clientChallenge"])
    assert verified == {"id": client["id"], "verified": True}
    assert facade.get_client(client["id"]) == verified


def test_duplicate_username_becomes_already_exists(facade):
    facade.create_client("alice", "pw")
    with pytest.raises(AlreadyExists):
        facade.create_client("alice", "pw")


def test_authenticate_client(facade):
    created = facade.create_client("alice", "pw")
    assert facade.authenticate_client("alice", "pw") == created


def test_request_conflict_becomes_credential_mismatch(facade):
    client = facade.create_client()
    with patch.object(facade.verification, "request_challenge", side_effect=Conflict("race")):
        with pytest.raises(CredentialMismatch):
            facade.request_challenge(client["id"], NUMBER, "pw")


def test_recovery_conflict_becomes_credential_mismatch(facade):
    with patch.object(facade.verification, "request_recovery_challenge", side_effect=Conflict("race")):
        with pytest.raises(CredentialMismatch):
            facade.request_recovery_challenge(NUMBER, "pw")


def test_recovery_returns_fresh_client_challenge(facade, sender):
    client = facade.create_client()
    first = facade.request_challenge(client["id"], NUMBER, "pw")
    again = facade.request_recovery_challenge(NUMBER, "pw")
    assert again["clientChallenge"] != first["clientChallenge"]


def test_delivery_report(facade, sender):
    client = facade.create_client()
    facade.request_challenge(client["id"], NUMBER, "pw")
    assert facade.report_delivery_status(sender.last_handle, delivered=True) == {"status": "SENT"}
    assert facade.report_delivery_status(sender.last_handle, delivered=False) == {"status": "FAILED"}


def test_delivery_report_for_unknown_handle(facade):
    with pytest.raises(NotFound):
        facade.report_delivery_status("unknown", delivered=False)


def test_build_store_follows_backend_setting():
    with patch.object(settings, "STORE_BACKEND", "memory"):
        assert isinstance(build_store(), InMemoryRecordStore)
    with patch.object(settings, "STORE_BACKEND", "redis"):
        assert isinstance(build_store(), RedisRecordStore)


def test_verify_conflict_is_rechecked(facade, sender):
    client = facade.create_client()
    out = facade.request_challenge(client["id"], NUMBER, "pw")
    real_verify = facade.verification.verify_challenge
    calls = []

    def lose_first_race(*args):
        calls.append(args)
        if len(calls) == 1:
            raise Conflict("race")
        return real_verify(*args)

    with patch.object(facade.verification, "verify_challenge", side_effect=lose_first_race):
        verified = facade.verify_challenge(NUMBER, "pw", sender.last_challenge, out["clientChallenge"])

    assert verified == {"id": client["id"], "verified": True}
    assert len(calls) == 2


def test_verify_conflict_twice_is_invalid_state(facade):
    with patch.object(facade.verification, "verify_challenge", side_effect=Conflict("race")):
        with pytest.raises(InvalidState):
            facade.verify_challenge(NUMBER, "pw", "12345", "c")
