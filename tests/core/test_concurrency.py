import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from smsverify.core.errors import CredentialMismatch, InvalidState
from smsverify.core.facade import VerificationFacade
from smsverify.store.records import MOBILE, VERIFICATION, InMemoryRecordStore

NUMBER = "+15550002222"


class BarrierStore(InMemoryRecordStore):
    """Holds every commit that claims a mobile number until both racers are ready."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties)

    def _begin(self):
        tx = super()._begin()
        original = tx.commit

        def commit():
            if any(MOBILE in key for key in tx._writes):
                self.barrier.wait(timeout=5)
            original()

        tx.commit = commit
        return tx


@pytest.mark.parametrize("passwords", [("first", "second"), ("same", "same")])
def test_concurrent_first_requests_for_one_number(make_sender, passwords):
    store = BarrierStore(parties=2)
    facade = VerificationFacade(store=store, sms_sender=make_sender())
    clients = [facade.create_client()["id"] for _ in passwords]

    def request(i):
        try:
            return facade.request_challenge(clients[i], NUMBER, passwords[i])
        except CredentialMismatch as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(request, range(2)))

    wins = [r for r in results if isinstance(r, dict)]
    losses = [r for r in results if isinstance(r, CredentialMismatch)]
    assert len(wins) == 1
    assert len(losses) == 1
    assert store.count(MOBILE) == 1

    bound = [facade.clients.get_client(cid).credentialFingerprint for cid in clients]
    assert sum(1 for fp in bound if fp) == 1


class GatedVerificationStore(InMemoryRecordStore):
    """Once opened, holds commits that write a verification attempt until both racers are ready."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties)
        self.gate_open = False

    def _begin(self):
        tx = super()._begin()
        original = tx.commit

        def commit():
            if self.gate_open and any(VERIFICATION in key for key in tx._writes):
                self.barrier.wait(timeout=5)
            original()

        tx.commit = commit
        return tx


def test_concurrent_verifies_with_the_right_challenges(make_sender):
    store = GatedVerificationStore(parties=2)
    sender = make_sender()
    facade = VerificationFacade(store=store, sms_sender=sender)
    client_id = facade.create_client()["id"]
    challenge = facade.request_challenge(client_id, NUMBER, "pw")["clientChallenge"]
    store.gate_open = True

    def verify(_):
        try:
            return facade.verify_challenge(NUMBER, "pw", sender.last_challenge, challenge)
        except InvalidState as e:
            return e

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(verify, range(2)))

    wins = [r for r in results if isinstance(r, dict)]
    losses = [r for r in results if isinstance(r, InvalidState)]
    assert wins == [{"id": client_id, "verified": True}]
    assert len(losses) == 1
    assert "VERIFIED" in losses[0].message
