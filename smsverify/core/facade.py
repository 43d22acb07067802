"""
Entry point for every caller (HTTP routes, RQ jobs).

Unwraps the core results into plain dict contracts and translates store
conflicts into the errors callers are expected to handle.
"""
from functools import lru_cache
from typing import Optional

from smsverify.core.clients import ClientRegistry
from smsverify.core.errors import AlreadyExists, Conflict, CredentialMismatch, InvalidState, NotFound
from smsverify.core.verification import VerificationStateMachine
from smsverify.observability.logging import log
from smsverify.settings import settings
from smsverify.sms.senders import build_sms_sender
from smsverify.store.models import ClientIdentity
from smsverify.store.records import InMemoryRecordStore, RecordStore
from smsverify.store.redis_records import RedisRecordStore


def _client_view(client: ClientIdentity) -> dict:
    return {"id": client.id, "verified": bool(client.verified)}


class VerificationFacade:
    def __init__(self, store: Optional[RecordStore] = None, sms_sender=None):
        self.store = store if store is not None else build_store()
        self.sms_sender = sms_sender if sms_sender is not None else build_sms_sender()
        self.clients = ClientRegistry(self.store)
        self.verification = VerificationStateMachine(self.store, self.sms_sender)

    # -- clients ------------------------------------------------------------

    def create_client(self, username: Optional[str] = None, password: Optional[str] = None) -> dict:
        try:
            client = self.clients.create_client(username, password)
        except Conflict as e:
            raise AlreadyExists("Username already taken") from e
        return _client_view(client)

    def get_client(self, client_id: str) -> dict:
        return _client_view(self.clients.get_client(client_id))

    def authenticate_client(self, username: str, password: str) -> dict:
        return _client_view(self.clients.authenticate(username, password))

    # -- verification -------------------------------------------------------

    def request_challenge(self, client_id: str, mobile_number: str, password: str) -> dict:
        try:
            attempt = self.verification.request_challenge(client_id, mobile_number, password)
        except Conflict as e:
            log(event="challenge_request_conflict", clientId=client_id)
            raise CredentialMismatch(e.message) from e
        return {"clientChallenge": attempt.clientChallenge}

    def request_recovery_challenge(self, mobile_number: str, password: str) -> dict:
        try:
            attempt = self.verification.request_recovery_challenge(mobile_number, password)
        except Conflict as e:
            log(event="challenge_request_conflict", recovery=True)
            raise CredentialMismatch(e.message) from e
        return {"clientChallenge": attempt.clientChallenge}

    def verify_challenge(self, mobile_number: str, password: str, sms_challenge: str, client_challenge: str) -> dict:
        args = (mobile_number, password, sms_challenge, client_challenge)
        try:
            client = self.verification.verify_challenge(*args)
        except Conflict:
            # Lost a race on the attempt; re-check against the committed state
            log(event="verify_conflict_recheck")
            try:
                client = self.verification.verify_challenge(*args)
            except Conflict as e:
                raise InvalidState("Verification was changed by a concurrent request") from e
        return _client_view(client)

    def report_delivery_status(self, sms_handle: str, delivered: bool) -> dict:
        attempt = self.verification.report_delivery(sms_handle, delivered)
        if attempt is None:
            raise NotFound("No current verification for this SMS handle")
        return {"status": attempt.status.value}


def build_store() -> RecordStore:
    backend = (getattr(settings, "STORE_BACKEND", "redis") or "redis").lower()
    if backend == "memory":
        return InMemoryRecordStore(prefix=settings.STORE_KEY_PREFIX)
    return RedisRecordStore(prefix=settings.STORE_KEY_PREFIX)


@lru_cache(maxsize=1)
def get_facade() -> VerificationFacade:
    return VerificationFacade()
