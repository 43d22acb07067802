"""
Credential records store.

Three independent record kinds, all keyed by opaque ids or one-way hashes:

    client:{id}                     -> ClientIdentity
    mobile:{mobileNumberHash}       -> MobileNumberFingerprint   (insert-only)
    verification:{mobileNumberHash} -> VerificationAttempt       (upsert, one per number)

Unique secondary values are kept as index keys pointing at the owning record:

    idx:credential:{credentialFingerprint} -> client id
    idx:username:{username}                -> client id
    idx:handle:{smsHandle}                 -> mobileNumberHash

Every operation runs inside `RecordStore.transaction()`. Reads are tracked and
writes are buffered; commit applies them atomically or raises Conflict when a
concurrent writer touched anything this transaction read.
"""
import json
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from smsverify.core.errors import Conflict
from smsverify.store.models import ClientIdentity, MobileNumberFingerprint, VerificationAttempt
from smsverify.utils.time import now_ms

CLIENT = "client:"
MOBILE = "mobile:"
VERIFICATION = "verification:"
IDX_CREDENTIAL = "idx:credential:"
IDX_USERNAME = "idx:username:"
IDX_HANDLE = "idx:handle:"


class RecordTransaction:
    def __init__(self, prefix: str = ""):
        self._prefix = prefix
        self._reads: Dict[str, Optional[str]] = {}
        # None marks a delete
        self._writes: Dict[str, Optional[str]] = {}

    # -- backend hooks ------------------------------------------------------

    def _fetch(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    # -- raw access ---------------------------------------------------------

    def _key(self, kind: str, value: str) -> str:
        return f"{self._prefix}{kind}{value}"

    def _read(self, key: str) -> Optional[str]:
        if key in self._writes:
            return self._writes[key]
        if key not in self._reads:
            self._reads[key] = self._fetch(key)
        return self._reads[key]

    def _write(self, key: str, value: Optional[str]) -> None:
        self._writes[key] = value

    def _load(self, key: str, cls):
        raw = self._read(key)
        if not raw:
            return None
        return cls.from_dict(json.loads(raw))

    def _reindex(self, kind: str, owner: str, old_value: Optional[str], new_value: Optional[str]) -> None:
        if old_value == new_value:
            return
        if new_value:
            holder = self._read(self._key(kind, new_value))
            if holder is not None and holder != owner:
                raise Conflict(f"Unique value already held ({kind.rstrip(':')})")
            self._write(self._key(kind, new_value), owner)
        if old_value and self._read(self._key(kind, old_value)) == owner:
            self._write(self._key(kind, old_value), None)

    @staticmethod
    def _stamp(record, previous) -> None:
        ts = now_ms()
        record.createdAtMs = previous.createdAtMs if previous is not None else (record.createdAtMs or ts)
        record.updatedAtMs = ts

    # -- ClientIdentity -----------------------------------------------------

    def find_client(self, client_id: str) -> Optional[ClientIdentity]:
        if not client_id:
            return None
        return self._load(self._key(CLIENT, client_id), ClientIdentity)

    def find_client_by_credential(self, credential_fingerprint: str) -> Optional[ClientIdentity]:
        client_id = self._read(self._key(IDX_CREDENTIAL, credential_fingerprint))
        return self.find_client(client_id) if client_id else None

    def find_client_by_username(self, username: str) -> Optional[ClientIdentity]:
        client_id = self._read(self._key(IDX_USERNAME, username))
        return self.find_client(client_id) if client_id else None

    def save_client(self, client: ClientIdentity) -> ClientIdentity:
        key = self._key(CLIENT, client.id)
        previous = self._load(key, ClientIdentity)
        self._reindex(
            IDX_CREDENTIAL, client.id,
            previous.credentialFingerprint if previous else None,
            client.credentialFingerprint,
        )
        self._reindex(
            IDX_USERNAME, client.id,
            previous.username if previous else None,
            client.username,
        )
        self._stamp(client, previous)
        self._write(key, json.dumps(client.to_dict()))
        return client

    # -- MobileNumberFingerprint --------------------------------------------

    def find_mobile_number(self, mobile_number_hash: str) -> Optional[MobileNumberFingerprint]:
        return self._load(self._key(MOBILE, mobile_number_hash), MobileNumberFingerprint)

    def insert_mobile_number(self, record: MobileNumberFingerprint) -> MobileNumberFingerprint:
        key = self._key(MOBILE, record.mobileNumberHash)
        if self._read(key) is not None:
            raise Conflict("Mobile number fingerprint already exists")
        self._stamp(record, None)
        self._write(key, json.dumps(record.to_dict()))
        return record

    # -- VerificationAttempt ------------------------------------------------

    def find_verification(self, mobile_number_hash: str) -> Optional[VerificationAttempt]:
        return self._load(self._key(VERIFICATION, mobile_number_hash), VerificationAttempt)

    def find_verification_by_handle(self, sms_handle: str) -> Optional[VerificationAttempt]:
        mobile_number_hash = self._read(self._key(IDX_HANDLE, sms_handle))
        return self.find_verification(mobile_number_hash) if mobile_number_hash else None

    def save_verification(self, attempt: VerificationAttempt) -> VerificationAttempt:
        key = self._key(VERIFICATION, attempt.mobileNumberHash)
        previous = self._load(key, VerificationAttempt)
        self._reindex(
            IDX_HANDLE, attempt.mobileNumberHash,
            previous.smsHandle if previous else None,
            attempt.smsHandle,
        )
        self._stamp(attempt, previous)
        self._write(key, json.dumps(attempt.to_dict()))
        return attempt


class RecordStore:
    """Hands out one RecordTransaction per operation."""

    def _begin(self) -> RecordTransaction:
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator[RecordTransaction]:
        tx = self._begin()
        try:
            yield tx
            tx.commit()
        finally:
            tx.close()


class _MemoryTransaction(RecordTransaction):
    def __init__(self, store: "InMemoryRecordStore"):
        super().__init__(store.prefix)
        self._store = store
        self._seen_versions: Dict[str, int] = {}

    def _fetch(self, key: str) -> Optional[str]:
        with self._store._lock:
            self._seen_versions[key] = self._store._versions.get(key, 0)
            return self._store._values.get(key)

    def commit(self) -> None:
        if not self._writes:
            return
        with self._store._lock:
            for key, seen in self._seen_versions.items():
                if self._store._versions.get(key, 0) != seen:
                    raise Conflict("Concurrent modification of verification records")
            for key, value in self._writes.items():
                self._store._versions[key] = self._store._versions.get(key, 0) + 1
                if value is None:
                    self._store._values.pop(key, None)
                else:
                    self._store._values[key] = value


class InMemoryRecordStore(RecordStore):
    """
    Process-local store with the same optimistic semantics as the Redis store:
    a commit fails if any key read by the transaction changed since it was read.
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self._lock = threading.Lock()
        self._values: Dict[str, str] = {}
        # versions survive deletes so a delete is a visible change
        self._versions: Dict[str, int] = {}

    def _begin(self) -> RecordTransaction:
        return _MemoryTransaction(self)

    def count(self, kind: str) -> int:
        head = f"{self.prefix}{kind}"
        with self._lock:
            return sum(1 for k in self._values if k.startswith(head))
