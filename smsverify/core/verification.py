"""
Mobile number verification: request -> send -> verify.

A client proves ownership of a mobile number by echoing back two secrets:
the numeric SMS challenge (proves control of the number) and the opaque client
challenge returned by the request call (proves it is the same party that asked).

Records are only ever related through one-way hashes:
- MobileNumberFingerprint keyed by hash(mobileNumber) marks a number as claimed.
- ClientIdentity.credentialFingerprint = hash(hash(mobileNumber) + hash(password)).
- VerificationAttempt keyed by hash(mobileNumber), overwritten on every request.

INVARIANT: a claimed number implies exactly one client holds the matching
credential fingerprint. A client bound to some credential while the number is
unclaimed, or an attempt without a claimed number, means the store was
corrupted from outside; both raise InternalInconsistency.
"""
from typing import Callable, Optional

from smsverify.core import state_machine
from smsverify.core.errors import (
    Conflict,
    CredentialMismatch,
    InternalInconsistency,
    InvalidState,
    NotFound,
    Unauthorized,
    VerificationError,
    require,
)
from smsverify.core.state_machine import VerificationStatus
from smsverify.observability.logging import log
import smsverify.observability.metrics as metrics
from smsverify.settings import settings
from smsverify.store.models import ClientIdentity, MobileNumberFingerprint, VerificationAttempt
from smsverify.store.records import RecordStore, RecordTransaction
from smsverify.utils.crypto import (
    combined_fingerprint,
    constant_time_equals,
    fingerprint,
    random_challenge_digits,
    random_handle,
    random_opaque_token,
)

ClientLocator = Callable[[RecordTransaction, str], ClientIdentity]


def _inconsistent(message: str, **fields) -> InternalInconsistency:
    log(event="internal_inconsistency", severity="critical", detail=message, **fields)
    return InternalInconsistency(message)


def _short(h: Optional[str]) -> str:
    return (h or "")[:12]


class VerificationStateMachine:
    def __init__(self, store: RecordStore, sms_sender):
        self.store = store
        self.sms_sender = sms_sender

    # ------------------------------------------------------------------
    # Requesting challenges
    # ------------------------------------------------------------------

    def request_challenge(self, client_id: str, mobile_number: str, password: str) -> VerificationAttempt:
        require(clientId=client_id, mobileNumber=mobile_number, password=password)

        def by_id(tx: RecordTransaction, _credential: str) -> ClientIdentity:
            client = tx.find_client(client_id)
            if client is None:
                raise NotFound(f"Client {client_id} does not exist")
            return client

        return self._request(mobile_number, password, by_id)

    def request_recovery_challenge(self, mobile_number: str, password: str) -> VerificationAttempt:
        """Re-attach to an existing client by proving knowledge of number + password."""
        require(mobileNumber=mobile_number, password=password)

        def by_credential(tx: RecordTransaction, credential: str) -> ClientIdentity:
            client = tx.find_client_by_credential(credential)
            if client is None:
                raise NotFound("Client not found for the given mobile number and password")
            return client

        return self._request(mobile_number, password, by_credential)

    def _request(self, mobile_number: str, password: str, locate_client: ClientLocator) -> VerificationAttempt:
        mobile_hash = fingerprint(mobile_number)
        credential = combined_fingerprint(mobile_number, password)
        sms_challenge = random_challenge_digits(int(settings.SMS_CHALLENGE_DIGITS))

        claimed = False
        try:
            with self.store.transaction() as tx:
                client = locate_client(tx, credential)

                claimed = tx.find_mobile_number(mobile_hash) is not None
                if claimed:
                    attempt = self._reconfirm(tx, client, mobile_hash, credential)
                else:
                    attempt = self._claim(tx, client, mobile_hash)

                client.credentialFingerprint = credential
                client.verified = False
                tx.save_client(client)

                state_machine.restart(
                    attempt,
                    sms_challenge_hash=fingerprint(sms_challenge),
                    client_challenge=random_opaque_token(),
                    sms_handle=random_handle(int(settings.SMS_HANDLE_BYTES)),
                )
                tx.save_verification(attempt)
        except Conflict as e:
            if claimed:
                raise Conflict("A concurrent challenge request for this mobile number won; request again") from e
            raise Conflict("Mobile number was claimed by a concurrent request") from e

        metrics.increment("challenge_requested")
        log(event="challenge_requested", clientId=client.id, mobileHash=_short(mobile_hash), smsHandle=attempt.smsHandle)

        handed_off = self.sms_sender.send(attempt.smsHandle, mobile_number, self._sms_text(sms_challenge))

        current = self._mark_sent(mobile_hash, attempt.smsHandle)
        if current is None:
            return attempt
        if not handed_off:
            log(event="sms_dispatch_failed", mobileHash=_short(mobile_hash), smsHandle=attempt.smsHandle)
            current = self.report_delivery(attempt.smsHandle, delivered=False) or current
        return current

    def _reconfirm(self, tx: RecordTransaction, client: ClientIdentity, mobile_hash: str, credential: str) -> VerificationAttempt:
        """Number already claimed: only the holder of the same credential may re-verify."""
        if client.credentialFingerprint != credential:
            log(event="challenge_credential_mismatch", clientId=client.id, mobileHash=_short(mobile_hash))
            raise CredentialMismatch("Mobile number already verified with a different password")

        attempt = tx.find_verification(mobile_hash)
        if attempt is None:
            raise _inconsistent(
                "Verification attempt missing for a claimed mobile number",
                clientId=client.id,
                mobileHash=_short(mobile_hash),
            )
        return attempt

    def _claim(self, tx: RecordTransaction, client: ClientIdentity, mobile_hash: str) -> VerificationAttempt:
        """First request for this number: claim it and open a fresh attempt."""
        if client.credentialFingerprint is not None:
            raise _inconsistent(
                "Client already bound to a credential though the mobile number is unclaimed",
                clientId=client.id,
                mobileHash=_short(mobile_hash),
            )
        if tx.find_verification(mobile_hash) is not None:
            raise _inconsistent(
                "Verification attempt exists though the mobile number is unclaimed",
                clientId=client.id,
                mobileHash=_short(mobile_hash),
            )

        tx.insert_mobile_number(MobileNumberFingerprint(mobileNumberHash=mobile_hash))
        log(event="mobile_number_claimed", clientId=client.id, mobileHash=_short(mobile_hash))
        return VerificationAttempt(mobileNumberHash=mobile_hash)

    def _mark_sent(self, mobile_hash: str, sms_handle: str) -> Optional[VerificationAttempt]:
        """
        PENDING -> SENT after the hand-off, with an optimistic retry loop.
        Returns None when a newer request has already replaced this attempt or
        the retries ran out; the attempt then stays PENDING until re-requested.
        """
        retries = max(0, int(getattr(settings, "MARK_SENT_MAX_RETRIES", 3) or 0))
        for attempt_idx in range(retries + 1):
            try:
                with self.store.transaction() as tx:
                    attempt = tx.find_verification(mobile_hash)
                    if attempt is None or attempt.smsHandle != sms_handle:
                        log(event="challenge_superseded", mobileHash=_short(mobile_hash), smsHandle=sms_handle)
                        return None
                    if attempt.status is not VerificationStatus.PENDING:
                        return attempt
                    state_machine.transition(attempt, VerificationStatus.SENT)
                    tx.save_verification(attempt)
            except Conflict:
                log(event="challenge_mark_sent_conflict", mobileHash=_short(mobile_hash), attempt=attempt_idx + 1)
                continue

            metrics.increment("challenge_sent")
            log(event="challenge_sent", mobileHash=_short(mobile_hash), smsHandle=sms_handle)
            return attempt

        log(event="challenge_mark_sent_gave_up", mobileHash=_short(mobile_hash), smsHandle=sms_handle, retries=retries)
        return None

    @staticmethod
    def _sms_text(sms_challenge: str) -> str:
        return settings.SMS_MESSAGE_TEMPLATE.format(challenge=sms_challenge)

    # ------------------------------------------------------------------
    # Delivery reports from the SMS collaborator
    # ------------------------------------------------------------------

    def report_delivery(self, sms_handle: str, delivered: bool) -> Optional[VerificationAttempt]:
        """
        Apply an asynchronous delivery report. A failure moves a SENT attempt to
        FAILED; anything else is recorded in the log only. Returns None if the
        handle no longer belongs to a current attempt.
        """
        require(smsHandle=sms_handle)
        with self.store.transaction() as tx:
            attempt = tx.find_verification_by_handle(sms_handle)
            if attempt is None:
                log(event="delivery_report_unknown_handle", smsHandle=sms_handle)
                return None
            if delivered:
                log(event="delivery_report_delivered", smsHandle=sms_handle, status=attempt.status.value)
                return attempt
            if not state_machine.can_transition(attempt.status, VerificationStatus.FAILED):
                log(event="delivery_report_ignored", smsHandle=sms_handle, status=attempt.status.value)
                return attempt
            state_machine.transition(attempt, VerificationStatus.FAILED)
            tx.save_verification(attempt)

        metrics.increment("sms_delivery_failed")
        log(event="delivery_report_failed", smsHandle=sms_handle, mobileHash=_short(attempt.mobileNumberHash))
        return attempt

    # ------------------------------------------------------------------
    # Verifying
    # ------------------------------------------------------------------

    def verify_challenge(self, mobile_number: str, password: str, sms_challenge: str, client_challenge: str) -> ClientIdentity:
        require(
            mobileNumber=mobile_number,
            password=password,
            smsChallenge=sms_challenge,
            clientChallenge=client_challenge,
        )
        mobile_hash = fingerprint(mobile_number)
        credential = combined_fingerprint(mobile_number, password)

        try:
            with self.store.transaction() as tx:
                client = tx.find_client_by_credential(credential)
                if client is None:
                    raise Unauthorized("Wrong mobile number or password")

                attempt = tx.find_verification(mobile_hash)
                if attempt is None:
                    raise Unauthorized("Wrong mobile number or password")

                if attempt.status is not VerificationStatus.SENT:
                    raise InvalidState(
                        f"Verification has wrong status. Expected {VerificationStatus.SENT.value} "
                        f"but was {attempt.status.value}"
                    )

                # Both factors must match; never a partial success
                sms_ok = constant_time_equals(fingerprint(sms_challenge), attempt.smsChallengeHash)
                client_ok = constant_time_equals(client_challenge, attempt.clientChallenge)
                if not (sms_ok and client_ok):
                    raise Unauthorized("Provided challenge does not match the sent challenge")

                state_machine.transition(attempt, VerificationStatus.VERIFIED)
                tx.save_verification(attempt)

                client.verified = True
                tx.save_client(client)
        except VerificationError as e:
            metrics.increment("verify_rejected")
            log(event="verify_rejected", mobileHash=_short(mobile_hash), error=e.code, detail=e.message)
            raise

        metrics.increment("challenge_verified")
        log(event="challenge_verified", clientId=client.id, mobileHash=_short(mobile_hash))
        return client
