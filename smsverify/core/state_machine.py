from enum import Enum
from typing import Dict, FrozenSet

from smsverify.core.errors import InvalidState


class VerificationStatus(str, Enum):
    # Challenge material stored, SMS not yet handed off
    PENDING = "PENDING"

    # Handed off to the SMS collaborator (optimistic; delivery not confirmed)
    SENT = "SENT"

    # Collaborator reported a delivery failure; not verifiable until restarted
    FAILED = "FAILED"

    # Both challenges matched; terminal success
    VERIFIED = "VERIFIED"


# Legal forward transitions. A fresh challenge request restarts an attempt from
# any status into PENDING; that is `restart`, not a transition.
TRANSITIONS: Dict[VerificationStatus, FrozenSet[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset({VerificationStatus.SENT}),
    VerificationStatus.SENT: frozenset({VerificationStatus.VERIFIED, VerificationStatus.FAILED}),
    VerificationStatus.FAILED: frozenset(),
    VerificationStatus.VERIFIED: frozenset(),
}


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(attempt, target: VerificationStatus) -> None:
    """Move `attempt` to `target` or raise InvalidState."""
    current = VerificationStatus(attempt.status)
    if not can_transition(current, target):
        raise InvalidState(
            f"Illegal verification transition {current.value} -> {target.value}"
        )
    attempt.status = target


def restart(attempt, *, sms_challenge_hash: str, client_challenge: str, sms_handle: str) -> None:
    """Overwrite the attempt in place with fresh challenge material."""
    attempt.smsChallengeHash = sms_challenge_hash
    attempt.clientChallenge = client_challenge
    attempt.smsHandle = sms_handle
    attempt.status = VerificationStatus.PENDING
