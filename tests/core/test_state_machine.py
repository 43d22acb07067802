import pytest

from smsverify.core.errors import InvalidState
from smsverify.core.state_machine import VerificationStatus, can_transition, restart, transition
from smsverify.store.models import VerificationAttempt

S = VerificationStatus


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.SENT),
    (S.SENT, S.VERIFIED),
    (S.SENT, S.FAILED),
])
def test_legal_transitions(current, target):
    attempt = VerificationAttempt(mobileNumberHash="h", status=current)
    transition(attempt, target)
    assert attempt.status is target


@pytest.mark.parametrize("current,target", [
    (S.PENDING, S.VERIFIED),
    (S.PENDING, S.FAILED),
    (S.SENT, S.PENDING),
    (S.FAILED, S.SENT),
    (S.FAILED, S.VERIFIED),
    (S.VERIFIED, S.SENT),
    (S.VERIFIED, S.FAILED),
])
def test_illegal_transitions_raise(current, target):
    attempt = VerificationAttempt(mobileNumberHash="h", status=current)
    assert not can_transition(current, target)
    with pytest.raises(InvalidState):
        transition(attempt, target)
    assert attempt.status is current


@pytest.mark.parametrize("current", list(S))
def test_restart_from_any_status(current):
    attempt = VerificationAttempt(
        mobileNumberHash="h", smsChallengeHash="old", clientChallenge="old", smsHandle="old", status=current
    )
    restart(attempt, sms_challenge_hash="new-sms", client_challenge="new-client", sms_handle="new-handle")
    assert attempt.status is S.PENDING
    assert (attempt.smsChallengeHash, attempt.clientChallenge, attempt.smsHandle) == (
        "new-sms", "new-client", "new-handle"
    )


def test_status_survives_serialization():
    attempt = VerificationAttempt(mobileNumberHash="h", status=S.SENT)
    data = attempt.to_dict()
    assert data["status"] == "SENT"
    assert VerificationAttempt.from_dict(data).status is S.SENT
