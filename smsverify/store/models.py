from dataclasses import dataclass, asdict, fields as dc_fields
from typing import Optional

from smsverify.core.state_machine import VerificationStatus


def _known_fields(cls, data: dict) -> dict:
    """Drop unknown keys so cls(**kwargs) never explodes on older records."""
    allowed = {f.name for f in dc_fields(cls)}
    return {k: v for k, v in data.items() if k in allowed}


@dataclass
class ClientIdentity:
    id: str = ""
    # hash(hash(mobileNumber) + hash(password)); None while anonymous
    credentialFingerprint: Optional[str] = None
    verified: bool = False

    # Optional direct login (username + bcrypt hash)
    username: Optional[str] = None
    passwordHash: Optional[str] = None

    createdAtMs: int = 0
    updatedAtMs: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ClientIdentity":
        return cls(**_known_fields(cls, data))


@dataclass
class MobileNumberFingerprint:
    mobileNumberHash: str = ""
    createdAtMs: int = 0
    updatedAtMs: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "MobileNumberFingerprint":
        return cls(**_known_fields(cls, data))


@dataclass
class VerificationAttempt:
    mobileNumberHash: str = ""
    smsChallengeHash: Optional[str] = None
    # Returned to the requester in plaintext; never sent by SMS
    clientChallenge: Optional[str] = None
    status: VerificationStatus = VerificationStatus.PENDING
    # Correlation id for the SMS dispatch (diagnostic)
    smsHandle: Optional[str] = None

    createdAtMs: int = 0
    updatedAtMs: int = 0

    def __post_init__(self):
        if not isinstance(self.status, VerificationStatus):
            self.status = VerificationStatus(self.status)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationAttempt":
        return cls(**_known_fields(cls, data))
