"""
Error taxonomy for the verification core.

Every failure the core reports is a VerificationError subclass carrying a stable
`code` and the HTTP status the transport layer should use. None of them are
retried internally.
"""


class VerificationError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"status": "error", "error": self.code, "message": self.message}


class InvalidInput(VerificationError):
    """A required field is missing or empty."""
    code = "invalid_input"
    status_code = 400


class NotFound(VerificationError):
    code = "not_found"
    status_code = 404


class CredentialMismatch(VerificationError):
    """The mobile number is already bound under a different password."""
    code = "credential_mismatch"
    status_code = 409


class AlreadyExists(VerificationError):
    code = "already_exists"
    status_code = 409


class Unauthorized(VerificationError):
    """Wrong credential or challenge. Causes are deliberately indistinguishable."""
    code = "unauthorized"
    status_code = 401


class InvalidState(VerificationError):
    """The verification attempt is not in the expected lifecycle stage."""
    code = "invalid_state"
    status_code = 409


class InternalInconsistency(VerificationError):
    """A data-integrity invariant of the record store was found broken."""
    code = "internal_inconsistency"
    status_code = 500


class Conflict(VerificationError):
    """A concurrent writer won the race on a unique key or a watched record."""
    code = "conflict"
    status_code = 409


def require(**values) -> None:
    """Raise InvalidInput for the first missing or empty field."""
    for name, value in values.items():
        if not value:
            raise InvalidInput(f"{name} must be provided")
