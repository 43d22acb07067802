"""
One-way hashing and randomness helpers.

- fingerprint / combined_fingerprint: unsalted SHA-256, used for equality lookups
  (mobile numbers, credential composites, SMS challenges).
- hash_password / verify_password: salted bcrypt, used for anything that is
  checked directly at login.
- random_*: all drawn from the OS CSPRNG via `secrets`.
"""
import base64
import hashlib
import secrets
import uuid

import bcrypt

from smsverify.settings import settings


def fingerprint(text: str) -> str:
    """SHA-256 over the UTF-8 bytes, lower-case hex."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def combined_fingerprint(mobile_number: str, password: str) -> str:
    """Hash of the concatenated hashes, so neither half can be attacked alone."""
    return fingerprint(fingerprint(mobile_number) + fingerprint(password))


def random_challenge_digits(n: int = 5) -> str:
    """
    Uniform n-digit decimal string in [10^(n-1), 10^n - 1].
    """
    if n < 1:
        raise ValueError("challenge must have at least one digit")
    low = 10 ** (n - 1)
    high = 10 ** n - 1
    return str(low + secrets.randbelow(high - low + 1))


def random_opaque_token() -> str:
    return str(uuid.uuid4())


def random_handle(nbytes: int = 16) -> str:
    return base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")


def hash_password(plain_password: str) -> str:
    rounds = int(getattr(settings, "PASSWORD_HASH_ROUNDS", 12) or 12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed stored hash or over-long input
        return False


def constant_time_equals(a: str, b: str) -> bool:
    return secrets.compare_digest((a or "").encode("utf-8"), (b or "").encode("utf-8"))
