import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "sms")

    # Record store: "redis" (default) or "memory" (single process, local runs)
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "redis").lower()
    STORE_KEY_PREFIX: str = os.getenv("STORE_KEY_PREFIX", "smsverify:")

    # Challenge material
    SMS_CHALLENGE_DIGITS: int = int(os.getenv("SMS_CHALLENGE_DIGITS", "5"))
    SMS_HANDLE_BYTES: int = int(os.getenv("SMS_HANDLE_BYTES", "16"))
    SMS_MESSAGE_TEMPLATE: str = os.getenv("SMS_MESSAGE_TEMPLATE", "Your verification code is {challenge}")

    # SMS hand-off
    # Modes:
    # - "log": log the dispatch only (development)
    # - "sync": call the HTTP gateway inline
    # - "rq": enqueue the gateway call on RQ (fire-and-forget)
    SMS_DISPATCH_MODE: str = os.getenv("SMS_DISPATCH_MODE", "log").lower()
    SMS_GATEWAY_URL: str = os.getenv("SMS_GATEWAY_URL", "")
    SMS_GATEWAY_TOKEN: str = os.getenv("SMS_GATEWAY_TOKEN", "")
    SMS_SENDER_ID: str = os.getenv("SMS_SENDER_ID", "")
    SMS_GATEWAY_TIMEOUT_SEC: float = float(os.getenv("SMS_GATEWAY_TIMEOUT_SEC", "5"))
    # Job payloads carry the plaintext destination; do not keep them around.
    SMS_JOB_RESULT_TTL: int = int(os.getenv("SMS_JOB_RESULT_TTL", "0"))
    SMS_JOB_FAILURE_TTL: int = int(os.getenv("SMS_JOB_FAILURE_TTL", "3600"))

    # Optimistic retries for the PENDING -> SENT write after hand-off
    MARK_SENT_MAX_RETRIES: int = int(os.getenv("MARK_SENT_MAX_RETRIES", "3"))

    # bcrypt cost factor for direct-login passwords
    PASSWORD_HASH_ROUNDS: int = int(os.getenv("PASSWORD_HASH_ROUNDS", "12"))

    # Observability
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    METRICS_ENABLED: bool = os.getenv("METRICS_ENABLED", "true").lower() == "true"

    # Admin surface
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
