import json
import time
from smsverify.settings import settings

# Fields that may carry credential material or plaintext numbers
SENSITIVE_KEYS = {"mobileNumber", "password", "smsChallenge", "clientChallenge", "text", "destination"}

def _redact_value(v):
    if isinstance(v, str) and len(v) > 0:
        return f"[REDACTED:{len(v)}chars]"
    if isinstance(v, dict):
        return {k: _redact_value(val) for k, val in v.items()}
    return v

def log(event: str, **fields):
    payload = {"ts": int(time.time()), "event": event}

    if settings.ENABLE_PII_REDACTION:
        clean_fields = {}
        for k, v in fields.items():
            if k in SENSITIVE_KEYS:
                clean_fields[k] = _redact_value(v)
            elif isinstance(v, dict):
                clean_fields[k] = {sk: (_redact_value(sv) if sk in SENSITIVE_KEYS else sv) for sk, sv in v.items()}
            else:
                clean_fields[k] = v
        payload.update(clean_fields)
    else:
        payload.update(fields)

    print(json.dumps(payload, ensure_ascii=False))


def mask_number(mobile_number: str) -> str:
    """Keep the prefix for correlation, hide the last four digits."""
    if len(mobile_number) <= 4:
        return "XXXX"
    return f"{mobile_number[:-4]}XXXX"
