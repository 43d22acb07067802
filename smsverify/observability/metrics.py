"""
Verification counters and SMS dispatch latency.

Counters live in Redis (INCR / LPUSH+LTRIM) and are best effort: a Redis
outage is logged and never fails the request that emitted the metric.
"""
from __future__ import annotations
import time
from typing import List, Tuple

from redis.exceptions import RedisError

from smsverify.observability.logging import log
from smsverify.settings import settings
from smsverify.store.redis_conn import get_redis

K_CHALLENGE_REQUESTED = "metrics:challenge:requested"
K_CHALLENGE_SENT = "metrics:challenge:sent"
K_CHALLENGE_VERIFIED = "metrics:challenge:verified"
K_VERIFY_REJECTED = "metrics:verify:rejected"
K_SMS_FAILED = "metrics:sms:delivery_failed"
K_SMS_LAT = "metrics:sms:dispatch_latencies"   # LPUSH ms

COUNTERS = {
    "challenge_requested": K_CHALLENGE_REQUESTED,
    "challenge_sent": K_CHALLENGE_SENT,
    "challenge_verified": K_CHALLENGE_VERIFIED,
    "verify_rejected": K_VERIFY_REJECTED,
    "sms_delivery_failed": K_SMS_FAILED,
}

_MAX_SAMPLES = 500

def _percentile(data: List[float], p: float) -> float:
    """Nearest-rank percentile on sorted data."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def _p50_p95(samples: List[float]) -> Tuple[float, float]:
    if not samples:
        return 0.0, 0.0
    return _percentile(samples, 0.50), _percentile(samples, 0.95)

def increment(name: str) -> None:
    if not settings.METRICS_ENABLED:
        return
    key = COUNTERS[name]
    try:
        get_redis().incr(key, 1)
    except RedisError as e:
        log(event="metrics_unavailable", metric=name, errorType=type(e).__name__)

def record_dispatch_latency(ms: int) -> None:
    if not settings.METRICS_ENABLED:
        return
    try:
        r = get_redis()
        r.lpush(K_SMS_LAT, int(ms))
        r.ltrim(K_SMS_LAT, 0, _MAX_SAMPLES - 1)
    except RedisError as e:
        log(event="metrics_unavailable", metric="sms_dispatch_latency", errorType=type(e).__name__)

def get_snapshot() -> dict:
    """Counter values plus p50/p95 SMS dispatch latency (ms)."""
    r = get_redis()
    out = {name: int(r.get(key) or 0) for name, key in COUNTERS.items()}

    latencies: List[float] = []
    for x in r.lrange(K_SMS_LAT, 0, _MAX_SAMPLES - 1) or []:
        try:
            latencies.append(float(x))
        except (TypeError, ValueError):
            continue
    p50, p95 = _p50_p95(latencies)

    requested = out["challenge_requested"]
    out["verification_rate"] = round((out["challenge_verified"] / requested) * 100.0, 3) if requested else 0.0
    out["p50_sms_dispatch_ms"] = round(p50, 3)
    out["p95_sms_dispatch_ms"] = round(p95, 3)
    out["snapshot_at"] = int(time.time())
    return out
