from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

import smsverify.observability.metrics as metrics
from smsverify.settings import settings


@patch("smsverify.observability.metrics.get_redis")
def test_increment_skipped_when_disabled(mock_get_redis):
    metrics.increment("challenge_requested")
    mock_get_redis.assert_not_called()


@patch("smsverify.observability.metrics.get_redis")
def test_increment_hits_counter_key(mock_get_redis):
    with patch.object(settings, "METRICS_ENABLED", True):
        metrics.increment("challenge_verified")
    mock_get_redis.return_value.incr.assert_called_once_with(metrics.K_CHALLENGE_VERIFIED, 1)


@patch("smsverify.observability.metrics.log")
@patch("smsverify.observability.metrics.get_redis")
def test_redis_outage_is_logged_not_raised(mock_get_redis, mock_log):
    mock_get_redis.return_value.incr.side_effect = RedisConnectionError("down")
    with patch.object(settings, "METRICS_ENABLED", True):
        metrics.increment("challenge_sent")
    assert mock_log.call_args.kwargs["event"] == "metrics_unavailable"


@patch("smsverify.observability.metrics.get_redis")
def test_snapshot(mock_get_redis):
    r = MagicMock()
    counts = {metrics.K_CHALLENGE_REQUESTED: "4", metrics.K_CHALLENGE_VERIFIED: "1"}
    r.get.side_effect = lambda key: counts.get(key)
    r.lrange.return_value = ["10", "20", "bad", "30"]
    mock_get_redis.return_value = r

    snap = metrics.get_snapshot()

    assert snap["challenge_requested"] == 4
    assert snap["challenge_sent"] == 0
    assert snap["verification_rate"] == 25.0
    assert snap["p50_sms_dispatch_ms"] == 20.0
    assert snap["p95_sms_dispatch_ms"] == 30.0
