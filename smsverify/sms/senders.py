"""
SMS collaborators.

Contract shared by every sender: send(handle, destination, text) -> bool.
A False return means the hand-off failed; the caller never gets an exception
from here. The state machine does not wait on delivery beyond this call.
"""
import time
from typing import Optional

import httpx
from redis.exceptions import RedisError

from smsverify.observability.logging import log, mask_number
from smsverify.settings import settings
import smsverify.observability.metrics as metrics


class LogSmsSender:
    """Development sender: logs the dispatch without the destination or text."""

    def send(self, handle: str, destination: str, text: str) -> bool:
        log(event="sms_dispatch_logged", smsHandle=handle, to=mask_number(destination), length=len(text))
        return True


class HttpSmsGateway:
    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        sender_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url if url is not None else settings.SMS_GATEWAY_URL
        self.token = token if token is not None else settings.SMS_GATEWAY_TOKEN
        self.sender_id = sender_id if sender_id is not None else settings.SMS_SENDER_ID
        self.timeout = float(timeout if timeout is not None else settings.SMS_GATEWAY_TIMEOUT_SEC)

    def send(self, handle: str, destination: str, text: str) -> bool:
        if not self.url:
            log(event="sms_gateway_unconfigured", smsHandle=handle)
            return False

        headers = {"Content-Type": "application/json", "X-Sms-Handle": handle}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"handle": handle, "to": destination, "text": text, "sender": self.sender_id}

        start = time.time()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(self.url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log(
                event="sms_gateway_exception",
                smsHandle=handle,
                to=mask_number(destination),
                errorType=type(e).__name__,
                error=str(e)[:200],
            )
            return False

        elapsed_ms = int((time.time() - start) * 1000)
        metrics.record_dispatch_latency(elapsed_ms)
        if 200 <= resp.status_code < 300:
            log(event="sms_gateway_accepted", smsHandle=handle, statusCode=int(resp.status_code), elapsedMs=elapsed_ms)
            return True

        log(
            event="sms_gateway_rejected",
            smsHandle=handle,
            statusCode=int(resp.status_code),
            elapsedMs=elapsed_ms,
            responseText=(resp.text or "")[:200],
        )
        return False


class QueuedSmsSender:
    """Enqueues the gateway call on RQ; delivery failures come back via the job."""

    def send(self, handle: str, destination: str, text: str) -> bool:
        # Lazy imports: jobs -> facade -> senders
        from smsverify.queue.jobs import send_sms_job
        from smsverify.queue.rq_conn import get_queue

        try:
            q = get_queue()
            job = q.enqueue(
                send_sms_job,
                handle,
                destination,
                text,
                result_ttl=int(settings.SMS_JOB_RESULT_TTL),
                failure_ttl=int(settings.SMS_JOB_FAILURE_TTL),
            )
        except RedisError as e:
            log(event="sms_enqueue_failed", smsHandle=handle, errorType=type(e).__name__, error=str(e)[:200])
            return False

        log(event="sms_enqueued", smsHandle=handle, rq_job_id=getattr(job, "id", "") or "")
        return True


def build_sms_sender():
    mode = (getattr(settings, "SMS_DISPATCH_MODE", "log") or "log").lower()
    if mode == "sync":
        return HttpSmsGateway()
    if mode == "rq":
        return QueuedSmsSender()
    return LogSmsSender()
