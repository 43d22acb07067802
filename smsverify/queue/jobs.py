from smsverify.observability.logging import log
from smsverify.sms.senders import HttpSmsGateway


def send_sms_job(handle: str, destination: str, text: str) -> bool:
    """
    Background job: deliver one challenge SMS through the HTTP gateway.
    A failed delivery is reported back to the verification core, which moves
    the attempt SENT -> FAILED if the handle is still current.
    """
    log(event="sms_job_start", smsHandle=handle)
    ok = HttpSmsGateway().send(handle, destination, text)
    if not ok:
        # Lazy import: facade builds the sender, which enqueues this job
        from smsverify.core.errors import NotFound
        from smsverify.core.facade import get_facade
        try:
            get_facade().report_delivery_status(handle, delivered=False)
        except NotFound:
            log(event="sms_job_stale_handle", smsHandle=handle)
    return ok
