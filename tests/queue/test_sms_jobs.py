from unittest.mock import patch

from smsverify.core.errors import NotFound
from smsverify.queue.jobs import send_sms_job


@patch("smsverify.core.facade.get_facade")
@patch("smsverify.queue.jobs.HttpSmsGateway")
@patch("smsverify.queue.jobs.log")
def test_send_sms_job_success(mock_log, mock_gateway, mock_get_facade):
    mock_gateway.return_value.send.return_value = True

    assert send_sms_job("h1", "+15550001111", "code") is True

    mock_gateway.return_value.send.assert_called_with("h1", "+15550001111", "code")
    mock_get_facade.assert_not_called()
    assert mock_log.call_args.kwargs["event"] == "sms_job_start"


@patch("smsverify.core.facade.get_facade")
@patch("smsverify.queue.jobs.HttpSmsGateway")
def test_send_sms_job_reports_failure(mock_gateway, mock_get_facade):
    mock_gateway.return_value.send.return_value = False

    assert send_sms_job("h1", "+15550001111", "code") is False

    mock_get_facade.return_value.report_delivery_status.assert_called_once_with("h1", delivered=False)


@patch("smsverify.core.facade.get_facade")
@patch("smsverify.queue.jobs.HttpSmsGateway")
@patch("smsverify.queue.jobs.log")
def test_send_sms_job_stale_handle(mock_log, mock_gateway, mock_get_facade):
    mock_gateway.return_value.send.return_value = False
    mock_get_facade.return_value.report_delivery_status.side_effect = NotFound("gone")

    assert send_sms_job("h1", "+15550001111", "code") is False
    assert mock_log.call_args.kwargs["event"] == "sms_job_stale_handle"
