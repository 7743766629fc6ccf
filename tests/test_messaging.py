"""
Tests for outbound email/SMS helpers and background dispatch.
"""
from unittest.mock import MagicMock, patch

import httpx
import pytest

from clinic_api.services import email_service, sms_service
from clinic_api.services.notification_service import dispatch


@pytest.fixture
def twilio(app):
    app.config.update(
        TWILIO_ACCOUNT_SID='AC123',
        TWILIO_AUTH_TOKEN='secret',
        TWILIO_PHONE_NUMBER='+15550001111',
    )
    return app


class TestSms:

    def test_render_template(self):
        body = sms_service.render_sms(
            'payment_received', patient_name='Jane', amount='10.00', currency='USD', invoice_number='INV-1'
        )
        assert body == 'Dear Jane, we received 10.00 USD for invoice INV-1. Thank you.'

    def test_render_missing_field(self):
        with pytest.raises(ValueError):
            sms_service.render_sms('payment_received', patient_name='Jane')

    def test_requires_e164(self, ctx):
        assert sms_service.send_sms('5551234', 'hi') == (False, 'Phone number must be in E.164 format (e.g., +1234567890)')

    def test_skipped_when_not_configured(self, ctx):
        assert sms_service.send_sms('+15551234567', 'hi') == (False, 'SMS not configured')

    def test_sends_through_twilio(self, twilio):
        response = MagicMock(status_code=201)
        response.json.return_value = {'sid': 'SM1'}
        with twilio.app_context(), patch('clinic_api.services.sms_service.httpx.post', return_value=response) as post:
            assert sms_service.send_sms('+15551234567', 'hello') == (True, None)

        args, kwargs = post.call_args
        assert args[0] == 'https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json'
        assert kwargs['auth'] == ('AC123', 'secret')
        assert kwargs['data']['To'] == '+15551234567'

    def test_twilio_error_reported(self, twilio):
        response = MagicMock(status_code=400)
        response.json.return_value = {'code': 21211, 'message': 'Invalid To number'}
        with twilio.app_context(), patch('clinic_api.services.sms_service.httpx.post', return_value=response):
            assert sms_service.send_sms('+15551234567', 'hello') == (False, '[21211] Invalid To number')

    def test_network_error_reported(self, twilio):
        with twilio.app_context(), patch('clinic_api.services.sms_service.httpx.post',
                                         side_effect=httpx.ConnectError('refused')):
            ok, error = sms_service.send_sms('+15551234567', 'hello')
        assert ok is False
        assert 'refused' in error


class TestEmail:

    def test_skipped_when_not_configured(self, ctx):
        assert email_service.send_email('a@b.test', 'Subject', 'Body') is False

    def test_sends_over_smtp(self, app):
        app.config.update(MAIL_USERNAME='mailer', MAIL_PASSWORD='pw')
        with app.app_context(), patch('clinic_api.services.email_service.smtplib.SMTP') as smtp:
            assert email_service.send_email('a@b.test', 'Subject', 'Body', '<p>Body</p>') is True
        server = smtp.return_value.__enter__.return_value
        server.login.assert_called_once_with('mailer', 'pw')
        assert server.sendmail.call_args.args[1] == 'a@b.test'

    def test_smtp_failure_returns_false(self, app):
        app.config.update(MAIL_USERNAME='mailer', MAIL_PASSWORD='pw')
        with app.app_context(), patch('clinic_api.services.email_service.smtplib.SMTP', side_effect=OSError('down')):
            assert email_service.send_email('a@b.test', 'Subject', 'Body') is False


class TestDispatch:

    def test_dispatch_queues(self):
        task = MagicMock()
        assert dispatch(task, 1, flag=True) is True
        task.delay.assert_called_once_with(1, flag=True)

    def test_dispatch_swallows_errors(self):
        task = MagicMock()
        task.delay.side_effect = ConnectionError('redis down')
        assert dispatch(task, 1) is False
