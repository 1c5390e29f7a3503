"""Tests for the mail senders."""
import smtplib
from unittest.mock import MagicMock, patch

import pytest
import requests

from mailer import FunctionMailer, SmtpMailer, build_sender
from reminders import DispatchError

URL = 'https://project.supabase.co/functions/v1/send-email'


def response(status_code, text=''):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.text = text
    return resp


class TestFunctionMailer:

    def test_posts_message_with_service_key(self):
        session = MagicMock()
        session.post.return_value = response(200)
        mailer = FunctionMailer(URL, 'service-key', timeout=5, session=session)

        assert mailer.send('a@example.com', 'Subject', '<p>hi</p>', 'hi') is True

        session.post.assert_called_once_with(
            URL,
            json={'to': 'a@example.com', 'subject': 'Subject', 'html': '<p>hi</p>'},
            headers={'Content-Type': 'application/json', 'Authorization': 'Bearer service-key'},
            timeout=5,
        )

    def test_rejection_is_a_failed_send(self):
        session = MagicMock()
        session.post.return_value = response(500, 'provider down')
        assert FunctionMailer(URL, 'key', session=session).send('a@example.com', 's', 'h') is False

    def test_network_error_is_a_failed_send(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError('no route to host')
        assert FunctionMailer(URL, 'key', session=session).send('a@example.com', 's', 'h') is False

    def test_requires_url_and_key(self):
        with pytest.raises(ValueError):
            FunctionMailer(None, 'key')


class TestSmtpMailer:

    def _mailer(self, **kwargs):
        settings = dict(host='smtp.example.test', port=587, user='user', password='pass',
                        from_email='no-reply@example.test', from_name='RivoHome')
        settings.update(kwargs)
        return SmtpMailer(**settings)

    def test_sends_over_starttls(self):
        with patch('mailer.smtplib.SMTP') as smtp:
            server = smtp.return_value.__enter__.return_value
            assert self._mailer().send('a@example.com', 'Subject', '<p>hi</p>', 'hi') is True

        server.starttls.assert_called_once()
        server.login.assert_called_once_with('user', 'pass')
        message = server.send_message.call_args[0][0]
        assert message['To'] == 'a@example.com'
        assert message['From'] == 'RivoHome <no-reply@example.test>'

    def test_smtp_error_is_a_failed_send(self):
        with patch('mailer.smtplib.SMTP') as smtp:
            server = smtp.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            assert self._mailer().send('a@example.com', 's', 'h') is False

    def test_missing_configuration_raises(self):
        with pytest.raises(DispatchError):
            self._mailer(password=None).send('a@example.com', 's', 'h')


class TestBuildSender:

    def test_function_backend_is_default(self):
        sender = build_sender({'SEND_EMAIL_URL': URL, 'SUPABASE_SERVICE_ROLE_KEY': 'key'})
        assert isinstance(sender, FunctionMailer)
        assert sender.url == URL

    def test_smtp_backend(self):
        sender = build_sender({'MAIL_BACKEND': 'smtp', 'SMTP_PORT': '2525', 'SMTP_USER': 'u'})
        assert isinstance(sender, SmtpMailer)
        assert sender.port == 2525

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_sender({'MAIL_BACKEND': 'pigeon'})
