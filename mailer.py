import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

import requests

from reminders import DispatchError

logger = logging.getLogger(__name__)


class FunctionMailer:
    """
    Send email through the project's `send-email` edge function.

    The function is called with the service role key as a bearer token and a
    JSON body of {to, subject, html}. Any 2xx response counts as delivered.
    """

    def __init__(self, url: str, service_key: str, timeout: float = 10, session=None):
        if not url or not service_key:
            raise ValueError("send-email URL and service key are required")
        self.url = url
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, to_email: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        headers = {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.service_key}',
        }
        payload = {'to': to_email, 'subject': subject, 'html': html}
        try:
            response = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("send-email request for %s failed: %s", to_email, e)
            return False

        if not response.ok:
            logger.error("send-email rejected message to %s: %s %s", to_email, response.status_code, response.text)
            return False
        return True


class SmtpMailer:
    """Send a transactional email over SMTP (Brevo-compatible)."""

    def __init__(self, host: str = "smtp-relay.brevo.com", port: int = 587, user: Optional[str] = None,
                 password: Optional[str] = None, from_email: Optional[str] = None, from_name: Optional[str] = None,
                 timeout: float = 10):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to_email: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        if not (self.user and self.password and self.from_email):
            raise DispatchError("SMTP configuration missing (SMTP_USER/SMTP_PASS/FROM_EMAIL)")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email
        msg["To"] = to_email

        if text:
            msg.set_content(text)
        else:
            msg.set_content("This email requires an HTML-capable client.")

        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                # STARTTLS on the submission ports
                if self.port in (587, 25, 2525):
                    server.starttls()
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send to %s failed: %s", to_email, e)
            return False
        return True


def build_sender(settings):
    """Pick the mail backend from configuration (MAIL_BACKEND = function | smtp)."""
    backend = (settings.get('MAIL_BACKEND') or 'function').lower()
    timeout = float(settings.get('MAIL_TIMEOUT_SECONDS') or 10)
    if backend == 'smtp':
        return SmtpMailer(
            host=settings.get('SMTP_HOST') or "smtp-relay.brevo.com",
            port=int(settings.get('SMTP_PORT') or 587),
            user=settings.get('SMTP_USER'),
            password=settings.get('SMTP_PASS'),
            from_email=settings.get('FROM_EMAIL'),
            from_name=settings.get('FROM_NAME'),
            timeout=timeout,
        )
    if backend == 'function':
        return FunctionMailer(settings.get('SEND_EMAIL_URL'), settings.get('SUPABASE_SERVICE_ROLE_KEY'), timeout=timeout)
    raise ValueError(f"Unknown MAIL_BACKEND {backend!r}")
