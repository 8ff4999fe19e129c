"""
Outbound email for verification codes.

Backends (``EMAIL_BACKEND``):

- ``console``: log the message instead of sending it (development).
- ``smtp``: plain SMTP, STARTTLS when offered, implicit TLS on port 465.
- ``brevo``: Brevo transactional email API.

Every delivery problem surfaces as ``EmailSendError`` so callers only have
one thing to catch.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage

import requests

from nestaway.core.config import Settings

logger = logging.getLogger(__name__)

BREVO_URL = "https://api.brevo.com/v3/smtp/email"
SEND_TIMEOUT = 15


class EmailSendError(RuntimeError):
    pass


class NotificationSender:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send_verification_code(self, email: str, code: str) -> None:
        minutes = self.settings.VERIFICATION_CODE_EXPIRE_MINUTES
        subject = "Verify Your Email"
        text = (
            f"Your verification code is: {code}\n\n"
            f"This code expires in {minutes} minutes.\n\n"
            "If you did not create an account, you can ignore this email."
        )
        html = (
            "<h2>Your verification code</h2>"
            f"<h1>{code}</h1>"
            f"<p>This code expires in {minutes} minutes.</p>"
        )
        self.send(to_email=email, subject=subject, text=text, html=html)

    def send(self, *, to_email: str, subject: str, text: str, html: str = "") -> None:
        to_email = (to_email or "").strip()
        if not to_email or "@" not in to_email:
            raise EmailSendError("Invalid recipient email")

        backend = self.settings.EMAIL_BACKEND
        if backend in ("console", "log"):
            logger.warning("EMAIL_BACKEND=console: to=%s subject=%s\n%s", to_email, subject, text)
            return
        if backend == "smtp":
            self._send_via_smtp(to_email=to_email, subject=subject, text=text, html=html)
            return
        if backend == "brevo":
            self._send_via_brevo(to_email=to_email, subject=subject, text=text, html=html)
            return
        raise EmailSendError(f"Unknown EMAIL_BACKEND: {backend!r}")

    def _sender(self) -> str:
        sender = (self.settings.EMAIL_FROM or self.settings.SMTP_USER).strip()
        if not sender:
            raise EmailSendError("EMAIL_FROM not configured")
        return sender

    def _send_via_smtp(self, *, to_email: str, subject: str, text: str, html: str) -> None:
        host = self.settings.SMTP_HOST
        port = self.settings.SMTP_PORT
        user = self.settings.SMTP_USER
        password = self.settings.SMTP_PASS
        if not host:
            raise EmailSendError("SMTP_HOST not configured")

        msg = EmailMessage()
        msg["From"] = f"{self.settings.EMAIL_SENDER_NAME} <{self._sender()}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            if port == 465:
                with smtplib.SMTP_SSL(host, port, timeout=SEND_TIMEOUT, context=ssl.create_default_context()) as s:
                    if user and password:
                        s.login(user, password)
                    s.send_message(msg)
                return

            with smtplib.SMTP(host, port, timeout=SEND_TIMEOUT) as s:
                s.ehlo()
                if s.has_extn("starttls"):
                    s.starttls(context=ssl.create_default_context())
                    s.ehlo()
                if user and password:
                    s.login(user, password)
                s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailSendError(f"SMTP send failed: {e}") from e

    def _send_via_brevo(self, *, to_email: str, subject: str, text: str, html: str) -> None:
        key = self.settings.BREVO_API_KEY
        if not key:
            raise EmailSendError("BREVO_API_KEY not configured")

        payload = {
            "sender": {"email": self._sender(), "name": self.settings.EMAIL_SENDER_NAME},
            "to": [{"email": to_email}],
            "subject": subject,
            "textContent": text,
        }
        if html:
            payload["htmlContent"] = html

        try:
            resp = requests.post(
                BREVO_URL,
                headers={"api-key": key, "Content-Type": "application/json", "Accept": "application/json"},
                json=payload,
                timeout=SEND_TIMEOUT,
            )
        except requests.RequestException as e:
            raise EmailSendError(f"Brevo request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise EmailSendError(f"Brevo send failed: HTTP {resp.status_code}: {resp.text[:500]}")
