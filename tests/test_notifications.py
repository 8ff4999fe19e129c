import logging

import pytest
import requests

from nestaway.core.config import Settings
from nestaway.services import notifications
from nestaway.services.notifications import EmailSendError, NotificationSender


def make_sender(**overrides):
    return NotificationSender(Settings(**overrides))


def test_console_backend_logs_the_code(caplog):
    sender = make_sender(EMAIL_BACKEND="console")
    with caplog.at_level(logging.WARNING, logger="nestaway.services.notifications"):
        sender.send_verification_code("jane@x.com", "042133")
    assert "jane@x.com" in caplog.text
    assert "042133" in caplog.text


def test_invalid_recipient_is_rejected():
    with pytest.raises(EmailSendError):
        make_sender(EMAIL_BACKEND="console").send_verification_code("not-an-address", "123456")


def test_unknown_backend_is_an_error():
    with pytest.raises(EmailSendError):
        make_sender(EMAIL_BACKEND="pigeon").send_verification_code("jane@x.com", "123456")


def test_smtp_without_host_is_an_error():
    with pytest.raises(EmailSendError, match="SMTP_HOST"):
        make_sender(EMAIL_BACKEND="smtp", SMTP_HOST="").send_verification_code("jane@x.com", "123456")


def test_brevo_without_key_is_an_error():
    with pytest.raises(EmailSendError, match="BREVO_API_KEY"):
        make_sender(EMAIL_BACKEND="brevo", BREVO_API_KEY="").send_verification_code("jane@x.com", "123456")


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


def test_brevo_posts_code_to_api(monkeypatch):
    calls = []

    def fake_post(url, headers, json, timeout):
        calls.append((url, headers, json))
        return FakeResponse(201)

    monkeypatch.setattr(notifications.requests, "post", fake_post)
    sender = make_sender(EMAIL_BACKEND="brevo", BREVO_API_KEY="key-1", EMAIL_FROM="no-reply@nestaway.test")
    sender.send_verification_code("jane@x.com", "123456")

    url, headers, payload = calls[0]
    assert url == notifications.BREVO_URL
    assert headers["api-key"] == "key-1"
    assert payload["to"] == [{"email": "jane@x.com"}]
    assert "123456" in payload["textContent"]


def test_brevo_error_status_raises(monkeypatch):
    monkeypatch.setattr(notifications.requests, "post", lambda *a, **kw: FakeResponse(401, "unauthorized"))
    sender = make_sender(EMAIL_BACKEND="brevo", BREVO_API_KEY="key-1", EMAIL_FROM="no-reply@nestaway.test")
    with pytest.raises(EmailSendError, match="HTTP 401"):
        sender.send_verification_code("jane@x.com", "123456")


def test_brevo_network_error_raises(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(notifications.requests, "post", boom)
    sender = make_sender(EMAIL_BACKEND="brevo", BREVO_API_KEY="key-1", EMAIL_FROM="no-reply@nestaway.test")
    with pytest.raises(EmailSendError):
        sender.send_verification_code("jane@x.com", "123456")
