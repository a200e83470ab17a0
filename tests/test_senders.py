import asyncio

import pytest
import requests

from models.errors import NotificationFailure, SubscriptionErrorCode
from models.notification import (
    BarkConfig,
    EmailConfig,
    NotificationContent,
    TelegramConfig,
    WebhookConfig,
)
from services.senders import BarkSender, EmailSender, TelegramSender, WebhookSender

CONTENT = NotificationContent(
    title="📅 Subscription expiring soon: Netflix",
    body="Your subscription \"Netflix\" expires on 2024-03-15, 5 day(s) left.",
    subscription_name="Netflix",
    expiry_date="2024-03-15",
    remaining_days=5,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.payload is None:
            raise ValueError("no JSON body")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def send(sender, config):
    asyncio.run(sender.send(CONTENT, config))


def test_webhook_posts_json_payload():
    session = FakeSession()
    config = WebhookConfig(enabled=True, url="https://hooks.example.com/x", headers={"X-Token": "t"})

    send(WebhookSender(session=session), config)

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://hooks.example.com/x")
    assert kwargs["headers"] == {"X-Token": "t"}
    payload = kwargs["json"]
    assert payload["subscriptionName"] == "Netflix"
    assert payload["remainingDays"] == 5
    assert payload["expiryDate"] == "2024-03-15"
    assert isinstance(payload["timestamp"], int)


def test_webhook_get_has_no_body():
    session = FakeSession()
    send(WebhookSender(session=session), WebhookConfig(enabled=True, url="https://x", method="GET"))
    method, _, kwargs = session.calls[0]
    assert method == "GET"
    assert "json" not in kwargs


def test_webhook_http_error():
    sender = WebhookSender(session=FakeSession(FakeResponse(500)))
    with pytest.raises(NotificationFailure) as excinfo:
        send(sender, WebhookConfig(enabled=True, url="https://x"))
    assert excinfo.value.reason == "HTTP 500"


def test_network_error_code():
    sender = WebhookSender(session=FakeSession(error=requests.ConnectionError("refused")))
    with pytest.raises(NotificationFailure) as excinfo:
        send(sender, WebhookConfig(enabled=True, url="https://x"))
    assert excinfo.value.code is SubscriptionErrorCode.NETWORK_ERROR
    assert excinfo.value.channel == "webhook"


def test_email_sends_through_resend():
    session = FakeSession()
    config = EmailConfig(enabled=True, resend_api_key="re_key", recipient_email="me@example.com")

    send(EmailSender(session=session), config)

    method, _, kwargs = session.calls[0]
    assert method == "POST"
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"
    assert kwargs["json"]["to"] == "me@example.com"
    assert kwargs["json"]["subject"] == CONTENT.title


def test_email_error_message_from_provider():
    sender = EmailSender(session=FakeSession(FakeResponse(422, {"message": "Invalid `to` field"})))
    with pytest.raises(NotificationFailure) as excinfo:
        send(sender, EmailConfig(enabled=True, resend_api_key="k", recipient_email="bad"))
    assert excinfo.value.reason == "Invalid `to` field"


@pytest.mark.parametrize("sender, config", [
    (EmailSender(session=FakeSession()), EmailConfig(enabled=True, recipient_email="me@example.com")),
    (WebhookSender(session=FakeSession()), WebhookConfig(enabled=True)),
    (BarkSender(saved_keys={}, session=FakeSession()), BarkConfig(enabled=True, use_existing_key=False)),
    (TelegramSender(), TelegramConfig(enabled=True, bot_token="123:abc")),
])
def test_incomplete_config_fails_before_sending(sender, config):
    with pytest.raises(NotificationFailure) as excinfo:
        send(sender, config)
    assert excinfo.value.reason == "incomplete configuration"
    assert getattr(sender, "session", None) is None or sender.session.calls == []


def test_bark_uses_saved_key():
    session = FakeSession(FakeResponse(200, {"code": 200, "message": "success"}))
    sender = BarkSender(saved_keys={"phone": {"server": "https://bark.example.com/", "deviceKey": "dev key"}},
                        session=session)

    send(sender, BarkConfig(enabled=True, use_existing_key=True, existing_key_id="phone"))

    method, url, _ = session.calls[0]
    assert method == "GET"
    assert url.startswith("https://bark.example.com/dev%20key/")
    assert "Netflix" in url


def test_bark_inline_target_and_error_code():
    session = FakeSession(FakeResponse(200, {"code": 400, "message": "failed to get device token"}))
    sender = BarkSender(saved_keys={}, session=session)
    config = BarkConfig(enabled=True, use_existing_key=False, server="https://api.day.app", device_key="abc")

    with pytest.raises(NotificationFailure) as excinfo:
        send(sender, config)
    assert excinfo.value.reason == "failed to get device token"
    assert session.calls[0][1].startswith("https://api.day.app/abc/")


def test_bark_unknown_saved_key():
    sender = BarkSender(saved_keys={}, session=FakeSession())
    with pytest.raises(NotificationFailure) as excinfo:
        sender.resolve_target(BarkConfig(enabled=True, existing_key_id="tablet"))
    assert excinfo.value.reason == "saved Bark key 'tablet' not found"
