import pytest

from models.errors import ImportFormatError
from models.notification import BarkConfig, NotificationConfig, SubscriptionSettings, WebhookConfig
from models.subscription import NotificationChannel, Subscription, SubscriptionType


def test_subscription_from_dict_ignores_status():
    sub = Subscription.from_dict({
        "id": "sub_1",
        "name": "VPN",
        "type": "other",
        "customType": "vpn",
        "cycle": "annual",
        "expiryDate": 1710000000000,
        "reminderDays": 3,
        "notificationChannels": ["email", "telegram"],
        "isEnabled": False,
        "status": "disabled",
    })
    assert sub.type is SubscriptionType.OTHER
    assert sub.display_type == "vpn"
    assert sub.sorted_channels() == [NotificationChannel.TELEGRAM, NotificationChannel.EMAIL]
    assert "status" not in sub.to_dict()
    assert sub.to_dict()["notificationChannels"] == ["telegram", "email"]


def test_unknown_enum_values_are_rejected():
    with pytest.raises(ValueError):
        Subscription(name="x", type="tv", cycle="monthly", expiry_date=0)


def test_notification_config_requires_all_channels():
    with pytest.raises(ImportFormatError) as excinfo:
        NotificationConfig.from_dict({"telegram": {}, "email": {}})
    assert excinfo.value.details == [
        "Notification config: missing webhook config",
        "Notification config: missing bark config",
    ]


def test_webhook_method_normalized():
    assert WebhookConfig.from_dict({"url": "https://x", "method": "get"}).method == "GET"
    assert WebhookConfig.from_dict({"url": "https://x", "method": "PUT"}).method == "POST"


def test_bark_config_roundtrip_keeps_only_set_fields():
    assert BarkConfig(enabled=True, existing_key_id="phone").to_dict() == {
        "enabled": True,
        "useExistingKey": True,
        "existingKeyId": "phone",
    }


def test_settings_from_partial_dict():
    settings = SubscriptionSettings.from_dict({"showLunarDate": True, "pageSize": 33})
    assert settings.show_lunar_date
    assert settings.daily_reminder
    assert settings.default_reminder_days == 7
    assert settings.page_size == 10


@pytest.mark.parametrize("created_at", ["2023-01-01", None, 1e300, True])
def test_unusable_timestamps_read_as_unknown(created_at):
    sub = Subscription.from_dict({
        "name": "VPN",
        "type": "server",
        "cycle": "annual",
        "expiryDate": 1710000000000,
        "reminderDays": 3,
        "isEnabled": True,
        "createdAt": created_at,
        "updatedAt": 1700000000000,
    })
    assert sub.created_at == 0
    assert sub.updated_at == 1700000000000
