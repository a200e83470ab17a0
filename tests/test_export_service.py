import io
import json

import pandas as pd
import pytest
from openpyxl import load_workbook

from conftest import UTC, InMemoryConfigRepository, InMemorySubscriptionRepository, ms
from models.notification import SubscriptionSettings
from services.export_service import (
    EXPORT_DATA_VERSION,
    ExportService,
    ImportMode,
    validate_import_data,
)
from utils.dates import MS_PER_DAY


@pytest.fixture
def service(sub_repo, config_repo):
    return ExportService(sub_repo, config_repo, tz=UTC)


def bundle(subscriptions, **extra):
    data = {
        "version": EXPORT_DATA_VERSION,
        "exportedAt": ms(2024, 3, 1),
        "subscriptions": subscriptions,
        "notificationConfig": {
            "telegram": {"enabled": True, "botToken": "123:abc", "chatId": "42"},
            "email": {"enabled": False, "resendApiKey": "", "recipientEmail": ""},
            "webhook": {"enabled": False, "url": "", "method": "POST"},
            "bark": {"enabled": False, "useExistingKey": True},
        },
        "settings": {"showLunarDate": False, "defaultReminderDays": 5, "dailyReminder": False, "pageSize": 20},
    }
    data.update(extra)
    return json.dumps({k: v for k, v in data.items() if v is not None})


def record(name="Netflix", **overrides):
    data = {
        "id": "sub_old",
        "name": name,
        "type": "video",
        "cycle": "monthly",
        "expiryDate": ms(2024, 4, 1),
        "reminderDays": 7,
        "notificationChannels": ["telegram"],
        "isEnabled": True,
        "createdAt": ms(2023, 1, 1),
        "updatedAt": ms(2023, 6, 1),
        "status": "active",
    }
    data.update(overrides)
    return data


def test_export_bundle_shape(service, sub_repo, make_sub, now):
    sub_repo.put(make_sub(expiry_date=now - MS_PER_DAY))
    data = json.loads(service.export_config(now))

    assert data["version"] == EXPORT_DATA_VERSION
    assert data["exportedAt"] == now
    assert data["subscriptions"][0]["status"] == "expired"
    assert data["subscriptions"][0]["notificationChannels"] == ["telegram"]
    assert set(data["notificationConfig"]) == {"telegram", "email", "webhook", "bark"}
    assert data["settings"]["dailyReminder"] is True


def test_export_then_import_restores_everything(service, sub_repo, config_repo, make_sub, now):
    sub_repo.put(make_sub(name="Netflix", notes="family plan"))
    sub_repo.put(make_sub(name="example.com", type="domain", cycle="annual", url="https://example.com"))
    config_repo.settings = SubscriptionSettings(default_reminder_days=3, page_size=50)
    text = service.export_config(now)

    target_subs = InMemorySubscriptionRepository()
    target_config = InMemoryConfigRepository()
    target = ExportService(target_subs, target_config, tz=UTC)
    result = target.import_config(text, ImportMode.OVERWRITE, now=now + 1000)

    assert result.success
    assert result.imported_count == 2
    restored = {s.name: s for s in target_subs.list_all()}
    assert restored["Netflix"].notes == "family plan"
    assert restored["example.com"].url == "https://example.com"
    assert not set(restored[n].id for n in restored) & set(sub_repo.items)
    assert all(s.updated_at == now + 1000 for s in restored.values())
    assert all(s.created_at == now for s in restored.values())
    assert target_config.settings.page_size == 50


def test_overwrite_replaces_existing(service, sub_repo, config_repo, make_sub, now):
    sub_repo.put(make_sub(name="Old"))
    result = service.import_config(bundle([record("Netflix"), record("Spotify")]), "overwrite", now=now)

    assert result.imported_count == 2
    assert sorted(s.name for s in sub_repo.list_all()) == ["Netflix", "Spotify"]
    assert config_repo.notification_config.telegram.chat_id == "42"
    assert config_repo.settings.default_reminder_days == 5
    assert not config_repo.settings.daily_reminder


def test_merge_skips_existing_names(service, sub_repo, make_sub, now):
    sub_repo.put(make_sub(name="netflix"))
    result = service.import_config(bundle([record("Netflix"), record("Spotify")]), ImportMode.MERGE, now=now)

    assert result.success
    assert result.imported_count == 1
    assert result.skipped_count == 1
    assert sorted(s.name for s in sub_repo.list_all()) == ["Spotify", "netflix"]


def test_imported_timestamps(service, sub_repo, now):
    service.import_config(bundle([record(createdAt=0)]), now=now)
    sub = sub_repo.list_all()[0]
    assert sub.id != "sub_old"
    assert sub.created_at == now
    assert sub.updated_at == now


def test_version_mismatch_is_a_warning(service, sub_repo, now):
    result = service.import_config(bundle([record()], version="0.9.0"), now=now)
    assert result.success
    assert any("0.9.0" in w for w in result.warnings)
    assert len(sub_repo.items) == 1


def test_invalid_json():
    validation = validate_import_data("{not json")
    assert not validation.valid
    assert validation.errors == ["Invalid JSON format"]


def test_all_errors_reported_and_nothing_written(service, sub_repo, make_sub, now):
    existing = sub_repo.put(make_sub(name="Keep me"))
    text = bundle([
        record("Good"),
        record("Bad one", type="tv", reminderDays=-2),
        record("", cycle="weekly"),
    ])

    result = service.import_config(text, now=now)

    assert not result.success
    assert 'Subscription #2 (Bad one): invalid subscription type "tv"' in result.errors
    assert "Subscription #2 (Bad one): invalid reminder days" in result.errors
    assert "Subscription #3: name must not be empty" in result.errors
    assert 'Subscription #3: invalid subscription cycle "weekly"' in result.errors
    assert list(sub_repo.items) == [existing.id]


def test_fractional_reminder_days_rejected():
    validation = validate_import_data(bundle([record(reminderDays=2.5)]))
    assert validation.errors == ["Subscription #1 (Netflix): reminder days must be a whole number"]


def test_missing_version_and_subscriptions():
    validation = validate_import_data(json.dumps({"exportedAt": 1}))
    assert "Missing version" in validation.errors
    assert "Missing subscriptions or invalid format" in validation.errors


def test_incomplete_notification_config():
    text = bundle([record()], notificationConfig={"telegram": {}, "email": {}, "webhook": {}})
    validation = validate_import_data(text)
    assert validation.errors == ["Notification config: missing bark config"]


def test_missing_config_keeps_current_and_missing_settings_resets(service, config_repo, now):
    config_repo.settings = SubscriptionSettings(default_reminder_days=30)
    before = config_repo.notification_config
    data = json.loads(bundle([record()]))
    del data["notificationConfig"], data["settings"]

    result = service.import_config(json.dumps(data), now=now)

    assert result.success
    assert "Missing notification config, the current one is kept" in result.warnings
    assert "Missing settings, defaults will be used" in result.warnings
    assert config_repo.notification_config is before
    assert config_repo.settings == SubscriptionSettings()


def test_other_without_label_is_a_warning():
    validation = validate_import_data(bundle([record(type="other")]))
    assert validation.valid
    assert validation.warnings == [
        "Subscription #1 (Netflix): type is 'other' but no custom type label is set"
    ]


def test_storage_failure_during_import(service, sub_repo, now):
    sub_repo.fail = True
    result = service.import_config(bundle([record()]), now=now)
    assert not result.success
    assert result.errors == ["database is down"]


def test_export_filename(service):
    assert service.generate_export_filename(ms(2024, 3, 10, 12)) == "subscriptions-backup-2024-03-10.json"


def test_export_csv(service, sub_repo, make_sub, now):
    sub_repo.put(make_sub(name="Netflix"))
    sub_repo.put(make_sub(name="Old VPS", type="server", expiry_date=now - 3 * MS_PER_DAY))

    df = pd.read_csv(service.export_csv(now), encoding="utf-8-sig")

    assert list(df["Name"]) == ["Old VPS", "Netflix"]
    assert list(df["Remaining days"]) == [-3, 5]
    assert list(df["Status"]) == ["expired", "active"]


def test_export_excel_sheets(service, sub_repo, make_sub, now):
    sub_repo.put(make_sub(name="Netflix"))
    workbook = load_workbook(io.BytesIO(service.export_excel(now).getvalue()))
    assert workbook.sheetnames == ["Subscriptions", "By type"]


def test_failed_overwrite_keeps_existing_subscriptions(service, sub_repo, make_sub, now):
    existing = sub_repo.put(make_sub(name="Existing"))
    sub_repo.fail_replace = True

    result = service.import_config(bundle([record("Netflix"), record("Spotify")]), ImportMode.OVERWRITE, now=now)

    assert not result.success
    assert result.errors == ["Failed to replace subscriptions: value out of range"]
    assert list(sub_repo.items) == [existing.id]


@pytest.mark.parametrize("overrides, error", [
    ({"expiryDate": 1e300}, "invalid expiry date"),
    ({"expiryDate": 10 ** 15}, "invalid expiry date"),
    ({"reminderDays": 1e12}, "invalid reminder days"),
    ({"reminderDays": 2 ** 31}, "invalid reminder days"),
    ({"type": "other", "customType": "x" * 101}, "custom type label is longer than 100 characters"),
])
def test_values_beyond_storage_limits_rejected(overrides, error):
    validation = validate_import_data(bundle([record(**overrides)]))
    assert validation.errors == [f"Subscription #1 (Netflix): {error}"]


def test_overlong_name_rejected(service, sub_repo, now):
    result = service.import_config(bundle([record("n" * 201)]), now=now)
    assert not result.success
    assert result.errors == [f"Subscription #1 ({'n' * 40}): name is longer than 200 characters"]
    assert sub_repo.items == {}


def test_text_creation_time_falls_back_to_import_time(service, sub_repo, now):
    result = service.import_config(bundle([record(createdAt="2023-01-01")]), now=now)

    assert result.success
    assert result.warnings == [
        "Subscription #1 (Netflix): invalid creation time, the import time is used instead"
    ]
    assert sub_repo.list_all()[0].created_at == now
