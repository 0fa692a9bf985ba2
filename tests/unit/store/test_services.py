"""Unit tests for StoreSettingService and StoreSetting casting."""

from __future__ import annotations

import pytest

from modules.store.models import SettingType, StoreSetting
from modules.store.services import DEFAULT_SETTINGS, StoreSettingService

pytestmark = pytest.mark.unit


@pytest.fixture()
def service():
    return StoreSettingService()


class TestDefaults:
    def test_auto_cancel_defaults(self, service):
        assert service.is_auto_cancel_enabled() is True
        assert service.get_auto_cancel_minutes() == 30

    def test_unknown_key_uses_caller_default(self, service):
        assert service.get_setting("nope", "fallback") == "fallback"

    def test_get_all_settings_covers_every_default(self, service):
        assert set(service.get_all_settings()) == set(DEFAULT_SETTINGS)


class TestUpdate:
    def test_update_persists_typed_values(self, service):
        service.update_settings({"auto_cancel_enabled": False, "auto_cancel_minutes": 45})

        assert StoreSetting.objects.get(key="auto_cancel_enabled").value == "0"
        assert StoreSetting.objects.get(key="auto_cancel_minutes").type == SettingType.INTEGER
        assert service.is_auto_cancel_enabled() is False
        assert service.get_auto_cancel_minutes() == 45

    def test_update_ignores_unknown_keys(self, service):
        service.update_settings({"favourite_colour": "red"})

        assert not StoreSetting.objects.filter(key="favourite_colour").exists()

    def test_update_is_upsert(self, service):
        service.update_settings({"auto_cancel_minutes": 10})
        service.update_settings({"auto_cancel_minutes": 20})

        assert StoreSetting.objects.filter(key="auto_cancel_minutes").count() == 1
        assert service.get_auto_cancel_minutes() == 20


class TestAutoCancelMinutes:
    @pytest.mark.parametrize("stored,used", [("1", 5), ("5", 5), ("1440", 1440), ("9999", 1440)])
    def test_stored_value_is_clamped(self, service, stored, used):
        StoreSetting.objects.create(
            key="auto_cancel_minutes", value=stored, type=SettingType.INTEGER, group="orders"
        )

        assert service.get_auto_cancel_minutes() == used

    def test_unreadable_value_falls_back_to_default(self, service):
        StoreSetting.objects.create(
            key="auto_cancel_minutes", value="abc", type=SettingType.INTEGER, group="orders"
        )

        assert service.get_auto_cancel_minutes() == 30

    def test_unreadable_value_does_not_break_listing(self, service):
        StoreSetting.objects.create(
            key="auto_cancel_minutes", value="abc", type=SettingType.INTEGER, group="orders"
        )

        assert service.get_all_settings() == {
            "auto_cancel_enabled": True,
            "auto_cancel_minutes": 30,
        }


class TestCasting:
    @pytest.mark.parametrize(
        "type_,raw,expected",
        [
            (SettingType.INTEGER, "12", 12),
            (SettingType.BOOLEAN, "1", True),
            (SettingType.BOOLEAN, "0", False),
            (SettingType.JSON, '{"a": [1]}', {"a": [1]}),
            (SettingType.STRING, "F&B Store", "F&B Store"),
        ],
    )
    def test_casted_value(self, type_, raw, expected):
        assert StoreSetting(key="k", value=raw, type=type_).casted_value == expected

    def test_serialize_json_and_boolean(self):
        assert StoreSetting.serialize({"a": 1}, SettingType.JSON) == '{"a": 1}'
        assert StoreSetting.serialize(True, SettingType.BOOLEAN) == "1"
