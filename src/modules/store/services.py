"""Store settings service.

Reads always hit the database so a change made in the back office is
seen by the very next auto-cancel run.  Keys missing from the table fall
back to ``DEFAULT_SETTINGS``.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import structlog
from django.db import transaction

from modules.store.models import SettingType, StoreSetting

logger = structlog.get_logger(__name__)

AUTO_CANCEL_MINUTES_MIN = 5
AUTO_CANCEL_MINUTES_MAX = 1440

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "auto_cancel_enabled": {"value": True, "type": SettingType.BOOLEAN, "group": "orders"},
    "auto_cancel_minutes": {"value": 30, "type": SettingType.INTEGER, "group": "orders"},
}


class StoreSettingService:
    def get_setting(self, key: str, default: Any = None) -> Any:
        setting = StoreSetting.objects.filter(key=key).first()
        if key in DEFAULT_SETTINGS:
            default = DEFAULT_SETTINGS[key]["value"]
        return self._read(setting, default)

    def get_all_settings(self) -> Dict[str, Any]:
        stored = {setting.key: setting for setting in StoreSetting.objects.all()}
        return {
            key: self._read(stored.get(key), config["value"])
            for key, config in DEFAULT_SETTINGS.items()
        }

    @staticmethod
    def _read(setting: Optional[StoreSetting], default: Any) -> Any:
        """Cast a stored row, falling back to *default* when missing or unreadable."""
        if setting is None or setting.value is None:
            return default
        try:
            return setting.casted_value
        except ValueError:
            logger.warning("store.setting_unreadable", key=setting.key, value=setting.value)
            return default

    @transaction.atomic
    def update_settings(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Upsert known keys; unknown keys are ignored."""
        updated = []
        for key, value in data.items():
            config = DEFAULT_SETTINGS.get(key)
            if config is None:
                continue
            StoreSetting.objects.update_or_create(
                key=key,
                defaults={
                    "value": StoreSetting.serialize(value, config["type"]),
                    "type": config["type"],
                    "group": config["group"],
                },
            )
            updated.append(key)
        logger.info("store.settings_updated", keys=updated)
        return self.get_all_settings()

    # ------------------------------------------------------------------
    # Auto-cancel
    # ------------------------------------------------------------------

    def is_auto_cancel_enabled(self) -> bool:
        return bool(self.get_setting("auto_cancel_enabled"))

    def get_auto_cancel_minutes(self) -> int:
        """Configured threshold, clamped to the 5..1440 minute window."""
        minutes = int(self.get_setting("auto_cancel_minutes"))
        clamped = max(AUTO_CANCEL_MINUTES_MIN, min(AUTO_CANCEL_MINUTES_MAX, minutes))
        if clamped != minutes:
            logger.warning("store.auto_cancel_minutes_clamped", stored=minutes, used=clamped)
        return clamped

    def get_auto_cancel_settings(self) -> Dict[str, Any]:
        return {
            "auto_cancel_enabled": self.is_auto_cancel_enabled(),
            "auto_cancel_minutes": self.get_auto_cancel_minutes(),
        }
