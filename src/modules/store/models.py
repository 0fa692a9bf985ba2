"""Key/value store configuration.

Each row stores its value as text plus a ``type`` that decides how it is
cast back when read.
"""

from __future__ import annotations

import json
from typing import Any

from django.db import models

from modules.core.models import BaseModel


class SettingType(models.TextChoices):
    STRING = "string", "String"
    TEXT = "text", "Text"
    INTEGER = "integer", "Integer"
    BOOLEAN = "boolean", "Boolean"
    JSON = "json", "JSON"


class StoreSetting(BaseModel):
    key: models.CharField = models.CharField(max_length=100, unique=True)
    value: models.TextField = models.TextField(null=True, blank=True)  # noqa: DJ01
    type: models.CharField = models.CharField(
        max_length=20,
        choices=SettingType.choices,
        default=SettingType.STRING,
    )
    group: models.CharField = models.CharField(max_length=50, default="general", db_index=True)

    class Meta:
        db_table = "store_settings"
        ordering = ["group", "key"]

    @staticmethod
    def serialize(value: Any, type: str) -> str:
        if type == SettingType.JSON:
            return value if isinstance(value, str) else json.dumps(value)
        if type == SettingType.BOOLEAN:
            return "1" if value else "0"
        return str(value)

    @property
    def casted_value(self) -> Any:
        if self.value is None:
            return None
        if self.type == SettingType.INTEGER:
            return int(self.value)
        if self.type == SettingType.BOOLEAN:
            return self.value.strip().lower() in {"1", "true", "yes", "on"}
        if self.type == SettingType.JSON:
            return json.loads(self.value)
        return self.value

    def __str__(self) -> str:
        return f"{self.group}.{self.key}"
