from __future__ import annotations

from rest_framework import serializers

from modules.store.services import AUTO_CANCEL_MINUTES_MAX, AUTO_CANCEL_MINUTES_MIN


class AutoCancelSettingsSerializer(serializers.Serializer):
    auto_cancel_enabled = serializers.BooleanField(required=False)
    auto_cancel_minutes = serializers.IntegerField(
        required=False,
        min_value=AUTO_CANCEL_MINUTES_MIN,
        max_value=AUTO_CANCEL_MINUTES_MAX,
    )
