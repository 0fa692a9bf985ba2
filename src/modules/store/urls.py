"""Store settings URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.store.views import AutoCancelSettingsView

urlpatterns = [
    path(
        "settings/auto-cancel/",
        AutoCancelSettingsView.as_view(),
        name="settings-auto-cancel",
    ),
]
