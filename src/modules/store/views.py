"""Store settings API views (staff only)."""

from __future__ import annotations

from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.permissions import IsStaff
from modules.store.serializers import AutoCancelSettingsSerializer
from modules.store.services import StoreSettingService


class AutoCancelSettingsView(APIView):
    """GET/PATCH /api/v1/settings/auto-cancel/"""

    permission_classes = [IsStaff]

    def get(self, request: Request) -> Response:
        return Response(StoreSettingService().get_auto_cancel_settings())

    def patch(self, request: Request) -> Response:
        serializer = AutoCancelSettingsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        service = StoreSettingService()
        service.update_settings(serializer.validated_data)
        return Response(service.get_auto_cancel_settings())
