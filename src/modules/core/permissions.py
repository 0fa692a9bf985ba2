"""Shared DRF permission classes."""

from rest_framework.permissions import BasePermission


class IsStaff(BasePermission):
    """Allow access only to authenticated staff members (back office)."""

    message = "Staff access required."

    def has_permission(self, request, view) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "is_staff", False))
