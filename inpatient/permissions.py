"""
Role based permission classes.

Views combine these with ``IsAuthenticated``.  The workflow services repeat
the role checks on the explicit ``actor`` they receive, so the classes here
only gate which dashboards can reach an endpoint at all.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import User

CLINICAL_ROLES = {User.ROLE_ADMIN, User.ROLE_DOCTOR, User.ROLE_NURSE}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsAdminRole(BasePermission):
    """Allow access only to users with the admin role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == User.ROLE_ADMIN


class IsDoctorRole(BasePermission):
    """Allow access only to doctors."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == User.ROLE_DOCTOR


class IsNurseOrAdmin(BasePermission):
    """Nurses and administrators run admissions and discharge confirmation."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in {User.ROLE_NURSE, User.ROLE_ADMIN}


class IsClinicalRole(BasePermission):
    """Any staff role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in CLINICAL_ROLES


class AdminOrReadOnly(BasePermission):
    """Reads for any staff role, writes for administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        role = _role(request)
        if request.method in SAFE_METHODS:
            return role in CLINICAL_ROLES
        return role == User.ROLE_ADMIN
