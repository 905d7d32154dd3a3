# drmp_core/common/permissions.py

from __future__ import annotations

from typing import Optional, Set

from rest_framework.permissions import BasePermission

# Capability resources (permission code = f"{RESOURCE}_{ACTION}")
RES_CASE = "CASE"
RES_CASE_PACKAGE = "CASE_PACKAGE"
RES_ORG = "ORG"
RES_USER = "USER"
RES_ROLE = "ROLE"

CAPABILITIES = {
    RES_CASE: ["READ", "CREATE", "UPDATE", "DELETE", "ASSIGN", "IMPORT"],
    RES_CASE_PACKAGE: ["READ", "CREATE", "UPDATE", "DELETE", "PUBLISH", "WITHDRAW", "CLOSE"],
    RES_ORG: ["LIST", "VIEW", "ADD", "EDIT", "DELETE", "AUDIT"],
    RES_USER: ["LIST", "VIEW", "ADD", "EDIT", "DELETE", "CHANGE_PASSWORD", "RESET_PASSWORD", "ASSIGN_ROLE"],
    RES_ROLE: ["LIST"],
}


def capability_code(resource: str, action: str) -> str:
    return f"{resource}_{action}".upper()


def all_capability_codes() -> list[str]:
    return [capability_code(res, act) for res, acts in CAPABILITIES.items() for act in acts]


def user_permission_codes(user) -> Set[str]:
    """
    Resolve permission codes from:
      auth user -> UserProfile -> roles -> permissions

    Cached on the user object for the lifetime of the request.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return set()

    cached = getattr(user, "_drmp_permission_codes", None)
    if cached is not None:
        return cached

    from drmp_core.iam.models import Permission, UserProfile, UserStatus

    codes: Set[str] = set()
    profile = UserProfile.objects.filter(user_id=user.pk).first()
    if profile is not None and profile.status == UserStatus.ACTIVE:
        codes = set(
            Permission.objects.filter(
                permission_roles__role__role_users__user_profile=profile,
                permission_roles__role__is_deleted=False,
            ).values_list("code", flat=True)
        )

    setattr(user, "_drmp_permission_codes", codes)
    return codes


def check_capability(subject, resource: str, action: str) -> bool:
    """
    Explicit policy decision: may `subject` perform `action` on `resource`?
    Superusers may do everything; otherwise the capability code must be
    granted through one of the subject's roles.
    """
    if not subject or not getattr(subject, "is_authenticated", False):
        return False
    if not getattr(subject, "is_active", True):
        return False
    if getattr(subject, "is_superuser", False):
        return True
    return capability_code(resource, action) in user_permission_codes(subject)


class CapabilityPermission(BasePermission):
    """
    Base permission class for capability checks.

    Subclasses map view actions to (resource, action) pairs. Entries set to
    None only require authentication; `public_actions` need nothing.
    Unknown actions are denied.
    """
    message = "权限不足"

    capabilities_per_action: dict[str, Optional[tuple[str, str]]] = {}
    public_actions: frozenset[str] = frozenset()

    def has_permission(self, request, view) -> bool:
        if getattr(view, "action", None) in self.public_actions:
            return True

        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        action = getattr(view, "action", None)
        if action not in self.capabilities_per_action:
            return False

        required = self.capabilities_per_action[action]
        if required is None:
            return True

        resource, verb = required
        return check_capability(user, resource, verb)

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)
