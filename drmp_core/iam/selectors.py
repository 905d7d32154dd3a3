# drmp_core/iam/selectors.py
from __future__ import annotations

import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db.models import Q, QuerySet

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.iam.models import Permission, Role, UserProfile, UserStatus

logger = logging.getLogger(__name__)


def profile_qs() -> QuerySet[UserProfile]:
    return UserProfile.objects.select_related("user", "organization").prefetch_related("roles")


def get_profile(*, profile_id) -> UserProfile:
    try:
        return profile_qs().get(id=profile_id)
    except (UserProfile.DoesNotExist, ValueError, TypeError):
        raise BusinessException(ErrorCode.USER_NOT_FOUND, "用户不存在或已被删除")


def get_profile_for_user(*, user_id) -> Optional[UserProfile]:
    return profile_qs().filter(user_id=user_id).first()


def get_profile_by_username(*, username: str) -> UserProfile:
    profile = profile_qs().filter(user__username=username).first()
    if profile is None:
        raise BusinessException(ErrorCode.USER_NOT_FOUND, "用户不存在")
    return profile


def list_profiles(
    *,
    org_id=None,
    status: Optional[str] = None,
    keyword: Optional[str] = None,
) -> QuerySet[UserProfile]:
    logger.debug("list users org_id=%s status=%s keyword=%s", org_id, status, keyword)
    qs = profile_qs()
    if org_id:
        qs = qs.filter(organization_id=org_id)
    if status:
        qs = qs.filter(status=status)
    if keyword:
        qs = qs.filter(
            Q(user__username__icontains=keyword)
            | Q(real_name__icontains=keyword)
            | Q(nickname__icontains=keyword)
            | Q(user__email__icontains=keyword)
            | Q(phone__icontains=keyword)
        )
    return qs.order_by("-created_at", "-id")


def exists_by_username(*, username: str, exclude_profile_id=None) -> bool:
    # Usernames of deleted users stay reserved: the auth user row is kept.
    qs = get_user_model().objects.filter(username=(username or "").strip())
    if exclude_profile_id:
        qs = qs.exclude(drmp_profile__id=exclude_profile_id)
    return qs.exists()


def exists_by_email(*, email: str, exclude_profile_id=None) -> bool:
    # Like usernames, emails of deleted users stay reserved.
    key = UserProfile.email_key_for(email)
    if key is None:
        return False
    qs = UserProfile.all_objects.filter(email_key=key)
    if exclude_profile_id:
        qs = qs.exclude(id=exclude_profile_id)
    return qs.exists()


def count_by_org(*, org_id) -> int:
    return UserProfile.objects.filter(organization_id=org_id).count()


def count_active() -> int:
    return UserProfile.objects.filter(status=UserStatus.ACTIVE).count()


def role_codes_for(profile: UserProfile) -> list[str]:
    return sorted(r.code for r in profile.roles.all() if not r.is_deleted)


def permission_codes_for(profile: UserProfile) -> list[str]:
    return sorted(
        set(
            Permission.objects.filter(
                permission_roles__role__role_users__user_profile=profile,
                permission_roles__role__is_deleted=False,
            ).values_list("code", flat=True)
        )
    )


def list_roles(*, org_type: Optional[str] = None) -> QuerySet[Role]:
    qs = Role.objects.prefetch_related("permissions")
    if org_type:
        qs = qs.filter(org_type=org_type)
    return qs.order_by("sort_order", "id")


def permission_tree() -> list[dict]:
    """
    Hierarchical permission tree built from parent references.
    Nodes whose parent is missing (or deleted) are treated as roots.
    """
    perms = list(Permission.objects.order_by("sort_order", "id"))
    nodes = {
        p.id: {
            "id": p.id,
            "name": p.name,
            "code": p.code,
            "type": p.type,
            "path": p.path,
            "method": p.method,
            "icon": p.icon,
            "sort_order": p.sort_order,
            "children": [],
        }
        for p in perms
    }

    roots: list[dict] = []
    for p in perms:
        parent = nodes.get(p.parent_id) if p.parent_id else None
        if parent is None:
            roots.append(nodes[p.id])
        else:
            parent["children"].append(nodes[p.id])
    return roots
