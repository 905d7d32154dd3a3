# drmp_core/iam/services/seed.py
from __future__ import annotations

import logging

from django.db import transaction

from drmp_core.common.permissions import (
    CAPABILITIES,
    RES_CASE,
    RES_CASE_PACKAGE,
    RES_ORG,
    RES_ROLE,
    RES_USER,
    all_capability_codes,
    capability_code,
)
from drmp_core.iam.models import Permission, PermissionType, Role, RoleOrgType, RolePermission

logger = logging.getLogger(__name__)

RESOURCE_NAMES = {
    RES_CASE: "案件管理",
    RES_CASE_PACKAGE: "案件包管理",
    RES_ORG: "机构管理",
    RES_USER: "用户管理",
    RES_ROLE: "角色管理",
}

# code -> (name, org_type, is_default, capability codes)
DEFAULT_ROLES = {
    "PLATFORM_ADMIN": ("平台管理员", RoleOrgType.PLATFORM, False, None),
    "SOURCE_ADMIN": (
        "案源机构管理员",
        RoleOrgType.SOURCE,
        True,
        [capability_code(RES_CASE, a) for a in CAPABILITIES[RES_CASE]]
        + [capability_code(RES_CASE_PACKAGE, a) for a in CAPABILITIES[RES_CASE_PACKAGE]]
        + ["ORG_VIEW", "USER_LIST", "USER_VIEW", "USER_CHANGE_PASSWORD"],
    ),
    "DISPOSAL_ADMIN": (
        "处置机构管理员",
        RoleOrgType.DISPOSAL,
        True,
        ["CASE_READ", "CASE_UPDATE", "CASE_PACKAGE_READ", "ORG_VIEW", "USER_LIST", "USER_VIEW", "USER_CHANGE_PASSWORD"],
    ),
}


@transaction.atomic
def seed_permissions() -> dict[str, int]:
    """
    Idempotently create the capability tree (one MENU node per resource
    with its API capabilities beneath) and the default roles.
    """
    created_permissions = 0
    for order, (resource, actions) in enumerate(CAPABILITIES.items()):
        menu, was_created = Permission.objects.get_or_create(
            code=resource,
            defaults={"name": RESOURCE_NAMES[resource], "type": PermissionType.MENU, "sort_order": order},
        )
        created_permissions += int(was_created)
        for idx, action in enumerate(actions):
            _, was_created = Permission.objects.get_or_create(
                code=capability_code(resource, action),
                defaults={
                    "name": f"{RESOURCE_NAMES[resource]}:{action}",
                    "type": PermissionType.API,
                    "parent": menu,
                    "sort_order": idx,
                },
            )
            created_permissions += int(was_created)

    created_roles = 0
    for order, (code, (name, org_type, is_default, codes)) in enumerate(DEFAULT_ROLES.items()):
        role, was_created = Role.objects.get_or_create(
            code=code,
            defaults={"name": name, "org_type": org_type, "is_default": is_default, "sort_order": order},
        )
        created_roles += int(was_created)

        wanted = Permission.objects.filter(code__in=codes if codes is not None else all_capability_codes())
        for permission in wanted:
            RolePermission.objects.get_or_create(role=role, permission=permission)

    logger.info("Permissions seeded permissions_created=%s roles_created=%s", created_permissions, created_roles)
    return {"permissions_created": created_permissions, "roles_created": created_roles}
