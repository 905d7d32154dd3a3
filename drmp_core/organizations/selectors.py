# drmp_core/organizations/selectors.py
from __future__ import annotations

import logging
from typing import Optional

from django.db.models import Q, QuerySet

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.organizations.models import (
    AuditStatus,
    Organization,
    OrganizationStatus,
    OrganizationType,
)

logger = logging.getLogger(__name__)


def organization_qs() -> QuerySet[Organization]:
    return Organization.objects.all()


def get_organization(*, org_id) -> Organization:
    try:
        return Organization.objects.get(id=org_id)
    except (Organization.DoesNotExist, ValueError, TypeError):
        raise BusinessException(ErrorCode.ORGANIZATION_NOT_FOUND, "机构不存在或已被删除")


def list_organizations(
    *,
    type: Optional[str] = None,
    status: Optional[str] = None,
    keyword: Optional[str] = None,
) -> QuerySet[Organization]:
    logger.debug("list organizations type=%s status=%s keyword=%s", type, status, keyword)
    qs = organization_qs()
    if type:
        qs = qs.filter(type=type)
    if status:
        qs = qs.filter(status=status)
    if keyword:
        qs = qs.filter(
            Q(name__icontains=keyword)
            | Q(contact_person__icontains=keyword)
            | Q(unified_credit_code__icontains=keyword)
        )
    return qs.order_by("-created_at", "-id")


def active_disposal_organizations() -> QuerySet[Organization]:
    return organization_qs().filter(
        type=OrganizationType.DISPOSAL,
        status=OrganizationStatus.ACTIVE,
    ).order_by("name")


def disposal_organizations_by_region(*, region: str) -> list[Organization]:
    # service_regions is a JSON list; containment is checked in Python so
    # the lookup behaves the same on every database backend.
    region = (region or "").strip()
    return [o for o in active_disposal_organizations() if region in (o.service_regions or [])]


def exists_by_name(*, name: str, exclude_id=None) -> bool:
    qs = organization_qs().filter(name=(name or "").strip())
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def exists_by_credit_code(*, code: str, exclude_id=None) -> bool:
    qs = organization_qs().filter(unified_credit_code=(code or "").strip())
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def count_pending_audit() -> int:
    return organization_qs().filter(audit_status=AuditStatus.PENDING).count()
