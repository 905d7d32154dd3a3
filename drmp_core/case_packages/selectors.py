# drmp_core/case_packages/selectors.py
from __future__ import annotations

import logging
from typing import Optional

from django.db.models import Count, Q, QuerySet

from drmp_core.case_packages.models import CasePackage, CasePackageStatus
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode

logger = logging.getLogger(__name__)


def case_package_qs() -> QuerySet[CasePackage]:
    return CasePackage.objects.select_related("source_org")


def get_case_package(*, package_id) -> CasePackage:
    try:
        return case_package_qs().get(id=package_id)
    except (CasePackage.DoesNotExist, ValueError, TypeError):
        raise BusinessException(ErrorCode.CASE_PACKAGE_NOT_FOUND)


def list_case_packages(
    *,
    source_org_id=None,
    status: Optional[str] = None,
    keyword: Optional[str] = None,
) -> QuerySet[CasePackage]:
    logger.debug("list case packages org=%s status=%s keyword=%s", source_org_id, status, keyword)
    qs = case_package_qs()
    if source_org_id:
        qs = qs.filter(source_org_id=source_org_id)
    if status:
        qs = qs.filter(status=status)
    if keyword and keyword.strip():
        keyword = keyword.strip()
        qs = qs.filter(Q(name__icontains=keyword) | Q(description__icontains=keyword))
    return qs.order_by("-created_at", "-id")


def list_published() -> QuerySet[CasePackage]:
    return case_package_qs().filter(status=CasePackageStatus.PUBLISHED).order_by("-publish_time", "-id")


def exists_by_name(*, source_org_id, name: str, exclude_id=None) -> bool:
    qs = CasePackage.objects.filter(source_org_id=source_org_id, name=(name or "").strip())
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def status_statistics() -> dict[str, int]:
    rows = CasePackage.objects.values("status").annotate(count=Count("id")).order_by("status")
    return {row["status"]: row["count"] for row in rows}
