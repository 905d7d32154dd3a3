# drmp_core/cases/selectors.py
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

from django.db.models import Avg, Count, Q, QuerySet, Sum
from django.utils.timezone import now

from drmp_core.cases.models import Case, CaseStatus
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.crypto import search_digest
from drmp_core.common.error_codes import ErrorCode

logger = logging.getLogger(__name__)


def case_qs() -> QuerySet[Case]:
    return Case.objects.select_related("case_package", "assigned_org")


def get_case(*, case_id) -> Case:
    try:
        return case_qs().get(id=case_id)
    except (Case.DoesNotExist, ValueError, TypeError):
        raise BusinessException(ErrorCode.CASE_NOT_FOUND)


def get_case_by_receipt_number(*, receipt_number: str) -> Case:
    case = case_qs().filter(receipt_number=(receipt_number or "").strip()).first()
    if case is None:
        raise BusinessException(ErrorCode.CASE_NOT_FOUND)
    return case


def _keyword_q(keyword: str) -> Q:
    # Debtor name/phone are encrypted: they only match exactly via their digests.
    keyword = keyword.strip()
    digest = search_digest(keyword)
    return (
        Q(receipt_number__icontains=keyword)
        | Q(debtor_name_digest=digest)
        | Q(debtor_phone_digest=digest)
    )


def list_cases(
    *,
    case_package_id=None,
    status: Optional[str] = None,
    assigned_org_id=None,
    keyword: Optional[str] = None,
) -> QuerySet[Case]:
    logger.debug(
        "list cases package=%s status=%s org=%s keyword=%s",
        case_package_id, status, assigned_org_id, bool(keyword),
    )
    qs = case_qs()
    if case_package_id:
        qs = qs.filter(case_package_id=case_package_id)
    if status:
        qs = qs.filter(current_status=status)
    if assigned_org_id:
        qs = qs.filter(assigned_org_id=assigned_org_id)
    if keyword and keyword.strip():
        qs = qs.filter(_keyword_q(keyword))
    return qs.order_by("-created_at", "-id")


def list_cases_by_package(*, case_package_id, status: Optional[str] = None, keyword: Optional[str] = None):
    return list_cases(case_package_id=case_package_id, status=status, keyword=keyword)


def list_cases_by_organization(*, org_id, status: Optional[str] = None) -> QuerySet[Case]:
    qs = case_qs().filter(assigned_org_id=org_id)
    if status:
        qs = qs.filter(current_status=status)
    return qs.order_by("-assigned_at", "-id")


def exists_by_receipt_number(*, receipt_number: str, exclude_id=None) -> bool:
    qs = Case.objects.filter(receipt_number=(receipt_number or "").strip())
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs.exists()


def pending_assignment_cases() -> QuerySet[Case]:
    return case_qs().filter(
        current_status=CaseStatus.PENDING_ASSIGNMENT,
        assigned_org__isnull=True,
    ).order_by("created_at", "id")


def overdue_cases(*, timeout_days: int = 7) -> QuerySet[Case]:
    """
    Assigned cases nobody has progressed within `timeout_days`.
    """
    cutoff = now() - timedelta(days=timeout_days)
    return case_qs().filter(
        assigned_org__isnull=False,
        current_status__in=[CaseStatus.ASSIGNED, CaseStatus.PROCESSING],
        assigned_at__lt=cutoff,
    ).order_by("assigned_at", "id")


def cases_by_overdue_days(*, min_days: int, max_days: int) -> QuerySet[Case]:
    return case_qs().filter(overdue_days__gte=min_days, overdue_days__lte=max_days).order_by("-overdue_days", "id")


def status_statistics(*, org_id=None) -> dict[str, int]:
    qs = Case.objects.all()
    if org_id is not None:
        qs = qs.filter(assigned_org_id=org_id)
    rows = qs.values("current_status").annotate(count=Count("id")).order_by("current_status")
    return {row["current_status"]: row["count"] for row in rows}


def recovery_statistics(*, org_id) -> dict[str, Any]:
    agg = Case.objects.filter(assigned_org_id=org_id, total_recovered__gt=0).aggregate(
        case_count=Count("id"),
        total_recovered=Sum("total_recovered"),
        average_recovery_rate=Avg("recovery_rate"),
    )
    avg_rate = agg["average_recovery_rate"]
    return {
        "case_count": agg["case_count"] or 0,
        "total_recovered": agg["total_recovered"] or Decimal("0"),
        "average_recovery_rate": Decimal(str(round(avg_rate, 2))) if avg_rate is not None else Decimal("0"),
    }
