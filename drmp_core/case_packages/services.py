# drmp_core/case_packages/services.py
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils.timezone import now

from drmp_core.case_packages import selectors
from drmp_core.case_packages.models import CasePackage, CasePackageStatus, ImportStatus
from drmp_core.cases.models import Case
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.organizations.models import OrganizationType
from drmp_core.organizations.selectors import get_organization

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "expected_recovery_rate",
    "expected_period",
    "preferred_methods",
    "assignment_strategy",
)

NAME_MAX_LENGTH = 200
LOCKED_STATUSES = frozenset({CasePackageStatus.PUBLISHED, CasePackageStatus.PROCESSING})
PUBLISHABLE_STATUSES = frozenset({CasePackageStatus.DRAFT, CasePackageStatus.WITHDRAWN})


def _validate(values: dict[str, Any]) -> None:
    name = values.get("name") or ""
    if not name:
        raise BusinessException(ErrorCode.INVALID_PARAMETER, "案件包名称不能为空")
    if len(name) > NAME_MAX_LENGTH:
        raise BusinessException(ErrorCode.INVALID_PARAMETER, "案件包名称长度不能超过200字符")

    rate = values.get("expected_recovery_rate")
    if rate is not None and (rate < 0 or rate > 100):
        raise BusinessException(ErrorCode.INVALID_PARAMETER, "期望回款率必须在0-100之间")

    period = values.get("expected_period")
    if period is not None and period <= 0:
        raise BusinessException(ErrorCode.INVALID_PARAMETER, "期望处置周期必须大于0")


class CasePackageService:
    """
    All CasePackage mutations live here (write-model boundary).
    """

    # -------------------------
    # Create / update / delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(*, data: dict[str, Any], actor_id: Optional[int] = None) -> CasePackage:
        values = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        values["name"] = (values.get("name") or "").strip()
        logger.info("Creating case package name=%s", values["name"])

        source_org_id = data.get("source_org_id")
        if not source_org_id:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "案源机构ID不能为空")
        _validate(values)

        org = get_organization(org_id=source_org_id)
        if org.type != OrganizationType.SOURCE:
            raise BusinessException(ErrorCode.INVALID_ORGANIZATION_TYPE, "案件包只能由案源机构创建")

        if selectors.exists_by_name(source_org_id=org.id, name=values["name"]):
            raise BusinessException(ErrorCode.CASE_PACKAGE_NAME_EXISTS)

        try:
            with transaction.atomic():
                package = CasePackage.objects.create(
                    **values,
                    source_org=org,
                    status=CasePackageStatus.DRAFT,
                    import_status=ImportStatus.PENDING,
                    created_by=actor_id,
                    updated_by=actor_id,
                )
        except IntegrityError as exc:
            raise BusinessException(ErrorCode.CASE_PACKAGE_NAME_EXISTS) from exc

        logger.info("Case package created id=%s", package.id)
        return package

    @staticmethod
    @transaction.atomic
    def update(*, package_id, data: dict[str, Any], actor_id: Optional[int] = None) -> CasePackage:
        logger.info("Updating case package id=%s", package_id)
        package = selectors.get_case_package(package_id=package_id)
        if package.status in LOCKED_STATUSES:
            raise BusinessException(ErrorCode.CASE_PACKAGE_CANNOT_MODIFY)

        incoming = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        if "name" in incoming:
            incoming["name"] = (incoming["name"] or "").strip()

        merged = {k: getattr(package, k) for k in EDITABLE_FIELDS}
        merged.update(incoming)
        _validate(merged)

        if selectors.exists_by_name(source_org_id=package.source_org_id, name=merged["name"], exclude_id=package.id):
            raise BusinessException(ErrorCode.CASE_PACKAGE_NAME_EXISTS)

        changed = []
        for field, value in incoming.items():
            if getattr(package, field) != value:
                setattr(package, field, value)
                changed.append(field)

        if changed:
            package.save_versioned(update_fields=changed, actor_id=actor_id)

        logger.info("Case package updated id=%s fields=%s", package.id, changed)
        return package

    @staticmethod
    @transaction.atomic
    def delete(*, package_id, actor_id: Optional[int] = None) -> None:
        logger.info("Deleting case package id=%s", package_id)
        package = selectors.get_case_package(package_id=package_id)
        if package.status in LOCKED_STATUSES:
            raise BusinessException(ErrorCode.CASE_PACKAGE_CANNOT_DELETE)

        removed = Case.objects.filter(case_package_id=package.id).update(
            is_deleted=True, updated_at=now(), updated_by=actor_id
        )
        package.soft_delete(actor_id=actor_id)
        logger.info("Case package deleted id=%s cases=%s", package.id, removed)

    # -------------------------
    # Lifecycle
    # -------------------------
    @staticmethod
    @transaction.atomic
    def publish(*, package_id, actor_id: Optional[int] = None) -> CasePackage:
        logger.info("Publishing case package id=%s", package_id)
        CasePackageService.refresh_statistics(package_id=package_id)
        package = selectors.get_case_package(package_id=package_id)

        if not package.total_count:
            raise BusinessException(ErrorCode.CASE_PACKAGE_NO_CASES)
        if package.status not in PUBLISHABLE_STATUSES:
            raise BusinessException(ErrorCode.CASE_PACKAGE_CANNOT_PUBLISH)

        package.status = CasePackageStatus.PUBLISHED
        package.publish_time = now()
        package.save_versioned(update_fields=["status", "publish_time"], actor_id=actor_id)

        logger.info("Case package published id=%s", package.id)
        return package

    @staticmethod
    @transaction.atomic
    def withdraw(*, package_id, actor_id: Optional[int] = None) -> CasePackage:
        logger.info("Withdrawing case package id=%s", package_id)
        package = selectors.get_case_package(package_id=package_id)
        if package.status != CasePackageStatus.PUBLISHED:
            raise BusinessException(ErrorCode.CASE_PACKAGE_CANNOT_WITHDRAW)

        package.status = CasePackageStatus.WITHDRAWN
        package.save_versioned(update_fields=["status"], actor_id=actor_id)

        logger.info("Case package withdrawn id=%s", package.id)
        return package

    @staticmethod
    @transaction.atomic
    def close(*, package_id, actor_id: Optional[int] = None) -> CasePackage:
        logger.info("Closing case package id=%s", package_id)
        package = selectors.get_case_package(package_id=package_id)

        package.status = CasePackageStatus.COMPLETED
        package.save_versioned(update_fields=["status"], actor_id=actor_id)

        logger.info("Case package closed id=%s", package.id)
        return package

    # -------------------------
    # Aggregates
    # -------------------------
    @staticmethod
    def refresh_statistics(*, package_id) -> CasePackage:
        """
        Recompute the denormalized counters from the package's live cases.
        Plain UPDATE: counters are derived data and must not collide with
        the optimistic lock of user edits.
        """
        package = selectors.get_case_package(package_id=package_id)
        assigned = Q(assigned_org__isnull=False)
        agg = Case.objects.filter(case_package_id=package.id).aggregate(
            total_count=Count("id"),
            total_amount=Sum("remaining_amount"),
            assigned_count=Count("id", filter=assigned),
            assigned_amount=Sum("remaining_amount", filter=assigned),
        )
        values = {
            "total_count": agg["total_count"] or 0,
            "total_amount": agg["total_amount"] or Decimal("0"),
            "assigned_count": agg["assigned_count"] or 0,
            "assigned_amount": agg["assigned_amount"] or Decimal("0"),
        }
        CasePackage.all_objects.filter(id=package.id).update(**values, updated_at=now())
        for field, value in values.items():
            setattr(package, field, value)

        logger.info(
            "Case package statistics refreshed id=%s total=%s assigned=%s",
            package.id, values["total_count"], values["assigned_count"],
        )
        return package

    # -------------------------
    # Import bookkeeping
    # -------------------------
    @staticmethod
    def mark_import_started(*, package_id, file_path: str) -> None:
        CasePackage.all_objects.filter(id=package_id).update(
            import_status=ImportStatus.PROCESSING,
            import_progress=0,
            import_error_msg="",
            import_file_path=file_path,
            import_started_at=now(),
            updated_at=now(),
        )

    @staticmethod
    def mark_import_finished(*, package_id, status: str, message: str, progress: int) -> None:
        CasePackage.all_objects.filter(id=package_id).update(
            import_status=status,
            import_progress=progress,
            import_error_msg=message,
            updated_at=now(),
        )

    @staticmethod
    def expire_stale_imports(*, timeout_seconds: Optional[int] = None) -> int:
        """
        Fail imports stuck in PROCESSING longer than the configured timeout
        (e.g. the worker process died mid-run). Returns the number expired.
        """
        if timeout_seconds is None:
            timeout_seconds = settings.DRMP_IMPORT_TIMEOUT_SECONDS
        cutoff = now() - timedelta(seconds=timeout_seconds)

        stale = CasePackage.objects.filter(
            import_status=ImportStatus.PROCESSING,
            import_started_at__lt=cutoff,
        )
        ids = list(stale.values_list("id", flat=True))
        for package_id in ids:
            logger.warning("Import timed out case_package_id=%s", package_id)

        expired = CasePackage.objects.filter(id__in=ids).update(
            import_status=ImportStatus.FAILED,
            import_progress=0,
            import_error_msg="导入任务超时",
            updated_at=now(),
        )
        return expired
