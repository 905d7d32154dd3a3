# drmp_core/cases/services.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Optional

from django.db import IntegrityError, transaction
from django.utils.timezone import now

from drmp_core.case_packages import selectors as package_selectors
from drmp_core.case_packages.services import CasePackageService
from drmp_core.cases import selectors
from drmp_core.cases.models import Case, CaseStatus
from drmp_core.cases.transitions import validate_transition
from drmp_core.cases.validation import case_field_errors
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.organizations.models import OrganizationStatus, OrganizationType
from drmp_core.organizations.selectors import get_organization

logger = logging.getLogger(__name__)

# Fields written through create/update; status, assignment and recovery have
# their own operations.
CASE_FIELDS = (
    "receipt_number",
    "debtor_id_card",
    "debtor_name",
    "debtor_phone",
    "loan_product",
    "loan_amount",
    "remaining_amount",
    "overdue_days",
    "consigner",
    "consign_start_date",
    "consign_end_date",
    "fund_provider",
    "debt_info",
    "debtor_info",
    "contact_info",
    "custom_fields",
    "latest_progress",
    "attachments",
)

STRING_FIELDS = (
    "receipt_number",
    "debtor_id_card",
    "debtor_name",
    "debtor_phone",
    "loan_product",
    "consigner",
    "fund_provider",
)

UNDELETABLE_STATUSES = frozenset({CaseStatus.PROCESSING, CaseStatus.SETTLED})


def _clean(data: dict[str, Any]) -> dict[str, Any]:
    values = {k: data[k] for k in CASE_FIELDS if k in data}
    for field in STRING_FIELDS:
        if isinstance(values.get(field), str):
            values[field] = values[field].strip()
    return values


def _raise_if_invalid(values: dict[str, Any]) -> None:
    errors = case_field_errors(values)
    if errors:
        raise BusinessException(ErrorCode.INVALID_PARAMETER, "; ".join(errors), data={"errors": errors})


class CaseService:
    """
    All Case mutations live here (write-model boundary).
    """

    # -------------------------
    # Create / update / delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(*, data: dict[str, Any], actor_id: Optional[int] = None) -> Case:
        values = _clean(data)
        logger.info("Creating case receipt=%s", values.get("receipt_number"))

        if not data.get("case_package_id"):
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "案件包ID不能为空")
        _raise_if_invalid(values)

        package = package_selectors.get_case_package(package_id=data["case_package_id"])

        if selectors.exists_by_receipt_number(receipt_number=values["receipt_number"]):
            raise BusinessException(ErrorCode.CASE_RECEIPT_NUMBER_EXISTS)

        try:
            # Savepoint: the unique constraint is the last word on receipt numbers.
            with transaction.atomic():
                case = Case.objects.create(
                    case_package=package,
                    current_status=CaseStatus.PENDING_ASSIGNMENT,
                    total_recovered=Decimal("0"),
                    recovery_rate=Decimal("0"),
                    created_by=actor_id,
                    updated_by=actor_id,
                    **values,
                )
        except IntegrityError as exc:
            raise BusinessException(ErrorCode.CASE_RECEIPT_NUMBER_EXISTS) from exc

        logger.info("Case created id=%s receipt=%s", case.id, case.receipt_number)
        return case

    @staticmethod
    @transaction.atomic
    def update(*, case_id, data: dict[str, Any], actor_id: Optional[int] = None) -> Case:
        logger.info("Updating case id=%s", case_id)
        case = selectors.get_case(case_id=case_id)
        if case.is_closed:
            raise BusinessException(ErrorCode.CASE_ALREADY_CLOSED)

        incoming = _clean(data)
        merged = {field: getattr(case, field) for field in CASE_FIELDS}
        merged.update(incoming)
        _raise_if_invalid(merged)

        if selectors.exists_by_receipt_number(receipt_number=merged["receipt_number"], exclude_id=case.id):
            raise BusinessException(ErrorCode.CASE_RECEIPT_NUMBER_EXISTS)

        changed: list[str] = []
        for field, value in incoming.items():
            if getattr(case, field) != value:
                setattr(case, field, value)
                changed.append(field)

        if changed:
            case.refresh_digests()
            changed += ["debtor_name_digest", "debtor_phone_digest"]
            try:
                with transaction.atomic():
                    case.save_versioned(update_fields=changed, actor_id=actor_id)
            except IntegrityError as exc:
                raise BusinessException(ErrorCode.CASE_RECEIPT_NUMBER_EXISTS) from exc

        logger.info("Case updated id=%s fields=%s", case.id, changed)
        return case

    @staticmethod
    @transaction.atomic
    def delete(*, case_id, actor_id: Optional[int] = None) -> None:
        logger.info("Deleting case id=%s", case_id)
        case = selectors.get_case(case_id=case_id)
        if case.current_status in UNDELETABLE_STATUSES:
            raise BusinessException(ErrorCode.CASE_CANNOT_DELETE)

        case.soft_delete(actor_id=actor_id)
        logger.info("Case deleted id=%s receipt=%s", case.id, case.receipt_number)

    # -------------------------
    # Assignment / workflow
    # -------------------------
    @staticmethod
    @transaction.atomic
    def assign(*, case_ids: Iterable[int], org_id, actor_id: Optional[int] = None) -> list[Case]:
        case_ids = list(dict.fromkeys(case_ids or []))
        logger.info("Assigning cases count=%s org_id=%s", len(case_ids), org_id)

        if not case_ids:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "案件ID列表不能为空")
        if org_id is None:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "处置机构ID不能为空")

        org = get_organization(org_id=org_id)
        if org.type != OrganizationType.DISPOSAL:
            raise BusinessException(ErrorCode.INVALID_ORGANIZATION_TYPE, "案件只能分配给处置机构")
        if org.status != OrganizationStatus.ACTIVE:
            raise BusinessException(ErrorCode.ORGANIZATION_NOT_APPROVED, "处置机构未激活，无法分配案件")

        cases = {c.id: c for c in Case.objects.select_for_update().filter(id__in=case_ids)}
        missing = [cid for cid in case_ids if cid not in cases]
        if missing:
            raise BusinessException(ErrorCode.CASE_NOT_FOUND, f"案件不存在: {missing}")

        blocked = [cid for cid in case_ids if cases[cid].current_status != CaseStatus.PENDING_ASSIGNMENT]
        if blocked:
            raise BusinessException(ErrorCode.CASE_CANNOT_ASSIGN, f"案件状态不允许分配: {blocked}")

        assigned_at = now()
        package_ids: set[int] = set()
        for cid in case_ids:
            case = cases[cid]
            case.current_status = CaseStatus.ASSIGNED
            case.assigned_org = org
            case.assigned_at = assigned_at
            case.save_versioned(update_fields=["current_status", "assigned_org", "assigned_at"], actor_id=actor_id)
            package_ids.add(case.case_package_id)

        for package_id in sorted(package_ids):
            CasePackageService.refresh_statistics(package_id=package_id)

        logger.info("Cases assigned count=%s org_id=%s", len(case_ids), org.id)
        return [cases[cid] for cid in case_ids]

    @staticmethod
    @transaction.atomic
    def update_status(
        *,
        case_id,
        status: str,
        progress: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Case:
        logger.info("Updating case status id=%s status=%s", case_id, status)
        case = selectors.get_case(case_id=case_id)
        validate_transition(case.current_status, status)

        case.current_status = status
        fields = ["current_status"]
        if progress is not None:
            case.latest_progress = progress
            fields.append("latest_progress")
        case.save_versioned(update_fields=fields, actor_id=actor_id)

        logger.info("Case status updated id=%s status=%s", case.id, status)
        return case

    @staticmethod
    @transaction.atomic
    def update_recovery(
        *,
        case_id,
        total_recovered: Optional[Decimal],
        recovery_rate: Optional[Decimal],
        actor_id: Optional[int] = None,
    ) -> Case:
        logger.info("Updating case recovery id=%s", case_id)

        if total_recovered is None or total_recovered < 0:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "回款金额不能为负数")
        if recovery_rate is None or recovery_rate < 0 or recovery_rate > 100:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "回款率必须在0-100之间")

        case = selectors.get_case(case_id=case_id)
        case.total_recovered = total_recovered
        case.recovery_rate = recovery_rate
        case.save_versioned(update_fields=["total_recovered", "recovery_rate"], actor_id=actor_id)

        logger.info("Case recovery updated id=%s", case.id)
        return case
