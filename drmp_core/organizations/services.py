# drmp_core/organizations/services.py
from __future__ import annotations

import logging
from typing import Any, Optional

from django.conf import settings
from django.db import transaction
from django.utils.timezone import now

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.common.storage import save_upload, validate_upload
from drmp_core.organizations import selectors
from drmp_core.organizations.models import (
    AuditStatus,
    Organization,
    OrganizationStatus,
)

logger = logging.getLogger(__name__)

# Fields writable through create/update. Status and audit fields are not.
EDITABLE_FIELDS = (
    "name",
    "type",
    "sub_type",
    "contact_person",
    "contact_phone",
    "contact_email",
    "address",
    "legal_person",
    "unified_credit_code",
    "registration_capital",
    "establish_date",
    "team_size",
    "monthly_capacity",
    "current_load",
    "service_regions",
    "business_scope",
    "disposal_types",
    "settlement_methods",
    "cooperation_cases",
    "description",
    "contract_start_date",
    "contract_end_date",
)

DOCUMENT_EXTENSIONS = ("pdf", "jpg", "jpeg", "png")


class OrganizationService:
    """
    All Organization mutations live here (write-model boundary).
    """

    @staticmethod
    def _check_unique(*, name: Optional[str], credit_code: Optional[str], exclude_id=None) -> None:
        if name and selectors.exists_by_name(name=name, exclude_id=exclude_id):
            raise BusinessException(ErrorCode.ORGANIZATION_ALREADY_EXISTS, "机构名称已存在")
        if credit_code and selectors.exists_by_credit_code(code=credit_code, exclude_id=exclude_id):
            raise BusinessException(ErrorCode.ORGANIZATION_ALREADY_EXISTS, "统一社会信用代码已存在")

    @staticmethod
    @transaction.atomic
    def create(*, data: dict[str, Any], actor_id: Optional[int] = None) -> Organization:
        name = (data.get("name") or "").strip()
        logger.info("Creating organization name=%s", name)

        credit_code = (data.get("unified_credit_code") or "").strip() or None
        OrganizationService._check_unique(name=name, credit_code=credit_code)

        values = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        values["name"] = name
        values["unified_credit_code"] = credit_code

        org = Organization.objects.create(
            **values,
            status=OrganizationStatus.PENDING,
            audit_status=AuditStatus.PENDING,
            created_by=actor_id,
            updated_by=actor_id,
        )
        logger.info("Organization created id=%s name=%s", org.id, org.name)
        return org

    @staticmethod
    @transaction.atomic
    def update(*, org_id, data: dict[str, Any], actor_id: Optional[int] = None) -> Organization:
        logger.info("Updating organization id=%s", org_id)
        org = selectors.get_organization(org_id=org_id)

        name = (data.get("name") or "").strip() or None
        credit_code = (data.get("unified_credit_code") or "").strip() or None
        OrganizationService._check_unique(
            name=name if name and name != org.name else None,
            credit_code=credit_code if credit_code and credit_code != org.unified_credit_code else None,
            exclude_id=org.id,
        )

        changed: list[str] = []
        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == "name":
                value = name or org.name
            elif field == "unified_credit_code":
                value = credit_code
            if getattr(org, field) != value:
                setattr(org, field, value)
                changed.append(field)

        if changed:
            org.save_versioned(update_fields=changed, actor_id=actor_id)
        logger.info("Organization updated id=%s fields=%s", org.id, changed)
        return org

    @staticmethod
    @transaction.atomic
    def delete(*, org_id, actor_id: Optional[int] = None) -> None:
        from drmp_core.iam.models import UserProfile

        logger.info("Deleting organization id=%s", org_id)
        org = selectors.get_organization(org_id=org_id)

        if UserProfile.objects.filter(organization=org, user__is_active=True).exists():
            raise BusinessException(ErrorCode.OPERATION_NOT_ALLOWED, "机构下仍有启用的用户，无法删除")

        org.soft_delete(actor_id=actor_id)
        logger.info("Organization deleted id=%s name=%s", org.id, org.name)

    @staticmethod
    @transaction.atomic
    def audit(*, org_id, audit_status: str, comment: str = "", actor_id: Optional[int] = None) -> Organization:
        logger.info("Auditing organization id=%s result=%s", org_id, audit_status)
        if audit_status not in {AuditStatus.APPROVED, AuditStatus.REJECTED}:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "审核结果只能是 APPROVED 或 REJECTED")

        org = selectors.get_organization(org_id=org_id)
        if org.audit_status != AuditStatus.PENDING:
            raise BusinessException(ErrorCode.OPERATION_NOT_ALLOWED, "该机构已经审核过，无法重复审核")

        org.audit_status = audit_status
        org.audit_comment = comment or ""
        org.audit_time = now()
        org.audit_by = actor_id
        org.status = (
            OrganizationStatus.ACTIVE if audit_status == AuditStatus.APPROVED else OrganizationStatus.REJECTED
        )
        org.save_versioned(
            update_fields=["audit_status", "audit_comment", "audit_time", "audit_by", "status"],
            actor_id=actor_id,
        )
        logger.info("Organization audit done id=%s result=%s", org.id, audit_status)
        return org

    @staticmethod
    @transaction.atomic
    def set_status(*, org_id, status: str, actor_id: Optional[int] = None) -> Organization:
        if status not in {OrganizationStatus.ACTIVE, OrganizationStatus.SUSPENDED}:
            raise BusinessException(ErrorCode.INVALID_PARAMETER, "状态只能是 ACTIVE 或 SUSPENDED")

        org = selectors.get_organization(org_id=org_id)
        if org.audit_status != AuditStatus.APPROVED:
            raise BusinessException(ErrorCode.ORGANIZATION_NOT_APPROVED)

        # idempotent no-op
        if org.status == status:
            return org

        org.status = status
        org.save_versioned(update_fields=["status"], actor_id=actor_id)
        logger.info("Organization status changed id=%s status=%s", org.id, status)
        return org

    @staticmethod
    def _store_document(*, org_id, upload, kind: str, field: str, actor_id: Optional[int]) -> str:
        org = selectors.get_organization(org_id=org_id)
        validate_upload(
            upload,
            allowed_extensions=DOCUMENT_EXTENSIONS,
            max_bytes=int(getattr(settings, "DRMP_DOCUMENT_MAX_FILE_BYTES", 10 * 1024 * 1024)),
        )
        path = save_upload(upload, folder=f"organizations/{org.id}/{kind}")
        setattr(org, field, path)
        org.save_versioned(update_fields=[field], actor_id=actor_id)
        logger.info("Organization %s stored id=%s path=%s", kind, org.id, path)
        return path

    @staticmethod
    @transaction.atomic
    def upload_business_license(*, org_id, upload, actor_id: Optional[int] = None) -> str:
        return OrganizationService._store_document(
            org_id=org_id, upload=upload, kind="business-license", field="business_license", actor_id=actor_id
        )

    @staticmethod
    @transaction.atomic
    def upload_contract(*, org_id, upload, actor_id: Optional[int] = None) -> str:
        return OrganizationService._store_document(
            org_id=org_id, upload=upload, kind="contract", field="contract_file", actor_id=actor_id
        )
