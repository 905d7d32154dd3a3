# drmp_core/organizations/tests/test_organization_services.py
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.organizations import selectors
from drmp_core.organizations.models import AuditStatus, Organization, OrganizationStatus, OrganizationType
from drmp_core.organizations.services import OrganizationService

pytestmark = pytest.mark.django_db


def _create(**overrides):
    data = {"name": "华东催收", "type": OrganizationType.DISPOSAL, "unified_credit_code": "91310000MA1FL0000X"}
    data.update(overrides)
    return OrganizationService.create(data=data, actor_id=1)


def test_create_starts_pending():
    org = _create(name="  华东催收  ")
    assert org.name == "华东催收"
    assert org.status == OrganizationStatus.PENDING
    assert org.audit_status == AuditStatus.PENDING
    assert org.created_by == 1
    assert selectors.count_pending_audit() == 1


def test_name_and_credit_code_are_unique():
    _create()
    with pytest.raises(BusinessException) as exc:
        _create(unified_credit_code="")
    assert exc.value.error_code == ErrorCode.ORGANIZATION_ALREADY_EXISTS
    assert exc.value.message == "机构名称已存在"

    with pytest.raises(BusinessException) as exc:
        _create(name="另一家")
    assert exc.value.message == "统一社会信用代码已存在"


def test_blank_credit_code_is_stored_as_null():
    first = _create(name="甲", unified_credit_code="")
    second = _create(name="乙", unified_credit_code=" ")
    assert first.unified_credit_code is None
    assert second.unified_credit_code is None


def test_update_keeps_own_name_and_bumps_version():
    org = _create()
    updated = OrganizationService.update(org_id=org.id, data={"name": "华东催收", "team_size": 30}, actor_id=2)
    assert updated.team_size == 30
    assert updated.version == 1
    assert updated.updated_by == 2


def test_update_rejects_taken_name():
    _create(name="甲", unified_credit_code=None)
    org = _create(name="乙", unified_credit_code=None)
    with pytest.raises(BusinessException) as exc:
        OrganizationService.update(org_id=org.id, data={"name": "甲"})
    assert exc.value.error_code == ErrorCode.ORGANIZATION_ALREADY_EXISTS


def test_audit_approve_activates():
    org = _create()
    audited = OrganizationService.audit(org_id=org.id, audit_status=AuditStatus.APPROVED, comment="资料齐全", actor_id=9)
    assert audited.status == OrganizationStatus.ACTIVE
    assert audited.audit_by == 9
    assert audited.audit_time is not None

    with pytest.raises(BusinessException) as exc:
        OrganizationService.audit(org_id=org.id, audit_status=AuditStatus.REJECTED)
    assert exc.value.message == "该机构已经审核过，无法重复审核"


def test_audit_reject_and_bad_result():
    org = _create()
    with pytest.raises(BusinessException):
        OrganizationService.audit(org_id=org.id, audit_status=AuditStatus.PENDING)

    rejected = OrganizationService.audit(org_id=org.id, audit_status=AuditStatus.REJECTED, comment="资料不全")
    assert rejected.status == OrganizationStatus.REJECTED
    assert rejected.audit_comment == "资料不全"


def test_set_status_requires_approval():
    org = _create()
    with pytest.raises(BusinessException) as exc:
        OrganizationService.set_status(org_id=org.id, status=OrganizationStatus.SUSPENDED)
    assert exc.value.error_code == ErrorCode.ORGANIZATION_NOT_APPROVED


def test_set_status_toggles_and_is_idempotent(disposal_org):
    suspended = OrganizationService.set_status(org_id=disposal_org.id, status=OrganizationStatus.SUSPENDED)
    assert suspended.status == OrganizationStatus.SUSPENDED
    assert suspended.version == 1

    again = OrganizationService.set_status(org_id=disposal_org.id, status=OrganizationStatus.SUSPENDED)
    assert again.version == 1

    with pytest.raises(BusinessException):
        OrganizationService.set_status(org_id=disposal_org.id, status=OrganizationStatus.PENDING)


def test_delete_blocked_by_active_users(source_org, make_user):
    make_user("member", organization=source_org)
    with pytest.raises(BusinessException) as exc:
        OrganizationService.delete(org_id=source_org.id)
    assert exc.value.error_code == ErrorCode.OPERATION_NOT_ALLOWED


def test_delete_hides_org(disposal_org):
    OrganizationService.delete(org_id=disposal_org.id)
    assert not Organization.objects.filter(id=disposal_org.id).exists()
    assert Organization.all_objects.get(id=disposal_org.id).is_deleted is True
    with pytest.raises(BusinessException) as exc:
        selectors.get_organization(org_id=disposal_org.id)
    assert exc.value.error_code == ErrorCode.ORGANIZATION_NOT_FOUND


def test_disposal_lookups(disposal_org):
    Organization.objects.create(
        name="待审处置", type=OrganizationType.DISPOSAL, service_regions=["北京"]
    )
    assert [o.id for o in selectors.active_disposal_organizations()] == [disposal_org.id]
    assert [o.id for o in selectors.disposal_organizations_by_region(region="上海")] == [disposal_org.id]
    assert selectors.disposal_organizations_by_region(region="广州") == []


def test_document_upload(disposal_org):
    upload = SimpleUploadedFile("license.pdf", b"%PDF-1.4 test", content_type="application/pdf")
    path = OrganizationService.upload_business_license(org_id=disposal_org.id, upload=upload)
    assert path.startswith(f"organizations/{disposal_org.id}/business-license/")

    disposal_org.refresh_from_db()
    assert disposal_org.business_license == path


def test_document_upload_rejects_type(disposal_org):
    upload = SimpleUploadedFile("contract.exe", b"MZ", content_type="application/octet-stream")
    with pytest.raises(BusinessException) as exc:
        OrganizationService.upload_contract(org_id=disposal_org.id, upload=upload)
    assert exc.value.error_code == ErrorCode.UNSUPPORTED_FILE_TYPE
