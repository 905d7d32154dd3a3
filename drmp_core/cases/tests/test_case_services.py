# drmp_core/cases/tests/test_case_services.py
from datetime import timedelta
from decimal import Decimal

import pytest
from cryptography.fernet import Fernet
from django.db import connection
from django.utils.timezone import now

from drmp_core.cases import selectors
from drmp_core.cases.models import Case, CaseStatus
from drmp_core.cases.services import CaseService
from drmp_core.cases.transitions import ALLOWED_TRANSITIONS
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.crypto import search_digest
from drmp_core.common.error_codes import ErrorCode
from drmp_core.conftest import case_payload
from drmp_core.organizations.models import OrganizationStatus

pytestmark = pytest.mark.django_db


def test_create_starts_pending_and_encrypts_pii(make_case):
    case = make_case()
    assert case.current_status == CaseStatus.PENDING_ASSIGNMENT
    assert case.total_recovered == Decimal("0")

    with connection.cursor() as cursor:
        cursor.execute("SELECT debtor_id_card, debtor_name, debtor_phone FROM cases_case WHERE id = %s", [case.id])
        raw = cursor.fetchone()
    assert "110101199003071234" not in raw
    assert "张三丰" not in raw

    fresh = selectors.get_case(case_id=case.id)
    assert fresh.debtor_id_card == "110101199003071234"
    assert fresh.debtor_name_digest == search_digest("张三丰")


def test_create_requires_package_and_valid_fields(case_package):
    with pytest.raises(BusinessException) as exc:
        CaseService.create(data=case_payload())
    assert exc.value.message == "案件包ID不能为空"

    with pytest.raises(BusinessException) as exc:
        CaseService.create(data=case_payload(case_package_id=case_package.id, debtor_phone="123"))
    assert exc.value.error_code == ErrorCode.INVALID_PARAMETER
    assert exc.value.data == {"errors": ["手机号格式不正确"]}


def test_create_unknown_package(db):
    with pytest.raises(BusinessException) as exc:
        CaseService.create(data=case_payload(case_package_id=999999))
    assert exc.value.error_code == ErrorCode.CASE_PACKAGE_NOT_FOUND


def test_duplicate_receipt_number_rejected(make_case):
    make_case(receipt_number="DUP-1")
    with pytest.raises(BusinessException) as exc:
        make_case(receipt_number="DUP-1")
    assert exc.value.error_code == ErrorCode.CASE_RECEIPT_NUMBER_EXISTS


def test_receipt_number_reusable_after_delete(make_case):
    case = make_case(receipt_number="REUSE-1")
    CaseService.delete(case_id=case.id)
    assert make_case(receipt_number="REUSE-1").id != case.id


def test_update_merges_and_bumps_version(make_case):
    case = make_case()
    updated = CaseService.update(case_id=case.id, data={"debtor_phone": "13900139000", "overdue_days": 100})
    assert updated.version == 1

    fresh = selectors.get_case(case_id=case.id)
    assert fresh.debtor_phone == "13900139000"
    assert fresh.overdue_days == 100
    assert fresh.debtor_phone_digest == search_digest("13900139000")


def test_update_rejects_receipt_of_other_case(make_case):
    make_case(receipt_number="A-1")
    other = make_case(receipt_number="A-2")
    with pytest.raises(BusinessException) as exc:
        CaseService.update(case_id=other.id, data={"receipt_number": "A-1"})
    assert exc.value.error_code == ErrorCode.CASE_RECEIPT_NUMBER_EXISTS


def test_closed_case_is_read_only(make_case):
    case = make_case()
    CaseService.update_status(case_id=case.id, status=CaseStatus.CLOSED)
    with pytest.raises(BusinessException) as exc:
        CaseService.update(case_id=case.id, data={"loan_product": "车贷"})
    assert exc.value.error_code == ErrorCode.CASE_ALREADY_CLOSED


def test_stale_version_is_rejected(make_case):
    case = make_case()
    stale = selectors.get_case(case_id=case.id)
    CaseService.update(case_id=case.id, data={"loan_product": "车贷"})

    stale.loan_product = "房贷"
    with pytest.raises(BusinessException) as exc:
        stale.save_versioned(update_fields=["loan_product"])
    assert exc.value.error_code == ErrorCode.CONCURRENT_MODIFICATION_ERROR


def test_delete_refused_while_processing(make_case, disposal_org):
    case = make_case()
    CaseService.assign(case_ids=[case.id], org_id=disposal_org.id)
    CaseService.update_status(case_id=case.id, status=CaseStatus.PROCESSING)

    with pytest.raises(BusinessException) as exc:
        CaseService.delete(case_id=case.id)
    assert exc.value.error_code == ErrorCode.CASE_CANNOT_DELETE


def test_assign_sets_org_and_refreshes_package(make_case, disposal_org, case_package):
    first = make_case(receipt_number="S-1", remaining_amount=Decimal("100.00"))
    make_case(receipt_number="S-2", remaining_amount=Decimal("50.00"))

    assigned = CaseService.assign(case_ids=[first.id], org_id=disposal_org.id)
    assert assigned[0].current_status == CaseStatus.ASSIGNED
    assert assigned[0].assigned_org_id == disposal_org.id
    assert assigned[0].assigned_at is not None

    case_package.refresh_from_db()
    assert case_package.total_count == 2
    assert case_package.assigned_count == 1
    assert case_package.assigned_amount == Decimal("100.00")
    assert case_package.total_amount == Decimal("150.00")


def test_assign_requires_active_disposal_org(make_case, source_org, disposal_org):
    case = make_case()
    with pytest.raises(BusinessException) as exc:
        CaseService.assign(case_ids=[case.id], org_id=source_org.id)
    assert exc.value.error_code == ErrorCode.INVALID_ORGANIZATION_TYPE

    disposal_org.status = OrganizationStatus.SUSPENDED
    disposal_org.save(update_fields=["status"])
    with pytest.raises(BusinessException) as exc:
        CaseService.assign(case_ids=[case.id], org_id=disposal_org.id)
    assert exc.value.error_code == ErrorCode.ORGANIZATION_NOT_APPROVED


def test_assign_is_all_or_nothing(make_case, disposal_org):
    first = make_case(receipt_number="N-1")
    second = make_case(receipt_number="N-2")
    CaseService.assign(case_ids=[second.id], org_id=disposal_org.id)

    with pytest.raises(BusinessException) as exc:
        CaseService.assign(case_ids=[first.id, second.id], org_id=disposal_org.id)
    assert exc.value.error_code == ErrorCode.CASE_CANNOT_ASSIGN
    assert selectors.get_case(case_id=first.id).current_status == CaseStatus.PENDING_ASSIGNMENT


def test_assign_empty_or_missing(make_case, disposal_org):
    with pytest.raises(BusinessException):
        CaseService.assign(case_ids=[], org_id=disposal_org.id)
    with pytest.raises(BusinessException) as exc:
        CaseService.assign(case_ids=[424242], org_id=disposal_org.id)
    assert exc.value.error_code == ErrorCode.CASE_NOT_FOUND


def test_update_status_records_progress(make_case, disposal_org):
    case = make_case()
    CaseService.assign(case_ids=[case.id], org_id=disposal_org.id)
    updated = CaseService.update_status(case_id=case.id, status=CaseStatus.PROCESSING, progress="已联系债务人")
    assert updated.current_status == CaseStatus.PROCESSING
    assert selectors.get_case(case_id=case.id).latest_progress == "已联系债务人"


@pytest.mark.parametrize(
    "total,rate",
    [(Decimal("-1"), Decimal("10")), (Decimal("10"), Decimal("101")), (Decimal("10"), Decimal("-0.01"))],
)
def test_update_recovery_bounds(make_case, total, rate):
    case = make_case()
    with pytest.raises(BusinessException) as exc:
        CaseService.update_recovery(case_id=case.id, total_recovered=total, recovery_rate=rate)
    assert exc.value.error_code == ErrorCode.INVALID_PARAMETER


def test_keyword_search_matches_exact_name_and_receipt(make_case):
    make_case(receipt_number="KW-100", debtor_name="李四")
    make_case(receipt_number="KW-200", debtor_name="王五")

    assert [c.receipt_number for c in selectors.list_cases(keyword="李四")] == ["KW-100"]
    assert {c.receipt_number for c in selectors.list_cases(keyword="KW-")} == {"KW-100", "KW-200"}


def test_keyword_search_after_encryption_key_rotation(make_case, settings):
    make_case(receipt_number="KR-1", debtor_name="赵六")
    settings.DRMP_FIELD_ENCRYPTION_KEYS = [Fernet.generate_key().decode(), *settings.DRMP_FIELD_ENCRYPTION_KEYS]
    assert [c.receipt_number for c in selectors.list_cases(keyword="赵六")] == ["KR-1"]


def test_overdue_and_statistics(make_case, disposal_org):
    late = make_case(receipt_number="O-1", overdue_days=200)
    make_case(receipt_number="O-2", overdue_days=10)
    CaseService.assign(case_ids=[late.id], org_id=disposal_org.id)
    Case.objects.filter(id=late.id).update(assigned_at=now() - timedelta(days=10))

    assert [c.id for c in selectors.overdue_cases(timeout_days=7)] == [late.id]
    assert [c.receipt_number for c in selectors.cases_by_overdue_days(min_days=100, max_days=365)] == ["O-1"]
    assert selectors.status_statistics() == {"ASSIGNED": 1, "PENDING_ASSIGNMENT": 1}
    assert selectors.status_statistics(org_id=disposal_org.id) == {"ASSIGNED": 1}

    CaseService.update_recovery(case_id=late.id, total_recovered=Decimal("500"), recovery_rate=Decimal("20"))
    stats = selectors.recovery_statistics(org_id=disposal_org.id)
    assert stats["case_count"] == 1
    assert stats["total_recovered"] == Decimal("500")
    assert stats["average_recovery_rate"] == Decimal("20.00")


@pytest.mark.parametrize("target", list(CaseStatus))
@pytest.mark.parametrize("current", list(CaseStatus))
def test_update_status_over_every_status_pair(make_case, current, target):
    case = make_case()
    Case.objects.filter(id=case.id).update(current_status=current)

    if current == CaseStatus.CLOSED:
        expected = ErrorCode.CASE_ALREADY_CLOSED
    elif target in ALLOWED_TRANSITIONS.get(current, ()):
        expected = None
    else:
        expected = ErrorCode.INVALID_STATUS_TRANSITION

    if expected is None:
        updated = CaseService.update_status(case_id=case.id, status=target)
        assert updated.current_status == target
        assert selectors.get_case(case_id=case.id).current_status == target
    else:
        with pytest.raises(BusinessException) as exc:
            CaseService.update_status(case_id=case.id, status=target)
        assert exc.value.error_code == expected
        assert selectors.get_case(case_id=case.id).current_status == current
