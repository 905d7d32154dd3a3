# drmp_core/case_packages/tests/test_case_package_api.py
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from drmp_core.case_packages.models import CasePackageStatus, ImportStatus
from drmp_core.common.error_codes import ErrorCode

pytestmark = pytest.mark.django_db

CSV = (
    "借据编号,身份证号,姓名,手机号,贷款产品,贷款金额,剩余应还金额,逾期天数,委托方,委托开始日期,委托结束日期,资金方\n"
    "API-1,110101199003071234,张三,13800138000,消费贷,20000,15000,45,某银行,2024-01-01,2024-12-31,某资方\n"
)


def test_requires_capability(plain_client):
    res = plain_client.get("/api/v1/case-packages/")
    assert res.status_code == 403


def test_create_and_list(api_client, source_org):
    res = api_client.post(
        "/api/v1/case-packages/",
        {"name": "三月批次", "source_org_id": source_org.id, "expected_recovery_rate": "35.50", "expected_period": 90},
        format="json",
    )
    assert res.status_code == 201, res.json()
    body = res.json()
    assert body["message"] == "案件包创建成功"
    assert body["data"]["status"] == CasePackageStatus.DRAFT
    assert body["data"]["source_org_name"] == "案源机构A"
    assert body["data"]["assignment_progress"] == 0

    listing = api_client.get("/api/v1/case-packages/", {"keyword": "三月"}).json()["data"]
    assert listing["total"] == 1
    assert listing["records"][0]["name"] == "三月批次"


def test_duplicate_name_is_conflict(api_client, case_package, source_org):
    res = api_client.post(
        "/api/v1/case-packages/", {"name": case_package.name, "source_org_id": source_org.id}, format="json"
    )
    assert res.status_code == 409
    assert res.json()["code"] == ErrorCode.CASE_PACKAGE_NAME_EXISTS.code


def test_check_name(api_client, case_package, source_org):
    taken = api_client.get(
        "/api/v1/case-packages/check-name/", {"source_org_id": source_org.id, "name": case_package.name}
    )
    assert taken.json()["data"] is False

    own = api_client.get(
        "/api/v1/case-packages/check-name/",
        {"source_org_id": source_org.id, "name": case_package.name, "exclude_id": case_package.id},
    )
    assert own.json()["data"] is True


@pytest.mark.parametrize("params", [{"name": "x", "exclude_id": "abc"}, {"name": "x", "source_org_id": "1;drop"}])
def test_check_name_rejects_non_numeric_ids(api_client, params):
    res = api_client.get("/api/v1/case-packages/check-name/", params)
    assert res.status_code == 400
    assert res.json()["code"] == ErrorCode.INVALID_PARAMETER.code


def test_publish_empty_package_is_rejected(api_client, case_package):
    res = api_client.post(f"/api/v1/case-packages/{case_package.id}/publish/")
    assert res.status_code == 400
    assert res.json()["code"] == ErrorCode.CASE_PACKAGE_NO_CASES.code


def test_import_then_publish_and_withdraw(api_client, case_package):
    upload = SimpleUploadedFile("cases.csv", CSV.encode("utf-8"), content_type="text/csv")
    res = api_client.post(f"/api/v1/case-packages/{case_package.id}/import/", {"file": upload}, format="multipart")
    assert res.status_code == 200, res.json()
    result = res.json()["data"]
    assert result["status"] == ImportStatus.SUCCESS
    assert result["success_count"] == 1

    progress = api_client.get(f"/api/v1/case-packages/import/{result['task_id']}/progress/").json()
    assert progress["data"]["progress"] == 100

    published = api_client.post(f"/api/v1/case-packages/{case_package.id}/publish/").json()
    assert published["message"] == "案件包发布成功"
    assert published["data"]["status"] == CasePackageStatus.PUBLISHED
    assert published["data"]["total_count"] == 1
    assert published["data"]["total_amount"] == "15000.00"

    assert api_client.get("/api/v1/case-packages/published/").json()["data"]["total"] == 1

    withdrawn = api_client.post(f"/api/v1/case-packages/{case_package.id}/withdraw/").json()
    assert withdrawn["data"]["status"] == CasePackageStatus.WITHDRAWN


def test_import_without_file(api_client, case_package):
    res = api_client.post(f"/api/v1/case-packages/{case_package.id}/import/", {}, format="multipart")
    assert res.status_code == 400
    assert res.json()["code"] == ErrorCode.IMPORT_FILE_EMPTY.code


def test_unknown_import_task(api_client):
    res = api_client.get("/api/v1/case-packages/import/0f0f0f0f-0000-0000-0000-000000000000/progress/")
    assert res.status_code == 404
    assert res.json()["code"] == ErrorCode.IMPORT_TASK_NOT_FOUND.code


def test_status_statistics(api_client, case_package):
    data = api_client.get("/api/v1/case-packages/statistics/status/").json()["data"]
    assert data[CasePackageStatus.DRAFT] == 1


def test_delete(api_client, case_package):
    res = api_client.delete(f"/api/v1/case-packages/{case_package.id}/")
    assert res.json()["message"] == "案件包删除成功"
    assert api_client.get(f"/api/v1/case-packages/{case_package.id}/").status_code == 404
