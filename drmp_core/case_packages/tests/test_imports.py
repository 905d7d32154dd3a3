# drmp_core/case_packages/tests/test_imports.py
from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from drmp_core.case_packages.imports import ImportProgressStore, ImportService
from drmp_core.case_packages.models import CasePackageStatus, ImportStatus
from drmp_core.cases.models import Case
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode

pytestmark = pytest.mark.django_db

HEADER = "借据编号,身份证号,姓名,手机号,贷款产品,贷款金额,剩余应还金额,逾期天数,委托方,委托开始日期,委托结束日期,资金方"
GOOD = "{0},110101199003071234,张三,13800138000,消费贷,20000,{1},{2},某银行,2024-01-01,2024-12-31,某资方"
BAD_PHONE = "{0},110101199003071234,张三,12345,消费贷,20000,1000,10,某银行,2024-01-01,2024-12-31,某资方"


def _upload(*lines, name="cases.csv"):
    content = ("\n".join([HEADER, *lines]) + "\n").encode("utf-8")
    return SimpleUploadedFile(name, content, content_type="text/csv")


def test_all_rows_imported(case_package):
    upload = _upload(GOOD.format("I-1", "1000", "20"), GOOD.format("I-2", "3000", "200"))

    result = ImportService.start(package_id=case_package.id, upload=upload)

    assert result["status"] == ImportStatus.SUCCESS
    assert result["progress"] == 100
    assert result["total_records"] == 2
    assert result["success_count"] == 2
    assert result["failure_count"] == 0
    assert result["success_rate"] == 100.0
    assert result["summary"]["total_loan_amount"] == "40000"
    assert result["summary"]["max_overdue_days"] == 200
    assert result["summary"]["overdue_level_distribution"] == {"M1": 1, "M6+": 1}
    assert result["end_time"] is not None

    case_package.refresh_from_db()
    assert case_package.import_status == ImportStatus.SUCCESS
    assert case_package.import_progress == 100
    assert case_package.total_count == 2
    assert case_package.import_file_path.startswith(f"imports/{case_package.id}/{result['task_id']}_")
    assert Case.objects.filter(case_package=case_package).count() == 2


def test_partial_success_collects_row_errors(case_package):
    upload = _upload(GOOD.format("P-1", "1000", "20"), BAD_PHONE.format("P-2"), GOOD.format("P-1", "1000", "20"))

    result = ImportService.start(package_id=case_package.id, upload=upload)

    assert result["status"] == ImportStatus.PARTIAL_SUCCESS
    assert result["success_count"] == 1
    assert result["failure_count"] == 2
    assert [(e["row_number"], e["error_message"]) for e in result["errors"]] == [
        (3, "手机号格式不正确"),
        (4, "文件中借据编号重复"),
    ]
    assert result["errors"][0]["error_type"] == "VALIDATION_ERROR"

    case_package.refresh_from_db()
    assert case_package.import_status == ImportStatus.PARTIAL_SUCCESS
    assert case_package.import_error_msg == "成功导入1条，失败2条"


def test_non_finite_amount_fails_only_its_row(case_package):
    upload = _upload(GOOD.format("N-1", "1000", "20"), GOOD.format("N-2", "NaN", "20"))

    result = ImportService.start(package_id=case_package.id, upload=upload)

    assert result["status"] == ImportStatus.PARTIAL_SUCCESS
    assert result["success_count"] == 1
    assert [(e["row_number"], e["receipt_number"]) for e in result["errors"]] == [(3, "N-2")]
    assert "剩余应还金额必须大于0" in result["errors"][0]["error_message"]
    assert list(Case.objects.filter(case_package=case_package).values_list("receipt_number", flat=True)) == ["N-1"]


def test_all_rows_failing(case_package):
    result = ImportService.start(package_id=case_package.id, upload=_upload(BAD_PHONE.format("F-1")))

    assert result["status"] == ImportStatus.FAILED
    case_package.refresh_from_db()
    assert case_package.import_error_msg == "所有数据导入失败"


def test_header_only_file_is_success(case_package):
    result = ImportService.start(package_id=case_package.id, upload=_upload())
    assert result["status"] == ImportStatus.SUCCESS
    assert result["total_records"] == 0
    assert result["success_rate"] == 0.0


def test_save_failure_marks_row_and_continues(case_package):
    from drmp_core.cases.services import CaseService

    real_create = CaseService.create

    def flaky(*, data, actor_id=None):
        if data["receipt_number"] == "X-2":
            raise RuntimeError("disk full")
        return real_create(data=data, actor_id=actor_id)

    upload = _upload(GOOD.format("X-1", "1000", "20"), GOOD.format("X-2", "1000", "20"))
    with mock.patch.object(CaseService, "create", side_effect=flaky):
        result = ImportService.start(package_id=case_package.id, upload=upload)

    assert result["status"] == ImportStatus.PARTIAL_SUCCESS
    assert result["errors"] == [
        {"row_number": 3, "receipt_number": "X-2", "error_type": "SAVE_ERROR", "error_message": "保存失败: disk full"}
    ]


def test_pipeline_crash_fails_task(case_package):
    with mock.patch("drmp_core.case_packages.imports.read_frame", side_effect=RuntimeError("boom")):
        result = ImportService.start(package_id=case_package.id, upload=_upload(GOOD.format("C-1", "1", "1")))

    assert result["status"] == ImportStatus.FAILED
    assert result["error_message"] == "boom"
    assert result["progress"] == 0
    case_package.refresh_from_db()
    assert case_package.import_status == ImportStatus.FAILED
    assert case_package.import_error_msg == "boom"


@pytest.mark.parametrize(
    "upload,code",
    [
        (None, ErrorCode.IMPORT_FILE_EMPTY),
        (SimpleUploadedFile("empty.csv", b""), ErrorCode.IMPORT_FILE_EMPTY),
        (SimpleUploadedFile("cases.pdf", b"%PDF"), ErrorCode.IMPORT_FILE_FORMAT_ERROR),
    ],
)
def test_upload_validation(case_package, upload, code):
    with pytest.raises(BusinessException) as exc:
        ImportService.start(package_id=case_package.id, upload=upload)
    assert exc.value.error_code == code


def test_upload_size_limit(case_package, settings):
    settings.DRMP_IMPORT_MAX_FILE_BYTES = 10
    with pytest.raises(BusinessException) as exc:
        ImportService.start(package_id=case_package.id, upload=_upload(GOOD.format("Z-1", "1", "1")))
    assert exc.value.error_code == ErrorCode.IMPORT_FILE_TOO_LARGE


def test_published_package_rejects_import(case_package):
    case_package.status = CasePackageStatus.PUBLISHED
    case_package.save(update_fields=["status"])
    with pytest.raises(BusinessException) as exc:
        ImportService.start(package_id=case_package.id, upload=_upload(GOOD.format("Z-1", "1", "1")))
    assert exc.value.error_code == ErrorCode.CASE_PACKAGE_CANNOT_MODIFY


def test_progress_lookup(case_package):
    result = ImportService.start(package_id=case_package.id, upload=_upload(GOOD.format("G-1", "1000", "5")))
    assert ImportService.get_progress(task_id=result["task_id"])["status"] == ImportStatus.SUCCESS

    with pytest.raises(BusinessException) as exc:
        ImportService.get_progress(task_id="00000000-0000-0000-0000-000000000000")
    assert exc.value.error_code == ErrorCode.IMPORT_TASK_NOT_FOUND


def test_async_start_returns_initial_record(case_package, settings):
    settings.DRMP_IMPORT_ASYNC = True
    with mock.patch("drmp_core.case_packages.imports.transaction.on_commit") as on_commit:
        result = ImportService.start(package_id=case_package.id, upload=_upload(GOOD.format("A-1", "1", "1")))

    assert on_commit.called
    assert result["status"] == ImportStatus.PROCESSING
    assert result["progress"] == 0
    assert ImportProgressStore.get(result["task_id"])["status"] == ImportStatus.PROCESSING
    case_package.refresh_from_db()
    assert case_package.import_status == ImportStatus.PROCESSING
