# drmp_core/common/tests/test_envelope.py
import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.test import APIRequestFactory

from drmp_core.common.api.exceptions import BusinessException, api_exception_handler
from drmp_core.common.api.pagination import DefaultPagination
from drmp_core.common.api.response import ok
from drmp_core.common.error_codes import ErrorCode


def test_ok_wraps_payload():
    res = ok({"a": 1}, message="完成", status=status.HTTP_201_CREATED)
    assert res.status_code == 201
    assert res.data["code"] == 200
    assert res.data["message"] == "完成"
    assert res.data["data"] == {"a": 1}
    assert isinstance(res.data["timestamp"], int)


def test_business_exception_uses_registry():
    exc = BusinessException(ErrorCode.CASE_NOT_FOUND)
    res = api_exception_handler(exc, {})
    assert res.status_code == 404
    assert res.data["code"] == 14001
    assert res.data["message"] == "案件不存在"
    assert res.data["data"] is None


def test_business_exception_custom_message_and_data():
    exc = BusinessException(ErrorCode.INVALID_PARAMETER, "逾期天数不能为负数", data={"field": "overdue_days"})
    res = api_exception_handler(exc, {})
    assert res.status_code == 400
    assert res.data["code"] == 10002
    assert res.data["message"] == "逾期天数不能为负数"
    assert res.data["data"] == {"field": "overdue_days"}


@pytest.mark.parametrize(
    "error_code,http_status",
    [
        (ErrorCode.USER_ALREADY_EXISTS, 409),
        (ErrorCode.CONCURRENT_MODIFICATION_ERROR, 409),
        (ErrorCode.INVALID_TOKEN, 401),
        (ErrorCode.PERMISSION_DENIED, 403),
        (ErrorCode.SYSTEM_ERROR, 500),
        (ErrorCode.CASE_CANNOT_ASSIGN, 400),
    ],
)
def test_http_status_per_error_code(error_code, http_status):
    assert error_code.http_status == http_status


def test_field_errors_are_flattened():
    res = api_exception_handler(ValidationError({"name": ["不能为空"], "size": ["必须是整数"]}), {})
    assert res.status_code == 400
    assert res.data["code"] == 400
    assert res.data["message"] == "name: 不能为空; size: 必须是整数"
    assert res.data["data"] == {"name": ["不能为空"], "size": ["必须是整数"]}


def test_django_validation_error_is_converted():
    res = api_exception_handler(DjangoValidationError({"status": ["无效状态"]}), {})
    assert res.status_code == 400
    assert res.data["message"] == "status: 无效状态"


def test_detail_only_errors():
    res = api_exception_handler(NotFound(), {})
    assert res.status_code == 404
    assert res.data["code"] == 404
    assert res.data["data"] is None


def test_unhandled_error_is_masked():
    res = api_exception_handler(RuntimeError("db exploded"), {})
    assert res.status_code == 500
    assert res.data["code"] == 500
    assert res.data["message"] == "系统繁忙，请稍后重试"
    assert "db exploded" not in str(res.data)


# ----------------------------
# Pagination
# ----------------------------
def _request(**params):
    from rest_framework.request import Request

    return Request(APIRequestFactory().get("/", params))


def test_page_params_defaults_and_caps():
    p = DefaultPagination()
    assert p.page_params(_request()) == (1, 20)
    assert p.page_params(_request(page=3, size=500)) == (3, 200)
    assert p.page_params(_request(current=0, size=0)) == (1, 1)


def test_page_params_rejects_garbage():
    with pytest.raises(ValidationError):
        DefaultPagination().page_params(_request(current="abc"))


def test_paginate_beyond_last_page():
    records, meta = DefaultPagination().paginate(_request(current=5, size=2), list(range(3)))
    assert records == []
    assert meta == {"total": 3, "current": 5, "size": 2, "pages": 2}
