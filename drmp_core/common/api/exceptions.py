# drmp_core/common/api/exceptions.py

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from drmp_core.common.error_codes import ErrorCode

logger = logging.getLogger(__name__)

SUCCESS_CODE = 200
SUCCESS_MESSAGE = "操作成功"
SERVER_BUSY_MESSAGE = "系统繁忙，请稍后重试"


def build_envelope(*, code: int, message: str, data: Any = None) -> dict[str, Any]:
    """
    Canonical response envelope for DRMP.
    Shared by success responses and the DRF exception handler.
    """
    return {
        "code": code,
        "message": message,
        "data": data,
        "timestamp": int(time.time() * 1000),
    }


class BusinessException(APIException):
    """
    Business rule violation with a code from the ErrorCode registry.
    Flows through the global exception handler like any APIException.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = ErrorCode.BUSINESS_LOGIC_ERROR.message
    default_code = "business_error"

    def __init__(self, error_code: ErrorCode, message: Optional[str] = None, data: Any = None):
        self.error_code = error_code
        self.status_code = error_code.http_status
        self.data = data
        super().__init__(detail=message or error_code.message, code=error_code.name.lower())

    @property
    def code(self) -> int:
        return self.error_code.code

    @property
    def message(self) -> str:
        return str(self.detail)


def _flatten_errors(data: Any, prefix: str = "") -> list[str]:
    """
    Turn DRF's nested error structure into "field: message" strings.
    """
    if isinstance(data, dict):
        out: list[str] = []
        for key, value in data.items():
            label = key if key != "non_field_errors" else ""
            nested = f"{prefix}.{label}" if prefix and label else (label or prefix)
            out.extend(_flatten_errors(value, nested))
        return out
    if isinstance(data, (list, tuple)):
        out = []
        for item in data:
            out.extend(_flatten_errors(item, prefix))
        return out
    text = str(data)
    return [f"{prefix}: {text}" if prefix else text]


def _code_for(exc: Exception, http_status: int) -> int:
    if isinstance(exc, (ValidationError, DjangoValidationError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, PermissionDenied):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, (Http404, NotFound)):
        return status.HTTP_404_NOT_FOUND
    return http_status


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    if isinstance(exc, BusinessException):
        return Response(
            build_envelope(code=exc.code, message=exc.message, data=exc.data),
            status=exc.status_code,
        )

    # Services raise Django's ValidationError for plain parameter problems.
    if isinstance(exc, DjangoValidationError):
        details = exc.message_dict if hasattr(exc, "error_dict") else {"detail": exc.messages}
        exc = ValidationError(details)

    response = drf_exception_handler(exc, context)

    # Truly unhandled error
    if response is None:
        view = context.get("view")
        logger.error(
            "Unhandled API error in %s",
            view.__class__.__name__ if view is not None else "unknown view",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return Response(
            build_envelope(code=status.HTTP_500_INTERNAL_SERVER_ERROR, message=SERVER_BUSY_MESSAGE),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    http_status = response.status_code
    code = _code_for(exc, http_status)
    data = response.data

    # Message + data rules:
    # 1) {"detail": "..."} only -> message=detail, data=None
    # 2) field errors -> message="field: msg; field: msg", data=field map
    if isinstance(data, dict) and set(data.keys()) == {"detail"}:
        message = str(data["detail"])
        data = None
    else:
        message = "; ".join(_flatten_errors(data)) or "请求失败"

    return Response(
        build_envelope(code=code, message=message, data=data),
        status=http_status,
        headers=response.headers,
    )
