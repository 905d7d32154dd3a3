# drmp_core/common/api/response.py
from __future__ import annotations

from typing import Any

from rest_framework import status as http
from rest_framework.response import Response

from drmp_core.common.api.exceptions import SUCCESS_CODE, SUCCESS_MESSAGE, build_envelope


def ok(data: Any = None, *, message: str = SUCCESS_MESSAGE, status: int = http.HTTP_200_OK) -> Response:
    """
    Success response wrapped in the {code, message, data, timestamp} envelope.
    """
    return Response(build_envelope(code=SUCCESS_CODE, message=message, data=data), status=status)
