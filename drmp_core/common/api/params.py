# drmp_core/common/api/params.py
from __future__ import annotations

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode


def int_param(request, name: str, default=None):
    """
    Integer query parameter; blank means `default`, anything else non-numeric
    is an INVALID_PARAMETER business error rather than a 500.
    """
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BusinessException(ErrorCode.INVALID_PARAMETER, f"{name}必须是整数")
