# drmp_core/common/storage.py
from __future__ import annotations

import logging
import os
import uuid
from typing import Iterable

from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename

from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode

logger = logging.getLogger(__name__)


def file_extension(name: str) -> str:
    return os.path.splitext(name or "")[1].lstrip(".").lower()


def validate_upload(
    upload,
    *,
    allowed_extensions: Iterable[str],
    max_bytes: int,
    empty_code: ErrorCode = ErrorCode.FILE_NOT_FOUND,
    type_code: ErrorCode = ErrorCode.UNSUPPORTED_FILE_TYPE,
    size_code: ErrorCode = ErrorCode.FILE_SIZE_EXCEEDED,
) -> None:
    if upload is None or not getattr(upload, "size", 0):
        raise BusinessException(empty_code)

    ext = file_extension(upload.name)
    if ext not in set(allowed_extensions):
        raise BusinessException(type_code, f"不支持的文件类型: {ext or '无扩展名'}")

    if upload.size > max_bytes:
        raise BusinessException(size_code)


def save_upload(upload, *, folder: str, prefix: str | None = None) -> str:
    """
    Persist an uploaded file through the configured storage backend and
    return its storage path.
    """
    safe_name = get_valid_filename(os.path.basename(upload.name)) or "upload"
    name = f"{prefix or uuid.uuid4().hex}_{safe_name}"
    try:
        path = default_storage.save(f"{folder.rstrip('/')}/{name}", upload)
    except OSError as exc:
        logger.error("File upload failed folder=%s name=%s", folder, safe_name, exc_info=True)
        raise BusinessException(ErrorCode.FILE_UPLOAD_FAILED) from exc
    logger.info("Stored upload %s", path)
    return path
