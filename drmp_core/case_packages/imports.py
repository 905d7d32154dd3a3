# drmp_core/case_packages/imports.py
"""
Batch case import.

Flow:
  start()  validates the upload, stores it, writes the initial progress
           record and hands run() to the bounded import executor.
  run()    parse (20) -> validate (40) -> persist (80) -> statistics (100),
           rewriting the progress record after each step.

Progress lives in the shared cache so any process can answer
get_progress(task_id) until the record expires.
"""
from __future__ import annotations

import logging
import uuid
from collections import Counter
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils.timezone import now

from drmp_core.case_packages import selectors
from drmp_core.case_packages.models import ImportStatus
from drmp_core.case_packages.services import LOCKED_STATUSES, CasePackageService
from drmp_core.cases.classification import calculate_overdue_level
from drmp_core.cases.importing import IMPORT_EXTENSIONS, ImportRow, parse_rows, read_frame, validate_rows
from drmp_core.cases.services import CaseService
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode
from drmp_core.common.executors import import_executor
from drmp_core.common.storage import save_upload, validate_upload

logger = logging.getLogger(__name__)

PROGRESS_KEY_PREFIX = "import:progress:"

ERROR_TYPE_VALIDATION = "VALIDATION_ERROR"
ERROR_TYPE_SAVE = "SAVE_ERROR"


# ----------------------------
# Progress store
# ----------------------------
class ImportProgressStore:
    @staticmethod
    def _key(task_id: str) -> str:
        return f"{PROGRESS_KEY_PREFIX}{task_id}"

    @staticmethod
    def save(result: dict[str, Any]) -> None:
        cache.set(ImportProgressStore._key(result["task_id"]), result, timeout=settings.DRMP_IMPORT_PROGRESS_TTL)

    @staticmethod
    def get(task_id: str) -> Optional[dict[str, Any]]:
        return cache.get(ImportProgressStore._key(task_id))


def new_result(*, task_id: str, file_name: str, package_id: int) -> dict[str, Any]:
    return {
        "task_id": task_id,
        "file_name": file_name,
        "case_package_id": package_id,
        "total_records": 0,
        "success_count": 0,
        "failure_count": 0,
        "skip_count": 0,
        "status": ImportStatus.PROCESSING.value,
        "progress": 0,
        "start_time": now().isoformat(),
        "end_time": None,
        "duration": None,
        "error_message": None,
        "errors": [],
        "summary": None,
        "success_rate": 0.0,
        "failure_rate": 0.0,
    }


def _error(row: ImportRow, error_type: str, message: str) -> dict[str, Any]:
    return {
        "row_number": row.row_number,
        "receipt_number": row.receipt_number or None,
        "error_type": error_type,
        "error_message": message,
    }


def _summary(saved: list[ImportRow]) -> dict[str, Any]:
    loan_amounts = [r.values["loan_amount"] for r in saved if r.values.get("loan_amount") is not None]
    overdue_days = [r.values["overdue_days"] for r in saved if r.values.get("overdue_days") is not None]

    total_loan = sum(loan_amounts, Decimal("0"))
    levels = Counter(calculate_overdue_level(days) for days in overdue_days)
    return {
        "total_loan_amount": str(total_loan),
        "average_loan_amount": str((total_loan / len(loan_amounts)).quantize(Decimal("0.01"))) if loan_amounts else "0",
        "average_overdue_days": round(sum(overdue_days) / len(overdue_days), 2) if overdue_days else 0,
        "max_overdue_days": max(overdue_days) if overdue_days else 0,
        "overdue_level_distribution": dict(levels),
    }


def _finish(result: dict[str, Any], started) -> None:
    finished = now()
    result["end_time"] = finished.isoformat()
    result["duration"] = int((finished - started).total_seconds())


class ImportService:
    """
    Orchestrates batch case imports into a case package.
    """

    @staticmethod
    def start(*, package_id, upload, actor_id: Optional[int] = None) -> dict[str, Any]:
        validate_upload(
            upload,
            allowed_extensions=IMPORT_EXTENSIONS,
            max_bytes=settings.DRMP_IMPORT_MAX_FILE_BYTES,
            empty_code=ErrorCode.IMPORT_FILE_EMPTY,
            type_code=ErrorCode.IMPORT_FILE_FORMAT_ERROR,
            size_code=ErrorCode.IMPORT_FILE_TOO_LARGE,
        )
        package = selectors.get_case_package(package_id=package_id)
        if package.status in LOCKED_STATUSES:
            raise BusinessException(ErrorCode.CASE_PACKAGE_CANNOT_MODIFY, "案件包已发布，无法导入案件")

        task_id = str(uuid.uuid4())
        file_name = upload.name
        logger.info("Starting case import package_id=%s task_id=%s file=%s", package.id, task_id, file_name)

        file_path = save_upload(upload, folder=f"imports/{package.id}", prefix=task_id)
        result = new_result(task_id=task_id, file_name=file_name, package_id=package.id)
        ImportProgressStore.save(result)
        CasePackageService.mark_import_started(package_id=package.id, file_path=file_path)

        kwargs = {
            "task_id": task_id,
            "package_id": package.id,
            "file_path": file_path,
            "file_name": file_name,
            "actor_id": actor_id,
        }
        if not settings.DRMP_IMPORT_ASYNC:
            return ImportService.run(**kwargs)

        # Workers must see the committed package row.
        transaction.on_commit(lambda: import_executor().submit(ImportService.run, **kwargs))
        return result

    @staticmethod
    def get_progress(*, task_id: str) -> dict[str, Any]:
        result = ImportProgressStore.get(task_id)
        if result is None:
            raise BusinessException(ErrorCode.IMPORT_TASK_NOT_FOUND)
        return result

    @staticmethod
    def run(
        *,
        task_id: str,
        package_id: int,
        file_path: str,
        file_name: str,
        actor_id: Optional[int] = None,
    ) -> dict[str, Any]:
        result = ImportProgressStore.get(task_id) or new_result(
            task_id=task_id, file_name=file_name, package_id=package_id
        )
        started = now()

        try:
            with default_storage.open(file_path, "rb") as fh:
                content = fh.read()

            rows, skipped = parse_rows(read_frame(content, file_name=file_name))
            result.update(total_records=len(rows), skip_count=skipped, progress=20)
            ImportProgressStore.save(result)

            validate_rows(rows)
            result["progress"] = 40
            ImportProgressStore.save(result)

            errors: list[dict[str, Any]] = []
            saved: list[ImportRow] = []
            for row in rows:
                if not row.valid:
                    message = "; ".join(row.errors)
                    logger.warning("Import row rejected task_id=%s row=%s: %s", task_id, row.row_number, message)
                    errors.append(_error(row, ERROR_TYPE_VALIDATION, message))
                    continue
                try:
                    CaseService.create(data={**row.values, "case_package_id": package_id}, actor_id=actor_id)
                except Exception as exc:
                    detail = exc.message if isinstance(exc, BusinessException) else str(exc)
                    logger.warning("Import row not saved task_id=%s row=%s: %s", task_id, row.row_number, detail)
                    errors.append(_error(row, ERROR_TYPE_SAVE, f"保存失败: {detail}"))
                    continue
                saved.append(row)

            result["progress"] = 80
            ImportProgressStore.save(result)

            CasePackageService.refresh_statistics(package_id=package_id)

            total = len(rows)
            success, failure = len(saved), len(errors)
            result.update(
                success_count=success,
                failure_count=failure,
                errors=errors,
                summary=_summary(saved),
                progress=100,
                success_rate=round(success * 100 / total, 2) if total else 0.0,
                failure_rate=round(failure * 100 / total, 2) if total else 0.0,
            )

            if failure == 0:
                status, message = ImportStatus.SUCCESS, ""
            elif success > 0:
                status, message = ImportStatus.PARTIAL_SUCCESS, f"成功导入{success}条，失败{failure}条"
            else:
                status, message = ImportStatus.FAILED, "所有数据导入失败"

            result["status"] = status.value
            _finish(result, started)
            ImportProgressStore.save(result)
            CasePackageService.mark_import_finished(package_id=package_id, status=status, message=message, progress=100)

            logger.info("Case import finished task_id=%s success=%s failure=%s", task_id, success, failure)

        except Exception as exc:
            logger.error("Case import failed task_id=%s", task_id, exc_info=True)
            message = exc.message if isinstance(exc, BusinessException) else str(exc)
            result.update(status=ImportStatus.FAILED.value, error_message=message, progress=0)
            _finish(result, started)
            ImportProgressStore.save(result)
            CasePackageService.mark_import_finished(
                package_id=package_id, status=ImportStatus.FAILED, message=message, progress=0
            )

        return result
