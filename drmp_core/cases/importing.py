# drmp_core/cases/importing.py
"""
Spreadsheet rows -> typed case values.

Reading uses pandas (csv / xlsx via openpyxl / xls via xlrd) with every
cell kept as text; typing and validation happen per row so one bad cell
never aborts the batch.
"""
from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import pandas as pd

from drmp_core.cases.models import Case
from drmp_core.cases.validation import case_field_errors
from drmp_core.common.storage import file_extension

logger = logging.getLogger(__name__)

IMPORT_EXTENSIONS = ("xlsx", "xls", "csv")

# Column titles accepted for each case field (matched case-insensitively).
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "receipt_number": ("借据编号", "receipt_number", "receiptNumber"),
    "debtor_id_card": ("身份证号", "debtor_id_card", "debtorIdCard"),
    "debtor_name": ("姓名", "客户姓名", "debtor_name", "debtorName"),
    "debtor_phone": ("手机号", "debtor_phone", "debtorPhone"),
    "loan_product": ("贷款产品", "借款项目", "loan_product", "loanProduct"),
    "loan_amount": ("贷款金额", "loan_amount", "loanAmount"),
    "remaining_amount": ("剩余应还金额", "remaining_amount", "remainingAmount"),
    "overdue_days": ("逾期天数", "overdue_days", "overdueDays"),
    "consigner": ("委托方", "consigner"),
    "consign_start_date": ("委托开始日期", "委托开始时间", "consign_start_date", "consignStartDate"),
    "consign_end_date": ("委托结束日期", "委托到期时间", "consign_end_date", "consignEndDate"),
    "fund_provider": ("资金方", "资方名称", "fund_provider", "fundProvider"),
    "debt_info": ("债务信息", "debt_info", "debtInfo"),
    "debtor_info": ("债务人信息", "debtor_info", "debtorInfo"),
    "contact_info": ("联系人信息", "contact_info", "contactInfo"),
    "custom_fields": ("自定义字段", "custom_fields", "customFields"),
}

DECIMAL_FIELDS = ("loan_amount", "remaining_amount")
DATE_FIELDS = ("consign_start_date", "consign_end_date")
JSON_FIELDS = ("debt_info", "debtor_info", "contact_info", "custom_fields")
JSON_LABELS = {
    "debt_info": "债务信息",
    "debtor_info": "债务人信息",
    "contact_info": "联系人信息",
    "custom_fields": "自定义字段",
}

_ALIAS_LOOKUP = {alias.strip().lower(): name for name, aliases in HEADER_ALIASES.items() for alias in aliases}


@dataclass
class ImportRow:
    row_number: int
    values: dict[str, Any]
    errors: list[str] = field(default_factory=list)

    @property
    def receipt_number(self) -> str:
        return self.values.get("receipt_number") or ""

    @property
    def valid(self) -> bool:
        return not self.errors


# -------------------------
# Reading
# -------------------------
def read_frame(content: bytes, *, file_name: str) -> pd.DataFrame:
    ext = file_extension(file_name)
    if ext == "csv":
        try:
            return pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except UnicodeDecodeError:
            logger.info("CSV %s is not UTF-8, retrying as GBK", file_name)
            return pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, encoding="gbk")
    if ext == "xlsx":
        return pd.read_excel(io.BytesIO(content), dtype=str, keep_default_na=False, engine="openpyxl")
    if ext == "xls":
        return pd.read_excel(io.BytesIO(content), dtype=str, keep_default_na=False, engine="xlrd")
    raise ValueError(f"不支持的导入文件类型: {ext}")


def _column_map(columns) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for column in columns:
        name = _ALIAS_LOOKUP.get(str(column).strip().lower())
        if name and name not in mapping.values():
            mapping[str(column)] = name
    return mapping


def _text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def parse_decimal(raw: str) -> Optional[Decimal]:
    if not raw:
        return None
    try:
        number = Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def parse_int(raw: str) -> Optional[int]:
    number = parse_decimal(raw)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def parse_date(raw: str) -> Optional[date]:
    if not raw:
        return None
    parsed = pd.to_datetime(raw, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _row_values(record: dict[str, str]) -> tuple[dict[str, Any], list[str]]:
    values: dict[str, Any] = {}
    errors: list[str] = []

    for name in HEADER_ALIASES:
        raw = record.get(name, "")
        if name in DECIMAL_FIELDS:
            values[name] = parse_decimal(raw)
        elif name == "overdue_days":
            values[name] = parse_int(raw)
        elif name in DATE_FIELDS:
            values[name] = parse_date(raw)
            if raw and values[name] is None:
                errors.append(f"日期格式不正确: {raw}")
        elif name in JSON_FIELDS:
            values[name] = {}
            if raw:
                try:
                    parsed = json.loads(raw)
                except ValueError:
                    parsed = None
                if isinstance(parsed, dict):
                    values[name] = parsed
                else:
                    errors.append(f"{JSON_LABELS[name]}不是合法的JSON对象")
        else:
            values[name] = raw

    return values, errors


def parse_rows(frame: pd.DataFrame) -> tuple[list[ImportRow], int]:
    """
    Returns (rows, skipped_blank_rows). Row numbers are spreadsheet rows:
    the header is row 1, so the first data row is row 2.
    """
    mapping = _column_map(frame.columns)
    rows: list[ImportRow] = []
    skipped = 0

    for offset, raw in enumerate(frame.to_dict(orient="records")):
        record = {mapping[col]: _text(val) for col, val in raw.items() if str(col) in mapping}
        if not any(_text(val) for val in raw.values()):
            skipped += 1
            continue

        values, errors = _row_values(record)
        rows.append(ImportRow(row_number=offset + 2, values=values, errors=errors))

    logger.info("Parsed import rows=%s skipped=%s", len(rows), skipped)
    return rows, skipped


# -------------------------
# Validation
# -------------------------
def _existing_receipts(receipts: list[str], chunk_size: int = 500) -> set[str]:
    found: set[str] = set()
    for start in range(0, len(receipts), chunk_size):
        chunk = receipts[start:start + chunk_size]
        found.update(Case.objects.filter(receipt_number__in=chunk).values_list("receipt_number", flat=True))
    return found


def validate_rows(rows: list[ImportRow]) -> list[ImportRow]:
    """
    Applies the case field rules, rejects receipt numbers already stored and
    repeats within the same file. Errors accumulate on each row.
    """
    receipts = [r.receipt_number for r in rows if r.receipt_number]
    existing = _existing_receipts(sorted(set(receipts)))
    seen: set[str] = set()

    for row in rows:
        row.errors.extend(case_field_errors(row.values))
        receipt = row.receipt_number
        if not receipt:
            continue
        if receipt in existing:
            row.errors.append("借据编号已存在")
        elif receipt in seen:
            row.errors.append("文件中借据编号重复")
        seen.add(receipt)

    invalid = sum(1 for r in rows if not r.valid)
    logger.info("Validated import rows valid=%s invalid=%s", len(rows) - invalid, invalid)
    return rows
