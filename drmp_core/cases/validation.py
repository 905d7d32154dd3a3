# drmp_core/cases/validation.py
from __future__ import annotations

from typing import Any, Mapping

from drmp_core.common.validators import is_blank, is_valid_id_card, is_valid_phone

RECEIPT_NUMBER_MAX_LENGTH = 100


def case_field_errors(values: Mapping[str, Any]) -> list[str]:
    """
    Field rules shared by single-case create/update and batch import.
    `values` holds already-typed values (Decimal amounts, int days, dates);
    anything unparseable arrives as None. Returns every violated rule.
    """
    errors: list[str] = []

    receipt = values.get("receipt_number")
    if is_blank(receipt):
        errors.append("借据编号不能为空")
    elif len(str(receipt).strip()) > RECEIPT_NUMBER_MAX_LENGTH:
        errors.append("借据编号长度不能超过100")

    id_card = values.get("debtor_id_card")
    if is_blank(id_card):
        errors.append("身份证号不能为空")
    elif not is_valid_id_card(id_card):
        errors.append("身份证号格式不正确")

    if is_blank(values.get("debtor_name")):
        errors.append("客户姓名不能为空")

    phone = values.get("debtor_phone")
    if is_blank(phone):
        errors.append("手机号不能为空")
    elif not is_valid_phone(phone):
        errors.append("手机号格式不正确")

    if is_blank(values.get("loan_product")):
        errors.append("借款项目不能为空")

    loan_amount = values.get("loan_amount")
    if loan_amount is None or loan_amount <= 0:
        errors.append("贷款金额必须大于0")

    remaining = values.get("remaining_amount")
    if remaining is None or remaining <= 0:
        errors.append("剩余应还金额必须大于0")

    overdue_days = values.get("overdue_days")
    if overdue_days is None or overdue_days < 0:
        errors.append("逾期天数不能为负数")

    if is_blank(values.get("consigner")):
        errors.append("委托方不能为空")

    start, end = values.get("consign_start_date"), values.get("consign_end_date")
    if start is None:
        errors.append("委托开始时间不能为空")
    if end is None:
        errors.append("委托到期时间不能为空")
    if start is not None and end is not None and start > end:
        errors.append("委托开始时间不能晚于到期时间")

    if is_blank(values.get("fund_provider")):
        errors.append("资方名称不能为空")

    return errors
