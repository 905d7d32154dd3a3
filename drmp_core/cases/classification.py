# drmp_core/cases/classification.py
"""
Overdue and risk labels derived from overdue days and outstanding amount.
Pure functions; these are the only implementations used anywhere.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

UNKNOWN = "未知"

Number = Union[int, float, Decimal]


def calculate_overdue_level(overdue_days: Optional[int]) -> str:
    if overdue_days is None:
        return UNKNOWN
    if overdue_days <= 30:
        return "M1"
    if overdue_days <= 60:
        return "M2"
    if overdue_days <= 90:
        return "M3"
    if overdue_days <= 180:
        return "M4-M6"
    return "M6+"


def _overdue_points(overdue_days: int) -> int:
    if overdue_days <= 30:
        return 1
    if overdue_days <= 90:
        return 2
    if overdue_days <= 180:
        return 3
    return 4


def _amount_points(amount: Decimal) -> int:
    if amount <= 10000:
        return 1
    if amount <= 50000:
        return 2
    if amount <= 100000:
        return 3
    return 4


def calculate_risk_level(overdue_days: Optional[int], remaining_amount: Optional[Number]) -> str:
    if overdue_days is None or remaining_amount is None:
        return UNKNOWN

    score = _overdue_points(int(overdue_days)) + _amount_points(Decimal(str(remaining_amount)))
    if score <= 2:
        return "低风险"
    if score <= 4:
        return "中风险"
    if score <= 6:
        return "高风险"
    return "极高风险"
