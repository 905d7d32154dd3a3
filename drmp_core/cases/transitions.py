# drmp_core/cases/transitions.py
from __future__ import annotations

from drmp_core.cases.models import CaseStatus
from drmp_core.common.api.exceptions import BusinessException
from drmp_core.common.error_codes import ErrorCode

# Allowed case status changes. Anything not listed is rejected.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CaseStatus.PENDING_ASSIGNMENT: frozenset({CaseStatus.ASSIGNED, CaseStatus.CLOSED}),
    CaseStatus.ASSIGNED: frozenset({CaseStatus.PROCESSING, CaseStatus.CLOSED}),
    CaseStatus.PROCESSING: frozenset({CaseStatus.SETTLED, CaseStatus.LITIGATION, CaseStatus.CLOSED}),
    CaseStatus.SETTLED: frozenset({CaseStatus.CLOSED}),
    CaseStatus.LITIGATION: frozenset({CaseStatus.CLOSED}),
    CaseStatus.CLOSED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, target: str) -> None:
    if current == CaseStatus.CLOSED:
        raise BusinessException(ErrorCode.CASE_ALREADY_CLOSED, "案件已结案，无法变更状态")
    if not can_transition(current, target):
        raise BusinessException(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f"无效的状态转换: {current} -> {target}",
        )
