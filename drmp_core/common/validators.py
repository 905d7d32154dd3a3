# drmp_core/common/validators.py
from __future__ import annotations

import re

ID_CARD_PATTERN = re.compile(
    r"^[1-9]\d{5}(18|19|20)\d{2}((0[1-9])|(1[0-2]))(([0-2][1-9])|10|20|30|31)\d{3}[0-9Xx]$"
)
PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")


def is_valid_id_card(value) -> bool:
    return bool(value) and bool(ID_CARD_PATTERN.match(str(value).strip()))


def is_valid_phone(value) -> bool:
    return bool(value) and bool(PHONE_PATTERN.match(str(value).strip()))


def is_blank(value) -> bool:
    return value is None or str(value).strip() == ""
