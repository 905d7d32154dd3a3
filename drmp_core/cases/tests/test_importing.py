# drmp_core/cases/tests/test_importing.py
from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from drmp_core.cases.importing import parse_decimal, parse_int, parse_rows, read_frame, validate_rows

HEADER = "借据编号,身份证号,姓名,手机号,贷款产品,贷款金额,剩余应还金额,逾期天数,委托方,委托开始日期,委托结束日期,资金方"
ROW = "{receipt},110101199003071234,张三,13800138000,消费贷,\"20,000.00\",15000,{days},某银行,2024-01-01,2024/12/31,某资方"


def _csv(*receipts, days="30", encoding="utf-8"):
    lines = [HEADER] + [ROW.format(receipt=r, days=days) if r else ",,,,,,,,,,," for r in receipts]
    return ("\n".join(lines) + "\n").encode(encoding)


def test_csv_rows_are_typed_and_numbered_from_two():
    rows, skipped = parse_rows(read_frame(_csv("A-1", "", "A-2"), file_name="cases.csv"))

    assert skipped == 1
    assert [r.row_number for r in rows] == [2, 4]

    values = rows[0].values
    assert values["receipt_number"] == "A-1"
    assert values["loan_amount"] == Decimal("20000.00")
    assert values["remaining_amount"] == Decimal("15000")
    assert values["overdue_days"] == 30
    assert values["consign_start_date"] == date(2024, 1, 1)
    assert values["consign_end_date"] == date(2024, 12, 31)
    assert values["debt_info"] == {}
    assert rows[0].valid


def test_gbk_csv_is_accepted():
    rows, _ = parse_rows(read_frame(_csv("G-1", encoding="gbk"), file_name="legacy.CSV"))
    assert rows[0].values["debtor_name"] == "张三"


def test_english_headers_and_json_columns():
    frame = pd.DataFrame(
        [{"receiptNumber": "E-1", "overdueDays": "7.0", "debtInfo": '{"term": 12}', "contactInfo": "[1]"}],
        dtype=str,
    )
    rows, _ = parse_rows(frame)
    row = rows[0]
    assert row.values["receipt_number"] == "E-1"
    assert row.values["overdue_days"] == 7
    assert row.values["debt_info"] == {"term": 12}
    assert "联系人信息不是合法的JSON对象" in row.errors


def test_unparseable_numbers_fall_back_to_rule_messages(db):
    rows, _ = parse_rows(read_frame(_csv("N-1", days="abc"), file_name="x.csv"))
    validate_rows(rows)
    assert "逾期天数不能为负数" in rows[0].errors


@pytest.mark.parametrize("raw", ["NaN", "-nan", "Infinity", "-Infinity", "sNaN"])
def test_non_finite_numbers_are_unparsed(raw):
    assert parse_decimal(raw) is None
    assert parse_int(raw) is None


def test_unsupported_extension():
    with pytest.raises(ValueError):
        read_frame(b"whatever", file_name="cases.txt")


@pytest.mark.django_db
def test_validate_flags_in_file_and_stored_duplicates(make_case):
    make_case(receipt_number="OLD-1")
    rows, _ = parse_rows(read_frame(_csv("OLD-1", "NEW-1", "NEW-1"), file_name="d.csv"))

    validate_rows(rows)

    assert rows[0].errors == ["借据编号已存在"]
    assert rows[1].valid
    assert rows[2].errors == ["文件中借据编号重复"]
