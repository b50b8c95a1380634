from datetime import date, datetime

import pandas as pd
import pytest

from row_rules import ErrorDescriptor, is_empty, map_row, parse_date, parse_number, validate_row
from sheet_config import DEFAULT_SCHEMA, DateRule, NumberRule, Schema, StringRule

JANUARY_2024 = datetime(2024, 1, 20, 12, 0)


def _messages(errors):
    return [e.error for e in errors]


@pytest.fixture
def valid_row():
    """
    Fixture providing a row that satisfies every rule of the default schema.

    Returns:
        dict: Source column -> raw value
    """
    return {"Name": "Alice", "Amount": 12.5, "Date": datetime(2024, 1, 3), "Verified": "No"}


class TestParsing:
    """
    Tests for the number and date parsers shared by validation and mapping.
    """

    @pytest.mark.parametrize(
        "value, expected",
        [
            (5, 5.0),
            (0.01, 0.01),
            ("12.5", 12.5),
            (" 7 ", 7.0),
            ("-1", -1.0),
            ("abc", None),
            ("", None),
            (True, None),
            (None, None),
            (float("nan"), None),
            (datetime(2024, 1, 1), None),
            ("inf", None),
            ("-Infinity", None),
            ("1e400", None),
            (float("inf"), None),
            ("1_000", None),
        ],
        ids=["int", "float", "numeric-text", "padded-text", "negative-text", "text",
             "empty", "bool", "none", "nan", "datetime", "inf-text", "negative-infinity-text",
             "overflow-text", "inf-float", "digit-separator"]
    )
    def test_parse_number(self, value, expected):
        assert parse_number(value) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (datetime(2024, 1, 15, 8, 30), datetime(2024, 1, 15, 8, 30)),
            (date(2024, 1, 15), datetime(2024, 1, 15)),
            (pd.Timestamp("2024-01-15"), datetime(2024, 1, 15)),
            ("2024-01-15", datetime(2024, 1, 15)),
            ("garbage-value", None),
            ("", None),
            (42, None),
            (None, None),
        ],
        ids=["datetime", "date", "timestamp", "iso-text", "garbage", "empty", "number", "none"]
    )
    def test_parse_date(self, value, expected):
        assert parse_date(value) == expected

    def test_parse_date_returns_naive_datetime_for_aware_input(self):
        parsed = parse_date("2024-01-15T10:00:00+00:00")

        assert parsed is not None
        assert parsed.tzinfo is None

    @pytest.mark.parametrize("value", [None, "", float("nan")])
    def test_is_empty_for_missing_values(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, " ", "x", False])
    def test_is_empty_false_for_present_values(self, value):
        assert not is_empty(value)


class TestValidateRow:
    """
    Tests for validate_row against the default Name/Amount/Date/Verified schema.
    """

    def test_valid_row_has_no_errors(self, valid_row):
        assert validate_row(valid_row, DEFAULT_SCHEMA, 2, now=JANUARY_2024) == []

    def test_missing_name_reports_required_only(self):
        """
        Test the row-2 scenario: an empty Name is the only problem.

        The date is a text value within the evaluation month and Verified is
        an allowed value, so exactly one error is expected.
        """
        row = {"Name": "", "Amount": 5, "Date": "2024-01-15", "Verified": "Yes"}

        errors = validate_row(row, DEFAULT_SCHEMA, 2, now=JANUARY_2024)

        assert errors == [ErrorDescriptor(row=2, error='Row 2: "Name" is required.')]

    def test_min_and_allowed_values_violations_are_both_reported(self):
        """
        Test the row-3 scenario: a negative amount and an unknown Verified value.
        """
        row = {"Name": "Bob", "Amount": -1, "Date": JANUARY_2024, "Verified": "Maybe"}

        errors = validate_row(row, DEFAULT_SCHEMA, 3, now=JANUARY_2024)

        assert _messages(errors) == [
            'Row 3: "Amount" must be greater than 0.01.',
            'Row 3: "Verified" must be one of Yes, No.',
        ]
        assert all(e.row == 3 for e in errors)

    def test_required_column_absent_from_row(self, valid_row):
        del valid_row["Amount"]

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 4, now=JANUARY_2024)

        assert _messages(errors) == ['Row 4: "Amount" is required.']

    def test_required_check_skips_further_checks(self):
        """
        Test that an empty required column stops at the "is required" error.

        A rule combining required with an allowed-values whitelist must not
        also report the whitelist violation for the empty value.
        """
        schema = Schema(
            column_mapping={"Code": "name"},
            validation_rules={"Code": StringRule(required=True, allowed_values=("A", "B"))},
        )

        errors = validate_row({"Code": None}, schema, 2, now=JANUARY_2024)

        assert _messages(errors) == ['Row 2: "Code" is required.']

    def test_optional_empty_column_is_skipped(self, valid_row):
        valid_row["Verified"] = None

        assert validate_row(valid_row, DEFAULT_SCHEMA, 2, now=JANUARY_2024) == []

    def test_non_numeric_amount(self, valid_row):
        valid_row["Amount"] = "twelve"

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 5, now=JANUARY_2024)

        assert _messages(errors) == ['Row 5: "Amount" must be numeric.']

    @pytest.mark.parametrize("amount", ["inf", "Infinity", "1e400"], ids=["inf", "infinity", "overflow"])
    def test_infinite_amount_is_not_numeric(self, valid_row, amount):
        valid_row["Amount"] = amount

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 5, now=JANUARY_2024)

        assert _messages(errors) == ['Row 5: "Amount" must be numeric.']
        assert map_row(valid_row, DEFAULT_SCHEMA)["amount"] is None

    @pytest.mark.parametrize(
        "amount, expect_error",
        [(0.009, True), (0, True), (-3, True), (0.01, False), (0.02, False), ("1.5", False)],
        ids=["just-below", "zero", "negative", "equal-min", "above", "numeric-text"]
    )
    def test_min_boundary(self, valid_row, amount, expect_error):
        valid_row["Amount"] = amount

        expected = [ErrorDescriptor(row=2, error='Row 2: "Amount" must be greater than 0.01.')] if expect_error else []

        assert validate_row(valid_row, DEFAULT_SCHEMA, 2, now=JANUARY_2024) == expected

    def test_whole_number_minimum_is_printed_without_decimals(self):
        schema = Schema(
            column_mapping={"Name": "name", "Qty": "qty"},
            validation_rules={"Name": StringRule(), "Qty": NumberRule(min=1)},
        )

        errors = validate_row({"Name": "x", "Qty": 0}, schema, 2, now=JANUARY_2024)

        assert _messages(errors) == ['Row 2: "Qty" must be greater than 1.']

    def test_invalid_date(self, valid_row):
        valid_row["Date"] = "sometime soon"

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 2, now=JANUARY_2024)

        assert _messages(errors) == ['Row 2: "Date" must be a valid date.']

    @pytest.mark.parametrize(
        "value",
        [datetime(2023, 12, 31), datetime(2024, 2, 1), datetime(2023, 1, 15), "2025-01-10"],
        ids=["previous-month", "next-month", "same-month-last-year", "same-month-next-year"]
    )
    def test_date_outside_current_month(self, valid_row, value):
        valid_row["Date"] = value

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 2, now=JANUARY_2024)

        assert _messages(errors) == ['Row 2: "Date" must be within the current month.']

    def test_date_without_current_month_rule_accepts_any_month(self):
        schema = Schema(
            column_mapping={"Name": "name", "When": "when"},
            validation_rules={"Name": StringRule(), "When": DateRule(required=True)},
        )

        assert validate_row({"Name": "x", "When": "1999-07-04"}, schema, 2, now=JANUARY_2024) == []

    def test_current_month_defaults_to_local_now(self, valid_row):
        valid_row["Date"] = datetime.now()

        assert validate_row(valid_row, DEFAULT_SCHEMA, 2) == []

    @pytest.mark.parametrize("value", [42, 3.5, datetime(2024, 1, 2)], ids=["int", "float", "datetime"])
    def test_non_text_name_is_flagged(self, valid_row, value):
        valid_row["Name"] = value

        errors = validate_row(valid_row, DEFAULT_SCHEMA, 7, now=JANUARY_2024)

        assert _messages(errors) == ['Row 7: "Name" must be a string.']

    def test_errors_for_all_columns_follow_rule_order(self):
        row = {"Name": 1, "Amount": "x", "Date": "nope", "Verified": "maybe"}

        errors = validate_row(row, DEFAULT_SCHEMA, 9, now=JANUARY_2024)

        assert _messages(errors) == [
            'Row 9: "Name" must be a string.',
            'Row 9: "Amount" must be numeric.',
            'Row 9: "Date" must be a valid date.',
            'Row 9: "Verified" must be one of Yes, No.',
        ]


class TestMapRow:
    """
    Tests for map_row.
    """

    def test_maps_to_canonical_fields_with_coercion(self):
        row = {"Name": "Alice", "Amount": "12.5", "Date": "2024-01-15", "Verified": "Yes", "Extra": "ignored"}

        mapped = map_row(row, DEFAULT_SCHEMA)

        assert mapped == {
            "name": "Alice",
            "amount": 12.5,
            "date": datetime(2024, 1, 15),
            "verified": "Yes",
        }
        assert list(mapped) == ["name", "amount", "date", "verified"]

    def test_key_set_matches_mapping_values_for_sparse_row(self):
        mapped = map_row({}, DEFAULT_SCHEMA)

        assert set(mapped) == set(DEFAULT_SCHEMA.column_mapping.values())
        assert all(value is None for value in mapped.values())

    def test_empty_values_are_copied_without_coercion(self):
        mapped = map_row({"Name": "", "Amount": 0, "Date": "", "Verified": None}, DEFAULT_SCHEMA)

        assert mapped == {"name": "", "amount": 0, "date": "", "verified": None}

    def test_unparseable_values_map_to_none(self):
        mapped = map_row({"Name": "Bob", "Amount": "lots", "Date": "whenever"}, DEFAULT_SCHEMA)

        assert mapped["amount"] is None
        assert mapped["date"] is None

    def test_is_idempotent(self):
        row = {"Name": "Bob", "Amount": -1, "Date": "2024-01-20", "Verified": "Maybe"}

        assert map_row(row, DEFAULT_SCHEMA) == map_row(row, DEFAULT_SCHEMA)

    def test_does_not_mutate_input(self):
        row = {"Name": "Bob", "Amount": "3", "Date": "2024-01-20"}
        before = dict(row)

        map_row(row, DEFAULT_SCHEMA)

        assert row == before
