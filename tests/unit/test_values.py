from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from sqlpoll.domain.values import (
    I64_MAX,
    I64_MIN,
    Duration,
    normalize_value,
    timestamp_from_parts,
)
from sqlpoll.errors import NormalizationError

COLUMN = "amount"


def test_null_stays_null() -> None:
    assert normalize_value(COLUMN, None) is None


@pytest.mark.parametrize("value", [0, 1, -1, 42, I64_MIN, I64_MAX])
def test_integers_in_signed_64_bit_range_are_unchanged(value: int) -> None:
    assert normalize_value(COLUMN, value) == value


@pytest.mark.parametrize("value", [I64_MAX + 1, 2**64 - 1, I64_MIN - 1])
def test_integers_outside_signed_64_bit_range_fail_naming_the_column(value: int) -> None:
    with pytest.raises(NormalizationError, match="out of range") as excinfo:
        normalize_value(COLUMN, value)

    assert excinfo.value.column == COLUMN
    assert str(excinfo.value).endswith(COLUMN)


def test_booleans_are_not_treated_as_integers() -> None:
    assert normalize_value(COLUMN, True) is True
    assert normalize_value(COLUMN, False) is False


@pytest.mark.parametrize("value", [0.0, -2.5, 3.141592653589793, float("inf"), float("-inf")])
def test_non_nan_floats_are_unchanged(value: float) -> None:
    assert normalize_value(COLUMN, value) == value


def test_nan_float_fails_instead_of_returning_null() -> None:
    with pytest.raises(NormalizationError, match="NaN") as excinfo:
        normalize_value(COLUMN, float("nan"))

    assert excinfo.value.column == COLUMN


def test_binary_payloads_pass_through_as_bytes() -> None:
    assert normalize_value("blob", b"\x00\xff") == b"\x00\xff"
    assert normalize_value("blob", bytearray(b"abc")) == b"abc"
    assert normalize_value("blob", memoryview(b"xyz")) == b"xyz"


def test_text_payloads_are_kept_verbatim() -> None:
    # A numeric column delivered as text stays text.
    assert normalize_value("name", "Alice") == "Alice"
    assert normalize_value("count", "42") == "42"


def test_decimal_keeps_its_exact_text_form() -> None:
    assert normalize_value(COLUMN, Decimal("12.50")) == "12.50"
    assert normalize_value(COLUMN, Decimal("123456789012345678901234567890.1")) == (
        "123456789012345678901234567890.1"
    )


def test_naive_datetime_is_taken_as_utc_without_conversion() -> None:
    value = datetime(2024, 3, 1, 12, 30, 45, 123456)

    result = normalize_value("created_at", value)

    assert result == datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    assert result.tzinfo is timezone.utc


def test_aware_datetime_is_converted_to_the_utc_instant() -> None:
    plus_two = timezone(timedelta(hours=2))
    value = datetime(2024, 3, 1, 12, 0, tzinfo=plus_two)

    result = normalize_value("created_at", value)

    assert result == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert result.utcoffset() == timedelta(0)


@pytest.mark.parametrize(
    "value",
    [
        datetime(1, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=5))),
        datetime(9999, 12, 31, 23, 0, tzinfo=timezone(timedelta(hours=-5))),
    ],
)
def test_aware_datetime_outside_the_utc_range_is_an_invalid_date(value: datetime) -> None:
    with pytest.raises(NormalizationError, match="invalid date") as excinfo:
        normalize_value("created_at", value)

    assert excinfo.value.column == "created_at"


def test_date_becomes_utc_midnight() -> None:
    assert normalize_value("day", date(2024, 2, 29)) == datetime(2024, 2, 29, tzinfo=timezone.utc)


def test_timestamp_from_parts_matches_every_field() -> None:
    result = timestamp_from_parts("ts", 2023, 12, 31, 23, 59, 58, 999999)

    assert (result.year, result.month, result.day) == (2023, 12, 31)
    assert (result.hour, result.minute, result.second, result.microsecond) == (23, 59, 58, 999999)
    assert result.tzinfo is timezone.utc


@pytest.mark.parametrize(
    "parts",
    [
        (2024, 2, 30, 0, 0, 0, 0),
        (2023, 2, 29, 0, 0, 0, 0),
        (2024, 13, 1, 0, 0, 0, 0),
        (2024, 1, 1, 24, 0, 0, 0),
        (0, 1, 1, 0, 0, 0, 0),
    ],
)
def test_timestamp_from_parts_rejects_invalid_dates(parts: tuple) -> None:
    with pytest.raises(NormalizationError, match="invalid date") as excinfo:
        timestamp_from_parts("ts", *parts)

    assert excinfo.value.column == "ts"


def test_time_of_day_becomes_a_positive_duration() -> None:
    result = normalize_value("opens_at", time(8, 30, 15, 250))

    assert result == Duration(
        negative=False, days=0, hours=8, minutes=30, seconds=15, microseconds=250
    )


def test_negative_interval_keeps_sign_and_full_microsecond_precision() -> None:
    value = -timedelta(days=1, hours=2, minutes=3, seconds=4, microseconds=987654)

    result = normalize_value("lag", value)

    assert result == Duration(
        negative=True, days=1, hours=2, minutes=3, seconds=4, microseconds=987654
    )
    assert result.to_timedelta() == value


def test_positive_interval_round_trips_through_timedelta() -> None:
    value = timedelta(days=40, seconds=59, microseconds=1)

    assert normalize_value("span", value).to_timedelta() == value


def test_uuid_becomes_text() -> None:
    value = uuid.UUID("12345678-1234-5678-1234-567812345678")

    assert normalize_value("id", value) == "12345678-1234-5678-1234-567812345678"


def test_arrays_and_json_objects_are_normalized_recursively() -> None:
    value = {"tags": ["a", "b"], "score": 1.5, "nested": {"at": date(2024, 1, 1)}}

    result = normalize_value("doc", value)

    assert result == {
        "tags": ["a", "b"],
        "score": 1.5,
        "nested": {"at": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    }
    assert normalize_value("ids", (1, 2, None)) == [1, 2, None]


def test_a_bad_array_element_fails_the_whole_column() -> None:
    with pytest.raises(NormalizationError) as excinfo:
        normalize_value("samples", [1.0, float("nan")])

    assert excinfo.value.column == "samples"


@pytest.mark.parametrize("value", [object(), {1, 2}, complex(1, 2)])
def test_unsupported_types_fail(value: object) -> None:
    with pytest.raises(NormalizationError, match="unsupported type"):
        normalize_value("weird", value)
