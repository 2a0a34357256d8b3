from __future__ import annotations

import pytest

from carbon_deploy.amounts import (
    INTX_MAX_VALUE,
    convert_royalties_percent,
    ensure_within_intx,
    format_base_units_to_decimal,
    format_kcal_amount,
    parse_bigint_input,
    parse_human_amount_or_raise,
    parse_human_amount_to_base_units,
)
from carbon_deploy.errors import AmountError, ValidationError


@pytest.mark.parametrize("decimals", range(31))
def test_format_then_parse_returns_original(decimals: int) -> None:
    for base_units in (0, 1, 10**decimals, 123456789, 10**30 + 7, INTX_MAX_VALUE):
        text = format_base_units_to_decimal(base_units, decimals)
        assert parse_human_amount_to_base_units(text, decimals, allow_zero=True) == base_units


def test_zero_requires_allow_zero() -> None:
    with pytest.raises(AmountError, match="must be greater than zero"):
        parse_human_amount_to_base_units("0", 8)
    assert parse_human_amount_to_base_units("0", 8, allow_zero=True) == 0


def test_fraction_longer_than_decimals_rejected() -> None:
    with pytest.raises(AmountError, match=r"Fractional precision exceeds decimals \(8\)"):
        parse_human_amount_to_base_units("1.234567890", 8)


def test_simple_conversions() -> None:
    assert parse_human_amount_to_base_units("0.2", 1) == 2
    assert parse_human_amount_to_base_units("100", 0) == 100
    assert parse_human_amount_to_base_units("007.50", 2) == 750


def test_fraction_not_allowed_without_decimals() -> None:
    with pytest.raises(AmountError, match="not allowed when decimals are 0"):
        parse_human_amount_to_base_units("1.5", 0)


@pytest.mark.parametrize("raw", ["abc", "-1", "1.", ".5", "1e5", "1,000", "١٢"])
def test_non_numeric_input_rejected(raw: str) -> None:
    with pytest.raises(AmountError, match="must be a numeric value"):
        parse_human_amount_to_base_units(raw, 8)


def test_empty_input() -> None:
    with pytest.raises(AmountError, match="Supply is required"):
        parse_human_amount_or_raise("  ", 8, "Supply")
    assert parse_human_amount_to_base_units("", 8, allow_empty=True) == 0


def test_amount_errors_are_validation_errors() -> None:
    with pytest.raises(ValidationError):
        parse_human_amount_to_base_units("x", 2)


def test_format_trims_trailing_zeros() -> None:
    assert format_base_units_to_decimal(150_000_000, 8) == "1.5"
    assert format_base_units_to_decimal(100, 2) == "1"
    assert format_base_units_to_decimal(5, 3) == "0.005"


def test_ensure_within_intx() -> None:
    assert ensure_within_intx(INTX_MAX_VALUE) == INTX_MAX_VALUE
    with pytest.raises(AmountError, match="Max supply exceeds"):
        ensure_within_intx(INTX_MAX_VALUE + 1, "Max supply")


def test_royalties_conversion() -> None:
    assert convert_royalties_percent("2.5") == 25_000_000
    assert convert_royalties_percent("100") == 1_000_000_000
    assert convert_royalties_percent("0") == 0
    assert convert_royalties_percent("  ") is None


def test_royalties_limits() -> None:
    with pytest.raises(AmountError, match="Maximum is 100%"):
        convert_royalties_percent("101")
    with pytest.raises(AmountError, match="at most 7 decimals"):
        convert_royalties_percent("1.12345678")
    with pytest.raises(AmountError, match="numeric value"):
        convert_royalties_percent("ten")


def test_parse_bigint_input() -> None:
    assert parse_bigint_input(" 42 ", "Max data") == 42
    assert parse_bigint_input("", "Max data", allow_empty=True, default=7) == 7
    with pytest.raises(AmountError, match="Max data must be non-negative"):
        parse_bigint_input("-1", "Max data")
    with pytest.raises(AmountError, match="must be a valid integer"):
        parse_bigint_input("1.5", "Max data")


def test_kcal_display() -> None:
    assert format_kcal_amount(15_000_000_000) == "1.5 (15,000,000,000 base units)"
