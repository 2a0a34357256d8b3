"""Exact conversion between human decimal amounts and integer base units.

Amounts never pass through ``float``: the decimal string is split into its
whole and fractional digits, the fraction is right-padded to the token's
decimals, and the concatenated digits are parsed as a Python ``int``.  The
255-bit capacity of the on-chain integer type is checked separately with
:func:`ensure_within_intx` so that parsing stays independent of domain limits.
"""

from __future__ import annotations

import re

from .errors import AmountError

AMOUNT_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?$")
INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")

INTX_MAX_VALUE = (1 << 255) - 1

ROYALTIES_UNIT_DECIMALS = 7
ROYALTIES_MAX_PERCENT = 100

FUEL_TOKEN_DECIMALS = 10
STAKING_TOKEN_DECIMALS = 8


def parse_human_amount_to_base_units(
    raw: str,
    decimals: int,
    *,
    label: str = "Amount",
    allow_empty: bool = False,
    allow_zero: bool = False,
) -> int:
    """Convert ``raw`` (e.g. ``"12.5"``) to base units for ``decimals``.

    Raises :class:`AmountError` when the text is empty (unless
    ``allow_empty``), not of the form ``digits(.digits)?``, carries more
    fractional digits than ``decimals`` allows, or resolves to zero (unless
    ``allow_zero``).
    """

    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise AmountError(f"{label}: Decimals must be a non-negative integer")

    trimmed = (raw or "").strip()
    if not trimmed:
        if allow_empty:
            return 0
        raise AmountError(f"{label} is required")

    if not AMOUNT_PATTERN.match(trimmed):
        raise AmountError(f"{label} must be a numeric value")

    whole, _, fraction = trimmed.partition(".")
    if decimals == 0 and fraction:
        raise AmountError(f"{label}: Fractional value is not allowed when decimals are 0")
    if len(fraction) > decimals:
        raise AmountError(f"{label}: Fractional precision exceeds decimals ({decimals})")

    combined = (whole + fraction.ljust(decimals, "0")).lstrip("0") or "0"
    base_units = int(combined)
    if base_units == 0 and not allow_zero:
        raise AmountError(f"{label} must be greater than zero")
    return base_units


def parse_human_amount_or_raise(
    raw: str,
    decimals: int,
    label: str,
    *,
    allow_empty: bool = False,
    allow_zero: bool = False,
) -> int:
    """Labelled variant used by form-level callers."""

    return parse_human_amount_to_base_units(
        raw, decimals, label=label, allow_empty=allow_empty, allow_zero=allow_zero
    )


def format_base_units_to_decimal(base_units: int, decimals: int) -> str:
    """Render ``base_units`` as a plain decimal string (no grouping)."""

    if base_units < 0:
        raise AmountError("Base units must be non-negative")
    if decimals <= 0:
        return str(base_units)
    whole, fraction = divmod(base_units, 10 ** decimals)
    if fraction == 0:
        return str(whole)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{fraction_text}"


def ensure_within_intx(value: int, label: str = "Amount") -> int:
    """Reject values the 255-bit on-chain integer cannot carry."""

    if value < 0:
        raise AmountError(f"{label} must be non-negative")
    if value > INTX_MAX_VALUE:
        raise AmountError(f"{label} exceeds the maximum supported value")
    return value


def parse_bigint_input(
    raw: str,
    label: str,
    *,
    allow_empty: bool = False,
    default: int = 0,
) -> int:
    """Parse a non-negative integer field such as a fee or a max-data limit."""

    trimmed = (raw or "").strip()
    if not trimmed:
        if allow_empty:
            return default
        raise AmountError(f"{label} is required")
    if not INTEGER_PATTERN.match(trimmed):
        raise AmountError(f"{label} must be a valid integer")
    value = int(trimmed)
    if value < 0:
        raise AmountError(f"{label} must be non-negative")
    return value


def convert_royalties_percent(raw: str) -> int | None:
    """Scale a royalties percentage so that 1% equals 10,000,000 base units.

    Returns ``None`` for blank input so callers can tell "not provided" apart
    from ``0``.
    """

    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    if not AMOUNT_PATTERN.match(trimmed):
        raise AmountError("Use a numeric value like 12 or 12.5")

    whole, _, fraction = trimmed.partition(".")
    if len(fraction) > ROYALTIES_UNIT_DECIMALS:
        raise AmountError(f"Use at most {ROYALTIES_UNIT_DECIMALS} decimals")

    base_units = int((whole + fraction.ljust(ROYALTIES_UNIT_DECIMALS, "0")).lstrip("0") or "0")
    if base_units > ROYALTIES_MAX_PERCENT * 10 ** ROYALTIES_UNIT_DECIMALS:
        raise AmountError(f"Maximum is {ROYALTIES_MAX_PERCENT}%")
    return base_units


def group_digits(base_units: int) -> str:
    return f"{base_units:,}"


def format_token_amount(base_units: int, decimals: int) -> str:
    """Return ``"<human> (<grouped> base units)"`` for fee summaries."""

    base_label = group_digits(base_units)
    if decimals <= 0:
        return base_label
    return f"{format_base_units_to_decimal(base_units, decimals)} ({base_label} base units)"


def format_kcal_amount(base_units: int) -> str:
    return format_token_amount(base_units, FUEL_TOKEN_DECIMALS)


def format_soul_amount(base_units: int) -> str:
    return format_token_amount(base_units, STAKING_TOKEN_DECIMALS)
