"""Fee configuration and max-gas bounds for Carbon transactions."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

from .amounts import format_kcal_amount, format_soul_amount, parse_bigint_input

logger = logging.getLogger(__name__)

DEFAULT_GAS_FEE_BASE = 10_000
DEFAULT_FEE_MULTIPLIER = 1_000
DEFAULT_CREATE_TOKEN_BASE = 10_000_000_000
DEFAULT_CREATE_TOKEN_SYMBOL = 10_000_000_000
DEFAULT_CREATE_TOKEN_MULTIPLIER = 10_000
DEFAULT_CREATE_SERIES_BASE = 2_500_000_000
DEFAULT_CREATE_SERIES_MULTIPLIER = 10_000

DEFAULT_DEPLOY_MAX_DATA = 1_000_000_000

ENV_FEE_MULTIPLIER = "CARBON_DEPLOY_FEE_MULTIPLIER"


def _env_multiplier(default: int, env: Mapping[str, str] | None = None) -> int:
    raw = (os.environ if env is None else env).get(ENV_FEE_MULTIPLIER)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer in %s=%s; ignoring", ENV_FEE_MULTIPLIER, raw)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%s; ignoring", ENV_FEE_MULTIPLIER, raw)
        return default
    return value


@dataclass
class FeeOptions:
    """Base fee configuration: ``gas_fee_base * count * fee_multiplier``."""

    gas_fee_base: int = DEFAULT_GAS_FEE_BASE
    fee_multiplier: int = DEFAULT_FEE_MULTIPLIER

    def calculate_max_gas(self, count: int = 1) -> int:
        return self.gas_fee_base * max(1, count) * self.fee_multiplier

    def to_dict(self) -> dict[str, str]:
        return {key: str(value) for key, value in asdict(self).items()}

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "FeeOptions":
        """Defaults for this operation with ``CARBON_DEPLOY_FEE_MULTIPLIER`` applied."""

        defaults = cls()
        return replace(defaults, fee_multiplier=_env_multiplier(defaults.fee_multiplier, env))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "FeeOptions":
        """Build options from string fields such as CLI or form input."""

        defaults = cls()
        values = {}
        for key, default in asdict(defaults).items():
            provided = raw.get(key)
            if provided is None:
                values[key] = default
                continue
            label = key.replace("_", " ").capitalize()
            values[key] = parse_bigint_input(str(provided), label)
        return cls(**values)


@dataclass
class MintNftFeeOptions(FeeOptions):
    """Fee configuration for NFT minting; one base fee per minted item."""


@dataclass
class CreateTokenFeeOptions(FeeOptions):
    """Deployment fees.  Shorter symbols pay a larger symbol fee."""

    gas_fee_create_token_base: int = DEFAULT_CREATE_TOKEN_BASE
    gas_fee_create_token_symbol: int = DEFAULT_CREATE_TOKEN_SYMBOL
    fee_multiplier: int = DEFAULT_CREATE_TOKEN_MULTIPLIER

    def calculate_max_gas(self, symbol: str = "", count: int = 1) -> int:  # type: ignore[override]
        shift = max(0, len(symbol) - 1)
        per_item = (
            self.gas_fee_base
            + self.gas_fee_create_token_base
            + (self.gas_fee_create_token_symbol >> shift)
        )
        return per_item * max(1, count) * self.fee_multiplier


@dataclass
class CreateSeriesFeeOptions(FeeOptions):
    gas_fee_create_series_base: int = DEFAULT_CREATE_SERIES_BASE
    fee_multiplier: int = DEFAULT_CREATE_SERIES_MULTIPLIER

    def calculate_max_gas(self, count: int = 1) -> int:
        return (self.gas_fee_base + self.gas_fee_create_series_base) * max(1, count) * self.fee_multiplier


def format_fee_summary(max_gas: int, max_data: int) -> str:
    """Format fee bounds for user-facing logs."""

    return f"max gas {format_kcal_amount(max_gas)} KCAL, max data {format_soul_amount(max_data)} SOUL"
