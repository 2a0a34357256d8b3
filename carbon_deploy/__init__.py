"""Phantasma Carbon token deployment package."""

from .amounts import (
    convert_royalties_percent,
    format_base_units_to_decimal,
    parse_human_amount_to_base_units,
)
from .confirmation import (
    ConfirmationOutcome,
    ConfirmationPoller,
    ConfirmationStatus,
    wait_for_transaction_confirmation,
)
from .errors import (
    CarbonDeployError,
    ConfirmationTimeoutError,
    ExecutionFailure,
    ProtocolError,
    RejectionError,
    SigningError,
    ValidationError,
)
from .metadata import MetadataField, build_metadata
from .tx_builder import InfusionGroup, InfusionItem, group_infusion_selection
from .wallet import WalletSignResult, WalletSigningAdapter
from .workflows import (
    CreateSeriesResult,
    DeployResult,
    MintNftResult,
    OperationResult,
    create_series,
    deploy_carbon_token,
    infuse_nfts,
    mint_fungible,
    mint_nft,
)

__all__ = [
    "convert_royalties_percent",
    "format_base_units_to_decimal",
    "parse_human_amount_to_base_units",
    "ConfirmationOutcome",
    "ConfirmationPoller",
    "ConfirmationStatus",
    "wait_for_transaction_confirmation",
    "CarbonDeployError",
    "ConfirmationTimeoutError",
    "ExecutionFailure",
    "ProtocolError",
    "RejectionError",
    "SigningError",
    "ValidationError",
    "MetadataField",
    "build_metadata",
    "InfusionGroup",
    "InfusionItem",
    "group_infusion_selection",
    "WalletSignResult",
    "WalletSigningAdapter",
    "CreateSeriesResult",
    "DeployResult",
    "MintNftResult",
    "OperationResult",
    "create_series",
    "deploy_carbon_token",
    "infuse_nfts",
    "mint_fungible",
    "mint_nft",
]
