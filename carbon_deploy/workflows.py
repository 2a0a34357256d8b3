"""Deploy, mint, series and infusion workflows.

Each workflow validates its inputs, builds one unsigned transaction, asks the
wallet to sign and broadcast it, waits for confirmation and returns a result
value.  Nothing raises past these functions: every failure is reported as
``success=False`` with a message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from .amounts import ensure_within_intx, parse_human_amount_to_base_units
from .binary import EncodingError
from .carbon import (
    Address,
    Bytes32,
    build_nft_ram,
    build_nft_rom,
    build_series_info,
    build_token_info,
    parse_create_series_result,
    parse_create_token_result,
    parse_mint_nft_result,
    random_phantasma_id,
)
from .config import ConfirmationConfig, load_confirmation_config
from .confirmation import ConfirmationPoller
from .errors import ValidationError, to_message
from .fees import (
    DEFAULT_DEPLOY_MAX_DATA,
    CreateSeriesFeeOptions,
    CreateTokenFeeOptions,
    FeeOptions,
    MintNftFeeOptions,
    format_fee_summary,
)
from .metadata import build_metadata, parse_hex_bytes
from .rpc_client import PhantasmaRPCClient, TransactionRecord
from .tx_builder import (
    CreateSeriesTxBuilder,
    DeployTokenTxBuilder,
    InfuseTxBuilder,
    InfusionItem,
    MintFungibleTxBuilder,
    MintNftTxBuilder,
)
from .vm import NFT_ROM_RESERVED_NAMES, SERIES_RESERVED_NAMES, TOKEN_METADATA_RESERVED_KEYS, TokenSchemas, VmStructSchema
from .wallet import WalletConnection, WalletSignResult, WalletSigningAdapter, wallet_public_key

logger = logging.getLogger(__name__)

PENDING_TX_HASH = "pending"

AddLog = Callable[[str, Any], None]


@dataclass
class OperationResult:
    """Uniform outcome of a workflow.

    On success ``tx_hash`` is set; ``pending`` marks a wallet that returned no
    hash, in which case confirmation was skipped.  On failure only ``error``
    is meaningful.
    """

    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    pending: bool = False
    wallet_result: Optional[WalletSignResult] = None


@dataclass
class DeployResult(OperationResult):
    token_id: Optional[int] = None


@dataclass
class MintNftResult(OperationResult):
    carbon_nft_addresses: Optional[List[str]] = None
    phantasma_nft_id: Optional[str] = None


@dataclass
class CreateSeriesResult(OperationResult):
    series_id: Optional[int] = None


ResultT = TypeVar("ResultT", bound=OperationResult)


@dataclass
class _Submission:
    wallet_result: WalletSignResult
    record: Optional[TransactionRecord] = None

    @property
    def tx_hash(self) -> str:
        return self.wallet_result.hash or PENDING_TX_HASH

    @property
    def pending(self) -> bool:
        return not self.wallet_result.hash


@dataclass
class _Pipeline:
    """Per-call plumbing shared by the workflows: logging, signing and confirmation."""

    operation: str
    wallet: Optional[WalletConnection]
    api: Any = None
    confirmation: Optional[ConfirmationConfig] = None
    add_log: Optional[AddLog] = None
    sleep: Any = None

    def log(self, message: str, data: Any = None) -> None:
        logger.info("[%s] %s", self.operation, message, extra={"operation": self.operation, "data": data})
        if self.add_log is None:
            return
        try:
            self.add_log(f"[{self.operation}] {message}", data)
        except Exception:  # noqa: BLE001 - a broken log sink must not change the outcome
            logger.debug("add_log sink raised", exc_info=True)

    def require_wallet(self) -> Bytes32:
        if self.wallet is None:
            raise ValidationError("Wallet connection is required")
        return wallet_public_key(self.wallet)

    def _poller(self) -> ConfirmationPoller:
        api = self.api if self.api is not None else PhantasmaRPCClient.from_env()
        config = self.confirmation if self.confirmation is not None else load_confirmation_config()
        if self.sleep is not None:
            return ConfirmationPoller(api, config, sleep=self.sleep)
        return ConfirmationPoller(api, config)

    async def submit(self, tx: Any) -> _Submission:
        self.log(
            "Requesting wallet signature",
            {
                "type": tx.type.name,
                "max_gas": str(tx.max_gas),
                "fees": format_fee_summary(tx.max_gas, tx.max_data),
            },
        )
        wallet_result = await WalletSigningAdapter(self.wallet).sign(tx)
        submission = _Submission(wallet_result)
        if submission.pending:
            logger.warning("[%s] Wallet returned no transaction hash; skipping confirmation", self.operation)
            self.log("Wallet returned no hash; result is pending", {"wallet_id": wallet_result.id})
            return submission

        self.log("Waiting for confirmation", {"tx_hash": wallet_result.hash})
        outcome = await self._poller().wait(wallet_result.hash)
        submission.record = outcome.raise_for_status(wallet_result.hash)
        self.log("Transaction confirmed", {"tx_hash": wallet_result.hash})
        return submission

    def succeed(self, result: ResultT) -> ResultT:
        self.log("Done", {"tx_hash": result.tx_hash, "pending": result.pending})
        return result

    def fail(self, result_type: Type[ResultT], err: BaseException) -> ResultT:
        message = to_message(err)
        logger.error("[%s] failed: %s", self.operation, message, exc_info=logger.isEnabledFor(logging.DEBUG))
        self.log("Failed", {"error": message})
        return result_type(success=False, error=message)


def _success(result_type: Type[ResultT], submission: _Submission, **extra: Any) -> ResultT:
    return result_type(
        success=True,
        tx_hash=submission.tx_hash,
        pending=submission.pending,
        wallet_result=submission.wallet_result,
        **extra,
    )


def _record_result(submission: _Submission) -> Optional[str]:
    if submission.record is None:
        return None
    return submission.record.result


def build_token_metadata(
    name: str = "",
    icon: str = "",
    url: str = "",
    description: str = "",
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Standard token metadata followed by extended properties.

    Extended properties may not reuse the standard keys.
    """

    metadata = {}
    for key, value in (("name", name), ("icon", icon), ("url", url), ("description", description)):
        if value and value.strip():
            metadata[key] = value.strip()
    for key, value in (extra or {}).items():
        trimmed_key = str(key).strip()
        if not trimmed_key:
            continue
        if trimmed_key in TOKEN_METADATA_RESERVED_KEYS:
            raise ValidationError(f"Metadata key '{trimmed_key}' is reserved")
        metadata[trimmed_key] = str(value)
    return metadata


# Deploy -----------------------------------------------------------------


async def deploy_carbon_token(
    wallet: Optional[WalletConnection],
    *,
    symbol: str,
    max_supply: int,
    is_nft: bool = False,
    decimals: int = 8,
    metadata: Mapping[str, str] | None = None,
    token_schemas_json: str | None = None,
    fee_options: CreateTokenFeeOptions | None = None,
    max_data: int = DEFAULT_DEPLOY_MAX_DATA,
    expiry: int | None = None,
    api: Any = None,
    confirmation: ConfirmationConfig | None = None,
    add_log: AddLog | None = None,
    sleep: Any = None,
) -> DeployResult:
    """Deploy a fungible or NFT token owned by the connected wallet."""

    pipeline = _Pipeline("deploy", wallet, api, confirmation, add_log, sleep)
    try:
        owner = pipeline.require_wallet()
        trimmed_symbol = (symbol or "").strip()
        if not trimmed_symbol:
            raise ValidationError("symbol is required")
        ensure_within_intx(max_supply, "Max supply")

        schemas: TokenSchemas | None = None
        if is_nft:
            if not token_schemas_json or not token_schemas_json.strip():
                raise ValidationError("Token schemas JSON is required for NFTs")
            try:
                schemas = TokenSchemas.from_json(token_schemas_json)
            except ValidationError as exc:
                raise ValidationError(f"Invalid token schemas: {exc}") from exc
            pipeline.log("Using token schemas", schemas.to_dict())

        token_info = build_token_info(
            trimmed_symbol, max_supply, is_nft, decimals, owner, metadata, schemas
        )
        pipeline.log(
            "Prepared token info",
            {"symbol": trimmed_symbol, "max_supply": str(max_supply), "decimals": decimals, "is_nft": is_nft},
        )
        try:
            tx = DeployTokenTxBuilder(
                token_info, owner, fee_options=fee_options, max_data=max_data, expiry=expiry
            ).build()
        except ValidationError as exc:
            raise ValidationError(f"Failed to build Carbon tx: {exc}") from exc

        submission = await pipeline.submit(tx)
    except Exception as exc:  # noqa: BLE001 - converted to a failure result
        return pipeline.fail(DeployResult, exc)

    token_id = None
    raw_result = _record_result(submission)
    if raw_result:
        try:
            token_id = parse_create_token_result(raw_result)
        except EncodingError:
            logger.warning("Could not parse token id from result %r", raw_result)
    return pipeline.succeed(_success(DeployResult, submission, token_id=token_id))


# Mint -------------------------------------------------------------------


async def mint_fungible(
    wallet: Optional[WalletConnection],
    *,
    carbon_token_id: int,
    destination_address: str,
    amount: int | str,
    decimals: int | None = None,
    fee_options: FeeOptions | None = None,
    max_data: int = 0,
    expiry: int | None = None,
    api: Any = None,
    confirmation: ConfirmationConfig | None = None,
    add_log: AddLog | None = None,
    sleep: Any = None,
) -> OperationResult:
    """Mint fungible tokens to ``destination_address``.

    ``amount`` is either base units or, when ``decimals`` is given, a human
    decimal string.
    """

    pipeline = _Pipeline("mint", wallet, api, confirmation, add_log, sleep)
    try:
        sender = pipeline.require_wallet()
        trimmed_address = (destination_address or "").strip()
        if not trimmed_address:
            raise ValidationError("Destination address is required")
        try:
            receiver = Bytes32(Address.from_text(trimmed_address).get_public_key())
        except ValidationError as exc:
            raise ValidationError(f"Invalid destination address: {exc}") from exc

        if isinstance(amount, str):
            if decimals is None:
                raise ValidationError("Decimals are required to convert a decimal amount")
            amount_value = parse_human_amount_to_base_units(amount, decimals)
        else:
            amount_value = int(amount)
        if amount_value <= 0:
            raise ValidationError("Amount must be greater than zero")
        ensure_within_intx(amount_value, "Amount")

        tx = MintFungibleTxBuilder(
            carbon_token_id, receiver, amount_value, sender,
            fee_options=fee_options, max_data=max_data, expiry=expiry,
        ).build()
        pipeline.log(
            "Prepared fungible mint tx",
            {
                "token_id": str(carbon_token_id),
                "destination_address": trimmed_address,
                "amount": str(amount_value),
                "max_data": str(max_data),
                "expiry": str(tx.expiry),
            },
        )
        submission = await pipeline.submit(tx)
    except Exception as exc:  # noqa: BLE001 - converted to a failure result
        return pipeline.fail(OperationResult, exc)
    return pipeline.succeed(_success(OperationResult, submission))


async def mint_nft(
    wallet: Optional[WalletConnection],
    *,
    carbon_token_id: int,
    carbon_series_id: int,
    rom_schema: VmStructSchema,
    metadata_values: Mapping[str, str],
    rom_hex: str = "",
    ram_schema: VmStructSchema | None = None,
    ram_values: Mapping[str, str] | None = None,
    fee_options: MintNftFeeOptions | None = None,
    max_data: int = 0,
    expiry: int | None = None,
    api: Any = None,
    confirmation: ConfirmationConfig | None = None,
    add_log: AddLog | None = None,
    sleep: Any = None,
) -> MintNftResult:
    """Mint one NFT of ``carbon_series_id`` to the connected wallet."""

    pipeline = _Pipeline("mint", wallet, api, confirmation, add_log, sleep)
    try:
        sender = pipeline.require_wallet()
        if rom_schema is None:
            raise ValidationError("romSchema is required")
        rom_bytes = parse_hex_bytes(rom_hex, "rom")
        rom_fields = build_metadata(rom_schema, metadata_values, NFT_ROM_RESERVED_NAMES)
        ram_fields = []
        if ram_schema is not None and ram_schema.fields:
            ram_fields = build_metadata(ram_schema, ram_values or {}, label="RAM field")
        pipeline.log(
            "Prepared metadata payload",
            {"rom_keys": ["rom"] + [f.name for f in rom_fields], "ram_keys": [f.name for f in ram_fields]},
        )

        phantasma_nft_id = random_phantasma_id()
        try:
            rom_payload = build_nft_rom(rom_schema, phantasma_nft_id, rom_bytes, rom_fields)
        except ValidationError as exc:
            raise ValidationError(f"Failed to serialize ROM metadata: {exc}") from exc
        ram_payload = build_nft_ram(ram_schema, ram_fields)

        try:
            tx = MintNftTxBuilder(
                carbon_token_id, carbon_series_id, sender, sender, rom_payload, ram_payload,
                fee_options=fee_options, max_data=max_data, expiry=expiry,
            ).build()
        except ValidationError as exc:
            raise ValidationError(f"Failed to build mint transaction: {exc}") from exc
        submission = await pipeline.submit(tx)
    except Exception as exc:  # noqa: BLE001 - converted to a failure result
        return pipeline.fail(MintNftResult, exc)

    addresses = None
    raw_result = _record_result(submission)
    if raw_result:
        try:
            addresses = [address.hex() for address in parse_mint_nft_result(carbon_token_id, raw_result)]
        except EncodingError:
            logger.warning("Could not parse minted NFT addresses from result %r", raw_result)
    return pipeline.succeed(
        _success(
            MintNftResult,
            submission,
            carbon_nft_addresses=addresses,
            phantasma_nft_id=str(phantasma_nft_id),
        )
    )


# Series -----------------------------------------------------------------


async def create_series(
    wallet: Optional[WalletConnection],
    *,
    carbon_token_id: int,
    series_schema: VmStructSchema,
    series_values: Mapping[str, str],
    rom_hex: str = "",
    fee_options: CreateSeriesFeeOptions | None = None,
    max_data: int = 0,
    expiry: int | None = None,
    api: Any = None,
    confirmation: ConfirmationConfig | None = None,
    add_log: AddLog | None = None,
    sleep: Any = None,
) -> CreateSeriesResult:
    """Create a new series under an NFT token."""

    pipeline = _Pipeline("series", wallet, api, confirmation, add_log, sleep)
    try:
        creator = pipeline.require_wallet()
        if carbon_token_id is None:
            raise ValidationError("carbonTokenId is required")
        if series_schema is None:
            raise ValidationError("seriesSchema is required")
        try:
            rom_bytes = parse_hex_bytes(rom_hex, "rom")
        except ValidationError as exc:
            raise ValidationError(f"Invalid ROM hex: {exc}") from exc
        fields = build_metadata(series_schema, series_values, SERIES_RESERVED_NAMES)
        try:
            series_info = build_series_info(
                series_schema, random_phantasma_id(), 0, 0, creator, fields, rom=rom_bytes
            )
        except ValidationError as exc:
            raise ValidationError(f"Failed to build SeriesInfo: {exc}") from exc
        pipeline.log("Prepared series info", {"token_id": str(carbon_token_id), "keys": [f.name for f in fields]})

        try:
            tx = CreateSeriesTxBuilder(
                carbon_token_id, series_info, creator,
                fee_options=fee_options, max_data=max_data, expiry=expiry,
            ).build()
        except ValidationError as exc:
            raise ValidationError(f"Failed to build series tx: {exc}") from exc
        submission = await pipeline.submit(tx)
    except Exception as exc:  # noqa: BLE001 - converted to a failure result
        return pipeline.fail(CreateSeriesResult, exc)

    series_id = None
    raw_result = _record_result(submission)
    if raw_result:
        try:
            series_id = parse_create_series_result(raw_result)
        except EncodingError:
            logger.warning("Could not parse series id from result %r", raw_result)
    return pipeline.succeed(_success(CreateSeriesResult, submission, series_id=series_id))


# Infuse -----------------------------------------------------------------


def selection_from_ids(carbon_token_id: int, instance_ids: Sequence[int]) -> Tuple[InfusionItem, ...]:
    return tuple(InfusionItem(carbon_token_id, instance_id) for instance_id in instance_ids)


async def infuse_nfts(
    wallet: Optional[WalletConnection],
    *,
    target_address: str,
    selection: Sequence[InfusionItem],
    fee_options: FeeOptions | None = None,
    max_data: int = 0,
    expiry: int | None = None,
    api: Any = None,
    confirmation: ConfirmationConfig | None = None,
    add_log: AddLog | None = None,
    sleep: Any = None,
) -> OperationResult:
    """Transfer the selected NFTs into the NFT at ``target_address`` (hex)."""

    pipeline = _Pipeline("infuse", wallet, api, confirmation, add_log, sleep)
    try:
        sender = pipeline.require_wallet()
        if not selection:
            raise ValidationError("Select at least one NFT to infuse")
        trimmed_target = (target_address or "").strip()
        if not trimmed_target:
            raise ValidationError("Target NFT address is required")
        try:
            target = Bytes32.from_hex(trimmed_target)
        except ValidationError as exc:
            raise ValidationError(f"Invalid target NFT address: {exc}") from exc

        builder = InfuseTxBuilder(
            target, selection, sender, fee_options=fee_options, max_data=max_data, expiry=expiry
        )
        pipeline.log(
            "Prepared infusion",
            {
                "target": target.hex(),
                "groups": [
                    {"token_id": str(g.carbon_token_id), "instance_ids": [str(i) for i in g.instance_ids]}
                    for g in builder.groups
                ],
            },
        )
        submission = await pipeline.submit(builder.build())
    except Exception as exc:  # noqa: BLE001 - converted to a failure result
        return pipeline.fail(OperationResult, exc)
    return pipeline.succeed(_success(OperationResult, submission))
