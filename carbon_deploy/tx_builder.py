"""Unsigned Carbon transaction assembly, one builder per operation.

Builders never touch the network.  Each one captures validated inputs at
construction time and returns a fresh :class:`~carbon_deploy.carbon.TxMsg`
from :meth:`TransactionBuilder.build`.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .carbon import (
    TOKEN_METHOD_TRANSFER_NON_FUNGIBLE,
    TOKEN_MODULE_ID,
    Bytes32,
    SeriesInfo,
    TokenInfo,
    TxMessage,
    TxMsg,
    TxMsgCall,
    TxMsgCallMulti,
    TxMsgMintFungible,
    TxMsgMintNonFungible,
    TxMsgTransferNonFungibleMulti,
    TxMsgTransferNonFungibleSingle,
    TxTypes,
    create_series_call,
    create_token_call,
    encode_token_call_args,
)
from .errors import ValidationError
from .fees import (
    DEFAULT_DEPLOY_MAX_DATA,
    CreateSeriesFeeOptions,
    CreateTokenFeeOptions,
    FeeOptions,
    MintNftFeeOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_MS = 60_000


def default_expiry(now_ms: int | None = None) -> int:
    """Expiry timestamp (ms) one minute after ``now_ms`` or the current time."""

    base = int(time.time() * 1000) if now_ms is None else now_ms
    return base + DEFAULT_EXPIRY_MS


class TransactionBuilder(ABC):
    """Shared envelope fields: gas payer, fees, max data and expiry."""

    fee_options_class: type[FeeOptions] = FeeOptions

    def __init__(
        self,
        gas_from: Bytes32,
        *,
        fee_options: FeeOptions | None = None,
        max_data: int = 0,
        expiry: int | None = None,
    ) -> None:
        if max_data < 0:
            raise ValidationError("Max data must be non-negative")
        self.gas_from = gas_from
        self.fee_options = fee_options if fee_options is not None else self.fee_options_class.from_env()
        self.max_data = max_data
        self.expiry = expiry if expiry is not None else default_expiry()

    def max_gas(self) -> int:
        return self.fee_options.calculate_max_gas()

    def _envelope(self, tx_type: TxTypes, msg: TxMessage, max_gas: int | None = None) -> TxMsg:
        tx = TxMsg(
            type=tx_type,
            expiry=self.expiry,
            max_gas=self.max_gas() if max_gas is None else max_gas,
            max_data=self.max_data,
            gas_from=self.gas_from,
            payload="",
            msg=msg,
        )
        logger.debug(
            "Built %s transaction",
            tx_type.name,
            extra={"max_gas": tx.max_gas, "max_data": tx.max_data, "expiry": tx.expiry},
        )
        return tx

    @abstractmethod
    def build(self) -> TxMsg:
        """Return a fresh unsigned transaction."""


class DeployTokenTxBuilder(TransactionBuilder):
    fee_options_class = CreateTokenFeeOptions

    def __init__(
        self,
        token_info: TokenInfo,
        owner: Bytes32,
        *,
        fee_options: CreateTokenFeeOptions | None = None,
        max_data: int = DEFAULT_DEPLOY_MAX_DATA,
        expiry: int | None = None,
    ) -> None:
        super().__init__(owner, fee_options=fee_options, max_data=max_data, expiry=expiry)
        self.token_info = token_info

    def max_gas(self) -> int:
        return self.fee_options.calculate_max_gas(self.token_info.symbol)

    def build(self) -> TxMsg:
        return self._envelope(TxTypes.Call, create_token_call(self.token_info))


class MintFungibleTxBuilder(TransactionBuilder):
    def __init__(
        self,
        token_id: int,
        to: Bytes32,
        amount: int,
        gas_from: Bytes32,
        *,
        fee_options: FeeOptions | None = None,
        max_data: int = 0,
        expiry: int | None = None,
    ) -> None:
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        super().__init__(gas_from, fee_options=fee_options, max_data=max_data, expiry=expiry)
        self.token_id = token_id
        self.to = to
        self.amount = amount

    def build(self) -> TxMsg:
        msg = TxMsgMintFungible(token_id=self.token_id, to=self.to, amount=self.amount)
        return self._envelope(TxTypes.MintFungible, msg)


class MintNftTxBuilder(TransactionBuilder):
    fee_options_class = MintNftFeeOptions

    def __init__(
        self,
        token_id: int,
        series_id: int,
        sender: Bytes32,
        receiver: Bytes32,
        rom: bytes,
        ram: bytes = b"",
        *,
        fee_options: MintNftFeeOptions | None = None,
        max_data: int = 0,
        expiry: int | None = None,
    ) -> None:
        super().__init__(sender, fee_options=fee_options, max_data=max_data, expiry=expiry)
        self.token_id = token_id
        self.series_id = series_id
        self.receiver = receiver
        self.rom = rom
        self.ram = ram

    def build(self) -> TxMsg:
        msg = TxMsgMintNonFungible(
            token_id=self.token_id,
            series_id=self.series_id,
            to=self.receiver,
            rom=self.rom,
            ram=self.ram,
        )
        return self._envelope(TxTypes.MintNonFungible, msg)


class CreateSeriesTxBuilder(TransactionBuilder):
    fee_options_class = CreateSeriesFeeOptions

    def __init__(
        self,
        token_id: int,
        series_info: SeriesInfo,
        creator: Bytes32,
        *,
        fee_options: CreateSeriesFeeOptions | None = None,
        max_data: int = 0,
        expiry: int | None = None,
    ) -> None:
        super().__init__(creator, fee_options=fee_options, max_data=max_data, expiry=expiry)
        self.token_id = token_id
        self.series_info = series_info

    def build(self) -> TxMsg:
        return self._envelope(TxTypes.Call, create_series_call(self.token_id, self.series_info))


# Infusion ---------------------------------------------------------------


@dataclass(frozen=True)
class InfusionItem:
    carbon_token_id: int
    instance_id: int


@dataclass(frozen=True)
class InfusionGroup:
    carbon_token_id: int
    instance_ids: Tuple[int, ...]


def group_infusion_selection(selection: Iterable[InfusionItem]) -> List[InfusionGroup]:
    """Group a flat selection by token id in first-seen order.

    Repeated instance ids within one token are kept once.
    """

    ordered: dict[int, list[int]] = {}
    for item in selection:
        ids = ordered.setdefault(item.carbon_token_id, [])
        if item.instance_id not in ids:
            ids.append(item.instance_id)
    return [InfusionGroup(token_id, tuple(ids)) for token_id, ids in ordered.items()]


class InfuseTxBuilder(TransactionBuilder):
    """Send selected NFTs into a target NFT address.

    One token and one instance use a single transfer, one token and several
    instances a multi-instance transfer, and several tokens one composite
    call with one transfer call per token.
    """

    def __init__(
        self,
        target: Bytes32,
        selection: Sequence[InfusionItem],
        sender: Bytes32,
        *,
        fee_options: FeeOptions | None = None,
        max_data: int = 0,
        expiry: int | None = None,
    ) -> None:
        super().__init__(sender, fee_options=fee_options, max_data=max_data, expiry=expiry)
        self.target = target
        self.groups = group_infusion_selection(selection)
        if not self.groups:
            raise ValidationError("Select at least one NFT to infuse")

    @property
    def instance_count(self) -> int:
        return sum(len(group.instance_ids) for group in self.groups)

    def max_gas(self) -> int:
        return self.fee_options.calculate_max_gas(self.instance_count)

    def _transfer_call(self, group: InfusionGroup) -> TxMsgCall:
        args = encode_token_call_args(self.target, self.gas_from, group.carbon_token_id, list(group.instance_ids))
        return TxMsgCall(TOKEN_MODULE_ID, TOKEN_METHOD_TRANSFER_NON_FUNGIBLE, args)

    def build(self) -> TxMsg:
        if len(self.groups) > 1:
            calls = tuple(self._transfer_call(group) for group in self.groups)
            return self._envelope(TxTypes.Call_Multi, TxMsgCallMulti(calls))

        group = self.groups[0]
        if len(group.instance_ids) == 1:
            msg: TxMessage = TxMsgTransferNonFungibleSingle(
                to=self.target, token_id=group.carbon_token_id, instance_id=group.instance_ids[0]
            )
            return self._envelope(TxTypes.TransferNonFungible_Single, msg)
        msg = TxMsgTransferNonFungibleMulti(
            to=self.target, token_id=group.carbon_token_id, instance_ids=group.instance_ids
        )
        return self._envelope(TxTypes.TransferNonFungible_Multi, msg)
