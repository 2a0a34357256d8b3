"""Carbon transaction value objects.

This module stands in for the transaction library: it maps validated domain
values to immutable message objects that serialize to bytes.  The pipeline in
:mod:`carbon_deploy.tx_builder` and :mod:`carbon_deploy.workflows` treats the
resulting :class:`TxMsg` as opaque and hands it to the wallet unchanged.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, List, Mapping, Sequence, Tuple, Union

import base58

from .binary import CarbonBinaryReader, CarbonBinaryWriter, EncodingError, serialize_vm_schema, serialize_vm_struct
from .errors import ValidationError
from .metadata import MetadataField
from .vm import TokenSchemas, VmStructSchema

SYMBOL_PATTERN = re.compile(r"^[A-Z]+$")
MAX_SYMBOL_LENGTH = 255

ADDRESS_KINDS = {"P": 1, "S": 2, "C": 3}
ADDRESS_BYTES = 34

TOKEN_MODULE_ID = 1
TOKEN_METHOD_CREATE_TOKEN = 0
TOKEN_METHOD_CREATE_SERIES = 1
TOKEN_METHOD_TRANSFER_NON_FUNGIBLE = 6

TOKEN_FLAG_NON_FUNGIBLE = 0x01


class TxTypes(IntEnum):
    Call = 0
    Call_Multi = 1
    Trade = 2
    TransferFungible = 3
    TransferFungible_GasPayer = 4
    TransferNonFungible_Single = 5
    TransferNonFungible_Single_GasPayer = 6
    TransferNonFungible_Multi = 7
    TransferNonFungible_Multi_GasPayer = 8
    MintFungible = 9
    BurnFungible = 10
    MintNonFungible = 11
    BurnNonFungible = 12


@dataclass(frozen=True)
class Bytes32:
    """Exactly 32 bytes; used for public keys and NFT addresses."""

    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != 32:
            raise ValidationError(f"Expected 32 bytes, got {len(self.data)}")

    @classmethod
    def from_hex(cls, text: str) -> "Bytes32":
        normalized = text.strip()
        if normalized[:2] in ("0x", "0X"):
            normalized = normalized[2:]
        try:
            raw = bytes.fromhex(normalized)
        except ValueError as exc:
            raise ValidationError(f"'{text}' is not valid hex") from exc
        return cls(raw)

    def hex(self) -> str:
        return self.data.hex()


@dataclass(frozen=True)
class Address:
    """Phantasma address text: kind prefix plus base58 of kind, flag and key."""

    kind: int
    public_key: bytes
    text: str

    @classmethod
    def from_text(cls, text: str) -> "Address":
        trimmed = (text or "").strip()
        if len(trimmed) < 2:
            raise ValidationError("Address text is too short")
        prefix = trimmed[0]
        kind = ADDRESS_KINDS.get(prefix)
        if kind is None:
            raise ValidationError(f"Unknown address prefix '{prefix}'")
        try:
            decoded = base58.b58decode(trimmed[1:])
        except ValueError as exc:
            raise ValidationError(f"Address is not valid base58: {exc}") from exc
        if len(decoded) != ADDRESS_BYTES:
            raise ValidationError(f"Address must decode to {ADDRESS_BYTES} bytes, got {len(decoded)}")
        if decoded[0] != kind:
            raise ValidationError("Address kind byte does not match its prefix")
        return cls(kind=kind, public_key=decoded[2:], text=trimmed)

    @classmethod
    def from_public_key(cls, public_key: bytes, prefix: str = "P") -> "Address":
        if len(public_key) != 32:
            raise ValidationError("Public key must be 32 bytes")
        kind = ADDRESS_KINDS[prefix]
        encoded = base58.b58encode(bytes([kind, 0]) + public_key).decode("ascii")
        return cls(kind=kind, public_key=bytes(public_key), text=prefix + encoded)

    def get_public_key(self) -> bytes:
        return self.public_key


def random_phantasma_id() -> int:
    """Random positive 255-bit identifier for new NFTs and series."""

    return secrets.randbits(255) or 1


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    max_supply: int
    is_nft: bool
    decimals: int
    owner: Bytes32
    metadata: bytes
    schemas: bytes = b""

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_intx(self.max_supply)
        writer.write_u8(TOKEN_FLAG_NON_FUNGIBLE if self.is_nft else 0)
        writer.write_u8(self.decimals)
        writer.write_fixed(self.owner.data, 32)
        writer.write_small_string(self.symbol)
        writer.write_bytes(self.metadata)
        writer.write_bytes(self.schemas)


def serialize_token_metadata(metadata: Mapping[str, str] | None) -> bytes:
    """Key/value token metadata in insertion order; ``b""`` when empty."""

    if not metadata:
        return b""
    writer = CarbonBinaryWriter()
    writer.write_u32(len(metadata))
    for key, value in metadata.items():
        writer.write_small_string(str(key))
        writer.write_string(str(value))
    return writer.to_bytes()


def serialize_token_schemas(schemas: TokenSchemas) -> bytes:
    writer = CarbonBinaryWriter()
    for schema in (schemas.series_metadata, schemas.rom, schemas.ram):
        writer.write_raw(serialize_vm_schema(schema))
    return writer.to_bytes()


def build_token_info(
    symbol: str,
    max_supply: int,
    is_nft: bool,
    decimals: int,
    owner: Bytes32,
    metadata: Mapping[str, str] | None,
    schemas: TokenSchemas | None = None,
) -> TokenInfo:
    if not SYMBOL_PATTERN.match(symbol) or len(symbol) > MAX_SYMBOL_LENGTH:
        raise ValidationError(f"Token symbol '{symbol}' must contain only uppercase letters")
    if not 0 <= decimals <= 255:
        raise ValidationError("Decimals must be between 0 and 255")
    if is_nft and schemas is None:
        raise ValidationError("NFT tokens require token schemas")
    return TokenInfo(
        symbol=symbol,
        max_supply=max_supply,
        is_nft=is_nft,
        decimals=decimals,
        owner=owner,
        metadata=serialize_token_metadata(metadata),
        schemas=serialize_token_schemas(schemas) if schemas is not None else b"",
    )


@dataclass(frozen=True)
class SeriesInfo:
    phantasma_series_id: int
    max_mint: int
    max_supply: int
    owner: Bytes32
    metadata: bytes

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_int256(self.phantasma_series_id)
        writer.write_u32(self.max_mint)
        writer.write_u32(self.max_supply)
        writer.write_fixed(self.owner.data, 32)
        writer.write_bytes(self.metadata)


def _values_from_fields(fields: Sequence[MetadataField]) -> dict[str, Any]:
    return {f.name: f.value for f in fields}


def build_series_info(
    schema: VmStructSchema,
    phantasma_series_id: int,
    max_mint: int,
    max_supply: int,
    owner: Bytes32,
    fields: Sequence[MetadataField],
    rom: bytes = b"",
) -> SeriesInfo:
    values = {"_i": phantasma_series_id, "mode": 0, "rom": rom}
    values.update(_values_from_fields(fields))
    return SeriesInfo(
        phantasma_series_id=phantasma_series_id,
        max_mint=max_mint,
        max_supply=max_supply,
        owner=owner,
        metadata=serialize_vm_struct(schema, values),
    )


def build_nft_rom(
    schema: VmStructSchema, phantasma_nft_id: int, rom: bytes, fields: Sequence[MetadataField]
) -> bytes:
    values: dict[str, Any] = {"_i": phantasma_nft_id, "id": phantasma_nft_id, "rom": rom}
    values.update(_values_from_fields(fields))
    return serialize_vm_struct(schema, values)


def build_nft_ram(schema: VmStructSchema | None, fields: Sequence[MetadataField]) -> bytes:
    if schema is None or not schema.fields:
        return b""
    return serialize_vm_struct(schema, _values_from_fields(fields))


# Message bodies ---------------------------------------------------------


@dataclass(frozen=True)
class TxMsgCall:
    module_id: int
    method_id: int
    args: bytes

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_u32(self.module_id)
        writer.write_u32(self.method_id)
        writer.write_bytes(self.args)


@dataclass(frozen=True)
class TxMsgCallMulti:
    calls: Tuple[TxMsgCall, ...]

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_u32(len(self.calls))
        for call in self.calls:
            call.serialize(writer)


@dataclass(frozen=True)
class TxMsgMintFungible:
    token_id: int
    to: Bytes32
    amount: int

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_u64(self.token_id)
        writer.write_fixed(self.to.data, 32)
        writer.write_intx(self.amount)


@dataclass(frozen=True)
class TxMsgMintNonFungible:
    token_id: int
    series_id: int
    to: Bytes32
    rom: bytes
    ram: bytes

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_u64(self.token_id)
        writer.write_u32(self.series_id)
        writer.write_fixed(self.to.data, 32)
        writer.write_bytes(self.rom)
        writer.write_bytes(self.ram)


@dataclass(frozen=True)
class TxMsgTransferNonFungibleSingle:
    to: Bytes32
    token_id: int
    instance_id: int

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_fixed(self.to.data, 32)
        writer.write_u64(self.token_id)
        writer.write_u64(self.instance_id)


@dataclass(frozen=True)
class TxMsgTransferNonFungibleMulti:
    to: Bytes32
    token_id: int
    instance_ids: Tuple[int, ...]

    def serialize(self, writer: CarbonBinaryWriter) -> None:
        writer.write_fixed(self.to.data, 32)
        writer.write_u64(self.token_id)
        writer.write_u64_array(self.instance_ids)


TxMessage = Union[
    TxMsgCall,
    TxMsgCallMulti,
    TxMsgMintFungible,
    TxMsgMintNonFungible,
    TxMsgTransferNonFungibleSingle,
    TxMsgTransferNonFungibleMulti,
]


@dataclass(frozen=True)
class TxMsg:
    """Unsigned transaction envelope handed to the wallet for signing."""

    type: TxTypes
    expiry: int
    max_gas: int
    max_data: int
    gas_from: Bytes32
    payload: str
    msg: TxMessage

    def serialize(self) -> bytes:
        writer = CarbonBinaryWriter()
        writer.write_u8(int(self.type))
        writer.write_i64(self.expiry)
        writer.write_u64(self.max_gas)
        writer.write_u64(self.max_data)
        writer.write_fixed(self.gas_from.data, 32)
        writer.write_small_string(self.payload)
        self.msg.serialize(writer)
        return writer.to_bytes()

    def to_hex(self) -> str:
        return self.serialize().hex()


def encode_token_call_args(*parts: Any) -> bytes:
    """Helper for call argument blocks made of ints, keys and id lists."""

    writer = CarbonBinaryWriter()
    for part in parts:
        if isinstance(part, Bytes32):
            writer.write_fixed(part.data, 32)
        elif isinstance(part, (list, tuple)):
            writer.write_u64_array(part)
        elif isinstance(part, (bytes, bytearray)):
            writer.write_bytes(bytes(part))
        elif isinstance(part, int) and not isinstance(part, bool):
            writer.write_u64(part)
        else:
            raise EncodingError(f"Unsupported call argument {part!r}")
    return writer.to_bytes()


def create_token_call(token_info: TokenInfo) -> TxMsgCall:
    writer = CarbonBinaryWriter()
    token_info.serialize(writer)
    return TxMsgCall(TOKEN_MODULE_ID, TOKEN_METHOD_CREATE_TOKEN, writer.to_bytes())


def create_series_call(token_id: int, series_info: SeriesInfo) -> TxMsgCall:
    writer = CarbonBinaryWriter()
    writer.write_u64(token_id)
    series_info.serialize(writer)
    return TxMsgCall(TOKEN_MODULE_ID, TOKEN_METHOD_CREATE_SERIES, writer.to_bytes())


# Result parsing ---------------------------------------------------------


def _result_reader(result_hex: str) -> CarbonBinaryReader:
    text = (result_hex or "").strip()
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    try:
        return CarbonBinaryReader(bytes.fromhex(text))
    except ValueError as exc:
        raise EncodingError(f"Result is not valid hex: {exc}") from exc


def parse_create_token_result(result_hex: str) -> int:
    return _result_reader(result_hex).read_u64()


def parse_create_series_result(result_hex: str) -> int:
    return _result_reader(result_hex).read_u32()


def nft_address(token_id: int, instance_id: int) -> Bytes32:
    writer = CarbonBinaryWriter()
    writer.write_u64(token_id)
    writer.write_u64(instance_id)
    writer.write_raw(bytes(16))
    return Bytes32(writer.to_bytes())


def parse_mint_nft_result(token_id: int, result_hex: str) -> List[Bytes32]:
    instance_ids = _result_reader(result_hex).read_u64_array()
    return [nft_address(token_id, instance_id) for instance_id in instance_ids]
