from __future__ import annotations

import json

import pytest

from carbon_deploy.errors import MetadataError, SchemaError
from carbon_deploy.metadata import (
    build_metadata,
    is_vm_value_valid,
    parse_hex_bytes,
    parse_vm_metadata_value,
)
from carbon_deploy.vm import (
    NFT_ROM_RESERVED_NAMES,
    TokenSchemas,
    VmNamedType,
    VmStructSchema,
    VmType,
    default_nft_schemas_json,
    format_vm_type_label,
)


def _schema(*fields: tuple[str, VmType]) -> VmStructSchema:
    return VmStructSchema([VmNamedType(name, vm_type) for name, vm_type in fields])


def test_parse_hex_bytes_accepts_prefix_and_empty() -> None:
    assert parse_hex_bytes("0xABcd", "rom") == b"\xab\xcd"
    assert parse_hex_bytes("0x", "rom") == b""
    assert parse_hex_bytes("", "rom") == b""


def test_parse_hex_bytes_rejects_bad_input() -> None:
    with pytest.raises(MetadataError, match="Field 'rom' must be a hex string"):
        parse_hex_bytes("zz", "rom")
    with pytest.raises(MetadataError, match="hex length must be even"):
        parse_hex_bytes("abc", "rom")


def test_type_directed_parsing() -> None:
    assert parse_vm_metadata_value(VmType.String, "Hello", "name") == "Hello"
    assert parse_vm_metadata_value(VmType.Int32, "-12", "royalties") == -12
    assert parse_vm_metadata_value(VmType.Int256, str(2**200), "big") == 2**200
    assert parse_vm_metadata_value(VmType.Bytes32, "0x" + "11" * 32, "key") == b"\x11" * 32
    assert parse_vm_metadata_value(VmType.Struct, "raw text", "blob") == "raw text"
    assert parse_vm_metadata_value(None, "anything", "x") == "anything"


def test_integer_range_is_checked() -> None:
    assert parse_vm_metadata_value(VmType.Int8, "127", "level") == 127
    with pytest.raises(MetadataError, match="out of range for Int8"):
        parse_vm_metadata_value(VmType.Int8, "128", "level")
    with pytest.raises(MetadataError, match="must be a signed integer"):
        parse_vm_metadata_value(VmType.Int64, "1.5", "level")


def test_fixed_bytes_length_is_checked() -> None:
    with pytest.raises(MetadataError, match="exactly 16 bytes"):
        parse_vm_metadata_value(VmType.Bytes16, "abcd", "salt")


def test_build_metadata_follows_schema_order_and_skips_reserved() -> None:
    schema = _schema(
        ("_i", VmType.Int256),
        ("rom", VmType.Bytes),
        ("name", VmType.String),
        ("royalties", VmType.Int32),
    )
    values = {"royalties": "5", "name": " Sword ", "unused": "x"}

    fields = build_metadata(schema, values, NFT_ROM_RESERVED_NAMES)

    assert [f.name for f in fields] == ["name", "royalties"]
    assert fields[0].value == "Sword"
    assert fields[1].value == 5
    assert fields[1].vm_type is VmType.Int32


def test_build_metadata_fails_on_first_missing_field() -> None:
    schema = _schema(("name", VmType.String), ("infoURL", VmType.String))
    with pytest.raises(MetadataError, match="Metadata field 'name' is required"):
        build_metadata(schema, {"infoURL": "https://example.org"})
    with pytest.raises(MetadataError, match="RAM field 'infoURL' is required"):
        build_metadata(schema, {"name": "x"}, label="RAM field")


def test_is_vm_value_valid() -> None:
    assert is_vm_value_valid(VmType.Bytes, "0x")
    assert not is_vm_value_valid(VmType.Bytes, "0xabc")
    assert not is_vm_value_valid(VmType.String, "   ")
    assert is_vm_value_valid(VmType.Int16, "-3")


def test_token_schemas_add_default_fields() -> None:
    schemas = TokenSchemas.from_json(default_nft_schemas_json())

    assert schemas.series_metadata.names == ["_i", "mode", "rom"]
    assert schemas.rom.names[:2] == ["_i", "rom"]
    assert "royalties" in schemas.rom.names
    assert schemas.rom.get("royalties").type is VmType.Int32
    assert schemas.ram.fields == []


def test_token_schemas_reject_bad_definitions() -> None:
    with pytest.raises(SchemaError, match="required for NFTs"):
        TokenSchemas.from_json("  ")
    with pytest.raises(SchemaError, match="Unknown VM type 'Float'"):
        TokenSchemas.from_json(json.dumps({"rom": [{"name": "x", "type": "Float"}]}))
    with pytest.raises(SchemaError, match="Duplicate field 'x' in rom"):
        TokenSchemas.from_json(
            json.dumps({"rom": [{"name": "x", "type": "String"}, {"name": "x", "type": "Int8"}]})
        )
    with pytest.raises(SchemaError, match="both seriesMetadata and rom: x"):
        TokenSchemas.from_json(
            json.dumps(
                {
                    "seriesMetadata": [{"name": "x", "type": "String"}],
                    "rom": [{"name": "x", "type": "String"}],
                }
            )
        )


def test_vm_type_labels() -> None:
    assert format_vm_type_label(24) == "String"
    assert format_vm_type_label(VmType.Array_Int8) == "Array_Int8"
    assert format_vm_type_label(99) == "99"
