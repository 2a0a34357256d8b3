"""VM type tags and struct schemas describing Carbon token metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, List, Mapping, Sequence

from .errors import SchemaError


class VmType(IntEnum):
    """Encoding tag of a metadata field.  Array variants set the low bit."""

    Dynamic = 0
    Array = 1
    Bytes = 2
    Struct = 4
    Int8 = 8
    Int16 = 10
    Int32 = 12
    Int64 = 14
    Int256 = 16
    Bytes16 = 18
    Bytes32 = 20
    Bytes64 = 22
    String = 24
    Array_Dynamic = 27
    Array_Bytes = 3
    Array_Struct = 5
    Array_Int8 = 9
    Array_Int16 = 11
    Array_Int32 = 13
    Array_Int64 = 15
    Array_Int256 = 17
    Array_Bytes16 = 19
    Array_Bytes32 = 21
    Array_Bytes64 = 23
    Array_String = 25


INTEGER_WIDTHS = {VmType.Int8: 8, VmType.Int16: 16, VmType.Int32: 32, VmType.Int64: 64, VmType.Int256: 256}
FIXED_BYTES_LENGTHS = {VmType.Bytes16: 16, VmType.Bytes32: 32, VmType.Bytes64: 64}


def vm_type_from_name(name: str) -> VmType:
    try:
        return VmType[name.strip()]
    except KeyError as exc:
        raise SchemaError(f"Unknown VM type '{name}'") from exc


def format_vm_type_label(value: int | VmType) -> str:
    """Return the enum name for ``value`` or its numeric text when unknown."""

    try:
        return VmType(int(value)).name
    except ValueError:
        return str(value)


@dataclass(frozen=True)
class VmNamedType:
    name: str
    type: VmType


@dataclass
class VmStructSchema:
    """Ordered list of named, typed fields."""

    fields: List[VmNamedType] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> VmNamedType | None:
        for entry in self.fields:
            if entry.name == name:
                return entry
        return None

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]], *, where: str = "schema") -> "VmStructSchema":
        fields: List[VmNamedType] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise SchemaError(f"{where}[{index}] must be an object with 'name' and 'type'")
            name = str(entry.get("name") or "").strip()
            if not name:
                raise SchemaError(f"{where}[{index}] is missing a field name")
            if name in seen:
                raise SchemaError(f"Duplicate field '{name}' in {where}")
            seen.add(name)
            raw_type = entry.get("type")
            if isinstance(raw_type, int) and not isinstance(raw_type, bool):
                try:
                    vm_type = VmType(raw_type)
                except ValueError as exc:
                    raise SchemaError(f"Unknown VM type {raw_type} for field '{name}'") from exc
            else:
                vm_type = vm_type_from_name(str(raw_type or ""))
            fields.append(VmNamedType(name=name, type=vm_type))
        return cls(fields=fields)

    def to_entries(self) -> list[dict[str, str]]:
        return [{"name": f.name, "type": f.type.name} for f in self.fields]


STANDARD_METADATA_FIELDS: tuple[VmNamedType, ...] = (
    VmNamedType("name", VmType.String),
    VmNamedType("description", VmType.String),
    VmNamedType("imageURL", VmType.String),
    VmNamedType("infoURL", VmType.String),
    VmNamedType("royalties", VmType.Int32),
)

# Fields every NFT ROM and every series struct carry regardless of the user schema.
NFT_DEFAULT_METADATA_FIELDS: tuple[VmNamedType, ...] = (
    VmNamedType("_i", VmType.Int256),
    VmNamedType("rom", VmType.Bytes),
)
SERIES_DEFAULT_METADATA_FIELDS: tuple[VmNamedType, ...] = (
    VmNamedType("_i", VmType.Int256),
    VmNamedType("mode", VmType.Int8),
    VmNamedType("rom", VmType.Bytes),
)

NFT_ROM_RESERVED_NAMES = frozenset({"_i", "rom", "id"})
SERIES_RESERVED_NAMES = frozenset({"_i", "mode", "rom"})

TOKEN_METADATA_RESERVED_KEYS = frozenset({"name", "icon", "url", "description"})


def _with_defaults(schema: VmStructSchema, defaults: Sequence[VmNamedType]) -> VmStructSchema:
    present = set(schema.names)
    prefix = [d for d in defaults if d.name not in present]
    return VmStructSchema(fields=prefix + list(schema.fields))


@dataclass
class TokenSchemas:
    """The three schemas attached to an NFT token at deployment time."""

    series_metadata: VmStructSchema
    rom: VmStructSchema
    ram: VmStructSchema

    @classmethod
    def from_json(cls, raw: str) -> "TokenSchemas":
        """Parse ``{"seriesMetadata": [...], "rom": [...], "ram": [...]}``."""

        if not raw or not raw.strip():
            raise SchemaError("Token schemas JSON is required for NFTs")
        try:
            loaded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Invalid token schemas JSON: {exc.msg}") from exc
        if not isinstance(loaded, dict):
            raise SchemaError("Token schemas JSON must be an object")

        sections = {}
        for key in ("seriesMetadata", "rom", "ram"):
            entries = loaded.get(key, [])
            if entries is None:
                entries = []
            if not isinstance(entries, list):
                raise SchemaError(f"'{key}' must be a list of fields")
            sections[key] = VmStructSchema.from_entries(entries, where=key)

        series = _with_defaults(sections["seriesMetadata"], SERIES_DEFAULT_METADATA_FIELDS)
        rom = _with_defaults(sections["rom"], NFT_DEFAULT_METADATA_FIELDS)
        ram = sections["ram"]

        overlap = (set(series.names) & set(rom.names)) - {d.name for d in SERIES_DEFAULT_METADATA_FIELDS}
        if overlap:
            raise SchemaError(
                "Fields defined in both seriesMetadata and rom: " + ", ".join(sorted(overlap))
            )
        return cls(series_metadata=series, rom=rom, ram=ram)

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            "seriesMetadata": self.series_metadata.to_entries(),
            "rom": self.rom.to_entries(),
            "ram": self.ram.to_entries(),
        }


def default_nft_schemas_json() -> str:
    """JSON used when a deployer does not customise the NFT schemas."""

    payload = {
        "seriesMetadata": [],
        "rom": [{"name": f.name, "type": f.type.name} for f in STANDARD_METADATA_FIELDS],
        "ram": [],
    }
    return json.dumps(payload, indent=2)
