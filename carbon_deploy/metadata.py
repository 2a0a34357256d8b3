"""Schema-driven typing of raw metadata strings.

Callers collect metadata as plain strings keyed by field name.  The helpers
here walk a :class:`~carbon_deploy.vm.VmStructSchema` in order and turn each
string into the Python value its VM type requires, failing on the first field
that is missing or malformed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Collection, List, Mapping, Union

from .errors import MetadataError
from .vm import FIXED_BYTES_LENGTHS, INTEGER_WIDTHS, VmStructSchema, VmType

logger = logging.getLogger(__name__)

HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")
INT_PATTERN = re.compile(r"^-?[0-9]+$")

VmMetadataValue = Union[str, int, bytes]

_MACHINE_INTS = (VmType.Int8, VmType.Int16, VmType.Int32)
_BIG_INTS = (VmType.Int64, VmType.Int256)
_BYTE_TYPES = (VmType.Bytes, VmType.Bytes16, VmType.Bytes32, VmType.Bytes64)


@dataclass(frozen=True)
class MetadataField:
    name: str
    vm_type: VmType
    value: VmMetadataValue


def _strip_hex_prefix(text: str) -> str:
    if text[:2] in ("0x", "0X"):
        return text[2:]
    return text


def parse_hex_bytes(raw: str, field_name: str) -> bytes:
    """Decode optional-``0x`` hex text; blank or bare ``0x`` yields ``b""``."""

    normalized = _strip_hex_prefix((raw or "").strip())
    if not normalized:
        return b""
    if not HEX_PATTERN.match(normalized):
        raise MetadataError(f"Field '{field_name}' must be a hex string")
    if len(normalized) % 2 != 0:
        raise MetadataError(f"Field '{field_name}' hex length must be even")
    return bytes.fromhex(normalized)


def _parse_signed(value: str, field_name: str, vm_type: VmType) -> int:
    if not INT_PATTERN.match(value):
        raise MetadataError(f"Field '{field_name}' must be a signed integer")
    number = int(value)
    bits = INTEGER_WIDTHS[vm_type]
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= number <= high:
        raise MetadataError(f"Field '{field_name}' is out of range for {vm_type.name}")
    return number


def parse_vm_metadata_value(vm_type: VmType | int | None, value: str, field_name: str) -> VmMetadataValue:
    """Convert one trimmed string according to ``vm_type``.

    Unrecognised types pass the raw string through unchanged.
    """

    try:
        tag = VmType(vm_type) if vm_type is not None else None
    except ValueError:
        tag = None

    if tag is VmType.String:
        if not value.strip():
            raise MetadataError(f"Field '{field_name}' must not be blank")
        return value
    if tag in _MACHINE_INTS or tag in _BIG_INTS:
        return _parse_signed(value, field_name, tag)
    if tag in _BYTE_TYPES:
        payload = parse_hex_bytes(value, field_name)
        expected = FIXED_BYTES_LENGTHS.get(tag)
        if expected is not None and payload and len(payload) != expected:
            raise MetadataError(
                f"Field '{field_name}' must be exactly {expected} bytes for {tag.name}"
            )
        return payload
    return value


def is_hex_value_valid(value: str) -> bool:
    trimmed = (value or "").strip()
    if not trimmed:
        return False
    normalized = _strip_hex_prefix(trimmed)
    if not normalized:
        return True
    return bool(HEX_PATTERN.match(normalized)) and len(normalized) % 2 == 0


def is_vm_value_valid(vm_type: VmType | int | None, raw: str) -> bool:
    """Non-raising check used to flag fields before submission."""

    if vm_type is None:
        return True
    try:
        tag = VmType(vm_type)
    except ValueError:
        return True
    if tag is VmType.String:
        return bool(raw.strip())
    if tag in _MACHINE_INTS or tag in _BIG_INTS:
        return bool(INT_PATTERN.match(raw))
    if tag in _BYTE_TYPES:
        return is_hex_value_valid(raw)
    return True


def build_metadata(
    schema: VmStructSchema,
    values: Mapping[str, str],
    reserved: Collection[str] = (),
    *,
    label: str = "Metadata field",
) -> List[MetadataField]:
    """Return typed fields in schema order, skipping ``reserved`` names.

    Raises :class:`MetadataError` on the first blank or invalid field.
    """

    fields: List[MetadataField] = []
    for entry in schema.fields:
        name = entry.name
        if not name or name in reserved:
            continue
        trimmed = str(values.get(name) or "").strip()
        if not trimmed:
            raise MetadataError(f"{label} '{name}' is required")
        parsed = parse_vm_metadata_value(entry.type, trimmed, name)
        fields.append(MetadataField(name=name, vm_type=entry.type, value=parsed))

    extra = set(values) - set(schema.names) - set(reserved)
    if extra:
        logger.debug("Ignoring metadata keys outside the schema: %s", sorted(extra))
    return fields
