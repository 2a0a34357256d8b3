"""Little-endian binary writer and reader for Carbon payloads."""

from __future__ import annotations

import struct
from typing import Any, Iterable, Mapping

from .errors import ValidationError
from .vm import FIXED_BYTES_LENGTHS, VmStructSchema, VmType


class EncodingError(ValidationError):
    """Raised when a value cannot be represented in the binary layout."""


_INT_FORMATS = {VmType.Int8: "<b", VmType.Int16: "<h", VmType.Int32: "<i", VmType.Int64: "<q"}


class CarbonBinaryWriter:
    """Append-only buffer with fixed-width little-endian primitives."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def write_packed(self, fmt: str, value: int) -> "CarbonBinaryWriter":
        try:
            self._buffer += struct.pack(fmt, value)
        except struct.error as exc:
            raise EncodingError(f"Value {value} does not fit format {fmt}: {exc}") from exc
        return self

    def write_u8(self, value: int) -> "CarbonBinaryWriter":
        return self.write_packed("<B", value)

    def write_u32(self, value: int) -> "CarbonBinaryWriter":
        return self.write_packed("<I", value)

    def write_u64(self, value: int) -> "CarbonBinaryWriter":
        return self.write_packed("<Q", value)

    def write_i64(self, value: int) -> "CarbonBinaryWriter":
        return self.write_packed("<q", value)

    def write_raw(self, data: bytes) -> "CarbonBinaryWriter":
        self._buffer += bytes(data)
        return self

    def write_bytes(self, data: bytes) -> "CarbonBinaryWriter":
        """Length-prefixed (u32) byte string."""

        self.write_u32(len(data))
        return self.write_raw(data)

    def write_fixed(self, data: bytes, length: int) -> "CarbonBinaryWriter":
        if len(data) != length:
            raise EncodingError(f"Expected {length} bytes, got {len(data)}")
        return self.write_raw(data)

    def write_small_string(self, text: str) -> "CarbonBinaryWriter":
        encoded = text.encode("utf-8")
        if len(encoded) > 255:
            raise EncodingError(f"String '{text[:16]}...' exceeds 255 bytes")
        self.write_u8(len(encoded))
        return self.write_raw(encoded)

    def write_string(self, text: str) -> "CarbonBinaryWriter":
        return self.write_bytes(text.encode("utf-8"))

    def write_int256(self, value: int) -> "CarbonBinaryWriter":
        try:
            return self.write_raw(value.to_bytes(32, "little", signed=True))
        except OverflowError as exc:
            raise EncodingError(f"Value {value} does not fit in 256 bits") from exc

    def write_intx(self, value: int) -> "CarbonBinaryWriter":
        """Variable-width signed integer: u8 length then two's complement bytes."""

        length = max(1, (value.bit_length() + 8) // 8)
        if length > 32:
            raise EncodingError(f"Value {value} exceeds the 256-bit integer range")
        self.write_u8(length)
        return self.write_raw(value.to_bytes(length, "little", signed=True))

    def write_u64_array(self, values: Iterable[int]) -> "CarbonBinaryWriter":
        items = list(values)
        self.write_u32(len(items))
        for item in items:
            self.write_u64(item)
        return self

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


class CarbonBinaryReader:
    """Cursor over a byte string mirroring :class:`CarbonBinaryWriter`."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def _take(self, size: int) -> bytes:
        if size > self.remaining:
            raise EncodingError(f"Unexpected end of data: need {size} bytes, have {self.remaining}")
        chunk = self._data[self._offset : self._offset + size]
        self._offset += size
        return chunk

    def read_u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def read_u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def read_u64_array(self) -> list[int]:
        count = self.read_u32()
        return [self.read_u64() for _ in range(count)]


def write_vm_value(writer: CarbonBinaryWriter, vm_type: VmType, value: Any, name: str = "") -> None:
    """Serialize one typed metadata value."""

    label = f"field '{name}'" if name else "value"
    if vm_type is VmType.String:
        if not isinstance(value, str):
            raise EncodingError(f"Expected a string for {label}")
        writer.write_string(value)
    elif vm_type in _INT_FORMATS:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"Expected an integer for {label}")
        try:
            writer.write_packed(_INT_FORMATS[vm_type], value)
        except EncodingError as exc:
            raise EncodingError(f"{label} is out of range for {vm_type.name}") from exc
    elif vm_type is VmType.Int256:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"Expected an integer for {label}")
        writer.write_int256(value)
    elif vm_type is VmType.Bytes:
        if not isinstance(value, (bytes, bytearray)):
            raise EncodingError(f"Expected bytes for {label}")
        writer.write_bytes(bytes(value))
    elif vm_type in FIXED_BYTES_LENGTHS:
        if not isinstance(value, (bytes, bytearray)):
            raise EncodingError(f"Expected bytes for {label}")
        writer.write_fixed(bytes(value), FIXED_BYTES_LENGTHS[vm_type])
    else:
        # Untyped values travel as strings.
        writer.write_string(str(value))


def serialize_vm_struct(schema: VmStructSchema, values: Mapping[str, Any]) -> bytes:
    """Write every schema field from ``values`` in schema order.

    Missing fields raise :class:`EncodingError` naming the field.
    """

    writer = CarbonBinaryWriter()
    writer.write_u32(len(schema.fields))
    for entry in schema.fields:
        if entry.name not in values:
            raise EncodingError(f"Missing value for schema field '{entry.name}'")
        writer.write_small_string(entry.name)
        writer.write_u8(int(entry.type))
        write_vm_value(writer, entry.type, values[entry.name], entry.name)
    return writer.to_bytes()


def serialize_vm_schema(schema: VmStructSchema) -> bytes:
    writer = CarbonBinaryWriter()
    writer.write_u32(len(schema.fields))
    for entry in schema.fields:
        writer.write_small_string(entry.name)
        writer.write_u8(int(entry.type))
    return writer.to_bytes()
