"""
BCS Codec

Minimal Binary Canonical Serialization support for simulated Move calls:
- ULEB128 lengths
- a single-command programmable TransactionKind (shared object and pure
  address inputs, struct type arguments)
- decoding of u64 and vector<u64> return values
"""

import struct
from typing import List, Sequence, Tuple, Union

from marketcache.services.sui.errors import DecodeFailure

ADDRESS_LENGTH = 32

# TransactionKind / CallArg / ObjectArg / Command / Argument variant tags
_KIND_PROGRAMMABLE = 0
_CALL_ARG_PURE = 0
_CALL_ARG_OBJECT = 1
_OBJECT_ARG_SHARED = 1
_COMMAND_MOVE_CALL = 0
_ARGUMENT_INPUT = 1
_TYPE_TAG_STRUCT = 7


def encode_uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError("ULEB128 cannot encode negative values")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_uleb128(data: Sequence[int], offset: int = 0) -> Tuple[int, int]:
    """Decode a ULEB128 integer, returning (value, next_offset)."""
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise DecodeFailure("Truncated ULEB128 length prefix")
        byte = data[offset]
        if not isinstance(byte, int) or not 0 <= byte <= 0xFF:
            raise DecodeFailure(f"Invalid byte in ULEB128 prefix: {byte!r}")
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7


def normalize_address(address: str) -> str:
    """Return a 0x-prefixed, 64 hex digit, lower-case address."""
    value = address.lower()
    if value.startswith("0x"):
        value = value[2:]
    if not value or len(value) > ADDRESS_LENGTH * 2:
        raise ValueError(f"Invalid Sui address: {address}")
    int(value, 16)
    return "0x" + value.rjust(ADDRESS_LENGTH * 2, "0")


def encode_address(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def encode_str(value: str) -> bytes:
    raw = value.encode("utf-8")
    return encode_uleb128(len(raw)) + raw


def encode_u16(value: int) -> bytes:
    return struct.pack("<H", value)


def encode_u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def encode_struct_tag(type_tag: str) -> bytes:
    """Encode a non-generic struct type such as ``0x2::sui::SUI``."""
    parts = type_tag.split("::")
    if len(parts) != 3 or "<" in type_tag:
        raise ValueError(f"Unsupported type argument: {type_tag}")
    address, module, name = parts
    return (
        encode_uleb128(_TYPE_TAG_STRUCT)
        + encode_address(address)
        + encode_str(module)
        + encode_str(name)
        + encode_uleb128(0)
    )


class SharedObjectInput:
    """A shared object passed by reference into a Move call"""

    def __init__(self, object_id: str, initial_shared_version: int, mutable: bool = False):
        self.object_id = object_id
        self.initial_shared_version = initial_shared_version
        self.mutable = mutable

    def encode(self) -> bytes:
        return (
            encode_uleb128(_CALL_ARG_OBJECT)
            + encode_uleb128(_OBJECT_ARG_SHARED)
            + encode_address(self.object_id)
            + encode_u64(self.initial_shared_version)
            + encode_bool(self.mutable)
        )


class PureAddressInput:
    """An address passed by value into a Move call"""

    def __init__(self, address: str):
        self.address = address

    def encode(self) -> bytes:
        value = encode_address(self.address)
        return encode_uleb128(_CALL_ARG_PURE) + encode_uleb128(len(value)) + value


CallInput = Union[SharedObjectInput, PureAddressInput]


def encode_move_call_kind(
    package: str,
    module: str,
    function: str,
    type_arguments: List[str],
    inputs: List[CallInput],
) -> bytes:
    """
    Encode a TransactionKind holding one MoveCall whose arguments are the
    given inputs, in order.
    """
    out = bytearray()
    out += encode_uleb128(_KIND_PROGRAMMABLE)

    out += encode_uleb128(len(inputs))
    for call_input in inputs:
        out += call_input.encode()

    out += encode_uleb128(1)
    out += encode_uleb128(_COMMAND_MOVE_CALL)
    out += encode_address(package)
    out += encode_str(module)
    out += encode_str(function)
    out += encode_uleb128(len(type_arguments))
    for type_tag in type_arguments:
        out += encode_struct_tag(type_tag)
    out += encode_uleb128(len(inputs))
    for index in range(len(inputs)):
        out += encode_uleb128(_ARGUMENT_INPUT) + encode_u16(index)

    return bytes(out)


def _to_bytes(data: Sequence[int]) -> bytes:
    try:
        return bytes(data)
    except (TypeError, ValueError) as e:
        raise DecodeFailure(f"Return value is not a byte sequence: {e}")


def decode_u64(data: Sequence[int]) -> int:
    """Decode a little-endian u64 return value."""
    if len(data) != 8:
        raise DecodeFailure(f"Expected 8 bytes for u64, got {len(data)}")
    return int.from_bytes(_to_bytes(data), "little")


def decode_u64_vector(data: Sequence[int]) -> List[int]:
    """Decode a length-prefixed vector<u64> return value."""
    count, offset = decode_uleb128(data)
    end = offset + count * 8
    if end != len(data):
        raise DecodeFailure(
            f"vector<u64> of length {count} needs {end} bytes, got {len(data)}"
        )
    raw = _to_bytes(data[offset:end])
    return [int.from_bytes(raw[i:i + 8], "little") for i in range(0, len(raw), 8)]
