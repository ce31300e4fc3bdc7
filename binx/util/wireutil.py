# ------------------------------------------------------------------------------
# binx: Compact Binary Interchange Codec for Disassembled Executables
# ------------------------------------------------------------------------------
# The MIT License (MIT)
#
# Copyright (c) 2024 Aarno Labs LLC
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# ------------------------------------------------------------------------------

"""Protocol buffer wire primitives.

Only the subset of the wire format used by the BinExport2 schema is
supported: varints (wire type 0), fixed64 (1), length-delimited (2) and
fixed32 (5). Groups (3, 4) are rejected. Every read is bounds checked; a
malformed stream raises WireFormatError with the absolute byte offset.
"""

import struct

from typing import Iterator, List, NamedTuple, Tuple, Union

import binx.util.errors as UE


WT_VARINT = 0
WT_FIXED64 = 1
WT_LEN = 2
WT_FIXED32 = 5

MAX_VARINT_LENGTH = 10
MAX_FIELD_NUMBER = (1 << 29) - 1

UINT64_MASK = (1 << 64) - 1
INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1

STRING_ERRORS = "surrogateescape"


def encode_varint(value: int) -> bytes:
    if value < 0 or value > UINT64_MASK:
        raise UE.BXError("Varint value out of range: " + str(value))
    result = bytearray()
    while value > 0x7F:
        result.append((value & 0x7F) | 0x80)
        value >>= 7
    result.append(value)
    return bytes(result)


def encode_signed(value: int) -> bytes:
    """int32/int64 values are sign extended to 64 bits (not zigzag)."""

    return encode_varint(value & UINT64_MASK)


def decode_varint(data: memoryview, pos: int, end: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    start = pos
    while True:
        if pos >= end:
            raise UE.WireFormatError(start, "truncated varint")
        if pos - start >= MAX_VARINT_LENGTH:
            raise UE.WireFormatError(start, "varint longer than 10 bytes")
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if b < 0x80:
            break
        shift += 7
    if result > UINT64_MASK:
        raise UE.WireFormatError(start, "varint exceeds 64 bits")
    return (result, pos)


def to_signed64(value: int) -> int:
    if value >= (1 << 63):
        return value - (1 << 64)
    return value


class WireField(NamedTuple):
    number: int
    wiretype: int
    value: Union[int, memoryview]
    offset: int


class WireWriter:

    def __init__(self) -> None:
        self._buffer = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def write_tag(self, number: int, wiretype: int) -> None:
        if number < 1 or number > MAX_FIELD_NUMBER:
            raise UE.BXError("Invalid field number: " + str(number))
        self._buffer += encode_varint((number << 3) | wiretype)

    def write_raw(self, data: bytes) -> None:
        self._buffer += data

    def write_uint64(self, number: int, value: int) -> None:
        self.write_tag(number, WT_VARINT)
        self._buffer += encode_varint(value)

    def write_int32(self, number: int, value: int) -> None:
        if value < INT32_MIN or value > INT32_MAX:
            raise UE.BXError("Value out of int32 range: " + str(value))
        self.write_tag(number, WT_VARINT)
        self._buffer += encode_signed(value)

    def write_int64(self, number: int, value: int) -> None:
        self.write_tag(number, WT_VARINT)
        self._buffer += encode_signed(value)

    def write_bool(self, number: int, value: bool) -> None:
        self.write_tag(number, WT_VARINT)
        self._buffer.append(1 if value else 0)

    def write_double(self, number: int, value: float) -> None:
        self.write_tag(number, WT_FIXED64)
        self._buffer += struct.pack("<d", value)

    def write_bytes(self, number: int, value: bytes) -> None:
        self.write_tag(number, WT_LEN)
        self._buffer += encode_varint(len(value))
        self._buffer += value

    def write_string(self, number: int, value: str) -> None:
        self.write_bytes(number, value.encode("utf-8", errors=STRING_ERRORS))

    def write_message(self, number: int, payload: "WireWriter") -> None:
        self.write_bytes(number, payload.getvalue())

    def write_payload(self, number: int, wiretype: int, data: bytes) -> None:
        """Writes a field whose value is already encoded (see field_payload)."""

        if wiretype == WT_LEN:
            self.write_bytes(number, data)
        else:
            self.write_tag(number, wiretype)
            self._buffer += data


class WireReader:
    """Iterates over the fields of one message.

    base is the absolute offset of data[0] within the outermost buffer; it is
    only used to report offsets.
    """

    def __init__(self, data: Union[bytes, memoryview], base: int = 0) -> None:
        self._data = memoryview(data)
        self._base = base

    @property
    def base(self) -> int:
        return self._base

    def fields(self) -> Iterator[WireField]:
        data = self._data
        end = len(data)
        pos = 0
        while pos < end:
            fieldstart = pos
            (key, pos) = decode_varint(data, pos, end)
            number = key >> 3
            wiretype = key & 0x7
            if number < 1 or number > MAX_FIELD_NUMBER:
                raise UE.WireFormatError(
                    self.base + fieldstart,
                    "invalid field number " + str(number))
            if wiretype == WT_VARINT:
                (ivalue, pos) = decode_varint(data, pos, end)
                yield WireField(number, wiretype, ivalue, self.base + fieldstart)
            elif wiretype == WT_FIXED64:
                if pos + 8 > end:
                    raise UE.WireFormatError(
                        self.base + fieldstart, "truncated fixed64")
                ivalue = int.from_bytes(data[pos:pos + 8], "little")
                pos += 8
                yield WireField(number, wiretype, ivalue, self.base + fieldstart)
            elif wiretype == WT_LEN:
                (length, pos) = decode_varint(data, pos, end)
                if length > end - pos:
                    raise UE.WireFormatError(
                        self.base + fieldstart,
                        "length "
                        + str(length)
                        + " exceeds remaining "
                        + str(end - pos)
                        + " bytes")
                yield WireField(
                    number,
                    wiretype,
                    data[pos:pos + length],
                    self.base + pos)
                pos += length
            elif wiretype == WT_FIXED32:
                if pos + 4 > end:
                    raise UE.WireFormatError(
                        self.base + fieldstart, "truncated fixed32")
                ivalue = int.from_bytes(data[pos:pos + 4], "little")
                pos += 4
                yield WireField(number, wiretype, ivalue, self.base + fieldstart)
            else:
                raise UE.WireFormatError(
                    self.base + fieldstart,
                    "unsupported wire type " + str(wiretype))


# ------------------------------------------------------- field value access ---

def _expect(field: WireField, wiretype: int) -> None:
    if field.wiretype != wiretype:
        raise UE.WireFormatError(
            field.offset,
            "field "
            + str(field.number)
            + " has wire type "
            + str(field.wiretype)
            + ", expected "
            + str(wiretype))


def as_uint64(field: WireField) -> int:
    _expect(field, WT_VARINT)
    return int(field.value)   # type: ignore


def as_int64(field: WireField) -> int:
    return to_signed64(as_uint64(field))


def as_int32(field: WireField) -> int:
    value = as_int64(field)
    if value < INT32_MIN or value > INT32_MAX:
        raise UE.WireFormatError(
            field.offset, "value out of int32 range: " + str(value))
    return value


def as_bool(field: WireField) -> bool:
    return as_uint64(field) != 0


def as_double(field: WireField) -> float:
    _expect(field, WT_FIXED64)
    return struct.unpack("<d", int(field.value).to_bytes(8, "little"))[0]   # type: ignore


def as_bytes(field: WireField) -> bytes:
    _expect(field, WT_LEN)
    return bytes(field.value)   # type: ignore


def as_string(field: WireField) -> str:
    return as_bytes(field).decode("utf-8", errors=STRING_ERRORS)


def as_message(field: WireField) -> WireReader:
    _expect(field, WT_LEN)
    return WireReader(field.value, field.offset)   # type: ignore


def field_payload(field: WireField) -> bytes:
    """Value of a field as bytes, without tag (and without length prefix)."""

    if field.wiretype == WT_VARINT:
        return encode_varint(int(field.value))   # type: ignore
    elif field.wiretype == WT_FIXED64:
        return int(field.value).to_bytes(8, "little")   # type: ignore
    elif field.wiretype == WT_FIXED32:
        return int(field.value).to_bytes(4, "little")   # type: ignore
    else:
        return bytes(field.value)   # type: ignore


def _packed_varints(field: WireField) -> List[int]:
    data: memoryview = field.value   # type: ignore
    result: List[int] = []
    pos = 0
    end = len(data)
    while pos < end:
        try:
            (value, pos) = decode_varint(data, pos, end)
        except UE.WireFormatError as e:
            raise UE.WireFormatError(field.offset + e.offset, e.reason)
        result.append(value)
    return result


def repeated_uint64(field: WireField) -> List[int]:
    """Values of a repeated varint field, accepting packed encoding."""

    if field.wiretype == WT_LEN:
        return _packed_varints(field)
    return [as_uint64(field)]


def repeated_int32(field: WireField) -> List[int]:
    result: List[int] = []
    for v in repeated_uint64(field):
        value = to_signed64(v)
        if value < INT32_MIN or value > INT32_MAX:
            raise UE.WireFormatError(
                field.offset, "value out of int32 range: " + str(value))
        result.append(value)
    return result
