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

import pytest

from binx.util.wireutil import (
    WT_LEN,
    WT_VARINT,
    WireReader,
    WireWriter,
    as_double,
    as_int32,
    as_int64,
    as_message,
    as_string,
    decode_varint,
    encode_varint,
    field_payload,
    repeated_int32,
    repeated_uint64)
import binx.util.errors as UE


class TestVarint:

    def test_encoding(self):
        assert encode_varint(0) == b"\x00"
        assert encode_varint(1) == b"\x01"
        assert encode_varint(300) == b"\xac\x02"
        assert encode_varint(0x1000) == b"\x80\x20"
        assert len(encode_varint((1 << 64) - 1)) == 10

    def test_decoding(self):
        data = memoryview(b"\xac\x02\x05")
        assert decode_varint(data, 0, 3) == (300, 2)
        assert decode_varint(data, 2, 3) == (5, 3)

    def test_truncated(self):
        with pytest.raises(UE.WireFormatError):
            decode_varint(memoryview(b"\x80\x80"), 0, 2)

    def test_overlong(self):
        data = memoryview(b"\x80" * 10 + b"\x01")
        with pytest.raises(UE.WireFormatError) as excinfo:
            decode_varint(data, 0, len(data))
        assert excinfo.value.offset == 0

    def test_negative_value_rejected(self):
        with pytest.raises(UE.BXError):
            encode_varint(-1)


class TestWriterReader:

    def test_negative_int32_is_sign_extended(self):
        w = WireWriter()
        w.write_int32(1, -1)
        data = w.getvalue()
        assert len(data) == 11
        (f,) = list(WireReader(data).fields())
        assert as_int32(f) == -1

    def test_int32_range(self):
        w = WireWriter()
        with pytest.raises(UE.BXError):
            w.write_int32(1, 1 << 31)

    def test_int64_and_double(self):
        w = WireWriter()
        w.write_int64(1, -5)
        w.write_double(2, 0.25)
        (f1, f2) = list(WireReader(w.getvalue()).fields())
        assert as_int64(f1) == -5
        assert as_double(f2) == 0.25

    def test_string_with_invalid_utf8(self):
        w = WireWriter()
        w.write_bytes(1, b"ab\xff")
        (f,) = list(WireReader(w.getvalue()).fields())
        s = as_string(f)
        assert s.encode("utf-8", errors="surrogateescape") == b"ab\xff"

    def test_packed_and_unpacked_repeated(self):
        w = WireWriter()
        w.write_uint64(1, 7)
        w.write_bytes(1, encode_varint(1) + encode_varint(300))
        values = []
        for f in WireReader(w.getvalue()).fields():
            values.extend(repeated_uint64(f))
        assert values == [7, 1, 300]

    def test_packed_negative_int32(self):
        w = WireWriter()
        w.write_bytes(1, encode_varint((1 << 64) - 2) + encode_varint(3))
        (f,) = list(WireReader(w.getvalue()).fields())
        assert repeated_int32(f) == [-2, 3]

    def test_length_exceeds_buffer(self):
        with pytest.raises(UE.WireFormatError):
            list(WireReader(b"\x0a\x05ab").fields())

    def test_group_wire_type_rejected(self):
        with pytest.raises(UE.WireFormatError):
            list(WireReader(b"\x0b").fields())

    def test_field_number_zero_rejected(self):
        with pytest.raises(UE.WireFormatError):
            list(WireReader(b"\x00\x01").fields())

    def test_wire_type_mismatch(self):
        w = WireWriter()
        w.write_uint64(1, 3)
        (f,) = list(WireReader(w.getvalue()).fields())
        with pytest.raises(UE.WireFormatError):
            as_string(f)

    def test_payload_rewrite(self):
        w = WireWriter()
        w.write_uint64(100, 42)
        w.write_string(101, "ext")
        data = w.getvalue()
        fields = list(WireReader(data).fields())
        assert [f.wiretype for f in fields] == [WT_VARINT, WT_LEN]
        copy = WireWriter()
        for f in fields:
            copy.write_payload(f.number, f.wiretype, field_payload(f))
        assert copy.getvalue() == data

    def test_nested_offsets_are_absolute(self):
        outer = WireWriter()
        outer.write_uint64(1, 1)
        outer.write_bytes(2, b"\x0a\x05a")
        (_, f) = list(WireReader(outer.getvalue()).fields())
        assert f.offset == 4
        with pytest.raises(UE.WireFormatError) as excinfo:
            list(as_message(f).fields())
        assert excinfo.value.offset == 4
