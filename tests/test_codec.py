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

"""
Tests for the compact wire codec: exact encodings of small containers,
round trips of builder output, sideband fields, and the delimited form.
"""

import pytest

from binx.builder.BinExportBuilder import BinExportBuilder
from binx.builder.ExpressionTreeBuilder import mk_dereference, mk_register
from binx.builder.FlowGraphBuilder import FlowGraphBuilder
from binx.codec.BinExportReader import BinExportReader, decode, decode_delimited
from binx.codec.BinExportWriter import (
    BinExportWriter, F_MD_INDEX, encode, encode_delimited)
from binx.model.Auxiliary import MDIndex, Meta, UnknownField
from binx.model.BinExport import BinExport
from binx.model.CallGraph import CallGraph, Vertex
from binx.model.Comment import CommentType
from binx.model.Expression import Mnemonic
from binx.model.Instruction import Instruction
from binx.util.Config import config
from binx.util.wireutil import WireReader, WireWriter, encode_varint
import binx.util.errors as UE


class TestEncoding:

    def test_exact_bytes(self):
        bx = BinExport(
            mnemonic=[Mnemonic("mov")],
            instruction=[
                Instruction(address=0x1000, raw_bytes=b"\xb8\x01\x00\x00\x00")])
        assert encode(bx) == bytes.fromhex(
            "2205" "0a036d6f76"
            "2a0a" "088020" "2a05b801000000")

    def test_empty_container(self):
        assert encode(BinExport()) == b""
        assert decode(b"") == BinExport()

    def test_implicit_address_is_omitted(self):
        bx = BinExport(
            mnemonic=[Mnemonic("nop")],
            instruction=[
                Instruction(address=0x1000, raw_bytes=b"\x90"),
                Instruction(raw_bytes=b"\x90")])
        data = encode(bx)
        # one address field (tag 0x08) in total
        assert data.count(b"\x08\x80\x20") == 1
        assert decode(data).instruction_addresses == [0x1000, 0x1001]

    def test_flow_graph_record(self, minimal_builder):
        bx = minimal_builder.build()
        fg = WireWriter()
        fg.write_int32(1, 0)
        fg.write_int32(3, 0)
        # basic block index 0 and entry position 0, no edges
        assert b"\x3a\x04" + fg.getvalue() in encode(bx)


class TestRoundTrip:

    def test_minimal_function(self, minimal_builder):
        bx = minimal_builder.build()
        result = decode(encode(bx))
        assert result == bx
        assert result.instruction[0].address == 0x1000
        assert result.instruction[0].raw_bytes == bytes.fromhex("b801000000")
        assert result.instruction[0].mnemonic_index == 0
        assert result.flow_graph[0].edge == ()
        assert result.flow_graph[0].entry == 0
        assert result.instruction_text(0) == "mov eax, 0x1"

    def test_loop_function(self, loop_builder):
        bx = loop_builder.build()
        result = decode(encode(bx))
        assert result == bx
        assert [e.is_back_edge for e in result.flow_graph[0].edge] == [
            False, True, False]

    def test_annotations(self, minimal_builder):
        b = minimal_builder
        b.set_meta(
            executable_name="a.out",
            executable_id="d41d8cd98f00b204e9800998ecf8427e",
            architecture_name="x86-32",
            timestamp=-1)
        lib = b.add_library("libc.so.6", load_address=0x7f000000)
        mod = b.add_module("main")
        b.add_function(0x2000, mangled_name="_Z3foov", demangled_name="foo()",
                       library_index=lib, module_index=mod)
        b.add_comment(0x1000, "set return value", operand_index=1,
                      ctype=CommentType.POSTERIOR, repeatable=True)
        b.add_string_reference(0x1000, "hello")
        b.add_expression_substitution(0x1000, "RETVAL", operand_index=0)
        b.add_data_reference(0x1000, 0x404000)
        b.add_section(0x1000, 0x1000, flag_r=True, flag_x=True)
        b.add_md_index(0x1000, 12.5)
        bx = b.build()
        result = decode(encode(bx))
        assert result == bx
        assert result.meta_information == Meta(
            "a.out", "d41d8cd98f00b204e9800998ecf8427e", "x86-32", -1)
        assert result.md_index == [MDIndex(0x1000, 12.5)]
        assert result.string(result.comment[0].string_table_index) == (
            "set return value")
        assert result.instruction[0].comment_index == (0,)
        assert result.library[0].load_address == 0x7f000000
        assert result.call_graph is not None
        assert result.call_graph.vertex[1].name == "foo()"

    def test_operand_text_survives(self):
        b = BinExportBuilder()
        b.add_instruction(
            0x1000, b"\x8b\x03", "mov",
            [mk_register("eax"), mk_dereference(mk_register("ebx"))])
        fg = FlowGraphBuilder(0x1000)
        fg.add_basic_block(b.add_basic_block([0x1000]))
        b.add_flow_graph(fg)
        result = decode(encode(b.build()))
        assert result.instruction_text(0) == "mov eax, [ebx]"

    def test_non_utf8_strings(self):
        s = b"caf\xe9".decode("utf-8", errors="surrogateescape")
        bx = BinExport(string_table=[s, "ok"])
        data = encode(bx)
        assert b"caf\xe9" in data
        assert decode(data).string_table == [s, "ok"]

    def test_delimited(self, minimal_builder):
        bx = minimal_builder.build()
        data = encode_delimited(bx)
        body = encode(bx)
        assert data == encode_varint(len(body)) + body
        assert decode_delimited(data) == bx

    def test_delimited_length_mismatch(self, minimal_builder):
        data = encode_delimited(minimal_builder.build()) + b"\x00"
        with pytest.raises(UE.WireFormatError):
            decode_delimited(data)


class TestUnknownFields:

    def test_sideband_round_trip(self, minimal_builder):
        data = encode(minimal_builder.build())
        ext = WireWriter()
        ext.write_uint64(1000, 42)
        ext.write_string(1001, "extension")
        data = data + ext.getvalue()
        bx = decode(data)
        assert bx.unknown_fields == [
            UnknownField(1000, 0, b"\x2a"),
            UnknownField(1001, 2, b"extension")]
        assert encode(bx) == data

    def test_sideband_dropped(self, minimal_builder, monkeypatch):
        monkeypatch.setattr(config, "keep_unknown_fields", False)
        ext = WireWriter()
        ext.write_uint64(1000, 42)
        bx = decode(encode(minimal_builder.build()) + ext.getvalue())
        assert bx.unknown_fields == []

    def test_unknown_nested_field_skipped(self):
        instr = WireWriter()
        instr.write_uint64(1, 0x1000)
        instr.write_bytes(5, b"\x90")
        instr.write_uint64(99, 7)
        mnemonic = WireWriter()
        mnemonic.write_string(1, "nop")
        w = WireWriter()
        w.write_message(4, mnemonic)
        w.write_message(5, instr)
        bx = decode(w.getvalue())
        assert bx.instruction == [Instruction(address=0x1000, raw_bytes=b"\x90")]

    def test_md_index_field_number(self):
        bx = BinExport(md_index=[MDIndex(0x1000, 1.0)])
        (f,) = list(WireReader(encode(bx)).fields())
        assert f.number == F_MD_INDEX


class TestMerging:

    def test_repeated_call_graph_fields_merge(self):
        w = WireWriter()
        for address in [0x1000, 0x2000]:
            v = WireWriter()
            v.write_uint64(1, address)
            cg = WireWriter()
            cg.write_message(1, v)
            w.write_message(8, cg)
        bx = decode(w.getvalue())
        assert bx.call_graph == CallGraph(
            vertex=[Vertex(address=0x1000), Vertex(address=0x2000)])


class TestLimits:

    def test_capacity_on_encode(self, monkeypatch):
        monkeypatch.setattr(config, "max_table_size", 1)
        bx = BinExport(string_table=["a", "b"])
        with pytest.raises(UE.CapacityExceeded):
            BinExportWriter(bx).encode()

    def test_message_size_limit(self, minimal_builder, monkeypatch):
        data = encode(minimal_builder.build())
        monkeypatch.setattr(config, "max_message_size", 4)
        with pytest.raises(UE.WireFormatError):
            BinExportReader(data).decode()
