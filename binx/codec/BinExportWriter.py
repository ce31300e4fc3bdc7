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

"""Serializes a BinExport container into its compact wire form.

Fields holding their declared default value, absent optional fields, and
false booleans are omitted. Readers treat an absent field as exactly its
default, so changing a default here changes what is read back.

Tables are written in dependency order: strings, mnemonics, expressions,
operands, instructions, basic blocks, flow graphs, call graph, references
and comments, auxiliary tables. Unknown top-level fields captured by the
reader are appended verbatim, in their original order.
"""

from typing import Any, Callable, List, Sequence, Tuple

from binx.codec.BinExportValidator import BinExportValidator
from binx.model.Auxiliary import Library, MDIndex, Meta, Module, Section
from binx.model.BasicBlock import BasicBlock
from binx.model.BinExport import BinExport
from binx.model.CallGraph import CallGraph, CallGraphEdge, Vertex, VertexType
from binx.model.Comment import Comment, CommentType, DataReference, Reference
from binx.model.Expression import Expression, ExpressionType, Mnemonic, Operand
from binx.model.FlowGraph import FlowEdgeType, FlowGraph
from binx.model.Instruction import Instruction
from binx.util.Config import config
from binx.util.loggingutil import bxlogger
from binx.util.wireutil import WireWriter, encode_varint
import binx.util.errors as UE


# Top-level field numbers
F_META_INFORMATION = 1
F_EXPRESSION = 2
F_OPERAND = 3
F_MNEMONIC = 4
F_INSTRUCTION = 5
F_BASIC_BLOCK = 6
F_FLOW_GRAPH = 7
F_CALL_GRAPH = 8
F_STRING_TABLE = 9
F_ADDRESS_COMMENT = 10
F_STRING_REFERENCE = 11
F_EXPRESSION_SUBSTITUTION = 12
F_SECTION = 13
F_LIBRARY = 14
F_DATA_REFERENCE = 15
F_MODULE = 16
F_COMMENT = 17
F_MD_INDEX = 93992622


def write_meta(meta: Meta) -> WireWriter:
    w = WireWriter()
    if meta.executable_name is not None:
        w.write_string(1, meta.executable_name)
    if meta.executable_id is not None:
        w.write_string(2, meta.executable_id)
    if meta.architecture_name is not None:
        w.write_string(3, meta.architecture_name)
    if meta.timestamp is not None:
        w.write_int64(4, meta.timestamp)
    return w


def write_expression(e: Expression) -> WireWriter:
    w = WireWriter()
    if e.type != ExpressionType.IMMEDIATE_INT:
        w.write_uint64(1, int(e.type))
    if e.symbol is not None:
        w.write_string(2, e.symbol)
    if e.immediate is not None:
        w.write_uint64(3, e.immediate)
    if e.parent_index is not None:
        w.write_int32(4, e.parent_index)
    if e.is_relocation:
        w.write_bool(5, True)
    return w


def write_operand(op: Operand) -> WireWriter:
    w = WireWriter()
    for ix in op.expression_index:
        w.write_int32(1, ix)
    return w


def write_mnemonic(m: Mnemonic) -> WireWriter:
    w = WireWriter()
    if m.name is not None:
        w.write_string(1, m.name)
    return w


def write_instruction(instr: Instruction) -> WireWriter:
    w = WireWriter()
    if instr.address is not None:
        w.write_uint64(1, instr.address)
    for tgt in instr.call_target:
        w.write_uint64(2, tgt)
    if instr.mnemonic_index != 0:
        w.write_int32(3, instr.mnemonic_index)
    for ix in instr.operand_index:
        w.write_int32(4, ix)
    if instr.raw_bytes is not None:
        w.write_bytes(5, instr.raw_bytes)
    for ix in instr.comment_index:
        w.write_int32(6, ix)
    return w


def write_basic_block(bb: BasicBlock) -> WireWriter:
    w = WireWriter()
    for r in bb.instruction_index:
        rw = WireWriter()
        if r.begin_index is not None:
            rw.write_int32(1, r.begin_index)
        if r.end_index is not None:
            rw.write_int32(2, r.end_index)
        w.write_message(1, rw)
    return w


def write_flow_graph(fg: FlowGraph) -> WireWriter:
    w = WireWriter()
    for bb in fg.basic_block_index:
        w.write_int32(1, bb)
    for e in fg.edge:
        ew = WireWriter()
        if e.source_basic_block_index is not None:
            ew.write_int32(1, e.source_basic_block_index)
        if e.target_basic_block_index is not None:
            ew.write_int32(2, e.target_basic_block_index)
        if e.type != FlowEdgeType.UNCONDITIONAL:
            ew.write_uint64(3, int(e.type))
        if e.is_back_edge:
            ew.write_bool(4, True)
        w.write_message(2, ew)
    if fg.entry_basic_block_index is not None:
        w.write_int32(3, fg.entry_basic_block_index)
    return w


def write_vertex(v: Vertex) -> WireWriter:
    w = WireWriter()
    if v.address is not None:
        w.write_uint64(1, v.address)
    if v.type != VertexType.NORMAL:
        w.write_uint64(2, int(v.type))
    if v.mangled_name is not None:
        w.write_string(3, v.mangled_name)
    if v.demangled_name is not None:
        w.write_string(4, v.demangled_name)
    if v.library_index is not None:
        w.write_int32(5, v.library_index)
    if v.module_index is not None:
        w.write_int32(6, v.module_index)
    return w


def write_call_graph_edge(e: CallGraphEdge) -> WireWriter:
    w = WireWriter()
    if e.source_vertex_index is not None:
        w.write_int32(1, e.source_vertex_index)
    if e.target_vertex_index is not None:
        w.write_int32(2, e.target_vertex_index)
    return w


def write_call_graph(cg: CallGraph) -> WireWriter:
    w = WireWriter()
    for v in cg.vertex:
        w.write_message(1, write_vertex(v))
    for e in cg.edge:
        w.write_message(2, write_call_graph_edge(e))
    return w


def write_reference(r: Reference) -> WireWriter:
    w = WireWriter()
    if r.instruction_index is not None:
        w.write_int32(1, r.instruction_index)
    if r.instruction_operand_index != 0:
        w.write_int32(2, r.instruction_operand_index)
    if r.operand_expression_index != 0:
        w.write_int32(3, r.operand_expression_index)
    if r.string_table_index is not None:
        w.write_int32(4, r.string_table_index)
    return w


def write_comment(c: Comment) -> WireWriter:
    w = WireWriter()
    if c.instruction_index is not None:
        w.write_int32(1, c.instruction_index)
    if c.instruction_operand_index != 0:
        w.write_int32(2, c.instruction_operand_index)
    if c.operand_expression_index != 0:
        w.write_int32(3, c.operand_expression_index)
    if c.string_table_index is not None:
        w.write_int32(4, c.string_table_index)
    if c.repeatable:
        w.write_bool(5, True)
    if c.type != CommentType.DEFAULT:
        w.write_uint64(6, int(c.type))
    return w


def write_data_reference(d: DataReference) -> WireWriter:
    w = WireWriter()
    if d.instruction_index is not None:
        w.write_int32(1, d.instruction_index)
    if d.address is not None:
        w.write_uint64(2, d.address)
    return w


def write_section(s: Section) -> WireWriter:
    w = WireWriter()
    if s.address is not None:
        w.write_uint64(1, s.address)
    if s.size is not None:
        w.write_uint64(2, s.size)
    if s.flag_r:
        w.write_bool(3, True)
    if s.flag_w:
        w.write_bool(4, True)
    if s.flag_x:
        w.write_bool(5, True)
    return w


def write_library(lib: Library) -> WireWriter:
    w = WireWriter()
    if lib.is_static:
        w.write_bool(1, True)
    if lib.load_address != 0:
        w.write_uint64(2, lib.load_address)
    if lib.name is not None:
        w.write_string(3, lib.name)
    return w


def write_module(m: Module) -> WireWriter:
    w = WireWriter()
    if m.name is not None:
        w.write_string(1, m.name)
    return w


def write_md_index(md: MDIndex) -> WireWriter:
    w = WireWriter()
    if md.address is not None:
        w.write_uint64(1, md.address)
    if md.md_index is not None:
        w.write_double(2, md.md_index)
    return w


def table_sizes(bx: BinExport) -> List[Tuple[str, int]]:
    result: List[Tuple[str, int]] = [
        ("string_table", len(bx.string_table)),
        ("mnemonic", len(bx.mnemonic)),
        ("expression", len(bx.expression)),
        ("operand", len(bx.operand)),
        ("instruction", len(bx.instruction)),
        ("basic_block", len(bx.basic_block)),
        ("flow_graph", len(bx.flow_graph)),
        ("comment", len(bx.comment)),
        ("library", len(bx.library)),
        ("module", len(bx.module))]
    if bx.call_graph is not None:
        result.append(("call_graph.vertex", len(bx.call_graph.vertex)))
    for fg in bx.flow_graph:
        result.append(("flow_graph.basic_block_index", len(fg.basic_block_index)))
    return result


class BinExportWriter:

    def __init__(self, bx: BinExport) -> None:
        self._bx = bx

    @property
    def bx(self) -> BinExport:
        return self._bx

    def check_capacity(self) -> None:
        for (name, size) in table_sizes(self.bx):
            if size > config.max_table_size:
                raise UE.CapacityExceeded(name, size, config.max_table_size)

    def _write_all(
            self,
            w: WireWriter,
            number: int,
            records: Sequence[Any],
            f: Callable[[Any], WireWriter]) -> None:
        for r in records:
            w.write_message(number, f(r))

    def encode(self) -> bytes:
        """Checks and serializes the container.

        Raises CapacityExceeded, OrderingViolation, or DataIntegrityError
        before any output is produced.
        """

        bx = self.bx
        self.check_capacity()
        BinExportValidator(bx).validate()

        w = WireWriter()
        if bx.meta_information is not None:
            w.write_message(F_META_INFORMATION, write_meta(bx.meta_information))
        for s in bx.string_table:
            w.write_string(F_STRING_TABLE, s)
        self._write_all(w, F_MNEMONIC, bx.mnemonic, write_mnemonic)
        self._write_all(w, F_EXPRESSION, bx.expression, write_expression)
        self._write_all(w, F_OPERAND, bx.operand, write_operand)
        self._write_all(w, F_INSTRUCTION, bx.instruction, write_instruction)
        self._write_all(w, F_BASIC_BLOCK, bx.basic_block, write_basic_block)
        self._write_all(w, F_FLOW_GRAPH, bx.flow_graph, write_flow_graph)
        if bx.call_graph is not None:
            w.write_message(F_CALL_GRAPH, write_call_graph(bx.call_graph))
        self._write_all(w, F_ADDRESS_COMMENT, bx.address_comment, write_reference)
        self._write_all(w, F_COMMENT, bx.comment, write_comment)
        self._write_all(
            w, F_STRING_REFERENCE, bx.string_reference, write_reference)
        self._write_all(
            w, F_EXPRESSION_SUBSTITUTION, bx.expression_substitution,
            write_reference)
        self._write_all(
            w, F_DATA_REFERENCE, bx.data_reference, write_data_reference)
        self._write_all(w, F_SECTION, bx.section, write_section)
        self._write_all(w, F_LIBRARY, bx.library, write_library)
        self._write_all(w, F_MODULE, bx.module, write_module)
        self._write_all(w, F_MD_INDEX, bx.md_index, write_md_index)
        for u in bx.unknown_fields:
            w.write_payload(u.number, u.wiretype, u.data)

        bxlogger.logger.debug("encoded binexport: %d bytes", len(w))
        return w.getvalue()

    def encode_delimited(self) -> bytes:
        """Encoded message preceded by its length as a varint."""

        data = self.encode()
        return encode_varint(len(data)) + data


def encode(bx: BinExport) -> bytes:
    return BinExportWriter(bx).encode()


def encode_delimited(bx: BinExport) -> bytes:
    return BinExportWriter(bx).encode_delimited()
