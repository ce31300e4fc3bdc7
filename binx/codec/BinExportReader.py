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

"""Parses the compact wire form into a validated BinExport container.

The reader is a pure function of its input buffer. Every length and varint
is bounds checked while parsing, and the complete container is validated
before it is returned; a malformed or inconsistent message is rejected as a
whole (WireFormatError, DataIntegrityError, OrderingViolation).

Absent fields take their declared default value.
"""

from enum import IntEnum
from typing import Callable, Dict, List, Optional, Type, TypeVar, Union

from binx.codec.BinExportValidator import BinExportValidator
import binx.codec.BinExportWriter as W
from binx.model.Auxiliary import (
    Library, MDIndex, Meta, Module, Section, UnknownField)
from binx.model.BasicBlock import BasicBlock, IndexRange
from binx.model.BinExport import BinExport
from binx.model.CallGraph import CallGraph, CallGraphEdge, Vertex, VertexType
from binx.model.Comment import Comment, CommentType, DataReference, Reference
from binx.model.Expression import Expression, ExpressionType, Mnemonic, Operand
from binx.model.FlowGraph import FlowEdgeType, FlowGraph, FlowGraphEdge
from binx.model.Instruction import Instruction
from binx.util.Config import config
from binx.util.loggingutil import bxlogger
from binx.util.wireutil import (
    WireField,
    WireReader,
    as_bool,
    as_bytes,
    as_double,
    as_int32,
    as_int64,
    as_message,
    as_string,
    as_uint64,
    decode_varint,
    field_payload,
    repeated_int32,
    repeated_uint64)
import binx.util.errors as UE


E = TypeVar("E", bound=IntEnum)


def enum_value(
        enumtype: Type[E],
        field: WireField,
        table: str,
        index: int,
        fieldname: str) -> E:
    value = as_uint64(field)
    try:
        return enumtype(value)
    except ValueError:
        raise UE.DataIntegrityError(
            table, index, fieldname,
            "unknown " + enumtype.__name__ + " value " + str(value))


def skip(table: str, index: int, field: WireField) -> None:
    bxlogger.logger.debug(
        "%s[%d]: skipping unknown field %d", table, index, field.number)


def read_meta(msg: WireReader) -> Meta:
    values: Dict[str, Union[str, int]] = {}
    for f in msg.fields():
        if f.number == 1:
            values["executable_name"] = as_string(f)
        elif f.number == 2:
            values["executable_id"] = as_string(f)
        elif f.number == 3:
            values["architecture_name"] = as_string(f)
        elif f.number == 4:
            values["timestamp"] = as_int64(f)
        else:
            skip("meta_information", 0, f)
    return Meta(**values)   # type: ignore


def read_expression(msg: WireReader, index: int) -> Expression:
    etype = ExpressionType.IMMEDIATE_INT
    symbol: Optional[str] = None
    immediate: Optional[int] = None
    parent: Optional[int] = None
    reloc = False
    for f in msg.fields():
        if f.number == 1:
            etype = enum_value(ExpressionType, f, "expression", index, "type")
        elif f.number == 2:
            symbol = as_string(f)
        elif f.number == 3:
            immediate = as_uint64(f)
        elif f.number == 4:
            parent = as_int32(f)
        elif f.number == 5:
            reloc = as_bool(f)
        else:
            skip("expression", index, f)
    return Expression(etype, symbol, immediate, parent, reloc)


def read_operand(msg: WireReader, index: int) -> Operand:
    exprs: List[int] = []
    for f in msg.fields():
        if f.number == 1:
            exprs.extend(repeated_int32(f))
        else:
            skip("operand", index, f)
    return Operand(tuple(exprs))


def read_mnemonic(msg: WireReader, index: int) -> Mnemonic:
    name: Optional[str] = None
    for f in msg.fields():
        if f.number == 1:
            name = as_string(f)
        else:
            skip("mnemonic", index, f)
    return Mnemonic(name)


def read_instruction(msg: WireReader, index: int) -> Instruction:
    address: Optional[int] = None
    call_target: List[int] = []
    mnemonic_index = 0
    operand_index: List[int] = []
    raw_bytes: Optional[bytes] = None
    comment_index: List[int] = []
    for f in msg.fields():
        if f.number == 1:
            address = as_uint64(f)
        elif f.number == 2:
            call_target.extend(repeated_uint64(f))
        elif f.number == 3:
            mnemonic_index = as_int32(f)
        elif f.number == 4:
            operand_index.extend(repeated_int32(f))
        elif f.number == 5:
            raw_bytes = as_bytes(f)
        elif f.number == 6:
            comment_index.extend(repeated_int32(f))
        else:
            skip("instruction", index, f)
    return Instruction(
        address=address,
        call_target=tuple(call_target),
        mnemonic_index=mnemonic_index,
        operand_index=tuple(operand_index),
        raw_bytes=raw_bytes,
        comment_index=tuple(comment_index))


def read_index_range(msg: WireReader, index: int) -> IndexRange:
    begin: Optional[int] = None
    end: Optional[int] = None
    for f in msg.fields():
        if f.number == 1:
            begin = as_int32(f)
        elif f.number == 2:
            end = as_int32(f)
        else:
            skip("basic_block", index, f)
    return IndexRange(begin, end)


def read_basic_block(msg: WireReader, index: int) -> BasicBlock:
    ranges: List[IndexRange] = []
    for f in msg.fields():
        if f.number == 1:
            ranges.append(read_index_range(as_message(f), index))
        else:
            skip("basic_block", index, f)
    return BasicBlock(tuple(ranges))


def read_flow_graph_edge(msg: WireReader, index: int) -> FlowGraphEdge:
    src: Optional[int] = None
    tgt: Optional[int] = None
    etype = FlowEdgeType.UNCONDITIONAL
    back = False
    for f in msg.fields():
        if f.number == 1:
            src = as_int32(f)
        elif f.number == 2:
            tgt = as_int32(f)
        elif f.number == 3:
            etype = enum_value(FlowEdgeType, f, "flow_graph", index, "edge.type")
        elif f.number == 4:
            back = as_bool(f)
        else:
            skip("flow_graph", index, f)
    return FlowGraphEdge(src, tgt, etype, back)


def read_flow_graph(msg: WireReader, index: int) -> FlowGraph:
    blocks: List[int] = []
    entry: Optional[int] = None
    edges: List[FlowGraphEdge] = []
    for f in msg.fields():
        if f.number == 1:
            blocks.extend(repeated_int32(f))
        elif f.number == 2:
            edges.append(read_flow_graph_edge(as_message(f), index))
        elif f.number == 3:
            entry = as_int32(f)
        else:
            skip("flow_graph", index, f)
    return FlowGraph(tuple(blocks), entry, tuple(edges))


def read_vertex(msg: WireReader, index: int) -> Vertex:
    address: Optional[int] = None
    vtype = VertexType.NORMAL
    mangled: Optional[str] = None
    demangled: Optional[str] = None
    library: Optional[int] = None
    module: Optional[int] = None
    for f in msg.fields():
        if f.number == 1:
            address = as_uint64(f)
        elif f.number == 2:
            vtype = enum_value(VertexType, f, "call_graph.vertex", index, "type")
        elif f.number == 3:
            mangled = as_string(f)
        elif f.number == 4:
            demangled = as_string(f)
        elif f.number == 5:
            library = as_int32(f)
        elif f.number == 6:
            module = as_int32(f)
        else:
            skip("call_graph.vertex", index, f)
    return Vertex(address, vtype, mangled, demangled, library, module)


def read_call_graph_edge(msg: WireReader, index: int) -> CallGraphEdge:
    src: Optional[int] = None
    tgt: Optional[int] = None
    for f in msg.fields():
        if f.number == 1:
            src = as_int32(f)
        elif f.number == 2:
            tgt = as_int32(f)
        else:
            skip("call_graph.edge", index, f)
    return CallGraphEdge(src, tgt)


def read_call_graph(msg: WireReader, cg: CallGraph) -> None:
    """Merges the vertices and edges of msg into cg."""

    for f in msg.fields():
        if f.number == 1:
            cg.vertex.append(read_vertex(as_message(f), len(cg.vertex)))
        elif f.number == 2:
            cg.edge.append(read_call_graph_edge(as_message(f), len(cg.edge)))
        else:
            skip("call_graph", 0, f)


def mk_reference_reader(table: str) -> Callable[[WireReader, int], Reference]:

    def read_reference(msg: WireReader, index: int) -> Reference:
        values: Dict[str, int] = {}
        for f in msg.fields():
            if f.number == 1:
                values["instruction_index"] = as_int32(f)
            elif f.number == 2:
                values["instruction_operand_index"] = as_int32(f)
            elif f.number == 3:
                values["operand_expression_index"] = as_int32(f)
            elif f.number == 4:
                values["string_table_index"] = as_int32(f)
            else:
                skip(table, index, f)
        return Reference(**values)

    return read_reference


def read_comment(msg: WireReader, index: int) -> Comment:
    instr: Optional[int] = None
    operand = 0
    expr = 0
    string: Optional[int] = None
    repeatable = False
    ctype = CommentType.DEFAULT
    for f in msg.fields():
        if f.number == 1:
            instr = as_int32(f)
        elif f.number == 2:
            operand = as_int32(f)
        elif f.number == 3:
            expr = as_int32(f)
        elif f.number == 4:
            string = as_int32(f)
        elif f.number == 5:
            repeatable = as_bool(f)
        elif f.number == 6:
            ctype = enum_value(CommentType, f, "comment", index, "type")
        else:
            skip("comment", index, f)
    return Comment(instr, operand, expr, string, repeatable, ctype)


def read_data_reference(msg: WireReader, index: int) -> DataReference:
    instr: Optional[int] = None
    address: Optional[int] = None
    for f in msg.fields():
        if f.number == 1:
            instr = as_int32(f)
        elif f.number == 2:
            address = as_uint64(f)
        else:
            skip("data_reference", index, f)
    return DataReference(instr, address)


def read_section(msg: WireReader, index: int) -> Section:
    address: Optional[int] = None
    size: Optional[int] = None
    flags = [False, False, False]
    for f in msg.fields():
        if f.number == 1:
            address = as_uint64(f)
        elif f.number == 2:
            size = as_uint64(f)
        elif f.number in (3, 4, 5):
            flags[f.number - 3] = as_bool(f)
        else:
            skip("section", index, f)
    return Section(address, size, flags[0], flags[1], flags[2])


def read_library(msg: WireReader, index: int) -> Library:
    is_static = False
    load_address = 0
    name: Optional[str] = None
    for f in msg.fields():
        if f.number == 1:
            is_static = as_bool(f)
        elif f.number == 2:
            load_address = as_uint64(f)
        elif f.number == 3:
            name = as_string(f)
        else:
            skip("library", index, f)
    return Library(is_static, load_address, name)


def read_module(msg: WireReader, index: int) -> Module:
    name: Optional[str] = None
    for f in msg.fields():
        if f.number == 1:
            name = as_string(f)
        else:
            skip("module", index, f)
    return Module(name)


def read_md_index(msg: WireReader, index: int) -> MDIndex:
    address: Optional[int] = None
    md: Optional[float] = None
    for f in msg.fields():
        if f.number == 1:
            address = as_uint64(f)
        elif f.number == 2:
            md = as_double(f)
        else:
            skip("md_index", index, f)
    return MDIndex(address, md)


class BinExportReader:

    def __init__(self, data: bytes) -> None:
        self._data = data

    @property
    def data(self) -> bytes:
        return self._data

    def decode(self) -> BinExport:
        """Parses and validates the message."""

        bx = self.parse()
        BinExportValidator(bx).validate()
        return bx

    def parse(self) -> BinExport:
        if len(self.data) > config.max_message_size:
            raise UE.WireFormatError(
                0,
                "message size "
                + str(len(self.data))
                + " exceeds limit "
                + str(config.max_message_size))
        bx = BinExport()
        tables: Dict[int, Callable[[WireReader], None]] = {
            W.F_EXPRESSION: lambda m: bx.expression.append(
                read_expression(m, len(bx.expression))),
            W.F_OPERAND: lambda m: bx.operand.append(
                read_operand(m, len(bx.operand))),
            W.F_MNEMONIC: lambda m: bx.mnemonic.append(
                read_mnemonic(m, len(bx.mnemonic))),
            W.F_INSTRUCTION: lambda m: bx.instruction.append(
                read_instruction(m, len(bx.instruction))),
            W.F_BASIC_BLOCK: lambda m: bx.basic_block.append(
                read_basic_block(m, len(bx.basic_block))),
            W.F_FLOW_GRAPH: lambda m: bx.flow_graph.append(
                read_flow_graph(m, len(bx.flow_graph))),
            W.F_ADDRESS_COMMENT: lambda m: bx.address_comment.append(
                mk_reference_reader("address_comment")(
                    m, len(bx.address_comment))),
            W.F_COMMENT: lambda m: bx.comment.append(
                read_comment(m, len(bx.comment))),
            W.F_STRING_REFERENCE: lambda m: bx.string_reference.append(
                mk_reference_reader("string_reference")(
                    m, len(bx.string_reference))),
            W.F_EXPRESSION_SUBSTITUTION: lambda m: bx.expression_substitution.append(
                mk_reference_reader("expression_substitution")(
                    m, len(bx.expression_substitution))),
            W.F_SECTION: lambda m: bx.section.append(
                read_section(m, len(bx.section))),
            W.F_LIBRARY: lambda m: bx.library.append(
                read_library(m, len(bx.library))),
            W.F_DATA_REFERENCE: lambda m: bx.data_reference.append(
                read_data_reference(m, len(bx.data_reference))),
            W.F_MODULE: lambda m: bx.module.append(
                read_module(m, len(bx.module))),
            W.F_MD_INDEX: lambda m: bx.md_index.append(
                read_md_index(m, len(bx.md_index)))}

        for f in WireReader(self.data).fields():
            if f.number in tables:
                tables[f.number](as_message(f))
            elif f.number == W.F_STRING_TABLE:
                bx.string_table.append(as_string(f))
            elif f.number == W.F_META_INFORMATION:
                bx.meta_information = read_meta(as_message(f))
            elif f.number == W.F_CALL_GRAPH:
                if bx.call_graph is None:
                    bx.call_graph = CallGraph()
                read_call_graph(as_message(f), bx.call_graph)
            elif config.keep_unknown_fields:
                bx.unknown_fields.append(
                    UnknownField(f.number, f.wiretype, field_payload(f)))
            else:
                skip("binexport", 0, f)

        bxlogger.logger.debug(
            "decoded binexport: %d bytes, %d instructions, %d basic blocks, "
            "%d flow graphs",
            len(self.data),
            len(bx.instruction),
            len(bx.basic_block),
            len(bx.flow_graph))
        return bx

    def decode_delimited(self) -> BinExport:
        """Decodes a message preceded by its varint length."""

        data = memoryview(self.data)
        (length, pos) = decode_varint(data, 0, len(data))
        if length != len(data) - pos:
            raise UE.WireFormatError(
                0,
                "length prefix "
                + str(length)
                + " does not match message size "
                + str(len(data) - pos))
        return BinExportReader(bytes(data[pos:])).decode()


def decode(data: bytes) -> BinExport:
    return BinExportReader(data).decode()


def decode_delimited(data: bytes) -> BinExport:
    return BinExportReader(data).decode_delimited()
