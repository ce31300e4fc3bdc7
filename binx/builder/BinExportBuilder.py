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

"""Incremental construction of a BinExport container.

The builder is shared by the disassembly workers of one executable. All add
methods may be called concurrently: the shared tables serialize insertion
internally, and per-function flow graphs are assembled by the workers in
their own FlowGraphBuilder. build() is the final single-threaded step: it
sorts and resolves the call graph, reorders the mnemonics by frequency,
produces the instruction records, validates the result, and freezes the
builder. A build that fails validation leaves the builder open.

Calls are derived from the call targets of the instructions of every flow
graph (one call graph edge per call site); add_call adds calls for code
that is not covered by a flow graph.
"""

import threading

from typing import List, Optional, Sequence, Tuple

from binx.builder.BasicBlockTable import BasicBlockTable
from binx.builder.CallGraphBuilder import CallGraphBuilder
from binx.builder.CommentTable import CommentTable, ReferenceTable
from binx.builder.ExpressionTreeBuilder import (
    ExpressionNode, ExpressionTreeBuilder)
from binx.builder.FlowGraphBuilder import FlowGraphBuilder
from binx.builder.InstructionTable import InstructionTable
from binx.codec.BinExportValidator import BinExportValidator
from binx.model.Auxiliary import Library, MDIndex, Meta, Module, Section
from binx.model.BinExport import BinExport
from binx.model.CallGraph import VertexType
from binx.model.Comment import CommentType, DataReference
from binx.model.Expression import Expression, Mnemonic, Operand
from binx.model.FlowGraph import FlowGraph
from binx.util.IndexedTable import IndexedTable
from binx.util.StringIndexedTable import StringIndexedTable
from binx.util.loggingutil import bxlogger
import binx.util.errors as UE


class BinExportBuilder:

    def __init__(self) -> None:
        self.string_table = StringIndexedTable("string_table")
        self.mnemonic_table = StringIndexedTable("mnemonic")
        self.expression_table: IndexedTable[Expression] = IndexedTable(
            "expression")
        self.operand_table: IndexedTable[Operand] = IndexedTable("operand")
        self.instruction_table = InstructionTable(self.mnemonic_table)
        self.basic_block_table = BasicBlockTable()
        self.callgraph_builder = CallGraphBuilder()
        self.comment_table = CommentTable(self.string_table)
        self.string_reference_table = ReferenceTable(
            "string_reference", self.string_table)
        self.expression_substitution_table = ReferenceTable(
            "expression_substitution", self.string_table)
        self.data_reference_table: IndexedTable[DataReference] = IndexedTable(
            "data_reference")
        self.section_table: IndexedTable[Section] = IndexedTable("section")
        self.library_table: IndexedTable[Library] = IndexedTable("library")
        self.module_table: IndexedTable[Module] = IndexedTable("module")
        self.expression_builder = ExpressionTreeBuilder(
            self.expression_table, self.operand_table)
        self._md_indices: List[MDIndex] = []
        self._flowgraphs: List[FlowGraphBuilder] = []
        self._meta: Optional[Meta] = None
        self._lock = threading.Lock()
        self._result: Optional[BinExport] = None

    @property
    def is_frozen(self) -> bool:
        return self._result is not None

    def _check_not_frozen(self) -> None:
        if self._result is not None:
            raise UE.BXError("BinExportBuilder: builder is frozen after build")

    # ------------------------------------------------------ producer input ---

    def set_meta(
            self,
            executable_name: Optional[str] = None,
            executable_id: Optional[str] = None,
            architecture_name: Optional[str] = None,
            timestamp: Optional[int] = None) -> None:
        self._check_not_frozen()
        self._meta = Meta(
            executable_name=executable_name,
            executable_id=executable_id,
            architecture_name=architecture_name,
            timestamp=timestamp)

    def add_instruction(
            self,
            address: int,
            raw_bytes: bytes,
            mnemonic: str,
            operands: Sequence[ExpressionNode] = (),
            call_targets: Sequence[int] = ()) -> int:
        """Adds an instruction with its operand expression trees.

        Returns the instruction index. Adding the same instruction again
        (e.g., from a second function sharing the block) returns the index of
        the stored instruction.
        """

        self._check_not_frozen()
        operand_index = [
            self.expression_builder.build_operand(op) for op in operands]
        return self.instruction_table.add(
            address, raw_bytes, mnemonic, operand_index, call_targets)

    def instruction_index(self, address: int) -> int:
        index = self.instruction_table.index_of(address)
        if index is None:
            raise UE.DataIntegrityError(
                "instruction", None, "address",
                "no instruction at address " + hex(address))
        return index

    def add_basic_block(self, addresses: Sequence[int]) -> int:
        """Adds a basic block given the addresses of its instructions."""

        self._check_not_frozen()
        return self.basic_block_table.add_block(
            [self.instruction_index(a) for a in addresses])

    def add_basic_block_indices(self, indices: Sequence[int]) -> int:
        self._check_not_frozen()
        for ix in indices:
            if ix >= self.instruction_table.size():
                raise UE.DataIntegrityError(
                    "basic_block", None, "instruction_index",
                    "instruction index " + str(ix) + " out of range")
        return self.basic_block_table.add_block(indices)

    def add_flow_graph(self, flowgraph: FlowGraphBuilder) -> None:
        self._check_not_frozen()
        for bb in flowgraph.blocks:
            if bb < 0 or bb >= self.basic_block_table.size():
                raise UE.DataIntegrityError(
                    "flow_graph", None, "basic_block_index",
                    "basic block " + str(bb) + " out of range")
        with self._lock:
            self._flowgraphs.append(flowgraph)

    def add_function(
            self,
            address: int,
            vtype: VertexType = VertexType.NORMAL,
            mangled_name: Optional[str] = None,
            demangled_name: Optional[str] = None,
            library_index: Optional[int] = None,
            module_index: Optional[int] = None) -> None:
        self._check_not_frozen()
        self.callgraph_builder.add_vertex(
            address,
            vtype=vtype,
            mangled_name=mangled_name,
            demangled_name=demangled_name,
            library_index=library_index,
            module_index=module_index)

    def add_call(self, src_address: int, tgt_address: int) -> None:
        self._check_not_frozen()
        self.callgraph_builder.add_call(src_address, tgt_address)

    def add_comment(
            self,
            address: int,
            text: str,
            operand_index: int = 0,
            expression_index: int = 0,
            repeatable: bool = False,
            ctype: CommentType = CommentType.DEFAULT) -> int:
        self._check_not_frozen()
        instr_ix = self.instruction_index(address)
        comment_ix = self.comment_table.add_comment(
            instr_ix,
            text,
            operand_index=operand_index,
            expression_index=expression_index,
            repeatable=repeatable,
            ctype=ctype)
        self.instruction_table.add_comment(instr_ix, comment_ix)
        return comment_ix

    def add_string_reference(
            self,
            address: int,
            text: str,
            operand_index: int = 0,
            expression_index: int = 0) -> int:
        self._check_not_frozen()
        return self.string_reference_table.add_reference(
            self.instruction_index(address), text, operand_index, expression_index)

    def add_expression_substitution(
            self,
            address: int,
            text: str,
            operand_index: int = 0,
            expression_index: int = 0) -> int:
        self._check_not_frozen()
        return self.expression_substitution_table.add_reference(
            self.instruction_index(address), text, operand_index, expression_index)

    def add_data_reference(self, address: int, target: int) -> int:
        self._check_not_frozen()
        return self.data_reference_table.add(
            DataReference(
                instruction_index=self.instruction_index(address),
                address=target))

    def add_section(
            self,
            address: int,
            size: int,
            flag_r: bool = False,
            flag_w: bool = False,
            flag_x: bool = False) -> int:
        self._check_not_frozen()
        return self.section_table.add(
            Section(address, size, flag_r, flag_w, flag_x))

    def add_library(
            self,
            name: str,
            is_static: bool = False,
            load_address: int = 0) -> int:
        self._check_not_frozen()
        return self.library_table.add(
            Library(is_static=is_static, load_address=load_address, name=name))

    def add_module(self, name: str) -> int:
        self._check_not_frozen()
        return self.module_table.add(Module(name=name))

    def add_md_index(self, address: int, md_index: float) -> None:
        self._check_not_frozen()
        with self._lock:
            self._md_indices.append(MDIndex(address=address, md_index=md_index))

    # --------------------------------------------------------------- build ---

    def block_addresses(self, bb_index: int) -> List[int]:
        block = self.basic_block_table.retrieve(bb_index)
        return [
            self.instruction_table.address(i)
            for i in block.instruction_indices()]

    def _build_flow_graphs(
            self,
            calls: List[Tuple[int, int]]) -> List[FlowGraph]:
        """Builds the flow graphs sorted by entry address and collects the
        calls made from their instructions."""

        flowgraphs: List[FlowGraph] = []
        for fgb in self._flowgraphs:
            fg = fgb.build(self.block_addresses)
            callsites: List[int] = []
            for bb in fg.basic_block_index:
                callsites.extend(
                    self.basic_block_table.retrieve(bb).instruction_indices())
            for ix in sorted(set(callsites)):
                for tgt in self.instruction_table.entry(ix).call_target:
                    calls.append((fgb.entry_address, tgt))
            flowgraphs.append(fg)
        entry = [
            self.block_addresses(fg.entry_block)[0] for fg in flowgraphs]
        order = sorted(range(len(flowgraphs)), key=lambda i: entry[i])
        return [flowgraphs[i] for i in order]

    def build(self) -> BinExport:
        """Assembles, validates and freezes the container.

        If validation fails the builder stays open: the producer may add
        the missing records and call build() again.
        """

        with self._lock:
            if self._result is not None:
                return self._result
            calls: List[Tuple[int, int]] = []
            flowgraphs = self._build_flow_graphs(calls)
            callgraph = self.callgraph_builder.resolve(
                [fgb.entry_address for fgb in self._flowgraphs], calls)

            order = self.instruction_table.mnemonic_order()
            remap = [0] * len(order)
            for (newix, oldix) in enumerate(order):
                remap[oldix] = newix
            names = self.mnemonic_table.values()
            mnemonics = [Mnemonic(names[oldix]) for oldix in order]

            result = BinExport(
                meta_information=self._meta,
                expression=self.expression_table.values(),
                operand=self.operand_table.values(),
                mnemonic=mnemonics,
                instruction=self.instruction_table.records(remap),
                basic_block=self.basic_block_table.values(),
                flow_graph=flowgraphs,
                call_graph=callgraph,
                string_table=self.string_table.values(),
                comment=self.comment_table.values(),
                string_reference=self.string_reference_table.values(),
                expression_substitution=(
                    self.expression_substitution_table.values()),
                section=self.section_table.values(),
                library=self.library_table.values(),
                data_reference=self.data_reference_table.values(),
                module=self.module_table.values(),
                md_index=list(self._md_indices))
            BinExportValidator(result).validate()
            self.callgraph_builder.freeze(callgraph)
            bxlogger.logger.debug(
                "built binexport: %d instructions, %d basic blocks, "
                "%d flow graphs, %d functions",
                len(result.instruction),
                len(result.basic_block),
                len(result.flow_graph),
                callgraph.vertexcount)
            self._result = result
            return result
