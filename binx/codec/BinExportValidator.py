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

"""Index-integrity validation of a BinExport container.

The validator runs before a container is exposed to a consumer (after
decoding) and before it is encoded. It checks that every index refers to an
existing record, that operands are well-formed expression forests, that
basic block ranges lie within the instruction table, that flow graph blocks
are sorted by address, that the call graph vertices are sorted by address,
and that addresses and immediates fit 64 bits. The first violation raises;
nothing is repaired.

Absent index fields are read as their default, 0, and checked as such.
"""

from typing import List, Optional, Sequence, Set

from binx.model.BinExport import BinExport
from binx.model.Comment import Reference
from binx.model.Instruction import resolve_instruction_addresses
from binx.util.Config import config
from binx.util.wireutil import UINT64_MASK
import binx.util.errors as UE


def idx(value: Optional[int]) -> int:
    return 0 if value is None else value


class BinExportValidator:

    def __init__(self, bx: BinExport) -> None:
        self._bx = bx
        self._addresses: List[int] = []

    @property
    def bx(self) -> BinExport:
        return self._bx

    def validate(self) -> None:
        self.validate_uniqueness()
        self.validate_value_ranges()
        self.validate_expressions()
        self.validate_operands()
        self.validate_instructions()
        self.validate_basic_blocks()
        self.validate_flow_graphs()
        self.validate_call_graph()
        self.validate_comments()
        self.validate_references("address_comment", self.bx.address_comment)
        self.validate_references("string_reference", self.bx.string_reference)
        self.validate_references(
            "expression_substitution", self.bx.expression_substitution)
        self.validate_data_references()

    def check_index(
            self,
            table: str,
            index: int,
            fieldname: str,
            value: int,
            target: str,
            size: int) -> None:
        if value < 0 or value >= size:
            raise UE.DataIntegrityError(
                table,
                index,
                fieldname,
                "index "
                + str(value)
                + " out of range for "
                + target
                + " (size: "
                + str(size)
                + ")")

    def check_uint64(
            self,
            table: str,
            index: int,
            fieldname: str,
            value: Optional[int]) -> None:
        if value is not None and not (0 <= value <= UINT64_MASK):
            raise UE.DataIntegrityError(
                table,
                index,
                fieldname,
                "value " + str(value) + " does not fit an unsigned 64-bit field")

    # --------------------------------------------------------- value ranges ---

    def validate_value_ranges(self) -> None:
        """Addresses, sizes and immediates are unsigned 64-bit values."""

        bx = self.bx
        for (i, e) in enumerate(bx.expression):
            self.check_uint64("expression", i, "immediate", e.immediate)
        for (i, instr) in enumerate(bx.instruction):
            self.check_uint64("instruction", i, "address", instr.address)
            for tgt in instr.call_target:
                self.check_uint64("instruction", i, "call_target", tgt)
        if bx.call_graph is not None:
            for (i, v) in enumerate(bx.call_graph.vertex):
                self.check_uint64("call_graph.vertex", i, "address", v.address)
        for (i, s) in enumerate(bx.section):
            self.check_uint64("section", i, "address", s.address)
            self.check_uint64("section", i, "size", s.size)
        for (i, lib) in enumerate(bx.library):
            self.check_uint64("library", i, "load_address", lib.load_address)
        for (i, d) in enumerate(bx.data_reference):
            self.check_uint64("data_reference", i, "address", d.address)
        for (i, m) in enumerate(bx.md_index):
            self.check_uint64("md_index", i, "address", m.address)

    # ----------------------------------------------------------- uniqueness ---

    def validate_uniqueness(self) -> None:
        if not config.check_uniqueness:
            return
        seen: Set[str] = set()
        for (i, s) in enumerate(self.bx.string_table):
            if s in seen:
                raise UE.DataIntegrityError(
                    "string_table", i, "value", "duplicate string")
            seen.add(s)
        names: Set[Optional[str]] = set()
        for (i, m) in enumerate(self.bx.mnemonic):
            if m.name in names:
                raise UE.DataIntegrityError(
                    "mnemonic", i, "name", "duplicate mnemonic")
            names.add(m.name)

    # ---------------------------------------------------------- expressions ---

    def validate_expressions(self) -> None:
        """Parent indices in range and parent chains acyclic."""

        exprs = self.bx.expression
        n = len(exprs)
        for (i, e) in enumerate(exprs):
            if e.parent_index is not None:
                self.check_index(
                    "expression", i, "parent_index", e.parent_index,
                    "expression", n)

        # 0: unvisited, 1: on current chain, 2: known to reach a root
        state = [0] * n
        for i in range(n):
            chain: List[int] = []
            j: Optional[int] = i
            while j is not None and state[j] == 0:
                state[j] = 1
                chain.append(j)
                j = exprs[j].parent_index
            if j is not None and state[j] == 1:
                raise UE.DataIntegrityError(
                    "expression", j, "parent_index", "cycle in parent chain")
            for k in chain:
                state[k] = 2

    def validate_operands(self) -> None:
        """Each operand is a single-rooted tree closed under parent links."""

        exprs = self.bx.expression
        n = len(exprs)
        for (i, op) in enumerate(self.bx.operand):
            if len(op.expression_index) == 0:
                raise UE.DataIntegrityError(
                    "operand", i, "expression_index", "operand has no expressions")
            for ix in op.expression_index:
                self.check_index(
                    "operand", i, "expression_index", ix, "expression", n)
            members = set(op.expression_index)
            roots = set(
                ix for ix in op.expression_index if exprs[ix].parent_index is None)
            if len(roots) != 1:
                raise UE.DataIntegrityError(
                    "operand", i, "expression_index",
                    "expected exactly one root expression, found "
                    + str(len(roots)))
            for ix in members:
                parent = exprs[ix].parent_index
                if parent is not None and parent not in members:
                    raise UE.DataIntegrityError(
                        "operand", i, "expression_index",
                        "parent "
                        + str(parent)
                        + " of expression "
                        + str(ix)
                        + " is not part of the operand")

    # --------------------------------------------------------- instructions ---

    def validate_instructions(self) -> None:
        bx = self.bx
        self._addresses = resolve_instruction_addresses(bx.instruction)
        for (i, instr) in enumerate(bx.instruction):
            self.check_index(
                "instruction", i, "mnemonic_index", instr.mnemonic_index,
                "mnemonic", len(bx.mnemonic))
            for ix in instr.operand_index:
                self.check_index(
                    "instruction", i, "operand_index", ix,
                    "operand", len(bx.operand))
            for ix in instr.comment_index:
                self.check_index(
                    "instruction", i, "comment_index", ix,
                    "comment", len(bx.comment))

    def validate_basic_blocks(self) -> None:
        n = len(self.bx.instruction)
        for (i, bb) in enumerate(self.bx.basic_block):
            if len(bb.instruction_index) == 0:
                raise UE.DataIntegrityError(
                    "basic_block", i, "instruction_index",
                    "basic block without instructions")
            for r in bb.instruction_index:
                if not (0 <= r.begin < r.end <= n):
                    raise UE.DataIntegrityError(
                        "basic_block", i, "instruction_index",
                        "invalid range "
                        + str(r)
                        + " for instruction table of size "
                        + str(n))

    # ----------------------------------------------------------- flow graphs ---

    def validate_flow_graphs(self) -> None:
        nblocks = len(self.bx.basic_block)
        if len(self._addresses) != len(self.bx.instruction):
            self._addresses = resolve_instruction_addresses(self.bx.instruction)
        for (i, fg) in enumerate(self.bx.flow_graph):
            size = len(fg.basic_block_index)
            if size == 0:
                raise UE.DataIntegrityError(
                    "flow_graph", i, "basic_block_index",
                    "flow graph without basic blocks")
            for bb in fg.basic_block_index:
                self.check_index(
                    "flow_graph", i, "basic_block_index", bb,
                    "basic_block", nblocks)
            if len(set(fg.basic_block_index)) != size:
                raise UE.DataIntegrityError(
                    "flow_graph", i, "basic_block_index",
                    "duplicate basic block")
            previous: Optional[int] = None
            for bb in fg.basic_block_index:
                address = self._addresses[
                    self.bx.basic_block[bb].first_instruction_index]
                if previous is not None and address < previous:
                    raise UE.DataIntegrityError(
                        "flow_graph", i, "basic_block_index",
                        "basic block " + str(bb) + " at " + hex(address)
                        + " is not sorted by address")
                previous = address
            self.check_index(
                "flow_graph", i, "entry_basic_block_index", fg.entry,
                "flow graph basic blocks", size)
            for e in fg.edge:
                self.check_index(
                    "flow_graph", i, "edge.source_basic_block_index",
                    e.source, "flow graph basic blocks", size)
                self.check_index(
                    "flow_graph", i, "edge.target_basic_block_index",
                    e.target, "flow graph basic blocks", size)

    # ------------------------------------------------------------ call graph ---

    def validate_call_graph(self) -> None:
        cg = self.bx.call_graph
        if cg is None:
            return
        nlibs = len(self.bx.library)
        nmodules = len(self.bx.module)
        previous: Optional[int] = None
        for (i, v) in enumerate(cg.vertex):
            if previous is not None and v.faddr < previous:
                raise UE.OrderingViolation(
                    "call_graph.vertex["
                    + str(i)
                    + "]: address "
                    + hex(v.faddr)
                    + " is smaller than the address of its predecessor "
                    + hex(previous),
                    index=i)
            previous = v.faddr
            if v.library_index is not None:
                self.check_index(
                    "call_graph.vertex", i, "library_index", v.library_index,
                    "library", nlibs)
            if v.module_index is not None:
                self.check_index(
                    "call_graph.vertex", i, "module_index", v.module_index,
                    "module", nmodules)
        nvertices = len(cg.vertex)
        for (i, e) in enumerate(cg.edge):
            self.check_index(
                "call_graph.edge", i, "source_vertex_index", e.source,
                "call_graph.vertex", nvertices)
            self.check_index(
                "call_graph.edge", i, "target_vertex_index", e.target,
                "call_graph.vertex", nvertices)

    # ---------------------------------------------- comments and references ---

    def check_location(
            self,
            table: str,
            index: int,
            instruction_index: Optional[int],
            operand_index: int,
            expression_index: int) -> None:
        """An (instruction, operand, expression) location must exist; for
        instructions without operands (or operands with a single
        expression) the defaults 0 are accepted."""

        bx = self.bx
        instr_ix = idx(instruction_index)
        self.check_index(
            table, index, "instruction_index", instr_ix,
            "instruction", len(bx.instruction))
        operands = bx.instruction[instr_ix].operand_index
        if len(operands) == 0:
            if operand_index != 0 or expression_index != 0:
                raise UE.DataIntegrityError(
                    table, index, "instruction_operand_index",
                    "instruction " + str(instr_ix) + " has no operands")
            return
        self.check_index(
            table, index, "instruction_operand_index", operand_index,
            "operands of instruction " + str(instr_ix), len(operands))
        exprs = bx.operand[operands[operand_index]].expression_index
        self.check_index(
            table, index, "operand_expression_index", expression_index,
            "expressions of operand " + str(operands[operand_index]),
            len(exprs))

    def validate_comments(self) -> None:
        nstrings = len(self.bx.string_table)
        for (i, c) in enumerate(self.bx.comment):
            self.check_location(
                "comment", i, c.instruction_index,
                c.instruction_operand_index, c.operand_expression_index)
            self.check_index(
                "comment", i, "string_table_index", idx(c.string_table_index),
                "string_table", nstrings)

    def validate_references(
            self, table: str, references: Sequence[Reference]) -> None:
        nstrings = len(self.bx.string_table)
        for (i, r) in enumerate(references):
            self.check_location(
                table, i, r.instruction_index,
                r.instruction_operand_index, r.operand_expression_index)
            self.check_index(
                table, i, "string_table_index", idx(r.string_table_index),
                "string_table", nstrings)

    def validate_data_references(self) -> None:
        ninstrs = len(self.bx.instruction)
        for (i, d) in enumerate(self.bx.data_reference):
            self.check_index(
                "data_reference", i, "instruction_index",
                idx(d.instruction_index), "instruction", ninstrs)
