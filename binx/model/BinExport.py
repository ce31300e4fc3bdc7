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

"""Top-level container owning all tables of a disassembled executable.

All cross references are integer indices into sibling tables of this
container. A container obtained from the reader or from the builder has been
validated; consumers may then use the lookup methods below without further
bounds checks.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from binx.model.Auxiliary import (
    Library, MDIndex, Meta, Module, Section, UnknownField)
from binx.model.BasicBlock import BasicBlock
from binx.model.CallGraph import CallGraph
from binx.model.Comment import Comment, DataReference, Reference
from binx.model.Expression import (
    Expression, ExpressionType, Mnemonic, Operand)
from binx.model.FlowGraph import FlowGraph
from binx.model.Instruction import Instruction, resolve_instruction_addresses


closing_brackets = {"[": "]", "{": "}", "(": ")"}


def render_expression(expr: Expression, children: List[str]) -> str:
    if expr.type == ExpressionType.OPERATOR:
        op = expr.symbol or ""
        if len(children) == 1:
            return op + children[0]
        return op.join(children)
    if expr.type == ExpressionType.DEREFERENCE:
        opening = expr.symbol or "["
        return (
            opening
            + "".join(children)
            + closing_brackets.get(opening, ""))
    if expr.type == ExpressionType.SIZE_PREFIX:
        return " ".join([expr.symbol or ""] + children)
    return str(expr) + "".join(children)


@dataclass
class BinExport:
    meta_information: Optional[Meta] = None
    expression: List[Expression] = field(default_factory=list)
    operand: List[Operand] = field(default_factory=list)
    mnemonic: List[Mnemonic] = field(default_factory=list)
    instruction: List[Instruction] = field(default_factory=list)
    basic_block: List[BasicBlock] = field(default_factory=list)
    flow_graph: List[FlowGraph] = field(default_factory=list)
    call_graph: Optional[CallGraph] = None
    string_table: List[str] = field(default_factory=list)
    address_comment: List[Reference] = field(default_factory=list)
    comment: List[Comment] = field(default_factory=list)
    string_reference: List[Reference] = field(default_factory=list)
    expression_substitution: List[Reference] = field(default_factory=list)
    section: List[Section] = field(default_factory=list)
    library: List[Library] = field(default_factory=list)
    data_reference: List[DataReference] = field(default_factory=list)
    module: List[Module] = field(default_factory=list)
    md_index: List[MDIndex] = field(default_factory=list)
    unknown_fields: List[UnknownField] = field(default_factory=list)

    _addresses: Optional[List[int]] = field(
        default=None, init=False, repr=False, compare=False)

    # ------------------------------------------------------------- lookups ---

    def string(self, ix: int) -> str:
        return self.string_table[ix]

    def mnemonic_name(self, instr_ix: int) -> str:
        return str(self.mnemonic[self.instruction[instr_ix].mnemonic_index])

    def operand_expressions(self, op_ix: int) -> List[Expression]:
        return [self.expression[i] for i in self.operand[op_ix].expression_index]

    def instruction_operands(self, instr_ix: int) -> List[Operand]:
        return [self.operand[i] for i in self.instruction[instr_ix].operand_index]

    @property
    def instruction_addresses(self) -> List[int]:
        if self._addresses is None:
            self._addresses = resolve_instruction_addresses(self.instruction)
        return self._addresses

    def instruction_address(self, instr_ix: int) -> int:
        return self.instruction_addresses[instr_ix]

    def basic_block_instructions(self, bb_ix: int) -> List[int]:
        return self.basic_block[bb_ix].instruction_indices()

    def basic_block_address(self, bb_ix: int) -> int:
        return self.instruction_address(
            self.basic_block[bb_ix].first_instruction_index)

    def flow_graph_entry_address(self, fg_ix: int) -> int:
        return self.basic_block_address(self.flow_graph[fg_ix].entry_block)

    def vertex_index(self, address: int) -> Optional[int]:
        if self.call_graph is None:
            return None
        return self.call_graph.vertex_index(address)

    def invalidate_caches(self) -> None:
        self._addresses = None

    # -------------------------------------------------------------- printing ---

    def operand_text(self, op_ix: int) -> str:
        """Renders the expression tree of an operand (e.g., [ebx+12])."""

        # Nodes are positions in the pre-order expression list: an index that
        # repeats is a repeated subtree (e.g., [eax]+[eax]), and a child
        # belongs to the closest preceding occurrence of its parent.
        exprs = self.operand[op_ix].expression_index
        first: Dict[int, int] = {}
        for (pos, ix) in enumerate(exprs):
            first.setdefault(ix, pos)
        last: Dict[int, int] = {}
        children: Dict[int, List[int]] = {}
        root: Optional[int] = None
        for (pos, ix) in enumerate(exprs):
            parent = self.expression[ix].parent_index
            if parent is None:
                if root is None:
                    root = pos
            else:
                ppos = last.get(parent, first.get(parent))
                if ppos is not None:
                    children.setdefault(ppos, []).append(pos)
            last[ix] = pos
        if root is None:
            return ""

        text: Dict[int, str] = {}
        stack: List[Tuple[int, bool]] = [(root, False)]
        while stack:
            (pos, expanded) = stack.pop()
            if pos in text:
                continue
            if not expanded:
                stack.append((pos, True))
                for c in children.get(pos, []):
                    if c not in text:
                        stack.append((c, False))
                continue
            subs = [text[c] for c in children.get(pos, []) if c in text]
            text[pos] = render_expression(self.expression[exprs[pos]], subs)
        return text[root]

    def instruction_text(self, instr_ix: int) -> str:
        operands = [
            self.operand_text(i)
            for i in self.instruction[instr_ix].operand_index]
        return (self.mnemonic_name(instr_ix) + " " + ", ".join(operands)).strip()

    def __str__(self) -> str:
        lines: List[str] = []
        lines.append("strings     : " + str(len(self.string_table)))
        lines.append("mnemonics   : " + str(len(self.mnemonic)))
        lines.append("expressions : " + str(len(self.expression)))
        lines.append("operands    : " + str(len(self.operand)))
        lines.append("instructions: " + str(len(self.instruction)))
        lines.append("basic blocks: " + str(len(self.basic_block)))
        lines.append("flow graphs : " + str(len(self.flow_graph)))
        if self.call_graph is not None:
            lines.append(
                "call graph  : "
                + str(self.call_graph.vertexcount)
                + " vertices, "
                + str(self.call_graph.edgecount)
                + " edges")
        lines.append("comments    : " + str(len(self.comment)))
        return "\n".join(lines)
