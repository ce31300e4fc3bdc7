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

"""Flattens operand expression trees into interned expression records.

A producer describes each operand as a tree of ExpressionNode objects. The
builder walks the tree in pre-order and interns one Expression per node,
keyed by its content and the index of its (already interned) parent. Equal
subtrees under equal parents thus map to the same expression indices, which
keeps every operand a well-formed forest while sharing storage.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple, Union

from binx.model.Expression import Expression, ExpressionType, Operand
from binx.util.IndexedTable import IndexedTable
from binx.util.wireutil import UINT64_MASK
import binx.util.errors as UE


@dataclass(eq=False)
class ExpressionNode:
    """Expression tree node as supplied by a disassembly producer.

    Children are listed in left-to-right rendering order.
    """

    type: ExpressionType = ExpressionType.IMMEDIATE_INT
    symbol: Optional[str] = None
    immediate: Optional[int] = None
    is_relocation: bool = False
    children: List["ExpressionNode"] = field(default_factory=list)

    def add(self, child: "ExpressionNode") -> "ExpressionNode":
        self.children.append(child)
        return self


def uint64_immediate(value: Optional[int]) -> Optional[int]:
    """Negative immediates (e.g., mov eax, -1) are stored in two's complement.

    Values below -2**63 are left as they are and rejected by validation.
    """

    if value is not None and -(1 << 63) <= value < 0:
        return value & UINT64_MASK
    return value


def mk_register(name: str) -> ExpressionNode:
    return ExpressionNode(ExpressionType.REGISTER, symbol=name)


def mk_immediate(value: int, symbol: Optional[str] = None) -> ExpressionNode:
    return ExpressionNode(
        ExpressionType.IMMEDIATE_INT, symbol=symbol, immediate=value)


def mk_symbol(name: str, address: Optional[int] = None) -> ExpressionNode:
    return ExpressionNode(ExpressionType.SYMBOL, symbol=name, immediate=address)


def mk_operator(op: str, *args: ExpressionNode) -> ExpressionNode:
    return ExpressionNode(ExpressionType.OPERATOR, symbol=op, children=list(args))


def mk_dereference(arg: ExpressionNode, bracket: str = "[") -> ExpressionNode:
    return ExpressionNode(
        ExpressionType.DEREFERENCE, symbol=bracket, children=[arg])


def mk_size_prefix(prefix: str, arg: ExpressionNode) -> ExpressionNode:
    return ExpressionNode(
        ExpressionType.SIZE_PREFIX, symbol=prefix, children=[arg])


class ExpressionTreeBuilder:

    def __init__(
            self,
            expression_table: IndexedTable[Expression],
            operand_table: IndexedTable[Operand]) -> None:
        self._expression_table = expression_table
        self._operand_table = operand_table

    @property
    def expression_table(self) -> IndexedTable[Expression]:
        return self._expression_table

    @property
    def operand_table(self) -> IndexedTable[Operand]:
        return self._operand_table

    def build(
            self,
            tree: Union[ExpressionNode, Sequence[ExpressionNode]]) -> List[int]:
        """Returns the expression indices of the tree in pre-order.

        Raises DataIntegrityError if the input has no root or more than one
        root, or if a node is reachable more than once (a cycle or a node
        shared between two parents).
        """

        if isinstance(tree, ExpressionNode):
            roots: Sequence[ExpressionNode] = [tree]
        else:
            roots = tree
        if len(roots) != 1:
            raise UE.DataIntegrityError(
                "expression", None, "parent_index",
                "operand tree must have exactly one root, found "
                + str(len(roots)))

        result: List[int] = []
        seen: Set[int] = set()
        stack: List[Tuple[ExpressionNode, Optional[int]]] = [(roots[0], None)]
        while stack:
            (node, parent) = stack.pop()
            if id(node) in seen:
                raise UE.DataIntegrityError(
                    "expression", None, "parent_index",
                    "node "
                    + repr(node.symbol)
                    + " is reachable more than once (cycle or shared node)")
            seen.add(id(node))
            index = self.expression_table.add(
                Expression(
                    type=node.type,
                    symbol=node.symbol,
                    immediate=uint64_immediate(node.immediate),
                    parent_index=parent,
                    is_relocation=node.is_relocation))
            result.append(index)
            for child in reversed(node.children):
                stack.append((child, index))
        return result

    def build_operand(
            self,
            tree: Union[ExpressionNode, Sequence[ExpressionNode]]) -> int:
        """Interns the operand formed by the expressions of the tree."""

        return self.operand_table.add(Operand(tuple(self.build(tree))))
