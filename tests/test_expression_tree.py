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
Tests for flattening operand expression trees into the shared expression
and operand tables, and for rendering them back as text.
"""

import pytest

from binx.builder.ExpressionTreeBuilder import (
    ExpressionTreeBuilder,
    mk_dereference,
    mk_immediate,
    mk_operator,
    mk_register,
    mk_size_prefix,
    mk_symbol)
from binx.model.BinExport import BinExport
from binx.model.Expression import Expression, ExpressionType, Operand
from binx.util.IndexedTable import IndexedTable
import binx.util.errors as UE


def mk_builder() -> ExpressionTreeBuilder:
    return ExpressionTreeBuilder(IndexedTable("expression"), IndexedTable("operand"))


def memory_operand():
    return mk_size_prefix(
        "b4",
        mk_dereference(
            mk_operator("+", mk_register("ebx"), mk_immediate(12))))


class TestExpressionTreeBuilder:

    def test_preorder_and_parents(self):
        b = mk_builder()
        indices = b.build(memory_operand())
        assert indices == [0, 1, 2, 3, 4]
        exprs = b.expression_table.values()
        assert [e.type for e in exprs] == [
            ExpressionType.SIZE_PREFIX,
            ExpressionType.DEREFERENCE,
            ExpressionType.OPERATOR,
            ExpressionType.REGISTER,
            ExpressionType.IMMEDIATE_INT]
        assert [e.parent_index for e in exprs] == [None, 0, 1, 2, 2]
        assert exprs[4].immediate == 12

    def test_equal_trees_share_expressions(self):
        b = mk_builder()
        op1 = b.build_operand(memory_operand())
        op2 = b.build_operand(memory_operand())
        assert op1 == op2
        assert b.expression_table.size() == 5
        assert b.operand_table.size() == 1

    def test_equal_leaves_under_different_parents(self):
        b = mk_builder()
        b.build_operand(mk_register("eax"))
        b.build_operand(mk_dereference(mk_register("eax")))
        # the register below the dereference has a parent, so it differs
        assert b.expression_table.size() == 3
        assert b.operand_table.retrieve(0) == Operand((0,))
        assert b.operand_table.retrieve(1) == Operand((1, 2))

    def test_multiple_roots_rejected(self):
        b = mk_builder()
        with pytest.raises(UE.DataIntegrityError) as excinfo:
            b.build([mk_register("eax"), mk_register("ebx")])
        assert excinfo.value.table == "expression"

    def test_no_root_rejected(self):
        b = mk_builder()
        with pytest.raises(UE.DataIntegrityError):
            b.build([])

    def test_shared_node_rejected(self):
        b = mk_builder()
        eax = mk_register("eax")
        with pytest.raises(UE.DataIntegrityError):
            b.build(mk_operator("+", eax, eax))

    def test_cycle_rejected(self):
        b = mk_builder()
        plus = mk_operator("+", mk_register("eax"))
        plus.add(plus)
        with pytest.raises(UE.DataIntegrityError):
            b.build(plus)


class TestOperandText:

    def render(self, tree) -> str:
        b = mk_builder()
        op = b.build_operand(tree)
        bx = BinExport(
            expression=b.expression_table.values(),
            operand=b.operand_table.values())
        return bx.operand_text(op)

    def test_register(self):
        assert self.render(mk_register("eax")) == "eax"

    def test_memory_operand(self):
        assert self.render(memory_operand()) == "b4 [ebx+0xc]"

    def test_symbolic_immediate(self):
        assert self.render(mk_immediate(0x401000, "start")) == "start"

    def test_symbol(self):
        assert self.render(mk_symbol("printf", 0x401000)) == "printf"

    def test_unary_operator(self):
        assert self.render(mk_operator("-", mk_immediate(1, "1"))) == "-1"

    def test_sibling_order(self):
        tree = mk_dereference(
            mk_operator(
                "+",
                mk_register("esi"),
                mk_operator("*", mk_register("ecx"), mk_immediate(4, "4"))))
        assert self.render(tree) == "[esi+ecx*4]"

    def test_repeated_subtree(self):
        tree = mk_operator(
            "+",
            mk_dereference(mk_register("eax")),
            mk_dereference(mk_register("eax")))
        b = mk_builder()
        op = b.build_operand(tree)
        # the second [eax] reuses the expressions of the first
        assert b.operand_table.retrieve(op) == Operand((0, 1, 2, 1, 2))
        assert self.render(tree) == "[eax]+[eax]"

    def test_repeated_leaf(self):
        tree = mk_operator("*", mk_register("ecx"), mk_register("ecx"))
        assert self.render(tree) == "ecx*ecx"

    def test_expression_str(self):
        assert str(Expression(immediate=255)) == "0xff"
        assert str(Expression(ExpressionType.REGISTER, symbol="r0")) == "r0"
