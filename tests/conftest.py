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

from binx.builder.BinExportBuilder import BinExportBuilder
from binx.builder.ExpressionTreeBuilder import mk_immediate, mk_register
from binx.builder.FlowGraphBuilder import FlowGraphBuilder
from binx.model.FlowGraph import FlowEdgeType


@pytest.fixture
def minimal_builder() -> BinExportBuilder:
    """One function at 0x1000 consisting of mov eax, 1."""

    b = BinExportBuilder()
    b.add_instruction(
        0x1000,
        bytes.fromhex("b801000000"),
        "mov",
        [mk_register("eax"), mk_immediate(1)])
    bb = b.add_basic_block([0x1000])
    fg = FlowGraphBuilder(0x1000)
    fg.add_basic_block(bb)
    b.add_flow_graph(fg)
    b.add_function(0x1000, mangled_name="f")
    return b


@pytest.fixture
def loop_builder() -> BinExportBuilder:
    """Function at 0x1000 with blocks A -> B, B -> A (true), B -> C (false).

       A: 0x1000  inc eax
       B: 0x1001  cmp eax, 10
          0x1004  jl 0x1000
       C: 0x1006  ret
    """

    b = BinExportBuilder()
    b.add_instruction(0x1000, b"\x40", "inc", [mk_register("eax")])
    b.add_instruction(
        0x1001, b"\x83\xf8\x0a", "cmp", [mk_register("eax"), mk_immediate(10)])
    b.add_instruction(0x1004, b"\x7c\xfa", "jl", [mk_immediate(0x1000)])
    b.add_instruction(0x1006, b"\xc3", "ret")
    a = b.add_basic_block([0x1000])
    bb = b.add_basic_block([0x1001, 0x1004])
    c = b.add_basic_block([0x1006])
    fg = FlowGraphBuilder(0x1000)
    fg.add_edge(a, bb)
    fg.add_edge(bb, a, FlowEdgeType.CONDITION_TRUE)
    fg.add_edge(bb, c, FlowEdgeType.CONDITION_FALSE)
    b.add_flow_graph(fg)
    b.add_function(0x1000, mangled_name="loop")
    return b
