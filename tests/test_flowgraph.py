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
Tests for flow graph assembly: block ordering, entry resolution, edge
classification, and back-edge detection through dominators.
"""

import pytest

from binx.builder.FlowGraphBuilder import FlowGraphBuilder
from binx.model.FlowGraph import FlowEdgeType
from binx.util.graphutil import DirectedGraph
import binx.util.errors as UE


# global basic block index -> instruction addresses
BLOCKS = {
    0: [0x1000, 0x1002],
    1: [0x1004],
    2: [0x1008, 0x100a],
    3: [0x100c]}


def block_addresses(bb: int):
    return BLOCKS[bb]


class TestDirectedGraph:

    def test_diamond(self):
        g = DirectedGraph(4, [(0, 1), (0, 2), (1, 3), (2, 3)], 0)
        assert g.idoms == [-1, 0, 0, 0]
        assert g.dominates(0, 3)
        assert not g.dominates(1, 3)
        assert g.dominates(3, 3)

    def test_loop(self):
        g = DirectedGraph(3, [(0, 1), (1, 0), (1, 2)], 0)
        assert g.is_back_edge(1, 0)
        assert not g.is_back_edge(0, 1)
        assert not g.is_back_edge(1, 2)

    def test_retreating_edge_into_loop_without_dominance(self):
        # 0 -> 1, 0 -> 2, 1 -> 2, 2 -> 1: irreducible, no back edges
        g = DirectedGraph(3, [(0, 1), (0, 2), (1, 2), (2, 1)], 0)
        assert not g.is_back_edge(2, 1)
        assert not g.is_back_edge(1, 2)

    def test_unreachable_node(self):
        g = DirectedGraph(3, [(0, 1), (2, 1)], 0)
        assert not g.is_reachable(2)
        assert not g.dominates(2, 1)
        assert g.idom(1) == 0

    def test_deep_chain(self):
        n = 20000
        edges = [(i, i + 1) for i in range(n - 1)] + [(n - 1, 0)]
        g = DirectedGraph(n, edges, 0)
        assert g.is_back_edge(n - 1, 0)
        assert g.idom(n - 1) == n - 2


class TestFlowGraphBuilder:

    def test_blocks_sorted_by_address(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_edge(2, 0)
        fg.add_edge(0, 1)
        result = fg.build(block_addresses)
        assert result.basic_block_index == (0, 1, 2)
        assert result.entry == 0
        assert [(e.source, e.target) for e in result.edge] == [(0, 1), (2, 0)]

    def test_entry_is_not_first_block(self):
        fg = FlowGraphBuilder(0x1008)
        fg.add_edge(2, 0)
        result = fg.build(block_addresses)
        assert result.basic_block_index == (0, 2)
        assert result.entry == 1
        assert result.entry_block == 2

    def test_entry_inside_block(self):
        fg = FlowGraphBuilder(0x1002)
        fg.add_basic_block(0)
        assert fg.build(block_addresses).entry == 0

    def test_missing_entry(self):
        fg = FlowGraphBuilder(0x5000)
        fg.add_basic_block(0)
        with pytest.raises(UE.DataIntegrityError):
            fg.build(block_addresses)

    def test_no_blocks(self):
        with pytest.raises(UE.DataIntegrityError):
            FlowGraphBuilder(0x1000).build(block_addresses)

    def test_back_edge(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_edge(0, 1)
        fg.add_edge(1, 0, FlowEdgeType.CONDITION_TRUE)
        fg.add_edge(1, 2, FlowEdgeType.CONDITION_FALSE)
        result = fg.build(block_addresses)
        back = [(e.source, e.target) for e in result.back_edges()]
        assert back == [(1, 0)]
        assert result.successors(1) == [0, 2]

    def test_duplicate_edges_collapse(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_edge(0, 1)
        fg.add_edge(0, 1)
        assert len(fg.build(block_addresses).edge) == 1

    def test_conditional_branch(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_branch(0, [2], fallthrough=1)
        assert fg.edges == [
            (0, 2, FlowEdgeType.CONDITION_TRUE),
            (0, 1, FlowEdgeType.CONDITION_FALSE)]

    def test_unconditional_branch(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_branch(0, [3])
        fg.add_branch(1, [], fallthrough=2)
        assert [t for (_, _, t) in fg.edges] == [
            FlowEdgeType.UNCONDITIONAL, FlowEdgeType.UNCONDITIONAL]

    def test_switch(self):
        fg = FlowGraphBuilder(0x1000)
        fg.add_branch(0, [1, 2, 3])
        assert all(t == FlowEdgeType.SWITCH for (_, _, t) in fg.edges)
        assert len(fg.edges) == 3


class TestFlowGraphFromBuilder:

    def test_loop_function(self, loop_builder):
        bx = loop_builder.build()
        (fg,) = bx.flow_graph
        assert fg.entry == 0
        assert bx.flow_graph_entry_address(0) == 0x1000
        edges = {(e.source, e.target): e for e in fg.edge}
        assert edges[(1, 0)].is_back_edge
        assert edges[(1, 0)].type == FlowEdgeType.CONDITION_TRUE
        assert not edges[(0, 1)].is_back_edge
        assert not edges[(1, 2)].is_back_edge
        assert bx.basic_block_instructions(fg.basic_block_index[1]) == [1, 2]
