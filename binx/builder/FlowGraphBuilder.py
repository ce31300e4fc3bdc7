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

"""Assembles the control flow graph of a single function.

A FlowGraphBuilder is local to the worker producing the function and needs
no synchronization. Blocks and edges are given in terms of global basic
block indices; build() sorts the blocks by address, localizes the edges to
positions within the flow graph, and flags back edges.
"""

from typing import Callable, List, Optional, Sequence, Set, Tuple

from binx.model.FlowGraph import FlowEdgeType, FlowGraph, FlowGraphEdge
from binx.util.graphutil import DirectedGraph
import binx.util.errors as UE


class FlowGraphBuilder:

    def __init__(self, entry_address: int) -> None:
        self._entry_address = entry_address
        self._blocks: List[int] = []
        self._blockset: Set[int] = set()
        self._edges: List[Tuple[int, int, FlowEdgeType]] = []
        self._edgeset: Set[Tuple[int, int, FlowEdgeType]] = set()

    @property
    def entry_address(self) -> int:
        return self._entry_address

    @property
    def blocks(self) -> List[int]:
        return self._blocks

    @property
    def edges(self) -> List[Tuple[int, int, FlowEdgeType]]:
        return self._edges

    def add_basic_block(self, bb_index: int) -> None:
        if bb_index not in self._blockset:
            self._blockset.add(bb_index)
            self._blocks.append(bb_index)

    def add_edge(
            self,
            src: int,
            tgt: int,
            edgetype: FlowEdgeType = FlowEdgeType.UNCONDITIONAL) -> None:
        self.add_basic_block(src)
        self.add_basic_block(tgt)
        edge = (src, tgt, edgetype)
        if edge not in self._edgeset:
            self._edgeset.add(edge)
            self._edges.append(edge)

    def add_branch(
            self,
            src: int,
            targets: Sequence[int],
            fallthrough: Optional[int] = None) -> None:
        """Adds the outgoing edges of a block, classified by branch kind.

        - a single successor: unconditional
        - a fallthrough and one branch target: condition false/true
        - more successors: switch
        """

        if fallthrough is not None and len(targets) == 1:
            self.add_edge(src, targets[0], FlowEdgeType.CONDITION_TRUE)
            self.add_edge(src, fallthrough, FlowEdgeType.CONDITION_FALSE)
        elif fallthrough is not None and len(targets) == 0:
            self.add_edge(src, fallthrough, FlowEdgeType.UNCONDITIONAL)
        elif fallthrough is None and len(targets) == 1:
            self.add_edge(src, targets[0], FlowEdgeType.UNCONDITIONAL)
        else:
            for tgt in targets:
                self.add_edge(src, tgt, FlowEdgeType.SWITCH)
            if fallthrough is not None:
                self.add_edge(src, fallthrough, FlowEdgeType.SWITCH)

    def build(
            self,
            block_addresses: Callable[[int], Sequence[int]]) -> FlowGraph:
        """Produces the flow graph record.

        block_addresses returns the instruction addresses of a global basic
        block, in block order.
        """

        if len(self._blocks) == 0:
            raise UE.DataIntegrityError(
                "flow_graph", None, "basic_block_index",
                "flow graph at "
                + hex(self.entry_address)
                + " has no basic blocks")
        addresses = {bb: block_addresses(bb) for bb in self._blocks}
        blocks = sorted(self._blocks, key=lambda bb: (addresses[bb][0], bb))
        position = {bb: i for (i, bb) in enumerate(blocks)}

        entry: Optional[int] = None
        for (i, bb) in enumerate(blocks):
            if addresses[bb][0] == self.entry_address:
                entry = i
                break
        if entry is None:
            for (i, bb) in enumerate(blocks):
                if self.entry_address in addresses[bb]:
                    entry = i
                    break
        if entry is None:
            raise UE.DataIntegrityError(
                "flow_graph", None, "entry_basic_block_index",
                "no basic block contains the entry address "
                + hex(self.entry_address))

        localedges = sorted(
            (position[src], position[tgt], edgetype)
            for (src, tgt, edgetype) in self._edges)
        graph = DirectedGraph(
            len(blocks), [(s, t) for (s, t, _) in localedges], entry)
        edges = tuple(
            FlowGraphEdge(
                source_basic_block_index=s,
                target_basic_block_index=t,
                type=edgetype,
                is_back_edge=graph.is_back_edge(s, t))
            for (s, t, edgetype) in localedges)
        return FlowGraph(
            basic_block_index=tuple(blocks),
            entry_basic_block_index=entry,
            edge=edges)
