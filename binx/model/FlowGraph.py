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

"""Per-function control flow graphs.

Basic blocks are referenced through indices into the global basic block
table and listed in ascending order of their first instruction's address.
Edge endpoints and the entry block are positions within the flow graph's own
basic_block_index list.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple


class FlowEdgeType(IntEnum):
    CONDITION_TRUE = 1
    CONDITION_FALSE = 2
    UNCONDITIONAL = 3
    SWITCH = 4


@dataclass(frozen=True)
class FlowGraphEdge:
    source_basic_block_index: Optional[int] = None
    target_basic_block_index: Optional[int] = None
    type: FlowEdgeType = FlowEdgeType.UNCONDITIONAL
    is_back_edge: bool = False

    @property
    def source(self) -> int:
        return self.source_basic_block_index or 0

    @property
    def target(self) -> int:
        return self.target_basic_block_index or 0

    def __str__(self) -> str:
        return (
            str(self.source)
            + " -> "
            + str(self.target)
            + " ("
            + self.type.name.lower()
            + (", back" if self.is_back_edge else "")
            + ")")


@dataclass(frozen=True)
class FlowGraph:
    basic_block_index: Tuple[int, ...] = ()
    entry_basic_block_index: Optional[int] = None
    edge: Tuple[FlowGraphEdge, ...] = ()

    @property
    def entry(self) -> int:
        return self.entry_basic_block_index or 0

    @property
    def entry_block(self) -> int:
        """Index of the entry block in the global basic block table."""

        return self.basic_block_index[self.entry]

    def successors(self, position: int) -> List[int]:
        return [e.target for e in self.edge if e.source == position]

    def back_edges(self) -> List[FlowGraphEdge]:
        return [e for e in self.edge if e.is_back_edge]
