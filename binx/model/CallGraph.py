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

"""Call graph: one vertex per function, one edge per call relationship.

Vertices must be sorted by address (ascending); consumers locate functions
by binary search. Edges reference vertices by their position in that sorted
list. Self edges and duplicate edges are allowed.
"""

import bisect

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional


class VertexType(IntEnum):
    NORMAL = 0
    LIBRARY = 1
    IMPORTED = 2
    THUNK = 3
    INVALID = 4


@dataclass(frozen=True)
class Vertex:
    address: Optional[int] = None
    type: VertexType = VertexType.NORMAL
    mangled_name: Optional[str] = None
    demangled_name: Optional[str] = None
    library_index: Optional[int] = None
    module_index: Optional[int] = None

    @property
    def faddr(self) -> int:
        return self.address or 0

    @property
    def name(self) -> str:
        if self.demangled_name is not None:
            return self.demangled_name
        if self.mangled_name is not None:
            return self.mangled_name
        return "sub_" + "{:x}".format(self.faddr)

    def __str__(self) -> str:
        return hex(self.faddr) + " " + self.name + " (" + self.type.name + ")"


@dataclass(frozen=True)
class CallGraphEdge:
    source_vertex_index: Optional[int] = None
    target_vertex_index: Optional[int] = None

    @property
    def source(self) -> int:
        return self.source_vertex_index or 0

    @property
    def target(self) -> int:
        return self.target_vertex_index or 0


@dataclass
class CallGraph:
    vertex: List[Vertex] = field(default_factory=list)
    edge: List[CallGraphEdge] = field(default_factory=list)

    @property
    def vertexcount(self) -> int:
        return len(self.vertex)

    @property
    def edgecount(self) -> int:
        return len(self.edge)

    def vertex_index(self, address: int) -> Optional[int]:
        """Returns the position of the vertex with the given address."""

        i = bisect.bisect_left(self.vertex, address, key=lambda v: v.faddr)
        if i < len(self.vertex) and self.vertex[i].faddr == address:
            return i
        return None

    def callees(self, index: int) -> List[int]:
        return [e.target for e in self.edge if e.source == index]

    def callers(self, index: int) -> List[int]:
        return [e.source for e in self.edge if e.target == index]
