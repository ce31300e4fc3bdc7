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

"""Two-pass call graph construction.

Pass one collects vertices (one per function address) and symbolic calls
(source address, target address), possibly from several workers. finalize()
is the single-threaded barrier: it sorts the vertices by address, resolves
the symbolic calls to positions in the sorted vertex list and freezes the
builder. Vertex positions are only available after finalization.

resolve() produces the same call graph without freezing, so that a caller
can check the result and freeze() it afterwards; a failed check leaves the
builder open.
"""

import threading

from typing import Dict, List, Optional, Sequence, Tuple

from binx.model.CallGraph import CallGraph, CallGraphEdge, Vertex, VertexType
from binx.util.Config import config
from binx.util.loggingutil import bxlogger
import binx.util.errors as UE


# Evidence ranking: a vertex seen with stronger evidence replaces the type
# recorded from weaker evidence (e.g., an import stub later disassembled).
type_rank: Dict[VertexType, int] = {
    VertexType.INVALID: 0,
    VertexType.IMPORTED: 1,
    VertexType.LIBRARY: 2,
    VertexType.THUNK: 3,
    VertexType.NORMAL: 4}


def merge_vertices(old: Vertex, new: Vertex) -> Vertex:
    if type_rank[new.type] > type_rank[old.type]:
        vtype = new.type
    else:
        vtype = old.type
    return Vertex(
        address=old.address,
        type=vtype,
        mangled_name=(
            old.mangled_name if old.mangled_name is not None
            else new.mangled_name),
        demangled_name=(
            old.demangled_name if old.demangled_name is not None
            else new.demangled_name),
        library_index=(
            old.library_index if old.library_index is not None
            else new.library_index),
        module_index=(
            old.module_index if old.module_index is not None
            else new.module_index))


class CallGraphBuilder:

    def __init__(self) -> None:
        self._vertices: Dict[int, Vertex] = {}
        self._calls: List[Tuple[int, int]] = []
        self._lock = threading.Lock()
        self._callgraph: Optional[CallGraph] = None

    @property
    def is_finalized(self) -> bool:
        return self._callgraph is not None

    @property
    def vertexcount(self) -> int:
        return len(self._vertices)

    def has_vertex(self, address: int) -> bool:
        return address in self._vertices

    def add_vertex(
            self,
            address: int,
            vtype: VertexType = VertexType.NORMAL,
            mangled_name: Optional[str] = None,
            demangled_name: Optional[str] = None,
            library_index: Optional[int] = None,
            module_index: Optional[int] = None) -> None:
        vertex = Vertex(
            address=address,
            type=vtype,
            mangled_name=mangled_name,
            demangled_name=demangled_name,
            library_index=library_index,
            module_index=module_index)
        with self._lock:
            if self._callgraph is not None:
                raise UE.OrderingViolation(
                    "Cannot add vertex "
                    + hex(address)
                    + " after the call graph has been finalized")
            if address in self._vertices:
                merged = merge_vertices(self._vertices[address], vertex)
                if merged != self._vertices[address]:
                    bxlogger.logger.debug(
                        "call graph: merged vertex %s", hex(address))
                self._vertices[address] = merged
            else:
                if len(self._vertices) >= config.max_table_size:
                    raise UE.CapacityExceeded(
                        "call_graph.vertex",
                        len(self._vertices) + 1,
                        config.max_table_size)
                self._vertices[address] = vertex

    def add_call(self, src_address: int, tgt_address: int) -> None:
        with self._lock:
            if self._callgraph is not None:
                raise UE.OrderingViolation(
                    "Cannot add call "
                    + hex(src_address)
                    + " -> "
                    + hex(tgt_address)
                    + " after the call graph has been finalized")
            self._calls.append((src_address, tgt_address))

    def _resolve(
            self,
            entries: Sequence[int],
            calls: Sequence[Tuple[int, int]]) -> CallGraph:
        vertexmap = dict(self._vertices)
        for address in entries:
            if address not in vertexmap:
                if len(vertexmap) >= config.max_table_size:
                    raise UE.CapacityExceeded(
                        "call_graph.vertex",
                        len(vertexmap) + 1,
                        config.max_table_size)
                vertexmap[address] = Vertex(address=address)
        vertices = [vertexmap[a] for a in sorted(vertexmap)]
        position = {v.faddr: i for (i, v) in enumerate(vertices)}
        edges: List[CallGraphEdge] = []
        for (src, tgt) in list(self._calls) + list(calls):
            if src not in position or tgt not in position:
                bxlogger.logger.warning(
                    "call graph: dropping call %s -> %s (no vertex)",
                    hex(src), hex(tgt))
                continue
            edges.append(
                CallGraphEdge(
                    source_vertex_index=position[src],
                    target_vertex_index=position[tgt]))
        return CallGraph(vertex=vertices, edge=edges)

    def resolve(
            self,
            entries: Sequence[int] = (),
            calls: Sequence[Tuple[int, int]] = ()) -> CallGraph:
        """Returns the sorted and resolved call graph without freezing.

        entries are function addresses known from flow graphs; they get a
        NORMAL vertex only if no vertex was added for them. calls are added
        to the recorded calls for this result only.
        """

        with self._lock:
            if self._callgraph is not None:
                return self._callgraph
            return self._resolve(entries, calls)

    def freeze(self, callgraph: CallGraph) -> None:
        with self._lock:
            if self._callgraph is None:
                self._callgraph = callgraph

    def finalize(
            self,
            entries: Sequence[int] = (),
            calls: Sequence[Tuple[int, int]] = ()) -> CallGraph:
        """Sorts the vertices, resolves the calls, and freezes the builder.

        Calls from or to an address without a vertex are dropped.
        """

        with self._lock:
            if self._callgraph is None:
                self._callgraph = self._resolve(entries, calls)
            return self._callgraph

    def vertex_index(self, address: int) -> int:
        if self._callgraph is None:
            raise UE.OrderingViolation(
                "Vertex index of "
                + hex(address)
                + " requested before the call graph was finalized")
        index = self._callgraph.vertex_index(address)
        if index is None:
            raise UE.BXError("No call graph vertex at " + hex(address))
        return index
