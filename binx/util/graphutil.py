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

"""Directed graph over integer nodes with dominator computation.

Nodes are the integers 0 .. nodecount - 1. Depth-first search and the
dominator computation are iterative, so that adversarially deep graphs do
not hit the interpreter recursion limit.
"""

from typing import Dict, List, Optional, Sequence, Tuple


class DirectedGraph:

    def __init__(
            self,
            nodecount: int,
            edges: Sequence[Tuple[int, int]],
            start_node: int) -> None:
        self._nodecount = nodecount
        self._start_node = start_node
        self._succs: List[List[int]] = [[] for _ in range(nodecount)]
        self._preds: List[List[int]] = [[] for _ in range(nodecount)]
        for (src, tgt) in edges:
            if tgt not in self._succs[src]:
                self._succs[src].append(tgt)
                self._preds[tgt].append(src)
        # Sorting makes the spanning tree independent of edge insertion order.
        for s in self._succs:
            s.sort()
        for p in self._preds:
            p.sort()
        self._dfnum: List[int] = []
        self._vertex: List[int] = []
        self._parent: List[int] = []
        self._idoms: Optional[List[int]] = None
        self._compute_dfs()

    @property
    def nodecount(self) -> int:
        return self._nodecount

    @property
    def start_node(self) -> int:
        return self._start_node

    def post(self, n: int) -> List[int]:
        return self._succs[n]

    def pre(self, n: int) -> List[int]:
        return self._preds[n]

    def _compute_dfs(self) -> None:
        """Preorder numbering and spanning tree parents."""

        self._dfnum = [-1] * self.nodecount
        self._parent = [-1] * self.nodecount
        self._vertex = []
        stack: List[Tuple[int, int]] = [(self.start_node, 0)]
        self._dfnum[self.start_node] = 0
        self._vertex.append(self.start_node)
        while stack:
            (node, i) = stack[-1]
            succs = self._succs[node]
            if i < len(succs):
                stack[-1] = (node, i + 1)
                t = succs[i]
                if self._dfnum[t] < 0:
                    self._dfnum[t] = len(self._vertex)
                    self._vertex.append(t)
                    self._parent[t] = node
                    stack.append((t, 0))
            else:
                stack.pop()

    def is_reachable(self, n: int) -> bool:
        return self._dfnum[n] >= 0

    @property
    def preorder(self) -> List[int]:
        return list(self._vertex)

    @property
    def idoms(self) -> List[int]:
        """Immediate dominator per node (-1 for the start node and for nodes
        unreachable from the start node)."""

        if self._idoms is None:
            self._idoms = self._compute_doms()
        return self._idoms

    def _compute_doms(self) -> List[int]:
        """Computes immediate dominators.

        Implements the (simple) Lengauer-Tarjan algorithm with path
        compression:
            "A Fast Algorithm for Finding Dominators in a Flowgraph"
            Thomas Lengauer and Robert Endre Tarjan, TOPLAS 1979
        """

        n = self.nodecount
        dfnum = self._dfnum
        vertex = self._vertex
        parent = self._parent
        semi = [-1] * n
        ancestor = [-1] * n
        best = list(range(n))
        idom = [-1] * n
        samedom = [-1] * n
        bucket: Dict[int, List[int]] = {}

        def ancestor_with_lowest_semi(v: int) -> int:
            path: List[int] = []
            u = v
            while ancestor[ancestor[u]] != -1:
                path.append(u)
                u = ancestor[u]
            for x in reversed(path):
                a = ancestor[x]
                if dfnum[semi[best[a]]] < dfnum[semi[best[x]]]:
                    best[x] = best[a]
                ancestor[x] = ancestor[a]
            return best[v]

        for i in range(len(vertex) - 1, 0, -1):
            w = vertex[i]
            p = parent[w]
            s = p
            for v in self._preds[w]:
                if dfnum[v] < 0:
                    continue
                if dfnum[v] <= dfnum[w]:
                    s1 = v
                else:
                    s1 = semi[ancestor_with_lowest_semi(v)]
                if dfnum[s1] < dfnum[s]:
                    s = s1
            semi[w] = s
            bucket.setdefault(s, []).append(w)
            ancestor[w] = p
            best[w] = w
            for v in bucket.pop(p, []):
                y = ancestor_with_lowest_semi(v)
                if semi[y] == semi[v]:
                    idom[v] = p
                else:
                    samedom[v] = y

        for i in range(1, len(vertex)):
            w = vertex[i]
            if samedom[w] != -1:
                idom[w] = idom[samedom[w]]
        return idom

    def idom(self, n: int) -> int:
        return self.idoms[n]

    def dominates(self, a: int, b: int) -> bool:
        """Returns True if node a dominates node b (self-domination holds)."""

        if not (self.is_reachable(a) and self.is_reachable(b)):
            return False
        idoms = self.idoms
        finger = b
        while finger != -1:
            if finger == a:
                return True
            finger = idoms[finger]
        return False

    def is_back_edge(self, src: int, tgt: int) -> bool:
        """An edge is a back edge if its target dominates its source."""

        return self.dominates(tgt, src)
