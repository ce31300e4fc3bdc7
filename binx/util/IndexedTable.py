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

"""Content-keyed interning table.

An IndexedTable maps distinct values to stable, 0-based indices. Adding a
value that is already present returns its existing index; otherwise the
value is appended. Entries are never removed or modified after they have
been assigned an index.

Insertion is serialized by a single lock per table, so that concurrent
producers adding equal values always collapse onto one index. Lookups by
index do not take the lock: the index list only ever grows.
"""

import threading

from typing import (
    Callable, Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar)

from binx.util.Config import config
import binx.util.errors as UE


V = TypeVar("V", bound=Hashable)


class IndexedTable(Generic[V]):

    def __init__(self, name: str) -> None:
        self._name = name
        self.keytable: Dict[V, int] = {}   # value -> index
        self.indextable: List[V] = []      # index -> value
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def reset(self) -> None:
        with self._lock:
            self.keytable = {}
            self.indextable = []

    def add(self, value: V) -> int:
        if value is None:
            raise UE.IndexedTableError(self.name + ": Attempt to index None")
        with self._lock:
            if value in self.keytable:
                return self.keytable[value]
            index = len(self.indextable)
            if index >= config.max_table_size:
                raise UE.CapacityExceeded(
                    self.name, index + 1, config.max_table_size)
            self.keytable[value] = index
            self.indextable.append(value)
            return index

    def intern(self, value: V) -> int:
        return self.add(value)

    def add_many(self, values: List[V]) -> List[int]:
        return [self.add(v) for v in values]

    def index_of(self, value: V) -> Optional[int]:
        return self.keytable.get(value)

    def contains(self, value: V) -> bool:
        return value in self.keytable

    def size(self) -> int:
        return len(self.indextable)

    def __len__(self) -> int:
        return len(self.indextable)

    def retrieve(self, index: int) -> V:
        if 0 <= index < len(self.indextable):
            return self.indextable[index]
        else:
            raise UE.IndexedTableError(
                "Unable to retrieve item "
                + str(index)
                + " from table "
                + self.name
                + " (size: "
                + str(self.size())
                + ")")

    def values(self) -> List[V]:
        return list(self.indextable)

    def items(self) -> List[Tuple[int, V]]:
        return list(enumerate(self.indextable))

    def iter(self, f: Callable[[int, V], None]) -> None:
        for (i, v) in self.items():
            f(i, v)

    def __iter__(self) -> Iterator[V]:
        return iter(list(self.indextable))

    def __str__(self) -> str:
        lines: List[str] = []
        lines.append("\n" + self.name)
        for (ix, v) in self.items():
            lines.append(str(ix).rjust(4) + "  " + str(v))
        return "\n".join(lines)
