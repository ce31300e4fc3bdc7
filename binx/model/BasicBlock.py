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

"""Basic blocks as lists of instruction index ranges.

The instructions of a basic block usually occupy a contiguous index range of
the instruction table, so a block stores ranges rather than individual
indices. Multiple ranges are needed for blocks that are not contiguous in the
table.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class IndexRange:
    """Half-open range [begin_index, end_index) of instruction indices.

    If the range contains a single element, end_index is omitted.
    """

    begin_index: Optional[int] = None
    end_index: Optional[int] = None

    @property
    def begin(self) -> int:
        return 0 if self.begin_index is None else self.begin_index

    @property
    def end(self) -> int:
        if self.end_index is None:
            return self.begin + 1
        return self.end_index

    def indices(self) -> range:
        return range(self.begin, self.end)

    def __len__(self) -> int:
        return max(0, self.end - self.begin)

    def __str__(self) -> str:
        return "[" + str(self.begin) + ", " + str(self.end) + ")"


@dataclass(frozen=True)
class BasicBlock:
    instruction_index: Tuple[IndexRange, ...] = ()

    def instruction_indices(self) -> List[int]:
        result: List[int] = []
        for r in self.instruction_index:
            result.extend(r.indices())
        return result

    @property
    def first_instruction_index(self) -> int:
        return self.instruction_index[0].begin

    @property
    def instruction_count(self) -> int:
        return sum(len(r) for r in self.instruction_index)

    def __str__(self) -> str:
        return " ".join(str(r) for r in self.instruction_index)
