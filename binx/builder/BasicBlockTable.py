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

from typing import List, Sequence

from binx.model.BasicBlock import BasicBlock, IndexRange
from binx.util.IndexedTable import IndexedTable
import binx.util.errors as UE


def compress_indices(indices: Sequence[int]) -> List[IndexRange]:
    """Returns the minimal list of ranges whose concatenation is indices.

    Each maximal run of consecutive ascending indices becomes one range;
    single-element runs omit end_index.
    """

    result: List[IndexRange] = []
    if len(indices) == 0:
        return result
    begin = indices[0]
    end = begin + 1
    for ix in indices[1:]:
        if ix == end:
            end += 1
        else:
            result.append(mk_range(begin, end))
            begin = ix
            end = ix + 1
    result.append(mk_range(begin, end))
    return result


def mk_range(begin: int, end: int) -> IndexRange:
    if end == begin + 1:
        return IndexRange(begin_index=begin)
    return IndexRange(begin_index=begin, end_index=end)


class BasicBlockTable(IndexedTable[BasicBlock]):
    """Interning table of basic blocks: blocks shared between functions are
    stored once."""

    def __init__(self) -> None:
        IndexedTable.__init__(self, "basic_block")

    def add_block(self, instruction_indices: Sequence[int]) -> int:
        if len(instruction_indices) == 0:
            raise UE.DataIntegrityError(
                "basic_block", None, "instruction_index",
                "basic block without instructions")
        for ix in instruction_indices:
            if ix < 0:
                raise UE.DataIntegrityError(
                    "basic_block", None, "instruction_index",
                    "negative instruction index " + str(ix))
        return self.add(BasicBlock(tuple(compress_indices(instruction_indices))))
