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

from typing import List

from binx.util.IndexedTable import IndexedTable
import binx.util.errors as UE


def has_control_characters(s: str) -> bool:
    for c in s:
        if ord(c) < 32 or ord(c) > 126:
            return True
    else:
        return False


def byte_to_string(b: int) -> str:
    return '{:02x}'.format(b)


def hexstring(s: str) -> str:
    result = ''
    for b in s.encode("utf-8", errors="surrogateescape"):
        result += byte_to_string(b)
    return result


def printable(s: str) -> str:
    if has_control_characters(s):
        return "0x" + hexstring(s)
    else:
        return s


class StringIndexedTable(IndexedTable[str]):
    """Interning table for strings (string table, mnemonics, names)."""

    def __init__(self, name: str) -> None:
        IndexedTable.__init__(self, name)

    def add(self, s: str) -> int:
        if not isinstance(s, str):
            raise UE.IndexedTableError(
                self.name + ": Attempt to index non-string " + repr(s))
        return IndexedTable.add(self, s)

    def strings(self) -> List[str]:
        return self.values()

    def __str__(self) -> str:
        lines: List[str] = []
        lines.append("\n" + self.name)
        for (ix, s) in self.items():
            lines.append(str(ix).rjust(4) + " " + printable(s))
        return "\n".join(lines)
