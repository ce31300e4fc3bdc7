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

"""Error taxonomy.

All errors raised by the core derive from BXError. None of them is caught
inside the core: an encode, decode, or build either completes or raises, and
no partially constructed graph is ever handed out.
"""

from typing import List, Optional


class BXError(Exception):

    def __init__(self, msg: str) -> None:
        Exception.__init__(self, msg)
        self.msg = msg

    def wrap(self) -> str:
        lines: List[str] = []
        lines.append('*' * 80)
        lines.append(self.__str__())
        lines.append('*' * 80)
        return '\n'.join(lines)


class DataIntegrityError(BXError):
    """A record violates a structural invariant of the representation.

    Identifies the offending table, the index of the record within that table
    (None if the violation concerns the table as a whole), the field, and
    the reason.
    """

    def __init__(
            self,
            table: str,
            index: Optional[int],
            field: str,
            reason: str) -> None:
        BXError.__init__(
            self,
            table
            + ("[" + str(index) + "]" if index is not None else "")
            + "."
            + field
            + ": "
            + reason)
        self._table = table
        self._index = index
        self._field = field
        self._reason = reason

    @property
    def table(self) -> str:
        return self._table

    @property
    def index(self) -> Optional[int]:
        return self._index

    @property
    def field(self) -> str:
        return self._field

    @property
    def reason(self) -> str:
        return self._reason


class WireFormatError(DataIntegrityError):
    """The byte stream is not a well-formed message."""

    def __init__(self, offset: int, reason: str) -> None:
        DataIntegrityError.__init__(
            self, "wire", offset, "bytes", reason)

    @property
    def offset(self) -> int:
        return self.index or 0


class OrderingViolation(BXError):

    def __init__(
            self,
            msg: str,
            index: Optional[int] = None) -> None:
        BXError.__init__(self, msg)
        self._index = index

    @property
    def index(self) -> Optional[int]:
        return self._index


class CapacityExceeded(BXError):

    def __init__(self, table: str, size: int, limit: int) -> None:
        BXError.__init__(
            self,
            "Table "
            + table
            + " exceeds its addressable range: "
            + str(size)
            + " entries (limit: "
            + str(limit)
            + ")")
        self.table = table
        self.size = size
        self.limit = limit


class IndexedTableError(BXError):

    def __init__(self, msg: str) -> None:
        BXError.__init__(self, msg)
