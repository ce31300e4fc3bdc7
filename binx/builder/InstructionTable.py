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

"""Instruction table with implicit (delta) addressing.

Instructions are deduplicated by address: an instruction that occurs in
several basic blocks or functions is stored once. The table keeps absolute
addresses while it is being built; records() produces the wire form, in
which the address is omitted whenever it equals the address of the
predecessor plus the predecessor's length.
"""

import threading

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from binx.model.Instruction import Instruction, omit_implicit_address
from binx.util.Config import config
from binx.util.StringIndexedTable import StringIndexedTable
import binx.util.errors as UE


class InstructionEntry:

    def __init__(
            self,
            address: int,
            raw_bytes: bytes,
            mnemonic_index: int,
            operand_index: Sequence[int],
            call_target: Sequence[int]) -> None:
        self._address = address
        self._raw_bytes = raw_bytes
        self._mnemonic_index = mnemonic_index
        self._operand_index = tuple(operand_index)
        self.call_target: List[int] = list(call_target)
        self.comment_index: List[int] = []

    @property
    def address(self) -> int:
        return self._address

    @property
    def raw_bytes(self) -> bytes:
        return self._raw_bytes

    @property
    def mnemonic_index(self) -> int:
        return self._mnemonic_index

    @property
    def operand_index(self) -> Tuple[int, ...]:
        return self._operand_index

    def same_content(
            self,
            raw_bytes: bytes,
            mnemonic_index: int,
            operand_index: Sequence[int]) -> bool:
        return (
            self.raw_bytes == raw_bytes
            and self.mnemonic_index == mnemonic_index
            and self.operand_index == tuple(operand_index))


class InstructionTable:

    def __init__(self, mnemonic_table: StringIndexedTable) -> None:
        self._mnemonic_table = mnemonic_table
        self._entries: List[InstructionEntry] = []
        self._addresstable: Dict[int, int] = {}   # address -> index
        self._lock = threading.Lock()

    @property
    def mnemonic_table(self) -> StringIndexedTable:
        return self._mnemonic_table

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
            self,
            address: int,
            raw_bytes: bytes,
            mnemonic: str,
            operand_index: Sequence[int] = (),
            call_target: Sequence[int] = ()) -> int:
        """Returns the index of the instruction at address, adding it if new.

        Adding a different instruction at an address already present raises
        DataIntegrityError.
        """

        mnemonic_index = self.mnemonic_table.add(mnemonic)
        with self._lock:
            if address in self._addresstable:
                index = self._addresstable[address]
                entry = self._entries[index]
                if not entry.same_content(raw_bytes, mnemonic_index, operand_index):
                    raise UE.DataIntegrityError(
                        "instruction", index, "address",
                        "conflicting instructions at address " + hex(address))
                for tgt in call_target:
                    if tgt not in entry.call_target:
                        entry.call_target.append(tgt)
                return index
            index = len(self._entries)
            if index >= config.max_table_size:
                raise UE.CapacityExceeded(
                    "instruction", index + 1, config.max_table_size)
            self._entries.append(
                InstructionEntry(
                    address, raw_bytes, mnemonic_index, operand_index, call_target))
            self._addresstable[address] = index
            return index

    def index_of(self, address: int) -> Optional[int]:
        return self._addresstable.get(address)

    def has_address(self, address: int) -> bool:
        return address in self._addresstable

    def address(self, index: int) -> int:
        return self._entries[index].address

    def entry(self, index: int) -> InstructionEntry:
        return self._entries[index]

    def add_comment(self, index: int, comment_index: int) -> None:
        with self._lock:
            entry = self._entries[index]
            if comment_index not in entry.comment_index:
                entry.comment_index.append(comment_index)

    def mnemonic_order(self) -> List[int]:
        """Returns the mnemonic indices ordered by decreasing frequency.

        Ties are broken by first appearance, so the result is deterministic.
        Mnemonics not used by any instruction go last.
        """

        counts = Counter(e.mnemonic_index for e in self._entries)
        return sorted(
            range(self.mnemonic_table.size()), key=lambda m: -counts[m])

    def records(self, mnemonic_remap: Sequence[int]) -> List[Instruction]:
        result: List[Instruction] = []
        previous: Optional[Tuple[int, Instruction]] = None
        for e in self._entries:
            instr = Instruction(
                address=omit_implicit_address(e.address, previous),
                call_target=tuple(e.call_target),
                mnemonic_index=mnemonic_remap[e.mnemonic_index],
                operand_index=e.operand_index,
                raw_bytes=e.raw_bytes,
                comment_index=tuple(e.comment_index))
            result.append(instr)
            previous = (e.address, instr)
        return result
