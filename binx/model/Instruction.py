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

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import binx.util.errors as UE


ADDRESS_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class Instruction:
    """Instruction record.

    The address is only present for instructions that do not immediately
    follow their predecessor in the instruction table. All others have the
    address of the predecessor plus the length of its raw bytes.
    """

    address: Optional[int] = None
    call_target: Tuple[int, ...] = ()
    mnemonic_index: int = 0
    operand_index: Tuple[int, ...] = ()
    raw_bytes: Optional[bytes] = None
    comment_index: Tuple[int, ...] = ()

    @property
    def size(self) -> int:
        return 0 if self.raw_bytes is None else len(self.raw_bytes)


def next_address(address: int, instr: Instruction) -> int:
    return (address + instr.size) & ADDRESS_MASK


def resolve_instruction_addresses(
        instructions: Sequence[Instruction]) -> List[int]:
    """Returns the absolute address of every instruction in the table."""

    result: List[int] = []
    if len(instructions) == 0:
        return result
    if instructions[0].address is None:
        raise UE.DataIntegrityError(
            "instruction", 0, "address",
            "first instruction must carry an explicit address")
    previous: Optional[Tuple[int, Instruction]] = None
    for instr in instructions:
        if instr.address is not None:
            address = instr.address
        elif previous is not None:
            address = next_address(*previous)
        previous = (address, instr)
        result.append(address)
    return result


def omit_implicit_address(
        address: int,
        previous: Optional[Tuple[int, Instruction]]) -> Optional[int]:
    """Returns None if address follows directly from the previous
    (address, instruction) pair, else the address itself."""

    if previous is not None and next_address(*previous) == address:
        return None
    return address
