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

import pytest

from binx.builder.BasicBlockTable import BasicBlockTable, compress_indices
from binx.builder.InstructionTable import InstructionTable
from binx.model.BasicBlock import IndexRange
from binx.model.Instruction import Instruction, resolve_instruction_addresses
from binx.util.StringIndexedTable import StringIndexedTable
import binx.util.errors as UE


def mk_table() -> InstructionTable:
    return InstructionTable(StringIndexedTable("mnemonic"))


class TestInstructionTable:

    def test_implicit_addresses(self):
        t = mk_table()
        t.add(0x1000, b"\xb8\x01\x00\x00\x00", "mov")
        t.add(0x1005, b"\x90", "nop")
        t.add(0x2000, b"\xc3", "ret")
        records = t.records([0, 1, 2])
        assert [r.address for r in records] == [0x1000, None, 0x2000]
        assert resolve_instruction_addresses(records) == [0x1000, 0x1005, 0x2000]

    def test_same_instruction_stored_once(self):
        t = mk_table()
        i1 = t.add(0x1000, b"\x90", "nop")
        i2 = t.add(0x1000, b"\x90", "nop")
        assert i1 == i2
        assert t.size() == 1

    def test_call_targets_are_merged(self):
        t = mk_table()
        t.add(0x1000, b"\xff\xd0", "call", call_target=[0x2000])
        t.add(0x1000, b"\xff\xd0", "call", call_target=[0x2000, 0x3000])
        assert t.entry(0).call_target == [0x2000, 0x3000]

    def test_conflicting_instruction(self):
        t = mk_table()
        t.add(0x1000, b"\x90", "nop")
        with pytest.raises(UE.DataIntegrityError) as excinfo:
            t.add(0x1000, b"\xc3", "ret")
        assert excinfo.value.table == "instruction"
        assert excinfo.value.index == 0

    def test_mnemonic_order_by_frequency(self):
        t = mk_table()
        t.add(0x1000, b"\x89\xe5", "mov")
        t.add(0x1002, b"\x50", "push")
        t.add(0x1003, b"\x51", "push")
        t.add(0x1004, b"\x52", "push")
        t.add(0x1005, b"\xc3", "ret")
        # mov: 0, push: 1, ret: 2
        assert t.mnemonic_order() == [1, 0, 2]

    def test_mnemonic_ties_keep_first_appearance(self):
        t = mk_table()
        t.add(0x1000, b"\x90", "nop")
        t.add(0x1001, b"\xc3", "ret")
        assert t.mnemonic_order() == [0, 1]

    def test_comments(self):
        t = mk_table()
        t.add(0x1000, b"\x90", "nop")
        t.add_comment(0, 3)
        t.add_comment(0, 3)
        assert t.records([0])[0].comment_index == (3,)

    def test_first_address_required(self):
        with pytest.raises(UE.DataIntegrityError) as excinfo:
            resolve_instruction_addresses([Instruction(raw_bytes=b"\x90")])
        assert excinfo.value.field == "address"

    def test_address_wraps(self):
        records = [
            Instruction(address=(1 << 64) - 1, raw_bytes=b"\x90"),
            Instruction(raw_bytes=b"\x90")]
        assert resolve_instruction_addresses(records) == [(1 << 64) - 1, 0]


class TestBasicBlockTable:

    def test_compress_indices(self):
        assert compress_indices([3, 4, 5, 9]) == [
            IndexRange(3, 6), IndexRange(9)]
        assert compress_indices([7]) == [IndexRange(7)]
        assert compress_indices([2, 1]) == [IndexRange(2), IndexRange(1)]

    def test_single_element_range(self):
        r = IndexRange(4)
        assert r.end == 5
        assert list(r.indices()) == [4]
        assert len(r) == 1

    def test_shared_block_stored_once(self):
        t = BasicBlockTable()
        assert t.add_block([0, 1, 2]) == 0
        assert t.add_block([5]) == 1
        assert t.add_block([0, 1, 2]) == 0
        assert t.retrieve(0).instruction_indices() == [0, 1, 2]

    def test_empty_block_rejected(self):
        with pytest.raises(UE.DataIntegrityError):
            BasicBlockTable().add_block([])

    def test_negative_index_rejected(self):
        with pytest.raises(UE.DataIntegrityError):
            BasicBlockTable().add_block([-1])
