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

"""Comment and reference tables.

Both relate a code location (instruction, operand, expression) to an entry
of the shared string table. Records are interned: the same annotation on the
same location is stored once.
"""

from binx.model.Comment import Comment, CommentType, Reference
from binx.util.IndexedTable import IndexedTable
from binx.util.StringIndexedTable import StringIndexedTable


class CommentTable(IndexedTable[Comment]):

    def __init__(self, string_table: StringIndexedTable) -> None:
        IndexedTable.__init__(self, "comment")
        self._string_table = string_table

    @property
    def string_table(self) -> StringIndexedTable:
        return self._string_table

    def add_comment(
            self,
            instruction_index: int,
            text: str,
            operand_index: int = 0,
            expression_index: int = 0,
            repeatable: bool = False,
            ctype: CommentType = CommentType.DEFAULT) -> int:
        return self.add(
            Comment(
                instruction_index=instruction_index,
                instruction_operand_index=operand_index,
                operand_expression_index=expression_index,
                string_table_index=self.string_table.add(text),
                repeatable=repeatable,
                type=ctype))


class ReferenceTable(IndexedTable[Reference]):

    def __init__(self, name: str, string_table: StringIndexedTable) -> None:
        IndexedTable.__init__(self, name)
        self._string_table = string_table

    @property
    def string_table(self) -> StringIndexedTable:
        return self._string_table

    def add_reference(
            self,
            instruction_index: int,
            text: str,
            operand_index: int = 0,
            expression_index: int = 0) -> int:
        return self.add(
            Reference(
                instruction_index=instruction_index,
                instruction_operand_index=operand_index,
                operand_expression_index=expression_index,
                string_table_index=self.string_table.add(text)))
