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

"""Annotations tying code locations to entries of the string table.

A location is an (instruction, operand, expression) tuple: an index into the
global instruction table, an index into that instruction's operand list, and
an index into that operand's expression list.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class CommentType(IntEnum):
    DEFAULT = 0
    ANTERIOR = 1
    POSTERIOR = 2
    FUNCTION = 3
    ENUM = 4
    LOCATION = 5
    GLOBAL_REFERENCE = 6
    LOCAL_REFERENCE = 7


@dataclass(frozen=True)
class Reference:
    """Used for string references, expression substitutions, and (legacy)
    address comments."""

    instruction_index: Optional[int] = None
    instruction_operand_index: int = 0
    operand_expression_index: int = 0
    string_table_index: Optional[int] = None


@dataclass(frozen=True)
class Comment:
    instruction_index: Optional[int] = None
    instruction_operand_index: int = 0
    operand_expression_index: int = 0
    string_table_index: Optional[int] = None
    repeatable: bool = False
    type: CommentType = CommentType.DEFAULT


@dataclass(frozen=True)
class DataReference:
    instruction_index: Optional[int] = None
    address: Optional[int] = None
