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

"""Expressions, operands, and mnemonics.

An operand consists of one or more expressions linked together as a tree
through parent indices. Example expression tree for the second operand of

   mov eax, b4 [ebx + 12]

   "b4" --- "[" --- "+" --- "ebx"
                         \\  "12"

Rendering order of siblings is given by the order in which the operand
references the expressions.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple


class ExpressionType(IntEnum):
    SYMBOL = 1
    IMMEDIATE_INT = 2
    IMMEDIATE_FLOAT = 3
    OPERATOR = 4
    REGISTER = 5
    SIZE_PREFIX = 6
    DEREFERENCE = 7


@dataclass(frozen=True)
class Expression:
    type: ExpressionType = ExpressionType.IMMEDIATE_INT
    symbol: Optional[str] = None
    immediate: Optional[int] = None
    parent_index: Optional[int] = None
    is_relocation: bool = False

    @property
    def is_root(self) -> bool:
        return self.parent_index is None

    def __str__(self) -> str:
        if self.symbol is not None:
            return self.symbol
        if self.immediate is not None:
            return hex(self.immediate)
        return "?"


@dataclass(frozen=True)
class Operand:
    expression_index: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Mnemonic:
    name: Optional[str] = None

    def __str__(self) -> str:
        return self.name or ""
