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

"""Flat auxiliary records without internal graph structure."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Meta:
    executable_name: Optional[str] = None
    executable_id: Optional[str] = None
    architecture_name: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass(frozen=True)
class Section:
    address: Optional[int] = None
    size: Optional[int] = None
    flag_r: bool = False
    flag_w: bool = False
    flag_x: bool = False


@dataclass(frozen=True)
class Library:
    is_static: bool = False
    load_address: int = 0
    name: Optional[str] = None


@dataclass(frozen=True)
class Module:
    name: Optional[str] = None


@dataclass(frozen=True)
class MDIndex:
    address: Optional[int] = None
    md_index: Optional[float] = None


@dataclass(frozen=True)
class UnknownField:
    """Top-level field not interpreted by the codec (e.g., an extension).

    data holds the encoded value without tag and without length prefix.
    """

    number: int
    wiretype: int
    data: bytes
