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

"""Limits and switches used by the builders and the codec."""

import os

from typing import List

localconfig = False

if os.path.isfile(os.path.join(os.path.dirname(os.path.abspath(__file__)),
                               "ConfigLocal.py")):
    import binx.util.ConfigLocal as ConfigLocal
    localconfig = True


class Config():

    def __init__(self) -> None:
        # index fields are int32 on the wire
        self.max_table_size = 2 ** 31

        # largest message accepted by the reader
        self.max_message_size = 2 ** 31

        # reject duplicate entries in the string table and mnemonic table
        self.check_uniqueness = True

        # keep unknown top-level fields (extensions) as sideband
        self.keep_unknown_fields = True

        # personalization
        if localconfig:
            ConfigLocal.getLocals(self)

    def __str__(self) -> str:
        lines: List[str] = []
        lines.append("Codec configuration:")
        lines.append("--------------------")
        lines.append("  max table size  : " + str(self.max_table_size))
        lines.append("  max message size: " + str(self.max_message_size))
        lines.append("  check uniqueness: " + str(self.check_uniqueness))
        lines.append("  keep unknown    : " + str(self.keep_unknown_fields))
        return "\n".join(lines)


config = Config()


if __name__ == '__main__':

    print(str(Config()))
