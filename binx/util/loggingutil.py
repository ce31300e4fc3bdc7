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

"""Package logger.

Usage:

   from binx.util.loggingutil import bxlogger

   bxlogger.logger.warning("message with %s", arg)
"""

import logging

from typing import Optional


LOGGER_NAME = "binx"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class BXLogger:

    def __init__(self) -> None:
        self._logger = logging.getLogger(LOGGER_NAME)
        self._logger.addHandler(logging.NullHandler())

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def set_level(
            self,
            level: int,
            logfilename: Optional[str] = None) -> None:
        """Attach a handler (stream or file) and set the logging level."""

        if logfilename is not None:
            handler: logging.Handler = logging.FileHandler(logfilename)
        else:
            handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self._logger.addHandler(handler)
        self._logger.setLevel(level)


bxlogger = BXLogger()


def set_logging_level(level: int, logfilename: Optional[str] = None) -> None:
    bxlogger.set_level(level, logfilename)
