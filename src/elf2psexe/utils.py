#!/usr/bin/env python3
"""
Utilities Module
================

Helpers shared by the reader, the writer and the command line:
- Logging configuration
- Alignment rounding
- NUL-terminated string lookup
- Atomic output file writing
"""

import logging
import os
import tempfile
from typing import Optional, Union

from .errors import IoError

logger = logging.getLogger(__name__)


def setup_logging(debug: bool):
    """Setup logging configuration"""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s',
        force=True
    )


def align_up(value: int, alignment: int) -> int:
    """Round value up to the next multiple of alignment (unchanged if already aligned)"""
    remainder = value % alignment
    if remainder == 0:
        return value
    return value + alignment - remainder


def cstring_at(table: bytes, offset: int) -> Optional[bytes]:
    """
    Return the NUL-terminated string starting at offset in table.

    The terminator is not included. A string running to the end of the table
    without a NUL is returned as is. Offsets outside the table return None.
    """
    if offset < 0 or offset >= len(table):
        return None
    end = table.find(b'\0', offset)
    if end == -1:
        end = len(table)
    return bytes(table[offset:end])


def write_file_atomic(path: str, data: Union[bytes, bytearray]):
    """
    Write data to path through a temporary file in the same directory.

    The target is only replaced once every byte has been written, so a failure
    never leaves a partial output file behind.
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, temp_path = tempfile.mkstemp(prefix='.' + os.path.basename(path) + '.',
                                         suffix='.tmp', dir=directory)
    except OSError as e:
        raise IoError(f"Can't create temporary file: {e}", path=path) from e

    try:
        with os.fdopen(fd, 'wb') as f:
            written = f.write(data)
            if written != len(data):
                raise IoError("Short write", path=temp_path,
                              expected=len(data), actual=written)
        # mkstemp creates the file 0600
        os.chmod(temp_path, 0o644)
        os.replace(temp_path, path)
    except OSError as e:
        _discard(temp_path)
        raise IoError(f"Write failed: {e}", path=path) from e
    except BaseException:
        _discard(temp_path)
        raise

    logger.debug(f"Wrote {len(data)} bytes to {path}")


def _discard(path: str):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
