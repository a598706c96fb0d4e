#!/usr/bin/env python3
"""
Check PS-X EXE header
=====================

Print the header fields of one or more PS-X EXE files.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from elf2psexe.errors import ConversionError
from elf2psexe.psexe_writer import license_text, parse_psexe_header
from elf2psexe.types import PSX_HEADER_SIZE


def check_psexe(filename):
    with open(filename, 'rb') as f:
        data = f.read()

    try:
        header = parse_psexe_header(data)
    except ConversionError as e:
        print(f"❌ {filename}: {e}")
        return False

    payload_size = len(data) - PSX_HEADER_SIZE

    print(f"\n📁 {filename}")
    print("-" * 60)
    print(f"Entry PC:       0x{header.pc0:08x}")
    print(f"Initial GP:     0x{header.gp0:08x}")
    print(f"Base address:   0x{header.t_addr:08x}")
    print(f"Text+data size: {header.t_size}B")
    print(f"Memfill base:   0x{header.b_addr:08x}")
    print(f"Memfill length: {header.b_size}B")
    print(f"SP base:        0x{header.s_addr:08x}")
    print(f"SP offset:      {header.s_size}")
    print(f"License:        {license_text(header)}")

    if header.t_size != payload_size:
        print(f"❌ payload is {payload_size}B but header says {header.t_size}B")
        return False
    if header.t_size % 2048 != 0:
        print("❌ text+data size is not a multiple of 2048")
        return False

    print("✓ header consistent with file size")
    return True


if __name__ == '__main__':
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} <psexe> [psexe ...]")
        sys.exit(1)

    ok = all([check_psexe(path) for path in sys.argv[1:]])
    sys.exit(0 if ok else 1)
