import os
import struct
import sys

import pytest

# 添加src目录到Python路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

SHF_ALLOC = 2

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOTE = 7
SHT_NOBITS = 8
SHT_MIPS_REGINFO = 0x70000006

EHDR_SIZE = 52


class ElfBuilder:
    """Assemble a little 32bit MIPS executable in memory"""

    def __init__(self, entry=0x80010000):
        self.entry = entry
        self.ident = bytearray(b'\x7fELF' + bytes([1, 1, 1]) + bytes(9))
        self.e_type = 2
        self.e_machine = 8
        self.e_version = 1
        self.shentsize = 40
        # Index 0 is always the null section
        self.sections = [dict(type=0, flags=0, addr=0, data=b'', size=0, align=0, link=0)]

    def add(self, sh_type, flags=0, addr=0, data=b'', size=None, align=0, link=0):
        self.sections.append(dict(type=sh_type, flags=flags, addr=addr, data=bytes(data),
                                  size=len(data) if size is None else size,
                                  align=align, link=link))
        return len(self.sections) - 1

    def progbits(self, addr, data, align=4):
        return self.add(SHT_PROGBITS, SHF_ALLOC, addr, data, align=align)

    def nobits(self, addr, size, align=4):
        return self.add(SHT_NOBITS, SHF_ALLOC, addr, size=size, align=align)

    def reginfo(self, gp):
        data = bytes(20) + struct.pack('<I', gp)
        return self.add(SHT_MIPS_REGINFO, 0, 0, data, align=4)

    def strtab(self, names):
        """Returns (index, {name: offset})"""
        table = bytearray(b'\0')
        offsets = {}
        for name in names:
            offsets[name] = len(table)
            table += name.encode() + b'\0'
        return self.add(SHT_STRTAB, 0, 0, table, align=1), offsets

    def symtab(self, symbols, link=0):
        """symbols: list of (name_offset, value)"""
        data = bytes(16)  # STN_UNDEF
        for name, value in symbols:
            data += struct.pack('<IIIBBH', name, value, 0, 0, 0, 1)
        return self.add(SHT_SYMTAB, 0, 0, data, align=4, link=link)

    def build(self) -> bytes:
        body = bytearray()
        offsets = []
        for section in self.sections:
            offsets.append(EHDR_SIZE + len(body))
            body += section['data']
            body += bytes(-len(body) % 4)

        shoff = EHDR_SIZE + len(body)
        shdrs = bytearray()
        for section, offset in zip(self.sections, offsets):
            shdr = struct.pack('<10I', 0, section['type'], section['flags'], section['addr'],
                               offset, section['size'], section['link'], 0, section['align'], 0)
            shdrs += shdr + bytes(self.shentsize - 40)

        header = bytes(self.ident) + struct.pack(
            '<HHIIIIIHHHHHH', self.e_type, self.e_machine, self.e_version, self.entry,
            0, shoff, 0, EHDR_SIZE, 0, 0, self.shentsize, len(self.sections), 0)
        return header + bytes(body) + bytes(shdrs)

    def write(self, path) -> str:
        path = str(path)
        with open(path, 'wb') as f:
            f.write(self.build())
        return path


@pytest.fixture
def elf():
    return ElfBuilder()


@pytest.fixture
def code():
    return bytes(range(16))
