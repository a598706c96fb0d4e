import ctypes
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple, Union

# =============================================================================
# ELF Constants and Enums
# =============================================================================

ELF_MAGIC = b'\x7fELF'

EI_CLASS = 4
EI_DATA = 5
EI_VERSION = 6
EV_CURRENT = 1

# Smallest section header entry we know how to read (sizeof(Elf32_Shdr))
MIN_SHENTSIZE = 40
SYMBOL_ENTRY_SIZE = 16

# Offset of ri_gp_value inside Elf32_RegInfo
REGINFO_GP_OFFSET = 20

STACK_SYMBOL = b'__stack'


class ELFClass(IntEnum):
    """ELF file class constants"""
    ELFCLASSNONE = 0
    ELFCLASS32 = 1
    ELFCLASS64 = 2


class ELFData(IntEnum):
    """ELF data encoding constants"""
    ELFDATANONE = 0
    ELFDATA2LSB = 1  # Little endian
    ELFDATA2MSB = 2  # Big endian


class ELFType(IntEnum):
    """ELF file type constants"""
    ET_NONE = 0
    ET_REL = 1
    ET_EXEC = 2
    ET_DYN = 3
    ET_CORE = 4


class ELFMachine(IntEnum):
    """ELF machine constants (only the ones we care about)"""
    EM_NONE = 0
    EM_MIPS = 8


class SectionType(IntEnum):
    """Section header type constants"""
    SHT_NULL = 0
    SHT_PROGBITS = 1
    SHT_SYMTAB = 2
    SHT_STRTAB = 3
    SHT_RELA = 4
    SHT_HASH = 5
    SHT_DYNAMIC = 6
    SHT_NOTE = 7
    SHT_NOBITS = 8
    SHT_REL = 9
    SHT_MIPS_REGINFO = 0x70000006  # MIPS register usage information


class SectionFlags(IntEnum):
    """Section header flags"""
    SHF_WRITE = 1
    SHF_ALLOC = 2
    SHF_EXECINSTR = 4


# =============================================================================
# ctypes Type Definitions (matching elf.h exactly)
# =============================================================================

Elf32_Addr = ctypes.c_uint32
Elf32_Off = ctypes.c_uint32
Elf32_Word = ctypes.c_uint32
Elf32_Half = ctypes.c_uint16

_EHDR_FIELDS = [
    ('e_ident', ctypes.c_uint8 * 16),  # Magic number and other info
    ('e_type', Elf32_Half),            # Object file type
    ('e_machine', Elf32_Half),         # Architecture
    ('e_version', Elf32_Word),         # Object file version
    ('e_entry', Elf32_Addr),           # Entry point virtual address
    ('e_phoff', Elf32_Off),            # Program header table file offset
    ('e_shoff', Elf32_Off),            # Section header table file offset
    ('e_flags', Elf32_Word),           # Processor-specific flags
    ('e_ehsize', Elf32_Half),          # ELF header size in bytes
    ('e_phentsize', Elf32_Half),       # Program header table entry size
    ('e_phnum', Elf32_Half),           # Program header table entry count
    ('e_shentsize', Elf32_Half),       # Section header table entry size
    ('e_shnum', Elf32_Half),           # Section header table entry count
    ('e_shstrndx', Elf32_Half),        # Section header string table index
]

_SHDR_FIELDS = [
    ('sh_name', Elf32_Word),      # Section name (string table index)
    ('sh_type', Elf32_Word),      # Section type
    ('sh_flags', Elf32_Word),     # Section flags
    ('sh_addr', Elf32_Addr),      # Section virtual addr at execution
    ('sh_offset', Elf32_Off),     # Section file offset
    ('sh_size', Elf32_Word),      # Section size in bytes
    ('sh_link', Elf32_Word),      # Link to another section
    ('sh_info', Elf32_Word),      # Additional section information
    ('sh_addralign', Elf32_Word), # Section alignment
    ('sh_entsize', Elf32_Word),   # Entry size if section holds table
]

_SYM_FIELDS = [
    ('st_name', Elf32_Word),       # Symbol name (string table index)
    ('st_value', Elf32_Addr),      # Symbol value
    ('st_size', Elf32_Word),       # Symbol size
    ('st_info', ctypes.c_uint8),   # Symbol type and binding
    ('st_other', ctypes.c_uint8),  # Symbol visibility
    ('st_shndx', Elf32_Half),      # Section index
]


def _build_structures(base, suffix: str) -> dict:
    return {
        'Ehdr': type('Elf32_Ehdr' + suffix, (base,), {'_fields_': _EHDR_FIELDS}),
        'Shdr': type('Elf32_Shdr' + suffix, (base,), {'_fields_': _SHDR_FIELDS}),
        'Sym': type('Elf32_Sym' + suffix, (base,), {'_fields_': _SYM_FIELDS}),
    }


_LSB_TYPES = _build_structures(ctypes.LittleEndianStructure, '_LSB')
_MSB_TYPES = _build_structures(ctypes.BigEndianStructure, '_MSB')

Elf32_Ehdr = _LSB_TYPES['Ehdr']
Elf32_Shdr = _LSB_TYPES['Shdr']
Elf32_Sym = _LSB_TYPES['Sym']


def get_elf_types(encoding: int) -> dict:
    """
    根据EI_DATA字节序选择相应的ctypes结构类型

    Args:
        encoding: ELFDATA2LSB 或 ELFDATA2MSB

    Returns:
        包含 Ehdr / Shdr / Sym 结构类型的字典
    """
    # read_elf_header only accepts ELFDATA2LSB today; fields are still decoded
    # in the declared order rather than a hardcoded one
    if encoding == ELFData.ELFDATA2MSB:
        return _MSB_TYPES
    return _LSB_TYPES


# =============================================================================
# Section model
# =============================================================================

@dataclass(frozen=True)
class Symbol:
    """One Elf32_Sym entry"""
    name: int       # offset into the linked string table
    value: int
    size: int
    info: int
    other: int
    shndx: int


@dataclass(frozen=True)
class CodeData:
    """Bytes stored in the ELF file and loaded verbatim"""
    data: bytes

    def __len__(self):
        return len(self.data)


@dataclass(frozen=True)
class ZeroFill:
    """BSS-like region zeroed by the loader; takes no space in the file.
    There can be only one contiguous memfill region in an EXE."""
    length: int


@dataclass(frozen=True)
class RegisterInfo:
    data: bytes


@dataclass(frozen=True)
class StringTable:
    data: bytes
    index: int = 0  # section header index


@dataclass(frozen=True)
class SymbolTable:
    symbols: Tuple[Symbol, ...]
    link: int = 0  # sh_link: index of the associated string table


SectionContents = Union[CodeData, ZeroFill, RegisterInfo, StringTable, SymbolTable]


@dataclass(frozen=True)
class Section:
    base: int
    contents: SectionContents


@dataclass(frozen=True)
class ElfImage:
    """Everything the writer needs from the ELF file"""
    entry: int
    gp: int
    stack: int
    sections: Tuple[Section, ...]


# =============================================================================
# PS-X EXE Header Structure
# =============================================================================

PSX_MAGIC = b'PS-X EXE'
PSX_HEADER_SIZE = 2048
PSX_BLOCK_SIZE = 2048  # CD-ROM sector size
PSX_LICENSE_OFFSET = 76
PSX_LICENSE_SIZE = PSX_HEADER_SIZE - PSX_LICENSE_OFFSET

# Default initial SP: top of the 2MB of main RAM, minus a little headroom
PSX_STACK_BASE = 0x801FFFF0

# The PSX only has 2MB of RAM, most executables are a few hundred KBs at most.
MAX_OBJECT_SIZE = 1 * 1024 * 1024


class PsxHeader(ctypes.LittleEndianStructure):
    """PS-X EXE header, as described in the Nocash PSX specs"""
    _fields_ = [
        ('id', ctypes.c_uint8 * 8),        # "PS-X EXE"
        ('text', ctypes.c_uint32),         # unused, 0
        ('data', ctypes.c_uint32),         # unused, 0
        ('pc0', ctypes.c_uint32),          # Initial PC (entry point)
        ('gp0', ctypes.c_uint32),          # Initial GP
        ('t_addr', ctypes.c_uint32),       # Destination address in RAM
        ('t_size', ctypes.c_uint32),       # Text+data size, multiple of 2048
        ('d_addr', ctypes.c_uint32),       # usually 0
        ('d_size', ctypes.c_uint32),       # usually 0
        ('b_addr', ctypes.c_uint32),       # Memfill start address
        ('b_size', ctypes.c_uint32),       # Memfill size in bytes
        ('s_addr', ctypes.c_uint32),       # Initial SP base
        ('s_size', ctypes.c_uint32),       # Initial SP offset
        ('saved', ctypes.c_uint32 * 5),    # Used by the BIOS: SP, FP, GP, RA, S0
        ('license', ctypes.c_uint8 * PSX_LICENSE_SIZE),  # "Sony Computer Entertainment Inc. for ..."
    ]


assert ctypes.sizeof(PsxHeader) == PSX_HEADER_SIZE
