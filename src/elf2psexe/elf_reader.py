#!/usr/bin/env python3
"""
ELF Reader Module
=================

ELF读取器模块，负责32位MIPS可执行文件的校验与解析。

ELFReader 的工作流程：
- 内存映射输入文件
- 校验ELF头部（魔数、类别、字节序、版本、类型、架构）
- 遍历段头表，把每个段归类为 CodeData / ZeroFill / RegisterInfo /
  StringTable / SymbolTable，其余类型直接丢弃
- 从 .reginfo 提取 GP 初值，从符号表查找 __stack 作为栈顶

所有校验失败都会抛出 errors 模块中定义的异常，而不是返回False。
"""

import ctypes
import mmap
import os
import logging
from typing import List, Optional

from .types import *
from .errors import FormatError, IoError, MissingCodeSectionError
from .utils import cstring_at

logger = logging.getLogger(__name__)

SECTION_TYPE_NAMES = {
    SectionType.SHT_NULL: "NULL",
    SectionType.SHT_PROGBITS: "PROGBITS",
    SectionType.SHT_SYMTAB: "SYMTAB",
    SectionType.SHT_STRTAB: "STRTAB",
    SectionType.SHT_RELA: "RELA",
    SectionType.SHT_HASH: "HASH",
    SectionType.SHT_DYNAMIC: "DYNAMIC",
    SectionType.SHT_NOTE: "NOTE",
    SectionType.SHT_NOBITS: "NOBITS",
    SectionType.SHT_REL: "REL",
    SectionType.SHT_MIPS_REGINFO: "MIPS_REGINFO",
}


class ELFReader:
    """
    使用ctypes结构解析的内存映射ELF文件读取器

    只保留PS-X EXE转换需要的信息：入口地址、段内容、GP初值和栈顶地址。
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: 要读取的ELF文件路径
        """
        self.file_path = file_path
        self.file_size = 0
        self.mmap_file = None
        self.file_handle = None
        self.types = None
        self.encoding = ELFData.ELFDATA2LSB
        self.header = None
        self.section_headers = []
        self.sections: List[Section] = []
        self.entry = 0
        self.gp = 0
        self.stack = PSX_STACK_BASE

    def __enter__(self):
        """上下文管理器入口"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """上下文管理器出口"""
        self.close()

    def open(self):
        """打开并内存映射ELF文件"""
        try:
            self.file_handle = open(self.file_path, 'rb')
            self.file_size = os.path.getsize(self.file_path)
        except OSError as e:
            self.close()
            raise IoError(f"Can't open input: {e}", path=self.file_path) from e

        if self.file_size == 0:
            self.close()
            raise IoError("File is empty", path=self.file_path)

        try:
            self.mmap_file = mmap.mmap(self.file_handle.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as e:
            self.close()
            raise IoError(f"Can't map input: {e}", path=self.file_path) from e

        logger.info(f"Opened ELF file: {self.file_path} ({self.file_size} bytes)")

    def close(self):
        """关闭文件句柄和内存映射"""
        if self.mmap_file:
            self.mmap_file.close()
            self.mmap_file = None
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def _read(self, offset: int, size: int, what: str) -> bytes:
        """从文件偏移读取size字节，越过文件末尾时抛出IoError"""
        if self.mmap_file is None:
            raise IoError("Input file is not open", path=self.file_path)
        if offset + size > self.file_size:
            raise IoError(f"Unexpected end of file while reading {what}", path=self.file_path,
                          offset=offset, length=size, file_size=self.file_size)
        return self.mmap_file[offset:offset + size]

    # =========================================================================
    # ELF header
    # =========================================================================

    def read_elf_header(self):
        """
        读取并校验ELF头部

        校验顺序：魔数、32位、小端、EI_VERSION、ET_EXEC、EM_MIPS、e_version。
        所有多字节字段按照 EI_DATA 声明的字节序解码。
        """
        ident = self._read(0, min(self.file_size, 16), "ELF identification")

        if ident[:4] != ELF_MAGIC:
            raise FormatError("Invalid ELF file: bad magic", field="e_ident[EI_MAG]",
                              offset=0, expected=ELF_MAGIC, actual=bytes(ident[:4]))

        ident = self._read(0, 16, "ELF identification")

        if ident[EI_CLASS] != ELFClass.ELFCLASS32:
            raise FormatError("Invalid ELF file: not a 32bit object", field="e_ident[EI_CLASS]",
                              offset=EI_CLASS, expected=ELFClass.ELFCLASS32, actual=ident[EI_CLASS])

        if ident[EI_DATA] != ELFData.ELFDATA2LSB:
            raise FormatError("Invalid ELF file: not a little endian object", field="e_ident[EI_DATA]",
                              offset=EI_DATA, expected=ELFData.ELFDATA2LSB, actual=ident[EI_DATA])

        if ident[EI_VERSION] != EV_CURRENT:
            raise FormatError("Invalid ELF file: bad IDENT version", field="e_ident[EI_VERSION]",
                              offset=EI_VERSION, expected=EV_CURRENT, actual=ident[EI_VERSION])

        self.encoding = ident[EI_DATA]
        self.types = get_elf_types(self.encoding)
        header_size = ctypes.sizeof(self.types['Ehdr'])
        self.header = self.types['Ehdr'].from_buffer_copy(self._read(0, header_size, "ELF header"))

        if self.header.e_type != ELFType.ET_EXEC:
            raise FormatError("Invalid ELF file: not an executable", field="e_type",
                              offset=0x10, expected=ELFType.ET_EXEC, actual=self.header.e_type)

        if self.header.e_machine != ELFMachine.EM_MIPS:
            raise FormatError("Invalid ELF file: not a MIPS executable", field="e_machine",
                              offset=0x12, expected=ELFMachine.EM_MIPS, actual=self.header.e_machine)

        if self.header.e_version != EV_CURRENT:
            raise FormatError("Invalid ELF file: bad object version", field="e_version",
                              offset=0x14, expected=EV_CURRENT, actual=self.header.e_version)

        if self.header.e_shentsize < MIN_SHENTSIZE:
            raise FormatError("Invalid ELF file: bad section header size", field="e_shentsize",
                              offset=0x2e, expected=MIN_SHENTSIZE, actual=self.header.e_shentsize)

        self.entry = self.header.e_entry

        logger.debug(f"ELF header: type={self.header.e_type}, machine={self.header.e_machine}, "
                     f"entry=0x{self.header.e_entry:x}, shoff=0x{self.header.e_shoff:x}, "
                     f"shnum={self.header.e_shnum}")

    # =========================================================================
    # Section headers
    # =========================================================================

    def read_section_headers(self):
        """读取所有段头；表项可能比Elf32_Shdr大，多出的部分忽略"""
        if self.header is None:
            raise FormatError("ELF header has not been read")

        shoff = self.header.e_shoff
        shentsize = self.header.e_shentsize
        shnum = self.header.e_shnum
        shdr_type = self.types['Shdr']
        shdr_size = ctypes.sizeof(shdr_type)

        self.section_headers = []
        for i in range(shnum):
            offset = shoff + i * shentsize
            shdr = shdr_type.from_buffer_copy(self._read(offset, shdr_size, f"section header {i}"))
            self.section_headers.append(shdr)

            logger.debug(f"Section header {i}: type=0x{shdr.sh_type:x}, flags=0x{shdr.sh_flags:x}, "
                         f"addr=0x{shdr.sh_addr:x}, size=0x{shdr.sh_size:x}")

        logger.info(f"Read {len(self.section_headers)} section headers")

    def parse_sections(self):
        """把段头归类为Section，未识别的类型静默丢弃"""
        self.sections = []
        for index, shdr in enumerate(self.section_headers):
            section = self._parse_section(index, shdr)
            if section is not None:
                self.sections.append(section)

        logger.info(f"Kept {len(self.sections)} of {len(self.section_headers)} sections")

    def _parse_section(self, index: int, shdr) -> Optional[Section]:
        addr = shdr.sh_addr
        align = shdr.sh_addralign

        # Only possible if the ELF is completely broken
        if align != 0 and addr % align != 0:
            raise FormatError(f"bad section alignment: addr {addr:08x} align {align}",
                              field=f"section[{index}].sh_addr", expected=align, actual=addr)

        if shdr.sh_flags & SectionFlags.SHF_ALLOC:
            if shdr.sh_type == SectionType.SHT_PROGBITS:
                contents = CodeData(self._section_data(index, shdr))
            elif shdr.sh_type == SectionType.SHT_NOBITS:
                contents = ZeroFill(shdr.sh_size)
            else:
                contents = None
        else:
            if shdr.sh_type == SectionType.SHT_MIPS_REGINFO:
                contents = RegisterInfo(self._section_data(index, shdr))
            elif shdr.sh_type == SectionType.SHT_SYMTAB:
                contents = SymbolTable(self._parse_symbols(self._section_data(index, shdr)),
                                       link=shdr.sh_link)
            elif shdr.sh_type == SectionType.SHT_STRTAB:
                contents = StringTable(self._section_data(index, shdr), index=index)
            else:
                contents = None

        if contents is None:
            logger.debug(f"Section {index}: dropping type "
                         f"{SECTION_TYPE_NAMES.get(shdr.sh_type, hex(shdr.sh_type))}")
            return None

        logger.debug(f"Section {index}: {type(contents).__name__} at 0x{addr:08x}, size 0x{shdr.sh_size:x}")
        return Section(base=addr, contents=contents)

    def _section_data(self, index: int, shdr) -> bytes:
        return bytes(self._read(shdr.sh_offset, shdr.sh_size, f"section {index} contents"))

    def _parse_symbols(self, data: bytes) -> tuple:
        """按16字节一项解码符号表，末尾不足一项的数据忽略"""
        sym_type = self.types['Sym']
        count = len(data) // SYMBOL_ENTRY_SIZE
        symbols = []
        for i in range(count):
            sym = sym_type.from_buffer_copy(data, i * SYMBOL_ENTRY_SIZE)
            symbols.append(Symbol(name=sym.st_name, value=sym.st_value, size=sym.st_size,
                                  info=sym.st_info, other=sym.st_other, shndx=sym.st_shndx))
        return tuple(symbols)

    # =========================================================================
    # Derived values
    # =========================================================================

    def _contents_of(self, kind) -> list:
        return [s.contents for s in self.sections if isinstance(s.contents, kind)]

    def find_global_pointer(self) -> int:
        """从第一个 .reginfo 段的 ri_gp_value 读取GP初值，没有则为0"""
        reginfos = self._contents_of(RegisterInfo)
        if not reginfos:
            return 0
        if len(reginfos) > 1:
            logger.warning(f"Found {len(reginfos)} register info sections, using the first one")

        data = reginfos[0].data
        if len(data) < REGINFO_GP_OFFSET + 4:
            raise FormatError("Register info section too small", field="ri_gp_value",
                              offset=REGINFO_GP_OFFSET, expected=REGINFO_GP_OFFSET + 4,
                              actual=len(data))

        word_type = ctypes.c_uint32.__ctype_le__
        if self.encoding == ELFData.ELFDATA2MSB:
            word_type = ctypes.c_uint32.__ctype_be__
        return word_type.from_buffer_copy(data, REGINFO_GP_OFFSET).value

    def _string_table_for(self, symtab: SymbolTable) -> Optional[StringTable]:
        strtabs = self._contents_of(StringTable)
        if not strtabs:
            return None
        for strtab in strtabs:
            if strtab.index == symtab.link:
                return strtab
        return strtabs[0]

    def find_stack_top(self) -> int:
        """查找名为 __stack 的符号，没有则使用默认栈顶 0x801FFFF0"""
        symtabs = self._contents_of(SymbolTable)
        if not symtabs:
            return PSX_STACK_BASE

        symtab = symtabs[0]
        strtab = self._string_table_for(symtab)
        if strtab is None:
            return PSX_STACK_BASE

        for sym in symtab.symbols:
            if cstring_at(strtab.data, sym.name) == STACK_SYMBOL:
                logger.debug(f"Found {STACK_SYMBOL.decode()} symbol: 0x{sym.value:08x}")
                return sym.value

        return PSX_STACK_BASE

    def load(self) -> ElfImage:
        """
        完整的加载流程

        Returns:
            ElfImage(entry, gp, stack, sections)
        """
        if self.mmap_file is None:
            self.open()

        self.read_elf_header()
        self.read_section_headers()
        self.parse_sections()

        # Make sure we have at least one ProgBits section
        if not self._contents_of(CodeData):
            raise MissingCodeSectionError()

        self.gp = self.find_global_pointer()
        self.stack = self.find_stack_top()

        logger.info(f"Entry 0x{self.entry:08x}, GP 0x{self.gp:08x}, stack 0x{self.stack:08x}")
        return ElfImage(entry=self.entry, gp=self.gp, stack=self.stack,
                        sections=tuple(self.sections))

    def list_sections(self) -> None:
        """列出保留下来的段，用于调试"""
        if not self.sections:
            print("No sections available")
            return

        print("=" * 60)
        print("SECTIONS:")
        print("=" * 60)
        print(f"{'Index':<6} {'Kind':<14} {'Base':<12} {'Size':<12}")
        print("-" * 60)

        for i, section in enumerate(self.sections):
            contents = section.contents
            if isinstance(contents, ZeroFill):
                size = contents.length
            elif isinstance(contents, SymbolTable):
                size = len(contents.symbols) * SYMBOL_ENTRY_SIZE
            else:
                size = len(contents.data)
            print(f"{i:<6} {type(contents).__name__:<14} 0x{section.base:08x}   0x{size:<10x}")

        print("=" * 60)


def read_elf(file_path: str) -> ElfImage:
    """Open, validate and parse file_path in one go"""
    with ELFReader(file_path) as reader:
        return reader.load()
