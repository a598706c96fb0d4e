#!/usr/bin/env python3
"""
elf2psexe
=========

把32位MIPS ELF可执行文件转换为PlayStation的PS-X EXE格式。

核心模块：
- elf_reader: ELF文件校验和段解析
- psexe_writer: PS-X EXE布局计算和序列化
- types: ELF / PS-X EXE 结构和段模型
- errors: 转换错误类型
- utils: 通用工具函数
- main: 命令行主程序
"""

__version__ = "0.1.0"

from .elf_reader import ELFReader, read_elf
from .psexe_writer import (PsxWriter, Region, build_psexe, compute_layout,
                           parse_psexe_header, write_psexe)
from .errors import *
from .main import main, convert, convert_file

__all__ = [
    'ELFReader',
    'PsxWriter',
    'Region',
    'read_elf',
    'compute_layout',
    'build_psexe',
    'write_psexe',
    'parse_psexe_header',
    'convert',
    'convert_file',
    'main',
    'ConversionError',
    'IoError',
    'FormatError',
    'MissingCodeSectionError',
    'DiscontiguousZeroFillError',
    'ObjectTooLargeError',
    'InvalidRegionError',
]
