#!/usr/bin/env python3
"""
PS-X EXE Writer Module
======================

Lays out the sections produced by the ELF reader into a PlayStation
executable: a 2048-byte header followed by the text+data image, padded to a
multiple of the CD-ROM sector size.

This module contains:
- Region: license region selection
- compute_layout(): sorting, size computation and memfill merging
- PsxWriter: header construction and payload serialization
- parse_psexe_header(): decoding of an existing header for inspection

Everything is validated and serialized in memory before the output file is
touched; the file itself is replaced atomically.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Tuple, Union

from .types import *
from .errors import (DiscontiguousZeroFillError, FormatError, InvalidRegionError,
                     MissingCodeSectionError, ObjectTooLargeError)
from .utils import align_up, write_file_atomic

logger = logging.getLogger(__name__)

LICENSE_PREFIX = b'Sony Computer Entertainment Inc. for '


class Region(Enum):
    """License region, selected on the command line by its code"""
    NORTH_AMERICA = ('NA', 'North America area')
    EUROPE = ('E', 'Europe area')
    JAPAN = ('J', 'Japan area')

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def area(self) -> str:
        return self.value[1]

    @classmethod
    def from_code(cls, code: str) -> 'Region':
        for region in cls:
            if region.code == code:
                return region
        raise InvalidRegionError(code)

    def license(self) -> bytes:
        return LICENSE_PREFIX + self.area.encode('ascii')


@dataclass(frozen=True)
class PsxLayout:
    """Where everything goes in the output file"""
    sections: Tuple[Section, ...]   # sorted by base address
    base: int
    end_address: int
    object_size: int
    padded_size: int
    memfill_base: int
    memfill_length: int

    def code_sections(self):
        return [s for s in self.sections if isinstance(s.contents, CodeData)]


def compute_layout(sections: Iterable[Section]) -> PsxLayout:
    """
    Sort the sections and work out the text+data span and the memfill region.

    Raises:
        MissingCodeSectionError: no CodeData section
        ObjectTooLargeError: text+data span above MAX_OBJECT_SIZE
        DiscontiguousZeroFillError: the ZeroFill sections are not one contiguous range
        FormatError: two CodeData sections overlap
    """
    # Only loadable sections end up in the EXE. Sort them by base address
    # since that's how we're going to dump them.
    loadable = [s for s in sections if isinstance(s.contents, (CodeData, ZeroFill))]
    ordered = tuple(sorted(loadable, key=lambda s: s.base))
    if not ordered:
        raise MissingCodeSectionError()

    base = ordered[0].base

    # Sections shouldn't overlap so the object ends where the last progbits
    # section ends. Memfill sections take no space in the file.
    code = [s for s in ordered if isinstance(s.contents, CodeData)]
    if not code:
        raise MissingCodeSectionError()

    offset = base
    for section in code:
        if section.base < offset:
            raise FormatError("Overlapping progbits sections", offset=section.base,
                              expected=offset, actual=section.base)
        offset = section.base + len(section.contents.data)

    end_address = code[-1].base + len(code[-1].contents.data)
    object_size = end_address - base
    if object_size > MAX_OBJECT_SIZE:
        raise ObjectTooLargeError(object_size, MAX_OBJECT_SIZE)

    padded_size = align_up(object_size, PSX_BLOCK_SIZE)

    memfill_base, memfill_length = _merge_memfill(ordered)

    return PsxLayout(sections=ordered, base=base, end_address=end_address,
                     object_size=object_size, padded_size=padded_size,
                     memfill_base=memfill_base, memfill_length=memfill_length)


def _merge_memfill(ordered: Tuple[Section, ...]) -> Tuple[int, int]:
    memfill_base = None
    memfill_length = 0

    for section in ordered:
        if not isinstance(section.contents, ZeroFill):
            continue
        if memfill_base is None:
            memfill_base = section.base
            memfill_length = section.contents.length
        elif memfill_base + memfill_length == section.base:
            memfill_length += section.contents.length
        else:
            raise DiscontiguousZeroFillError(memfill_base + memfill_length, section.base)

    if memfill_base is None:
        return 0, 0
    return memfill_base, memfill_length


class PsxWriter:
    """
    PS-X EXE serializer.

    The stack base defaults to the fixed platform value; the stack offset is
    always 0.
    """

    def __init__(self, region: Region, stack_base: int = PSX_STACK_BASE):
        self.region = region
        self.stack_base = stack_base
        self.stack_offset = 0

    def build_header(self, entry: int, gp: int, layout: PsxLayout) -> PsxHeader:
        header = PsxHeader()
        header.id[:] = PSX_MAGIC
        header.pc0 = entry
        header.gp0 = gp
        header.t_addr = layout.base
        header.t_size = layout.padded_size
        # The Nocash spec says d_addr and d_size are "usually 0"
        header.b_addr = layout.memfill_base
        header.b_size = layout.memfill_length
        header.s_addr = self.stack_base
        header.s_size = self.stack_offset

        # The license occupies the rest of the header whatever the region
        marker = self.region.license()
        header.license[:len(marker)] = marker
        return header

    def build_payload(self, layout: PsxLayout) -> bytearray:
        payload = bytearray()
        offset = layout.base

        for section in layout.code_sections():
            data = section.contents.data
            # Fill any gap between the previous section and this one with 0s
            payload += bytes(section.base - offset)
            payload += data
            offset = section.base + len(data)

        payload += bytes(layout.padded_size - layout.object_size)
        return payload

    def dump(self, entry: int, sections: Iterable[Section], gp: int) -> bytearray:
        """Validate and serialize the whole executable in memory"""
        layout = compute_layout(sections)

        logger.info(f"Entry PC:       0x{entry:08x}")
        logger.info(f"Initial GP:     0x{gp:08x}")
        logger.info(f"Base address:   0x{layout.base:08x}")
        logger.info(f"Text+data size: {layout.padded_size}B (actual {layout.object_size}B)")
        logger.info(f"Memfill base:   0x{layout.memfill_base:08x}")
        logger.info(f"Memfill length: {layout.memfill_length}B")
        logger.info(f"SP base:        0x{self.stack_base:08x}")
        logger.info(f"SP offset:      {self.stack_offset}")
        logger.info(f"Region:         {self.region.area}")

        out = bytearray(self.build_header(entry, gp, layout))
        out += self.build_payload(layout)
        return out

    def write(self, path: str, entry: int, sections: Iterable[Section], gp: int) -> int:
        data = self.dump(entry, sections, gp)
        write_file_atomic(path, data)
        logger.info(f"Successfully wrote {len(data)} bytes to {path}")
        return len(data)


def build_psexe(entry: int, sections: Iterable[Section], gp: int,
                region: Union[Region, str], stack_base: int = PSX_STACK_BASE) -> bytearray:
    if isinstance(region, str):
        region = Region.from_code(region)
    return PsxWriter(region, stack_base).dump(entry, sections, gp)


def write_psexe(path: str, entry: int, sections: Iterable[Section], gp: int,
                region: Union[Region, str], stack_base: int = PSX_STACK_BASE) -> int:
    """Write a PS-X EXE to path; returns the number of bytes written"""
    if isinstance(region, str):
        region = Region.from_code(region)
    return PsxWriter(region, stack_base).write(path, entry, sections, gp)


def parse_psexe_header(data: Union[bytes, bytearray]) -> PsxHeader:
    """Decode the 2048-byte header at the start of a PS-X EXE"""
    if len(data) < PSX_HEADER_SIZE:
        raise FormatError("PS-X EXE header truncated", expected=PSX_HEADER_SIZE, actual=len(data))
    header = PsxHeader.from_buffer_copy(data[:PSX_HEADER_SIZE])
    if bytes(header.id) != PSX_MAGIC:
        raise FormatError("Invalid PS-X EXE: bad magic", field="id", offset=0,
                          expected=PSX_MAGIC, actual=bytes(header.id))
    return header


def license_text(header: PsxHeader) -> str:
    """License marker with the trailing padding stripped"""
    return bytes(header.license).rstrip(b'\0').decode('ascii', errors='replace')
