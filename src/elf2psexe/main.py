#!/usr/bin/env python3
"""
elf2psexe
=========

Convert a 32bit MIPS ELF executable into a PlayStation PS-X EXE.

CLI Usage:
    elf2psexe NA game.elf game.exe
    elf2psexe -d E game.elf game.exe

Module Usage:
    import elf2psexe

    with open('game.elf', 'rb') as f:
        elf_data = f.read()

    exe_data = elf2psexe.convert(elf_data, 'NA')

    with open('game.exe', 'wb') as f:
        f.write(exe_data)

Every failure raises a subclass of elf2psexe.errors.ConversionError.
"""

import sys
import os
import argparse
import logging
import tempfile
from typing import Union

from .utils import setup_logging
from .errors import ConversionError
from .elf_reader import read_elf
from .psexe_writer import PsxWriter, Region

logger = logging.getLogger(__name__)


def _writer_for(image, region: Region, stack_from_elf: bool) -> PsxWriter:
    if stack_from_elf:
        return PsxWriter(region, stack_base=image.stack)
    return PsxWriter(region)


def convert_file(elf_path: str, psexe_path: str, region: Union[Region, str],
                 stack_from_elf: bool = False) -> int:
    """
    Convert elf_path into psexe_path.

    Args:
        elf_path: input ELF executable
        psexe_path: output PS-X EXE, replaced atomically
        region: Region or region code ("NA", "E" or "J")
        stack_from_elf: use the __stack symbol as SP base instead of 0x801ffff0

    Returns:
        Number of bytes written
    """
    if isinstance(region, str):
        region = Region.from_code(region)

    image = read_elf(elf_path)
    writer = _writer_for(image, region, stack_from_elf)
    return writer.write(psexe_path, image.entry, image.sections, image.gp)


def convert(elf_data: Union[bytes, bytearray], region: Union[Region, str],
            stack_from_elf: bool = False) -> bytearray:
    """
    Convert ELF data in memory.

    Returns:
        The PS-X EXE as a bytearray
    """
    if isinstance(region, str):
        region = Region.from_code(region)

    # The reader maps a file, so go through a temporary one
    temp_elf = tempfile.NamedTemporaryFile(delete=False)
    temp_elf_path = temp_elf.name

    try:
        with temp_elf:
            temp_elf.write(elf_data)
        image = read_elf(temp_elf_path)
    finally:
        os.unlink(temp_elf_path)

    writer = _writer_for(image, region, stack_from_elf)
    return writer.dump(image.entry, image.sections, image.gp)


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(
        prog='elf2psexe',
        description='Convert a MIPS ELF executable into a PlayStation PS-X EXE',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Valid regions: NA, E or J

Examples:
  elf2psexe NA game.elf game.exe
  elf2psexe -d J game.elf game.exe
        """
    )

    parser.add_argument('region', metavar='REGION',
                        help='License region: NA, E or J')
    parser.add_argument('elf', metavar='ELF',
                        help='Input ELF executable')
    parser.add_argument('psexe', metavar='PSEXE',
                        help='Output PS-X EXE')
    parser.add_argument('--stack-from-elf', action='store_true',
                        help='Use the __stack symbol as initial SP instead of 0x801ffff0')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='Enable debug output')

    args = parser.parse_args(argv)

    setup_logging(args.debug)

    try:
        region = Region.from_code(args.region)
        convert_file(args.elf, args.psexe, region, stack_from_elf=args.stack_from_elf)
        return 0

    except ConversionError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
