#!/usr/bin/env python3
"""
命令行和模块API测试
"""

import os
import tempfile

import pytest

import elf2psexe
from elf2psexe.main import convert, convert_file, main
from elf2psexe.psexe_writer import license_text, parse_psexe_header
from elf2psexe.types import PSX_HEADER_SIZE, PSX_STACK_BASE


@pytest.fixture
def game(elf, code):
    elf.progbits(0x80010000, code)
    elf.nobits(0x80010010, 0x200)
    elf.reginfo(0x80018000)
    strtab, names = elf.strtab(["_start", "__stack"])
    elf.symtab([(names["_start"], 0x80010000), (names["__stack"], 0x801ff800)], link=strtab)
    return elf


def test_main_success(tmp_path, game, code):
    src = game.write(tmp_path / "game.elf")
    dst = tmp_path / "game.exe"

    assert main(["NA", src, str(dst)]) == 0

    data = dst.read_bytes()
    header = parse_psexe_header(data)
    assert header.pc0 == 0x80010000
    assert header.gp0 == 0x80018000
    assert header.t_addr == 0x80010000
    assert header.t_size == 2048
    assert (header.b_addr, header.b_size) == (0x80010010, 0x200)
    assert header.s_addr == PSX_STACK_BASE
    assert license_text(header).endswith("North America area")
    assert data[PSX_HEADER_SIZE:PSX_HEADER_SIZE + len(code)] == code


def test_main_stack_from_elf(tmp_path, game):
    src = game.write(tmp_path / "game.elf")
    dst = tmp_path / "game.exe"

    assert main(["--stack-from-elf", "E", src, str(dst)]) == 0
    assert parse_psexe_header(dst.read_bytes()).s_addr == 0x801ff800


def test_main_invalid_region(tmp_path, game, capsys):
    src = game.write(tmp_path / "game.elf")
    dst = tmp_path / "game.exe"

    assert main(["US", src, str(dst)]) == 1
    assert not dst.exists()
    assert "ERROR: Invalid region" in capsys.readouterr().err


def test_main_bad_input(tmp_path, game):
    game.e_machine = 3
    src = game.write(tmp_path / "game.elf")
    dst = tmp_path / "game.exe"

    assert main(["J", src, str(dst)]) == 1
    assert not dst.exists()


def test_main_missing_input(tmp_path):
    assert main(["J", str(tmp_path / "missing.elf"), str(tmp_path / "out.exe")]) == 1


def test_main_missing_arguments():
    with pytest.raises(SystemExit) as excinfo:
        main(["NA"])
    assert excinfo.value.code != 0


def test_convert_in_memory(game):
    out = convert(game.build(), "J")
    header = parse_psexe_header(out)

    assert header.t_addr == 0x80010000
    assert license_text(header).endswith("Japan area")


def test_convert_invalid_region_before_reading(tmp_path):
    # The input does not exist; the region is rejected first
    with pytest.raises(elf2psexe.InvalidRegionError):
        convert_file(str(tmp_path / "missing.elf"), str(tmp_path / "out.exe"), "XX")


def test_convert_file_returns_size(tmp_path, game):
    src = game.write(tmp_path / "game.elf")
    assert convert_file(src, str(tmp_path / "game.exe"), elf2psexe.Region.EUROPE) == PSX_HEADER_SIZE + 2048


def test_convert_removes_temp_file_on_failure(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))

    # str is not writable to a binary file
    with pytest.raises(TypeError):
        convert("not bytes", "NA")

    assert os.listdir(tmp_path) == []


def test_convert_removes_temp_file_on_success(tmp_path, monkeypatch, game):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))

    convert(game.build(), "NA")

    assert os.listdir(tmp_path) == []
