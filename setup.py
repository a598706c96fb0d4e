#!/usr/bin/env python3
"""
elf2psexe 安装脚本
==================

MIPS ELF -> PS-X EXE 转换工具的安装配置。
"""

from setuptools import setup, find_packages
import os

# 读取长描述
def read_long_description():
    here = os.path.abspath(os.path.dirname(__file__))
    try:
        with open(os.path.join(here, 'README.md'), 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        return "elf2psexe - MIPS ELF to PlayStation PS-X EXE converter"

setup(
    name="elf2psexe",
    version="0.1.0",
    author="",
    author_email="",
    description="Convert MIPS ELF executables into PlayStation PS-X EXE files",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",

    # 包配置
    package_dir={"": "src"},
    packages=find_packages(where="src"),

    # 依赖 (只依赖标准库)
    install_requires=[],
    extras_require={
        "test": ["pytest"],
    },

    # Python版本要求
    python_requires=">=3.8",

    # 分类器
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Software Development :: Embedded Systems",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
    ],

    # 命令行入口点
    entry_points={
        "console_scripts": [
            "elf2psexe=elf2psexe.main:main",
        ],
    },

    # 项目关键词
    keywords="elf, mips, playstation, psx, ps-x exe, homebrew",

    # 包含的非Python文件
    include_package_data=True,

    # 开发状态
    zip_safe=False,
)
