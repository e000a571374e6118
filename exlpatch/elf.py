"""ELF64 dynamic-section structures, symbol hashing and relative relocation."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import astuple, dataclass
from enum import IntEnum
from typing import ClassVar

from .memory import Memory

MOD0_MAGIC = 0x30444F4D

SHN_UNDEF = 0
SHN_COMMON = 0xFFF2

STB_LOCAL = 0
STB_GLOBAL = 1
STB_WEAK = 2

STV_DEFAULT = 0
STV_INTERNAL = 1
STV_HIDDEN = 2
STV_PROTECTED = 3


class DynamicTag(IntEnum):
    """Tags of ``Elf64_Dyn`` entries."""

    NULL = 0
    NEEDED = 1
    PLTRELSZ = 2
    PLTGOT = 3
    HASH = 4
    STRTAB = 5
    SYMTAB = 6
    RELA = 7
    RELASZ = 8
    RELAENT = 9
    STRSZ = 10
    SYMENT = 11
    INIT = 12
    FINI = 13
    SONAME = 14
    RPATH = 15
    SYMBOLIC = 16
    REL = 17
    RELSZ = 18
    RELENT = 19
    PLTREL = 20
    DEBUG = 21
    TEXTREL = 22
    JMPREL = 23
    RELACOUNT = 0x6FFFFFF9
    RELCOUNT = 0x6FFFFFFA


class RelocationType(IntEnum):
    """AArch64 relocation types handled by the loader."""

    ABS64 = 257
    ABS32 = 258
    GLOB_DAT = 1025
    JUMP_SLOT = 1026
    RELATIVE = 1027


def _unpack(cls, data: bytes):
    fmt = cls._FORMAT
    if len(data) != fmt.size:
        raise ValueError(f"{cls.__name__} needs {fmt.size} bytes, got {len(data)}")
    return cls(*fmt.unpack(data))


class _Record:
    """Fixed-layout little-endian record backed by a ``struct.Struct``."""

    _FORMAT: ClassVar[struct.Struct]

    @classmethod
    def from_bytes(cls, data: bytes):
        """Decode one record from exactly its size in bytes."""
        return _unpack(cls, data)

    def to_bytes(self) -> bytes:
        return self._FORMAT.pack(*astuple(self))

    @classmethod
    def read(cls, memory: Memory, address: int):
        """Decode one record stored at ``address``."""
        return cls.from_bytes(memory.read_bytes(address, cls._FORMAT.size))


@dataclass(frozen=True)
class DynamicEntry(_Record):
    """An ``Elf64_Dyn`` entry."""

    tag: int
    value: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<qQ")
    SIZE: ClassVar[int] = 16


@dataclass(frozen=True)
class Rel(_Record):
    """An ``Elf64_Rel`` relocation."""

    offset: int
    info: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<QQ")
    SIZE: ClassVar[int] = 16


@dataclass(frozen=True)
class Rela(_Record):
    """An ``Elf64_Rela`` relocation."""

    offset: int
    info: int
    addend: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<QQq")
    SIZE: ClassVar[int] = 24


@dataclass(frozen=True)
class Symbol(_Record):
    """An ``Elf64_Sym`` entry; ``name_offset`` indexes the string table."""

    name_offset: int
    info: int
    other: int
    shndx: int
    value: int
    size: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<IBBHQQ")
    SIZE: ClassVar[int] = 24


@dataclass(frozen=True)
class ModuleHeader(_Record):
    """The ``MOD0`` header that locates a module's dynamic and bss sections."""

    magic: int
    dynamic_offset: int
    bss_start_offset: int
    bss_end_offset: int
    unwind_start_offset: int
    unwind_end_offset: int
    module_object_offset: int

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<7I")
    SIZE: ClassVar[int] = 28

    @classmethod
    def from_bytes(cls, data: bytes) -> ModuleHeader:
        """Decode a header from exactly 28 bytes."""
        return _unpack(cls, data)

    @property
    def is_valid(self) -> bool:
        return self.magic == MOD0_MAGIC


def elf_hash(name: str | bytes) -> int:
    """The SysV ELF symbol hash of ``name``."""
    data = name.encode() if isinstance(name, str) else name
    h = 0
    for byte in data:
        h = (h << 4) + byte
        g = h & 0xF0000000
        if g:
            h ^= g >> 24
        h &= ~g
    return h


def r_sym(info: int) -> int:
    """Symbol index of a relocation's info word."""
    return info >> 32


def r_type(info: int) -> int:
    """Relocation type of a relocation's info word."""
    return info & 0xFFFFFFFF


def st_bind(info: int) -> int:
    """Binding of a symbol's info byte."""
    return info >> 4


def st_visibility(other: int) -> int:
    """Visibility of a symbol's other byte."""
    return other & 0x3


def is_rel_absolute(rtype: int) -> bool:
    """Whether ``rtype`` is an absolute data relocation."""
    return rtype in (RelocationType.ABS32, RelocationType.ABS64)


def read_dynamic(memory: Memory, address: int) -> Iterator[DynamicEntry]:
    """Yield dynamic entries from ``address`` up to, not including, ``DT_NULL``."""
    while True:
        entry = DynamicEntry.read(memory, address)
        if entry.tag == DynamicTag.NULL:
            return
        yield entry
        address += DynamicEntry.SIZE


def apply_relocations(memory: Memory, aslr_base: int, dynamic_address: int) -> None:
    """Apply the ``R_AARCH64_RELATIVE`` relocations named by a dynamic section."""
    rela = rel = 0
    rela_entry_size, rel_entry_size = Rela.SIZE, Rel.SIZE
    rela_count = rel_count = 0
    rela_size = rel_size = 0

    for entry in read_dynamic(memory, dynamic_address):
        match entry.tag:
            case DynamicTag.RELA:
                rela = aslr_base + entry.value
            case DynamicTag.RELAENT:
                rela_entry_size = entry.value
            case DynamicTag.RELASZ:
                rela_size = entry.value
            case DynamicTag.REL:
                rel = aslr_base + entry.value
            case DynamicTag.RELENT:
                rel_entry_size = entry.value
            case DynamicTag.RELSZ:
                rel_size = entry.value
            case DynamicTag.RELACOUNT:
                rela_count = entry.value
            case DynamicTag.RELCOUNT:
                rel_count = entry.value

    if rela_count == 0 and rela_entry_size:
        rela_count = rela_size // rela_entry_size
    if rel_count == 0 and rel_entry_size:
        rel_count = rel_size // rel_entry_size

    for i in range(rel_count):
        entry = Rel.read(memory, rel + i * rel_entry_size)
        if r_type(entry.info) == RelocationType.RELATIVE:
            target = aslr_base + entry.offset
            memory.write_u64(target, memory.read_u64(target) + aslr_base)

    for i in range(rela_count):
        entry = Rela.read(memory, rela + i * rela_entry_size)
        if r_type(entry.info) == RelocationType.RELATIVE:
            memory.write_u64(aslr_base + entry.offset, aslr_base + entry.addend)