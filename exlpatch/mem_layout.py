"""Process memory layout: module discovery, address regions, RW aliases and SoC type."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag

MAX_MODULES = 13
RTLD_MODULE_INDEX = 0
MAIN_MODULE_INDEX = 1
PAGE_SIZE = 0x1000

_MEM_STATE_TYPE = 0xFF


@dataclass(frozen=True)
class Range:
    """A span of addresses ``[start, start + size)``."""

    start: int = 0
    size: int = 0

    @property
    def end(self) -> int:
        return self.start + self.size

    def __contains__(self, address: object) -> bool:
        return isinstance(address, int) and self.start <= address < self.end


@dataclass(frozen=True)
class ModuleInfo:
    """The text, rodata and data segments of one module and their total span."""

    total: Range = Range()
    text: Range = Range()
    rodata: Range = Range()
    data: Range = Range()


class MemoryType(IntEnum):
    """Kernel memory types, as found in the low byte of a region's state."""

    UNMAPPED = 0x00
    IO = 0x01
    NORMAL = 0x02
    CODE_STATIC = 0x03
    CODE_MUTABLE = 0x04
    HEAP = 0x05
    SHARED_MEM = 0x06
    WEIRD_MAPPED_MEM = 0x07
    MODULE_CODE_STATIC = 0x08
    MODULE_CODE_MUTABLE = 0x09
    IPC_BUFFER0 = 0x0A
    MAPPED_MEMORY = 0x0B
    THREAD_LOCAL = 0x0C
    TRANSFER_MEM_ISOLATED = 0x0D
    TRANSFER_MEM = 0x0E
    PROCESS_MEM = 0x0F
    RESERVED = 0x10
    IPC_BUFFER1 = 0x11
    IPC_BUFFER3 = 0x12
    KERNEL_STACK = 0x13
    CODE_READ_ONLY = 0x14
    CODE_WRITABLE = 0x15


class Permission(IntFlag):
    """Memory access permissions."""

    NONE = 0
    R = 1
    W = 2
    X = 4
    RW = R | W
    RX = R | X


@dataclass(frozen=True)
class MemoryRegion:
    """One entry of a memory query: address, size, state and permission."""

    addr: int
    size: int
    type: int
    perm: int

    @property
    def memory_type(self) -> int:
        return self.type & _MEM_STATE_TYPE


class TooManyModulesError(RuntimeError):
    """Raised when more static modules are found than the layout can hold."""


@dataclass(frozen=True)
class MemoryLayout:
    """Modules found in the address space plus the process's address regions."""

    modules: tuple[ModuleInfo, ...]
    self_module_index: int = RTLD_MODULE_INDEX
    alias: Range | None = None
    heap: Range | None = None
    aslr: Range | None = None
    stack: Range | None = None
    max_modules: int = field(default=MAX_MODULES, repr=False)

    @property
    def module_count(self) -> int:
        return len(self.modules)

    def get_module_info(self, index: int) -> ModuleInfo:
        """The module at ``index``; raises ``IndexError`` beyond those found."""
        if not 0 <= index < self.module_count:
            raise IndexError(f"module index {index} out of range ({self.module_count} modules)")
        return self.modules[index]

    def rtld_module_info(self) -> ModuleInfo:
        return self.get_module_info(RTLD_MODULE_INDEX)

    def main_module_info(self) -> ModuleInfo:
        return self.get_module_info(MAIN_MODULE_INDEX)

    def self_module_info(self) -> ModuleInfo:
        return self.get_module_info(self.self_module_index)

    def sdk_module_info(self) -> ModuleInfo:
        return self.get_module_info(self.module_count - 1)

    def target_offset(self, offset: int) -> int:
        """An address ``offset`` bytes into the main module."""
        return self.main_module_info().total.start + offset

    def target_start(self) -> int:
        return self.target_offset(0)

    def self_start(self) -> int:
        return self.self_module_info().total.start


class _State(Enum):
    LOOKING_FOR_CODE_STATIC = "code"
    EXPECTING_RODATA = "rodata"
    EXPECTING_DATA = "data"


def find_modules(regions: Iterable[MemoryRegion], self_start: int | None = None) -> MemoryLayout:
    """Find modules as runs of text (RX), rodata (R) and data (RW) regions.

    With ``self_start`` given, the module starting there becomes the self module;
    otherwise the runtime linker module is.
    """
    modules: list[ModuleInfo] = []
    self_index = -1 if self_start is not None else RTLD_MODULE_INDEX
    state = _State.LOOKING_FOR_CODE_STATIC
    text = rodata = Range()
    prev_offset = 0

    for region in regions:
        if len(modules) >= MAX_MODULES:
            raise TooManyModulesError(f"more than {MAX_MODULES} static modules")

        memtype = region.memory_type
        perm = region.perm

        if state is _State.LOOKING_FOR_CODE_STATIC:
            if memtype == MemoryType.CODE_STATIC and perm == Permission.RX:
                text = Range(region.addr, region.size)
                state = _State.EXPECTING_RODATA
        elif state is _State.EXPECTING_RODATA:
            if memtype == MemoryType.CODE_STATIC and perm == Permission.R:
                rodata = Range(region.addr, region.size)
                state = _State.EXPECTING_DATA
            else:
                state = _State.LOOKING_FOR_CODE_STATIC
        else:
            if memtype == MemoryType.CODE_MUTABLE and perm == Permission.RW:
                data = Range(region.addr, region.size)
                total = Range(text.start, data.end - text.start)
                if self_start is not None and total.start == self_start:
                    self_index = len(modules)
                modules.append(ModuleInfo(total, text, rodata, data))
            state = _State.LOOKING_FOR_CODE_STATIC

        if region.addr < prev_offset:
            break
        prev_offset = region.addr

    if self_index == -1:
        raise ValueError(f"no module starts at 0x{self_start:X}")
    return MemoryLayout(tuple(modules), self_index)


def _align_down(value: int, alignment: int) -> int:
    return value & ~(alignment - 1)


def _align_up(value: int, alignment: int) -> int:
    return _align_down(value + alignment - 1, alignment)


@dataclass(frozen=True)
class RwClaim:
    """A read-only range and the writable alias mapped over the same pages."""

    ro: int = 0
    rw: int = 0
    size: int = 0

    def aligned_ro(self) -> int:
        return _align_down(self.ro, PAGE_SIZE)

    def aligned_rw(self) -> int:
        return _align_down(self.rw, PAGE_SIZE)

    def aligned_size(self) -> int:
        return _align_up(self.size, PAGE_SIZE)

    def _ro_to_offset(self, address: int) -> int:
        return self.ro - address

    def _rw_to_offset(self, address: int) -> int:
        return self.rw - address

    def ro_to_rw(self, address: int) -> int:
        return self.rw + self._ro_to_offset(address)

    def rw_to_ro(self, address: int) -> int:
        return self._rw_to_offset(address) + self.ro

    def in_ro(self, address: int) -> bool:
        offset = self._ro_to_offset(address)
        return 0 <= offset < self.size

    def in_rw(self, address: int) -> bool:
        offset = self._rw_to_offset(address)
        return 0 <= offset < self.size


class SocType(Enum):
    ERISTA = "erista"
    MARIKO = "mariko"


class HardwareType(IntEnum):
    ICOSA = 0
    COPPER = 1
    HOAG = 2
    IOWA = 3
    CALCIO = 4
    AULA = 5


_SOC_BY_HARDWARE = {
    HardwareType.ICOSA: SocType.ERISTA,
    HardwareType.COPPER: SocType.ERISTA,
    HardwareType.HOAG: SocType.MARIKO,
    HardwareType.IOWA: SocType.MARIKO,
    HardwareType.CALCIO: SocType.MARIKO,
    HardwareType.AULA: SocType.MARIKO,
}


def soc_type_for(hardware: int) -> SocType:
    """The SoC generation of a hardware type; raises ``ValueError`` if unknown."""
    return _SOC_BY_HARDWARE[HardwareType(hardware)]