"""A module object model of the runtime linker: relocation and symbol binding."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from .elf import (
    SHN_COMMON,
    STB_WEAK,
    DynamicTag,
    Rel,
    Rela,
    RelocationType,
    Symbol,
    elf_hash,
    is_rel_absolute,
    r_sym,
    r_type,
    read_dynamic,
    st_bind,
    st_visibility,
)
from .memory import Memory

logger = logging.getLogger(__name__)


def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


class ModuleObject:
    """A loaded module, described by its dynamic section."""

    def __init__(
        self, memory: Memory, aslr_base: int, dynamic_address: int, linker: RuntimeLinker
    ) -> None:
        self.memory = memory
        self.linker = linker
        self.address = 0
        self.module_base = aslr_base
        self.dynamic = dynamic_address
        self.is_rela = False
        self.rela_or_rel_plt = 0
        self.rela_or_rel_plt_size = 0
        self.rela_or_rel = 0
        self.dt_init = 0
        self.dt_fini = 0
        self.hash_bucket = 0
        self.hash_chain = 0
        self.hash_nbucket_value = 0
        self.hash_nchain_value = 0
        self.dynstr = 0
        self.dynstr_size = 0
        self.dynsym = 0
        self.got = 0
        self.rela_dyn_size = 0
        self.rel_dyn_size = 0
        self.rel_count = 0
        self.rela_count = 0
        self.got_stub_ptr = 0
        self.soname_idx = 0
        self.nro_size = 0
        self.cannot_revert_symbols = False

        for entry in read_dynamic(memory, dynamic_address):
            value = entry.value
            match entry.tag:
                case DynamicTag.PLTRELSZ:
                    self.rela_or_rel_plt_size = value
                case DynamicTag.PLTGOT:
                    self.got = aslr_base + value
                case DynamicTag.HASH:
                    table = aslr_base + value
                    nbucket = memory.read_u32(table)
                    self.hash_nbucket_value = nbucket
                    self.hash_nchain_value = memory.read_u32(table + 4)
                    self.hash_bucket = table + 8
                    self.hash_chain = table + 8 + 4 * nbucket
                case DynamicTag.STRTAB:
                    self.dynstr = aslr_base + value
                case DynamicTag.SYMTAB:
                    self.dynsym = aslr_base + value
                case DynamicTag.REL | DynamicTag.RELA:
                    self.rela_or_rel = aslr_base + value
                case DynamicTag.RELASZ:
                    self.rela_dyn_size = value
                case DynamicTag.RELAENT:
                    _expect(value == Rela.SIZE, f"unexpected DT_RELAENT {value}")
                case DynamicTag.SYMENT:
                    _expect(value == Symbol.SIZE, f"unexpected DT_SYMENT {value}")
                case DynamicTag.STRSZ:
                    self.dynstr_size = value
                case DynamicTag.INIT:
                    self.dt_init = aslr_base + value
                case DynamicTag.FINI:
                    self.dt_fini = aslr_base + value
                case DynamicTag.RELSZ:
                    self.rel_dyn_size = value
                case DynamicTag.RELENT:
                    _expect(value == Rel.SIZE, f"unexpected DT_RELENT {value}")
                case DynamicTag.PLTREL:
                    self.is_rela = value == DynamicTag.RELA
                    _expect(value in (DynamicTag.REL, DynamicTag.RELA), f"unexpected DT_PLTREL {value}")
                case DynamicTag.JMPREL:
                    self.rela_or_rel_plt = aslr_base + value
                case DynamicTag.RELACOUNT:
                    self.rela_count = value
                case DynamicTag.RELCOUNT:
                    self.rel_count = value
                case DynamicTag.SONAME:
                    self.soname_idx = value

    def _symbol(self, index: int) -> Symbol:
        return Symbol.read(self.memory, self.dynsym + index * Symbol.SIZE)

    def _symbol_name(self, symbol: Symbol) -> str:
        return self.memory.read_cstring(self.dynstr + symbol.name_offset)

    def relocate(self) -> None:
        """Apply the leading relative relocations counted by RELCOUNT and RELACOUNT."""
        for i in range(self.rel_count):
            entry = Rel.read(self.memory, self.rela_or_rel + i * Rel.SIZE)
            if r_type(entry.info) == RelocationType.RELATIVE:
                target = self.module_base + entry.offset
                self.memory.write_u64(target, self.memory.read_u64(target) + self.module_base)

        for i in range(self.rela_count):
            entry = Rela.read(self.memory, self.rela_or_rel + i * Rela.SIZE)
            if r_type(entry.info) == RelocationType.RELATIVE:
                self.memory.write_u64(self.module_base + entry.offset, self.module_base + entry.addend)

    def get_symbol_by_name(self, name: str) -> Symbol | None:
        """Find a defined, non-common symbol through the module's hash table."""
        if not self.hash_nbucket_value:
            return None
        bucket = elf_hash(name) % self.hash_nbucket_value
        index = self.memory.read_u32(self.hash_bucket + 4 * bucket)
        while index:
            symbol = self._symbol(index)
            is_common = symbol.shndx == SHN_COMMON if symbol.shndx else True
            if not is_common and self._symbol_name(symbol) == name:
                return symbol
            index = self.memory.read_u32(self.hash_chain + 4 * index)
        return None

    def try_resolve_symbol(self, symbol: Symbol) -> int | None:
        """The address ``symbol`` binds to, 0 for a missing weak local, else None."""
        name = self._symbol_name(symbol)
        if st_visibility(symbol.other):
            target = self.get_symbol_by_name(name)
            if target is not None:
                return self.module_base + target.value
            if (st_bind(symbol.info) & STB_WEAK) == STB_WEAK:
                return 0
            return None

        address = self.linker.lookup_global_auto(name)
        if not address and self.linker.lookup_global_manual is not None:
            address = self.linker.lookup_global_manual(name)
        return address or None

    def _report(self, symbol: Symbol) -> None:
        self.linker._report_unresolved(self._symbol_name(symbol))

    def _resolve_absolute(self, entry: Rel | Rela) -> None:
        rtype = r_type(entry.info)
        if not (is_rel_absolute(rtype) or rtype == RelocationType.GLOB_DAT):
            return
        symbol = self._symbol(r_sym(entry.info))
        address = self.try_resolve_symbol(symbol)
        if address is None:
            if self.linker.debug:
                self._report(symbol)
            return
        target = self.module_base + entry.offset
        if isinstance(entry, Rela):
            self.memory.write_u64(target, address + entry.addend)
        else:
            self.memory.write_u64(target, self.memory.read_u64(target) + address)

    def _resolve_jump_slot(self, entry: Rel | Rela, do_lazy_got_init: bool) -> None:
        if r_type(entry.info) != RelocationType.JUMP_SLOT:
            return
        target = self.module_base + entry.offset
        original = self.memory.read_u64(target)
        stub = (self.module_base + original) & ((1 << 64) - 1)
        if do_lazy_got_init:
            self.memory.write_u64(target, stub)

        if self.got_stub_ptr:
            _expect(self.got_stub_ptr == stub, f"PLT stub mismatch at 0x{target:X}")
        else:
            self.got_stub_ptr = stub

        if do_lazy_got_init:
            return
        symbol = self._symbol(r_sym(entry.info))
        address = self.try_resolve_symbol(symbol)
        if address is None:
            if self.linker.debug:
                self._report(symbol)
            self.memory.write_u64(target, stub)
        elif isinstance(entry, Rela):
            self.memory.write_u64(target, address + entry.addend)
        else:
            self.memory.write_u64(target, original + address)

    def resolve_symbols(self, do_lazy_got_init: bool) -> None:
        """Bind data and PLT relocations; lazily when ``do_lazy_got_init`` is set."""
        for index in range(self.rel_count, self.rel_dyn_size // Rel.SIZE):
            self._resolve_absolute(Rel.read(self.memory, self.rela_or_rel + index * Rel.SIZE))

        for index in range(self.rela_count, self.rela_dyn_size // Rela.SIZE):
            self._resolve_absolute(Rela.read(self.memory, self.rela_or_rel + index * Rela.SIZE))

        kind = Rela if self.is_rela else Rel
        if self.rela_or_rel_plt_size >= kind.SIZE:
            for index in range(self.rela_or_rel_plt_size // kind.SIZE):
                entry = kind.read(self.memory, self.rela_or_rel_plt + index * kind.SIZE)
                self._resolve_jump_slot(entry, do_lazy_got_init)

        if self.got:
            self.memory.write_u64(self.got + 8, self.address)
            self.memory.write_u64(self.got + 16, self.linker.runtime_resolve_address)

    def lazy_bind_symbol(self, index: int) -> int:
        """Resolve PLT entry ``index`` on first call; 0 when it cannot be bound."""
        kind = Rela if self.is_rela else Rel
        entry = kind.read(self.memory, self.rela_or_rel_plt + index * kind.SIZE)
        symbol = self._symbol(r_sym(entry.info))
        address = self.try_resolve_symbol(symbol)
        if address is None:
            self._report(symbol)
            return 0
        if isinstance(entry, Rela):
            return 0 if address == 0 else address + entry.addend
        return address


class ModuleObjectList:
    """Loaded modules in load order."""

    def __init__(self) -> None:
        self._modules: list[ModuleObject] = []

    def append(self, module: ModuleObject) -> None:
        self._modules.append(module)

    def remove(self, module: ModuleObject) -> None:
        self._modules.remove(module)

    def __iter__(self) -> Iterator[ModuleObject]:
        return iter(self._modules)

    def __reversed__(self) -> Iterator[ModuleObject]:
        return reversed(self._modules)

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, module: object) -> bool:
        return module in self._modules


class RuntimeLinker:
    """Global linker state: load lists, manual lookup hook and debug reporting."""

    def __init__(
        self,
        lookup_global_manual: Callable[[str], int | None] | None = None,
        debug: bool = False,
        runtime_resolve_address: int = 0,
    ) -> None:
        self.auto_load_list = ModuleObjectList()
        self.manual_load_list = ModuleObjectList()
        self.lookup_global_manual = lookup_global_manual
        self.debug = debug
        self.runtime_resolve_address = runtime_resolve_address
        self.unresolved_symbols: list[str] = []

    def lookup_global_auto(self, name: str) -> int | None:
        """Address of the first non-local definition of ``name`` in auto-loaded modules."""
        for module in self.auto_load_list:
            symbol = module.get_symbol_by_name(name)
            if symbol is not None and st_bind(symbol.info):
                return module.module_base + symbol.value
        return None

    def _report_unresolved(self, name: str) -> None:
        logger.warning("unresolved symbol %s", name)
        self.unresolved_symbols.append(name)