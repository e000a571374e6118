import struct

import pytest

from exlpatch.elf import (
    SHN_COMMON,
    STV_HIDDEN,
    DynamicEntry,
    DynamicTag,
    Rela,
    RelocationType,
    Symbol,
    elf_hash,
)
from exlpatch.memory import Memory
from exlpatch.rtld import ModuleObject, ModuleObjectList, RuntimeLinker

DYNAMIC, DYNSTR, DYNSYM, HASH, RELA_DYN, RELA_PLT, GOT, DATA = (
    0x0, 0x200, 0x400, 0x600, 0x800, 0xA00, 0xC00, 0x1000,
)
NBUCKET = 4
GLOBAL_FUNC = 0x12
LOCAL_FUNC = 0x02
WEAK_FUNC = 0x22

IMPORTER = 0x200000
PROVIDER = 0x400000


def info(sym, rtype):
    return (sym << 32) | rtype


def build_module(memory, base, symbols, rela_dyn=(), rela_count=0, plt=(), extra_tags=()):
    memory.map(base, 0x2000)
    strtab = bytearray(b"\0")
    syms = [Symbol(0, 0, 0, 0, 0, 0)]
    buckets = [0] * NBUCKET
    chain = [0] * (len(symbols) + 1)
    for index, (name, sym_info, other, shndx, value) in enumerate(symbols, start=1):
        syms.append(Symbol(len(strtab), sym_info, other, shndx, value, 0))
        strtab += name.encode() + b"\0"
        bucket = elf_hash(name) % NBUCKET
        chain[index] = buckets[bucket]
        buckets[bucket] = index
    memory.write_bytes(base + DYNSTR, bytes(strtab))
    memory.write_bytes(base + DYNSYM, b"".join(s.to_bytes() for s in syms))
    memory.write_bytes(
        base + HASH,
        struct.pack(f"<{2 + NBUCKET + len(chain)}I", NBUCKET, len(chain), *buckets, *chain),
    )
    memory.write_bytes(base + RELA_DYN, b"".join(r.to_bytes() for r in rela_dyn))
    memory.write_bytes(base + RELA_PLT, b"".join(r.to_bytes() for r in plt))
    tags = [
        (DynamicTag.STRTAB, DYNSTR), (DynamicTag.STRSZ, len(strtab)),
        (DynamicTag.SYMTAB, DYNSYM), (DynamicTag.SYMENT, Symbol.SIZE),
        (DynamicTag.HASH, HASH), (DynamicTag.RELA, RELA_DYN),
        (DynamicTag.RELASZ, Rela.SIZE * len(rela_dyn)), (DynamicTag.RELAENT, Rela.SIZE),
        (DynamicTag.RELACOUNT, rela_count), (DynamicTag.PLTREL, DynamicTag.RELA),
        (DynamicTag.PLTRELSZ, Rela.SIZE * len(plt)), (DynamicTag.JMPREL, RELA_PLT),
        (DynamicTag.PLTGOT, GOT), *extra_tags, (DynamicTag.NULL, 0),
    ]
    memory.write_bytes(base + DYNAMIC, b"".join(DynamicEntry(t, v).to_bytes() for t, v in tags))
    return base + DYNAMIC


@pytest.fixture
def memory():
    return Memory()


@pytest.fixture
def linker():
    return RuntimeLinker()


def make_provider(memory, linker):
    dyn = build_module(memory, PROVIDER, [
        ("imported", GLOBAL_FUNC, 0, 1, 0x300),
        ("local_only", LOCAL_FUNC, 0, 1, 0x200),
    ])
    provider = ModuleObject(memory, PROVIDER, dyn, linker)
    linker.auto_load_list.append(provider)
    return provider


def make_importer(memory, linker, **kwargs):
    dyn = build_module(memory, IMPORTER, [("imported", GLOBAL_FUNC, 0, 0, 0)], **kwargs)
    return ModuleObject(memory, IMPORTER, dyn, linker)


def test_initialize_reads_tables(memory, linker):
    dyn = build_module(memory, IMPORTER, [("a", GLOBAL_FUNC, 0, 1, 1)], rela_count=1)
    module = ModuleObject(memory, IMPORTER, dyn, linker)
    assert module.dynsym == IMPORTER + DYNSYM
    assert module.dynstr == IMPORTER + DYNSTR
    assert module.hash_nbucket_value == NBUCKET
    assert module.hash_nchain_value == 2
    assert module.hash_chain == module.hash_bucket + 4 * NBUCKET
    assert module.is_rela is True
    assert module.got == IMPORTER + GOT
    assert module.rela_count == 1


def test_bad_syment_raises(memory, linker):
    dyn = build_module(memory, IMPORTER, [], extra_tags=[(DynamicTag.SYMENT, 16)])
    with pytest.raises(ValueError):
        ModuleObject(memory, IMPORTER, dyn, linker)


def test_bad_pltrel_raises(memory, linker):
    dyn = build_module(memory, IMPORTER, [], extra_tags=[(DynamicTag.PLTREL, DynamicTag.HASH)])
    with pytest.raises(ValueError):
        ModuleObject(memory, IMPORTER, dyn, linker)


def test_relocate_applies_relative(memory, linker):
    dyn = build_module(
        memory, IMPORTER, [],
        rela_dyn=[Rela(DATA, RelocationType.RELATIVE, 0x40)], rela_count=1,
    )
    ModuleObject(memory, IMPORTER, dyn, linker).relocate()
    assert memory.read_u64(IMPORTER + DATA) == IMPORTER + 0x40


def test_get_symbol_by_name(memory, linker):
    dyn = build_module(memory, IMPORTER, [
        ("defined", GLOBAL_FUNC, 0, 1, 0x100),
        ("undefined", GLOBAL_FUNC, 0, 0, 0),
        ("common", 0x11, 0, SHN_COMMON, 0x10),
    ])
    module = ModuleObject(memory, IMPORTER, dyn, linker)
    assert module.get_symbol_by_name("defined").value == 0x100
    assert module.get_symbol_by_name("undefined") is None
    assert module.get_symbol_by_name("common") is None
    assert module.get_symbol_by_name("missing") is None


def test_lookup_global_auto(memory, linker):
    make_provider(memory, linker)
    assert linker.lookup_global_auto("imported") == PROVIDER + 0x300
    assert linker.lookup_global_auto("local_only") is None
    assert RuntimeLinker().lookup_global_auto("imported") is None


def test_resolve_glob_dat(memory, linker):
    make_provider(memory, linker)
    module = make_importer(
        memory, linker, rela_dyn=[Rela(DATA, info(1, RelocationType.GLOB_DAT), 8)]
    )
    module.resolve_symbols(False)
    assert memory.read_u64(IMPORTER + DATA) == PROVIDER + 0x300 + 8


def test_unresolved_reported_in_debug(memory):
    linker = RuntimeLinker(debug=True)
    module = make_importer(
        memory, linker, rela_dyn=[Rela(DATA, info(1, RelocationType.GLOB_DAT), 8)]
    )
    module.resolve_symbols(False)
    assert memory.read_u64(IMPORTER + DATA) == 0
    assert linker.unresolved_symbols == ["imported"]


def test_jump_slot_non_lazy_binds_and_fills_got(memory):
    linker = RuntimeLinker(runtime_resolve_address=0x7000)
    make_provider(memory, linker)
    module = make_importer(memory, linker, plt=[Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 0)])
    module.address = 0x9000
    memory.write_u64(IMPORTER + GOT + 0x18, 0x50)
    module.resolve_symbols(False)
    assert memory.read_u64(IMPORTER + GOT + 0x18) == PROVIDER + 0x300
    assert module.got_stub_ptr == IMPORTER + 0x50
    assert memory.read_u64(IMPORTER + GOT + 8) == module.address
    assert memory.read_u64(IMPORTER + GOT + 16) == linker.runtime_resolve_address


def test_jump_slot_lazy_points_to_stub(memory, linker):
    make_provider(memory, linker)
    module = make_importer(memory, linker, plt=[Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 0)])
    memory.write_u64(IMPORTER + GOT + 0x18, 0x50)
    module.resolve_symbols(True)
    assert memory.read_u64(IMPORTER + GOT + 0x18) == IMPORTER + 0x50


def test_unresolved_jump_slot_falls_back_to_stub(memory, linker):
    module = make_importer(memory, linker, plt=[Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 0)])
    memory.write_u64(IMPORTER + GOT + 0x18, 0x50)
    module.resolve_symbols(False)
    assert memory.read_u64(IMPORTER + GOT + 0x18) == IMPORTER + 0x50
    assert linker.unresolved_symbols == []


def test_mismatched_stubs_raise(memory, linker):
    plt = [
        Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 0),
        Rela(GOT + 0x20, info(1, RelocationType.JUMP_SLOT), 0),
    ]
    module = make_importer(memory, linker, plt=plt)
    memory.write_u64(IMPORTER + GOT + 0x18, 0x50)
    memory.write_u64(IMPORTER + GOT + 0x20, 0x60)
    with pytest.raises(ValueError):
        module.resolve_symbols(True)


def test_hidden_symbols_resolve_locally(memory, linker):
    dyn = build_module(memory, IMPORTER, [
        ("hidden", GLOBAL_FUNC, STV_HIDDEN, 1, 0x180),
        ("weakling", WEAK_FUNC, STV_HIDDEN, 0, 0),
        ("strong", GLOBAL_FUNC, STV_HIDDEN, 0, 0),
    ])
    module = ModuleObject(memory, IMPORTER, dyn, linker)
    hidden, weak, strong = (Symbol.read(memory, module.dynsym + i * Symbol.SIZE) for i in (1, 2, 3))
    assert module.try_resolve_symbol(hidden) == IMPORTER + 0x180
    assert module.try_resolve_symbol(weak) == 0
    assert module.try_resolve_symbol(strong) is None


def test_manual_lookup_fallback(memory):
    linker = RuntimeLinker(lookup_global_manual=lambda name: 0xABC000 if name == "imported" else None)
    module = make_importer(memory, linker)
    symbol = Symbol.read(memory, module.dynsym + Symbol.SIZE)
    assert module.try_resolve_symbol(symbol) == 0xABC000


def test_lazy_bind_symbol(memory, linker):
    make_provider(memory, linker)
    module = make_importer(memory, linker, plt=[Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 4)])
    assert module.lazy_bind_symbol(0) == PROVIDER + 0x300 + 4


def test_lazy_bind_unresolved_reports(memory, linker):
    module = make_importer(memory, linker, plt=[Rela(GOT + 0x18, info(1, RelocationType.JUMP_SLOT), 4)])
    assert module.lazy_bind_symbol(0) == 0
    assert linker.unresolved_symbols == ["imported"]


def test_module_object_list_order(memory, linker):
    first = make_importer(memory, linker)
    second = make_provider(memory, RuntimeLinker())
    modules = ModuleObjectList()
    modules.append(first)
    modules.append(second)
    assert list(modules) == [first, second]
    assert list(reversed(modules)) == [second, first]
    assert len(modules) == 2
    modules.remove(first)
    assert first not in modules