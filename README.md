# exlpatch

Tools for building AArch64 code patches and for reasoning about loaded
modules, in plain Python with no third-party dependencies.

## What is in it

- `exlpatch.bitset`: `Mask` (a bit range `[low, high)`), `BitSet` (a
  fixed-width word with `bits_of` and `set_bits`) and `sign_extend`, which
  encodes a value as a two's-complement field of a given width.
- `exlpatch.registers`: `Register` and `RegisterKind`, with the names
  `W0`..`W30`, `X0`..`X30`, `LR`, `SP`, and `NONE32` / `NONE64` for the
  zero register.
- `exlpatch.instruction`: the `Instruction` base word, the `Field`
  descriptor used to expose bit fields as attributes, `ShiftType`,
  `ExtendType` and the top-level encoding groups.
- Instruction encoders; each is a 32-bit `BitSet` whose `value` (or
  `int(...)`) is the instruction word:
  - `exlpatch.data_processing`: `AddImmediate`, `AddsImmediate`,
    `SubImmediate`, `SubsImmediate`, `CmnImmediate`, `CmpImmediate`,
    `Movz`, `Movn`, `Movk`, `Adr`, `Adrp`, plus the `LogicalImmediate`
    group. Add/subtract immediates that are a non-zero multiple of 0x1000
    are encoded with the 12-bit shift.
  - `exlpatch.branches`: `Nop`, `Branch`, `BranchLink`, `BranchRegister`,
    `Ret` (defaults to `LR`).
  - `exlpatch.logical_register`: `OrrShiftedRegister`, `MovRegister`.
  - `exlpatch.load_store`: `LdrLiteral`, `LdrRegisterOffset`,
    `StrRegisterOffset`, with `create_option` and `create_s`.
  - `exlpatch.load_store_immediate`: `LdurUnscaledImmediate`,
    `SturUnscaledImmediate`, `LdrRegisterImmediate`,
    `StrRegisterImmediate`.
- `exlpatch.memory`: `Memory`, a sparse little-endian address space built
  from mapped segments (`map`, `read_bytes`, `write_bytes`, `read_u32`,
  `write_u32`, `read_u64`, `write_u64`, `read_cstring`); unmapped access
  raises `MemoryAccessError`. `follow` and `follow_safe` walk pointer
  paths (the safe form returns 0 on a null pointer), and
  `MemberFunctionPointer` decodes 16-byte member function pointers and
  resolves virtual ones through a vtable.
- `exlpatch.elf`: ELF64 records (`DynamicEntry`, `Rel`, `Rela`, `Symbol`,
  `ModuleHeader`), `DynamicTag`, `RelocationType`, `elf_hash`,
  `read_dynamic`, and `apply_relocations`, which applies the
  `R_AARCH64_RELATIVE` relocations named by a dynamic section.
- `exlpatch.rtld`: `ModuleObject` reads a module's dynamic section and
  offers `relocate`, `get_symbol_by_name`, `try_resolve_symbol`,
  `resolve_symbols` (eager or lazy GOT setup) and `lazy_bind_symbol`.
  `RuntimeLinker` holds the load lists, an optional manual lookup
  callback, a debug flag and the list of unresolved symbol names;
  `lookup_global_auto` searches its auto-load list.
- `exlpatch.mem_layout`: `find_modules` turns a sequence of
  `MemoryRegion` entries into a `MemoryLayout` by matching runs of
  text (RX), rodata (R) and data (RW) regions; it raises
  `TooManyModulesError` past 13 modules. `RwClaim` translates between a
  read-only range and its writable alias, and `soc_type_for` maps a
  `HardwareType` to a `SocType`.
- `exlpatch.rng`: `MT19937_64`, the 64-bit Mersenne Twister, and
  `get_random_u64`, which seeds one from the given value or from
  `time.perf_counter_ns()`.

## Example

```python
from exlpatch.registers import X0, X1, W6, W7
from exlpatch.data_processing import AddImmediate, SubImmediate
from exlpatch.branches import Branch, Ret

assert AddImmediate(X0, X1, 12).value == 0x91003020
assert SubImmediate(W6, W7, 0x57000).value == 0x51415CE6
assert Branch(0x4440).value == 0x14001110
assert Ret().value == 0xD65F03C0

ins = AddImmediate(X0, X1, 12)
assert ins.imm12 == 12 and ins.rn == 1
```

## What it does not do

Everything here works on values and on the `Memory` model. The package
does not touch a real process: it does not map or write pages, install
hooks, query the kernel for memory regions or hardware type, or flush
caches. `find_modules` takes the regions you give it, and `RwClaim` only
does the address arithmetic.

## Installing and testing

```
pip install .
pip install .[test]
pytest
```