"""AArch64 instruction encoders, ELF relocation, a runtime-linker model and memory layout helpers."""

__version__ = "0.1.0"