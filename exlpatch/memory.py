"""A sparse little-endian address space with pointer-path helpers."""

from __future__ import annotations

import struct
from bisect import bisect_right
from dataclasses import dataclass

_U64 = (1 << 64) - 1


class MemoryAccessError(LookupError):
    """Raised when an access touches an address that is not mapped."""

    def __init__(self, address: int, size: int) -> None:
        super().__init__(f"unmapped access of {size} bytes at 0x{address:X}")
        self.address = address
        self.size = size


class Memory:
    """Non-overlapping mapped segments addressed by 64-bit integers."""

    def __init__(self) -> None:
        self._bases: list[int] = []
        self._segments: dict[int, bytearray] = {}

    def map(self, address: int, data: bytes | int) -> None:
        """Map ``data`` (or that many zero bytes) at ``address``."""
        segment = bytearray(data) if not isinstance(data, int) else bytearray(data)
        if not segment:
            raise ValueError("cannot map an empty segment")
        idx = bisect_right(self._bases, address)
        if idx > 0:
            prev = self._bases[idx - 1]
            if prev + len(self._segments[prev]) > address:
                raise ValueError(f"segment at 0x{address:X} overlaps 0x{prev:X}")
        if idx < len(self._bases) and self._bases[idx] < address + len(segment):
            raise ValueError(f"segment at 0x{address:X} overlaps 0x{self._bases[idx]:X}")
        self._bases.insert(idx, address)
        self._segments[address] = segment

    def _locate(self, address: int, size: int) -> tuple[bytearray, int]:
        idx = bisect_right(self._bases, address) - 1
        if idx < 0:
            raise MemoryAccessError(address, size)
        base = self._bases[idx]
        segment = self._segments[base]
        offset = address - base
        if offset + size > len(segment):
            raise MemoryAccessError(address, size)
        return segment, offset

    def read_bytes(self, address: int, size: int) -> bytes:
        segment, offset = self._locate(address, size)
        return bytes(segment[offset:offset + size])

    def write_bytes(self, address: int, data: bytes) -> None:
        segment, offset = self._locate(address, len(data))
        segment[offset:offset + len(data)] = data

    def read_u32(self, address: int) -> int:
        return struct.unpack("<I", self.read_bytes(address, 4))[0]

    def write_u32(self, address: int, value: int) -> None:
        self.write_bytes(address, struct.pack("<I", value & 0xFFFFFFFF))

    def read_u64(self, address: int) -> int:
        return struct.unpack("<Q", self.read_bytes(address, 8))[0]

    def write_u64(self, address: int, value: int) -> None:
        self.write_bytes(address, struct.pack("<Q", value & _U64))

    def read_cstring(self, address: int) -> str:
        """Read a NUL-terminated string that lies within one segment."""
        segment, offset = self._locate(address, 1)
        end = segment.find(b"\0", offset)
        if end < 0:
            raise MemoryAccessError(address, len(segment) - offset + 1)
        return segment[offset:end].decode("utf-8", errors="surrogateescape")


def _walk(memory: Memory, ptr: int, offsets: tuple[int, ...], safe: bool) -> int:
    if not offsets:
        return ptr
    if ptr == 0:
        return 0
    current = (ptr + offsets[0]) & _U64
    for offset in offsets[1:]:
        current = memory.read_u64(current)
        if safe and current == 0:
            return 0
        current = (current + offset) & _U64
    return current


def follow(memory: Memory, ptr: int, *args: int) -> int:
    """Add the first offset to ``ptr``, then dereference and add each next one."""
    return _walk(memory, ptr, args, safe=False)


def follow_safe(memory: Memory, ptr: int, *args: int) -> int:
    """Like :func:`follow`, but return 0 as soon as a null pointer is read."""
    return _walk(memory, ptr, args, safe=True)


@dataclass(frozen=True)
class MemberFunctionPointer:
    """An Itanium-ABI pointer to member function: address word and this-adjustment."""

    ptr: int
    adj: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "MemberFunctionPointer":
        """Decode the 16-byte in-memory representation."""
        if len(data) != 16:
            raise ValueError("a member function pointer is 16 bytes")
        ptr, adj = struct.unpack("<Qq", data)
        return cls(ptr, adj)

    def to_bytes(self) -> bytes:
        return struct.pack("<Qq", self.ptr & _U64, self.adj)

    def is_virtual(self) -> bool:
        return (self.ptr & 1) == 1

    def resolve(self, memory: Memory, this: int) -> int:
        """The address of the function called for the object at ``this``."""
        if not self.is_virtual():
            return self.ptr
        vtable = memory.read_u64((this + self.adj) & _U64)
        return memory.read_u64((vtable + self.ptr - 1) & _U64)