"""Bit-field helpers for fixed-width machine words."""

from __future__ import annotations

from dataclasses import dataclass

INSTRUCTION_BITS = 32


@dataclass(frozen=True)
class Mask:
    """A contiguous run of bits ``[low, high)`` inside a word."""

    low: int
    high: int | None = None

    def __post_init__(self) -> None:
        high = self.low + 1 if self.high is None else self.high
        if self.low < 0 or high <= self.low:
            raise ValueError(f"invalid bit range [{self.low}, {high})")
        object.__setattr__(self, "high", high)

    @property
    def count(self) -> int:
        """Number of bits covered by the mask."""
        return self.high - self.low

    def value(self) -> int:
        """The mask as an integer with its bits set in place."""
        return ((1 << self.count) - 1) << self.low


class BitSet:
    """A fixed-width word whose bit ranges can be read and written."""

    def __init__(self, value: int = 0, width: int = INSTRUCTION_BITS) -> None:
        self.width = width
        self.value = value & ((1 << width) - 1)

    def bits_of(self, mask: Mask) -> int:
        """Return the bits selected by ``mask``, shifted down to bit 0."""
        return (self.value & mask.value()) >> mask.low

    def set_bits(self, mask: Mask, value: int) -> None:
        """Replace the bits selected by ``mask`` with the low bits of ``value``."""
        bits = mask.value()
        self.value = (self.value & ~bits) | ((value << mask.low) & bits)

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        digits = (self.width + 3) // 4
        return f"{type(self).__name__}(0x{self.value:0{digits}X})"


def sign_extend(value: int, bits: int) -> int:
    """Encode ``value`` as a two's-complement field ``bits`` wide."""
    if bits <= 0:
        raise ValueError("bits must be positive")
    return value & ((1 << bits) - 1)