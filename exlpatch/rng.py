"""64-bit Mersenne Twister and a one-shot random helper."""

from __future__ import annotations

import time
from collections.abc import Iterator

_MASK = (1 << 64) - 1
_N = 312
_M = 156
_MATRIX_A = 0xB5026F5AA96619E9
_UPPER = 0xFFFFFFFF80000000
_LOWER = 0x000000007FFFFFFF
_INIT_MULT = 6364136223846793005


class MT19937_64:
    """The standard 64-bit Mersenne Twister engine."""

    DEFAULT_SEED = 5489

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.seed(seed)

    def seed(self, value: int) -> None:
        state = [value & _MASK]
        for i in range(1, _N):
            prev = state[-1]
            state.append((_INIT_MULT * (prev ^ (prev >> 62)) + i) & _MASK)
        self._state = state
        self._index = _N

    def _twist(self) -> None:
        mt = self._state
        for i in range(_N):
            y = (mt[i] & _UPPER) | (mt[(i + 1) % _N] & _LOWER)
            value = mt[(i + _M) % _N] ^ (y >> 1)
            if y & 1:
                value ^= _MATRIX_A
            mt[i] = value
        self._index = 0

    def __call__(self) -> int:
        """Return the next 64-bit output."""
        if self._index >= _N:
            self._twist()
        y = self._state[self._index]
        self._index += 1
        y ^= (y >> 29) & 0x5555555555555555
        y ^= (y << 17) & 0x71D67FFFEDA60000
        y ^= (y << 37) & 0xFFF7EEE000000000
        y ^= y >> 43
        return y & _MASK

    def __iter__(self) -> Iterator[int]:
        return self

    def __next__(self) -> int:
        return self()


def get_random_u64(seed: int | None = None) -> int:
    """First output of an engine seeded with ``seed``, or the current tick."""
    if seed is None:
        seed = time.perf_counter_ns()
    return MT19937_64(seed)()