"""AArch64 general-purpose registers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RegisterKind(Enum):
    """Register width: 32-bit ``W`` or 64-bit ``X``."""

    W = "w"
    X = "x"


@dataclass(frozen=True)
class Register:
    """A register view; the index is stored in seven bits."""

    kind: RegisterKind
    index: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", self.index & 0x7F)

    def is_32(self) -> bool:
        return self.kind is RegisterKind.W

    def is_64(self) -> bool:
        return self.kind is RegisterKind.X

    def __str__(self) -> str:
        return f"{self.kind.value}{self.index}"


(
    W0, W1, W2, W3, W4, W5, W6, W7, W8, W9,
    W10, W11, W12, W13, W14, W15, W16, W17, W18, W19,
    W20, W21, W22, W23, W24, W25, W26, W27, W28, W29,
    W30,
) = (Register(RegisterKind.W, i) for i in range(31))

(
    X0, X1, X2, X3, X4, X5, X6, X7, X8, X9,
    X10, X11, X12, X13, X14, X15, X16, X17, X18, X19,
    X20, X21, X22, X23, X24, X25, X26, X27, X28, X29,
    X30,
) = (Register(RegisterKind.X, i) for i in range(31))

LR = X30
SP = Register(RegisterKind.X, 31)
NONE32 = Register(RegisterKind.W, -1)
NONE64 = Register(RegisterKind.X, -1)