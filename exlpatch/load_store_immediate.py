"""Load/store register (unscaled and unsigned immediate) encoders."""

from __future__ import annotations

from .bitset import sign_extend
from .instruction import Field, Opx1x0Instruction
from .registers import Register


def _size_for(rt: Register) -> int:
    return 0b10 | int(rt.is_64())


class LoadStoreRegisterUnscaledImmediate(Opx1x0Instruction):
    """Load/store register (unscaled immediate) encoding group."""

    OP0 = 0b0011
    OP2 = 0b00
    OP3 = 0b000000
    OP4 = 0b00

    size = Field(30, 32)
    v = Field(26)
    opc = Field(22, 24)
    imm9 = Field(12, 21)
    rn = Field(5, 10)
    rt = Field(0, 5)

    def __init__(
        self, size: int, v: int, opc: int, imm9: int, rn: Register, rt: Register
    ) -> None:
        super().__init__(self.OP0)
        self.op2 = self.OP2
        self.op3 = self.OP3
        self.op4 = self.OP4
        self.size = size
        self.v = v
        self.opc = opc
        self.imm9 = sign_extend(imm9, LoadStoreRegisterUnscaledImmediate.imm9.mask.count)
        self.rn = rn.index
        self.rt = rt.index


class _UnscaledForm(LoadStoreRegisterUnscaledImmediate):
    V = 0b0
    OPC = 0b00

    def __init__(self, rt: Register, rn: Register, imm9: int = 0) -> None:
        super().__init__(_size_for(rt), self.V, self.OPC, imm9, rn, rt)


class LdurUnscaledImmediate(_UnscaledForm):
    """LDUR with a signed 9-bit byte offset."""

    OPC = 0b01


class SturUnscaledImmediate(_UnscaledForm):
    """STUR with a signed 9-bit byte offset."""

    OPC = 0b00


class LoadStoreRegisterUnsignedImmediate(Opx1x0Instruction):
    """Load/store register (unsigned immediate) encoding group."""

    OP0 = 0b0011
    OP2 = 0b10

    size = Field(30, 32)
    v = Field(26)
    opc = Field(22, 24)
    imm12 = Field(10, 22)
    rn = Field(5, 10)
    rt = Field(0, 5)

    def __init__(
        self, size: int, v: int, opc: int, imm12: int, rn: Register, rt: Register
    ) -> None:
        super().__init__(self.OP0)
        self.op2 = self.OP2
        self.size = size
        self.v = v
        self.opc = opc
        self.imm12 = imm12 & 0xFFFF
        self.rn = rn.index
        self.rt = rt.index


class _UnsignedForm(LoadStoreRegisterUnsignedImmediate):
    V = 0b0
    OPC = 0b00

    def __init__(self, rt: Register, rn: Register, imm12: int = 0) -> None:
        super().__init__(_size_for(rt), self.V, self.OPC, imm12, rn, rt)


class LdrRegisterImmediate(_UnsignedForm):
    """LDR (unsigned immediate), offset scaled by the access size."""

    OPC = 0b01


class StrRegisterImmediate(_UnsignedForm):
    """STR (unsigned immediate), offset scaled by the access size."""

    OPC = 0b00