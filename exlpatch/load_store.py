"""Load register (literal) and load/store register (register offset) encoders."""

from __future__ import annotations

from .bitset import sign_extend
from .instruction import ExtendType, Field, Opx1x0Instruction
from .registers import Register

_U32 = 0xFFFFFFFF


class LoadRegisterLiteral(Opx1x0Instruction):
    """Load register (literal) encoding group."""

    OP0 = 0b0001
    OP2 = 0b00

    opc = Field(30, 31)
    v = Field(26)
    imm19 = Field(5, 24)
    rt = Field(0, 5)

    def __init__(self, rt: Register, imm19: int, v: int, opc: int) -> None:
        super().__init__(self.OP0)
        self.op0 = self.OP0
        self.op2 = self.OP2
        self.opc = opc
        self.v = v
        self.imm19 = sign_extend(imm19, LoadRegisterLiteral.imm19.mask.count)
        self.rt = rt.index


class LdrLiteral(LoadRegisterLiteral):
    """LDR (literal) from a PC-relative byte distance."""

    V = 0b0

    def __init__(self, rt: Register, relative_distance: int) -> None:
        super().__init__(rt, (relative_distance & _U32) // 4, self.V, int(rt.is_64()))


class LoadStoreRegisterOffset(Opx1x0Instruction):
    """Load/store register (register offset) encoding group."""

    OP0 = 0b0011
    OP1 = 0
    OP2 = 0b00
    OP3 = 0b100000
    OP4 = 0b10

    size = Field(30, 32)
    v = Field(26)
    opc = Field(22, 24)
    rm = Field(16, 21)
    option = Field(13, 16)
    s = Field(12)
    rn = Field(5, 10)
    rt = Field(0, 5)

    def __init__(self, size: int, v: int, opc: int) -> None:
        super().__init__(self.OP0)
        self.size = size
        self.opc = opc
        self.op1 = self.OP1
        self.op2 = self.OP2
        self.op3 = self.OP3
        self.op4 = self.OP4
        self.v = v


_OPTIONS = {
    ExtendType.UXTW: 0b010,
    ExtendType.LSL: 0b011,
    ExtendType.SXTW: 0b110,
    ExtendType.SXTX: 0b111,
}


def create_option(extend: ExtendType) -> int:
    """The option field for an extend type; unsupported types give zero."""
    return _OPTIONS.get(ExtendType(extend), 0b000)


def create_s(rt: Register, amount: int) -> bool:
    """Whether the index is scaled: only by 3 for X and 2 for W targets."""
    if amount == 0:
        return False
    if rt.is_64() and amount == 3:
        return True
    if rt.is_32() and amount == 2:
        return True
    return False


class _RegisterOffsetForm(LoadStoreRegisterOffset):
    V = 0b0
    OPC = 0b00

    def __init__(
        self,
        rt: Register,
        rn: Register,
        rm: Register,
        extend: ExtendType = ExtendType.LSL,
        amount: int = 0,
    ) -> None:
        size = 0b10 | int(rt.is_64())
        super().__init__(size, self.V, self.OPC)
        self.size = size
        self.rm = rm.index
        self.option = create_option(extend)
        self.s = create_s(rt, amount)
        self.rt = rt.index
        self.rn = rn.index


class LdrRegisterOffset(_RegisterOffsetForm):
    """LDR (register offset)."""

    OPC = 0b01


class StrRegisterOffset(_RegisterOffsetForm):
    """STR (register offset)."""

    OPC = 0b00