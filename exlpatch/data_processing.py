"""Data processing (immediate) instruction encoders."""

from __future__ import annotations

from enum import IntEnum

from .instruction import Field, Op100xInstruction
from .registers import NONE32, NONE64, Register

_U32 = 0xFFFFFFFF


class AddSubtractImmediate(Op100xInstruction):
    """ADD/SUB (immediate) encoding group."""

    OP0 = 0b010
    IMM_SHIFT = 12
    MASK_FOR_IMM_SHIFT = (1 << IMM_SHIFT) - 1

    sf = Field(31)
    op = Field(30)
    s = Field(29)
    sh = Field(22)
    imm12 = Field(10, 22)
    rn = Field(5, 10)
    rd = Field(0, 5)

    def __init__(self, sf: bool, op: bool, s: bool) -> None:
        super().__init__(self.OP0)
        self.sf = sf
        self.op = op
        self.s = s

    @staticmethod
    def calc_sh(imm: int) -> bool:
        """Whether ``imm`` must be encoded shifted left by 12."""
        imm &= _U32
        return imm != 0 and (imm & AddSubtractImmediate.MASK_FOR_IMM_SHIFT) == 0

    @staticmethod
    def calc_imm(imm: int) -> int:
        """The immediate as stored, shifted down when ``calc_sh`` holds."""
        imm &= _U32
        if AddSubtractImmediate.calc_sh(imm):
            imm >>= AddSubtractImmediate.IMM_SHIFT
        return imm & 0xFFFF


class _AddSubtractImmediateForm(AddSubtractImmediate):
    OP = 0
    S = 0

    def __init__(self, rd: Register, rn: Register, imm: int) -> None:
        super().__init__(rd.is_64(), self.OP, self.S)
        self.rd = rd.index
        self.rn = rn.index
        self.imm12 = self.calc_imm(imm)
        self.sh = self.calc_sh(imm)


class AddImmediate(_AddSubtractImmediateForm):
    OP = 0
    S = 0


class AddsImmediate(_AddSubtractImmediateForm):
    OP = 0
    S = 1


class SubImmediate(_AddSubtractImmediateForm):
    OP = 1
    S = 0


class SubsImmediate(_AddSubtractImmediateForm):
    OP = 1
    S = 1


def _discard_register(reg: Register) -> Register:
    return NONE64 if reg.is_64() else NONE32


class CmnImmediate(AddsImmediate):
    """CMN (immediate): ADDS with the result discarded."""

    def __init__(self, reg: Register, imm: int) -> None:
        super().__init__(_discard_register(reg), reg, imm)


class CmpImmediate(SubsImmediate):
    """CMP (immediate): SUBS with the result discarded."""

    def __init__(self, reg: Register, imm: int) -> None:
        super().__init__(_discard_register(reg), reg, imm)


class LogicalImmediate(Op100xInstruction):
    """Logical (immediate) encoding group."""

    OP0 = 0b100

    sf = Field(31)
    opc = Field(29, 31)
    n = Field(22)
    immr = Field(16, 22)
    imms = Field(10, 16)
    rn = Field(5, 10)
    rd = Field(0, 5)

    def __init__(self, sf: int, opc: int) -> None:
        super().__init__(self.OP0)
        self.sf = sf
        self.opc = opc


class MoveWideImmediate(Op100xInstruction):
    """Move wide (immediate) encoding group."""

    OP0 = 0b101

    sf = Field(31)
    opc = Field(29, 31)
    hw = Field(21, 23)
    imm16 = Field(5, 21)
    rd = Field(0, 5)

    def __init__(self, reg: Register, opc: int, hw: int, imm: int) -> None:
        super().__init__(self.OP0)
        self.sf = reg.is_64()
        self.opc = opc
        self.hw = hw
        self.imm16 = imm & 0xFFFF
        self.rd = reg.index


class _MoveWideForm(MoveWideImmediate):
    OPC = 0b00
    HW = 0b00

    def __init__(self, reg: Register, imm: int) -> None:
        super().__init__(reg, self.OPC, self.HW, imm)


class Movk(_MoveWideForm):
    OPC = 0b11


class Movn(_MoveWideForm):
    OPC = 0b00


class Movz(_MoveWideForm):
    OPC = 0b10


class PcRelAddressing(Op100xInstruction):
    """PC-relative addressing encoding group."""

    OP0 = 0b000

    class Op(IntEnum):
        ADR = 0
        ADRP = 1

    op = Field(31)
    immlo = Field(29, 31)
    immhi = Field(5, 24)
    rd = Field(0, 5)

    def __init__(self, reg: Register, imm: int, op: "PcRelAddressing.Op") -> None:
        super().__init__(self.OP0)
        imm &= _U32
        self.op = op
        self.immlo = imm
        self.immhi = imm >> PcRelAddressing.immlo.mask.count
        self.rd = reg.index


class Adr(PcRelAddressing):
    def __init__(self, reg: Register, imm: int) -> None:
        super().__init__(reg, imm, PcRelAddressing.Op.ADR)


class Adrp(PcRelAddressing):
    def __init__(self, reg: Register, imm: int) -> None:
        super().__init__(reg, (imm & _U32) >> 12, PcRelAddressing.Op.ADRP)