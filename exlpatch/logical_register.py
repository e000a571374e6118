"""Logical (shifted register) instruction encoders."""

from __future__ import annotations

from .instruction import Field, Opx101Instruction, ShiftType
from .registers import NONE32, NONE64, Register


class LogicalShiftedRegister(Opx101Instruction):
    """Logical (shifted register) encoding group."""

    OP0 = 0b0
    OP1 = 0b0
    OP2 = 0b0000
    OP3 = 0b000000

    sf = Field(31)
    opc = Field(29, 31)
    n = Field(21)
    immr = Field(16, 22)
    imms = Field(10, 16)
    rn = Field(5, 10)
    rd = Field(0, 5)

    def __init__(self, sf: int, opc: int) -> None:
        super().__init__(self.OP0, self.OP1, self.OP2, self.OP3)
        self.sf = sf
        self.opc = opc


class OrrShiftedRegister(LogicalShiftedRegister):
    """ORR (shifted register)."""

    SF = 0b1
    OPC = 0b01

    shift = Field(22, 24)
    rm = Field(16, 21)
    imm6 = Field(10, 16)

    def __init__(
        self,
        rd: Register,
        rn: Register,
        rm: Register,
        shift: ShiftType = ShiftType.LSL,
        amount: int = 0,
    ) -> None:
        super().__init__(rd.is_64(), self.OPC)
        self.shift = shift
        self.n = 0
        self.rm = rm.index
        self.imm6 = amount
        self.rn = rn.index
        self.rd = rd.index


class MovRegister(OrrShiftedRegister):
    """MOV (register): ORR with the zero register as first operand."""

    def __init__(self, rd: Register, rm: Register) -> None:
        super().__init__(rd, NONE64 if rd.is_64() else NONE32, rm)