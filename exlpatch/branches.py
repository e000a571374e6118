"""Branch, hint and system instruction encoders."""

from __future__ import annotations

from enum import IntEnum

from .instruction import Field, Op101xInstruction
from .registers import LR, Register

_U32 = 0xFFFFFFFF


class Hints(Op101xInstruction):
    """Hint instruction encoding group."""

    OP0 = 0b110
    OP1 = 0b01000000110010
    OP2 = 0b11111

    crm = Field(8, 12)
    local_op2 = Field(5, 8)

    def __init__(self) -> None:
        super().__init__(self.OP0)
        self.op1 = self.OP1
        self.op2 = self.OP2


class Nop(Hints):
    """NOP."""

    CRM = 0b0000
    LOCAL_OP2 = 0b000

    def __init__(self) -> None:
        super().__init__()
        self.crm = self.CRM
        self.local_op2 = self.LOCAL_OP2


class UnconditionalBranchImmediate(Op101xInstruction):
    """Unconditional branch (immediate) encoding group."""

    OP0 = 0b000

    class Op(IntEnum):
        B = 0
        BL = 1

    op = Field(31)
    imm26 = Field(0, 26)

    def __init__(self, op: "UnconditionalBranchImmediate.Op", relative_address: int) -> None:
        super().__init__(self.OP0)
        self.op = op
        self.imm26 = (relative_address & _U32) // 4


class Branch(UnconditionalBranchImmediate):
    """B to a PC-relative byte offset."""

    def __init__(self, relative_address: int) -> None:
        super().__init__(UnconditionalBranchImmediate.Op.B, relative_address)


class BranchLink(UnconditionalBranchImmediate):
    """BL to a PC-relative byte offset."""

    def __init__(self, relative_address: int) -> None:
        super().__init__(UnconditionalBranchImmediate.Op.BL, relative_address)


class UnconditionalBranchRegister(Op101xInstruction):
    """Unconditional branch (register) encoding group."""

    OP0 = 0b110
    OP1 = 0b10000000000000

    opc = Field(21, 25)
    ubr_op2 = Field(16, 21)
    op3 = Field(10, 16)
    rn = Field(5, 10)
    op4 = Field(0, 5)

    def __init__(self, opc: int, op2: int) -> None:
        super().__init__(self.OP0)
        self.op1 = self.OP1
        self.opc = opc
        self.ubr_op2 = op2


class _BranchRegisterForm(UnconditionalBranchRegister):
    OPC = 0b0000
    OP2 = 0b11111
    OP3 = 0b000000
    OP4 = 0b00000

    def __init__(self, rn: Register) -> None:
        super().__init__(self.OPC, self.OP2)
        self.op3 = self.OP3
        self.rn = rn.index
        self.op4 = self.OP4


class BranchRegister(_BranchRegisterForm):
    """BR to the address held in a register."""

    OPC = 0b0000


class Ret(_BranchRegisterForm):
    """RET, returning through the link register by default."""

    OPC = 0b0010

    def __init__(self, rn: Register = LR) -> None:
        super().__init__(rn)