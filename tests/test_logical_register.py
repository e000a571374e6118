import pytest

from exlpatch import registers as reg
from exlpatch.instruction import ShiftType
from exlpatch.logical_register import MovRegister, OrrShiftedRegister

_TRIPLES = [
    (reg.X0, reg.X1, reg.X2),
    (reg.X3, reg.X4, reg.X5),
    (reg.X6, reg.X7, reg.X8),
    (reg.X9, reg.X10, reg.X11),
]


@pytest.mark.parametrize(
    "regs, expected",
    list(zip(_TRIPLES, [0xAA020020, 0xAA050083, 0xAA0800E6, 0xAA0B0149])),
)
def test_orr_default_shift(regs, expected):
    assert int(OrrShiftedRegister(*regs)) == expected


@pytest.mark.parametrize(
    "shift, values",
    [
        (ShiftType.LSR, [0xAA422020, 0xAA452083, 0xAA4820E6, 0xAA4B2149]),
        (ShiftType.ASR, [0xAA822020, 0xAA852083, 0xAA8820E6, 0xAA8B2149]),
        (ShiftType.ROR, [0xAAC22020, 0xAAC52083, 0xAAC820E6, 0xAACB2149]),
    ],
)
def test_orr_shifted(shift, values):
    for regs, expected in zip(_TRIPLES, values):
        assert OrrShiftedRegister(*regs, shift, 8).value == expected


def test_orr_fields_roundtrip():
    inst = OrrShiftedRegister(reg.X9, reg.X10, reg.X11, ShiftType.ROR, 8)
    assert inst.rd == 9
    assert inst.rn == 10
    assert inst.rm == 11
    assert inst.shift == ShiftType.ROR
    assert inst.imm6 == 8
    assert inst.n == 0
    assert inst.opc == OrrShiftedRegister.OPC


def test_orr_w_registers_clear_sf():
    assert OrrShiftedRegister(reg.W0, reg.W1, reg.W2).sf == 0
    assert OrrShiftedRegister(reg.X0, reg.X1, reg.X2).sf == 1


@pytest.mark.parametrize(
    "rd, rm, expected",
    [
        (reg.X0, reg.X1, 0xAA0103E0),
        (reg.X2, reg.X3, 0xAA0303E2),
        (reg.X4, reg.X5, 0xAA0503E4),
        (reg.X6, reg.X7, 0xAA0703E6),
    ],
)
def test_mov_register(rd, rm, expected):
    assert int(MovRegister(rd, rm)) == expected


def test_mov_register_uses_zero_register():
    assert MovRegister(reg.W0, reg.W1).rn == MovRegister(reg.X0, reg.X1).rn == reg.SP.index