import pytest

from exlpatch import registers
from exlpatch.registers import Register, RegisterKind


@pytest.mark.parametrize("index", [0, 1, 15, 29, 30])
def test_named_registers_have_expected_kind_and_index(index):
    x = Register(RegisterKind.X, index)
    w = Register(RegisterKind.W, index)
    assert x == getattr(registers, f"X{index}")
    assert w == getattr(registers, f"W{index}")
    assert x.is_64() and not x.is_32()
    assert w.is_32() and not w.is_64()
    assert x.index == index
    assert w.index == index


def test_link_register_is_x30():
    assert Register(RegisterKind.X, 30) == registers.LR
    assert registers.LR.is_64()


def test_stack_pointer():
    assert registers.SP.is_64()
    assert registers.SP.index == 31


def test_none_registers_encode_as_all_ones_in_five_bits():
    assert registers.NONE64.index & 0b11111 == 0b11111
    assert registers.NONE32.index & 0b11111 == 0b11111
    assert registers.NONE32.is_32()
    assert registers.NONE64.is_64()


def test_negative_index_matches_none_register():
    assert Register(RegisterKind.X, -1) == registers.NONE64


def test_index_is_kept_to_seven_bits():
    assert Register(RegisterKind.W, 128).index == 0


def test_string_form():
    assert str(Register(RegisterKind.X, 5)) == "x5"
    assert str(Register(RegisterKind.W, 12)) == "w12"