import pytest

from rvemu.exceptions import (
    Breakpoint,
    EnvironmentCallFromMMode,
    EnvironmentCallFromSMode,
    EnvironmentCallFromUMode,
    IllegalInstruction,
    InstructionAccessFault,
    InstructionAddrMisaligned,
    InstructionPageFault,
    LoadAccessFault,
    LoadAccessMisaligned,
    LoadPageFault,
    RiscvException,
    StoreAMOAccessFault,
    StoreAMOAddrMisaligned,
    StoreAMOPageFault,
)


def test_code():
    e = IllegalInstruction(0x0)
    assert e.value == 0
    assert e.code == 2


@pytest.mark.parametrize(
    "cls, expected",
    [
        (InstructionAddrMisaligned, 0),
        (InstructionAccessFault, 1),
        (IllegalInstruction, 2),
        (Breakpoint, 3),
        (LoadAccessMisaligned, 4),
        (LoadAccessFault, 5),
        (StoreAMOAddrMisaligned, 6),
        (StoreAMOAccessFault, 7),
        (EnvironmentCallFromUMode, 8),
        (EnvironmentCallFromSMode, 9),
        (EnvironmentCallFromMMode, 11),
        (InstructionPageFault, 12),
        (LoadPageFault, 13),
        (StoreAMOPageFault, 15),
    ],
)
def test_codes_and_value(cls, expected):
    e = cls(0x1234)
    assert e.code == expected
    assert e.value == 0x1234
    assert isinstance(e, RiscvException)


@pytest.mark.parametrize(
    "cls, fatal",
    [
        (InstructionAddrMisaligned, True),
        (InstructionAccessFault, True),
        (IllegalInstruction, True),
        (LoadAccessFault, True),
        (StoreAMOAddrMisaligned, True),
        (StoreAMOAccessFault, True),
        (Breakpoint, False),
        (LoadAccessMisaligned, False),
        (EnvironmentCallFromUMode, False),
        (EnvironmentCallFromSMode, False),
        (EnvironmentCallFromMMode, False),
        (InstructionPageFault, False),
        (LoadPageFault, False),
        (StoreAMOPageFault, False),
    ],
)
def test_is_fatal(cls, fatal):
    assert cls(0).is_fatal() is fatal


def test_str_formats_hex():
    assert str(LoadAccessFault(0x80000000)) == "Load access fault 0x80000000"
    assert str(IllegalInstruction(0xFF)) == "Illegal instruction 0xff"
    assert str(EnvironmentCallFromMMode(0x10)) == "Environment call from M-mode 0x10"


def test_can_be_raised_and_caught():
    fault = StoreAMOAccessFault(0x42)
    assert str(fault) == "Store or AMO access fault 0x42"
    assert fault.is_fatal() is True
    with pytest.raises(RiscvException) as info:
        raise fault
    assert info.value is fault
    assert info.value.value == 0x42
    assert info.value.code == 7