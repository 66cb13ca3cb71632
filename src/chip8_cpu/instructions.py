"""Instruction table for the CHIP-8 CPU.

Each descriptor names one opcode family and says how to recognise it
(`opcode & mask == pattern`) and how to pull its operands out of the raw
word (`(opcode & operand.mask) >> operand.shift`).

The table is ordered. When two descriptors could match the same opcode the
earlier one wins, so entries with more fixed bits must precede broader ones
that overlap them. `check_table_order` enforces this.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Sequence, Tuple


class InstructionName(str, Enum):
    CLS = "CLS"
    RET = "RET"
    JP_ADDR = "JP_ADDR"
    CALL_ADDR = "CALL_ADDR"
    SE_VX_BYTE = "SE_VX_BYTE"
    SNE_VX_BYTE = "SNE_VX_BYTE"
    SE_VX_VY = "SE_VX_VY"
    LD_VX_BYTE = "LD_VX_BYTE"
    ADD_VX_BYTE = "ADD_VX_BYTE"
    LD_VX_VY = "LD_VX_VY"
    OR_VX_VY = "OR_VX_VY"
    AND_VX_VY = "AND_VX_VY"
    XOR_VX_VY = "XOR_VX_VY"
    ADD_VX_VY = "ADD_VX_VY"
    SUB_VX_VY = "SUB_VX_VY"
    SHR_VX = "SHR_VX"
    SUBN_VX_VY = "SUBN_VX_VY"
    SHL_VX = "SHL_VX"
    SNE_VX_VY = "SNE_VX_VY"
    LD_I_ADDR = "LD_I_ADDR"
    JP_V0_ADDR = "JP_V0_ADDR"
    RND_VX_BYTE = "RND_VX_BYTE"
    DRW_VX_VY_NIBBLE = "DRW_VX_VY_NIBBLE"
    SKP_VX = "SKP_VX"
    SKNP_VX = "SKNP_VX"
    LD_VX_DT = "LD_VX_DT"
    LD_VX_K = "LD_VX_K"
    LD_DT_VX = "LD_DT_VX"
    LD_ST_VX = "LD_ST_VX"
    ADD_I_VX = "ADD_I_VX"
    LD_F_VX = "LD_F_VX"
    LD_B_VX = "LD_B_VX"
    LD_I_VX = "LD_I_VX"
    LD_VX_I = "LD_VX_I"


class Operand(NamedTuple):
    """How to extract one operand: `(opcode & mask) >> shift`."""
    mask: int
    shift: int

    def extract(self, opcode: int) -> int:
        return (opcode & self.mask) >> self.shift

    def insert(self, value: int) -> int:
        return (value << self.shift) & self.mask


ADDR = Operand(0x0FFF, 0)
X = Operand(0x0F00, 8)
Y = Operand(0x00F0, 4)
BYTE = Operand(0x00FF, 0)
NIBBLE = Operand(0x000F, 0)


@dataclass(frozen=True)
class Instruction:
    """Immutable opcode descriptor.

    Attributes:
        name: Operation name, used as the registry key
        mask: Bits of the opcode that are fixed for this family
        pattern: Required value of the fixed bits
        operands: Ordered operand extraction rules
        mnemonic: Format string rendering the operands, e.g. "LD V{0:X}, 0x{1:02X}"
    """
    name: InstructionName
    mask: int
    pattern: int
    operands: Tuple[Operand, ...]
    mnemonic: str

    def matches(self, opcode: int) -> bool:
        return (opcode & self.mask) == self.pattern

    def extract(self, opcode: int) -> Tuple[int, ...]:
        return tuple(operand.extract(opcode) for operand in self.operands)

    def format(self, args: Sequence[int]) -> str:
        return self.mnemonic.format(*args)


def _op(name, mask, pattern, operands, mnemonic):
    return Instruction(InstructionName(name), mask, pattern, tuple(operands), mnemonic)


INSTRUCTIONS: Tuple[Instruction, ...] = (
    _op("CLS", 0xFFFF, 0x00E0, [], "CLS"),
    _op("RET", 0xFFFF, 0x00EE, [], "RET"),
    _op("JP_ADDR", 0xF000, 0x1000, [ADDR], "JP 0x{0:03X}"),
    _op("CALL_ADDR", 0xF000, 0x2000, [ADDR], "CALL 0x{0:03X}"),
    _op("SE_VX_BYTE", 0xF000, 0x3000, [X, BYTE], "SE V{0:X}, 0x{1:02X}"),
    _op("SNE_VX_BYTE", 0xF000, 0x4000, [X, BYTE], "SNE V{0:X}, 0x{1:02X}"),
    _op("SE_VX_VY", 0xF00F, 0x5000, [X, Y], "SE V{0:X}, V{1:X}"),
    _op("LD_VX_BYTE", 0xF000, 0x6000, [X, BYTE], "LD V{0:X}, 0x{1:02X}"),
    _op("ADD_VX_BYTE", 0xF000, 0x7000, [X, BYTE], "ADD V{0:X}, 0x{1:02X}"),
    _op("LD_VX_VY", 0xF00F, 0x8000, [X, Y], "LD V{0:X}, V{1:X}"),
    _op("OR_VX_VY", 0xF00F, 0x8001, [X, Y], "OR V{0:X}, V{1:X}"),
    _op("AND_VX_VY", 0xF00F, 0x8002, [X, Y], "AND V{0:X}, V{1:X}"),
    _op("XOR_VX_VY", 0xF00F, 0x8003, [X, Y], "XOR V{0:X}, V{1:X}"),
    _op("ADD_VX_VY", 0xF00F, 0x8004, [X, Y], "ADD V{0:X}, V{1:X}"),
    _op("SUB_VX_VY", 0xF00F, 0x8005, [X, Y], "SUB V{0:X}, V{1:X}"),
    _op("SHR_VX", 0xF00F, 0x8006, [X], "SHR V{0:X}"),
    _op("SUBN_VX_VY", 0xF00F, 0x8007, [X, Y], "SUBN V{0:X}, V{1:X}"),
    _op("SHL_VX", 0xF00F, 0x800E, [X], "SHL V{0:X}"),
    _op("SNE_VX_VY", 0xF00F, 0x9000, [X, Y], "SNE V{0:X}, V{1:X}"),
    _op("LD_I_ADDR", 0xF000, 0xA000, [ADDR], "LD I, 0x{0:03X}"),
    _op("JP_V0_ADDR", 0xF000, 0xB000, [ADDR], "JP V0, 0x{0:03X}"),
    _op("RND_VX_BYTE", 0xF000, 0xC000, [X, BYTE], "RND V{0:X}, 0x{1:02X}"),
    _op("DRW_VX_VY_NIBBLE", 0xF000, 0xD000, [X, Y, NIBBLE], "DRW V{0:X}, V{1:X}, {2}"),
    _op("SKP_VX", 0xF0FF, 0xE09E, [X], "SKP V{0:X}"),
    _op("SKNP_VX", 0xF0FF, 0xE0A1, [X], "SKNP V{0:X}"),
    _op("LD_VX_DT", 0xF0FF, 0xF007, [X], "LD V{0:X}, DT"),
    _op("LD_VX_K", 0xF0FF, 0xF00A, [X], "LD V{0:X}, K"),
    _op("LD_DT_VX", 0xF0FF, 0xF015, [X], "LD DT, V{0:X}"),
    _op("LD_ST_VX", 0xF0FF, 0xF018, [X], "LD ST, V{0:X}"),
    _op("ADD_I_VX", 0xF0FF, 0xF01E, [X], "ADD I, V{0:X}"),
    _op("LD_F_VX", 0xF0FF, 0xF029, [X], "LD F, V{0:X}"),
    _op("LD_B_VX", 0xF0FF, 0xF033, [X], "LD B, V{0:X}"),
    _op("LD_I_VX", 0xF0FF, 0xF055, [X], "LD [I], V{0:X}"),
    _op("LD_VX_I", 0xF0FF, 0xF065, [X], "LD V{0:X}, [I]"),
)


def check_table_order(table: Sequence[Instruction]) -> None:
    """Validate that every descriptor in the table is reachable.

    A descriptor is shadowed when an earlier one fixes a subset of its bits
    and agrees with its pattern on them: every opcode it would match is
    claimed by the earlier entry first.

    Raises:
        ValueError: On malformed descriptors or shadowed entries
    """
    for inst in table:
        if inst.pattern & ~inst.mask & 0xFFFF:
            raise ValueError(f"{inst.name.value}: pattern 0x{inst.pattern:04X} sets bits outside mask")
        for operand in inst.operands:
            if operand.mask & inst.mask:
                raise ValueError(f"{inst.name.value}: operand mask 0x{operand.mask:04X} overlaps fixed bits")

    for i, earlier in enumerate(table):
        for later in table[i + 1:]:
            broader = (earlier.mask & later.mask) == earlier.mask
            if broader and (later.pattern & earlier.mask) == earlier.pattern:
                raise ValueError(
                    f"{later.name.value} (0x{later.pattern:04X}/0x{later.mask:04X}) is shadowed by "
                    f"earlier {earlier.name.value} (0x{earlier.pattern:04X}/0x{earlier.mask:04X})"
                )
