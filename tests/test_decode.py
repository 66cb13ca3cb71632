"""Tests for the instruction table and decoder."""

import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_cpu.decode import Decoder, DecodeResult, disassemble_rom, parse_hex_program
from chip8_cpu.faults import UnknownOpcode
from chip8_cpu.instructions import (
    ADDR,
    INSTRUCTIONS,
    Instruction,
    InstructionName,
    check_table_order,
)

N = InstructionName


@pytest.fixture
def decoder():
    return Decoder()


class TestInstructionTable:
    """Test the static descriptor table."""

    def test_covers_every_instruction_name(self):
        """Every instruction name has exactly one descriptor."""
        names = [inst.name for inst in INSTRUCTIONS]
        assert sorted(names) == sorted(InstructionName)
        assert len(names) == len(set(names))

    def test_table_order_is_valid(self):
        """The shipped table has no shadowed entries."""
        check_table_order(INSTRUCTIONS)

    def test_descriptors_are_immutable(self):
        with pytest.raises(AttributeError):
            INSTRUCTIONS[0].mask = 0

    def test_pattern_outside_mask_rejected(self):
        bad = Instruction(N.CLS, 0xF000, 0x10E0, (), "CLS")
        with pytest.raises(ValueError, match="outside mask"):
            check_table_order([bad])

    def test_operand_overlapping_fixed_bits_rejected(self):
        bad = Instruction(N.JP_ADDR, 0xFF00, 0x1000, (ADDR,), "JP")
        with pytest.raises(ValueError, match="overlaps"):
            check_table_order([bad])


class TestTableOrdering:
    """The declared order is the tie-break between overlapping masks."""

    SYS = Instruction(N.JP_ADDR, 0xF000, 0x0000, (ADDR,), "SYS 0x{0:03X}")

    def test_broad_entry_before_narrow_is_rejected(self):
        """A catch-all placed before CLS would shadow it."""
        table = [self.SYS] + list(INSTRUCTIONS)
        with pytest.raises(ValueError, match="shadowed"):
            Decoder(table)

    def test_narrow_entries_before_broad_win(self):
        """With CLS and RET first, the catch-all only gets what is left."""
        table = list(INSTRUCTIONS[:2]) + [self.SYS] + list(INSTRUCTIONS[2:])
        decoder = Decoder(table)
        assert decoder.decode(0x00E0).key == N.CLS
        assert decoder.decode(0x00EE).key == N.RET
        result = decoder.decode(0x0123)
        assert result.instruction is self.SYS
        assert result.args == (0x123,)

    def test_matches_lists_all_candidates_in_order(self):
        table = list(INSTRUCTIONS[:2]) + [self.SYS] + list(INSTRUCTIONS[2:])
        decoder = Decoder(table)
        matches = decoder.matches(0x00E0)
        assert [m.name for m in matches] == [N.CLS, N.JP_ADDR]

    def test_duplicate_entry_is_shadowed(self):
        with pytest.raises(ValueError, match="shadowed"):
            check_table_order([INSTRUCTIONS[2], INSTRUCTIONS[2]])

    def test_shipped_table_has_unique_matches(self, decoder):
        """Every opcode matches at most one shipped descriptor."""
        for opcode in range(0x10000):
            assert len(decoder.matches(opcode)) <= 1


class TestDecode:
    """Test opcode decoding."""

    @pytest.mark.parametrize("opcode,name,args", [
        (0x00E0, N.CLS, ()),
        (0x00EE, N.RET, ()),
        (0x1ABC, N.JP_ADDR, (0xABC,)),
        (0x2DEF, N.CALL_ADDR, (0xDEF,)),
        (0x3A42, N.SE_VX_BYTE, (0xA, 0x42)),
        (0x4B17, N.SNE_VX_BYTE, (0xB, 0x17)),
        (0x5120, N.SE_VX_VY, (0x1, 0x2)),
        (0x6005, N.LD_VX_BYTE, (0x0, 0x05)),
        (0x7003, N.ADD_VX_BYTE, (0x0, 0x03)),
        (0x8120, N.LD_VX_VY, (0x1, 0x2)),
        (0x8121, N.OR_VX_VY, (0x1, 0x2)),
        (0x8122, N.AND_VX_VY, (0x1, 0x2)),
        (0x8123, N.XOR_VX_VY, (0x1, 0x2)),
        (0x8124, N.ADD_VX_VY, (0x1, 0x2)),
        (0x8125, N.SUB_VX_VY, (0x1, 0x2)),
        (0x8126, N.SHR_VX, (0x1,)),
        (0x8127, N.SUBN_VX_VY, (0x1, 0x2)),
        (0x812E, N.SHL_VX, (0x1,)),
        (0x9120, N.SNE_VX_VY, (0x1, 0x2)),
        (0xA123, N.LD_I_ADDR, (0x123,)),
        (0xB456, N.JP_V0_ADDR, (0x456,)),
        (0xC70F, N.RND_VX_BYTE, (0x7, 0x0F)),
        (0xD125, N.DRW_VX_VY_NIBBLE, (0x1, 0x2, 0x5)),
        (0xE39E, N.SKP_VX, (0x3,)),
        (0xE3A1, N.SKNP_VX, (0x3,)),
        (0xF407, N.LD_VX_DT, (0x4,)),
        (0xF40A, N.LD_VX_K, (0x4,)),
        (0xF415, N.LD_DT_VX, (0x4,)),
        (0xF418, N.LD_ST_VX, (0x4,)),
        (0xF41E, N.ADD_I_VX, (0x4,)),
        (0xF429, N.LD_F_VX, (0x4,)),
        (0xF433, N.LD_B_VX, (0x4,)),
        (0xF455, N.LD_I_VX, (0x4,)),
        (0xF465, N.LD_VX_I, (0x4,)),
    ])
    def test_decode(self, decoder, opcode, name, args):
        result = decoder.decode(opcode)
        assert isinstance(result, DecodeResult)
        assert result.key == name
        assert result.args == args
        assert result.opcode == opcode

    @pytest.mark.parametrize("opcode", [0x0000, 0x0123, 0x00E1, 0x5121, 0x8128, 0x812F, 0x9121, 0xE100, 0xF000, 0xF0FF])
    def test_unknown_opcode(self, decoder, opcode):
        with pytest.raises(UnknownOpcode) as excinfo:
            decoder.decode(opcode)
        assert excinfo.value.opcode == opcode
        assert excinfo.value.kind == "UnknownOpcode"

    def test_decode_round_trip_every_descriptor(self, decoder):
        """pattern | operands recovers the same name and operand values."""
        rng = random.Random(1234)
        for inst in INSTRUCTIONS:
            for _ in range(50):
                values = [rng.randint(0, op.mask >> op.shift) for op in inst.operands]
                opcode = inst.pattern
                for op, value in zip(inst.operands, values):
                    opcode |= (value << op.shift) & op.mask
                result = decoder.decode(opcode)
                assert result.key == inst.name
                assert list(result.args) == values

    def test_shr_ignores_vy(self, decoder):
        """The Y nibble of 8XY6 is not an operand."""
        assert decoder.decode(0x8F06).args == decoder.decode(0x8FA6).args == (0xF,)


class TestEncodeAndDisassemble:
    """Test opcode assembly and disassembly helpers."""

    def test_encode(self, decoder):
        assert decoder.encode(N.LD_VX_BYTE, 0, 5) == 0x6005
        assert decoder.encode("DRW_VX_VY_NIBBLE", 1, 2, 5) == 0xD125
        assert decoder.encode(N.CLS) == 0x00E0

    def test_encode_wrong_arity(self, decoder):
        with pytest.raises(ValueError, match="operands"):
            decoder.encode(N.JP_ADDR)

    def test_encode_value_too_large(self, decoder):
        with pytest.raises(ValueError, match="does not fit"):
            decoder.encode(N.LD_VX_BYTE, 16, 0)

    def test_disassemble(self, decoder):
        assert decoder.disassemble(0x6005) == "LD V0, 0x05"
        assert decoder.disassemble(0xD125) == "DRW V1, V2, 5"
        assert decoder.disassemble(0xF255) == "LD [I], V2"
        assert decoder.disassemble(0x0123) == "DW 0x0123"

    def test_disassemble_rom(self):
        listing = disassemble_rom(bytes([0x60, 0x05, 0x12, 0x00, 0xFF]))
        assert listing == [
            (0x200, 0x6005, "LD V0, 0x05"),
            (0x202, 0x1200, "JP 0x200"),
            (0x204, 0xFF00, "DW 0xFF00"),
        ]


class TestParseHexProgram:
    """Test parse_hex_program function."""

    def test_words(self):
        assert parse_hex_program("6005 7003 1200") == bytes([0x60, 0x05, 0x70, 0x03, 0x12, 0x00])

    def test_bytes_and_prefix(self):
        assert parse_hex_program("0x60, 05 0xA2F0") == bytes([0x60, 0x05, 0xA2, 0xF0])

    def test_comments_and_blank_lines(self):
        source = """
        6005  ; LD V0, 5
        # whole line comment

        1200  # JP 0x200
        """
        assert parse_hex_program(source) == bytes([0x60, 0x05, 0x12, 0x00])

    def test_invalid_token(self):
        with pytest.raises(ValueError, match="line 2"):
            parse_hex_program("6005\n60G5")

    def test_odd_length_token(self):
        with pytest.raises(ValueError):
            parse_hex_program("600")
