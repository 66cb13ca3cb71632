"""Tests for CPUState dataclass."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_cpu.faults import OutOfBounds, StackOverflow, StackUnderflow
from chip8_cpu.state import (
    CPUState,
    FONT_SET,
    MAX_ROM_SIZE,
    MEMORY_SIZE,
    PROGRAM_START,
    STACK_SIZE,
    create_initial_state,
)


class TestCPUStateCreation:
    """Test CPUState initialization and defaults."""

    def test_default_state(self):
        """Default state has zeroed registers and an empty stack."""
        state = CPUState()
        assert state.pc == 0x200
        assert state.index == 0
        assert state.sp == -1
        assert state.cycle_count == 0
        assert state.halted is False
        assert len(state.memory) == MEMORY_SIZE
        assert list(state.registers) == [0] * 16
        assert state.delay_timer == 0
        assert state.sound_timer == 0

    def test_create_initial_state_loads_font(self):
        """The hex font occupies 0x000-0x04F."""
        state = create_initial_state()
        assert bytes(state.memory[0:80]) == FONT_SET
        assert len(FONT_SET) == 80

    def test_create_initial_state_copies_rom_byte_for_byte(self):
        """Each ROM byte lands in exactly one memory byte from 0x200."""
        rom = bytes([0x60, 0x05, 0x70, 0x03, 0xAB])
        state = create_initial_state(rom)
        assert bytes(state.memory[PROGRAM_START:PROGRAM_START + 5]) == rom
        assert state.memory[PROGRAM_START + 5] == 0
        assert state.pc == PROGRAM_START

    def test_max_size_rom_fits(self):
        """A ROM filling 0x200-0xFFF is accepted."""
        rom = bytes([0x12]) * MAX_ROM_SIZE
        state = create_initial_state(rom)
        assert state.memory[0xFFF] == 0x12

    def test_oversized_rom_rejected(self):
        """A ROM past 0xFFF raises ValueError."""
        with pytest.raises(ValueError, match="maximum"):
            create_initial_state(bytes(MAX_ROM_SIZE + 1))

    def test_instances_do_not_share_memory(self):
        """Two machines can coexist without sharing state."""
        a = create_initial_state(b"\x60\x01")
        b = create_initial_state(b"\x60\x02")
        a.memory[0x300] = 0xFF
        a.registers[0] = 7
        assert b.memory[0x300] == 0
        assert b.registers[0] == 0


class TestCPUStateValidation:
    """Test state validation."""

    def test_valid_state(self):
        assert CPUState().validate() is True

    def test_invalid_stack_pointer(self):
        state = CPUState(sp=16)
        assert state.validate() is False

    def test_invalid_timer(self):
        state = CPUState(delay_timer=256)
        assert state.validate() is False

    def test_truncated_memory(self):
        state = CPUState(memory=bytearray(100))
        assert state.validate() is False


class TestCPUStateRegisters:
    """Test register accessors."""

    def test_set_register_wraps_to_byte(self):
        state = CPUState()
        state.set_register(3, 0x1FF)
        assert state.get_register(3) == 0xFF

    def test_set_flag_normalises(self):
        state = CPUState()
        state.set_flag(42)
        assert state.registers[0xF] == 1
        state.set_flag(0)
        assert state.registers[0xF] == 0

    def test_set_index_masks_to_12_bits(self):
        state = CPUState()
        state.set_index(0x1005)
        assert state.index == 0x005

    def test_get_register_invalid(self):
        with pytest.raises(KeyError):
            CPUState().get_register(16)

    def test_dump_registers_names(self):
        state = CPUState()
        state.set_register(0xA, 0x42)
        regs = state.dump_registers()
        assert list(regs.keys())[0] == "V0"
        assert list(regs.keys())[-1] == "VF"
        assert regs["VA"] == 0x42

        # Modifying copy doesn't affect state
        regs["VA"] = 0
        assert state.get_register(0xA) == 0x42


class TestCPUStateMemory:
    """Test bounds-checked memory access."""

    def test_fetch_big_endian(self):
        state = create_initial_state(b"\x12\x34")
        assert state.fetch_opcode() == 0x1234

    def test_fetch_last_valid_address(self):
        state = CPUState(pc=0xFFD)
        state.memory[0xFFD] = 0xAB
        state.memory[0xFFE] = 0xCD
        assert state.fetch_opcode() == 0xABCD

    def test_fetch_at_ffe_out_of_bounds(self):
        state = CPUState(pc=0xFFE)
        with pytest.raises(OutOfBounds):
            state.fetch_opcode()

    def test_write_last_byte(self):
        state = CPUState()
        state.write_byte(0xFFF, 0x1AB)
        assert state.read_byte(0xFFF) == 0xAB

    def test_write_past_end(self):
        with pytest.raises(OutOfBounds):
            CPUState().write_byte(0x1000, 1)

    def test_read_past_end(self):
        with pytest.raises(OutOfBounds):
            CPUState().read_byte(0x1000)

    def test_check_range(self):
        state = CPUState()
        state.check_range(0xFF0, 16)
        with pytest.raises(OutOfBounds):
            state.check_range(0xFF0, 17)


class TestCPUStateStack:
    """Test the 16-entry call stack."""

    def test_push_pop(self):
        state = CPUState()
        state.push(0x202)
        state.push(0x304)
        assert state.sp == 1
        assert state.pop() == 0x304
        assert state.pop() == 0x202
        assert state.sp == -1

    def test_sixteen_pushes_fit(self):
        state = CPUState()
        for i in range(STACK_SIZE):
            state.push(0x200 + i * 2)
        assert state.sp == 15
        with pytest.raises(StackOverflow):
            state.push(0x400)
        assert state.sp == 15

    def test_pop_empty(self):
        state = CPUState()
        with pytest.raises(StackUnderflow):
            state.pop()
        assert state.sp == -1


class TestCPUStateSnapshot:
    """Test state snapshot for tracing."""

    def test_snapshot_is_copy(self):
        state = CPUState()
        state.set_register(0, 42)
        state.push(0x250)
        snapshot = state.snapshot()

        assert snapshot["registers"]["V0"] == 42
        assert snapshot["pc"] == 0x200
        assert snapshot["stack"] == [0x250]
        assert "memory" not in snapshot

        snapshot["registers"]["V0"] = 99
        snapshot["stack"].append(1)
        assert state.get_register(0) == 42
        assert state.sp == 0

    def test_program_counter_helpers(self):
        state = CPUState()
        state.next_instruction()
        assert state.pc == 0x202
        state.skip_instruction()
        assert state.pc == 0x206
        state.set_pc(0x300)
        assert state.pc == 0x300

    def test_str_mentions_halted(self):
        state = CPUState()
        assert "HALTED" not in str(state)
        state.set_halted(True)
        assert "HALTED" in str(state)
