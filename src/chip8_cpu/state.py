"""CPUState: Machine state for the CHIP-8 CPU.

This module defines the single owned state object of one emulated machine.
Unlike a pure functional state, CHIP-8 memory is 4K of mutable bytes, so the
state is mutated in place by the execution registry; `snapshot()` provides
the copy used for tracing.

State Components:
    - Memory: 4096 bytes, font at 0x000, programs at 0x200
    - Registers: V0-VF (8-bit, VF doubles as the carry/collision flag)
    - I: Index register (12-bit memory pointer)
    - PC: Program counter
    - Stack: 16 return addresses addressed by SP (-1 when empty)
    - DT/ST: Delay and sound timers, decremented by the host at 60 Hz
    - Halted: Set by any fault, never cleared
    - Cycle count: Total executed instructions
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .faults import OutOfBounds, StackOverflow, StackUnderflow


MEMORY_SIZE = 4096
MAX_ADDRESS = 0xFFF
# Last PC from which a full 2-byte opcode can be fetched
MAX_FETCH_ADDRESS = 0xFFD
PROGRAM_START = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START

NUM_REGISTERS = 16
FLAG_REGISTER = 0xF
STACK_SIZE = 16

FONT_START = 0x000
FONT_GLYPH_SIZE = 5
FONT_SET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


@dataclass
class CPUState:
    """Mutable CHIP-8 machine state.

    Attributes:
        memory: 4096 bytes of addressable memory
        registers: V0-VF as a 16-byte array
        index: Index register I
        pc: Program counter
        stack: Return addresses, only entries 0..sp are live
        sp: Stack pointer, -1 when empty, 15 when full
        delay_timer: DT, decremented by the host
        sound_timer: ST, decremented by the host
        halted: Whether a fault has stopped the CPU
        cycle_count: Number of executed instructions
    """
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    registers: bytearray = field(default_factory=lambda: bytearray(NUM_REGISTERS))
    index: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    sp: int = -1
    delay_timer: int = 0
    sound_timer: int = 0
    halted: bool = False
    cycle_count: int = 0

    def snapshot(self) -> dict:
        """Create a copy of the current state for tracing.

        Returns:
            Dictionary with registers, pointers, timers and live stack entries
        """
        return {
            "registers": self.dump_registers(),
            "pc": self.pc,
            "index": self.index,
            "sp": self.sp,
            "stack": self.stack[:self.sp + 1],
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
            # Memory excluded: 4K per cycle is too much to keep in a trace
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory is exactly 4096 bytes and there are 16 registers
            - I and PC fit in 16 bits, SP is within [-1, 15]
            - Timers are 8-bit, cycle count is non-negative

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False
        if len(self.registers) != NUM_REGISTERS:
            return False
        if len(self.stack) != STACK_SIZE:
            return False

        if not 0 <= self.index <= 0xFFFF:
            return False
        if not 0 <= self.pc <= 0xFFFF:
            return False
        if not -1 <= self.sp < STACK_SIZE:
            return False

        for timer in (self.delay_timer, self.sound_timer):
            if not 0 <= timer <= 0xFF:
                return False

        if self.cycle_count < 0:
            return False

        return True

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, x: int) -> int:
        """Get value of register Vx.

        Raises:
            KeyError: If x is not a register number 0-15
        """
        if not 0 <= x < NUM_REGISTERS:
            raise KeyError(f"Invalid register: V{x}")
        return self.registers[x]

    def set_register(self, x: int, value: int) -> None:
        """Set register Vx, wrapping the value to 8 bits.

        Raises:
            KeyError: If x is not a register number 0-15
        """
        if not 0 <= x < NUM_REGISTERS:
            raise KeyError(f"Invalid register: V{x}")
        self.registers[x] = value & 0xFF

    def set_flag(self, value: int) -> None:
        """Set VF to 1 if value is truthy, else 0."""
        self.registers[FLAG_REGISTER] = 1 if value else 0

    def set_index(self, value: int) -> None:
        """Set I, masked to the 12-bit address space."""
        self.index = value & MAX_ADDRESS

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0-VF."""
        return {f"V{x:X}": value for x, value in enumerate(self.registers)}

    # =========================================================================
    # Memory
    # =========================================================================

    def check_range(self, start: int, length: int) -> None:
        """Ensure `length` bytes starting at `start` are addressable.

        Raises:
            OutOfBounds: If any byte of the range lies outside 0x000-0xFFF
        """
        end = start + length - 1
        if start < 0 or end > MAX_ADDRESS:
            raise OutOfBounds(
                f"memory access 0x{start:03X}..0x{end:03X} outside 0x000-0x{MAX_ADDRESS:03X}",
                pc=self.pc,
            )

    def read_byte(self, address: int) -> int:
        self.check_range(address, 1)
        return self.memory[address]

    def write_byte(self, address: int, value: int) -> None:
        self.check_range(address, 1)
        self.memory[address] = value & 0xFF

    def fetch_opcode(self) -> int:
        """Read the big-endian 16-bit opcode at PC.

        Raises:
            OutOfBounds: If PC is beyond 0xFFD
        """
        if not 0 <= self.pc <= MAX_FETCH_ADDRESS:
            raise OutOfBounds(f"fetch at 0x{self.pc:03X} past end of memory", pc=self.pc)
        return (self.memory[self.pc] << 8) | self.memory[self.pc + 1]

    def load_bytes(self, address: int, data: bytes) -> None:
        """Copy data into memory byte-for-byte starting at address."""
        if data:
            self.check_range(address, len(data))
        self.memory[address:address + len(data)] = data

    # =========================================================================
    # Stack
    # =========================================================================

    def push(self, address: int) -> None:
        """Push a return address.

        Raises:
            StackOverflow: If 16 addresses are already on the stack
        """
        if self.sp == STACK_SIZE - 1:
            raise StackOverflow(f"stack depth {STACK_SIZE} exceeded", pc=self.pc)
        self.sp += 1
        self.stack[self.sp] = address & 0xFFFF

    def pop(self) -> int:
        """Pop the most recent return address.

        Raises:
            StackUnderflow: If the stack is empty
        """
        if self.sp == -1:
            raise StackUnderflow("return with empty stack", pc=self.pc)
        address = self.stack[self.sp]
        self.sp -= 1
        return address

    # =========================================================================
    # Program counter and lifecycle
    # =========================================================================

    def next_instruction(self) -> None:
        self.pc += 2

    def skip_instruction(self) -> None:
        self.pc += 4

    def set_pc(self, new_pc: int) -> None:
        self.pc = new_pc

    def set_halted(self, halted: bool = True) -> None:
        self.halted = halted

    def increment_cycle(self) -> None:
        self.cycle_count += 1

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"{k}={v:02X}" for k, v in self.dump_registers().items())
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.index:03X} SP={self.sp} "
            f"DT={self.delay_timer} ST={self.sound_timer} {regs} {'HALTED' if self.halted else ''}"
        ).rstrip()


def create_initial_state(rom: bytes = b"") -> CPUState:
    """Create initial CPU state with the font and a ROM loaded.

    The ROM is copied one byte per memory byte starting at 0x200.

    Args:
        rom: Raw ROM image

    Returns:
        Fresh CPUState with PC at 0x200

    Raises:
        ValueError: If the ROM does not fit between 0x200 and 0xFFF
    """
    if len(rom) > MAX_ROM_SIZE:
        raise ValueError(f"ROM is {len(rom)} bytes, maximum is {MAX_ROM_SIZE}")

    state = CPUState()
    state.load_bytes(FONT_START, FONT_SET)
    state.load_bytes(PROGRAM_START, bytes(rom))
    return state
