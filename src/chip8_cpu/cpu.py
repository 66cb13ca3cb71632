"""Chip8CPU: Main CPU orchestrator for CHIP-8 emulation.

This module implements the full execution pipeline:
    MEMORY -> FETCH -> DECODE -> INSTRUCTION -> REGISTRY -> EXECUTE -> STATE

Each call to `step()` runs exactly one instruction and returns a trace entry.
Any fault halts the CPU permanently and is raised to the caller; a halted
CPU refuses further steps until a new one is constructed.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Dict, List, Optional, Union

from .decode import DecodeResult, Decoder
from .faults import Chip8Fault, CPUHalted
from .interface import Chip8Interface, FrameBuffer
from .registry import CPURegistry
from .state import CPUState, create_initial_state

logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Captures one fetch-decode-execute cycle for auditability and debugging.

    Attributes:
        cycle: Cycle count after the step
        pc: Address the opcode was fetched from
        opcode: Raw opcode, None if the fetch itself faulted
        decode_result: Result from the decoder, None if decode failed
        pre_state: State before execution
        post_state: State after execution
        error: Fault description if execution failed
    """
    cycle: int
    pc: int
    opcode: Optional[int]
    decode_result: Optional[DecodeResult]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None

    @property
    def instruction(self) -> str:
        if self.decode_result is not None:
            return self.decode_result.text
        if self.opcode is not None:
            return f"DW 0x{self.opcode:04X}"
        return "<FETCH FAULT>"


class Chip8CPU:
    """CHIP-8 CPU engine.

    Attributes:
        port: Display/input port the instructions drive
        decoder: Opcode decoder
        registry: Instruction primitives bound to this machine's port
        state: Current machine state
        fault: Fault that halted the CPU, if any
        trace: Most recent execution trace entries
        max_cycles: Default cycle limit for run()
    """

    DEFAULT_MAX_CYCLES = 10000
    DEFAULT_TRACE_LENGTH = 1000

    def __init__(
        self,
        port: Optional[Chip8Interface] = None,
        seed: Optional[int] = None,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        trace_length: Optional[int] = DEFAULT_TRACE_LENGTH,
    ):
        """Initialize the CPU with an empty program.

        Args:
            port: Display/input port (a headless FrameBuffer if None)
            seed: Seed for the RND instruction's random source
            max_cycles: Default cycle limit for run()
            trace_length: Entries kept in the trace (None keeps all, 0 disables)
        """
        self.port = port if port is not None else FrameBuffer()
        self.decoder = Decoder()
        self.registry = CPURegistry(self.port, rng=random.Random(seed))
        self.state: CPUState = create_initial_state()
        self.fault: Optional[Chip8Fault] = None
        self.trace: Deque[ExecutionTraceEntry] = deque(maxlen=trace_length)
        self.max_cycles = max_cycles
        self._tracing = trace_length != 0

    def load_rom(self, rom: bytes) -> None:
        """Load a ROM image at 0x200 into a machine that has not halted.

        Args:
            rom: Raw ROM bytes, copied one byte per memory byte

        Raises:
            ValueError: If the ROM is larger than 3584 bytes
            CPUHalted: If the CPU has halted; build a new Chip8CPU instead
        """
        if self.state.halted:
            raise CPUHalted(self.fault)
        self.state = create_initial_state(rom)
        self.fault = None
        self.trace.clear()
        logger.debug("Loaded %d byte ROM at 0x200", len(rom))

    def load_rom_file(self, path: Union[str, Path]) -> None:
        """Load a ROM image from a file."""
        self.load_rom(Path(path).read_bytes())

    def step(self) -> ExecutionTraceEntry:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> EXECUTE

        Returns:
            ExecutionTraceEntry for the cycle

        Raises:
            CPUHalted: If the CPU has already halted
            Chip8Fault: If this instruction faults; the CPU is halted
        """
        if self.state.halted:
            raise CPUHalted(self.fault)

        pc = self.state.pc
        pre_state = self.state.snapshot() if self._tracing else {}
        opcode: Optional[int] = None
        decode_result: Optional[DecodeResult] = None

        try:
            # FETCH
            opcode = self.state.fetch_opcode()
            # DECODE
            decode_result = self.decoder.decode(opcode)
            logger.debug("%03X: %04X  %s", pc, opcode, decode_result.text)
            # EXECUTE
            self.registry.execute(self.state, decode_result.key, decode_result.args)
        except Chip8Fault as fault:
            if fault.pc is None:
                fault.pc = pc
            if fault.opcode is None:
                fault.opcode = opcode
            self._halt(fault)
            self._record(pc, opcode, decode_result, pre_state, error=str(fault))
            raise

        return self._record(pc, opcode, decode_result, pre_state)

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run the CPU for a number of cycles.

        CHIP-8 programs have no halt instruction, so this stops only at the
        cycle limit or on a fault.

        Args:
            max_cycles: Steps to execute (uses instance default if None)

        Returns:
            The trace entries kept so far

        Raises:
            Chip8Fault: If an instruction faults
            CPUHalted: If the CPU was already halted
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles
        for _ in range(limit):
            self.step()
        return list(self.trace)

    def _halt(self, fault: Chip8Fault) -> None:
        self.state.set_halted(True)
        self.fault = fault
        logger.warning("CPU halted: %s", fault)

    def _record(self, pc, opcode, decode_result, pre_state, error=None) -> ExecutionTraceEntry:
        entry = ExecutionTraceEntry(
            cycle=self.state.cycle_count,
            pc=pc,
            opcode=opcode,
            decode_result=decode_result,
            pre_state=pre_state,
            post_state=self.state.snapshot() if self._tracing else {},
            error=error,
        )
        if self._tracing:
            self.trace.append(entry)
        return entry

    # =========================================================================
    # State accessors
    # =========================================================================

    def get_register(self, x: int) -> int:
        """Get value of register Vx."""
        return self.state.get_register(x)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_index(self) -> int:
        return self.state.index

    def get_stack(self) -> List[int]:
        """Live return addresses, oldest first."""
        return self.state.stack[:self.state.sp + 1]

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    @property
    def delay_timer(self) -> int:
        return self.state.delay_timer

    @delay_timer.setter
    def delay_timer(self, value: int) -> None:
        self.state.delay_timer = value & 0xFF

    @property
    def sound_timer(self) -> int:
        return self.state.sound_timer

    @sound_timer.setter
    def sound_timer(self, value: int) -> None:
        self.state.sound_timer = value & 0xFF

    # =========================================================================
    # Reporting
    # =========================================================================

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP-8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            opcode = f"{entry.opcode:04X}" if entry.opcode is not None else "----"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  {entry.pc:03X}: {opcode}  {entry.instruction}")

            # Show register changes
            pre_regs = entry.pre_state.get("registers", {})
            post_regs = entry.post_state.get("registers", {})
            changes = []
            for reg in sorted(pre_regs.keys()):
                if pre_regs[reg] != post_regs.get(reg, pre_regs[reg]):
                    changes.append(f"{reg}: {pre_regs[reg]:02X} -> {post_regs[reg]:02X}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            pre_i = entry.pre_state.get("index")
            post_i = entry.post_state.get("index")
            if pre_i != post_i:
                print(f"  I: {pre_i:03X} -> {post_i:03X}")

            post_pc = entry.post_state.get("pc", entry.pc)
            if post_pc != entry.pc + 2:
                print(f"  PC: {entry.pc:03X} -> {post_pc:03X}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  Registers: {self.format_registers()}")
        print(f"  PC: {self.get_pc():03X}  I: {self.get_index():03X}")
        print(f"  Stack: {[f'{addr:03X}' for addr in self.get_stack()]}")
        print(f"  Cycles: {self.get_cycle_count()}")
        print(f"  Halted: {self.is_halted()}")

    def format_registers(self) -> str:
        return " ".join(f"{name}={value:02X}" for name, value in self.dump_registers().items())

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "pc": self.get_pc(),
            "index": self.get_index(),
            "stack": self.get_stack(),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "trace_length": len(self.trace),
            "fault": str(self.fault) if self.fault else None,
            "errors": [e.error for e in self.trace if e.error],
        }
