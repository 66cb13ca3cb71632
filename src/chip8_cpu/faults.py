"""Fault taxonomy for the CHIP-8 CPU.

Every fault is fatal: the engine halts and re-raises the fault to the host
with the program counter and opcode that caused it.

Faults:
    OutOfBounds: Fetch or memory access outside 0x000-0xFFF
    StackOverflow: CALL with 16 return addresses already pushed
    StackUnderflow: RET with an empty stack
    UnknownOpcode: No instruction descriptor matches the opcode
    InvalidDigit: LD F, Vx with Vx > 0xF
"""

from typing import Optional


class Chip8Fault(RuntimeError):
    """Base class for all fatal CPU faults.

    Attributes:
        kind: Short fault name (e.g., "OutOfBounds")
        pc: Program counter of the faulting instruction, if known
        opcode: Raw 16-bit opcode being executed, if known
    """

    kind = "Fault"

    def __init__(self, message: str, pc: Optional[int] = None, opcode: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.pc = pc
        self.opcode = opcode

    def __str__(self) -> str:
        where = []
        if self.pc is not None:
            where.append(f"pc=0x{self.pc:03X}")
        if self.opcode is not None:
            where.append(f"opcode=0x{self.opcode:04X}")
        suffix = f" ({', '.join(where)})" if where else ""
        return f"{self.kind}: {self.message}{suffix}"


class OutOfBounds(Chip8Fault):
    kind = "OutOfBounds"


class StackOverflow(Chip8Fault):
    kind = "StackOverflow"


class StackUnderflow(Chip8Fault):
    kind = "StackUnderflow"


class UnknownOpcode(Chip8Fault):
    kind = "UnknownOpcode"


class InvalidDigit(Chip8Fault):
    kind = "InvalidDigit"


class CPUHalted(RuntimeError):
    """Raised when stepping a CPU that has already halted.

    Attributes:
        fault: The fault that halted the CPU
    """

    def __init__(self, fault: Optional[Chip8Fault] = None):
        message = "CPU is halted"
        if fault is not None:
            message = f"{message} after {fault}"
        super().__init__(message)
        self.fault = fault
