"""CHIP-8 CPU: A CHIP-8 virtual machine with a table-driven decoder.

This package emulates the CHIP-8 machine: 4K of memory, sixteen 8-bit
registers, a 16-level call stack, two 60 Hz timers, a 64x32 monochrome
display and a 16-key keypad. Programs are ROMs of big-endian 16-bit opcodes
loaded at 0x200.

Architecture:
    MEMORY -> FETCH -> DECODE -> INSTRUCTION -> REGISTRY -> EXECUTE -> STATE
               |         |           |             |           |
           [PC-based] [Jump table] [Descriptor] [Verified]  [Port calls]
                                               Primitives

Modules:
    instructions: Ordered opcode descriptor table
    decode: Nibble-indexed decoder, hex ROM parser, disassembler
    state: CPUState for memory, registers, stack and timers
    faults: Fatal fault taxonomy
    registry: Verified instruction primitives
    interface: Display/input port and headless FrameBuffer
    cpu: Main Chip8CPU orchestrator
    driver: Frame-paced host loop with 60 Hz timers
    display: Pygame window frontend
"""

__version__ = "0.1.0"
__author__ = "CHIP-8 CPU Project"

from .state import CPUState
from .instructions import INSTRUCTIONS, Instruction, InstructionName
from .decode import Decoder, DecodeResult, parse_hex_program
from .faults import (
    Chip8Fault,
    CPUHalted,
    InvalidDigit,
    OutOfBounds,
    StackOverflow,
    StackUnderflow,
    UnknownOpcode,
)
from .registry import CPURegistry
from .interface import Chip8Interface, FrameBuffer
from .cpu import Chip8CPU
from .driver import Chip8Host

__all__ = [
    "CPUState",
    "INSTRUCTIONS",
    "Instruction",
    "InstructionName",
    "Decoder",
    "DecodeResult",
    "parse_hex_program",
    "Chip8Fault",
    "CPUHalted",
    "InvalidDigit",
    "OutOfBounds",
    "StackOverflow",
    "StackUnderflow",
    "UnknownOpcode",
    "CPURegistry",
    "Chip8Interface",
    "FrameBuffer",
    "Chip8CPU",
    "Chip8Host",
]
