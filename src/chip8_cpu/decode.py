"""Decoder: opcode to instruction resolution for the CHIP-8 CPU.

Architecture:
    Raw 16-bit opcode -> Decoder -> (Instruction, args) -> Registry -> Execute

The instruction table is an ordered list, but scanning it for every fetch is
wasteful. The decoder precomputes a jump table keyed by the opcode's high
nibble; each bucket holds the candidate descriptors in the table's declared
order, so the first-match tie-break is preserved exactly.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .faults import UnknownOpcode
from .instructions import INSTRUCTIONS, Instruction, InstructionName, check_table_order


@dataclass(frozen=True)
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        instruction: Matched descriptor
        args: Operand values in declaration order
        opcode: Raw opcode that was decoded
    """
    instruction: Instruction
    args: Tuple[int, ...]
    opcode: int

    @property
    def key(self) -> InstructionName:
        return self.instruction.name

    @property
    def text(self) -> str:
        return self.instruction.format(self.args)


class Decoder:
    """Opcode decoder backed by a nibble-indexed jump table.

    Attributes:
        table: The ordered instruction table
    """

    def __init__(self, table: Sequence[Instruction] = INSTRUCTIONS):
        """Build the jump table.

        Args:
            table: Ordered instruction descriptors

        Raises:
            ValueError: If the table contains shadowed or malformed entries
        """
        check_table_order(table)
        self.table: Tuple[Instruction, ...] = tuple(table)
        self._by_name: Dict[InstructionName, Instruction] = {}
        self._jump_table: List[List[Instruction]] = [[] for _ in range(16)]

        for inst in self.table:
            self._by_name.setdefault(inst.name, inst)
            for nibble in range(16):
                # Descriptor can only match opcodes whose high nibble agrees on its fixed bits
                high_mask = (inst.mask >> 12) & 0xF
                if (nibble & high_mask) == ((inst.pattern >> 12) & high_mask):
                    self._jump_table[nibble].append(inst)

    def decode(self, opcode: int) -> DecodeResult:
        """Resolve an opcode to its descriptor and operands.

        Args:
            opcode: Raw 16-bit opcode

        Returns:
            DecodeResult for the first matching descriptor

        Raises:
            UnknownOpcode: If no descriptor matches
        """
        opcode &= 0xFFFF
        for inst in self._jump_table[opcode >> 12]:
            if inst.matches(opcode):
                return DecodeResult(inst, inst.extract(opcode), opcode)
        raise UnknownOpcode(f"no instruction matches 0x{opcode:04X}", opcode=opcode)

    def matches(self, opcode: int) -> List[Instruction]:
        """Every descriptor matching the opcode, in priority order."""
        return [inst for inst in self.table if inst.matches(opcode & 0xFFFF)]

    def lookup(self, name: InstructionName) -> Instruction:
        return self._by_name[InstructionName(name)]

    def encode(self, name: InstructionName, *args: int) -> int:
        """Assemble an opcode from an instruction name and operand values.

        Raises:
            ValueError: If the operand count is wrong or a value does not fit
        """
        inst = self.lookup(name)
        if len(args) != len(inst.operands):
            raise ValueError(f"{inst.name.value} takes {len(inst.operands)} operands, got {len(args)}")

        opcode = inst.pattern
        for operand, value in zip(inst.operands, args):
            if operand.insert(value) >> operand.shift != value:
                raise ValueError(f"{inst.name.value}: operand {value:#x} does not fit mask {operand.mask:#06x}")
            opcode |= operand.insert(value)
        return opcode

    def disassemble(self, opcode: int) -> str:
        """Render an opcode as assembly, or `DW 0xNNNN` if it is not an instruction."""
        try:
            return self.decode(opcode).text
        except UnknownOpcode:
            return f"DW 0x{opcode & 0xFFFF:04X}"


_HEX_TOKEN = re.compile(r"^(?:0x)?([0-9a-fA-F]{2}|[0-9a-fA-F]{4})$")


def parse_hex_program(source: str) -> bytes:
    """Parse a ROM written as hex words.

    Tokens are 4-digit words (big-endian) or 2-digit bytes, with an optional
    `0x` prefix, separated by whitespace or commas. `;` and `#` start
    comments.

    Args:
        source: Program text, e.g. "6005 7003 1200"

    Returns:
        ROM bytes

    Raises:
        ValueError: On a token that is not a hex byte or word
    """
    rom = bytearray()
    for line_no, line in enumerate(source.splitlines(), start=1):
        line = re.split(r"[;#]", line, maxsplit=1)[0]
        for token in re.split(r"[\s,]+", line.strip()):
            if not token:
                continue
            match = _HEX_TOKEN.match(token)
            if match is None:
                raise ValueError(f"line {line_no}: invalid hex token {token!r}")
            digits = match.group(1)
            rom.extend(bytes.fromhex(digits))
    return bytes(rom)


def disassemble_rom(rom: bytes, start: int = 0x200, decoder: Optional[Decoder] = None) -> List[Tuple[int, int, str]]:
    """Disassemble a ROM word by word.

    Returns:
        List of (address, opcode, text) tuples; a trailing odd byte is padded
    """
    decoder = decoder or Decoder()
    listing = []
    for offset in range(0, len(rom), 2):
        word = rom[offset:offset + 2].ljust(2, b"\x00")
        opcode = (word[0] << 8) | word[1]
        listing.append((start + offset, opcode, decoder.disassemble(opcode)))
    return listing
