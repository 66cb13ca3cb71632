"""CPURegistry: Verified CHIP-8 instruction primitives.

This module implements the registry pattern for CPU operations: each
instruction name maps to one frozen handler that mutates the machine state
in a predictable, auditable way and advances the program counter along
exactly one path:

    next:  PC += 2
    skip:  PC += 4
    set:   PC <- target (JP, CALL, RET, JP V0)
    stay:  PC unchanged (LD Vx, K while no key is pressed)

Handlers that fault raise before touching PC.

Each primitive has the signature: (CPUState, args) -> None
"""

import random
from typing import Callable, Dict, Optional, Sequence

from .faults import InvalidDigit, OutOfBounds
from .instructions import InstructionName
from .interface import Chip8Interface
from .state import CPUState, FONT_GLYPH_SIZE, FONT_START, MAX_ADDRESS

Handler = Callable[[CPUState, Sequence[int]], None]


class CPURegistry:
    """Verified registry of CHIP-8 primitives.

    The registry is frozen after initialization to ensure no runtime
    modifications can occur. One registry belongs to one machine, since
    it holds that machine's port and random source.

    Attributes:
        port: Display/input port the primitives call into
        rng: Random source for RND
        _primitives: Dictionary mapping instruction names to handlers
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self, port: Chip8Interface, rng: Optional[random.Random] = None):
        """Initialize registry with all CPU primitives.

        Args:
            port: Display/input port
            rng: Random source for RND (a fresh unseeded one if None)
        """
        self.port = port
        self.rng = rng or random.Random()
        self._primitives: Dict[InstructionName, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all CPU operation primitives."""
        N = InstructionName

        # Display and flow control
        self.register(N.CLS, self._op_cls)
        self.register(N.RET, self._op_ret)
        self.register(N.JP_ADDR, self._op_jp_addr)
        self.register(N.CALL_ADDR, self._op_call_addr)
        self.register(N.JP_V0_ADDR, self._op_jp_v0_addr)

        # Conditional skips
        self.register(N.SE_VX_BYTE, self._op_se_vx_byte)
        self.register(N.SNE_VX_BYTE, self._op_sne_vx_byte)
        self.register(N.SE_VX_VY, self._op_se_vx_vy)
        self.register(N.SNE_VX_VY, self._op_sne_vx_vy)
        self.register(N.SKP_VX, self._op_skp_vx)
        self.register(N.SKNP_VX, self._op_sknp_vx)

        # Data movement
        self.register(N.LD_VX_BYTE, self._op_ld_vx_byte)
        self.register(N.LD_VX_VY, self._op_ld_vx_vy)
        self.register(N.LD_I_ADDR, self._op_ld_i_addr)
        self.register(N.LD_VX_DT, self._op_ld_vx_dt)
        self.register(N.LD_VX_K, self._op_ld_vx_k)
        self.register(N.LD_DT_VX, self._op_ld_dt_vx)
        self.register(N.LD_ST_VX, self._op_ld_st_vx)

        # Arithmetic and logic
        self.register(N.ADD_VX_BYTE, self._op_add_vx_byte)
        self.register(N.OR_VX_VY, self._op_or_vx_vy)
        self.register(N.AND_VX_VY, self._op_and_vx_vy)
        self.register(N.XOR_VX_VY, self._op_xor_vx_vy)
        self.register(N.ADD_VX_VY, self._op_add_vx_vy)
        self.register(N.SUB_VX_VY, self._op_sub_vx_vy)
        self.register(N.SUBN_VX_VY, self._op_subn_vx_vy)
        self.register(N.SHR_VX, self._op_shr_vx)
        self.register(N.SHL_VX, self._op_shl_vx)
        self.register(N.RND_VX_BYTE, self._op_rnd_vx_byte)
        self.register(N.ADD_I_VX, self._op_add_i_vx)

        # Sprites and memory
        self.register(N.DRW_VX_VY_NIBBLE, self._op_drw)
        self.register(N.LD_F_VX, self._op_ld_f_vx)
        self.register(N.LD_B_VX, self._op_ld_b_vx)
        self.register(N.LD_I_VX, self._op_ld_i_vx)
        self.register(N.LD_VX_I, self._op_ld_vx_i)

    def register(self, key: InstructionName, handler: Handler) -> None:
        """Register a primitive operation.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        return set(self._primitives.keys())

    def execute(self, state: CPUState, key: InstructionName, args: Sequence[int]) -> None:
        """Execute a registered primitive against the state.

        The cycle count only advances if the primitive completes.

        Raises:
            KeyError: If key not in registry
            Chip8Fault: If the primitive faults
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")

        self._primitives[key](state, args)
        state.increment_cycle()

    # =========================================================================
    # Display and Flow Control
    # =========================================================================

    def _op_cls(self, state: CPUState, args: Sequence[int]) -> None:
        """00E0 CLS - Clear the display."""
        self.port.clear_display()
        state.next_instruction()

    def _op_ret(self, state: CPUState, args: Sequence[int]) -> None:
        """00EE RET - Return from subroutine.

        Raises:
            StackUnderflow: If the stack is empty
        """
        state.set_pc(state.pop())

    def _op_jp_addr(self, state: CPUState, args: Sequence[int]) -> None:
        """1NNN JP addr - Jump to address."""
        state.set_pc(args[0])

    def _op_call_addr(self, state: CPUState, args: Sequence[int]) -> None:
        """2NNN CALL addr - Push the return address and jump.

        Raises:
            StackOverflow: If 16 calls are already nested
        """
        state.push(state.pc + 2)
        state.set_pc(args[0])

    def _op_jp_v0_addr(self, state: CPUState, args: Sequence[int]) -> None:
        """BNNN JP V0, addr - Jump to V0 + addr."""
        state.set_pc(state.registers[0] + args[0])

    # =========================================================================
    # Conditional Skips
    # =========================================================================

    @staticmethod
    def _skip_if(state: CPUState, condition: bool) -> None:
        if condition:
            state.skip_instruction()
        else:
            state.next_instruction()

    def _op_se_vx_byte(self, state: CPUState, args: Sequence[int]) -> None:
        """3XNN SE Vx, byte - Skip if Vx == byte."""
        x, byte = args
        self._skip_if(state, state.registers[x] == byte)

    def _op_sne_vx_byte(self, state: CPUState, args: Sequence[int]) -> None:
        """4XNN SNE Vx, byte - Skip if Vx != byte."""
        x, byte = args
        self._skip_if(state, state.registers[x] != byte)

    def _op_se_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """5XY0 SE Vx, Vy - Skip if Vx == Vy."""
        x, y = args
        self._skip_if(state, state.registers[x] == state.registers[y])

    def _op_sne_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """9XY0 SNE Vx, Vy - Skip if Vx != Vy."""
        x, y = args
        self._skip_if(state, state.registers[x] != state.registers[y])

    def _key_held(self, key: int) -> bool:
        # Keys above 0xF do not exist, so they are never held
        return key < 16 and bool(self.port.get_keys() & (1 << key))

    def _op_skp_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """EX9E SKP Vx - Skip if key Vx is held."""
        self._skip_if(state, self._key_held(state.registers[args[0]]))

    def _op_sknp_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """EXA1 SKNP Vx - Skip if key Vx is not held."""
        self._skip_if(state, not self._key_held(state.registers[args[0]]))

    # =========================================================================
    # Data Movement
    # =========================================================================

    def _op_ld_vx_byte(self, state: CPUState, args: Sequence[int]) -> None:
        """6XNN LD Vx, byte."""
        x, byte = args
        state.set_register(x, byte)
        state.next_instruction()

    def _op_ld_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY0 LD Vx, Vy."""
        x, y = args
        state.set_register(x, state.registers[y])
        state.next_instruction()

    def _op_ld_i_addr(self, state: CPUState, args: Sequence[int]) -> None:
        """ANNN LD I, addr."""
        state.set_index(args[0])
        state.next_instruction()

    def _op_ld_vx_dt(self, state: CPUState, args: Sequence[int]) -> None:
        """FX07 LD Vx, DT."""
        state.set_register(args[0], state.delay_timer)
        state.next_instruction()

    def _op_ld_vx_k(self, state: CPUState, args: Sequence[int]) -> None:
        """FX0A LD Vx, K - Wait for a key press.

        Polls the port once. With no key active PC stays put, so the same
        instruction runs again on the next step.
        """
        key = self.port.get_key()
        if key is None:
            return
        state.set_register(args[0], key)
        state.next_instruction()

    def _op_ld_dt_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX15 LD DT, Vx."""
        state.delay_timer = state.registers[args[0]]
        state.next_instruction()

    def _op_ld_st_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX18 LD ST, Vx."""
        state.sound_timer = state.registers[args[0]]
        state.next_instruction()

    # =========================================================================
    # Arithmetic and Logic
    # =========================================================================

    def _op_add_vx_byte(self, state: CPUState, args: Sequence[int]) -> None:
        """7XNN ADD Vx, byte - No carry flag."""
        x, byte = args
        state.set_register(x, state.registers[x] + byte)
        state.next_instruction()

    def _op_or_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY1 OR Vx, Vy."""
        x, y = args
        state.set_register(x, state.registers[x] | state.registers[y])
        state.next_instruction()

    def _op_and_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY2 AND Vx, Vy."""
        x, y = args
        state.set_register(x, state.registers[x] & state.registers[y])
        state.next_instruction()

    def _op_xor_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY3 XOR Vx, Vy."""
        x, y = args
        state.set_register(x, state.registers[x] ^ state.registers[y])
        state.next_instruction()

    # The flag-setting primitives read both operands first, write VF, then
    # write Vx. With x == F the result therefore overwrites the flag.

    def _op_add_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY4 ADD Vx, Vy - VF = carry."""
        x, y = args
        total = state.registers[x] + state.registers[y]
        state.set_flag(total > 0xFF)
        state.set_register(x, total)
        state.next_instruction()

    def _op_sub_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY5 SUB Vx, Vy - VF = NOT borrow (Vx >= Vy)."""
        x, y = args
        vx, vy = state.registers[x], state.registers[y]
        state.set_flag(vx >= vy)
        state.set_register(x, vx - vy)
        state.next_instruction()

    def _op_subn_vx_vy(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY7 SUBN Vx, Vy - Vx = Vy - Vx, VF = NOT borrow (Vy >= Vx)."""
        x, y = args
        vx, vy = state.registers[x], state.registers[y]
        state.set_flag(vy >= vx)
        state.set_register(x, vy - vx)
        state.next_instruction()

    def _op_shr_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """8XY6 SHR Vx - VF = bit shifted out of the pre-shift Vx."""
        x = args[0]
        vx = state.registers[x]
        state.set_flag(vx & 0x01)
        state.set_register(x, vx >> 1)
        state.next_instruction()

    def _op_shl_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """8XYE SHL Vx - VF = bit shifted out of the pre-shift Vx."""
        x = args[0]
        vx = state.registers[x]
        state.set_flag((vx >> 7) & 0x01)
        state.set_register(x, vx << 1)
        state.next_instruction()

    def _op_rnd_vx_byte(self, state: CPUState, args: Sequence[int]) -> None:
        """CXNN RND Vx, byte - Vx = random byte AND byte."""
        x, byte = args
        state.set_register(x, self.rng.randint(0, 0xFF) & byte)
        state.next_instruction()

    def _op_add_i_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX1E ADD I, Vx - I wraps within 12 bits."""
        state.set_index(state.index + state.registers[args[0]])
        state.next_instruction()

    # =========================================================================
    # Sprites and Memory
    # =========================================================================

    def _op_drw(self, state: CPUState, args: Sequence[int]) -> None:
        """DXYN DRW Vx, Vy, n - XOR an n-row sprite from [I] onto the display.

        Coordinates wrap at the display edges. VF is set if any lit pixel
        was turned off.

        Raises:
            OutOfBounds: If the sprite rows extend past 0xFFF
        """
        x, y, rows = args
        if rows:
            state.check_range(state.index, rows)

        origin_x = state.registers[x]
        origin_y = state.registers[y]
        width, height = self.port.width, self.port.height

        state.set_flag(0)
        collided = False
        for row in range(rows):
            line = state.memory[state.index + row]
            for column in range(8):
                if line & (0x80 >> column):
                    px = (origin_x + column) % width
                    py = (origin_y + row) % height
                    if self.port.draw_pixel(px, py, 1):
                        collided = True
        state.set_flag(collided)
        state.next_instruction()

    def _op_ld_f_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX29 LD F, Vx - Point I at the font glyph for digit Vx.

        Raises:
            InvalidDigit: If Vx > 0xF
        """
        digit = state.registers[args[0]]
        if digit > 0xF:
            raise InvalidDigit(f"V{args[0]:X}=0x{digit:02X} is not a hex digit", pc=state.pc)
        state.set_index(FONT_START + digit * FONT_GLYPH_SIZE)
        state.next_instruction()

    def _op_ld_b_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX33 LD B, Vx - Store BCD of Vx at I, I+1, I+2.

        Raises:
            OutOfBounds: If I+2 > 0xFFF
        """
        self._check_block(state, 2)
        value = state.registers[args[0]]
        state.write_byte(state.index, value // 100)
        state.write_byte(state.index + 1, (value // 10) % 10)
        state.write_byte(state.index + 2, value % 10)
        state.next_instruction()

    def _op_ld_i_vx(self, state: CPUState, args: Sequence[int]) -> None:
        """FX55 LD [I], Vx - Store V0..Vx at I. I is left unchanged.

        Raises:
            OutOfBounds: If I+x > 0xFFF
        """
        x = args[0]
        self._check_block(state, x)
        for k in range(x + 1):
            state.memory[state.index + k] = state.registers[k]
        state.next_instruction()

    def _op_ld_vx_i(self, state: CPUState, args: Sequence[int]) -> None:
        """FX65 LD Vx, [I] - Load V0..Vx from I. I is left unchanged.

        Raises:
            OutOfBounds: If I+x > 0xFFF
        """
        x = args[0]
        self._check_block(state, x)
        for k in range(x + 1):
            state.registers[k] = state.memory[state.index + k]
        state.next_instruction()

    @staticmethod
    def _check_block(state: CPUState, last_offset: int) -> None:
        if state.index + last_offset > MAX_ADDRESS:
            raise OutOfBounds(
                f"I=0x{state.index:03X} + {last_offset} past 0x{MAX_ADDRESS:03X}",
                pc=state.pc,
            )
