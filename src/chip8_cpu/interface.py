"""Display/input port for the CHIP-8 CPU.

The CPU never touches a rendering backend directly. It calls the four
operations of `Chip8Interface`, which a frontend implements:

    clear_display()            reset every pixel
    draw_pixel(x, y, bit)      XOR a bit in, report collision
    get_keys()                 16-bit mask of held keys
    get_key()                  most recently pressed active key, or None

`FrameBuffer` is the headless implementation used by tests, the CLI and the
web demo; the pygame window builds on it.
"""

import abc
from typing import List, Optional, Tuple

DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
NUM_KEYS = 16


class Chip8Interface(abc.ABC):
    """Capabilities the CPU requires from its host."""

    width = DISPLAY_WIDTH
    height = DISPLAY_HEIGHT

    @abc.abstractmethod
    def clear_display(self) -> None:
        """Reset all pixels to unset."""

    @abc.abstractmethod
    def draw_pixel(self, x: int, y: int, bit: int) -> bool:
        """XOR bit into pixel (x, y).

        Returns:
            True if the pixel was set and bit is set (a collision)
        """

    @abc.abstractmethod
    def get_keys(self) -> int:
        """Bit i is set iff key i is currently held."""

    @abc.abstractmethod
    def get_key(self) -> Optional[int]:
        """Most recently pressed key that is still active, or None."""


class FrameBuffer(Chip8Interface):
    """In-memory display and keypad.

    Attributes:
        pixels: Rows of 0/1 values, indexed pixels[y][x]
        keys: Bitmask of held keys
        last_key: Most recently pressed key still held
        draw_count: Number of draw_pixel calls since creation
        clear_count: Number of clear_display calls since creation
        dirty: Set whenever pixels change, cleared by the renderer
    """

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self.pixels: List[List[int]] = []
        self.keys = 0
        self.last_key: Optional[int] = None
        self.draw_count = 0
        self.clear_count = 0
        self.dirty = True
        self._create_frame_buffer()

    def _create_frame_buffer(self) -> None:
        self.pixels = [[0] * self.width for _ in range(self.height)]

    # Display ---------------------------------------------------------------

    def clear_display(self) -> None:
        self._create_frame_buffer()
        self.clear_count += 1
        self.dirty = True

    def draw_pixel(self, x: int, y: int, bit: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} display")
        bit = 1 if bit else 0
        previous = self.pixels[y][x]
        self.pixels[y][x] = previous ^ bit
        self.draw_count += 1
        if bit:
            self.dirty = True
        return bool(previous & bit)

    def get_pixel(self, x: int, y: int) -> int:
        return self.pixels[y][x]

    def lit_pixels(self) -> List[Tuple[int, int]]:
        """Coordinates (x, y) of every set pixel, row by row."""
        return [
            (x, y)
            for y, row in enumerate(self.pixels)
            for x, value in enumerate(row)
            if value
        ]

    def render_text(self, on: str = "#", off: str = ".") -> str:
        """Render the display as lines of text."""
        return "\n".join("".join(on if value else off for value in row) for row in self.pixels)

    # Keypad ----------------------------------------------------------------

    def press_key(self, key: int) -> None:
        self._check_key(key)
        self.keys |= 1 << key
        self.last_key = key

    def release_key(self, key: int) -> None:
        self._check_key(key)
        self.keys &= ~(1 << key)
        if self.last_key == key:
            self.last_key = self._highest_held()

    def release_all(self) -> None:
        self.keys = 0
        self.last_key = None

    def get_keys(self) -> int:
        return self.keys

    def get_key(self) -> Optional[int]:
        return self.last_key

    def _highest_held(self) -> Optional[int]:
        for key in range(NUM_KEYS - 1, -1, -1):
            if self.keys & (1 << key):
                return key
        return None

    @staticmethod
    def _check_key(key: int) -> None:
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Invalid key: {key}")
