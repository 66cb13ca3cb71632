"""Pygame frontend for the CHIP-8 CPU.

Renders the 64x32 framebuffer in a scaled window and maps the left side of a
QWERTY keyboard onto the 16-key hex keypad:

    1 2 3 4        1 2 3 C
    Q W E R   ->   4 5 6 D
    A S D F        7 8 9 E
    Z X C V        A 0 B F

Usage (programmatic):
    iface = PygameInterface(scale=10)
    cpu = Chip8CPU(port=iface)
    cpu.load_rom_file("PONG")
    iface.open()
    Chip8Host(cpu).run(on_frame=lambda host: iface.render(),
                       should_stop=lambda: not iface.process_events())
    iface.close()

pygame is imported when the window opens, so headless use of this module
does not initialise SDL.
"""

import logging
from typing import Dict, Optional, Tuple

from .interface import DISPLAY_HEIGHT, DISPLAY_WIDTH, FrameBuffer

logger = logging.getLogger(__name__)

DEFAULT_SCALE = 10
PIXEL_ON: Tuple[int, int, int] = (255, 255, 255)
PIXEL_OFF: Tuple[int, int, int] = (0, 0, 0)

KEY_LAYOUT: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


class PygameInterface(FrameBuffer):
    """FrameBuffer rendered to a pygame window with keyboard input.

    Attributes:
        scale: Window pixels per CHIP-8 pixel
        title: Window caption
        quit_requested: Set by Escape or closing the window
    """

    def __init__(self, scale: int = DEFAULT_SCALE, title: str = "CHIP-8"):
        super().__init__(DISPLAY_WIDTH, DISPLAY_HEIGHT)
        self.scale = scale
        self.title = title
        self.quit_requested = False
        self._pygame = None
        self._screen = None

    def open(self) -> None:
        """Create the window."""
        import pygame

        self._pygame = pygame
        pygame.init()
        pygame.display.set_caption(self.title)
        self._screen = pygame.display.set_mode((self.width * self.scale, self.height * self.scale))
        self.dirty = True
        logger.info("Opened %dx%d window", self.width * self.scale, self.height * self.scale)

    def close(self) -> None:
        if self._pygame is not None:
            self._pygame.quit()
            self._pygame = None
            self._screen = None

    def handle_key(self, name: str, pressed: bool) -> Optional[int]:
        """Apply a physical key event to the keypad.

        Args:
            name: Key name as reported by pygame.key.name()
            pressed: True for key down, False for key up

        Returns:
            The CHIP-8 key affected, or None for unmapped keys
        """
        key = KEY_LAYOUT.get(name.lower())
        if key is None:
            return None
        if pressed:
            self.press_key(key)
        else:
            self.release_key(key)
        return key

    def process_events(self) -> bool:
        """Drain the pygame event queue.

        Returns:
            False once the user has asked to quit
        """
        pygame = self._pygame
        if pygame is None:
            return not self.quit_requested

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.quit_requested = True
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.quit_requested = True
                else:
                    self.handle_key(pygame.key.name(event.key), True)
            elif event.type == pygame.KEYUP:
                self.handle_key(pygame.key.name(event.key), False)
        return not self.quit_requested

    def render(self) -> None:
        """Redraw the window if the framebuffer changed."""
        if self._screen is None or not self.dirty:
            return
        pygame = self._pygame
        self._screen.fill(PIXEL_OFF)
        for x, y in self.lit_pixels():
            self._screen.fill(PIXEL_ON, (x * self.scale, y * self.scale, self.scale, self.scale))
        pygame.display.flip()
        self.dirty = False
