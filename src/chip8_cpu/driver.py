"""Chip8Host: Cycle pacing and timer driver.

The CPU executes one instruction per `step()` and never touches its timers
on its own. The host owns time: it runs a batch of steps per frame, then
decrements DT and ST once, at 60 frames per second by default.
"""

import logging
import time
from typing import Callable, Optional

from .cpu import Chip8CPU
from .faults import Chip8Fault

logger = logging.getLogger(__name__)


class Chip8Host:
    """Frame-paced host loop around a Chip8CPU.

    Attributes:
        cpu: The CPU being driven
        cycles_per_frame: Instructions executed between timer ticks
        frame_rate: Frames (timer ticks) per second
        frames: Number of completed frames
    """

    DEFAULT_CYCLES_PER_FRAME = 10
    DEFAULT_FRAME_RATE = 60

    def __init__(
        self,
        cpu: Chip8CPU,
        cycles_per_frame: int = DEFAULT_CYCLES_PER_FRAME,
        frame_rate: int = DEFAULT_FRAME_RATE,
    ):
        if cycles_per_frame < 1:
            raise ValueError("cycles_per_frame must be at least 1")
        if frame_rate < 1:
            raise ValueError("frame_rate must be at least 1")
        self.cpu = cpu
        self.cycles_per_frame = cycles_per_frame
        self.frame_rate = frame_rate
        self.frames = 0

    def tick_timers(self) -> None:
        """Decrement DT and ST by one, stopping at zero."""
        if self.cpu.delay_timer > 0:
            self.cpu.delay_timer -= 1
        if self.cpu.sound_timer > 0:
            self.cpu.sound_timer -= 1

    def run_frame(self) -> None:
        """Execute one frame's worth of instructions, then tick the timers.

        Raises:
            Chip8Fault: If an instruction faults
        """
        for _ in range(self.cycles_per_frame):
            self.cpu.step()
        self.tick_timers()
        self.frames += 1

    def run(
        self,
        frames: Optional[int] = None,
        on_frame: Optional[Callable[["Chip8Host"], None]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        realtime: bool = True,
    ) -> Optional[Chip8Fault]:
        """Run frames until a limit, a stop request, or a fault.

        Args:
            frames: Number of frames to run (None runs until stopped)
            on_frame: Called after every frame, e.g. to render
            should_stop: Polled before every frame
            realtime: Sleep to hold the frame rate

        Returns:
            The fault that stopped the CPU, or None on a clean stop
        """
        if self.cpu.is_halted():
            return self.cpu.fault

        frame_time = 1.0 / self.frame_rate
        logger.info(
            "Host starting: %d cycles/frame at %d Hz", self.cycles_per_frame, self.frame_rate
        )
        completed = 0
        deadline = time.perf_counter()

        while frames is None or completed < frames:
            if should_stop is not None and should_stop():
                break
            try:
                self.run_frame()
            except Chip8Fault as fault:
                logger.info("Emulation stopped after %d frames", self.frames)
                return fault
            completed += 1
            if on_frame is not None:
                on_frame(self)

            if realtime:
                deadline += frame_time
                delay = deadline - time.perf_counter()
                if delay > 0:
                    time.sleep(delay)
                else:
                    # Running behind, resync instead of bursting to catch up
                    deadline = time.perf_counter()

        logger.info("Host stopped after %d frames", self.frames)
        return None
