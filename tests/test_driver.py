"""Tests for the Chip8Host frame and timer driver."""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_cpu import Chip8CPU, Chip8Host, parse_hex_program
from chip8_cpu.faults import StackUnderflow


def make_host(program: str, cycles_per_frame: int = 4) -> Chip8Host:
    cpu = Chip8CPU()
    cpu.load_rom(parse_hex_program(program))
    return Chip8Host(cpu, cycles_per_frame=cycles_per_frame)


class TestTimers:
    """Timers are decremented by the host, never by the CPU."""

    def test_step_does_not_touch_timers(self):
        host = make_host("1200")
        host.cpu.delay_timer = 5
        host.cpu.sound_timer = 5
        host.cpu.run(100)
        assert host.cpu.delay_timer == 5
        assert host.cpu.sound_timer == 5

    def test_tick_decrements_to_zero(self):
        host = make_host("1200")
        host.cpu.delay_timer = 2
        host.cpu.sound_timer = 1
        host.tick_timers()
        assert (host.cpu.delay_timer, host.cpu.sound_timer) == (1, 0)
        host.tick_timers()
        host.tick_timers()
        assert (host.cpu.delay_timer, host.cpu.sound_timer) == (0, 0)

    def test_delay_loop_program(self):
        """A program spinning on DT until it reaches zero."""
        host = make_host("""
            6003    ; LD V0, 3
            F015    ; LD DT, V0
            F107    ; wait: LD V1, DT
            3100    ; SE V1, 0
            1204    ; JP wait
            6AFF    ; LD VA, 0xFF
            120C    ; JP self
        """, cycles_per_frame=3)
        host.run(frames=2, realtime=False)
        assert host.cpu.get_register(0xA) == 0
        host.run(frames=5, realtime=False)
        assert host.cpu.get_register(0xA) == 0xFF
        assert host.cpu.delay_timer == 0


class TestRunFrames:
    """Test the frame loop."""

    def test_run_frame_executes_batch(self):
        host = make_host("6005 7003 1200", cycles_per_frame=7)
        host.run_frame()
        assert host.cpu.get_cycle_count() == 7
        assert host.frames == 1

    def test_run_limited_frames(self):
        host = make_host("1200")
        assert host.run(frames=3, realtime=False) is None
        assert host.frames == 3
        assert host.cpu.get_cycle_count() == 12

    def test_on_frame_callback(self):
        host = make_host("1200")
        seen = []
        host.run(frames=2, on_frame=lambda h: seen.append(h.frames), realtime=False)
        assert seen == [1, 2]

    def test_should_stop(self):
        host = make_host("1200")
        polls = iter([False, False, True])
        host.run(should_stop=lambda: next(polls), realtime=False)
        assert host.frames == 2

    def test_fault_stops_and_is_returned(self):
        host = make_host("6001 00EE")
        fault = host.run(frames=10, realtime=False)
        assert isinstance(fault, StackUnderflow)
        assert host.cpu.is_halted()
        assert host.frames == 0

    def test_halted_cpu_returns_its_fault(self):
        host = make_host("00EE")
        with pytest.raises(StackUnderflow):
            host.cpu.step()
        assert host.run(frames=1, realtime=False) is host.cpu.fault
        assert host.frames == 0

    def test_fault_logged_once(self, caplog):
        host = make_host("6001 00EE")
        with caplog.at_level(logging.INFO):
            host.run(frames=1, realtime=False)
        warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].name == "chip8_cpu.cpu"

    def test_realtime_pacing(self, monkeypatch):
        host = make_host("1200")
        sleeps = []
        monkeypatch.setattr("chip8_cpu.driver.time.sleep", sleeps.append)
        host.run(frames=3)
        # sleep is stubbed, so each deadline is one frame further ahead
        assert 0 < len(sleeps) <= 3
        assert all(0 < delay <= 3 / 60 for delay in sleeps)

    @pytest.mark.parametrize("kwargs", [{"cycles_per_frame": 0}, {"frame_rate": 0}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            Chip8Host(Chip8CPU(), **kwargs)
