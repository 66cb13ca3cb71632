#!/usr/bin/env python3
"""CHIP-8 CPU Command Line Interface.

Run CHIP-8 ROMs headless or in a pygame window.

Usage:
    python main.py --rom roms/IBM --display
    python main.py --hex "6005 7003 1200" --max-cycles 3 --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_cpu import Chip8CPU, Chip8Fault, Chip8Host, FrameBuffer, parse_hex_program


def main():
    parser = argparse.ArgumentParser(
        description="CHIP-8 CPU: CHIP-8 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Play a ROM in a window
    python main.py --rom roms/PONG --display

    # Run a ROM headless for 500 cycles and print the screen
    python main.py --rom roms/IBM --max-cycles 500

    # Run inline hex with full trace output
    python main.py --hex "6005 7003 1200" --max-cycles 3 --trace
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to a CHIP-8 ROM file"
    )
    parser.add_argument(
        "--hex", "-x",
        type=str,
        help="Inline program as hex words (e.g. \"6005 7003 1200\")"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=Chip8CPU.DEFAULT_MAX_CYCLES,
        help=f"Cycles to run in headless mode. Default: {Chip8CPU.DEFAULT_MAX_CYCLES}"
    )
    parser.add_argument(
        "--display", "-d",
        action="store_true",
        help="Open a pygame window and run until closed"
    )
    parser.add_argument(
        "--speed", "-s",
        type=int,
        default=Chip8Host.DEFAULT_CYCLES_PER_FRAME,
        help=f"Cycles per 60 Hz frame in display mode. Default: {Chip8Host.DEFAULT_CYCLES_PER_FRAME}"
    )
    parser.add_argument(
        "--scale",
        type=int,
        default=10,
        help="Window pixels per CHIP-8 pixel. Default: 10"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the RND instruction"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    if not args.rom and not args.hex:
        parser.error("Either --rom or --hex is required")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    # Load program
    if args.rom:
        rom_path = Path(args.rom)
        if not rom_path.exists():
            print(f"Error: ROM file not found: {args.rom}")
            return 1
        rom = rom_path.read_bytes()
        if not args.quiet:
            print(f"Loading ROM: {args.rom} ({len(rom)} bytes)")
    else:
        try:
            rom = parse_hex_program(args.hex)
        except ValueError as e:
            parser.error(str(e))
        if not args.quiet:
            print("Running inline program")

    if args.display:
        from chip8_cpu.display import PygameInterface
        port = PygameInterface(scale=args.scale)
    else:
        port = FrameBuffer()

    cpu = Chip8CPU(port=port, seed=args.seed, max_cycles=args.max_cycles)
    try:
        cpu.load_rom(rom)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    fault = None
    if args.display:
        host = Chip8Host(cpu, cycles_per_frame=args.speed)
        port.open()
        try:
            fault = host.run(
                on_frame=lambda _: port.render(),
                should_stop=lambda: not port.process_events(),
            )
        finally:
            port.close()
    else:
        if not args.quiet:
            print("-" * 64)
            print("Executing...")
            print("-" * 64)
        try:
            cpu.run()
        except Chip8Fault as e:
            fault = e

    if fault is not None:
        print(f"Execution error: {fault}")

    # Output
    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"PC: {summary['pc']:03X}  I: {summary['index']:03X}")
        print(f"Registers: {cpu.format_registers()}")
        if summary['errors']:
            print(f"Errors: {summary['errors']}")
        if not args.display:
            print()
            print(port.render_text())
    else:
        # Quiet mode - just print non-zero registers
        for reg, value in cpu.dump_registers().items():
            if value != 0:
                print(f"{reg}={value:02X}")

    return 1 if fault is not None else 0


if __name__ == "__main__":
    sys.exit(main())
