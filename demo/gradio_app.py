"""CHIP-8 CPU Interactive Demo.

A Gradio web interface for running and inspecting CHIP-8 programs.

Usage:
    cd /path/to/chip8-cpu
    python demo/gradio_app.py

Features:
    - Write hex programs or upload a ROM file
    - Run a chosen number of cycles with a fixed RND seed
    - See the 64x32 display, registers and step-by-step trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
import numpy as np
from chip8_cpu import Chip8CPU, Chip8Fault, FrameBuffer, parse_hex_program
from chip8_cpu.decode import disassemble_rom


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Count loop": """6005    ; LD V0, 0x05
7003    ; ADD V0, 0x03
1200    ; JP 0x200""",

    "Draw digits": """00E0    ; CLS
6A00    ; LD VA, 0x00   digit
6B02    ; LD VB, 0x02   x
6C02    ; LD VC, 0x02   y
FA29    ; LD F, VA
DBC5    ; DRW VB, VC, 5
7A01    ; ADD VA, 0x01
7B06    ; ADD VB, 0x06
3A0A    ; SE VA, 0x0A
1208    ; JP 0x208
1214    ; JP 0x214""",

    "BCD of 234": """60EA    ; LD V0, 0xEA (234)
A300    ; LD I, 0x300
F033    ; LD B, V0
F265    ; LD V2, [I]
F029    ; LD F, V0 (V0 is now 2)
120A    ; JP 0x20A""",

    "Subroutine": """2206    ; CALL 0x206
6101    ; LD V1, 0x01
1204    ; JP 0x204
6042    ; LD V0, 0x42
00EE    ; RET""",

    "Custom": ""
}

SCALE = 8


# =============================================================================
# Execution Functions
# =============================================================================

def render_display(port: FrameBuffer) -> np.ndarray:
    """Convert the framebuffer into a scaled RGB image."""
    pixels = np.array(port.pixels, dtype=np.uint8) * 255
    scaled = np.kron(pixels, np.ones((SCALE, SCALE), dtype=np.uint8))
    return np.stack([scaled] * 3, axis=-1)


def run_program(program: str, rom_file, cycles: int, seed: int) -> tuple:
    """Execute a CHIP-8 program and return results.

    Args:
        program: Program as hex words
        rom_file: Uploaded ROM path, takes precedence over the text
        cycles: Cycles to execute
        seed: Seed for RND

    Returns:
        Tuple of (summary_text, trace_text, registers_text, display_image)
    """
    port = FrameBuffer()
    blank = render_display(port)

    try:
        if rom_file:
            rom = Path(rom_file).read_bytes()
        elif program.strip():
            rom = parse_hex_program(program)
        else:
            return "Error: No program provided", "", "", blank

        cpu = Chip8CPU(port=port, seed=int(seed), trace_length=None)
        cpu.load_rom(rom)
    except (OSError, ValueError) as e:
        return f"Error: {e}", "", "", blank

    error_msg = None
    try:
        cpu.run(int(cycles))
    except Chip8Fault as e:
        error_msg = str(e)

    # Format summary
    summary = cpu.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"ROM size: {len(rom)} bytes",
        f"Cycles: {summary['cycles']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        f"Lit pixels: {len(port.lit_pixels())}",
    ]
    if error_msg:
        summary_lines.append(f"\nFault: {error_msg}")
    summary_lines.append("\nDISASSEMBLY")
    summary_lines.append("-" * 40)
    for address, opcode, text in disassemble_rom(rom)[:32]:
        summary_lines.append(f"{address:03X}: {opcode:04X}  {text}")
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace = list(cpu.trace)
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:100]:  # Limit to 100 entries
        opcode = f"{entry.opcode:04X}" if entry.opcode is not None else "----"
        trace_lines.append(f"\n--- Cycle {entry.cycle} (PC={entry.pc:03X}) ---")
        trace_lines.append(f"Opcode:      {opcode}")
        trace_lines.append(f"Instruction: {entry.instruction}")
        if entry.error:
            trace_lines.append(f"Error:       {entry.error}")

        pre_regs = entry.pre_state['registers']
        post_regs = entry.post_state['registers']
        changes = []
        for reg in sorted(pre_regs.keys()):
            if pre_regs[reg] != post_regs[reg]:
                changes.append(f"{reg}: {pre_regs[reg]:02X} -> {post_regs[reg]:02X}")
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")

    if len(trace) > 100:
        trace_lines.append(f"\n... ({len(trace) - 100} more entries)")
    trace_text = "\n".join(trace_lines)

    # Format registers
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in summary['registers'].items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg}: 0x{value:02X} ({value:>3}){marker}")
    reg_lines.append("")
    reg_lines.append("POINTERS")
    reg_lines.append("-" * 30)
    reg_lines.append(f"  PC: 0x{summary['pc']:03X}")
    reg_lines.append(f"  I:  0x{summary['index']:03X}")
    reg_lines.append(f"  Stack: {[f'0x{a:03X}' for a in summary['stack']]}")
    reg_lines.append(f"  DT: {summary['delay_timer']}  ST: {summary['sound_timer']}")
    registers_text = "\n".join(reg_lines)

    return summary_text, trace_text, registers_text, render_display(port)


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="CHIP-8 CPU Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # CHIP-8 CPU

        A CHIP-8 virtual machine: table-driven decode, verified instruction
        primitives and a 64x32 XOR-blit display.

        **Pipeline**: `fetch -> decode -> instruction -> registry -> execute -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Draw digits",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Draw digits"],
                    label="Hex Words (; starts a comment)",
                    lines=15,
                    placeholder="6005 7003 1200"
                )

                rom_upload = gr.File(
                    label="Or upload a ROM",
                    type="filepath"
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    cycles = gr.Slider(
                        minimum=1,
                        maximum=10000,
                        value=200,
                        step=1,
                        label="Cycles"
                    )
                    seed = gr.Number(
                        value=0,
                        precision=0,
                        label="RND Seed"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                display_output = gr.Image(
                    label="Display (64x32)",
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=12,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=12,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("Instruction Reference", open=False):
            gr.Markdown("""
            | Opcode | Instruction | Effect |
            |--------|-------------|--------|
            | `00E0` | `CLS` | Clear display |
            | `00EE` | `RET` | Return from subroutine |
            | `1NNN` | `JP addr` | Jump |
            | `2NNN` | `CALL addr` | Call subroutine (16 levels) |
            | `3XNN` / `4XNN` | `SE` / `SNE Vx, byte` | Skip if equal / not equal |
            | `5XY0` / `9XY0` | `SE` / `SNE Vx, Vy` | Skip if registers equal / not equal |
            | `6XNN` / `7XNN` | `LD` / `ADD Vx, byte` | Load / add immediate (no carry) |
            | `8XY0`-`8XY3` | `LD OR AND XOR` | Register ops |
            | `8XY4` / `8XY5` / `8XY7` | `ADD` / `SUB` / `SUBN` | VF = carry / NOT borrow |
            | `8XY6` / `8XYE` | `SHR` / `SHL Vx` | VF = bit shifted out |
            | `ANNN` / `BNNN` | `LD I` / `JP V0, addr` | Index / computed jump |
            | `CXNN` | `RND Vx, byte` | Random AND byte |
            | `DXYN` | `DRW Vx, Vy, n` | XOR sprite, VF = collision |
            | `EX9E` / `EXA1` | `SKP` / `SKNP Vx` | Skip on key |
            | `FX07` `FX0A` `FX15` `FX18` | timers / key wait | |
            | `FX1E` `FX29` `FX33` `FX55` `FX65` | `ADD I`, font, BCD, store, load | |
            """)

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, rom_upload, cycles, seed],
            outputs=[summary_output, trace_output, registers_output, display_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
