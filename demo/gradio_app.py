"""cpuem Interactive Demo.

A Gradio web interface for running and visualizing cpuem execution.

Usage:
    cd /path/to/cpuem
    python demo/gradio_app.py

Features:
    - Write or load hex byte programs
    - Map an output port whose writes are captured instead of stored
    - See step-by-step execution trace
    - Visualize register state changes and the final memory image
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

import gradio as gr
from cpuem import CPU, CPUError, TraceRecorder
from main import parse_hex_program


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Load and halt": """00 00 01   ; NUM A, 1
ff         ; HLT""",

    "Port output": """00 01 2a   ; NUM B, 0x2a
30 ef 01   ; SET 0xef, B   -> output port
ff         ; HLT""",

    "Wrapping add": """00 00 f0   ; NUM A, 0xf0
00 01 20   ; NUM B, 0x20
02 00 01   ; ADD A, B      -> A = 0x10
03 01 00   ; SUB B, A      -> B = 0x10
30 80 00   ; SET 0x80, A
ff         ; HLT""",

    "Jump via IP": """00 00 07   ; NUM A, 7
01 04 00   ; MOV IP, A     -> skip the next instruction
ff         ; HLT (skipped)
00 01 63   ; NUM B, 99
ff         ; HLT""",

    "Invalid opcode": """00 00 01   ; NUM A, 1
99         ; not an opcode""",

    "Custom": ""
}


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(program: str, output_port: int, max_steps: int) -> tuple:
    """Execute a hex program and return results.

    Args:
        program: Hex byte source
        output_port: Address whose writes are captured
        max_steps: Maximum execution steps

    Returns:
        Tuple of (summary_text, trace_text, registers_text)
    """
    if not program.strip():
        return "Error: No program provided", "", ""

    try:
        data = parse_hex_program(program)
    except ValueError as e:
        return f"Error: {e}", "", ""

    port_output = []

    def output_map(adr, value):
        if adr == int(output_port):
            port_output.append(int(value))
            return True
        return None

    cpu = CPU(output_mapping=output_map)
    try:
        cpu.fill_ram(data)
    except ValueError as e:
        return f"Error: {e}", "", ""

    recorder = TraceRecorder()
    fault = None
    try:
        while not cpu.is_halted() and cpu.get_cycle_count() < int(max_steps):
            recorder.before_step(cpu)
            cpu.step()
            recorder.after_step(cpu)
    except CPUError as e:
        fault = e

    # Format summary
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Program size: {len(data)} bytes",
        f"Cycles: {cpu.get_cycle_count()}",
        f"Halted: {'Yes' if cpu.is_halted() else 'No'}",
    ]
    if fault is not None:
        summary_lines.append(f"\nFault: {fault}")
    elif not cpu.is_halted():
        summary_lines.append(f"\nStopped after {int(max_steps)} steps")
    if port_output:
        summary_lines.append(f"\nPort 0x{int(output_port):02x} output:")
        summary_lines.append("  " + " ".join(f"{b:02x}" for b in port_output))
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in recorder.entries[:100]:  # Limit to 100 entries
        trace_lines.append(f"\n--- Cycle {entry.cycle} (IP=0x{entry.address:02x}) ---")
        trace_lines.append(f"Instruction: {entry.instruction} {', '.join(entry.arguments)}")
        changes = entry.changes()
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")
        for adr, value in entry.memory_writes:
            trace_lines.append(f"Memory:      [0x{adr:02x}] <- 0x{value:02x}")

    if len(recorder.entries) > 100:
        trace_lines.append(f"\n... ({len(recorder.entries) - 100} more entries)")
    trace_text = "\n".join(trace_lines)

    # Format registers
    regs = cpu.dump_registers()
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in regs.items():
        reg_lines.append(f"  {reg:>2}: 0x{value:02x} ({value:>3})")

    reg_lines.append("")
    reg_lines.append("MEMORY (non-zero cells)")
    reg_lines.append("-" * 30)
    for adr, value in enumerate(cpu.ram.dump()):
        if value:
            reg_lines.append(f"  0x{adr:02x}: 0x{value:02x}")
    registers_text = "\n".join(reg_lines)

    return summary_text, trace_text, registers_text


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="cpuem Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # cpuem: Minimal 8-bit CPU Emulator

        256 bytes of memory, six registers, six opcodes and memory-mapped I/O.

        **Cycle**: `fetch -> decode -> action(snapshot) -> commit IP -> apply mutations`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program (hex bytes)")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Port output",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Port output"],
                    label="Program",
                    lines=15,
                    placeholder="00 00 01 ff ; comments start with ;"
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    output_port = gr.Number(
                        value=0xEF,
                        precision=0,
                        minimum=0,
                        maximum=255,
                        label="Output Port Address"
                    )
                    max_steps = gr.Slider(
                        minimum=10,
                        maximum=10000,
                        value=1000,
                        step=10,
                        label="Max Steps"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final State",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Opcode | Instruction | Description |
            |--------|-------------|-------------|
            | `00` | `NUM reg, const` | Load constant into register |
            | `01` | `MOV dst, src` | Copy register |
            | `02` | `ADD dst, src` | dst := dst + src (mod 256) |
            | `03` | `SUB dst, src` | dst := dst - src (mod 256) |
            | `30` | `SET adr, reg` | memory[adr] := reg |
            | `ff` | `HLT` | Stop execution |

            **Registers**: A=`00` B=`01` C=`02` D=`03` IP=`04` SP=`06`
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, output_port, max_steps],
            outputs=[summary_output, trace_output, registers_output]
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
