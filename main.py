#!/usr/bin/env python3
"""cpuem Command Line Interface.

Run byte programs on the cpuem CPU. Programs are written as hex bytes;
``;`` starts a comment that runs to the end of the line.

Usage:
    python main.py --program programs/port_output.hex
    python main.py --inline "00 01 ff" --trace
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from cpuem import CPU, CPUError, TraceRecorder


DEFAULT_OUTPUT_PORT = 0xEF
DEFAULT_MAX_STEPS = 10000


def parse_hex_program(source: str) -> List[int]:
    """Parse whitespace/comma separated hex bytes, ignoring ``;`` comments.

    Raises:
        ValueError: If a token is not a hex byte
    """
    program = []
    for line_no, line in enumerate(source.splitlines(), start=1):
        line = line.split(";", 1)[0]
        for token in line.replace(",", " ").split():
            token = token.lower()
            if token.startswith("0x"):
                token = token[2:]
            try:
                value = int(token, 16)
            except ValueError:
                raise ValueError(f"line {line_no}: not a hex byte: {token!r}") from None
            if not 0 <= value <= 0xFF:
                raise ValueError(f"line {line_no}: byte out of range: {token!r}")
            program.append(value)
    return program


def main():
    parser = argparse.ArgumentParser(
        description="cpuem: Minimal 8-bit CPU emulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # NUM A,1 ; SET 0xef,A ; HLT  -- prints the byte written to the output port
    python main.py --inline "00 00 01  30 ef 00  ff"

    # Load a raw binary image with a full step trace
    python main.py --program image.bin --binary --trace
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to program file (hex text, or raw bytes with --binary)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline program as hex bytes"
    )
    parser.add_argument(
        "--binary",
        action="store_true",
        help="Treat --program as a raw binary image"
    )
    parser.add_argument(
        "--output-port",
        type=lambda s: int(s, 0),
        default=DEFAULT_OUTPUT_PORT,
        help="Address whose writes are printed instead of stored. Default: 0xef"
    )
    parser.add_argument(
        "--input-port",
        type=lambda s: int(s, 0),
        help="Address whose reads return --input-value"
    )
    parser.add_argument(
        "--input-value",
        type=lambda s: int(s, 0),
        default=0,
        help="Value returned for reads of --input-port. Default: 0"
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=DEFAULT_MAX_STEPS,
        help="Stop after this many steps if the program has not halted. Default: 10000"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (port output and non-zero registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    if not args.program and not args.inline:
        parser.error("Either --program or --inline is required")
    for name in ("output_port", "input_port", "input_value"):
        value = getattr(args, name)
        if value is not None and not 0 <= value <= 0xFF:
            parser.error(f"--{name.replace('_', '-')} must be a byte (0..255)")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Load program
    try:
        if args.program:
            program_path = Path(args.program)
            if not program_path.exists():
                print(f"Error: Program file not found: {args.program}")
                return 2
            if args.binary:
                program = list(program_path.read_bytes())
            else:
                program = parse_hex_program(program_path.read_text())
        else:
            program = parse_hex_program(args.inline)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    def input_map(adr):
        if args.input_port is not None and adr == args.input_port:
            return args.input_value
        return None

    def output_map(adr, value):
        if adr == args.output_port:
            print(f"from 0x{adr:02x}: 0x{value:02x}")
            return True
        return None

    cpu = CPU(input_map, output_map)
    try:
        cpu.fill_ram(program)
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    if not args.quiet:
        print(f"Loaded {len(program)} bytes")
        print("-" * 60)

    # Step manually so the host can stop a program that never halts.
    recorder = TraceRecorder()
    error = None
    try:
        while not cpu.is_halted() and cpu.get_cycle_count() < args.max_steps:
            recorder.before_step(cpu)
            cpu.step()
            recorder.after_step(cpu)
    except CPUError as e:
        error = e

    # Output
    if args.trace:
        for entry in recorder.entries:
            print(entry)
            for adr, value in entry.memory_writes:
                print(f"    memory[0x{adr:02x}] <- 0x{value:02x}")
    if error is not None:
        print(f"Fault: {error}")
    elif not cpu.is_halted():
        print(f"Stopped: no HLT within {args.max_steps} steps")

    if args.quiet:
        regs = cpu.dump_registers()
        for reg, value in regs.items():
            if value != 0:
                print(f"{reg}={value}")
    else:
        print()
        print(f"Cycles: {cpu.get_cycle_count()}")
        print(f"Halted: {cpu.is_halted()}")
        print(f"State:  {cpu}")

    return 0 if cpu.is_halted() else 1


if __name__ == "__main__":
    sys.exit(main())
