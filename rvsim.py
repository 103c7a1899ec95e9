#!/usr/bin/env python3
"""
rvsim — rvstep assembler / stepper CLI

Usage:
    python rvsim.py <input.s> [--listing] [--max-steps N] [--break N ...]
                              [--trace] [--step] [--mem ADDR[:COUNT]]
                              [-v] [-q] [--log-file PATH]

Default mode assembles the file, runs it until it halts (or the step
limit is reached) and prints the register table.

Exit codes:
    0  program halted normally (or stopped at a breakpoint)
    1  input could not be read or the program has assembly errors
    2  runtime fault (division by zero, bad memory address)
    3  step limit reached

Examples:
    python rvsim.py loop.s --listing
    python rvsim.py loop.s --max-steps 500 --trace -v
    python rvsim.py sum.s --mem 0:8
    python rvsim.py sum.s --step
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Tuple

from rvstep import Machine, StopReason, __version__

logger = logging.getLogger("rvsim")

EXIT_CODES = {
    StopReason.HALT: 0,
    StopReason.BREAK: 0,
    StopReason.STOPPED: 0,
    StopReason.INVALID: 1,
    StopReason.FAULT: 2,
    StopReason.TIMEOUT: 3,
}


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...) or decimal."""
    value = value.strip()
    if value.lower().startswith(("0x", "-0x")):
        return int(value, 16)
    return int(value)


def parse_mem_arg(value: str) -> Tuple[int, int]:
    """Parse ADDR or ADDR:COUNT for --mem."""
    addr, _, count = value.partition(":")
    try:
        return parse_int_arg(addr), parse_int_arg(count) if count else 16
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid memory range: {value!r}")


def setup_logging(verbose: int = 0, quiet: bool = False, log_file: Optional[str] = None):
    """Configure logging based on arguments"""
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:  # -vv or more
        level = logging.DEBUG

    handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers.append(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        handlers=handlers,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rvsim",
        description="Assemble and step through RISC-V subset programs",
    )
    parser.add_argument("input", help="Assembly source file")
    parser.add_argument("--listing", action="store_true",
                        help="Print the canonical listing (or errors) and exit")
    parser.add_argument("--annotated", action="store_true",
                        help="With --listing: show indices and labels")
    parser.add_argument("--max-steps", type=int, default=Machine.DEFAULT_MAX_STEPS,
                        help=f"Step limit (default: {Machine.DEFAULT_MAX_STEPS})")
    parser.add_argument("--break", dest="breakpoints", type=parse_int_arg,
                        action="append", default=[], metavar="INDEX",
                        help="Stop before the instruction at INDEX (repeatable)")
    parser.add_argument("--trace", action="store_true",
                        help="Log every executed instruction")
    parser.add_argument("--step", action="store_true",
                        help="Interactive single-stepping")
    parser.add_argument("--mem", type=parse_mem_arg, default=None, metavar="ADDR[:COUNT]",
                        help="Dump COUNT memory words from ADDR after the run")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase verbosity (-v, -vv)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", type=str,
                        help="Write a debug log to file")
    parser.add_argument("--version", action="version",
                        version=f"rvsim {__version__}")
    return parser


def print_memory(machine: Machine, start: int, count: int, out=None):
    out = out or sys.stdout
    for addr, value in machine.mem.dump(start, count):
        print(f"mem[{addr:5d}] = {value}", file=out)


def interactive(machine: Machine, max_steps: int,
                input_fn: Callable[[str], str] = input, out=None) -> Optional[StopReason]:
    """Single-step loop: Enter steps, 'r' runs, 'q' quits."""
    out = out or sys.stdout
    reason = machine.stop_reason
    while True:
        print(machine.display(), file=out)
        if machine.halted and machine.stop_reason not in (StopReason.STOPPED, StopReason.BREAK):
            return machine.stop_reason
        if 0 <= machine.pc < len(machine.program):
            print(f"next: {machine.pc}: {machine.program[machine.pc].text}", file=out)

        try:
            command = input_fn("step> ").strip().lower()
        except EOFError:
            return reason

        if command in ("q", "quit"):
            return reason
        if command in ("r", "run"):
            reason = machine.run_steps(max_steps)
        elif command in ("", "s", "step"):
            reason = machine.step()
        else:
            print("commands: <Enter>/s step, r run, q quit", file=out)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.quiet, args.log_file)

    try:
        source = Path(args.input).read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: File not found: {args.input}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {args.input}: {e}", file=sys.stderr)
        return 1

    machine = Machine(source)
    program = machine.program

    if not program.ok:
        print(program.error_report(), file=sys.stderr)
        return EXIT_CODES[StopReason.INVALID]

    if args.listing:
        print(program.get_listing() if args.annotated else program.listing())
        return 0

    logger.info("Input: %s (%d instructions)", args.input, len(program))

    for index in args.breakpoints:
        machine.add_breakpoint(index)
    machine.enable_trace(args.trace)

    if args.step:
        reason = interactive(machine, args.max_steps)
    else:
        reason = machine.run_steps(args.max_steps)
        if args.trace:
            print(machine.get_trace())
        print(machine.display())

    if reason is StopReason.FAULT:
        print(f"Fault: {machine.fault}", file=sys.stderr)
    elif reason is StopReason.TIMEOUT:
        print(f"Step limit reached ({args.max_steps})", file=sys.stderr)

    if args.mem:
        print_memory(machine, *args.mem)

    return EXIT_CODES.get(reason, 0)


if __name__ == "__main__":
    sys.exit(main())
