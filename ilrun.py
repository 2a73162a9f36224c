#!/usr/bin/env python3
"""
ilrun — IL program runner

Usage:
    ilrun <program.il> [--scans N] [--loop-ms MS] [--set ADDR=VALUE ...]
                       [--profile demo|io_plus|bench] [--step] [--trace] [--verbose]
    ilrun --mnemonics

Runs an Instruction List program against a fresh Modbus memory image
and prints the stop reason, the accumulator and the non-zero registers.

Examples:
    ilrun pump.il --set 10001=1 --set 40001=500
    ilrun pump.il --scans 0 --loop-ms 250       # scan until Ctrl-C
    ilrun pump.il --step                        # one scan, line by line
    ilrun pump.il --div-zero error --eval-overflow error

Exit codes:
    0  program ended normally (END, DONE or HALT)
    1  program file could not be read or parsed
    2  bad command line
    3  program aborted (RET without CALL), ran away (TIMEOUT), or
       raised a runtime error under an ERROR policy
"""

import argparse
import logging
import sys
from pathlib import Path

from il_interpreter import (
    __version__, HOST_PROFILES, MNEMONICS, DivZeroPolicy, EvalOverflowPolicy,
    ILRuntimeError, Interpreter, InterpreterConfig, ModbusMemory,
    Program, ProgramError, Runner, StopReason, parse,
)
from il_interpreter.config import DEFAULT_PROFILE, DEFAULT_STACK_DEPTH
from il_interpreter.log import setup_logging
from il_interpreter.program import parse_operand


EXIT_OK = 0
EXIT_INPUT = 1
EXIT_USAGE = 2
EXIT_PROGRAM = 3

FAILED = (StopReason.ABORT, StopReason.TIMEOUT)


def parse_assignment(text: str):
    """Parse ADDR=VALUE (either side decimal, 0x or $ hex)."""
    addr, sep, value = text.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected ADDR=VALUE, got {text!r}")
    try:
        return parse_operand(addr), parse_operand(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad number in {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ilrun",
        description="Run an Instruction List (IL) control program",
        epilog="Profiles: " + ", ".join(HOST_PROFILES.keys()),
    )
    parser.add_argument("program", nargs="?", help="IL program file")
    parser.add_argument("--profile", default=DEFAULT_PROFILE,
                        choices=list(HOST_PROFILES.keys()),
                        help=f"Host profile (default: {DEFAULT_PROFILE})")
    parser.add_argument("--scans", type=int, default=1,
                        help="Number of scans to run, 0 = until interrupted (default: 1)")
    parser.add_argument("--loop-ms", type=int, default=None,
                        help="Delay between scans in ms (default: from profile)")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Per-scan instruction limit before TIMEOUT")
    parser.add_argument("--bank-size", type=int, default=None,
                        help="Registers per memory bank (default: from profile)")
    parser.add_argument("--stack-depth", type=int, default=DEFAULT_STACK_DEPTH,
                        help=f"Evaluation and call stack depth (default: {DEFAULT_STACK_DEPTH})")
    parser.add_argument("--div-zero", default=DivZeroPolicy.ZERO.value,
                        choices=[p.value for p in DivZeroPolicy],
                        help="Result of division by zero (default: zero)")
    parser.add_argument("--eval-overflow", default=EvalOverflowPolicy.IGNORE.value,
                        choices=[p.value for p in EvalOverflowPolicy],
                        help="Bracket nesting overflow handling (default: ignore)")
    parser.add_argument("--set", dest="presets", action="append", default=[],
                        type=parse_assignment, metavar="ADDR=VALUE",
                        help="Preset a register before running (repeatable)")
    parser.add_argument("--step", action="store_true",
                        help="Run one scan line by line, printing state after each")
    parser.add_argument("--trace", action="store_true",
                        help="Print the instruction trace after running")
    parser.add_argument("--listing", action="store_true",
                        help="Print the decoded program listing and exit")
    parser.add_argument("--full-dump", action="store_true",
                        help="Dump every register, not only non-zero ones")
    parser.add_argument("--mnemonics", action="store_true",
                        help="List the instruction mnemonics and exit")
    parser.add_argument("--log-dir", type=Path, default=None,
                        help="Also write a debug log file to this directory")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log every executed instruction to stderr")
    parser.add_argument("--version", action="version",
                        version=f"ilrun {__version__}")
    return parser


def print_mnemonics():
    for mnem in MNEMONICS:
        word = parse(mnem)
        print(f"{mnem:<8s} 0x{word:04X}")


def run_stepwise(runner: Runner) -> StopReason:
    runner.enable_trace()
    while True:
        reason = runner.step()
        trace = runner.get_trace()
        if trace:
            print(trace)
            runner.clear_trace()
        if reason is not None:
            return reason


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mnemonics:
        print_mnemonics()
        return EXIT_OK
    if not args.program:
        parser.error("a program file is required")

    setup_logging(
        console_level=logging.DEBUG if args.verbose else logging.WARNING,
        log_dir=args.log_dir,
    )

    try:
        program = Program.from_file(args.program)
    except FileNotFoundError:
        print(f"Error: File not found: {args.program}", file=sys.stderr)
        return EXIT_INPUT
    except OSError as e:
        print(f"Error reading {args.program}: {e}", file=sys.stderr)
        return EXIT_INPUT
    except ProgramError as e:
        print(f"Error in {args.program}: {e}", file=sys.stderr)
        return EXIT_INPUT

    if args.listing:
        print(program.listing())
        return EXIT_OK

    profile = HOST_PROFILES[args.profile]
    bank_size = args.bank_size if args.bank_size is not None else profile["bank_size"]
    loop_time = args.loop_ms / 1000.0 if args.loop_ms is not None else profile["loop_time"]

    try:
        config = InterpreterConfig(
            eval_depth=args.stack_depth,
            call_depth=args.stack_depth,
            div_zero=args.div_zero,
            eval_overflow=args.eval_overflow,
        )
        memory = ModbusMemory(bank_size)
    except ValueError as e:
        parser.error(str(e))

    if len(program) > profile["max_lines"]:
        logging.getLogger("il_interpreter").warning(
            "program has %d lines, profile %s allows %d",
            len(program), args.profile, profile["max_lines"])

    for addr, value in args.presets:
        memory.set(addr, value)

    runner = Runner(program, Interpreter(memory, config), loop_time=loop_time)
    if args.trace:
        runner.enable_trace()

    try:
        if args.step:
            reason = run_stepwise(runner)
        else:
            scans = args.scans if args.scans > 0 else None
            reason = runner.run_continuous(scans=scans, max_steps=args.max_steps)
    except KeyboardInterrupt:
        reason = StopReason.HALT
    except ILRuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_PROGRAM

    if args.trace and not args.step:
        print(runner.get_trace())

    acc = runner.interp.accumulator
    print(f"Stop:        {reason.value} (line {runner.line}, {runner.scans} scans, "
          f"{runner.steps} steps)")
    print(f"Accumulator: {acc} (0x{acc:04X})")
    print(memory.dump(nonzero_only=not args.full_dump))

    return EXIT_PROGRAM if reason in FAILED else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
