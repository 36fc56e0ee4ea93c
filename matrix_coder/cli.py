#!/usr/bin/env python3
"""
Console host - load a level and a program file and run it.

    matrix-coder my-program.json --level 2 --speed 10
    matrix-coder my-program.json --step

With --step the run pauses in front of every instruction:

    s  - step (execute the shown instruction, pause at the next)
    c  - continue (run the rest without pausing)
    r  - reset (abort the run, restore the level, start stepping again)
    q  - quit

Exit status is 0 when the run reaches the goal, 1 otherwise.
"""

import argparse
import sys

from .config import DEFAULT_SPEED, VERBOSE_LOGGING
from .debugger import DebugController
from .errors import MatrixCoderError
from .instructions import describe
from .levels import LevelCatalog
from .observers import ConsoleObserver


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def print_help():
    print("""
=== Step Mode ===
  s  - step one instruction
  c  - continue without pausing
  r  - reset the level and start stepping again
  q  - quit
  w  - show the world
=================
""")


def print_world(controller: DebugController):
    world = controller.world
    registers = world.registers.snapshot()
    print(world.render_ascii())
    print("Registers: " + "  ".join(f"{name}={value}" for name, value in registers.items()))


def print_result(controller: DebugController) -> int:
    result = controller.result
    if result is None:
        print("[CLI] No result - run did not finish")
        return 1
    print_world(controller)
    print(f"[CLI] {result.summary()}")
    return 0 if result.success else 1


# ---------------------------------------------------------------------------
# Run modes
# ---------------------------------------------------------------------------

def run_straight(controller: DebugController, speed: float) -> int:
    if not controller.run(speed=speed):
        return 1
    try:
        controller.wait()
    except KeyboardInterrupt:
        print("\n[CLI] Interrupted - aborting run")
        controller.cancel()
        controller.wait()
    return print_result(controller)


def run_stepping(controller: DebugController, speed: float, read=input) -> int:
    if not controller.step(speed=speed):
        return 1
    print_help()

    while True:
        pending = controller.wait_until_paused()
        if pending is None:
            break

        print(f"[{pending.index}] > {describe(pending.node)}")
        try:
            command = read("debug> ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            command = "q"

        if command in ("", "s", "step"):
            controller.step()
        elif command in ("c", "continue"):
            controller.continue_run()
        elif command in ("r", "reset"):
            controller.reset()
            print_world(controller)
            controller.step(speed=speed)
        elif command in ("q", "quit", "exit"):
            controller.cancel()
            controller.wait()
            break
        elif command in ("w", "world"):
            print_world(controller)
        elif command == "help":
            print_help()
        else:
            print(f"Unknown command '{command}'. Type 'help'.")

    controller.wait()
    return print_result(controller)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matrix-coder", description="Run a Matrix Coder program file")
    parser.add_argument("program", help="Program file exported from the editor (.json)")
    parser.add_argument("--level", "-l", type=int, default=None,
                        help="Level id to run against (default: the level stored in the file)")
    parser.add_argument("--speed", "-s", type=float, default=DEFAULT_SPEED,
                        help=f"Execution speed, higher is faster (default: {DEFAULT_SPEED:g})")
    parser.add_argument("--step", action="store_true",
                        help="Pause before every instruction")
    parser.add_argument("--levels", default=None,
                        help="Path to a levels.json catalog")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Print every engine log line")
    return parser


def main(argv=None, read=input) -> int:
    args = build_parser().parse_args(argv)
    if args.speed <= 0:
        print(f"[CLI] ERROR --speed must be positive, got {args.speed:g}")
        return 1

    catalog = LevelCatalog.load(args.levels)
    observer = ConsoleObserver(verbose=args.verbose or VERBOSE_LOGGING)
    controller = DebugController(catalog, observers=[observer])

    try:
        program = controller.load_program_file(args.program)
    except (OSError, MatrixCoderError) as e:
        print(f"[CLI] ERROR Could not load {args.program}: {e}")
        return 1

    level_id = args.level if args.level is not None else program.level
    controller.load_level(level_id)
    print_world(controller)

    if args.step:
        return run_stepping(controller, args.speed, read=read)
    return run_straight(controller, args.speed)


if __name__ == "__main__":
    sys.exit(main())
