"""
Debug/Step Controller - hosts one program run on a worker thread.

Mirrors the game's Run / Step / Continue / Reset buttons:

    controller = DebugController(catalog)
    controller.import_program(text)
    controller.step()            # starts an interactive run, paused at the first instruction
    controller.step()            # executes it, pauses at the next one
    controller.continue_run()    # runs the rest without pausing
    result = controller.wait()

The engine only advances when the worker calls advance(). In interactive
mode the worker then blocks on a resume Event until step()/continue_run();
otherwise it waits out the speed delay, cut short by cancel().
"""

import random
import threading
from typing import List, Optional

from .config import DEFAULT_SPEED, VERBOSE_LOGGING
from .engine import ExecutionEngine, RunResult, Suspension
from .errors import AlreadyRunning
from .instructions import build_function_table, has_nested_function
from .levels import Level, LevelCatalog
from .observers import ERROR, INFO, SUCCESS, WARNING, EngineObserver
from .serializer import ProgramFile, import_program, save_program
from .world import WorldState


class DebugController:
    """
    Owns the current level, world, program and function definitions, and
    drives the execution engine for them.
    """

    def __init__(
        self,
        catalog: LevelCatalog = None,
        level_id: int = 1,
        rng: random.Random = None,
        observers: List[EngineObserver] = None,
        base_delay: float = None,
        max_call_depth: int = None,
    ):
        self.catalog = catalog or LevelCatalog.load()
        self.level: Level = self.catalog.get(level_id)
        self.world = WorldState.from_level(self.level)
        self.engine = ExecutionEngine(
            self.world,
            rng=rng,
            observers=observers,
            base_delay=base_delay,
            max_call_depth=max_call_depth,
        )

        self.program: tuple = ()
        self.functions: tuple = ()

        # Thread safety
        self.lock = threading.Lock()
        self._resume = threading.Event()
        self._paused = threading.Event()
        self._awaiting_resume = False
        self._worker: Optional[threading.Thread] = None
        self._worker_error: Optional[BaseException] = None

    # -------------------------------------------------------------------------
    # Level management
    # -------------------------------------------------------------------------

    def load_level(self, level_id: int) -> Level:
        """Switch level. The program is kept."""
        if self.is_running:
            raise AlreadyRunning()
        self.level = self.catalog.get(level_id)
        self._rebuild_world()
        self.engine.log(f"Level {self.level.id}: {self.level.name} loaded", SUCCESS)
        if self.level.description:
            self.engine.log(f"Objective: {self.level.description}", INFO)
        if self.level.hint:
            self.engine.log(f"Hint: {self.level.hint}", INFO)
        return self.level

    def next_level(self) -> Optional[Level]:
        """Advance to the following level, or None if this was the last one."""
        next_id = self.catalog.next_level_id(self.level.id)
        if next_id is None:
            self.engine.log("ALL LEVELS COMPLETED! You are THE ONE.", SUCCESS)
            return None
        return self.load_level(next_id)

    def _rebuild_world(self):
        self.world = WorldState.from_level(self.level)
        self.engine.set_world(self.world)

    # -------------------------------------------------------------------------
    # Program management
    # -------------------------------------------------------------------------

    def set_program(self, main_program, functions=()):
        """Install a tree built by the editor."""
        if self.is_running:
            raise AlreadyRunning()
        main_program = tuple(main_program)
        functions = tuple(functions)
        if has_nested_function(main_program) or has_nested_function(functions):
            raise ValueError("Function definitions cannot be nested inside a body")
        self.program = main_program
        self.functions = functions

    def import_program(self, source) -> ProgramFile:
        """
        Replace program and functions from a program file (text or dict).
        On any error the current program is left as it was.
        """
        if self.is_running:
            raise AlreadyRunning()
        try:
            parsed = import_program(source)
        except Exception as e:
            self.engine.log(f"Import failed: {e}", ERROR)
            raise

        self.program = parsed.main_program
        self.functions = parsed.functions
        for warning in parsed.warnings:
            self.engine.log(warning, WARNING)
        self.engine.log(
            f"Program imported successfully from level {parsed.level}: {parsed.level_name}", SUCCESS
        )
        if parsed.export_date:
            self.engine.log(f"Originally exported on {parsed.export_date}", INFO)
        return parsed

    def load_program_file(self, path: str) -> ProgramFile:
        if self.is_running:
            raise AlreadyRunning()
        with open(path, 'r', encoding='utf-8') as f:
            return self.import_program(f.read())

    def export_program(self, path: str) -> str:
        written = save_program(path, self.program, self.functions,
                               level=self.level.id, level_name=self.level.name)
        self.engine.log("Program exported successfully", SUCCESS)
        return written

    def clear_program(self):
        if self.is_running:
            raise AlreadyRunning()
        self.program = ()
        self.engine.log("Program cleared", INFO)

    def clear_functions(self):
        if self.is_running:
            raise AlreadyRunning()
        self.functions = ()
        self.engine.log("Functions cleared", INFO)

    # -------------------------------------------------------------------------
    # Run control
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.engine.is_active

    @property
    def pending(self) -> Optional[Suspension]:
        """The suspension currently waiting for step/continue, if any."""
        with self.lock:
            return self.engine.pending if self._awaiting_resume else None

    @property
    def result(self) -> Optional[RunResult]:
        return self.engine.result

    def run(self, speed: float = None, interactive: bool = False) -> bool:
        """
        Start a run on a worker thread. Returns False if there is nothing to run.
        Raises AlreadyRunning if a run is active.
        """
        self._join_finished_worker()
        with self.lock:
            if self.is_running:
                self.engine.log("Program already running", ERROR)
                raise AlreadyRunning()
            if not self.program and not self.functions:
                self.engine.log("ERROR: No instructions to execute", ERROR)
                return False

            function_table = build_function_table(self.functions)
            for name in function_table:
                self.engine.log(f"Function '{name}' defined", INFO)

            self.engine.begin(self.program, function_table,
                              speed=DEFAULT_SPEED if speed is None else speed,
                              interactive=interactive)
            self._resume.clear()
            self._paused.clear()
            self._awaiting_resume = False
            self._worker_error = None
            self._worker = threading.Thread(target=self._drive, name="matrix-coder-run", daemon=True)
            self._worker.start()
        return True

    def step(self, speed: float = None) -> bool:
        """
        Execute exactly one pending instruction and pause again at the next.
        With no run active, starts an interactive run instead.
        Returns True if something happened.
        """
        if not self.is_running:
            return self.run(speed=speed, interactive=True)
        with self.lock:
            if not self._awaiting_resume:
                return False
            self.engine.interactive = True
            self._release()
        return True

    def continue_run(self) -> bool:
        """Resume the pending instruction and stop pausing for the rest of the run."""
        with self.lock:
            if not self._awaiting_resume:
                return False
            self.engine.interactive = False
            self._release()
        if VERBOSE_LOGGING:
            print("[Debugger] Continuing without stepping")
        return True

    def cancel(self):
        """Stop the active run. A pending suspension is released so the worker can unwind."""
        self.engine.cancel()
        with self.lock:
            if self._awaiting_resume:
                self._release()

    def reset(self, timeout: float = 5.0):
        """
        Cancel any active run, wait for it to unwind, and rebuild the world
        from the current level. The program is kept.
        """
        if self.is_running:
            self.cancel()
            self.wait(timeout)
        self.engine.interactive = False
        self._rebuild_world()
        self.engine.log("Level reset", INFO)

    def wait(self, timeout: float = None) -> Optional[RunResult]:
        """Join the worker. Returns the run result (None if still running)."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
            if worker.is_alive():
                return None
        if self._worker_error is not None:
            raise self._worker_error
        return self.engine.result

    def wait_until_paused(self, timeout: float = None) -> Optional[Suspension]:
        """Block until the run is paused at an instruction (or has finished)."""
        deadline_hit = not self._paused.wait(timeout)
        if deadline_hit:
            return None
        return self.pending

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _join_finished_worker(self):
        # A worker whose engine has completed is only unwinding its finally
        # block. Join it outside the lock, which that block takes.
        worker = self._worker
        if worker is not None and not self.engine.is_active and worker is not threading.current_thread():
            worker.join()

    def _release(self):
        # caller holds self.lock
        self._awaiting_resume = False
        self._paused.clear()
        self._resume.set()

    def _drive(self):
        try:
            while True:
                suspension = self.engine.advance()
                if suspension is None:
                    break
                if suspension.interactive:
                    with self.lock:
                        self._awaiting_resume = True
                        self._paused.set()
                    # A cancel() that landed before we armed the wait still
                    # has to release us.
                    if self.engine.cancel_requested:
                        with self.lock:
                            if self._awaiting_resume:
                                self._release()
                    self._resume.wait()
                    self._resume.clear()
                elif suspension.delay > 0:
                    self.engine.sleep(suspension.delay)
        except Exception as e:
            self._worker_error = e
            print(f"[Debugger] ERROR run crashed: {e}")
        finally:
            with self.lock:
                self._awaiting_resume = False
            # Wake anyone waiting for a pause; the run is over.
            self._paused.set()
