"""
Execution Engine - walks an instruction tree against a WorldState.

The walk is a generator. Every instruction first hits a suspension point,
where the engine hands control back to whoever is driving it:

    engine.begin(program, functions, speed=5, interactive=True)
    while (suspension := engine.advance()) is not None:
        ...  # wait for a step, or sleep suspension.delay
    result = engine.result

advance() is the single resume entry point: each call consumes exactly one
suspension. Nothing runs between calls, so a host can single-step, pace or
cancel a run without the engine ever blocking on its own.

States: IDLE -> RUNNING -> (PAUSED <-> RUNNING) -> COMPLETED.
"""

import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .conditions import ConditionEvaluator
from .config import BASE_DELAY_MS, DEFAULT_SPEED, MAX_CALL_DEPTH, MAX_WHILE_ITERATIONS
from .errors import AlreadyRunning, CallDepthExceeded, CollisionDetected, LoopLimitExceeded, RunFailure
from .instructions import (
    Call,
    Decrement,
    FunctionDef,
    If,
    IfElse,
    Increment,
    Instruction,
    Move,
    Repeat,
    Sensor,
    SetRegister,
    TurnLeft,
    TurnRight,
    UnknownInstruction,
    While,
    describe,
    describe_condition,
)
from .observers import ERROR, INFO, SUCCESS, WARNING, EngineObserver
from .world import WorldState


class EngineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"


GOAL_NOT_REACHED = "GoalNotReached"


@dataclass
class RunResult:
    """How a run ended."""
    outcome: Outcome
    reason: Optional[str] = None
    error: Optional[Exception] = None
    world: Dict[str, Any] = field(default_factory=dict)
    instructions_executed: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def summary(self) -> str:
        if self.outcome is Outcome.SUCCESS:
            return f"SUCCESS ({self.instructions_executed} instructions)"
        if self.outcome is Outcome.ABORTED:
            return f"ABORTED after {self.instructions_executed} instructions"
        detail = f": {self.error}" if self.error else ""
        return f"FAILURE {self.reason}{detail}"


@dataclass(frozen=True)
class Suspension:
    """A pause point in front of one instruction."""
    node: Instruction
    interactive: bool
    delay: float
    index: int


class RunCancelled(Exception):
    """Unwinds the generator when cancel() was requested."""
    pass


FunctionTable = Dict[str, Tuple[Instruction, ...]]


class ExecutionEngine:
    """
    Runs one program at a time against a WorldState.
    Several engines with separate worlds can run side by side.
    """

    def __init__(
        self,
        world: WorldState,
        rng: random.Random = None,
        observers: List[EngineObserver] = None,
        base_delay: float = None,
        max_call_depth: int = None,
    ):
        self.world = world
        self.observers: List[EngineObserver] = list(observers or [])
        self.base_delay = BASE_DELAY_MS / 1000.0 if base_delay is None else base_delay
        self.max_call_depth = MAX_CALL_DEPTH if max_call_depth is None else max_call_depth
        self.conditions = ConditionEvaluator(
            world,
            rng=rng,
            warn=lambda message: self.log(message, WARNING),
            log=lambda message: self.log(message, INFO),
        )

        self.state = EngineState.IDLE
        self.result: Optional[RunResult] = None
        self.pending: Optional[Suspension] = None
        self.interactive = False
        self.speed = DEFAULT_SPEED

        self._cancel = threading.Event()
        self._runner: Optional[Iterator[Suspension]] = None
        self._functions: FunctionTable = {}
        self._call_depth = 0
        self._executed = 0

        self._actions: Dict[type, Callable[[Instruction], None]] = {
            Move: self._exec_move,
            TurnLeft: self._exec_turn_left,
            TurnRight: self._exec_turn_right,
            SetRegister: self._exec_set,
            Increment: self._exec_increment,
            Decrement: self._exec_decrement,
            FunctionDef: self._exec_function_def,
            UnknownInstruction: self._exec_unknown,
        }
        self._structures: Dict[type, Callable[[Instruction], Iterator[Suspension]]] = {
            Repeat: self._exec_repeat,
            If: self._exec_if,
            IfElse: self._exec_if_else,
            While: self._exec_while,
            Call: self._exec_call,
        }

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_observer(self, observer: EngineObserver):
        self.observers.append(observer)

    def _emit(self, hook: str, *args):
        for observer in self.observers:
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                print(f"[Engine] WARN observer {type(observer).__name__}.{hook} failed: {e}")

    def log(self, message: str, severity: str = INFO):
        self._emit("on_log", message, severity)

    # -------------------------------------------------------------------------
    # Host interface
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.state in (EngineState.RUNNING, EngineState.PAUSED)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def begin(self, program, function_table: FunctionTable = None,
              speed: float = None, interactive: bool = False):
        """Arm a new run. Nothing executes until the first advance()."""
        if self.is_active:
            self.log("Program already running", ERROR)
            raise AlreadyRunning()
        speed = DEFAULT_SPEED if speed is None else speed
        if speed <= 0:
            raise ValueError(f"speed must be positive, got {speed}")

        self.speed = speed
        self.interactive = interactive
        self.result = None
        self.pending = None
        self._cancel.clear()
        self._functions = dict(function_table or {})
        self._call_depth = 0
        self._executed = 0

        self.state = EngineState.RUNNING
        self._runner = self._execute_program(tuple(program))
        self.log("EXECUTING PROGRAM...", SUCCESS)

    def advance(self) -> Optional[Suspension]:
        """
        Resume from the pending suspension and run up to the next one.
        Returns that suspension, or None once the run has completed.
        """
        if self._runner is None:
            return None
        self.pending = None
        self.state = EngineState.RUNNING
        try:
            suspension = next(self._runner)
        except StopIteration:
            self._runner = None
            return None
        except Exception:
            self._runner = None
            raise
        self.pending = suspension
        if suspension.interactive:
            self.state = EngineState.PAUSED
        return suspension

    def cancel(self):
        """Ask the run to stop at the next instruction boundary."""
        self._cancel.set()

    def sleep(self, delay: float) -> bool:
        """Wait out a non-interactive delay. Returns early (True) on cancel."""
        return self._cancel.wait(delay)

    def set_world(self, world: WorldState):
        """Point the engine at a new world (level load / reset)."""
        if self.is_active:
            raise AlreadyRunning()
        self.world = world
        self.conditions.world = world

    def run(self, program, function_table: FunctionTable = None, speed: float = None,
            interactive: bool = False,
            on_suspend: Callable[[Suspension], None] = None) -> RunResult:
        """
        Drive a whole run on the calling thread.

        Non-interactive suspensions wait for their delay (cut short by
        cancel()). Interactive ones call on_suspend, which returns when the
        host is ready for the next instruction.
        """
        if interactive and on_suspend is None:
            raise ValueError("interactive runs need an on_suspend callback")
        self.begin(program, function_table, speed, interactive)
        while True:
            suspension = self.advance()
            if suspension is None:
                break
            if suspension.interactive:
                on_suspend(suspension)
            elif suspension.delay > 0:
                self.sleep(suspension.delay)
        return self.result

    # -------------------------------------------------------------------------
    # Tree walk
    # -------------------------------------------------------------------------

    def _check_cancelled(self):
        if self._cancel.is_set():
            raise RunCancelled()

    def _finish(self, outcome: Outcome, reason: str = None, error: Exception = None):
        self.result = RunResult(
            outcome=outcome,
            reason=reason,
            error=error,
            world=self.world.snapshot(),
            instructions_executed=self._executed,
        )
        self.pending = None
        self.state = EngineState.COMPLETED
        self._emit("on_run_end", self.result)

    def _execute_program(self, program) -> Iterator[Suspension]:
        try:
            yield from self._execute_block(program)
        except RunCancelled:
            self.log("Execution aborted", WARNING)
            self._finish(Outcome.ABORTED)
            return
        except RunFailure as e:
            self.log(f"ERROR: {e.message}", ERROR)
            self._finish(Outcome.FAILURE, e.reason, e)
            return
        except Exception as e:
            self.log(f"Internal error: {e}", ERROR)
            self._finish(Outcome.FAILURE, type(e).__name__, e)
            raise

        if self.world.check_win_condition():
            self.log("SUCCESS! Level completed!", SUCCESS)
            self._finish(Outcome.SUCCESS)
        else:
            self.log("Program ended. Goal not reached.", ERROR)
            self._finish(Outcome.FAILURE, GOAL_NOT_REACHED)

    def _execute_block(self, body) -> Iterator[Suspension]:
        for node in body:
            yield from self._execute(node)

    def _execute(self, node: Instruction) -> Iterator[Suspension]:
        self._check_cancelled()
        self._executed += 1
        self._emit("on_instruction_enter", node)

        interactive = self.interactive
        if interactive:
            self.log(f"[DEBUG] Paused at: {describe(node)}", INFO)
        yield Suspension(
            node=node,
            interactive=interactive,
            delay=0.0 if interactive else self.base_delay / self.speed,
            index=self._executed,
        )
        self._check_cancelled()

        structure = self._structures.get(type(node))
        if structure is not None:
            yield from structure(node)
            return

        action = self._actions.get(type(node))
        if action is None:
            self._exec_unknown(node)
            return
        action(node)

    # -------------------------------------------------------------------------
    # Simple instructions
    # -------------------------------------------------------------------------

    def _exec_move(self, node: Move):
        try:
            x, y = self.world.move_player()
        except CollisionDetected as e:
            self.log(f"  Cannot move - obstacle at ({e.x}, {e.y})", ERROR)
            raise
        self.log(f"  Moved to ({x}, {y})")
        self._emit("on_world_change", self.world.snapshot())

    def _exec_turn_left(self, node: TurnLeft):
        self.world.turn_player(-90)
        self.log("  Turned left")
        self._emit("on_world_change", self.world.snapshot())

    def _exec_turn_right(self, node: TurnRight):
        self.world.turn_player(90)
        self.log("  Turned right")
        self._emit("on_world_change", self.world.snapshot())

    def _exec_set(self, node: SetRegister):
        self.world.registers[node.register] = node.value
        self.log(f"  {node.register} = {node.value}")
        self._emit("on_register_change", self.world.registers.snapshot())

    def _exec_increment(self, node: Increment):
        registers = self.world.registers
        registers[node.register] = registers[node.register] + 1
        self.log(f"  {node.register}++ (now {registers[node.register]})")
        self._emit("on_register_change", registers.snapshot())

    def _exec_decrement(self, node: Decrement):
        registers = self.world.registers
        registers[node.register] = registers[node.register] - 1
        self.log(f"  {node.register}-- (now {registers[node.register]})")
        self._emit("on_register_change", registers.snapshot())

    def _exec_function_def(self, node: FunctionDef):
        self.log(f"Function definition '{node.function_name}' inside a program is ignored", WARNING)

    def _exec_unknown(self, node: Instruction):
        self.log(f"Unknown instruction: {describe(node)}", WARNING)

    # -------------------------------------------------------------------------
    # Control structures
    # -------------------------------------------------------------------------

    def _exec_repeat(self, node: Repeat) -> Iterator[Suspension]:
        count = max(node.count, 0)
        self.log(f"Repeating {count} times")
        for i in range(count):
            self._check_cancelled()
            self.log(f"  Iteration {i + 1}/{count}")
            yield from self._execute_block(node.body)

    def _exec_if(self, node: If) -> Iterator[Suspension]:
        condition_met = self.conditions.evaluate(node.condition)
        self.log(f"IF {describe_condition(node.condition)}: {condition_met}")
        if condition_met:
            yield from self._execute_block(node.body)

    def _exec_if_else(self, node: IfElse) -> Iterator[Suspension]:
        condition_met = self.conditions.evaluate(node.condition)
        self.log(f"IF-ELSE {describe_condition(node.condition)}: {condition_met}")
        if condition_met:
            self.log("  Executing THEN branch")
            yield from self._execute_block(node.if_body)
        else:
            self.log("  Executing ELSE branch")
            yield from self._execute_block(node.else_body)

    def _exec_while(self, node: While) -> Iterator[Suspension]:
        if node.condition is Sensor.TRUE:
            self.log("WHILE TRUE detected - will run until max iterations or program stops")

        iterations = 0
        while True:
            self._check_cancelled()
            if not self.conditions.evaluate(node.condition):
                break
            if iterations >= MAX_WHILE_ITERATIONS:
                break
            self.log(f"WHILE {describe_condition(node.condition)}: iteration {iterations + 1}")
            yield from self._execute_block(node.body)
            iterations += 1

        if iterations >= MAX_WHILE_ITERATIONS:
            raise LoopLimitExceeded(MAX_WHILE_ITERATIONS)

    def _exec_call(self, node: Call) -> Iterator[Suspension]:
        name = node.function_name
        body = self._functions.get(name)
        if body is None:
            self.log(f"Function '{name}' not defined", WARNING)
            return
        if self._call_depth >= self.max_call_depth:
            raise CallDepthExceeded(name, self.max_call_depth)

        self.log(f"Calling function '{name}'")
        self._call_depth += 1
        try:
            yield from self._execute_block(body)
        finally:
            self._call_depth -= 1
        self.log(f"Function '{name}' completed")
