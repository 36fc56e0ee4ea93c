"""
Engine observers - how a running program reports back to its host.

The engine never prints. It calls these hooks on every registered observer;
ConsoleObserver is the one that turns them into console lines.
"""

from typing import Any, Dict, List, Tuple

from .config import VERBOSE_LOGGING
from .instructions import Instruction, describe

INFO = "info"
SUCCESS = "success"
WARNING = "warning"
ERROR = "error"


class EngineObserver:
    """Base observer. Override the hooks you care about."""

    def on_instruction_enter(self, node: Instruction):
        pass

    def on_log(self, message: str, severity: str):
        pass

    def on_register_change(self, registers: Dict[str, int]):
        pass

    def on_world_change(self, snapshot: Dict[str, Any]):
        pass

    def on_run_end(self, result):
        pass


class ConsoleObserver(EngineObserver):
    """Prints engine activity. Info lines only when verbose."""

    def __init__(self, verbose: bool = None, tag: str = "Engine"):
        self.verbose = VERBOSE_LOGGING if verbose is None else verbose
        self.tag = tag

    def on_instruction_enter(self, node: Instruction):
        if self.verbose:
            print(f"[{self.tag}] > {describe(node)}")

    def on_log(self, message: str, severity: str):
        if severity == WARNING:
            print(f"[{self.tag}] WARN {message}")
        elif severity == ERROR:
            print(f"[{self.tag}] ERROR {message}")
        elif severity == SUCCESS:
            print(f"[{self.tag}] {message}")
        elif self.verbose:
            print(f"[{self.tag}] {message}")

    def on_run_end(self, result):
        print(f"[{self.tag}] Run finished: {result.summary()}")


class EventLog(EngineObserver):
    """Keeps every notification in order. Used by the console host and tests."""

    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    def on_instruction_enter(self, node: Instruction):
        self.events.append(("enter", node))

    def on_log(self, message: str, severity: str):
        self.events.append(("log", (message, severity)))

    def on_register_change(self, registers: Dict[str, int]):
        self.events.append(("registers", registers))

    def on_world_change(self, snapshot: Dict[str, Any]):
        self.events.append(("world", snapshot))

    def on_run_end(self, result):
        self.events.append(("end", result))

    def of_kind(self, kind: str) -> List[Any]:
        return [payload for k, payload in self.events if k == kind]

    def entered(self) -> List[Instruction]:
        return self.of_kind("enter")

    def messages(self, severity: str = None) -> List[str]:
        return [m for m, s in self.of_kind("log") if severity is None or s == severity]

    def clear(self):
        self.events.clear()
