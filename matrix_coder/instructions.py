"""
Instruction Tree - plain data representation of a robot program.

A program is a tuple of Instruction nodes. Control structures own their
child bodies by value, so a tree can be compared, hashed and shared between
engine instances without any reference back to the editor that built it.

Conditions are either a Sensor (a zero-argument query), a compound
Not / RegisterCompare node, an UnknownCondition placeholder, or None for an
empty condition slot.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, Optional, Tuple, Union

from .config import REGISTER_NAMES


# -----------------------------------------------------------------------------
# Conditions
# -----------------------------------------------------------------------------

class Sensor(Enum):
    """Simple conditions. The value is the tag used in program files."""
    WALL_AHEAD = "wallAhead"
    GOAL_AHEAD = "goalAhead"
    PATH_CLEAR = "pathClear"
    TRUE = "true"
    FALSE = "false"
    RANDOM_BOOLEAN = "randomBoolean"


class CompareOp(Enum):
    EQUALS = "registerEquals"
    GREATER = "registerGreater"


@dataclass(frozen=True)
class Not:
    condition: Optional["Condition"] = None


@dataclass(frozen=True)
class RegisterCompare:
    register: str
    op: CompareOp
    value: int

    def __post_init__(self):
        _check_register(self.register)


@dataclass(frozen=True)
class UnknownCondition:
    """
    Placeholder for a condition tag this version does not understand.
    Compound (object) conditions keep their raw fields for export.
    """
    tag: str
    raw: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "UnknownCondition":
        return cls(tag=str(data.get("type")), raw=tuple(data.items()))

    def to_raw(self) -> Any:
        """Serialized form: the original object, or the bare tag for simple conditions."""
        if self.raw:
            return dict(self.raw)
        return self.tag


Condition = Union[Sensor, Not, RegisterCompare, UnknownCondition]


# -----------------------------------------------------------------------------
# Instructions
# -----------------------------------------------------------------------------

class Instruction:
    """Base class for all instruction nodes."""
    type_code: ClassVar[str] = ""
    structural: ClassVar[bool] = False


def _check_register(name: str):
    if name not in REGISTER_NAMES:
        raise ValueError(f"Unknown register '{name}' (expected one of {', '.join(REGISTER_NAMES)})")


def _freeze(node, *names):
    # Accept lists from callers but store tuples
    for name in names:
        object.__setattr__(node, name, tuple(getattr(node, name)))


@dataclass(frozen=True)
class Move(Instruction):
    type_code: ClassVar[str] = "move"


@dataclass(frozen=True)
class TurnLeft(Instruction):
    type_code: ClassVar[str] = "turnLeft"


@dataclass(frozen=True)
class TurnRight(Instruction):
    type_code: ClassVar[str] = "turnRight"


@dataclass(frozen=True)
class SetRegister(Instruction):
    type_code: ClassVar[str] = "set"
    register: str = "R1"
    value: int = 0

    def __post_init__(self):
        _check_register(self.register)


@dataclass(frozen=True)
class Increment(Instruction):
    type_code: ClassVar[str] = "increment"
    register: str = "R1"

    def __post_init__(self):
        _check_register(self.register)


@dataclass(frozen=True)
class Decrement(Instruction):
    type_code: ClassVar[str] = "decrement"
    register: str = "R1"

    def __post_init__(self):
        _check_register(self.register)


@dataclass(frozen=True)
class Repeat(Instruction):
    type_code: ClassVar[str] = "repeat"
    structural: ClassVar[bool] = True
    count: int = 3
    body: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        _freeze(self, "body")


@dataclass(frozen=True)
class If(Instruction):
    type_code: ClassVar[str] = "if"
    structural: ClassVar[bool] = True
    condition: Optional[Condition] = None
    body: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        _freeze(self, "body")


@dataclass(frozen=True)
class IfElse(Instruction):
    type_code: ClassVar[str] = "ifElse"
    structural: ClassVar[bool] = True
    condition: Optional[Condition] = None
    if_body: Tuple[Instruction, ...] = ()
    else_body: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        _freeze(self, "if_body", "else_body")


@dataclass(frozen=True)
class While(Instruction):
    type_code: ClassVar[str] = "while"
    structural: ClassVar[bool] = True
    condition: Optional[Condition] = None
    body: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        _freeze(self, "body")


@dataclass(frozen=True)
class Call(Instruction):
    type_code: ClassVar[str] = "call"
    function_name: str = "func1"


@dataclass(frozen=True)
class FunctionDef(Instruction):
    """Top-level function table entry. Never nested, never executed."""
    type_code: ClassVar[str] = "function"
    structural: ClassVar[bool] = True
    function_name: str = "func1"
    body: Tuple[Instruction, ...] = ()

    def __post_init__(self):
        _freeze(self, "body")


@dataclass(frozen=True)
class UnknownInstruction(Instruction):
    """
    Inert placeholder for an instruction type this version does not know.
    Keeps the raw serialized object so it can be written back unchanged.
    """
    type_code_raw: str = ""
    raw: Tuple[Tuple[str, Any], ...] = field(default=())

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "UnknownInstruction":
        return cls(type_code_raw=str(data.get("type", "")), raw=tuple(data.items()))

    def to_raw(self) -> Dict[str, Any]:
        return dict(self.raw)


INSTRUCTION_TYPES: Dict[str, type] = {
    cls.type_code: cls
    for cls in (Move, TurnLeft, TurnRight, SetRegister, Increment, Decrement,
                Repeat, If, IfElse, While, Call, FunctionDef)
}


# -----------------------------------------------------------------------------
# Tree helpers
# -----------------------------------------------------------------------------

def child_bodies(node: Instruction) -> Tuple[Tuple[Instruction, ...], ...]:
    """Return the child sequences of a node, in execution order."""
    if isinstance(node, IfElse):
        return (node.if_body, node.else_body)
    if isinstance(node, (Repeat, If, While, FunctionDef)):
        return (node.body,)
    return ()


def walk(program) -> Iterator[Instruction]:
    """Yield every node in a program, depth-first, in source order."""
    for node in program:
        yield node
        for body in child_bodies(node):
            yield from walk(body)


def has_nested_function(program) -> bool:
    """True if a FunctionDef appears anywhere below the top level."""
    for node in program:
        for body in child_bodies(node):
            if any(isinstance(n, FunctionDef) for n in walk(body)):
                return True
    return False


def build_function_table(definitions) -> Dict[str, Tuple[Instruction, ...]]:
    """
    Build the name -> body table for a run.
    A later definition of the same name replaces an earlier one.
    """
    table: Dict[str, Tuple[Instruction, ...]] = {}
    for definition in definitions:
        if isinstance(definition, FunctionDef):
            table[definition.function_name] = definition.body
    return table


def describe(node: Instruction) -> str:
    """Short human-readable label for logs and the step prompt."""
    if isinstance(node, SetRegister):
        return f"SET {node.register} = {node.value}"
    if isinstance(node, (Increment, Decrement)):
        return f"{node.type_code.upper()} {node.register}"
    if isinstance(node, Repeat):
        return f"REPEAT {node.count}"
    if isinstance(node, (If, IfElse, While)):
        return f"{node.type_code.upper()} {describe_condition(node.condition)}"
    if isinstance(node, (Call, FunctionDef)):
        return f"{node.type_code.upper()} {node.function_name}"
    if isinstance(node, UnknownInstruction):
        return f"UNKNOWN {node.type_code_raw}"
    return node.type_code


def describe_condition(condition: Optional[Condition]) -> str:
    if condition is None:
        return "<empty>"
    if isinstance(condition, Sensor):
        return condition.value
    if isinstance(condition, Not):
        return f"NOT {describe_condition(condition.condition)}"
    if isinstance(condition, RegisterCompare):
        symbol = "=" if condition.op is CompareOp.EQUALS else ">"
        return f"{condition.register} {symbol} {condition.value}"
    return f"<unknown {condition.tag}>"
