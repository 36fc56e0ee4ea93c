"""
Program Serializer - versioned JSON round trip of the instruction tree.

File layout (version "1.0"):

    {
      "version": "1.0",
      "level": 1,
      "levelName": "AWAKENING",
      "functions": [ {"type": "function", "functionName": ..., "body": [...]}, ... ],
      "mainProgram": [ {"type": "move"}, {"type": "repeat", "count": 3, "body": [...]}, ... ],
      "exportDate": "2024-05-01T12:00:00.000Z"
    }

Every instruction carries "type" plus only the fields it uses. Simple
conditions are written as a string tag, compound ones as an object.

Import never mutates anything: it builds a fresh ProgramFile and either
returns it or raises, so a failed import leaves the caller's program as it was.
"""

import json
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import PROGRAM_FILE_VERSION, VERBOSE_LOGGING
from .errors import ProgramFormatError, UnsupportedFileVersion
from .instructions import (
    INSTRUCTION_TYPES,
    Call,
    CompareOp,
    Condition,
    Decrement,
    FunctionDef,
    If,
    IfElse,
    Increment,
    Instruction,
    Not,
    RegisterCompare,
    Repeat,
    Sensor,
    SetRegister,
    UnknownCondition,
    UnknownInstruction,
    While,
    build_function_table,
)


@dataclass
class ProgramFile:
    """A parsed program file."""
    level: int
    level_name: str
    functions: Tuple[FunctionDef, ...]
    main_program: Tuple[Instruction, ...]
    export_date: str = ""
    version: str = PROGRAM_FILE_VERSION
    warnings: List[str] = field(default_factory=list)

    def function_table(self) -> Dict[str, Tuple[Instruction, ...]]:
        return build_function_table(self.functions)


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------

def serialize_condition(condition: Optional[Condition]) -> Any:
    if condition is None:
        return None
    if isinstance(condition, Sensor):
        return condition.value
    if isinstance(condition, UnknownCondition):
        return condition.to_raw()
    if isinstance(condition, Not):
        serialized: Dict[str, Any] = {"type": "not"}
        if condition.condition is not None:
            serialized["condition"] = serialize_condition(condition.condition)
        return serialized
    if isinstance(condition, RegisterCompare):
        return {
            "type": condition.op.value,
            "register": condition.register,
            "value": condition.value,
        }
    raise TypeError(f"Cannot serialize condition {condition!r}")


def serialize_body(body) -> List[Dict[str, Any]]:
    return [serialize_instruction(node) for node in body]


def serialize_instruction(node: Instruction) -> Dict[str, Any]:
    if isinstance(node, UnknownInstruction):
        return node.to_raw()

    serialized: Dict[str, Any] = {"type": node.type_code}

    if isinstance(node, Repeat):
        serialized["count"] = node.count
    if isinstance(node, (Call, FunctionDef)):
        serialized["functionName"] = node.function_name
    if isinstance(node, (SetRegister, Increment, Decrement)):
        serialized["register"] = node.register
    if isinstance(node, SetRegister):
        serialized["value"] = node.value
    if isinstance(node, (If, IfElse, While)) and node.condition is not None:
        serialized["condition"] = serialize_condition(node.condition)
    if isinstance(node, (Repeat, If, While, FunctionDef)):
        serialized["body"] = serialize_body(node.body)
    if isinstance(node, IfElse):
        serialized["ifBody"] = serialize_body(node.if_body)
        serialized["elseBody"] = serialize_body(node.else_body)

    return serialized


def _export_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_program(
    main_program,
    functions=(),
    level: int = 1,
    level_name: str = "Unknown",
    export_date: str = None,
) -> Dict[str, Any]:
    """Build the program file dict for a main program and its function definitions."""
    return {
        "version": PROGRAM_FILE_VERSION,
        "level": level,
        "levelName": level_name,
        "functions": [serialize_instruction(f) for f in functions if isinstance(f, FunctionDef)],
        "mainProgram": serialize_body(main_program),
        "exportDate": export_date or _export_timestamp(),
    }


def dumps_program(main_program, functions=(), level: int = 1, level_name: str = "Unknown",
                  export_date: str = None) -> str:
    return json.dumps(export_program(main_program, functions, level, level_name, export_date), indent=2)


def export_filename(level: int, timestamp_ms: int = None) -> str:
    """Default file name for an exported program."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"matrix-coder-level{level}-{timestamp_ms}.json"


def save_program(path: str, main_program, functions=(), level: int = 1,
                 level_name: str = "Unknown") -> str:
    """
    Write a program file. If path is a directory, the default export
    file name is used inside it. Returns the path written.
    """
    if os.path.isdir(path):
        path = os.path.join(path, export_filename(level))
    with open(path, 'w', encoding='utf-8') as f:
        f.write(dumps_program(main_program, functions, level, level_name))
    if VERBOSE_LOGGING:
        print(f"[Serializer] Program exported to {path}")
    return path


# -----------------------------------------------------------------------------
# Deserialization
# -----------------------------------------------------------------------------

class _Reader:
    """Walks one program document, collecting warnings as it goes."""

    def __init__(self):
        self.warnings: List[str] = []

    def warn(self, message: str):
        self.warnings.append(message)
        print(f"[Serializer] WARN {message}")

    @staticmethod
    def _int(data: Dict[str, Any], key: str, default: int) -> int:
        value = data.get(key, default)
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ProgramFormatError(f"Field '{key}' must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            raise ProgramFormatError(f"Field '{key}' must be an integer, got {value!r}")

    def condition(self, data: Any) -> Optional[Condition]:
        if data is None:
            return None

        if isinstance(data, str):
            if data == "not":
                return Not(None)
            try:
                return Sensor(data)
            except ValueError:
                self.warn(f"Unknown condition '{data}' - it will evaluate to false")
                return UnknownCondition(data)

        if isinstance(data, dict):
            kind = data.get("type")
            if kind == "not":
                return Not(self.condition(data.get("condition")))
            if kind in (CompareOp.EQUALS.value, CompareOp.GREATER.value):
                try:
                    return RegisterCompare(
                        register=data.get("register", "R1"),
                        op=CompareOp(kind),
                        value=self._int(data, "value", 0),
                    )
                except ValueError as e:
                    raise ProgramFormatError(str(e))
            self.warn(f"Unknown condition '{kind}' - it will evaluate to false")
            return UnknownCondition.from_raw(data)

        raise ProgramFormatError(f"Condition must be a string or object, got {type(data).__name__}")

    def body(self, data: Any, field_name: str) -> Tuple[Instruction, ...]:
        if data is None:
            return ()
        if not isinstance(data, list):
            raise ProgramFormatError(f"'{field_name}' must be a list")
        return tuple(self.instruction(item, nested=True) for item in data)

    def instruction(self, data: Any, nested: bool = False) -> Instruction:
        if not isinstance(data, dict):
            raise ProgramFormatError(f"Instruction must be an object, got {type(data).__name__}")

        type_code = data.get("type")
        cls = INSTRUCTION_TYPES.get(type_code)
        if cls is None:
            self.warn(f"Unknown instruction type '{type_code}' - kept as an inert placeholder")
            return UnknownInstruction.from_raw(data)

        if cls is FunctionDef and nested:
            raise ProgramFormatError("Function definitions are only allowed at the top level of the functions list")

        try:
            if cls is SetRegister:
                return SetRegister(register=data.get("register", "R1"), value=self._int(data, "value", 0))
            if cls in (Increment, Decrement):
                return cls(register=data.get("register", "R1"))
        except ValueError as e:
            raise ProgramFormatError(str(e))

        if cls is Repeat:
            return Repeat(count=self._int(data, "count", 3), body=self.body(data.get("body"), "body"))
        if cls in (If, While):
            return cls(condition=self.condition(data.get("condition")),
                       body=self.body(data.get("body"), "body"))
        if cls is IfElse:
            return IfElse(
                condition=self.condition(data.get("condition")),
                if_body=self.body(data.get("ifBody"), "ifBody"),
                else_body=self.body(data.get("elseBody"), "elseBody"),
            )
        if cls is Call:
            return Call(function_name=str(data.get("functionName") or "func1"))
        if cls is FunctionDef:
            return FunctionDef(function_name=str(data.get("functionName") or "func1"),
                               body=self.body(data.get("body"), "body"))
        return cls()


def deserialize_condition(data: Any) -> Optional[Condition]:
    return _Reader().condition(data)


def deserialize_instruction(data: Any) -> Instruction:
    return _Reader().instruction(data)


def import_program(source: Union[str, bytes, Dict[str, Any]]) -> ProgramFile:
    """
    Parse a program file from JSON text or an already-decoded dict.

    Raises UnsupportedFileVersion if the version tag is missing or not "1.0",
    ProgramFormatError if the document is structurally invalid.
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise ProgramFormatError(f"Invalid JSON: {e}")
    else:
        data = source

    if not isinstance(data, dict):
        raise ProgramFormatError("Program file must be a JSON object")

    version = data.get("version")
    if not version or version != PROGRAM_FILE_VERSION:
        raise UnsupportedFileVersion(version)

    reader = _Reader()

    functions = []
    raw_functions = data.get("functions") or []
    if not isinstance(raw_functions, list):
        raise ProgramFormatError("'functions' must be a list")
    for item in raw_functions:
        node = reader.instruction(item)
        if isinstance(node, FunctionDef):
            functions.append(node)
        else:
            reader.warn(f"Ignoring non-function entry in functions: {getattr(node, 'type_code', '?')}")

    raw_main = data.get("mainProgram") or []
    if not isinstance(raw_main, list):
        raise ProgramFormatError("'mainProgram' must be a list")
    main_program = tuple(reader.instruction(item, nested=True) for item in raw_main)

    level = data.get("level", 0)
    program = ProgramFile(
        level=level if isinstance(level, int) else 0,
        level_name=str(data.get("levelName") or "Unknown"),
        functions=tuple(functions),
        main_program=main_program,
        export_date=str(data.get("exportDate") or ""),
        version=version,
        warnings=reader.warnings,
    )

    if VERBOSE_LOGGING:
        print(f"[Serializer] Imported program from level {program.level}: {program.level_name} "
              f"({len(program.main_program)} instructions, {len(program.functions)} functions)")
    return program


def load_program(path: str) -> ProgramFile:
    """Read and parse a program file from disk."""
    with open(path, 'r', encoding='utf-8') as f:
        return import_program(f.read())
