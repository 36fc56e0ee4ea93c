#!/usr/bin/env python3
"""
Program file tests - round trip, field layout, version and format errors.
"""
import json
import os
import re
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from matrix_coder.errors import ProgramFormatError, UnsupportedFileVersion
from matrix_coder.instructions import (
    Call,
    CompareOp,
    Decrement,
    FunctionDef,
    If,
    IfElse,
    Increment,
    Move,
    Not,
    RegisterCompare,
    Repeat,
    Sensor,
    SetRegister,
    TurnLeft,
    TurnRight,
    UnknownCondition,
    UnknownInstruction,
    While,
)
from matrix_coder.serializer import (
    deserialize_condition,
    dumps_program,
    export_filename,
    export_program,
    import_program,
    load_program,
    save_program,
    serialize_instruction,
)


FUNCTIONS = (
    FunctionDef("zigzag", (
        Repeat(2, (
            IfElse(Not(Sensor.WALL_AHEAD),
                   (Move(), While(RegisterCompare("R1", CompareOp.GREATER, 0), (Decrement("R1"),))),
                   (TurnLeft(),)),
        )),
    )),
    FunctionDef("noop", ()),
)

MAIN = (
    SetRegister("R1", 3),
    Repeat(3, (
        If(Sensor.GOAL_AHEAD, (
            While(Not(RegisterCompare("R4", CompareOp.EQUALS, 2)), (
                Increment("R4"),
                IfElse(Sensor.RANDOM_BOOLEAN, (TurnRight(),), (Call("zigzag"),)),
            )),
        )),
    )),
    If(None, (Move(),)),
    While(Not(None), ()),
    Call("noop"),
)


def make_document(**overrides):
    document = {
        "version": "1.0",
        "level": 2,
        "levelName": "THE CORRIDOR",
        "functions": [],
        "mainProgram": [{"type": "move"}],
        "exportDate": "2024-05-01T12:00:00.000Z",
    }
    document.update(overrides)
    return document


def test_round_trip_preserves_deep_tree():
    text = dumps_program(MAIN, FUNCTIONS, level=2, level_name="THE CORRIDOR")
    program = import_program(text)
    assert program.main_program == MAIN
    assert program.functions == FUNCTIONS
    assert program.level == 2
    assert program.level_name == "THE CORRIDOR"
    assert program.warnings == []
    assert set(program.function_table()) == {"zigzag", "noop"}


def test_export_layout():
    document = export_program(MAIN, FUNCTIONS, level=1, level_name="AWAKENING")
    assert document["version"] == "1.0"
    assert list(document) == ["version", "level", "levelName", "functions", "mainProgram", "exportDate"]
    assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", document["exportDate"])
    assert document["functions"][0]["type"] == "function"
    assert document["functions"][0]["functionName"] == "zigzag"


def test_only_used_fields_are_written():
    assert serialize_instruction(Move()) == {"type": "move"}
    assert serialize_instruction(SetRegister("R2", -4)) == {"type": "set", "register": "R2", "value": -4}
    assert serialize_instruction(Increment("R3")) == {"type": "increment", "register": "R3"}
    assert serialize_instruction(Call("f")) == {"type": "call", "functionName": "f"}
    assert serialize_instruction(Repeat(2, (Move(),))) == {"type": "repeat", "count": 2, "body": [{"type": "move"}]}
    assert serialize_instruction(If(None, ())) == {"type": "if", "body": []}
    assert serialize_instruction(While()) == {"type": "while", "body": []}
    assert serialize_instruction(IfElse(Sensor.TRUE)) == {
        "type": "ifElse", "condition": "true", "ifBody": [], "elseBody": [],
    }


def test_condition_encodings():
    assert serialize_instruction(While(Sensor.PATH_CLEAR))["condition"] == "pathClear"
    assert serialize_instruction(While(Not(None)))["condition"] == {"type": "not"}
    assert serialize_instruction(While(RegisterCompare("R1", CompareOp.GREATER, 3)))["condition"] == {
        "type": "registerGreater", "register": "R1", "value": 3,
    }
    assert deserialize_condition("not") == Not(None)
    assert deserialize_condition({"type": "not", "condition": "wallAhead"}) == Not(Sensor.WALL_AHEAD)


def test_missing_fields_take_defaults():
    program = import_program(make_document(mainProgram=[
        {"type": "repeat"},
        {"type": "call"},
        {"type": "set"},
        {"type": "increment"},
        {"type": "while"},
    ]))
    assert program.main_program == (Repeat(3, ()), Call("func1"), SetRegister("R1", 0), Increment("R1"), While(None, ()))


def test_missing_version_is_rejected():
    document = make_document()
    del document["version"]
    with pytest.raises(UnsupportedFileVersion):
        import_program(document)


def test_other_version_is_rejected():
    with pytest.raises(UnsupportedFileVersion) as excinfo:
        import_program(json.dumps(make_document(version="2.0")))
    assert excinfo.value.version == "2.0"


def test_invalid_json_is_rejected():
    with pytest.raises(ProgramFormatError):
        import_program("{not json")
    with pytest.raises(ProgramFormatError):
        import_program("[1, 2, 3]")


def test_bad_field_types_are_rejected():
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram={"type": "move"}))
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=["move"]))
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[{"type": "repeat", "count": "lots"}]))
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[{"type": "set", "register": "R7", "value": 1}]))


def test_nested_function_is_rejected():
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[
            {"type": "repeat", "count": 2, "body": [{"type": "function", "functionName": "inner", "body": []}]},
        ]))
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[{"type": "function", "functionName": "top", "body": []}]))


def test_unknown_instruction_is_kept_as_placeholder():
    raw = {"type": "teleport", "x": 3, "y": 4}
    program = import_program(make_document(mainProgram=[raw, {"type": "move"}]))
    placeholder = program.main_program[0]
    assert isinstance(placeholder, UnknownInstruction)
    assert placeholder.type_code_raw == "teleport"
    assert program.main_program[1] == Move()
    assert len(program.warnings) == 1

    # written back unchanged
    assert export_program(program.main_program)["mainProgram"][0] == raw


def test_unknown_condition_is_kept_as_placeholder():
    program = import_program(make_document(mainProgram=[{"type": "if", "condition": "itemAhead", "body": []}]))
    assert program.main_program[0].condition == UnknownCondition("itemAhead")
    assert program.warnings
    assert export_program(program.main_program)["mainProgram"][0]["condition"] == "itemAhead"


def test_unknown_compound_condition_is_written_back_unchanged():
    raw = {"type": "if", "condition": {"type": "registerLess", "register": "R1", "value": 3}, "body": []}
    program = import_program(make_document(mainProgram=[raw]))
    condition = program.main_program[0].condition
    assert isinstance(condition, UnknownCondition)
    assert condition.tag == "registerLess"
    assert export_program(program.main_program)["mainProgram"][0] == raw


def test_non_integer_numbers_are_rejected():
    # 1e999 parses to inf
    text = json.dumps(make_document(mainProgram=[])).replace(
        '"mainProgram": []', '"mainProgram": [{"type": "repeat", "count": 1e999}]')
    with pytest.raises(ProgramFormatError):
        import_program(text)
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[{"type": "repeat", "count": 2.7}]))
    with pytest.raises(ProgramFormatError):
        import_program(make_document(mainProgram=[{"type": "set", "register": "R1", "value": True}]))

    program = import_program(make_document(mainProgram=[{"type": "repeat", "count": 2.0}]))
    assert program.main_program == (Repeat(2, ()),)


def test_empty_condition_has_no_condition_field():
    document = export_program((If(None, (Move(),)), While(None, ())))
    for entry in document["mainProgram"]:
        assert "condition" not in entry
    assert import_program(json.dumps(document)).main_program == (If(None, (Move(),)), While(None, ()))


def test_non_function_entries_in_functions_are_ignored():
    program = import_program(make_document(functions=[
        {"type": "move"},
        {"type": "function", "functionName": "f", "body": [{"type": "turnLeft"}]},
    ]))
    assert program.functions == (FunctionDef("f", (TurnLeft(),)),)
    assert len(program.warnings) == 1


def test_later_function_definition_wins():
    program = import_program(make_document(functions=[
        {"type": "function", "functionName": "f", "body": [{"type": "move"}]},
        {"type": "function", "functionName": "f", "body": [{"type": "turnLeft"}]},
    ]))
    assert program.function_table() == {"f": (TurnLeft(),)}


def test_export_filename():
    assert export_filename(3, 1714564800000) == "matrix-coder-level3-1714564800000.json"


def test_save_and_load(tmp_path):
    written = save_program(str(tmp_path), MAIN, FUNCTIONS, level=4, level_name="COUNTER")
    assert os.path.dirname(written) == str(tmp_path)
    assert os.path.basename(written).startswith("matrix-coder-level4-")

    program = load_program(written)
    assert program.main_program == MAIN
    assert program.functions == FUNCTIONS

    explicit = save_program(str(tmp_path / "mine.json"), (Move(),))
    assert load_program(explicit).main_program == (Move(),)
