"""
Matrix Coder - a visual programming puzzle engine.
Provides the instruction tree, program files, world state, the execution
engine and the step/debug controller.
"""

from .instructions import Instruction, FunctionDef, build_function_table
from .serializer import ProgramFile, import_program, export_program, load_program, save_program
from .world import WorldState
from .levels import Level, LevelCatalog
from .engine import ExecutionEngine, RunResult, Outcome, EngineState
from .debugger import DebugController
from .errors import MatrixCoderError

__all__ = [
    "Instruction",
    "FunctionDef",
    "build_function_table",
    "ProgramFile",
    "import_program",
    "export_program",
    "load_program",
    "save_program",
    "WorldState",
    "Level",
    "LevelCatalog",
    "ExecutionEngine",
    "RunResult",
    "Outcome",
    "EngineState",
    "DebugController",
    "MatrixCoderError",
]
