"""
Error types raised by the program loader and the execution engine.

Run failures (collision, loop limit, call depth) end a run with a
Failure result. The rest reject an operation before it changes anything.
"""

from typing import Optional


class MatrixCoderError(Exception):
    """Base class for all matrix_coder errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RunFailure(MatrixCoderError):
    """A fatal condition that stops the current run."""

    reason = "RunFailure"


class CollisionDetected(RunFailure):
    reason = "CollisionDetected"

    def __init__(self, x: int, y: int):
        super().__init__(f"Collision detected at ({x}, {y})")
        self.x = x
        self.y = y


class LoopLimitExceeded(RunFailure):
    reason = "LoopLimitExceeded"

    def __init__(self, limit: int):
        super().__init__(f"While loop exceeded maximum iterations ({limit})")
        self.limit = limit


class CallDepthExceeded(RunFailure):
    reason = "CallDepthExceeded"

    def __init__(self, function_name: str, limit: int):
        super().__init__(f"Call to '{function_name}' exceeded maximum call depth ({limit})")
        self.function_name = function_name
        self.limit = limit


class AlreadyRunning(MatrixCoderError):
    def __init__(self):
        super().__init__("A program is already running")


class UnsupportedFileVersion(MatrixCoderError):
    def __init__(self, version: Optional[str]):
        super().__init__(f"Unsupported file version: {version!r}")
        self.version = version


class ProgramFormatError(MatrixCoderError):
    """Raised when a program file is structurally invalid."""
    pass
