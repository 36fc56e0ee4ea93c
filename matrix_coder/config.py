"""
Configuration for program execution and the level catalog.
"""
import os
from dotenv import load_dotenv

# Load .env from the project root regardless of working directory
_env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", ".env")
load_dotenv(dotenv_path=_env_path, override=True)

# Program file format version written on export and required on import
PROGRAM_FILE_VERSION = "1.0"

# Four fixed memory registers, all zeroed on level load/reset
REGISTER_NAMES = ("R1", "R2", "R3", "R4")

# Safety bound for WHILE loops. Not configurable.
MAX_WHILE_ITERATIONS = 100

# Non-interactive delay per instruction is BASE_DELAY_MS / speed
BASE_DELAY_MS = float(os.getenv("BASE_DELAY_MS", "500"))
DEFAULT_SPEED = float(os.getenv("DEFAULT_SPEED", "5"))

# Nested CALL depth before the run fails with CallDepthExceeded
MAX_CALL_DEPTH = int(os.getenv("MAX_CALL_DEPTH", "64"))

# Level catalog (falls back to a single hardcoded level if unreadable)
LEVELS_FILE = os.getenv(
    "LEVELS_FILE",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "levels.json"),
)

# Verbose logging for debugging
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"
