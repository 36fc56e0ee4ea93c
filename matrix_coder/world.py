"""
World State - grid, robot pose, goal, obstacles and the register bank.

The execution engine is the only writer. Conditions and observers read it,
or take a snapshot() when they need a copy that will not change under them.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

import numpy as np

from .config import REGISTER_NAMES
from .errors import CollisionDetected


# Direction (degrees) -> unit step. 0 = right, 90 = down, 180 = left, 270 = up.
DIRECTION_DELTAS: Dict[int, Tuple[int, int]] = {
    0:   (1, 0),
    90:  (0, 1),
    180: (-1, 0),
    270: (0, -1),
}


class Registers:
    """The four fixed integer memory cells. Values are unbounded."""

    def __init__(self):
        self._values: Dict[str, int] = {name: 0 for name in REGISTER_NAMES}

    def __getitem__(self, name: str) -> int:
        if name not in self._values:
            raise KeyError(f"Unknown register '{name}'")
        return self._values[name]

    def __setitem__(self, name: str, value: int):
        if name not in self._values:
            raise KeyError(f"Unknown register '{name}'")
        self._values[name] = int(value)

    def reset(self):
        for name in self._values:
            self._values[name] = 0

    def snapshot(self) -> Dict[str, int]:
        return dict(self._values)


@dataclass
class Player:
    x: int
    y: int
    direction: int = 0

    def __post_init__(self):
        if self.direction not in DIRECTION_DELTAS:
            raise ValueError(f"Direction must be one of {sorted(DIRECTION_DELTAS)}, got {self.direction}")

    @property
    def dx(self) -> int:
        return DIRECTION_DELTAS[self.direction][0]

    @property
    def dy(self) -> int:
        return DIRECTION_DELTAS[self.direction][1]


class WorldState:
    """
    Mutable state of one level while a program runs against it.
    Goal and obstacles are fixed at construction; only the player pose and
    the registers change.
    """

    def __init__(
        self,
        grid_size: int,
        player: Tuple[int, int, int],
        goal: Tuple[int, int],
        obstacles: Iterable[Tuple[int, int]] = (),
    ):
        if grid_size <= 0:
            raise ValueError(f"grid_size must be positive, got {grid_size}")
        self.grid_size = int(grid_size)
        self._start = (int(player[0]), int(player[1]), int(player[2]))
        self.goal: Tuple[int, int] = (int(goal[0]), int(goal[1]))
        self.obstacles: FrozenSet[Tuple[int, int]] = frozenset((int(x), int(y)) for x, y in obstacles)

        # Occupancy grid indexed [y, x]; obstacles outside the grid are
        # already rejected by the bounds check.
        self._blocked = np.zeros((self.grid_size, self.grid_size), dtype=bool)
        for x, y in self.obstacles:
            if 0 <= x < self.grid_size and 0 <= y < self.grid_size:
                self._blocked[y, x] = True

        self.player = Player(*self._start)
        self.registers = Registers()

    @classmethod
    def from_level(cls, level) -> "WorldState":
        """Build a fresh world from a Level."""
        return cls(
            grid_size=level.grid_size,
            player=(level.player_start[0], level.player_start[1], level.player_direction),
            goal=level.goal,
            obstacles=level.obstacles,
        )

    def reset(self):
        """Restore the start pose and zero the registers."""
        self.player = Player(*self._start)
        self.registers.reset()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_valid_move(self, x: int, y: int) -> bool:
        if x < 0 or x >= self.grid_size or y < 0 or y >= self.grid_size:
            return False
        return not bool(self._blocked[y, x])

    def next_cell(self) -> Tuple[int, int]:
        return (self.player.x + self.player.dx, self.player.y + self.player.dy)

    def is_wall_ahead(self) -> bool:
        return not self.is_valid_move(*self.next_cell())

    def is_goal_ahead(self) -> bool:
        return self.next_cell() == self.goal

    def check_win_condition(self) -> bool:
        return (self.player.x, self.player.y) == self.goal

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def move_player(self) -> Tuple[int, int]:
        """Step one cell forward. Raises CollisionDetected if the cell is blocked."""
        new_x, new_y = self.next_cell()
        if not self.is_valid_move(new_x, new_y):
            raise CollisionDetected(new_x, new_y)
        self.player.x = new_x
        self.player.y = new_y
        return new_x, new_y

    def turn_player(self, delta: int) -> int:
        """Turn by +90 (right) or -90 (left). Returns the new direction."""
        if delta not in (90, -90):
            raise ValueError(f"Turn delta must be +90 or -90, got {delta}")
        self.player.direction = (self.player.direction + delta + 360) % 360
        return self.player.direction

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> Dict:
        """Plain, JSON-able copy of the current state."""
        return {
            "gridSize": self.grid_size,
            "player": {
                "x": self.player.x,
                "y": self.player.y,
                "direction": self.player.direction,
                "dx": self.player.dx,
                "dy": self.player.dy,
            },
            "goal": {"x": self.goal[0], "y": self.goal[1]},
            "obstacles": [{"x": x, "y": y} for x, y in sorted(self.obstacles)],
            "registers": self.registers.snapshot(),
        }

    def render_ascii(self, marker: Optional[Dict[int, str]] = None) -> str:
        """Text picture of the grid for the console host."""
        arrows = marker or {0: ">", 90: "v", 180: "<", 270: "^"}
        rows = []
        for y in range(self.grid_size):
            row = []
            for x in range(self.grid_size):
                if (x, y) == (self.player.x, self.player.y):
                    row.append(arrows[self.player.direction])
                elif (x, y) == self.goal:
                    row.append("G")
                elif self._blocked[y, x]:
                    row.append("#")
                else:
                    row.append(".")
            rows.append(" ".join(row))
        return "\n".join(rows)
