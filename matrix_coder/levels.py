"""
Level Catalog - loads level definitions from levels.json.

Falls back to a single hardcoded level when the file is missing or
unreadable, so the game always has something to play.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .config import LEVELS_FILE, VERBOSE_LOGGING
from .world import DIRECTION_DELTAS


@dataclass(frozen=True)
class Level:
    id: int
    name: str
    grid_size: int
    player_start: Tuple[int, int]
    player_direction: int
    goal: Tuple[int, int]
    obstacles: Tuple[Tuple[int, int], ...] = ()
    description: Optional[str] = None
    hint: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Level":
        player = data["player"]
        goal = data["goal"]
        direction = int(player.get("direction", 0))
        if direction not in DIRECTION_DELTAS:
            raise ValueError(f"Level {data['id']}: direction must be one of {sorted(DIRECTION_DELTAS)}, got {direction}")
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", f"LEVEL {data['id']}")),
            grid_size=int(data.get("gridSize", 10)),
            player_start=(int(player["x"]), int(player["y"])),
            player_direction=direction,
            goal=(int(goal["x"]), int(goal["y"])),
            obstacles=tuple((int(o["x"]), int(o["y"])) for o in data.get("obstacles", [])),
            description=data.get("description"),
            hint=data.get("hint"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "gridSize": self.grid_size,
            "player": {"x": self.player_start[0], "y": self.player_start[1],
                       "direction": self.player_direction},
            "goal": {"x": self.goal[0], "y": self.goal[1]},
            "obstacles": [{"x": x, "y": y} for x, y in self.obstacles],
        }
        if self.description:
            data["description"] = self.description
        if self.hint:
            data["hint"] = self.hint
        return data


def hardcoded_levels() -> List[Level]:
    """Fallback levels in case levels.json fails to load."""
    return [
        Level(
            id=1,
            name="AWAKENING",
            grid_size=10,
            player_start=(1, 1),
            player_direction=0,
            goal=(8, 8),
            obstacles=((3, 1), (3, 2), (3, 3), (6, 5), (6, 6), (6, 7)),
        )
    ]


class LevelCatalog:
    """Ordered collection of levels, looked up by id."""

    def __init__(self, levels: List[Level], from_fallback: bool = False):
        if not levels:
            raise ValueError("LevelCatalog needs at least one level")
        self.levels = list(levels)
        self.from_fallback = from_fallback

    @classmethod
    def load(cls, path: str = None) -> "LevelCatalog":
        """Load levels from JSON, falling back to the hardcoded set on any error."""
        path = path or LEVELS_FILE
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            levels = [Level.from_dict(entry) for entry in data["levels"]]
            if not levels:
                raise ValueError("no levels defined")
        except FileNotFoundError:
            print(f"[Levels] ERROR No level file at {path}, using built-in levels")
            return cls(hardcoded_levels(), from_fallback=True)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            print(f"[Levels] ERROR Failed to load level data: {e}")
            return cls(hardcoded_levels(), from_fallback=True)

        if VERBOSE_LOGGING:
            print(f"[Levels] Loaded {len(levels)} levels from {path}")
        return cls(levels)

    def __len__(self) -> int:
        return len(self.levels)

    def ids(self) -> List[int]:
        return [level.id for level in self.levels]

    def get(self, level_id: int) -> Level:
        """Return the level with this id, or the first level if there is none."""
        for level in self.levels:
            if level.id == level_id:
                return level
        print(f"[Levels] WARN Level {level_id} not found, using level {self.levels[0].id}")
        return self.levels[0]

    def next_level_id(self, level_id: int) -> Optional[int]:
        """Id of the level after this one, or None when it was the last."""
        if level_id < len(self.levels):
            return level_id + 1
        return None
