"""
Condition Evaluator - boolean evaluation over the world state.

Everything here is a pure read of WorldState except RANDOM_BOOLEAN, which
draws from the injected random source so tests can pin it down.
"""

import random
from typing import Callable, Optional

from .instructions import (
    CompareOp,
    Condition,
    Not,
    RegisterCompare,
    Sensor,
    UnknownCondition,
    describe_condition,
)
from .world import WorldState

# Called as warn(message) for non-fatal problems (empty slot, unknown tag)
WarnFn = Callable[[str], None]
# Called as log(message) for informational traces (NOT / RANDOM results)
LogFn = Callable[[str], None]


class ConditionEvaluator:
    def __init__(self, world: WorldState, rng: random.Random = None,
                 warn: WarnFn = None, log: LogFn = None):
        self.world = world
        self.rng = rng or random.Random()
        self._warn = warn or (lambda message: print(f"[Conditions] WARN {message}"))
        self._log = log or (lambda message: None)

    def evaluate(self, condition: Optional[Condition]) -> bool:
        if condition is None:
            self._warn("Empty condition slot - evaluating as false")
            return False

        if isinstance(condition, Sensor):
            return self._evaluate_sensor(condition)

        if isinstance(condition, Not):
            result = not self.evaluate(condition.condition)
            self._log(f"  NOT {describe_condition(condition.condition)}: {result}")
            return result

        if isinstance(condition, RegisterCompare):
            value = self.world.registers[condition.register]
            if condition.op is CompareOp.EQUALS:
                return value == condition.value
            return value > condition.value

        if isinstance(condition, UnknownCondition):
            self._warn(f"Unknown condition '{condition.tag}' - evaluating as false")
            return False

        raise TypeError(f"Not a condition: {condition!r}")

    def _evaluate_sensor(self, sensor: Sensor) -> bool:
        if sensor is Sensor.WALL_AHEAD:
            return self.world.is_wall_ahead()
        if sensor is Sensor.GOAL_AHEAD:
            return self.world.is_goal_ahead()
        if sensor is Sensor.PATH_CLEAR:
            return not self.world.is_wall_ahead()
        if sensor is Sensor.TRUE:
            return True
        if sensor is Sensor.FALSE:
            return False
        # RANDOM_BOOLEAN
        result = self.rng.random() < 0.5
        self._log(f"  RANDOM? returned {result}")
        return result
