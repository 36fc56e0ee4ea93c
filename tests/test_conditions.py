#!/usr/bin/env python3
"""
Condition evaluator tests - sensors, NOT, register comparisons, placeholders.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from matrix_coder.conditions import ConditionEvaluator
from matrix_coder.instructions import CompareOp, Not, RegisterCompare, Sensor, UnknownCondition
from matrix_coder.world import WorldState


class StubRandom:
    """Returns the queued values from random(), in order."""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def make_evaluator(world=None, rng=None):
    warnings = []
    world = world or WorldState(grid_size=5, player=(0, 0, 0), goal=(1, 0), obstacles=[(0, 1)])
    evaluator = ConditionEvaluator(world, rng=rng, warn=warnings.append)
    return evaluator, warnings


def test_goal_ahead():
    evaluator, _ = make_evaluator()
    assert evaluator.evaluate(Sensor.GOAL_AHEAD)
    evaluator.world.turn_player(90)
    assert not evaluator.evaluate(Sensor.GOAL_AHEAD)


def test_wall_ahead_and_path_clear_are_opposites():
    evaluator, _ = make_evaluator()
    assert not evaluator.evaluate(Sensor.WALL_AHEAD)
    assert evaluator.evaluate(Sensor.PATH_CLEAR)

    # facing the obstacle at (0, 1)
    evaluator.world.turn_player(90)
    assert evaluator.evaluate(Sensor.WALL_AHEAD)
    assert not evaluator.evaluate(Sensor.PATH_CLEAR)

    # facing the grid edge
    evaluator.world.turn_player(90)
    assert evaluator.evaluate(Sensor.WALL_AHEAD)


def test_constants():
    evaluator, _ = make_evaluator()
    assert evaluator.evaluate(Sensor.TRUE) is True
    assert evaluator.evaluate(Sensor.FALSE) is False


def test_random_boolean_uses_injected_source():
    evaluator, _ = make_evaluator(rng=StubRandom(0.1, 0.9, 0.49999, 0.5))
    results = [evaluator.evaluate(Sensor.RANDOM_BOOLEAN) for _ in range(4)]
    assert results == [True, False, True, False]


def test_not_negates():
    evaluator, _ = make_evaluator()
    assert evaluator.evaluate(Not(Sensor.FALSE))
    assert not evaluator.evaluate(Not(Not(Sensor.FALSE)))


def test_register_comparisons():
    evaluator, _ = make_evaluator()
    evaluator.world.registers["R2"] = 5
    assert evaluator.evaluate(RegisterCompare("R2", CompareOp.EQUALS, 5))
    assert not evaluator.evaluate(RegisterCompare("R2", CompareOp.EQUALS, 4))
    assert evaluator.evaluate(RegisterCompare("R2", CompareOp.GREATER, 4))
    assert not evaluator.evaluate(RegisterCompare("R2", CompareOp.GREATER, 5))
    assert evaluator.evaluate(RegisterCompare("R1", CompareOp.GREATER, -1))


def test_register_compare_rejects_unknown_register():
    with pytest.raises(ValueError):
        RegisterCompare("R9", CompareOp.EQUALS, 0)


def test_missing_condition_is_false_with_warning():
    evaluator, warnings = make_evaluator()
    assert evaluator.evaluate(None) is False
    assert len(warnings) == 1


def test_not_of_missing_condition_is_true():
    evaluator, warnings = make_evaluator()
    assert evaluator.evaluate(Not(None)) is True
    assert len(warnings) == 1


def test_unknown_condition_is_false_with_warning():
    evaluator, warnings = make_evaluator()
    assert evaluator.evaluate(UnknownCondition("itemAhead")) is False
    assert "itemAhead" in warnings[0]
