#!/usr/bin/env python3
"""
Level catalog tests - bundled levels, fallback, lookup and progression.
"""
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from matrix_coder.levels import Level, LevelCatalog, hardcoded_levels


def test_bundled_levels_load():
    catalog = LevelCatalog.load()
    assert not catalog.from_fallback
    assert catalog.ids() == [1, 2, 3, 4]
    first = catalog.get(1)
    assert first.name == "AWAKENING"
    assert first.player_start == (1, 1)
    assert first.goal == (8, 8)


def test_missing_file_falls_back(tmp_path):
    catalog = LevelCatalog.load(str(tmp_path / "nope.json"))
    assert catalog.from_fallback
    assert len(catalog) == 1
    level = catalog.get(1)
    assert level.name == "AWAKENING"
    assert level.grid_size == 10
    assert level.obstacles == ((3, 1), (3, 2), (3, 3), (6, 5), (6, 6), (6, 7))


def test_malformed_file_falls_back(tmp_path):
    path = tmp_path / "levels.json"
    path.write_text("{ this is not json")
    assert LevelCatalog.load(str(path)).from_fallback

    path.write_text(json.dumps({"levels": [{"id": 1}]}))
    assert LevelCatalog.load(str(path)).from_fallback

    path.write_text(json.dumps({"levels": []}))
    assert LevelCatalog.load(str(path)).from_fallback


def test_unknown_id_resolves_to_first_level():
    catalog = LevelCatalog.load()
    assert catalog.get(99).id == 1
    assert catalog.get(0).id == 1


def test_next_level_id():
    catalog = LevelCatalog.load()
    assert catalog.next_level_id(1) == 2
    assert catalog.next_level_id(3) == 4
    assert catalog.next_level_id(4) is None


def test_level_dict_round_trip():
    level = Level(id=7, name="TEST", grid_size=4, player_start=(0, 3), player_direction=270,
                  goal=(3, 0), obstacles=((1, 1),), hint="go up")
    assert Level.from_dict(level.to_dict()) == level
    assert Level.from_dict(hardcoded_levels()[0].to_dict()) == hardcoded_levels()[0]


def test_non_cardinal_direction_is_rejected(tmp_path):
    data = hardcoded_levels()[0].to_dict()
    data["player"]["direction"] = 45
    with pytest.raises(ValueError):
        Level.from_dict(data)

    path = tmp_path / "levels.json"
    path.write_text(json.dumps({"levels": [data]}))
    catalog = LevelCatalog.load(str(path))
    assert catalog.from_fallback
    assert catalog.get(1).player_direction == 0
