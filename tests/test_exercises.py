#!/usr/bin/env python3
"""Tests for the exercise catalog."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pose_tracker.analyzers import ANALYZERS
from pose_tracker.exercises import (
    EXERCISE_SPECS,
    ExerciseCategory,
    ExerciseKind,
    available_exercises,
    canonical_exercise_key,
    exercises_by_category,
    get_exercise_spec,
    target_range,
)


class TestCatalog:
    def test_fifteen_exercises_all_described(self):
        assert len(ExerciseKind) == 15
        assert set(EXERCISE_SPECS) == set(ExerciseKind)
        for spec in EXERCISE_SPECS.values():
            assert spec.display_name
            assert spec.description
            assert spec.target_angles

    def test_every_exercise_has_an_analyzer(self):
        assert set(ANALYZERS) == set(ExerciseKind)

    def test_categories_partition_catalog(self):
        grouped = exercises_by_category()
        assert list(grouped) == list(ExerciseCategory)
        kinds = [spec.kind for specs in grouped.values() for spec in specs]
        assert sorted(kinds) == sorted(ExerciseKind)
        assert len(kinds) == len(set(kinds))
        olympic = {spec.kind for spec in grouped[ExerciseCategory.OLYMPIC]}
        assert olympic == {ExerciseKind.DEADLIFTS, ExerciseKind.CLEAN_AND_JERK, ExerciseKind.SNATCHES}

    def test_target_ranges_are_ordered_degrees(self):
        for spec in EXERCISE_SPECS.values():
            for name, (low, high) in spec.target_angles.items():
                assert 0 <= low <= high <= 180, f"{spec.key}.{name}"

    def test_reference_angles(self):
        assert target_range("squats", "knee_down") == (70, 100)
        assert target_range(ExerciseKind.PUSHUPS, "elbow_up") == (160, 180)
        assert target_range("jumping_jacks", "leg_spread") == (40, 60)

    def test_to_dict(self):
        data = get_exercise_spec("plank").to_dict()
        assert data["key"] == "plank"
        assert data["category"] == "Basic"
        assert data["target_angles"]["elbow"] == [85, 95]


class TestLookup:
    @pytest.mark.parametrize(
        "name, kind",
        [
            ("squats", ExerciseKind.SQUATS),
            ("Push-ups", ExerciseKind.PUSHUPS),
            ("pushup", ExerciseKind.PUSHUPS),
            ("Clean & Jerk", ExerciseKind.CLEAN_AND_JERK),
            ("  Jumping Jacks ", ExerciseKind.JUMPING_JACKS),
            ("kb_swings", ExerciseKind.KETTLEBELL_SWINGS),
            ("Pull-ups", ExerciseKind.PULL_UPS),
            (ExerciseKind.SNATCHES, ExerciseKind.SNATCHES),
        ],
    )
    def test_canonical_key(self, name, kind):
        assert canonical_exercise_key(name) is kind

    def test_display_names_round_trip(self):
        for spec in EXERCISE_SPECS.values():
            assert canonical_exercise_key(spec.display_name) is spec.kind

    def test_unknown_exercise(self):
        with pytest.raises(KeyError):
            canonical_exercise_key("yoga")

    def test_available_exercises(self):
        assert available_exercises()[0] == "squats"
        assert len(available_exercises()) == 15
