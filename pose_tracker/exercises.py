"""Exercise catalog: identifiers, menu text and target-angle reference data.

The target-angle table is display metadata for menus and overlays; the
analyzers use their own fixed thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Union


class ExerciseCategory(str, Enum):
    BASIC = "Basic"
    CROSSFIT = "CrossFit"
    OLYMPIC = "Olympic Lifts"


class ExerciseKind(str, Enum):
    SQUATS = "squats"
    PUSHUPS = "pushups"
    PLANK = "plank"
    LUNGES = "lunges"
    JUMPING_JACKS = "jumping_jacks"
    BURPEES = "burpees"
    DEADLIFTS = "deadlifts"
    KETTLEBELL_SWINGS = "kettlebell_swings"
    BOX_JUMPS = "box_jumps"
    WALL_BALLS = "wall_balls"
    THRUSTERS = "thrusters"
    CLEAN_AND_JERK = "clean_and_jerk"
    SNATCHES = "snatches"
    DOUBLE_UNDERS = "double_unders"
    PULL_UPS = "pull_ups"


AngleRange = tuple[float, float]


@dataclass(frozen=True)
class ExerciseSpec:
    kind: ExerciseKind
    display_name: str
    description: str
    category: ExerciseCategory
    target_angles: Mapping[str, AngleRange] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category.value,
            "target_angles": {k: list(v) for k, v in self.target_angles.items()},
        }


def _spec(kind, display_name, description, category, **target_angles) -> ExerciseSpec:
    return ExerciseSpec(kind, display_name, description, category, dict(target_angles))


EXERCISE_SPECS: dict[ExerciseKind, ExerciseSpec] = {
    spec.kind: spec
    for spec in (
        _spec(
            ExerciseKind.SQUATS,
            "Squats",
            "Lower your hips from a standing position and then stand back up",
            ExerciseCategory.BASIC,
            knee_down=(70, 100),
            knee_up=(160, 180),
            hip_down=(60, 90),
            hip_up=(160, 180),
        ),
        _spec(
            ExerciseKind.PUSHUPS,
            "Push-ups",
            "Lower your body to the ground and push back up using your arms",
            ExerciseCategory.BASIC,
            elbow_down=(60, 90),
            elbow_up=(160, 180),
            shoulder_alignment=(70, 110),
        ),
        _spec(
            ExerciseKind.PLANK,
            "Plank",
            "Hold your body in a straight line, supporting yourself on forearms and toes",
            ExerciseCategory.BASIC,
            body_alignment=(160, 180),
            elbow=(85, 95),
        ),
        _spec(
            ExerciseKind.LUNGES,
            "Lunges",
            "Step forward and lower your hips until both knees are bent at 90 degrees",
            ExerciseCategory.BASIC,
            front_knee=(85, 95),
            back_knee=(85, 95),
            hip=(160, 180),
        ),
        _spec(
            ExerciseKind.JUMPING_JACKS,
            "Jumping Jacks",
            "Jump while spreading your legs and raising your arms overhead",
            ExerciseCategory.BASIC,
            arm_spread=(150, 180),
            leg_spread=(40, 60),
        ),
        _spec(
            ExerciseKind.PULL_UPS,
            "Pull-ups",
            "Hang from a bar and pull yourself up until your chin clears it",
            ExerciseCategory.BASIC,
            elbow_top=(30, 60),
            elbow_bottom=(160, 180),
        ),
        _spec(
            ExerciseKind.BURPEES,
            "Burpees",
            "Drop into a plank, then jump up with your arms overhead",
            ExerciseCategory.CROSSFIT,
            body_alignment=(160, 180),
            knee_stand=(160, 180),
        ),
        _spec(
            ExerciseKind.KETTLEBELL_SWINGS,
            "Kettlebell Swings",
            "Hinge at the hips and drive the kettlebell up to shoulder height",
            ExerciseCategory.CROSSFIT,
            hip_hinge=(60, 100),
            hip_lockout=(160, 180),
        ),
        _spec(
            ExerciseKind.BOX_JUMPS,
            "Box Jumps",
            "Load into a quarter squat and jump explosively onto a box",
            ExerciseCategory.CROSSFIT,
            knee_load=(90, 110),
            knee_land=(100, 140),
        ),
        _spec(
            ExerciseKind.WALL_BALLS,
            "Wall Balls",
            "Squat with a medicine ball at your chest and throw it to a target",
            ExerciseCategory.CROSSFIT,
            knee_down=(70, 100),
            knee_up=(160, 180),
        ),
        _spec(
            ExerciseKind.THRUSTERS,
            "Thrusters",
            "Front squat straight into an overhead press in one motion",
            ExerciseCategory.CROSSFIT,
            knee_down=(70, 100),
            knee_up=(160, 180),
            elbow_lockout=(165, 180),
        ),
        _spec(
            ExerciseKind.DOUBLE_UNDERS,
            "Double Unders",
            "Jump rope so it passes under your feet twice per jump",
            ExerciseCategory.CROSSFIT,
            knee_jump=(150, 180),
            elbow=(70, 110),
        ),
        _spec(
            ExerciseKind.DEADLIFTS,
            "Deadlifts",
            "Hinge at the hips to lift the bar from the floor to a standing lockout",
            ExerciseCategory.OLYMPIC,
            hip_hinge=(45, 90),
            hip_lockout=(160, 180),
            knee=(140, 180),
        ),
        _spec(
            ExerciseKind.CLEAN_AND_JERK,
            "Clean & Jerk",
            "Pull the bar to a front rack, then drive it overhead to lockout",
            ExerciseCategory.OLYMPIC,
            elbow_rack=(30, 75),
            elbow_lockout=(170, 180),
        ),
        _spec(
            ExerciseKind.SNATCHES,
            "Snatches",
            "Pull the bar from the floor to overhead in one motion and stand up",
            ExerciseCategory.OLYMPIC,
            knee_catch=(70, 100),
            knee_stand=(160, 180),
            elbow_lockout=(170, 180),
        ),
    )
}

EXERCISE_ALIASES = {
    "squat": ExerciseKind.SQUATS,
    "pushup": ExerciseKind.PUSHUPS,
    "push_up": ExerciseKind.PUSHUPS,
    "push_ups": ExerciseKind.PUSHUPS,
    "lunge": ExerciseKind.LUNGES,
    "jumping_jack": ExerciseKind.JUMPING_JACKS,
    "burpee": ExerciseKind.BURPEES,
    "deadlift": ExerciseKind.DEADLIFTS,
    "kb_swings": ExerciseKind.KETTLEBELL_SWINGS,
    "kettlebell_swing": ExerciseKind.KETTLEBELL_SWINGS,
    "box_jump": ExerciseKind.BOX_JUMPS,
    "wall_ball": ExerciseKind.WALL_BALLS,
    "thruster": ExerciseKind.THRUSTERS,
    "clean_jerk": ExerciseKind.CLEAN_AND_JERK,
    "snatch": ExerciseKind.SNATCHES,
    "double_under": ExerciseKind.DOUBLE_UNDERS,
    "pull_up": ExerciseKind.PULL_UPS,
    "pullup": ExerciseKind.PULL_UPS,
    "pullups": ExerciseKind.PULL_UPS,
}

_KINDS_BY_VALUE = {kind.value: kind for kind in ExerciseKind}


def canonical_exercise_key(name: Union[str, ExerciseKind]) -> ExerciseKind:
    if isinstance(name, ExerciseKind):
        return name
    n = str(name).strip().lower().replace("&", "and")
    n = "_".join(n.replace("-", " ").replace("_", " ").split())
    if n in _KINDS_BY_VALUE:
        return _KINDS_BY_VALUE[n]
    if n in EXERCISE_ALIASES:
        return EXERCISE_ALIASES[n]
    raise KeyError(f"Unknown exercise: {name}")


def get_exercise_spec(name: Union[str, ExerciseKind]) -> ExerciseSpec:
    return EXERCISE_SPECS[canonical_exercise_key(name)]


def available_exercises() -> list[str]:
    return [kind.value for kind in ExerciseKind]


def exercises_by_category() -> dict[ExerciseCategory, list[ExerciseSpec]]:
    grouped: dict[ExerciseCategory, list[ExerciseSpec]] = {c: [] for c in ExerciseCategory}
    for spec in EXERCISE_SPECS.values():
        grouped[spec.category].append(spec)
    return grouped


def target_range(name: Union[str, ExerciseKind], angle_name: str) -> AngleRange:
    return get_exercise_spec(name).target_angles[angle_name]
