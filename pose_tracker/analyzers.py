"""Per-exercise phase analyzers.

Every analyzer is a callable ``(frame, phase) -> AnalysisResult``. Most are
instances of one hysteresis machine: a visibility gate, feature extraction,
then an entry predicate and a release predicate evaluated in that order.
Entering the entry phase happens once; the release predicate only moves the
machine back out when it is currently in the entry phase, so holding either
position never counts twice.

Thresholds, feedback strings and accuracy values are fixed per branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from pose_tracker.common import (
    JointFrame,
    JointId,
    angle_at,
    horizontal_gap,
    joints_visible,
    mean_y,
    point_below,
    vertical_gap,
)
from pose_tracker.exercises import ExerciseKind

J = JointId

FULL_BODY = "Position your full body in frame"
UPPER_BODY = "Position your upper body in frame"
FULL_BODY_SIDEWAYS = "Position your full body in frame sideways"


class ExercisePhase(str, Enum):
    NEUTRAL = "neutral"
    DOWN = "down"
    UP = "up"

    @property
    def opposite(self) -> "ExercisePhase":
        if self is ExercisePhase.DOWN:
            return ExercisePhase.UP
        if self is ExercisePhase.UP:
            return ExercisePhase.DOWN
        return ExercisePhase.NEUTRAL


@dataclass(frozen=True)
class AnalysisResult:
    in_frame: bool
    phase: ExercisePhase
    rep_delta: int
    feedback: str
    accuracy: float

    def to_dict(self) -> dict:
        return {
            "in_frame": self.in_frame,
            "phase": self.phase.value,
            "rep_delta": self.rep_delta,
            "feedback": self.feedback,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class Cue:
    text: str
    accuracy: float

    def result(self, phase: ExercisePhase, rep_delta: int = 0) -> AnalysisResult:
        return AnalysisResult(True, phase, rep_delta, self.text, self.accuracy)


@dataclass(frozen=True)
class Visibility:
    """Joints that must be present, and the subset that must clear min_confidence.

    When ``gated`` is empty every required joint is confidence-gated.
    """

    required: Tuple[JointId, ...]
    min_confidence: float
    gated: Tuple[JointId, ...] = ()
    message: str = FULL_BODY

    def check(self, frame: JointFrame) -> bool:
        return joints_visible(frame, self.required, self.gated or self.required, self.min_confidence)

    def out_of_frame(self, phase: ExercisePhase) -> AnalysisResult:
        return AnalysisResult(False, phase, 0, self.message, 0.0)


Features = Dict[str, float]
Predicate = Callable[[Features], bool]


@dataclass(frozen=True)
class HysteresisAnalyzer:
    visibility: Visibility
    features: Callable[[JointFrame], Features]
    entry: Predicate
    release: Predicate
    entry_cue: Cue
    release_cue: Cue
    idle_cue: Cue
    stalled_cue: Optional[Cue] = None
    entry_phase: ExercisePhase = ExercisePhase.DOWN
    count_on_entry: bool = False

    def __call__(self, frame: JointFrame, phase: ExercisePhase) -> AnalysisResult:
        if not self.visibility.check(frame):
            return self.visibility.out_of_frame(phase)

        f = self.features(frame)
        if self.entry(f):
            if phase != self.entry_phase:
                return self.entry_cue.result(self.entry_phase, int(self.count_on_entry))
            return self.entry_cue.result(phase)
        if self.release(f):
            if phase == self.entry_phase:
                return self.release_cue.result(self.entry_phase.opposite, int(not self.count_on_entry))
            return (self.stalled_cue or self.idle_cue).result(phase)
        return self.idle_cue.result(phase)


# ---------------------------------------------------------------------------
# Feature extraction
# ---------------------------------------------------------------------------


def _knee_angles(frame: JointFrame) -> Tuple[float, float]:
    left = angle_at(frame[J.LEFT_HIP], frame[J.LEFT_KNEE], frame[J.LEFT_ANKLE])
    right = angle_at(frame[J.RIGHT_HIP], frame[J.RIGHT_KNEE], frame[J.RIGHT_ANKLE])
    return left, right


def _elbow_angles(frame: JointFrame) -> Tuple[float, float]:
    left = angle_at(frame[J.LEFT_SHOULDER], frame[J.LEFT_ELBOW], frame[J.LEFT_WRIST])
    right = angle_at(frame[J.RIGHT_SHOULDER], frame[J.RIGHT_ELBOW], frame[J.RIGHT_WRIST])
    return left, right


def _thigh_angle(frame: JointFrame) -> float:
    """Left hip-knee angle against a vertical line dropped from the knee."""
    knee = frame[J.LEFT_KNEE]
    return angle_at(frame[J.LEFT_HIP], knee, point_below(knee))


def _left_elbow_angle(frame: JointFrame) -> float:
    return angle_at(frame[J.LEFT_SHOULDER], frame[J.LEFT_ELBOW], frame[J.LEFT_WRIST])


def _overhead(frame: JointFrame) -> bool:
    return frame[J.LEFT_WRIST].y < frame[J.LEFT_SHOULDER].y - 0.2


def _squat_features(frame: JointFrame) -> Features:
    left, right = _knee_angles(frame)
    return {"knee": (left + right) / 2}


def _pushup_features(frame: JointFrame) -> Features:
    left, right = _elbow_angles(frame)
    return {"elbow": (left + right) / 2}


def _lunge_features(frame: JointFrame) -> Features:
    left, right = _knee_angles(frame)
    return {"front_knee": min(left, right), "back_knee": max(left, right)}


def _jumping_jack_features(frame: JointFrame) -> Features:
    nose = frame[J.NOSE]
    return {
        "arm_spread": horizontal_gap(frame[J.LEFT_WRIST], frame[J.RIGHT_WRIST]),
        "leg_spread": horizontal_gap(frame[J.LEFT_ANKLE], frame[J.RIGHT_ANKLE]),
        "arms_up": float(frame[J.LEFT_WRIST].y < nose.y and frame[J.RIGHT_WRIST].y < nose.y),
    }


def _burpee_features(frame: JointFrame) -> Features:
    wrist = frame[J.LEFT_WRIST]
    hip = frame[J.LEFT_HIP]
    return {
        "alignment": vertical_gap(frame[J.LEFT_SHOULDER], hip),
        "wrist_y": wrist.y,
        "hip_y": hip.y,
        "wrist_above_head": float(wrist.y < frame[J.NOSE].y),
    }


def _deadlift_features(frame: JointFrame) -> Features:
    return {
        "hinge": angle_at(frame[J.LEFT_SHOULDER], frame[J.LEFT_HIP], frame[J.LEFT_KNEE]),
        "knee": _thigh_angle(frame),
    }


def _kettlebell_features(frame: JointFrame) -> Features:
    return {
        "wrist_y": mean_y(frame[J.LEFT_WRIST], frame[J.RIGHT_WRIST]),
        "shoulder_y": frame[J.LEFT_SHOULDER].y,
        "hip_y": frame[J.LEFT_HIP].y,
    }


def _box_jump_features(frame: JointFrame) -> Features:
    return {
        "knee": angle_at(frame[J.LEFT_HIP], frame[J.LEFT_KNEE], frame[J.LEFT_ANKLE]),
        "hip_y": frame[J.LEFT_HIP].y,
    }


def _wall_ball_features(frame: JointFrame) -> Features:
    nose = frame[J.NOSE]
    return {
        "knee": _thigh_angle(frame),
        "arms_up": float(frame[J.LEFT_WRIST].y < nose.y and frame[J.RIGHT_WRIST].y < nose.y),
    }


def _thruster_features(frame: JointFrame) -> Features:
    return {
        "knee": _thigh_angle(frame),
        "arm_extended": float(frame[J.LEFT_WRIST].y < frame[J.LEFT_SHOULDER].y),
    }


def _clean_and_jerk_features(frame: JointFrame) -> Features:
    return {"elbow": _left_elbow_angle(frame), "overhead": float(_overhead(frame))}


def _snatch_features(frame: JointFrame) -> Features:
    return {"knee": _thigh_angle(frame), "overhead": float(_overhead(frame))}


def _double_under_features(frame: JointFrame) -> Features:
    left_ankle = frame[J.LEFT_ANKLE]
    right_ankle = frame[J.RIGHT_ANKLE]
    return {
        "feet_gap": horizontal_gap(left_ankle, right_ankle),
        "jump_y": mean_y(left_ankle, right_ankle),
        "wrists_low": float(frame[J.LEFT_WRIST].y > frame[J.LEFT_ELBOW].y),
    }


def _pull_up_features(frame: JointFrame) -> Features:
    return {
        "elbow": _left_elbow_angle(frame),
        "chin_over": float(frame[J.NOSE].y < frame[J.LEFT_WRIST].y),
    }


# ---------------------------------------------------------------------------
# Plank: graded hold, not a down/up pair
# ---------------------------------------------------------------------------

PLANK_VISIBILITY = Visibility(
    (J.LEFT_SHOULDER, J.RIGHT_SHOULDER, J.LEFT_HIP, J.RIGHT_HIP, J.LEFT_ANKLE, J.RIGHT_ANKLE),
    min_confidence=0.4,
    message=FULL_BODY_SIDEWAYS,
)
PLANK_HOLD = Cue("Perfect plank position! Hold it", 0.95)
PLANK_CLOSE = Cue("Good form, keep your body straight", 0.8)
PLANK_OFF = Cue("Align your shoulders and hips", 0.6)


def analyze_plank(frame: JointFrame, phase: ExercisePhase) -> AnalysisResult:
    """Counts one hold each time the body lines up while not already holding."""
    if not PLANK_VISIBILITY.check(frame):
        return PLANK_VISIBILITY.out_of_frame(phase)

    alignment = (
        vertical_gap(frame[J.LEFT_SHOULDER], frame[J.LEFT_HIP])
        + vertical_gap(frame[J.RIGHT_SHOULDER], frame[J.RIGHT_HIP])
    ) / 2
    if alignment < 0.1:
        if phase != ExercisePhase.DOWN:
            return PLANK_HOLD.result(ExercisePhase.DOWN, 1)
        return PLANK_HOLD.result(phase)
    if alignment < 0.2:
        return PLANK_CLOSE.result(phase)
    return PLANK_OFF.result(phase)


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

_LEGS = (J.LEFT_HIP, J.RIGHT_HIP, J.LEFT_KNEE, J.RIGHT_KNEE, J.LEFT_ANKLE, J.RIGHT_ANKLE)
_ARMS = (
    J.LEFT_SHOULDER,
    J.RIGHT_SHOULDER,
    J.LEFT_ELBOW,
    J.RIGHT_ELBOW,
    J.LEFT_WRIST,
    J.RIGHT_WRIST,
)

Analyzer = Callable[[JointFrame, ExercisePhase], AnalysisResult]

ANALYZERS: Mapping[ExerciseKind, Analyzer] = {
    ExerciseKind.SQUATS: HysteresisAnalyzer(
        visibility=Visibility(_LEGS, 0.5),
        features=_squat_features,
        entry=lambda f: f["knee"] < 100,
        release=lambda f: f["knee"] > 160,
        entry_cue=Cue("Good depth! Now push up", 0.9),
        release_cue=Cue("Great rep! Keep going", 0.95),
        stalled_cue=Cue("Lower down slowly", 0.7),
        idle_cue=Cue("Keep moving smoothly", 0.8),
    ),
    ExerciseKind.PUSHUPS: HysteresisAnalyzer(
        visibility=Visibility(_ARMS, 0.5, gated=(J.LEFT_ELBOW, J.RIGHT_ELBOW), message=UPPER_BODY),
        features=_pushup_features,
        entry=lambda f: f["elbow"] < 90,
        release=lambda f: f["elbow"] > 160,
        entry_cue=Cue("Good depth! Push back up", 0.9),
        release_cue=Cue("Excellent pushup!", 0.95),
        stalled_cue=Cue("Lower your chest to the ground", 0.7),
        idle_cue=Cue("Maintain steady movement", 0.8),
    ),
    ExerciseKind.PLANK: analyze_plank,
    ExerciseKind.LUNGES: HysteresisAnalyzer(
        visibility=Visibility(_LEGS, 0.5, gated=(J.LEFT_KNEE, J.RIGHT_KNEE)),
        features=_lunge_features,
        entry=lambda f: f["front_knee"] < 100 and f["back_knee"] > 140,
        release=lambda f: f["front_knee"] > 160 and f["back_knee"] > 160,
        entry_cue=Cue("Great lunge depth!", 0.9),
        release_cue=Cue("Good rep! Switch legs", 0.95),
        stalled_cue=Cue("Step forward and lower down", 0.7),
        idle_cue=Cue("Keep front knee at 90 degrees", 0.75),
    ),
    ExerciseKind.JUMPING_JACKS: HysteresisAnalyzer(
        visibility=Visibility(
            (J.LEFT_WRIST, J.RIGHT_WRIST, J.LEFT_ANKLE, J.RIGHT_ANKLE, J.NOSE),
            0.5,
            gated=(J.LEFT_WRIST, J.RIGHT_WRIST),
        ),
        features=_jumping_jack_features,
        entry=lambda f: f["arm_spread"] > 0.5 and f["leg_spread"] > 0.3 and bool(f["arms_up"]),
        release=lambda f: f["arm_spread"] < 0.2 and f["leg_spread"] < 0.15,
        entry_cue=Cue("Arms up, legs apart!", 0.9),
        release_cue=Cue("Great jumping jack!", 0.95),
        stalled_cue=Cue("Jump and spread arms and legs", 0.7),
        idle_cue=Cue("Coordinate arms and legs", 0.75),
        entry_phase=ExercisePhase.UP,
    ),
    ExerciseKind.BURPEES: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_SHOULDER, J.LEFT_WRIST, J.NOSE), 0.4),
        features=_burpee_features,
        entry=lambda f: f["wrist_y"] > 0.7 and f["alignment"] < 0.2,
        release=lambda f: f["hip_y"] < 0.5 and bool(f["wrist_above_head"]),
        entry_cue=Cue("Good plank position!", 0.85),
        release_cue=Cue("Excellent burpee!", 0.95),
        stalled_cue=Cue("Drop down to plank", 0.7),
        idle_cue=Cue("Transition smoothly", 0.75),
    ),
    ExerciseKind.DEADLIFTS: HysteresisAnalyzer(
        visibility=Visibility(
            (J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_SHOULDER, J.RIGHT_HIP, J.RIGHT_KNEE),
            0.5,
            gated=(J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_SHOULDER),
        ),
        features=_deadlift_features,
        entry=lambda f: f["hinge"] < 90 and f["knee"] > 140,
        release=lambda f: f["hinge"] > 150,
        entry_cue=Cue("Good hip hinge! Keep back straight", 0.9),
        release_cue=Cue("Strong lift! Maintain form", 0.95),
        stalled_cue=Cue("Hinge at hips, slight knee bend", 0.7),
        idle_cue=Cue("Keep back straight, drive through hips", 0.8),
    ),
    ExerciseKind.KETTLEBELL_SWINGS: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_HIP, J.LEFT_SHOULDER, J.LEFT_WRIST, J.RIGHT_WRIST), 0.5),
        features=_kettlebell_features,
        entry=lambda f: f["wrist_y"] > f["hip_y"] and f["wrist_y"] > f["shoulder_y"] * 0.8,
        release=lambda f: f["wrist_y"] < f["shoulder_y"],
        entry_cue=Cue("Good backswing position", 0.85),
        release_cue=Cue("Powerful hip drive!", 0.95),
        stalled_cue=Cue("Swing between legs", 0.7),
        idle_cue=Cue("Use hip drive, not arms", 0.75),
    ),
    ExerciseKind.BOX_JUMPS: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_ANKLE), 0.5),
        features=_box_jump_features,
        entry=lambda f: f["knee"] < 110 and f["hip_y"] > 0.5,
        release=lambda f: f["hip_y"] < 0.3,
        entry_cue=Cue("Good squat prep!", 0.85),
        release_cue=Cue("Great jump! Land softly", 0.95),
        idle_cue=Cue("Prep, explode up, land soft", 0.75),
    ),
    ExerciseKind.WALL_BALLS: HysteresisAnalyzer(
        visibility=Visibility(
            (J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_WRIST, J.RIGHT_WRIST, J.NOSE),
            0.5,
            gated=(J.LEFT_KNEE,),
        ),
        features=_wall_ball_features,
        entry=lambda f: f["knee"] < 100 and not f["arms_up"],
        release=lambda f: f["knee"] > 160 and bool(f["arms_up"]),
        entry_cue=Cue("Good squat depth!", 0.85),
        release_cue=Cue("Nice throw! Catch and repeat", 0.95),
        stalled_cue=Cue("Squat with ball at chest", 0.7),
        idle_cue=Cue("Squat deep, throw high", 0.75),
    ),
    ExerciseKind.THRUSTERS: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_SHOULDER, J.LEFT_ELBOW, J.LEFT_WRIST), 0.5),
        features=_thruster_features,
        entry=lambda f: f["knee"] < 100 and not f["arm_extended"],
        release=lambda f: f["knee"] > 160 and bool(f["arm_extended"]),
        entry_cue=Cue("Good front squat position", 0.85),
        release_cue=Cue("Explosive thruster!", 0.95),
        stalled_cue=Cue("Squat down with bar racked", 0.7),
        idle_cue=Cue("One fluid motion from squat to press", 0.8),
    ),
    ExerciseKind.CLEAN_AND_JERK: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_SHOULDER, J.LEFT_ELBOW, J.LEFT_WRIST), 0.5),
        features=_clean_and_jerk_features,
        entry=lambda f: f["elbow"] < 75 and not f["overhead"],
        release=lambda f: bool(f["overhead"]) and f["elbow"] > 170,
        entry_cue=Cue("Good rack position", 0.85),
        release_cue=Cue("Strong jerk! Lock it out", 0.95),
        idle_cue=Cue("Clean to shoulders, then jerk overhead", 0.75),
    ),
    ExerciseKind.SNATCHES: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_HIP, J.LEFT_KNEE, J.LEFT_SHOULDER, J.LEFT_WRIST), 0.5),
        features=_snatch_features,
        entry=lambda f: f["knee"] < 100 and bool(f["overhead"]),
        release=lambda f: f["knee"] > 160 and bool(f["overhead"]),
        entry_cue=Cue("Good overhead squat position", 0.9),
        release_cue=Cue("Powerful snatch!", 0.95),
        stalled_cue=Cue("Pull and catch in overhead squat", 0.7),
        idle_cue=Cue("One explosive motion to overhead", 0.75),
    ),
    ExerciseKind.DOUBLE_UNDERS: HysteresisAnalyzer(
        visibility=Visibility(
            (J.LEFT_ANKLE, J.RIGHT_ANKLE, J.LEFT_WRIST, J.RIGHT_WRIST, J.LEFT_ELBOW),
            0.5,
            gated=(J.LEFT_ANKLE,),
        ),
        features=_double_under_features,
        entry=lambda f: f["jump_y"] < 0.7 and f["feet_gap"] < 0.15 and bool(f["wrists_low"]),
        release=lambda f: f["jump_y"] > 0.8,
        entry_cue=Cue("Good jump! Fast wrist rotation", 0.9),
        release_cue=Cue("Keep wrists low and fast", 0.85),
        idle_cue=Cue("Jump higher, rotate wrists faster", 0.7),
        entry_phase=ExercisePhase.UP,
        count_on_entry=True,
    ),
    ExerciseKind.PULL_UPS: HysteresisAnalyzer(
        visibility=Visibility((J.LEFT_SHOULDER, J.LEFT_ELBOW, J.LEFT_WRIST, J.NOSE), 0.5, message=UPPER_BODY),
        features=_pull_up_features,
        entry=lambda f: f["elbow"] < 60 and bool(f["chin_over"]),
        release=lambda f: f["elbow"] > 160,
        entry_cue=Cue("Chin over bar! Great pull-up", 0.95),
        release_cue=Cue("Full extension, pull again", 0.85),
        stalled_cue=Cue("Pull up to get chin over bar", 0.7),
        idle_cue=Cue("Pull through elbows, chin to bar", 0.75),
        entry_phase=ExercisePhase.UP,
        count_on_entry=True,
    ),
}


def analyze(kind: ExerciseKind, frame: JointFrame, phase: ExercisePhase) -> AnalysisResult:
    return ANALYZERS[kind](frame, phase)
