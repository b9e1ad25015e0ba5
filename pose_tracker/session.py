"""Session controller: owns tracking state and routes frames to the selected analyzer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from pose_tracker.analyzers import ANALYZERS, AnalysisResult, ExercisePhase
from pose_tracker.common import JointFrame
from pose_tracker.exercises import ExerciseKind, canonical_exercise_key, get_exercise_spec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    selected_exercise: ExerciseKind
    current_phase: ExercisePhase
    rep_count: int
    last_feedback: Optional[str]
    last_accuracy: float
    in_frame: bool
    pose_detected: bool

    def to_dict(self) -> dict:
        return {
            "selected_exercise": self.selected_exercise.value,
            "display_name": get_exercise_spec(self.selected_exercise).display_name,
            "phase": self.current_phase.value,
            "rep_count": self.rep_count,
            "feedback": self.last_feedback,
            "accuracy": self.last_accuracy,
            "in_frame": self.in_frame,
            "pose_detected": self.pose_detected,
        }


Subscriber = Callable[[SessionState], None]


class SessionController:
    """Single owner of one user's tracking state.

    ``dispatch``, ``select_exercise`` and ``start_session`` are the only
    mutators and are serialized, so frames delivered from worker threads are
    applied one at a time. Subscribers receive an immutable snapshot after
    every mutation, in mutation order. Callbacks may read ``snapshot()`` but
    must not call the mutators.

    Changing the exercise keeps the current phase and rep count; only
    ``start_session`` resets them.
    """

    def __init__(self, exercise: Union[str, ExerciseKind] = ExerciseKind.SQUATS):
        self._lock = threading.Lock()
        self._published = threading.Condition()
        self._subscribers: List[Subscriber] = []
        self._mutation_seq = 0
        self._published_seq = 0
        self._exercise = canonical_exercise_key(exercise)
        self._phase = ExercisePhase.NEUTRAL
        self._rep_count = 0
        self._feedback: Optional[str] = None
        self._accuracy = 0.0
        self._in_frame = False
        self._pose_detected = False

    @property
    def selected_exercise(self) -> ExerciseKind:
        return self._exercise

    @property
    def phase(self) -> ExercisePhase:
        return self._phase

    @property
    def rep_count(self) -> int:
        return self._rep_count

    def snapshot(self) -> SessionState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> SessionState:
        return SessionState(
            selected_exercise=self._exercise,
            current_phase=self._phase,
            rep_count=self._rep_count,
            last_feedback=self._feedback,
            last_accuracy=self._accuracy,
            in_frame=self._in_frame,
            pose_detected=self._pose_detected,
        )

    def _commit(self) -> Tuple[int, SessionState, List[Subscriber]]:
        # Caller holds self._lock.
        self._mutation_seq += 1
        return self._mutation_seq, self._snapshot(), list(self._subscribers)

    def start_session(self) -> SessionState:
        with self._lock:
            self._rep_count = 0
            self._phase = ExercisePhase.NEUTRAL
            self._in_frame = False
            self._pose_detected = False
            seq, state, subscribers = self._commit()
        logger.info("Session started (%s)", state.selected_exercise.value)
        self._publish(seq, state, subscribers)
        return state

    def select_exercise(self, exercise: Union[str, ExerciseKind]) -> SessionState:
        kind = canonical_exercise_key(exercise)
        with self._lock:
            if kind == self._exercise:
                return self._snapshot()
            previous = self._exercise
            self._exercise = kind
            seq, state, subscribers = self._commit()
        logger.info(
            "Exercise changed %s -> %s (phase=%s, reps=%d kept)",
            previous.value,
            kind.value,
            state.current_phase.value,
            state.rep_count,
        )
        self._publish(seq, state, subscribers)
        return state

    def dispatch(self, frame: JointFrame) -> AnalysisResult:
        with self._lock:
            result = ANALYZERS[self._exercise](frame, self._phase)
            self._phase = result.phase
            self._rep_count += result.rep_delta
            self._feedback = result.feedback
            self._accuracy = result.accuracy
            self._in_frame = result.in_frame
            self._pose_detected = True
            seq, state, subscribers = self._commit()
        if result.rep_delta:
            logger.info("%s rep %d: %s", state.selected_exercise.value, state.rep_count, result.feedback)
        self._publish(seq, state, subscribers)
        return result

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, seq: int, state: SessionState, subscribers: List[Subscriber]) -> None:
        """Deliver ``state`` once every earlier mutation has been delivered."""
        with self._published:
            self._published.wait_for(lambda: self._published_seq == seq - 1)
            try:
                for callback in subscribers:
                    try:
                        callback(state)
                    except Exception:
                        logger.exception("Session subscriber %r failed", callback)
            finally:
                self._published_seq = seq
                self._published.notify_all()
