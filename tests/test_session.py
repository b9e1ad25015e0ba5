#!/usr/bin/env python3
"""Tests for the session controller: rep accumulation, exercise switching, subscribers."""

import logging
import sys
import threading
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from pose_tracker.analyzers import ExercisePhase
from pose_tracker.common import make_frame
from pose_tracker.exercises import ExerciseKind
from pose_tracker.session import SessionController

from synthetic import pushup_frame, squat_frame


def _squat_reps(controller, n):
    for _ in range(n):
        controller.dispatch(squat_frame(80))
        controller.dispatch(squat_frame(170))


class TestDispatch:
    def test_initial_state(self):
        state = SessionController().snapshot()
        assert state.selected_exercise is ExerciseKind.SQUATS
        assert state.current_phase is ExercisePhase.NEUTRAL
        assert state.rep_count == 0
        assert state.last_feedback is None
        assert state.last_accuracy == 0.0
        assert not state.pose_detected

    def test_reps_accumulate(self):
        controller = SessionController("squats")
        controller.start_session()
        _squat_reps(controller, 3)
        assert controller.rep_count == 3
        assert controller.phase is ExercisePhase.UP

    def test_dispatch_records_feedback(self):
        controller = SessionController()
        result = controller.dispatch(squat_frame(80))
        state = controller.snapshot()
        assert state.last_feedback == result.feedback == "Good depth! Now push up"
        assert state.last_accuracy == pytest.approx(0.9)
        assert state.in_frame and state.pose_detected

    def test_out_of_frame_keeps_phase_and_reps(self):
        controller = SessionController()
        _squat_reps(controller, 1)
        controller.dispatch(squat_frame(80))
        result = controller.dispatch(make_frame({}))
        assert not result.in_frame
        state = controller.snapshot()
        assert state.current_phase is ExercisePhase.DOWN
        assert state.rep_count == 1
        assert not state.in_frame
        assert state.last_accuracy == 0.0

    def test_holding_position_does_not_add_reps(self):
        controller = SessionController()
        controller.dispatch(squat_frame(80))
        for _ in range(10):
            controller.dispatch(squat_frame(170))
        assert controller.rep_count == 1

    def test_unknown_exercise_rejected(self):
        with pytest.raises(KeyError):
            SessionController("yoga")


class TestExerciseSelection:
    def test_switch_keeps_phase_and_count(self):
        controller = SessionController(ExerciseKind.SQUATS)
        controller.start_session()
        _squat_reps(controller, 3)
        controller.dispatch(squat_frame(80))
        assert controller.phase is ExercisePhase.DOWN

        state = controller.select_exercise("Push-ups")
        assert state.selected_exercise is ExerciseKind.PUSHUPS
        assert state.rep_count == 3
        assert state.current_phase is ExercisePhase.DOWN

        # The pushup analyzer reads the carried-over Down phase.
        result = controller.dispatch(pushup_frame(170))
        assert result.rep_delta == 1
        assert controller.rep_count == 4

    def test_reselect_is_noop(self, caplog):
        controller = SessionController()
        seen = []
        controller.subscribe(seen.append)
        with caplog.at_level(logging.INFO, logger="pose_tracker.session"):
            controller.select_exercise("squats")
        assert seen == []
        assert "Exercise changed" not in caplog.text

    def test_start_session_resets(self):
        controller = SessionController()
        _squat_reps(controller, 2)
        controller.dispatch(squat_frame(80))
        controller.select_exercise(ExerciseKind.LUNGES)

        state = controller.start_session()
        assert state.rep_count == 0
        assert state.current_phase is ExercisePhase.NEUTRAL
        assert state.selected_exercise is ExerciseKind.LUNGES
        assert not state.pose_detected
        assert not state.in_frame

    def test_state_dict(self):
        controller = SessionController("clean_and_jerk")
        data = controller.snapshot().to_dict()
        assert data["selected_exercise"] == "clean_and_jerk"
        assert data["display_name"] == "Clean & Jerk"
        assert data["phase"] == "neutral"
        assert data["rep_count"] == 0


class TestSubscribers:
    def test_receives_snapshots(self):
        controller = SessionController()
        seen = []
        controller.subscribe(seen.append)
        controller.dispatch(squat_frame(80))
        controller.dispatch(squat_frame(170))
        assert [s.rep_count for s in seen] == [0, 1]
        assert seen[-1].current_phase is ExercisePhase.UP

    def test_unsubscribe(self):
        controller = SessionController()
        seen = []
        unsubscribe = controller.subscribe(seen.append)
        controller.start_session()
        unsubscribe()
        unsubscribe()
        controller.start_session()
        assert len(seen) == 1

    def test_failing_subscriber_is_logged(self, caplog):
        controller = SessionController()
        seen = []

        def broken(_state):
            raise RuntimeError("boom")

        controller.subscribe(broken)
        controller.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="pose_tracker.session"):
            controller.dispatch(squat_frame(80))
        assert len(seen) == 1
        assert "subscriber" in caplog.text


class TestConcurrency:
    def test_parallel_dispatch_publishes_in_order(self):
        controller = SessionController()
        seen = []
        controller.subscribe(lambda state: seen.append(state.rep_count))
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            _squat_reps(controller, 25)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(seen) == 200
        assert seen == sorted(seen)
        assert seen[-1] == controller.rep_count
        assert 1 <= controller.rep_count <= 100

    def test_slow_subscriber_keeps_mutation_order(self):
        controller = SessionController()
        first_delivered = threading.Event()
        release = threading.Event()
        phases = []

        def slow(state):
            phases.append(state.current_phase)
            if len(phases) == 1:
                first_delivered.set()
                release.wait(timeout=5)

        controller.subscribe(slow)
        down = threading.Thread(target=controller.dispatch, args=(squat_frame(80),))
        down.start()
        assert first_delivered.wait(timeout=5)

        up = threading.Thread(target=controller.dispatch, args=(squat_frame(170),))
        up.start()
        for _ in range(500):
            if controller.rep_count == 1:
                break
            time.sleep(0.01)
        assert controller.phase is ExercisePhase.UP

        release.set()
        down.join(timeout=5)
        up.join(timeout=5)
        assert phases == [ExercisePhase.DOWN, ExercisePhase.UP]

    def test_subscriber_may_read_snapshot(self):
        controller = SessionController()
        seen = []
        controller.subscribe(lambda state: seen.append(controller.snapshot().rep_count))
        _squat_reps(controller, 2)
        assert seen == [0, 1, 1, 2]
