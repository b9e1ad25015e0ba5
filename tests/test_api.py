#!/usr/bin/env python3
"""Tests for the HTTP and WebSocket session API (joint payloads, no pose model)."""

import base64
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

pytest.importorskip("mediapipe")
cv2 = pytest.importorskip("cv2")

from fastapi.testclient import TestClient

from pose_tracker import main as api
from pose_tracker.pose_estimator import decode_frame, decode_frame_bytes, load_pose_estimator
from pose_tracker.skeleton_adapter import frame_to_payload

from synthetic import squat_frame


@pytest.fixture
def client(monkeypatch):
    # Startup hooks only run inside the client context manager; keep the model unloaded.
    monkeypatch.setattr(api, "pose_estimator", None)
    return TestClient(api.app)


def _joints(knee_deg, **extra):
    return {"type": "joints", **frame_to_payload(squat_frame(knee_deg)), **extra}


class TestHttp:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "pose_model_loaded": False}

    def test_exercises_grouped_by_category(self, client):
        data = client.get("/exercises").json()
        assert list(data) == ["Basic", "CrossFit", "Olympic Lifts"]
        assert sum(len(v) for v in data.values()) == 15
        assert data["Basic"][0]["key"] == "squats"
        assert data["Olympic Lifts"][1]["display_name"] == "Clean & Jerk"


class TestSessionSocket:
    def test_joint_stream_counts_reps(self, client):
        with client.websocket_connect("/ws/session?exercise=squats") as ws:
            ws.send_json(_joints(80))
            down = ws.receive_json()
            assert down["result"]["phase"] == "down"
            assert down["state"]["rep_count"] == 0

            ws.send_json(_joints(170))
            up = ws.receive_json()
            assert up["result"]["rep_delta"] == 1
            assert up["state"]["rep_count"] == 1
            assert up["state"]["feedback"] == "Great rep! Keep going"

    def test_select_keeps_count_and_start_resets(self, client):
        with client.websocket_connect("/ws/session") as ws:
            ws.send_json(_joints(80))
            ws.receive_json()
            ws.send_json(_joints(170))
            ws.receive_json()

            ws.send_json({"type": "select", "exercise": "Push-ups"})
            state = ws.receive_json()["state"]
            assert state["selected_exercise"] == "pushups"
            assert state["rep_count"] == 1

            ws.send_json({"type": "start"})
            state = ws.receive_json()["state"]
            assert state["rep_count"] == 0
            assert state["phase"] == "neutral"

    def test_joints_message_may_switch_exercise(self, client):
        with client.websocket_connect("/ws/session") as ws:
            ws.send_json(_joints(80, exercise="lunges"))
            reply = ws.receive_json()
            assert reply["state"]["selected_exercise"] == "lunges"

    def test_state_query(self, client):
        with client.websocket_connect("/ws/session?exercise=plank") as ws:
            ws.send_json({"type": "state"})
            reply = ws.receive_json()
            assert reply["result"] is None
            assert reply["state"]["display_name"] == "Plank"

    @pytest.mark.parametrize(
        "message",
        [
            {"type": "dance"},
            {"type": "select", "exercise": "yoga"},
            {"type": "joints", "joints": {"nose": [0.1]}},
            {"type": "joints", "landmarks": [{"x": {}, "y": 0.5}]},
            {"type": "joints", "landmarks": [{"x": [1], "y": 0.5}]},
            {"type": "frame", "data": "aGVsbG8="},
        ],
    )
    def test_errors_keep_connection_open(self, client, message):
        with client.websocket_connect("/ws/session") as ws:
            ws.send_json(message)
            assert "error" in ws.receive_json()
            ws.send_json({"type": "state"})
            assert ws.receive_json()["state"]["rep_count"] == 0

    def test_frames_rejected_without_model(self, client):
        with client.websocket_connect("/ws/session") as ws:
            ws.send_bytes(b"\xff\xd8\xff")
            assert "Pose model not loaded" in ws.receive_json()["error"]

    def test_unknown_exercise_closes(self, client):
        with client.websocket_connect("/ws/session?exercise=yoga") as ws:
            assert "Unknown exercise" in ws.receive_json()["error"]


class TestFrameDecoding:
    def _jpeg(self):
        image = np.zeros((24, 32, 3), dtype=np.uint8)
        image[:, :, 2] = 255
        ok, buffer = cv2.imencode(".jpg", image)
        assert ok
        return buffer.tobytes()

    def test_decode_bytes_to_rgb(self):
        rgb = decode_frame_bytes(self._jpeg())
        assert rgb.shape == (24, 32, 3)
        # Red in BGR input becomes the first channel after conversion.
        assert rgb[:, :, 0].mean() > 200

    def test_decode_base64(self):
        encoded = base64.b64encode(self._jpeg()).decode("ascii")
        assert decode_frame(encoded).shape == (24, 32, 3)

    @pytest.mark.parametrize("data", ["", "!!!not base64!!!", base64.b64encode(b"not a jpeg").decode()])
    def test_decode_rejects(self, data):
        with pytest.raises(ValueError):
            decode_frame(data)

    def test_missing_model_returns_none(self, tmp_path):
        assert load_pose_estimator(tmp_path / "missing.task") is None
