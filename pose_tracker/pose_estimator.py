"""MediaPipe pose estimation producing joint frames for one person."""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks.python import BaseOptions
from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions, RunningMode

from pose_tracker.common import JointFrame
from pose_tracker.skeleton_adapter import frame_from_landmarks

logger = logging.getLogger(__name__)


def decode_frame(data: str) -> np.ndarray:
    """Decode a base64-encoded JPEG into an RGB numpy array."""
    if not data:
        raise ValueError("Empty frame data")
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as error:
        raise ValueError(f"Invalid base64 frame: {error}") from error
    return decode_frame_bytes(raw)


def decode_frame_bytes(data: bytes) -> np.ndarray:
    """Decode raw JPEG bytes into an RGB numpy array."""
    if not data:
        raise ValueError("Empty frame data")
    arr = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ValueError("Failed to decode JPEG frame")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


class PoseEstimator:
    """Wraps a MediaPipe PoseLandmarker in single-image mode.

    ``estimate`` never raises for inference failures: they are logged and
    reported as "no person" so the caller's session state is left alone.
    """

    def __init__(self, model_path: Union[str, Path], min_detection_confidence: float = 0.5):
        self.model_path = Path(model_path)
        self._landmarker = PoseLandmarker.create_from_options(
            PoseLandmarkerOptions(
                base_options=BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=RunningMode.IMAGE,
                num_poses=1,
                min_pose_detection_confidence=min_detection_confidence,
            )
        )

    def estimate(self, rgb: np.ndarray) -> Optional[JointFrame]:
        try:
            image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))
            result = self._landmarker.detect(image)
        except Exception:
            logger.exception("Pose estimation failed")
            return None

        if not result.pose_landmarks:
            return None
        return frame_from_landmarks(result.pose_landmarks[0])

    def close(self) -> None:
        self._landmarker.close()

    def __enter__(self) -> "PoseEstimator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_pose_estimator(model_path: Union[str, Path], min_detection_confidence: float = 0.5) -> Optional[PoseEstimator]:
    """Create an estimator, or return None if the model file is missing or unusable."""
    path = Path(model_path)
    if not path.exists():
        logger.warning("Pose model not found at %s; only joint payloads will be accepted", path)
        return None
    try:
        estimator = PoseEstimator(path, min_detection_confidence)
    except Exception:
        logger.exception("Failed to load pose model %s", path)
        return None
    logger.info("Pose model loaded: %s", path)
    return estimator
