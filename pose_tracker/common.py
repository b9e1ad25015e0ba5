"""Joint model and shared geometry for exercise analysis."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple, Union

import numpy as np


class JointId(str, Enum):
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


# MediaPipe Pose (33 landmark) index for every joint we track.
LANDMARK_INDEX: dict[JointId, int] = {
    JointId.NOSE: 0,
    JointId.LEFT_EYE: 2,
    JointId.RIGHT_EYE: 5,
    JointId.LEFT_EAR: 7,
    JointId.RIGHT_EAR: 8,
    JointId.LEFT_SHOULDER: 11,
    JointId.RIGHT_SHOULDER: 12,
    JointId.LEFT_ELBOW: 13,
    JointId.RIGHT_ELBOW: 14,
    JointId.LEFT_WRIST: 15,
    JointId.RIGHT_WRIST: 16,
    JointId.LEFT_HIP: 23,
    JointId.RIGHT_HIP: 24,
    JointId.LEFT_KNEE: 25,
    JointId.RIGHT_KNEE: 26,
    JointId.LEFT_ANKLE: 27,
    JointId.RIGHT_ANKLE: 28,
}

# Returned by angle_at when one of the rays has zero length.
DEGENERATE_ANGLE = 0.0

_EPS = 1e-9


@dataclass(frozen=True)
class JointSample:
    """One detected landmark: image-normalized x/y (y grows downward) and confidence."""

    x: float
    y: float
    confidence: float = 1.0

    @property
    def xy(self) -> Tuple[float, float]:
        return self.x, self.y


JointFrame = Mapping[JointId, JointSample]
PointLike = Union[JointSample, Tuple[float, float], np.ndarray]


def parse_joint_id(name: Union[str, JointId]) -> JointId:
    if isinstance(name, JointId):
        return name
    return JointId(str(name).strip().lower().replace("-", "_").replace(" ", "_"))


def make_frame(
    joints: Union[Mapping[Union[str, JointId], JointSample], Iterable[Tuple[Union[str, JointId], JointSample]]],
) -> JointFrame:
    """Build an immutable joint frame. Keys may be JointId members or their names."""
    items = joints.items() if isinstance(joints, Mapping) else joints
    out: dict[JointId, JointSample] = {}
    for name, sample in items:
        out[parse_joint_id(name)] = sample
    return MappingProxyType(out)


def _as_xy(point: PointLike) -> np.ndarray:
    if isinstance(point, JointSample):
        return np.array([point.x, point.y], dtype=np.float64)
    return np.asarray(point, dtype=np.float64)[:2]


def angle_at(p1: PointLike, vertex: PointLike, p2: PointLike) -> float:
    """Angle p1-vertex-p2 in degrees, in [0, 180].

    Symmetric in p1/p2. If either ray has zero (or non-finite) length the
    angle is undefined and DEGENERATE_ANGLE is returned instead of NaN.
    """
    v = _as_xy(vertex)
    u = _as_xy(p1) - v
    w = _as_xy(p2) - v
    un = float(np.linalg.norm(u))
    wn = float(np.linalg.norm(w))
    if not (un > _EPS and wn > _EPS) or not (np.isfinite(un) and np.isfinite(wn)):
        return DEGENERATE_ANGLE
    cosang = float(np.dot(u, w) / (un * wn))
    cosang = max(-1.0, min(1.0, cosang))
    return float(np.degrees(np.arccos(cosang)))


def point_below(sample: JointSample, offset: float = 0.3) -> Tuple[float, float]:
    """A virtual point straight below `sample` (image y grows downward)."""
    return sample.x, sample.y + offset


def joints_visible(
    frame: JointFrame,
    required: Iterable[JointId],
    gated: Iterable[JointId],
    min_confidence: float,
) -> bool:
    """True if every required joint is present and every gated joint meets min_confidence."""
    if any(j not in frame for j in required):
        return False
    for j in gated:
        sample: Optional[JointSample] = frame.get(j)
        if sample is None or sample.confidence < min_confidence:
            return False
    return True


def horizontal_gap(a: JointSample, b: JointSample) -> float:
    return abs(a.x - b.x)


def vertical_gap(a: JointSample, b: JointSample) -> float:
    return abs(a.y - b.y)


def mean_y(*samples: JointSample) -> float:
    return float(np.mean([s.y for s in samples]))
