from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from pose_tracker.common import LANDMARK_INDEX, JointFrame, JointId, JointSample, make_frame, parse_joint_id

# Joint names sent by clients that have no analyzer meaning (e.g. "root").
_SKIPPED = object()


def _numeric(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{label}' must be numeric")
    return float(value)


def _joint_key(name: object):
    try:
        return parse_joint_id(str(name))
    except ValueError:
        return _SKIPPED


def _as_sample(raw: object, joint_name: str) -> JointSample:
    if isinstance(raw, Mapping):
        if "x" not in raw or "y" not in raw:
            raise ValueError(f"Joint '{joint_name}' must have 'x' and 'y'")
        confidence = raw.get("confidence", raw.get("visibility", 1.0))
        return JointSample(
            _numeric(raw["x"], f"{joint_name}.x"),
            _numeric(raw["y"], f"{joint_name}.y"),
            _numeric(confidence, f"{joint_name}.confidence"),
        )

    if not isinstance(raw, (list, tuple)) or len(raw) not in (2, 3):
        raise ValueError(f"Joint '{joint_name}' must be [x, y] or [x, y, confidence]")
    values = [_numeric(v, f"{joint_name}[{i}]") for i, v in enumerate(raw)]
    if len(values) == 2:
        values.append(1.0)
    return JointSample(values[0], values[1], values[2])


def _parse_joints(joints_obj: object) -> Dict[JointId, JointSample]:
    if not isinstance(joints_obj, Mapping):
        raise ValueError("'joints' must be an object")

    joints: Dict[JointId, JointSample] = {}
    for joint_name, raw in joints_obj.items():
        key = _joint_key(joint_name)
        if key is _SKIPPED:
            continue
        joints[key] = _as_sample(raw, str(joint_name))
    return joints


def _landmark_field(landmark: object, name: str, label: str, default: Optional[float] = None) -> Optional[float]:
    if isinstance(landmark, Mapping):
        value = landmark.get(name, default)
    else:
        value = getattr(landmark, name, default)
    return None if value is None else _numeric(value, label)


def frame_from_landmarks(landmarks: Iterable[object]) -> JointFrame:
    """Build a frame from a MediaPipe-indexed landmark list (objects or dicts).

    Slots that are missing or None are treated as undetected joints.
    Visibility becomes the joint confidence.
    """
    indexed: Sequence[object] = list(landmarks)
    joints: Dict[JointId, JointSample] = {}
    for joint, mp_index in LANDMARK_INDEX.items():
        if mp_index >= len(indexed) or indexed[mp_index] is None:
            continue
        landmark = indexed[mp_index]
        x = _landmark_field(landmark, "x", f"landmarks[{mp_index}].x")
        y = _landmark_field(landmark, "y", f"landmarks[{mp_index}].y")
        if x is None or y is None:
            raise ValueError(f"Landmark {mp_index} must have 'x' and 'y'")
        visibility = _landmark_field(landmark, "visibility", f"landmarks[{mp_index}].visibility", 1.0)
        joints[joint] = JointSample(x, y, 1.0 if visibility is None else visibility)
    return make_frame(joints)


def frame_from_payload(payload: Mapping[str, Any]) -> JointFrame:
    """Decode a client skeleton payload.

    Accepts either ``{"joints": {name: [x, y, conf] | {x, y, confidence}}}``
    or ``{"landmarks": [33 MediaPipe landmark dicts]}``.
    """
    if "joints" in payload:
        return make_frame(_parse_joints(payload["joints"]))
    if "landmarks" in payload:
        landmarks = payload["landmarks"]
        if not isinstance(landmarks, (list, tuple)):
            raise ValueError("'landmarks' must be an array")
        return frame_from_landmarks(landmarks)
    raise ValueError("Payload must contain 'joints' or 'landmarks'")


def payload_exercise(payload: Mapping[str, Any]) -> Optional[str]:
    exercise = payload.get("exercise")
    if exercise is None:
        return None
    return str(exercise)


def frame_to_payload(frame: JointFrame) -> Dict[str, object]:
    return {
        "joints": {
            joint.value: [sample.x, sample.y, sample.confidence]
            for joint, sample in frame.items()
        }
    }
