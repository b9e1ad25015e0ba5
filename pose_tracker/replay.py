#!/usr/bin/env python3
"""Replay recorded landmark frames through a tracking session."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from pose_tracker.exercises import available_exercises, get_exercise_spec
from pose_tracker.session import SessionController, SessionState
from pose_tracker.skeleton_adapter import frame_from_payload

logger = logging.getLogger(__name__)


def load_recording(path: Union[str, Path]) -> list[dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    frames = data.get("frames") if isinstance(data, dict) else data
    if not isinstance(frames, list):
        raise ValueError(f"{path}: expected a 'frames' array")
    return frames


def replay(
    frames: list[dict[str, Any]],
    exercise: str,
    print_every: int = 0,
    json_out: Optional[Path] = None,
) -> SessionState:
    controller = SessionController(exercise)
    controller.start_session()
    records = []

    for i, payload in enumerate(frames):
        # A null entry is a frame in which no person was detected.
        if payload is None:
            continue
        try:
            frame = frame_from_payload(payload)
        except ValueError as error:
            logger.warning("Skipping frame %d: %s", i, error)
            continue
        result = controller.dispatch(frame)
        records.append({"frame": i, **result.to_dict(), "rep_count": controller.rep_count})
        if print_every and i % print_every == 0:
            print(
                f"frame={i:04d} phase={result.phase.value:7s} reps={controller.rep_count:3d} "
                f"acc={result.accuracy:.2f} {result.feedback}"
            )

    if json_out is not None:
        json_out.parent.mkdir(parents=True, exist_ok=True)
        json_out.write_text(json.dumps({"exercise": exercise, "frames": records}, indent=2), encoding="utf-8")
    return controller.snapshot()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Replay recorded landmarks through the exercise analyzer")
    parser.add_argument("recording", help="JSON file with a 'frames' array")
    parser.add_argument("--exercise", default="squats", choices=available_exercises())
    parser.add_argument("--print-every", type=int, default=10)
    parser.add_argument("--json-out", default="", help="Write per-frame results here")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    frames = load_recording(args.recording)
    json_out = Path(args.json_out) if args.json_out else None
    state = replay(frames, args.exercise, args.print_every, json_out)

    spec = get_exercise_spec(state.selected_exercise)
    print(f"{spec.display_name}: {state.rep_count} reps over {len(frames)} frames")
    if json_out is not None:
        print(f"Results: {json_out}")


if __name__ == "__main__":
    main()
