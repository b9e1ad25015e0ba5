"""
FastAPI service for real-time exercise tracking.

Clients open ``/ws/session`` and stream either pre-computed joints (JSON) or
JPEG frames (binary, or base64 text). Every connection owns its own
SessionController. While a JPEG frame is being estimated, further frames are
dropped rather than queued.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from pose_tracker import config
from pose_tracker.exercises import exercises_by_category
from pose_tracker.pose_estimator import PoseEstimator, decode_frame, decode_frame_bytes, load_pose_estimator
from pose_tracker.session import SessionController
from pose_tracker.skeleton_adapter import frame_from_payload, payload_exercise
from pose_tracker.websocket_server import (
    SkeletonStreamConfig,
    consume_remote_skeleton_stream,
    run_skeleton_ws_server,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="PoseTracker API")

# Single worker: estimation requests are serialized, at most one in flight per connection.
_executor = ThreadPoolExecutor(max_workers=1)

pose_estimator: Optional[PoseEstimator] = None


@app.on_event("startup")
def load_models():
    global pose_estimator
    pose_estimator = load_pose_estimator(config.POSE_TASK_MODEL, config.POSE_MIN_DETECTION_CONFIDENCE)


@app.on_event("shutdown")
def close_models():
    global pose_estimator
    if pose_estimator:
        pose_estimator.close()
        pose_estimator = None


@app.get("/health")
def health():
    return {"status": "ok", "pose_model_loaded": pose_estimator is not None}


@app.get("/exercises")
def exercises():
    return {
        category.value: [spec.to_dict() for spec in specs]
        for category, specs in exercises_by_category().items()
    }


def _reply(controller: SessionController, result=None) -> Dict[str, Any]:
    return {
        "state": controller.snapshot().to_dict(),
        "result": result.to_dict() if result is not None else None,
    }


def _parse_text_message(text: str) -> Dict[str, Any]:
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        # Plain base64 JPEG text.
        return {"type": "frame", "data": text}
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")
    return message


async def _estimate_and_dispatch(websocket: WebSocket, controller: SessionController, rgb) -> None:
    loop = asyncio.get_running_loop()
    joint_frame = await loop.run_in_executor(_executor, pose_estimator.estimate, rgb)
    if joint_frame is None:
        await websocket.send_json(_reply(controller))
        return
    result = controller.dispatch(joint_frame)
    await websocket.send_json(_reply(controller, result))


def _handle_control(controller: SessionController, message: Dict[str, Any]) -> Dict[str, Any]:
    kind = message.get("type")
    if kind == "start":
        controller.start_session()
        return _reply(controller)
    if kind == "select":
        controller.select_exercise(str(message.get("exercise", "")))
        return _reply(controller)
    if kind == "state":
        return _reply(controller)
    if kind == "joints":
        exercise = payload_exercise(message)
        if exercise is not None:
            controller.select_exercise(exercise)
        result = controller.dispatch(frame_from_payload(message))
        return _reply(controller, result)
    raise ValueError(f"Unknown message type: {kind!r}")


@app.websocket("/ws/session")
async def ws_session(websocket: WebSocket):
    """
    Query params: ?exercise=squats
    Text messages: {"type": "start" | "select" | "state" | "joints" | "frame", ...}
    Binary messages: JPEG frames.
    """
    await websocket.accept()
    try:
        controller = SessionController(websocket.query_params.get("exercise", config.DEFAULT_EXERCISE))
    except KeyError as error:
        await websocket.send_json({"error": str(error)})
        await websocket.close(code=1008)
        return
    controller.start_session()

    pending: Optional[asyncio.Task] = None
    dropped = 0
    try:
        while True:
            msg = await websocket.receive()
            if msg.get("type") == "websocket.disconnect":
                break

            try:
                if msg.get("bytes"):
                    message = {"type": "frame", "bytes": msg["bytes"]}
                else:
                    message = _parse_text_message(msg.get("text") or "")

                if message.get("type") != "frame":
                    await websocket.send_json(_handle_control(controller, message))
                    continue

                if pose_estimator is None:
                    raise ValueError("Pose model not loaded; send joints instead")
                if config.DROP_FRAMES_IF_BUSY and pending is not None and not pending.done():
                    dropped += 1
                    if dropped % config.LOG_EVERY_N_FRAMES == 1:
                        logger.info("Dropping frames while busy. dropped=%d", dropped)
                    continue
                if "bytes" in message:
                    rgb = decode_frame_bytes(message["bytes"])
                else:
                    rgb = decode_frame(str(message.get("data", "")))
            except (ValueError, KeyError) as e:
                await websocket.send_json({"error": str(e)})
                continue

            if pending is not None:
                await pending
            pending = asyncio.create_task(_estimate_and_dispatch(websocket, controller, rgb))
    except WebSocketDisconnect:
        pass
    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await pending


async def run_stream_pipeline(controller: SessionController) -> None:
    """Feed a skeleton WebSocket stream into ``controller``.

    Payloads that arrive while the previous one is still being processed are
    dropped (latest-wins, depth one).
    """
    stream_config = SkeletonStreamConfig(
        host=config.STREAM_HOST,
        port=config.STREAM_PORT,
        path=config.STREAM_PATH,
        scheme=config.STREAM_SCHEME,
        reconnect_delay_sec=config.STREAM_RECONNECT_DELAY_SEC,
    )
    active: Optional[asyncio.Task] = None
    received = 0
    dropped = 0
    last_drop_log_at = 0.0

    async def process_payload(payload: Dict[str, Any]) -> None:
        try:
            exercise = payload_exercise(payload)
            if exercise is not None:
                controller.select_exercise(exercise)
            frame = frame_from_payload(payload)
        except (ValueError, KeyError) as error:
            logger.warning("[Stream] Bad payload: %s", error)
            return
        result = controller.dispatch(frame)
        if received % config.LOG_EVERY_N_FRAMES == 0:
            state = controller.snapshot()
            logger.info(
                "[Stream] %s | phase=%s reps=%d acc=%.2f | %s",
                state.selected_exercise.value,
                state.current_phase.value,
                state.rep_count,
                result.accuracy,
                result.feedback,
            )

    async def on_payload(payload: Dict[str, Any]) -> None:
        nonlocal active, received, dropped, last_drop_log_at
        received += 1
        if config.DROP_FRAMES_IF_BUSY:
            if active is not None and not active.done():
                dropped += 1
                now = time.monotonic()
                if (now - last_drop_log_at) >= 2.0:
                    last_drop_log_at = now
                    logger.info("[Stream] Dropping incoming frames while busy. dropped=%d", dropped)
                return
            active = asyncio.create_task(process_payload(payload))
            return
        await process_payload(payload)

    try:
        if config.STREAM_MODE == "client":
            await consume_remote_skeleton_stream(stream_config, on_payload)
        else:
            await run_skeleton_ws_server(stream_config, on_payload)
    finally:
        if active is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await active


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config.STREAM_MODE in {"server", "client"}:
        controller = SessionController(config.DEFAULT_EXERCISE)
        controller.start_session()
        asyncio.run(run_stream_pipeline(controller))
        return

    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)


if __name__ == "__main__":
    main()
