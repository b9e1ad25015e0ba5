"""Skeleton stream transport: a WebSocket server or reconnecting client feeding JSON payloads to a handler."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

logger = logging.getLogger(__name__)

SkeletonHandler = Callable[[Dict[str, Any]], Optional[Awaitable[None]]]


@dataclass
class SkeletonStreamConfig:
    host: str
    port: int
    path: str = "/skeleton"
    scheme: str = "ws"
    reconnect_delay_sec: float = 1.0


def _normalize_ws_path(raw_path: str) -> str:
    path = (raw_path or "").strip() or "/skeleton"
    return path if path.startswith("/") else f"/{path}"


def build_websocket_uri(config: SkeletonStreamConfig) -> str:
    host = config.host.strip()
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{config.scheme}://{host}:{int(config.port)}{_normalize_ws_path(config.path)}"


def decode_payload(message: Any) -> Dict[str, Any]:
    if isinstance(message, bytes):
        message = message.decode("utf-8")

    if not isinstance(message, str):
        raise ValueError("Incoming message must be text JSON")

    try:
        payload = json.loads(message)
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise ValueError("Incoming skeleton payload must be a JSON object")
    return payload


async def _dispatch(handler: SkeletonHandler, payload: Dict[str, Any]) -> None:
    result = handler(payload)
    if inspect.isawaitable(result):
        await result


def _request_path(websocket, path: Optional[str]) -> str:
    if path is not None:
        return path
    request = getattr(websocket, "request", None)
    if request is not None:
        return getattr(request, "path", "")
    return getattr(websocket, "path", "")


async def _consume(socket, handler: SkeletonHandler) -> None:
    async for raw_message in socket:
        try:
            payload = decode_payload(raw_message)
        except ValueError as error:
            logger.warning("[Stream] Ignoring malformed payload: %s", error)
            continue
        await _dispatch(handler, payload)


async def run_skeleton_ws_server(
    config: SkeletonStreamConfig,
    handler: SkeletonHandler,
) -> None:
    expected_path = _normalize_ws_path(config.path)

    async def on_connection(websocket, path=None):
        request_path = _request_path(websocket, path)
        if request_path != expected_path:
            await websocket.close(code=1008, reason="Unexpected WebSocket path")
            return
        await _consume(websocket, handler)

    async with websockets.serve(
        on_connection,
        config.host.strip(),
        int(config.port),
        max_queue=1,
    ):
        logger.info("[Stream] Listening on %s", build_websocket_uri(config))
        await asyncio.Future()


async def consume_remote_skeleton_stream(
    config: SkeletonStreamConfig,
    handler: SkeletonHandler,
) -> None:
    uri = build_websocket_uri(config)
    while True:
        try:
            async with websockets.connect(
                uri,
                ping_interval=20,
                ping_timeout=20,
                max_queue=1,
            ) as socket:
                logger.info("[Stream] Connected to %s", uri)
                await _consume(socket, handler)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            logger.warning(
                "[Stream] Connection error: %s. Reconnecting in %.1fs",
                error,
                config.reconnect_delay_sec,
            )
            await asyncio.sleep(config.reconnect_delay_sec)
