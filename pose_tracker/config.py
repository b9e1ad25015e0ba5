from __future__ import annotations

import os
import shlex
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = PACKAGE_DIR.parent
ENV_PATH = PROJECT_DIR / ".env"


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        if line.startswith("export "):
            line = line[len("export ") :].strip()

        key, value = line.split("=", 1)
        key = key.strip()

        lexer = shlex.shlex(value.strip(), posix=True)
        lexer.whitespace_split = True
        lexer.commenters = "#"
        parsed = " ".join(list(lexer)).strip().strip('"').strip("'")

        if key and key not in os.environ:
            os.environ[key] = parsed


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


_load_env_file(ENV_PATH)

DEFAULT_EXERCISE = os.getenv("DEFAULT_EXERCISE", "squats")

POSE_TASK_MODEL = os.getenv(
    "POSE_TASK_MODEL",
    str(PROJECT_DIR / "models" / "pose_landmarker_heavy.task"),
)
POSE_MIN_DETECTION_CONFIDENCE = _float_env("POSE_MIN_DETECTION_CONFIDENCE", 0.5)
DROP_FRAMES_IF_BUSY = _bool_env("DROP_FRAMES_IF_BUSY", True)

STREAM_MODE = os.getenv("STREAM_MODE", "off").strip().lower()
STREAM_HOST = os.getenv("STREAM_HOST", "0.0.0.0")
STREAM_PORT = _int_env("STREAM_PORT", 8765)
STREAM_PATH = os.getenv("STREAM_PATH", "/skeleton")
STREAM_SCHEME = os.getenv("STREAM_SCHEME", "ws").strip().lower()
STREAM_RECONNECT_DELAY_SEC = _float_env("STREAM_RECONNECT_DELAY_SEC", 1.0)

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = _int_env("API_PORT", 8000)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
LOG_EVERY_N_FRAMES = max(_int_env("LOG_EVERY_N_FRAMES", 30), 1)

POSE_MIN_DETECTION_CONFIDENCE = max(0.0, min(1.0, POSE_MIN_DETECTION_CONFIDENCE))
STREAM_RECONNECT_DELAY_SEC = max(0.1, STREAM_RECONNECT_DELAY_SEC)
if STREAM_MODE not in {"server", "client", "off"}:
    STREAM_MODE = "off"
if STREAM_SCHEME in {"http", "ws"}:
    STREAM_SCHEME = "ws"
elif STREAM_SCHEME in {"https", "wss"}:
    STREAM_SCHEME = "wss"
else:
    STREAM_SCHEME = "ws"
