"""Runtime configuration for the LRC relay."""

from __future__ import annotations

import dataclasses
import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
DEFAULT_MODEL_NAME = "gemini-2.5-flash"
DEFAULT_MAX_UPLOAD_BYTES = 200 * 1024 * 1024
DEFAULT_FILE_ACTIVE_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_LOG_LEVEL = "INFO"

LRC_PROMPT = "Generate a transcript of the audio with timestamps in LRC format."

HOST_ENV = "AUDIO_TO_LRC_HOST"
PORT_ENV = "PORT"
MODEL_ENV = "AUDIO_TO_LRC_MODEL"
UPLOAD_DIR_ENV = "AUDIO_TO_LRC_UPLOAD_DIR"
MAX_UPLOAD_BYTES_ENV = "AUDIO_TO_LRC_MAX_UPLOAD_BYTES"
FILE_ACTIVE_TIMEOUT_ENV = "AUDIO_TO_LRC_FILE_ACTIVE_TIMEOUT_SECONDS"
REQUEST_TIMEOUT_ENV = "AUDIO_TO_LRC_REQUEST_TIMEOUT_SECONDS"
ALLOWED_ORIGINS_ENV = "AUDIO_TO_LRC_ALLOWED_ORIGINS"
LOG_LEVEL_ENV = "AUDIO_TO_LRC_LOG_LEVEL"


@dataclasses.dataclass(frozen=True)
class RelayConfig:
    """Relay configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    model_name: str = DEFAULT_MODEL_NAME
    prompt: str = LRC_PROMPT
    upload_dir: Path = dataclasses.field(
        default_factory=lambda: Path(tempfile.gettempdir())
    )
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    file_active_timeout_seconds: float = DEFAULT_FILE_ACTIVE_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    request_timeout_seconds: float | None = None
    allowed_origins: tuple[str, ...] = ("*",)
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not self.host.strip():
            raise ValueError("host must be non-empty")
        if self.port <= 0 or self.port > 65535:
            raise ValueError("port must be between 1 and 65535")
        if not self.model_name.strip():
            raise ValueError("model name must be non-empty")
        if not self.prompt.strip():
            raise ValueError("prompt must be non-empty")
        if self.max_upload_bytes <= 0:
            raise ValueError("max upload bytes must be positive")
        if self.file_active_timeout_seconds < 0:
            raise ValueError("file active timeout must be non-negative")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll interval must be positive")
        if self.request_timeout_seconds is not None and self.request_timeout_seconds <= 0:
            raise ValueError("request timeout must be positive")
        if not self.allowed_origins:
            raise ValueError("allowed origins must be non-empty")


def _read_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _read_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _read_origins(raw: str) -> tuple[str, ...]:
    origins = tuple(item.strip() for item in raw.split(",") if item.strip())
    return origins or ("*",)


def load_config() -> RelayConfig:
    """Build a RelayConfig from the environment (and a .env file, if any)."""
    load_dotenv()
    upload_dir = os.environ.get(UPLOAD_DIR_ENV, "").strip()
    return RelayConfig(
        host=os.environ.get(HOST_ENV, DEFAULT_HOST).strip() or DEFAULT_HOST,
        port=_read_int(PORT_ENV, DEFAULT_PORT),
        model_name=os.environ.get(MODEL_ENV, DEFAULT_MODEL_NAME).strip()
        or DEFAULT_MODEL_NAME,
        upload_dir=Path(upload_dir) if upload_dir else Path(tempfile.gettempdir()),
        max_upload_bytes=_read_int(MAX_UPLOAD_BYTES_ENV, DEFAULT_MAX_UPLOAD_BYTES),
        file_active_timeout_seconds=_read_float(
            FILE_ACTIVE_TIMEOUT_ENV, DEFAULT_FILE_ACTIVE_TIMEOUT_SECONDS
        ),
        request_timeout_seconds=_read_float(REQUEST_TIMEOUT_ENV, None),
        allowed_origins=_read_origins(os.environ.get(ALLOWED_ORIGINS_ENV, "*")),
        log_level=os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper()
        or DEFAULT_LOG_LEVEL,
    )
