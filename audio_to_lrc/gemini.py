"""Gemini file upload and LRC generation."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from pathlib import Path

import google.generativeai as genai

from audio_to_lrc.config import (
    DEFAULT_FILE_ACTIVE_TIMEOUT_SECONDS,
    DEFAULT_MODEL_NAME,
    DEFAULT_POLL_INTERVAL_SECONDS,
    LRC_PROMPT,
)

LOGGER = logging.getLogger("audio_to_lrc.gemini")

STATE_PROCESSING = "PROCESSING"
STATE_ACTIVE = "ACTIVE"

# genai.configure swaps module-level client state; only the swap is guarded.
_CONFIGURE_LOCK = threading.Lock()


class TranscriptionError(RuntimeError):
    """Raised when the provider fails to store or transcribe the audio."""


@dataclasses.dataclass(frozen=True)
class FileHandle:
    """Reference to a file held by the Gemini File API."""

    name: str
    uri: str
    mime_type: str


def file_client_for(api_key: str):
    """Return a File API client bound to api_key."""
    with _CONFIGURE_LOCK:
        genai.configure(api_key=api_key)
        return genai.client.get_default_file_client()


def generative_client_for(api_key: str):
    """Return a generation client bound to api_key."""
    with _CONFIGURE_LOCK:
        genai.configure(api_key=api_key)
        return genai.client.get_default_generative_client()


class GeminiTranscriber:
    """Uploads audio to the Gemini File API and asks a model for LRC text.

    google-generativeai keeps its credential in module-level state. Each call
    configures the key and takes its own client under a short lock, then
    talks to the provider without holding it, so requests with different
    keys run side by side.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        prompt: str = LRC_PROMPT,
        file_active_timeout_seconds: float = DEFAULT_FILE_ACTIVE_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        request_timeout_seconds: float | None = None,
    ) -> None:
        self._model_name = model_name
        self._prompt = prompt
        self._file_active_timeout_seconds = file_active_timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._request_timeout_seconds = request_timeout_seconds

    def upload(self, api_key: str, path: Path, mime_type: str) -> FileHandle:
        """Upload a local file and wait until the provider can use it."""
        try:
            file_client = file_client_for(api_key)
            LOGGER.info("Uploading %s (%s) to Gemini File API", path.name, mime_type)
            uploaded = file_client.create_file(
                path=str(path),
                mime_type=mime_type,
                display_name=path.name,
            )
            active = self._wait_for_active(file_client, uploaded)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise TranscriptionError(f"file upload failed: {exc}") from exc
        return FileHandle(name=active.name, uri=active.uri, mime_type=active.mime_type)

    def generate(self, api_key: str, handle: FileHandle) -> str:
        """Request an LRC transcript of an uploaded file."""
        contents = [
            {"file_data": {"mime_type": handle.mime_type, "file_uri": handle.uri}},
            self._prompt,
        ]
        request_options = None
        if self._request_timeout_seconds is not None:
            request_options = {"timeout": self._request_timeout_seconds}
        try:
            model = genai.GenerativeModel(self._model_name)
            # GenerativeModel falls back to the shared default client when unset.
            model._client = generative_client_for(api_key)
            LOGGER.info("Generating LRC for %s with %s", handle.uri, self._model_name)
            response = model.generate_content(contents, request_options=request_options)
            # .text raises ValueError when the candidate was blocked or empty.
            text = response.text
        except Exception as exc:
            raise TranscriptionError(f"generation failed: {exc}") from exc
        if not text or not text.strip():
            raise TranscriptionError("generation returned no text")
        return text

    def _wait_for_active(self, file_client, uploaded):
        """Poll the File API until the upload leaves the PROCESSING state."""
        start_time = time.monotonic()
        current = file_client.get_file(name=uploaded.name)
        while current.state.name == STATE_PROCESSING:
            if time.monotonic() - start_time > self._file_active_timeout_seconds:
                raise TranscriptionError(
                    f"file {uploaded.name} still processing after "
                    f"{self._file_active_timeout_seconds} seconds"
                )
            time.sleep(self._poll_interval_seconds)
            current = file_client.get_file(name=uploaded.name)
        if current.state.name != STATE_ACTIVE:
            raise TranscriptionError(
                f"file {uploaded.name} failed to process, state {current.state.name}"
            )
        LOGGER.debug("File %s is ACTIVE", current.name)
        return current
