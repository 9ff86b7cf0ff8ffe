"""Flask relay that turns uploaded audio into LRC lyrics via Gemini."""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import mimetypes
import re
import uuid
from pathlib import Path
from typing import Iterator

from flask import Flask, jsonify, render_template, request
from flask_cors import CORS
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException

from audio_to_lrc.config import RelayConfig, load_config
from audio_to_lrc.gemini import GeminiTranscriber, TranscriptionError

LOGGER = logging.getLogger("audio_to_lrc.relay")

API_KEY_FIELD = "apiKey"
FILE_FIELD = "file"

METHOD_NOT_ALLOWED_MESSAGE = "Method Not Allowed"
PARSE_ERROR_MESSAGE = "Error parsing form data"
PROCESSING_ERROR_MESSAGE = "An error occurred while processing the audio"

AUDIO_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
}
DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_SUFFIX = ".dat"
SAFE_SUFFIX_PATTERN = re.compile(r"^\.[a-z0-9]{1,8}$")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class UploadParseError(ValueError):
    """Raised when the multipart body lacks the credential or the audio part."""


@dataclasses.dataclass(frozen=True)
class UploadRequest:
    api_key: str
    upload: FileStorage
    filename: str
    mime_type: str


def resolve_mime_type(filename: str, declared: str | None) -> str:
    """Pick the media type to tag the provider upload with.

    Browsers sometimes send application/octet-stream for audio files, so a
    declared type is only trusted when it is an audio/* type. Otherwise the
    extension decides.
    """
    declared_type = (declared or "").split(";", 1)[0].strip().lower()
    if declared_type.startswith("audio/"):
        return declared_type
    extension = Path(filename).suffix.lower()
    if extension in AUDIO_MIME_TYPES:
        return AUDIO_MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or declared_type or DEFAULT_MIME_TYPE


def temp_suffix(filename: str, mime_type: str) -> str:
    """Gets a file extension for the temporary copy of an upload."""
    extension = Path(filename).suffix.lower()
    if SAFE_SUFFIX_PATTERN.match(extension):
        return extension
    for known_extension, known_type in AUDIO_MIME_TYPES.items():
        if known_type == mime_type:
            return known_extension
    guessed = mimetypes.guess_extension(mime_type)
    return guessed if guessed else DEFAULT_SUFFIX


def parse_upload_request(incoming) -> UploadRequest:
    """Extract the credential and the audio part from a multipart request."""
    try:
        api_key = incoming.form.get(API_KEY_FIELD, "")
        upload = incoming.files.get(FILE_FIELD)
    except (HTTPException, ValueError) as exc:
        raise UploadParseError(f"unreadable multipart body: {exc}") from exc
    if not api_key.strip():
        raise UploadParseError(f"missing form field {API_KEY_FIELD!r}")
    if upload is None or not upload.filename:
        raise UploadParseError(f"missing file part {FILE_FIELD!r}")
    return UploadRequest(
        api_key=api_key.strip(),
        upload=upload,
        filename=upload.filename,
        mime_type=resolve_mime_type(upload.filename, upload.mimetype),
    )


@contextlib.contextmanager
def saved_upload(upload: FileStorage, upload_dir: Path, suffix: str) -> Iterator[Path]:
    """Write an upload to a unique temp path and remove it on exit."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    temp_path = upload_dir / f"temp_audio_{uuid.uuid4()}{suffix}"
    try:
        upload.save(temp_path)
        LOGGER.debug("Audio saved to %s", temp_path)
        yield temp_path
    finally:
        temp_path.unlink(missing_ok=True)
        LOGGER.debug("Cleaned up temp file %s", temp_path)


def configure_logging(level: str) -> None:
    """Attach a root handler if none exists and apply level to our loggers."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("audio_to_lrc").setLevel(level)


def create_app(config: RelayConfig | None = None, transcriber=None) -> Flask:
    """Build the relay application.

    ``transcriber`` needs ``upload(api_key, path, mime_type)`` returning a
    file handle and ``generate(api_key, handle)`` returning the LRC text. It
    defaults to a GeminiTranscriber built from ``config``.
    """
    if config is None:
        config = load_config()
    configure_logging(config.log_level)
    if transcriber is None:
        transcriber = GeminiTranscriber(
            model_name=config.model_name,
            prompt=config.prompt,
            file_active_timeout_seconds=config.file_active_timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
            request_timeout_seconds=config.request_timeout_seconds,
        )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes
    CORS(app, origins=list(config.allowed_origins))

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": METHOD_NOT_ALLOWED_MESSAGE}), 405

    @app.route("/", methods=["GET"])
    def index():
        return render_template("index.html")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/process-audio", methods=["POST"])
    def process_audio():
        try:
            upload_request = parse_upload_request(request)
        except UploadParseError as exc:
            LOGGER.warning("Rejected upload: %s", exc)
            return jsonify({"error": PARSE_ERROR_MESSAGE}), 500

        suffix = temp_suffix(upload_request.filename, upload_request.mime_type)
        LOGGER.info(
            "Processing %s as %s", upload_request.filename, upload_request.mime_type
        )
        try:
            with saved_upload(upload_request.upload, config.upload_dir, suffix) as temp_path:
                handle = transcriber.upload(
                    upload_request.api_key, temp_path, upload_request.mime_type
                )
                lrc_content = transcriber.generate(upload_request.api_key, handle)
                if not lrc_content or not lrc_content.strip():
                    raise TranscriptionError("provider returned an empty transcript")
        except Exception:
            LOGGER.exception("Failed to transcribe %s", upload_request.filename)
            return jsonify({"error": PROCESSING_ERROR_MESSAGE}), 500

        LOGGER.info(
            "Transcribed %s (%d characters)", upload_request.filename, len(lrc_content)
        )
        return jsonify({"lrcContent": lrc_content}), 200

    return app


def main() -> int:
    config = load_config()
    app = create_app(config)
    app.run(host=config.host, port=config.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
