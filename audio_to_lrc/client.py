"""Command-line client for the LRC relay.

Run with: audio-to-lrc-client --api-key <key> song.mp3
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import requests
from dotenv import load_dotenv

LOGGER = logging.getLogger("audio_to_lrc.client")

DEFAULT_URL = "http://127.0.0.1:5000"
API_KEY_ENV = "GEMINI_API_KEY"
ALLOWED_EXTENSIONS = (".mp3", ".wav", ".aac", ".flac")
LRC_FILENAME = "lyrics.lrc"
CLIENT_ERROR_MESSAGE = "An error occurred while processing the audio."


class ClientError(RuntimeError):
    """Raised when the audio could not be turned into LRC text."""


def validate_submission(api_key: str, audio_path: Path) -> None:
    """Check required fields before anything goes over the network."""
    if not api_key or not api_key.strip():
        raise ClientError("API key is required")
    if audio_path.suffix.lower() not in ALLOWED_EXTENSIONS:
        raise ClientError(
            f"unsupported audio file {audio_path.name}, expected one of "
            + ", ".join(ALLOWED_EXTENSIONS)
        )
    if not audio_path.is_file():
        raise ClientError(f"file not found: {audio_path}")


def submit_audio(
    base_url: str,
    api_key: str,
    audio_path: Path,
    session=None,
    timeout: float | None = None,
) -> str:
    """Send the audio to the relay and return the LRC text."""
    audio_path = Path(audio_path)
    validate_submission(api_key, audio_path)
    http = session if session is not None else requests
    url = base_url.rstrip("/") + "/process-audio"

    try:
        with audio_path.open("rb") as audio_file:
            response = http.post(
                url,
                data={"apiKey": api_key},
                files={"file": (audio_path.name, audio_file)},
                timeout=timeout,
            )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, OSError, ValueError) as exc:
        LOGGER.debug("Relay request failed: %s", exc)
        raise ClientError(CLIENT_ERROR_MESSAGE) from exc

    lrc_content = payload.get("lrcContent") if isinstance(payload, dict) else None
    if not isinstance(lrc_content, str):
        raise ClientError(CLIENT_ERROR_MESSAGE)
    return lrc_content


def save_lrc(lrc_content: str, output_dir: Path) -> Path:
    """Write the LRC text verbatim to lyrics.lrc in output_dir."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / LRC_FILENAME
    with target.open("w", encoding="utf-8", newline="") as handle:
        handle.write(lrc_content)
    return target


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert an audio file to LRC lyrics through the relay."
    )
    parser.add_argument("audio", type=Path, help="mp3, wav, aac or flac file")
    parser.add_argument("--url", default=DEFAULT_URL, help="relay base URL")
    parser.add_argument(
        "--api-key",
        default=None,
        help=f"Gemini API key (defaults to ${API_KEY_ENV})",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help=f"directory for {LRC_FILENAME}",
    )
    parser.add_argument("--timeout", type=float, default=None)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    args = parse_args(argv)
    api_key = args.api_key if args.api_key is not None else os.environ.get(API_KEY_ENV, "")

    try:
        lrc_content = submit_audio(args.url, api_key, args.audio, timeout=args.timeout)
    except ClientError as exc:
        LOGGER.error("%s", exc)
        return 1

    print(lrc_content)
    try:
        target = save_lrc(lrc_content, args.output_dir)
    except OSError as exc:
        LOGGER.debug("Could not write %s: %s", LRC_FILENAME, exc)
        LOGGER.error("%s", CLIENT_ERROR_MESSAGE)
        return 1
    LOGGER.info("Saved %s", target)
    return 0


if __name__ == "__main__":
    sys.exit(main())
