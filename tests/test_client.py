"""Tests for the command-line client."""

from __future__ import annotations

from pathlib import Path

import pytest
import requests

from audio_to_lrc import client
from audio_to_lrc.client import ClientError

LRC_TEXT = "[00:01.00]Hello\n[00:04.00]World"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, json_error: Exception | None = None):
        self.status_code = status_code
        self.payload = payload
        self.json_error = json_error

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.json_error is not None:
            raise self.json_error
        return self.payload


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def post(self, url, data=None, files=None, timeout=None):
        name, handle = files["file"]
        self.calls.append(
            {"url": url, "data": data, "filename": name, "content": handle.read(), "timeout": timeout}
        )
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def song(tmp_path: Path) -> Path:
    path = tmp_path / "song.mp3"
    path.write_bytes(b"ID3fake")
    return path


def test_submit_audio_returns_lrc_and_saves_download(song: Path, tmp_path: Path) -> None:
    session = FakeSession(FakeResponse(payload={"lrcContent": LRC_TEXT}))

    lrc_content = client.submit_audio("http://relay.local/", "valid-key", song, session=session)
    saved = client.save_lrc(lrc_content, tmp_path / "out")

    assert lrc_content == LRC_TEXT
    assert session.calls == [
        {
            "url": "http://relay.local/process-audio",
            "data": {"apiKey": "valid-key"},
            "filename": "song.mp3",
            "content": b"ID3fake",
            "timeout": None,
        }
    ]
    assert saved.name == "lyrics.lrc"
    assert saved.read_bytes() == LRC_TEXT.encode("utf-8")


@pytest.mark.parametrize("api_key", ["", "   "])
def test_empty_api_key_rejected_before_network(song: Path, api_key: str) -> None:
    session = FakeSession(FakeResponse(payload={"lrcContent": LRC_TEXT}))

    with pytest.raises(ClientError, match="API key is required"):
        client.submit_audio("http://relay.local", api_key, song, session=session)

    assert session.calls == []


def test_unsupported_extension_rejected_before_network(tmp_path: Path) -> None:
    clip = tmp_path / "clip.ogg"
    clip.write_bytes(b"OggS")
    session = FakeSession(FakeResponse(payload={"lrcContent": LRC_TEXT}))

    with pytest.raises(ClientError, match="unsupported audio file"):
        client.submit_audio("http://relay.local", "key", clip, session=session)

    assert session.calls == []


def test_missing_file_rejected_before_network(tmp_path: Path) -> None:
    session = FakeSession(FakeResponse(payload={"lrcContent": LRC_TEXT}))

    with pytest.raises(ClientError, match="file not found"):
        client.submit_audio("http://relay.local", "key", tmp_path / "gone.wav", session=session)

    assert session.calls == []


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(FakeResponse(500, {"error": "An error occurred while processing the audio"})),
        FakeSession(error=requests.ConnectionError("refused")),
        FakeSession(FakeResponse(payload=None, json_error=ValueError("not json"))),
        FakeSession(FakeResponse(payload={"error": "nope"})),
        FakeSession(FakeResponse(payload=["unexpected"])),
    ],
    ids=["server-error", "network-error", "malformed-json", "missing-field", "wrong-shape"],
)
def test_failures_collapse_to_generic_error(song: Path, session: FakeSession) -> None:
    with pytest.raises(ClientError) as excinfo:
        client.submit_audio("http://relay.local", "key", song, session=session)

    assert str(excinfo.value) == client.CLIENT_ERROR_MESSAGE
    assert len(session.calls) == 1


def test_main_saves_lyrics(monkeypatch: pytest.MonkeyPatch, song: Path, tmp_path: Path, capsys) -> None:
    captured: dict = {}

    def fake_submit(base_url, api_key, audio_path, session=None, timeout=None):
        captured.update(base_url=base_url, api_key=api_key, audio_path=audio_path)
        return LRC_TEXT

    monkeypatch.setattr(client, "submit_audio", fake_submit)
    out_dir = tmp_path / "out"

    exit_code = client.main(
        ["--url", "http://relay.local", "--api-key", "k", "--output-dir", str(out_dir), str(song)]
    )

    assert exit_code == 0
    assert captured == {"base_url": "http://relay.local", "api_key": "k", "audio_path": song}
    assert (out_dir / "lyrics.lrc").read_text(encoding="utf-8") == LRC_TEXT
    assert LRC_TEXT in capsys.readouterr().out


def test_main_reads_api_key_from_environment(
    monkeypatch: pytest.MonkeyPatch, song: Path, tmp_path: Path
) -> None:
    monkeypatch.setenv(client.API_KEY_ENV, "env-key")
    seen: list[str] = []

    def fake_submit(base_url, api_key, audio_path, session=None, timeout=None):
        seen.append(api_key)
        return LRC_TEXT

    monkeypatch.setattr(client, "submit_audio", fake_submit)

    assert client.main(["--output-dir", str(tmp_path), str(song)]) == 0
    assert seen == ["env-key"]


def test_main_reports_failure(monkeypatch: pytest.MonkeyPatch, song: Path, tmp_path: Path) -> None:
    monkeypatch.delenv(client.API_KEY_ENV, raising=False)
    monkeypatch.setattr(client, "load_dotenv", lambda: False)

    assert client.main(["--output-dir", str(tmp_path), str(song)]) == 1
    assert not (tmp_path / "lyrics.lrc").exists()


def test_unreadable_audio_file_is_a_client_error(
    monkeypatch: pytest.MonkeyPatch, song: Path
) -> None:
    def deny(self, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "open", deny)
    session = FakeSession(FakeResponse(payload={"lrcContent": LRC_TEXT}))

    with pytest.raises(ClientError) as excinfo:
        client.submit_audio("http://relay.local", "key", song, session=session)

    assert str(excinfo.value) == client.CLIENT_ERROR_MESSAGE
    assert session.calls == []


def test_main_reports_unwritable_output(
    monkeypatch: pytest.MonkeyPatch, song: Path, tmp_path: Path
) -> None:
    def fake_submit(base_url, api_key, audio_path, session=None, timeout=None):
        return LRC_TEXT

    def refuse_write(lrc_content, output_dir):
        raise PermissionError(13, "Permission denied", str(output_dir))

    monkeypatch.setattr(client, "submit_audio", fake_submit)
    monkeypatch.setattr(client, "save_lrc", refuse_write)

    assert client.main(["--api-key", "k", "--output-dir", str(tmp_path), str(song)]) == 1
