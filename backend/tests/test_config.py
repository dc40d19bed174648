from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

from agent.edit_orchestrator.oracles import OpenRouterIntentResolver, OpenRouterJudge
from utils import media_utils, speech_provider


_DOTENV_KEYS = ("RESOLVER_MODEL", "JUDGE_MODEL", "MEDIA_OUTPUT_DIR", "TTS_VOICE")


def _load_env_file(tmp_path, monkeypatch, body: str) -> None:
    for key in _DOTENV_KEYS:
        # Registers the key with monkeypatch so teardown removes what dotenv writes.
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    env_file = tmp_path / ".env"
    env_file.write_text(body)
    load_dotenv(env_file)


def test_dotenv_loaded_after_import_takes_effect(tmp_path, monkeypatch) -> None:
    media_dir = tmp_path / "generated"
    _load_env_file(
        tmp_path,
        monkeypatch,
        "RESOLVER_MODEL=acme/resolver-large\n"
        "JUDGE_MODEL=acme/judge-small\n"
        f"MEDIA_OUTPUT_DIR={media_dir}\n",
    )

    assert OpenRouterIntentResolver().model == "acme/resolver-large"
    assert OpenRouterJudge().model == "acme/judge-small"
    assert media_utils.media_output_dir() == Path(media_dir)

    path = media_utils.save_media(b"abc", "audio/wav", prefix="vo")
    assert path.parent == Path(media_dir)


def test_explicit_model_beats_environment(tmp_path, monkeypatch) -> None:
    _load_env_file(tmp_path, monkeypatch, "RESOLVER_MODEL=acme/resolver-large\n")

    assert OpenRouterIntentResolver(model="acme/pinned").model == "acme/pinned"


def test_defaults_when_unset(tmp_path, monkeypatch) -> None:
    _load_env_file(tmp_path, monkeypatch, "")

    assert OpenRouterJudge().model == "google/gemini-3-flash-preview"
    assert media_utils.media_output_dir().name == media_utils.DEFAULT_MEDIA_DIR_NAME


def test_tts_voice_read_at_call_time(tmp_path, monkeypatch) -> None:
    _load_env_file(tmp_path, monkeypatch, "TTS_VOICE=verse\n")
    requests: list[dict] = []

    class _FakeSpeech:
        def create(self, **kwargs):
            requests.append(kwargs)
            return type("_Response", (), {"content": b"RIFF-not-really"})()

    class _FakeClient:
        audio = type("_Audio", (), {"speech": _FakeSpeech()})()

    monkeypatch.setattr(speech_provider, "_get_client", lambda: _FakeClient())

    result = speech_provider.generate_speech("Hello there")

    assert requests[0]["voice"] == "verse"
    assert result.voice == "verse"
