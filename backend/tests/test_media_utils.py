from __future__ import annotations

import io
import subprocess
import wave

from utils import media_utils


def _silence(frames: int, sample_rate: int = 24000) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b"\x00\x00" * frames)
    return buffer.getvalue()


def test_wav_duration_of_one_second() -> None:
    wav = _silence(24000)

    assert wav.startswith(b"RIFF")
    assert media_utils.wav_duration(wav) == 1.0


def test_wav_duration_rejects_other_formats() -> None:
    assert media_utils.wav_duration(b"not a wav file") is None


def test_save_media_uses_content_type_extension(tmp_path) -> None:
    path = media_utils.save_media(b"abc", "image/jpeg", prefix="img", output_dir=tmp_path)

    assert path.parent == tmp_path
    assert path.name.startswith("img-")
    assert path.suffix == ".jpg"
    assert path.read_bytes() == b"abc"


def test_extension_for_unknown_type() -> None:
    assert media_utils.extension_for("application/x-made-up") == ".bin"


def test_media_duration_reads_wav_without_ffprobe(tmp_path, monkeypatch) -> None:
    path = tmp_path / "clip.wav"
    path.write_bytes(_silence(12000))

    def _no_ffprobe(*args, **kwargs):
        raise AssertionError("ffprobe should not run for wav")

    monkeypatch.setattr(media_utils.subprocess, "run", _no_ffprobe)

    assert media_utils.media_duration(path, "audio/wav") == 0.5


def test_probe_duration_parses_ffprobe_output(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(
        media_utils.subprocess,
        "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="4.250000\n", stderr=""),
    )

    assert media_utils.probe_duration(tmp_path / "v.mp4") == 4.25


def test_probe_duration_handles_missing_binary(tmp_path, monkeypatch) -> None:
    def _missing(*args, **kwargs):
        raise FileNotFoundError("ffprobe")

    monkeypatch.setattr(media_utils.subprocess, "run", _missing)

    assert media_utils.probe_duration(tmp_path / "v.mp4") is None
