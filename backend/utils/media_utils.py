"""Utilities for storing and probing generated media."""
from __future__ import annotations

import io
import logging
import mimetypes
import os
import subprocess
import tempfile
import wave
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)

DEFAULT_FFPROBE_PATH = "ffprobe"
DEFAULT_MEDIA_DIR_NAME = "timeline-media"

_EXTENSIONS = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


def extension_for(content_type: str) -> str:
    ext = _EXTENSIONS.get(content_type)
    if ext:
        return ext
    return mimetypes.guess_extension(content_type) or ".bin"


def media_output_dir() -> Path:
    """Directory for generated media, from MEDIA_OUTPUT_DIR or the temp dir."""
    configured = os.getenv("MEDIA_OUTPUT_DIR", "").strip()
    if configured:
        return Path(configured)
    return Path(tempfile.gettempdir()) / DEFAULT_MEDIA_DIR_NAME


def save_media(
    data: bytes,
    content_type: str,
    prefix: str = "media",
    output_dir: Path | None = None,
) -> Path:
    """Write generated media to the output directory under a unique name."""
    target_dir = output_dir or media_output_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"{prefix}-{uuid4().hex[:12]}{extension_for(content_type)}"
    path.write_bytes(data)
    logger.info(f"Saved {content_type} media ({len(data)} bytes) to {path}")
    return path


def wav_duration(data: bytes) -> float | None:
    """Duration of an in-memory WAV file, or None if it is not one."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav_file:
            frames = wav_file.getnframes()
            rate = wav_file.getframerate()
    except (wave.Error, EOFError):
        return None
    if rate <= 0:
        return None
    return frames / float(rate)


def probe_duration(path: Path) -> float | None:
    """
    Get the duration of a media file in seconds using ffprobe.

    Args:
        path: File to inspect

    Returns:
        Duration in seconds, or None if detection fails
    """
    cmd = [
        os.getenv("FFPROBE_PATH", DEFAULT_FFPROBE_PATH),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"ffprobe failed for {path}: {e}")
        return None

    if result.returncode != 0:
        logger.warning(f"ffprobe exited {result.returncode} for {path}")
        return None

    try:
        duration = float(result.stdout.strip())
    except ValueError:
        return None
    return duration if duration > 0 else None


def media_duration(path: Path, content_type: str) -> float | None:
    """Duration of a saved media file; WAV is read directly, others probed."""
    if content_type in ("audio/wav", "audio/x-wav"):
        duration = wav_duration(path.read_bytes())
        if duration:
            return duration
    return probe_duration(path)
