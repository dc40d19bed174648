from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from openai import OpenAI

from utils.media_utils import wav_duration


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini-tts"
DEFAULT_VOICE = "alloy"


@dataclass
class SpeechResult:
    audio_bytes: bytes
    content_type: str
    model: str
    voice: str
    text: str
    duration: float | None = None


def _get_client() -> OpenAI:
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key)


def generate_speech(
    text: str,
    voice: str | None = None,
    model: str | None = None,
    instructions: str | None = None,
) -> SpeechResult:
    if not text.strip():
        raise ValueError("Text is required")

    selected_voice = voice or os.getenv("TTS_VOICE", DEFAULT_VOICE)
    selected_model = model or os.getenv("TTS_MODEL", DEFAULT_MODEL)

    request_payload = {
        "model": selected_model,
        "voice": selected_voice,
        "input": text.strip(),
        "response_format": "wav",
    }
    if instructions:
        request_payload["instructions"] = instructions

    client = _get_client()
    response = client.audio.speech.create(**request_payload)
    audio_bytes = response.content
    if not audio_bytes:
        raise RuntimeError("Speech response did not include audio")

    logger.info(
        f"Generated speech with {selected_model}/{selected_voice} "
        f"({len(audio_bytes)} bytes)"
    )
    return SpeechResult(
        audio_bytes=audio_bytes,
        content_type="audio/wav",
        model=selected_model,
        voice=selected_voice,
        text=text.strip(),
        duration=wav_duration(audio_bytes),
    )
