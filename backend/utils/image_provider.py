from __future__ import annotations

import base64
import logging
import os
import urllib.request
from dataclasses import dataclass
from typing import Any

from openai import OpenAI


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash-image"


@dataclass
class ImageResult:
    image_bytes: bytes
    content_type: str
    model: str
    prompt: str


def _get_client() -> OpenAI:
    api_key = os.getenv("OPENROUTER_API_KEY", "")
    if not api_key:
        raise RuntimeError("OPENROUTER_API_KEY is not set")
    return OpenAI(
        base_url=os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL),
        api_key=api_key,
    )


def generate_image(
    prompt: str,
    aspect_ratio: str | None = "16:9",
    model: str | None = None,
) -> ImageResult:
    if not prompt.strip():
        raise ValueError("Prompt is required")

    request_payload: dict[str, Any] = {
        "model": model or os.getenv("NANO_BANANA_MODEL", DEFAULT_MODEL),
        "messages": [{"role": "user", "content": prompt.strip()}],
        "modalities": ["image", "text"],
        "stream": False,
    }
    if aspect_ratio:
        request_payload["extra_body"] = {"image_config": {"aspect_ratio": aspect_ratio}}

    client = _get_client()
    response = client.chat.completions.create(**request_payload)

    image_url = extract_image_url(response)
    if not image_url:
        raise RuntimeError("Image response did not include an image")

    image_bytes, content_type = decode_image_payload(image_url)
    logger.info(f"Generated image with {request_payload['model']} ({len(image_bytes)} bytes)")
    return ImageResult(
        image_bytes=image_bytes,
        content_type=content_type,
        model=request_payload["model"],
        prompt=prompt.strip(),
    )


def extract_image_url(response: Any) -> str | None:
    if hasattr(response, "model_dump"):
        data = response.model_dump()
    elif isinstance(response, dict):
        data = response
    else:
        return None

    choices = data.get("choices") or []
    if not choices:
        return None
    message = choices[0].get("message") or {}

    for image in message.get("images") or []:
        if not isinstance(image, dict):
            continue
        image_url = image.get("image_url") or image.get("imageUrl") or {}
        url = image_url.get("url") if isinstance(image_url, dict) else None
        if url:
            return str(url)
        if image.get("url"):
            return str(image["url"])
    return None


def decode_image_payload(image_url: str) -> tuple[bytes, str]:
    if image_url.startswith("data:"):
        header, _, data = image_url.partition(",")
        if not data:
            raise RuntimeError("Invalid data URL in image response")
        content_type = "image/png"
        if ";" in header:
            content_type = header[5:].split(";", 1)[0] or content_type
        return base64.b64decode(data), content_type

    if image_url.startswith("http://") or image_url.startswith("https://"):
        with urllib.request.urlopen(image_url, timeout=90) as response:
            payload = response.read()
            content_type = response.headers.get("Content-Type", "image/png")
            return payload, content_type.split(";", 1)[0].strip() or "image/png"

    raise RuntimeError("Unsupported image payload format")
