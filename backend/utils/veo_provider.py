from __future__ import annotations

import json
import logging
import os
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any


logger = logging.getLogger(__name__)

GOOGLE_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_VEO_MODEL = "veo-3.1-fast-generate-preview"
DEFAULT_TIMEOUT_SECONDS = 900
DEFAULT_POLL_INTERVAL_SECONDS = 10.0

SUPPORTED_ASPECT_RATIOS = ("16:9", "9:16")
# Reference frames and high resolutions only render 8 second clips.
FIXED_DURATION_RESOLUTIONS = ("1080p", "4k")


@dataclass
class VeoVideoResult:
    video_bytes: bytes
    content_type: str
    model: str
    prompt: str
    duration_seconds: int
    source_uri: str
    metadata: dict[str, Any] = field(default_factory=dict)


def generate_video(
    prompt: str,
    aspect_ratio: str = "16:9",
    duration_seconds: int = 4,
    resolution: str = "720p",
    model: str | None = None,
    timeout_seconds: int | None = None,
    poll_interval_seconds: float | None = None,
) -> VeoVideoResult:
    if not prompt.strip():
        raise ValueError("Prompt is required")

    selected_model = model or os.getenv("VEO_MODEL", DEFAULT_VEO_MODEL)
    selected_model = selected_model.strip().removeprefix("models/")
    if not selected_model:
        raise ValueError("Veo model name is required")

    if aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
        logger.warning(f"Unsupported aspect ratio {aspect_ratio!r}, using 16:9")
        aspect_ratio = "16:9"
    if resolution in FIXED_DURATION_RESOLUTIONS and duration_seconds != 8:
        logger.warning(f"Forcing 8s duration for {resolution} output")
        duration_seconds = 8

    request_body = {
        "instances": [{"prompt": prompt.strip()}],
        "parameters": {
            "aspectRatio": aspect_ratio,
            "resolution": resolution,
            "durationSeconds": duration_seconds,
            "numberOfVideos": 1,
        },
    }

    operation = _request_json(
        "POST",
        f"{GOOGLE_API_BASE_URL}/models/{selected_model}:predictLongRunning",
        request_body,
    )
    operation_name = str(operation.get("name") or "")
    if not operation_name:
        raise RuntimeError("Veo did not return a long-running operation name")

    result = _wait_for_operation(
        operation_name,
        timeout_seconds
        or int(os.getenv("VEO_GENERATION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        poll_interval_seconds
        or float(os.getenv("VEO_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)),
    )
    if result.get("error"):
        raise RuntimeError(_format_error(result["error"]))

    video_uri = extract_video_uri(result)
    if not video_uri:
        raise RuntimeError("Veo completed but did not return a generated video URI")

    video_bytes, content_type = _download(video_uri)
    logger.info(f"Generated {duration_seconds}s video with {selected_model}")
    return VeoVideoResult(
        video_bytes=video_bytes,
        content_type=content_type,
        model=selected_model,
        prompt=prompt.strip(),
        duration_seconds=duration_seconds,
        source_uri=video_uri,
        metadata={"operation_name": operation_name, "resolution": resolution},
    )


def _wait_for_operation(
    operation_name: str,
    timeout_seconds: int,
    poll_interval_seconds: float,
) -> dict[str, Any]:
    deadline = time.monotonic() + timeout_seconds
    url = f"{GOOGLE_API_BASE_URL}/{urllib.parse.quote(operation_name, safe='/')}"

    while True:
        result = _request_json("GET", url)
        if result.get("done"):
            return result
        if time.monotonic() >= deadline:
            raise TimeoutError(
                f"Timed out waiting for Veo generation after {timeout_seconds}s"
            )
        time.sleep(poll_interval_seconds)


def _request_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    request = urllib.request.Request(url=url, data=data, method=method)
    request.add_header("x-goog-api-key", _google_api_key())
    if data is not None:
        request.add_header("Content-Type", "application/json")

    try:
        with urllib.request.urlopen(request, timeout=120) as response:
            parsed = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        details = exc.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"Veo request failed ({exc.code}): {details[:500]}") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError("Unexpected non-object response from Veo API")
    return parsed


def _download(video_uri: str) -> tuple[bytes, str]:
    request = urllib.request.Request(video_uri, method="GET")
    request.add_header("x-goog-api-key", _google_api_key())
    with urllib.request.urlopen(request, timeout=180) as response:
        payload = response.read()
        content_type = response.headers.get("Content-Type", "video/mp4")
    return payload, content_type.split(";", 1)[0].strip() or "video/mp4"


def extract_video_uri(result: dict[str, Any]) -> str | None:
    response = result.get("response") or {}
    if not isinstance(response, dict):
        return None

    candidates = (
        response.get("generateVideoResponse", {}).get("generatedSamples"),
        response.get("generatedVideos"),
        response.get("generated_videos"),
    )
    for samples in candidates:
        if not isinstance(samples, list) or not samples:
            continue
        video = samples[0].get("video") if isinstance(samples[0], dict) else None
        if isinstance(video, dict) and video.get("uri"):
            return str(video["uri"])
    return None


def _google_api_key() -> str:
    key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY", "")
    key = key.strip().strip('"').strip("'")
    if not key:
        raise RuntimeError("GEMINI_API_KEY or GOOGLE_API_KEY must be set")
    return key


def _format_error(error_payload: Any) -> str:
    if not isinstance(error_payload, dict):
        return "Veo generation failed"
    message = error_payload.get("message")
    code = error_payload.get("code")
    if message and code is not None:
        return f"Veo generation failed ({code}): {message}"
    if message:
        return f"Veo generation failed: {message}"
    return "Veo generation failed"
