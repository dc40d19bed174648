from __future__ import annotations

import base64

import pytest

from utils import image_provider, veo_provider


def test_extract_image_url_from_openrouter_message() -> None:
    response = {
        "choices": [
            {
                "message": {
                    "content": "",
                    "images": [{"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}],
                }
            }
        ]
    }

    assert image_provider.extract_image_url(response) == "data:image/png;base64,AAAA"
    assert image_provider.extract_image_url({"choices": []}) is None


def test_decode_image_payload_data_url() -> None:
    encoded = base64.b64encode(b"pixels").decode()

    data, content_type = image_provider.decode_image_payload(f"data:image/webp;base64,{encoded}")

    assert data == b"pixels"
    assert content_type == "image/webp"


def test_decode_image_payload_rejects_unknown_scheme() -> None:
    with pytest.raises(RuntimeError):
        image_provider.decode_image_payload("ftp://example.com/a.png")


def test_generate_image_requires_prompt() -> None:
    with pytest.raises(ValueError):
        image_provider.generate_image("   ")


def test_extract_video_uri_variants() -> None:
    rest_shape = {
        "response": {
            "generateVideoResponse": {
                "generatedSamples": [{"video": {"uri": "https://example.com/a.mp4"}}]
            }
        }
    }
    sdk_shape = {"response": {"generatedVideos": [{"video": {"uri": "https://example.com/b.mp4"}}]}}

    assert veo_provider.extract_video_uri(rest_shape) == "https://example.com/a.mp4"
    assert veo_provider.extract_video_uri(sdk_shape) == "https://example.com/b.mp4"
    assert veo_provider.extract_video_uri({"response": {}}) is None


def test_generate_video_forces_eight_seconds_for_1080p(monkeypatch) -> None:
    requests: list[tuple] = []

    def _fake_request(method, url, payload=None):
        requests.append((method, url, payload))
        return {"name": "operations/123"}

    monkeypatch.setattr(veo_provider, "_request_json", _fake_request)
    monkeypatch.setattr(
        veo_provider,
        "_wait_for_operation",
        lambda name, timeout, interval: {
            "done": True,
            "response": {"generatedVideos": [{"video": {"uri": "https://example.com/v.mp4"}}]},
        },
    )
    monkeypatch.setattr(veo_provider, "_download", lambda uri: (b"video", "video/mp4"))

    result = veo_provider.generate_video("city at night", duration_seconds=4, resolution="1080p")

    assert result.duration_seconds == 8
    assert requests[0][2]["parameters"]["durationSeconds"] == 8
    assert result.video_bytes == b"video"
    assert result.metadata["operation_name"] == "operations/123"


def test_generate_video_surfaces_operation_error(monkeypatch) -> None:
    monkeypatch.setattr(veo_provider, "_request_json", lambda *a, **k: {"name": "operations/9"})
    monkeypatch.setattr(
        veo_provider,
        "_wait_for_operation",
        lambda name, timeout, interval: {"done": True, "error": {"code": 400, "message": "blocked"}},
    )

    with pytest.raises(RuntimeError, match="blocked"):
        veo_provider.generate_video("anything")
