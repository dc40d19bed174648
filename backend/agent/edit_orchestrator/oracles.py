"""External decision and generation services used by the pipeline.

The orchestrator, executor and verifier only see the three Protocols below;
the OpenRouter / provider-backed classes are the production implementations
and tests substitute hand-written fakes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Protocol

from openai import AsyncOpenAI

from utils import image_provider, speech_provider, veo_provider
from utils.media_utils import media_duration, save_media

from .actions import ToolAction
from .prompts import (
    RESOLVER_SYSTEM_PROMPT,
    VERIFIER_SYSTEM_PROMPT,
    build_resolution_prompt,
    build_verification_prompt,
)
from .tools import TOOLS, tool_call_to_action
from .types import GeneratedMedia, JudgmentRequest, PlanStep, VerificationResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_RESOLVER_MODEL = "google/gemini-3-flash-preview"
DEFAULT_JUDGE_MODEL = "google/gemini-3-flash-preview"


# =============================================================================
# PROTOCOLS
# =============================================================================


class IntentResolver(Protocol):
    async def resolve(
        self,
        step: PlanStep,
        timeline_summary: str,
    ) -> ToolAction | Mapping[str, Any] | None:
        """Return at most one action for the step, or None if it cannot be resolved."""
        ...


class MediaGenerator(Protocol):
    async def generate_speech(
        self, text: str, voice: str | None = None
    ) -> GeneratedMedia: ...

    async def generate_image(
        self, prompt: str, aspect_ratio: str = "16:9"
    ) -> GeneratedMedia: ...

    async def generate_video(
        self, prompt: str, aspect_ratio: str = "16:9", duration_seconds: int = 4
    ) -> GeneratedMedia: ...


class Judge(Protocol):
    async def judge(self, request: JudgmentRequest) -> VerificationResult: ...


# =============================================================================
# OPENROUTER IMPLEMENTATIONS
# =============================================================================


def _get_client() -> AsyncOpenAI:
    """Get OpenRouter client."""
    return AsyncOpenAI(
        base_url=os.getenv("OPENROUTER_BASE_URL", DEFAULT_BASE_URL),
        api_key=os.getenv("OPENROUTER_API_KEY", ""),
    )


class OpenRouterIntentResolver:
    """Resolve plan steps with a function-calling chat completion."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self._client = client
        self.model = model or os.getenv("RESOLVER_MODEL", DEFAULT_RESOLVER_MODEL)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _get_client()
        return self._client

    async def resolve(
        self,
        step: PlanStep,
        timeline_summary: str,
    ) -> dict[str, Any] | None:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": RESOLVER_SYSTEM_PROMPT},
                {"role": "user", "content": build_resolution_prompt(step, timeline_summary)},
            ],
            tools=TOOLS,
            tool_choice="auto",
        )

        message = response.choices[0].message
        if not message.tool_calls:
            logger.info(
                f"No tool call for step {step.id}: {(message.content or '')[:200]}"
            )
            return None

        if len(message.tool_calls) > 1:
            logger.warning(
                f"Resolver returned {len(message.tool_calls)} tool calls for step "
                f"{step.id}; using the first"
            )

        tool_call = message.tool_calls[0]
        return tool_call_to_action(
            tool_call.function.name,
            tool_call.function.arguments,
            reasoning=message.content or step.reasoning,
            timestamp=step.timestamp,
        )


class OpenRouterJudge:
    """Judge before/after clip snapshots with a JSON-mode chat completion."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self._client = client
        self.model = model or os.getenv("JUDGE_MODEL", DEFAULT_JUDGE_MODEL)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _get_client()
        return self._client

    async def judge(self, request: JudgmentRequest) -> VerificationResult:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": VERIFIER_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_verification_prompt(
                        request.intent,
                        request.operation,
                        request.before,
                        request.after,
                    ),
                },
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or ""
        return VerificationResult.model_validate(_parse_json_object(content))


def _parse_json_object(content: str) -> dict[str, Any]:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        json_match = re.search(r"\{[\s\S]*\}", content)
        if not json_match:
            raise ValueError(f"Judge returned no JSON object: {content[:200]}")
        payload = json.loads(json_match.group(0))
    if not isinstance(payload, dict):
        raise ValueError("Judge response is not a JSON object")
    return payload


# =============================================================================
# MEDIA GENERATION
# =============================================================================


class ProviderMediaGenerator:
    """Generate media with the provider clients and store it on disk.

    Provider calls are blocking, so they run in a worker thread. The returned
    uri is the saved file's URI.
    """

    def __init__(self, output_dir: Path | None = None):
        self.output_dir = output_dir

    async def _store(self, data: bytes, content_type: str, prefix: str) -> tuple[Path, float | None]:
        path = await asyncio.to_thread(
            save_media, data, content_type, prefix, self.output_dir
        )
        duration = await asyncio.to_thread(media_duration, path, content_type)
        return path, duration

    async def generate_speech(
        self, text: str, voice: str | None = None
    ) -> GeneratedMedia:
        result = await asyncio.to_thread(speech_provider.generate_speech, text, voice)
        path, duration = await self._store(result.audio_bytes, result.content_type, "vo")
        return GeneratedMedia(
            uri=path.resolve().as_uri(),
            content_type=result.content_type,
            duration=result.duration or duration,
        )

    async def generate_image(
        self, prompt: str, aspect_ratio: str = "16:9"
    ) -> GeneratedMedia:
        result = await asyncio.to_thread(
            image_provider.generate_image, prompt, aspect_ratio
        )
        path = await asyncio.to_thread(
            save_media, result.image_bytes, result.content_type, "img", self.output_dir
        )
        # Stills have no intrinsic length; the caller picks a display duration.
        return GeneratedMedia(
            uri=path.resolve().as_uri(),
            content_type=result.content_type,
            duration=None,
        )

    async def generate_video(
        self, prompt: str, aspect_ratio: str = "16:9", duration_seconds: int = 4
    ) -> GeneratedMedia:
        result = await asyncio.to_thread(
            veo_provider.generate_video,
            prompt,
            aspect_ratio,
            duration_seconds,
        )
        path, duration = await self._store(result.video_bytes, result.content_type, "tr")
        return GeneratedMedia(
            uri=path.resolve().as_uri(),
            content_type=result.content_type,
            duration=duration or float(result.duration_seconds),
        )
