"""
Image Handler - Image Model Providers

Provides the interface the orchestrator uses to render scenario images, and
the Gemini implementation of it.

Gemini:
- Streams ``streamGenerateContent?alt=sse`` so thinking text arrives
  incrementally and can be surfaced to pollers
- The httpx read timeout acts as an inactivity timeout: a stalled stream is
  abandoned, a stream that keeps producing thinking chunks is not
- Generated PNGs are written to the configured output directory and the
  file path is returned as the image handle

Failure classes:
- TransientImageGenerationError: 429, 5xx, network errors, timeouts (retried)
- ImageModelUnavailableError: no API key or model configured
- ImageGenerationError: anything else (not retried)
"""

import base64
import json
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from firesim.core.config import Settings
from firesim.core.exceptions import (
    ImageGenerationError,
    ImageModelUnavailableError,
    TransientImageGenerationError,
)
from firesim.core.logging_config import get_logger

logger = get_logger("core.image_handler")

ThinkingCallback = Callable[[str], None]

# Stall limit between streamed chunks
INACTIVITY_TIMEOUT_SECONDS = 60.0

# Anything smaller is a placeholder or error payload, not a PNG
MIN_IMAGE_BYTES = 100

SYSTEM_INSTRUCTION = (
    "You are a photorealistic bushfire scenario renderer for Australian fire service training. "
    "Generate a single high-quality image per request. Each image is part of a multi-perspective set "
    "depicting the SAME fire event at the SAME moment in time. Keep the smoke plume, flame intensity, "
    "vegetation state, weather and terrain identical across all perspectives. "
    "Use Australian flora (eucalyptus, banksia, spinifex) and realistic fire behaviour. "
    "Render only landscape, vegetation, fire and smoke, with no vehicles and no text overlays."
)

REFERENCE_PREFIX = (
    "The attached image is an already generated view of this same fire at this same moment. "
    "Match its smoke plume, flame intensity, vegetation, sky and lighting exactly while "
    "rendering the new camera position described below.\n\n"
)


@dataclass
class ImageGenerationResult:
    """Successful image model output."""
    image_handle: str
    model_id: str
    seed: Optional[int] = None
    thinking_text: Optional[str] = None
    model_text: Optional[str] = None
    generation_time_ms: int = 0


class ImageGenerator(ABC):
    """Interface for image model providers."""

    model_id: str = "unknown"
    max_concurrent: int = 1

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        reference_image: Optional[str] = None,
        seed: Optional[int] = None,
        on_thinking: Optional[ThinkingCallback] = None
    ) -> ImageGenerationResult:
        """
        Render one image.

        Args:
            prompt: Final prompt text
            reference_image: Handle of an earlier image to keep the scene consistent
            seed: Seed shared by every view of a job
            on_thinking: Called with the accumulated thinking text as it streams

        Raises:
            TransientImageGenerationError: for retryable failures
            ImageGenerationError: for permanent failures
        """
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether the provider is configured and reachable."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class GeminiImageGenerator(ImageGenerator):
    """
    Image generation through the Gemini streaming API.

    Usage:
        generator = GeminiImageGenerator.from_settings(get_settings())
        result = await generator.generate(prompt, seed=1234)
    """

    max_concurrent = 2

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-pro-image-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        output_dir: Path = Path("output/images"),
        client: Optional[httpx.AsyncClient] = None,
        inactivity_timeout: float = INACTIVITY_TIMEOUT_SECONDS
    ):
        self.api_key = api_key
        self.model_id = model
        self.base_url = base_url.rstrip("/")
        self.output_dir = Path(output_dir)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, read=inactivity_timeout)
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> 'GeminiImageGenerator':
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.image_model,
            base_url=settings.image_api_base_url,
            output_dir=settings.image_output_dir,
        )

    @property
    def is_pro_model(self) -> bool:
        """Gemini 3 models support thinking output and 2K images."""
        return "gemini-3" in self.model_id.lower()

    async def is_available(self) -> bool:
        return bool(self.api_key and self.model_id)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        reference_image: Optional[str] = None,
        seed: Optional[int] = None,
        on_thinking: Optional[ThinkingCallback] = None
    ) -> ImageGenerationResult:
        if not await self.is_available():
            raise ImageModelUnavailableError("Gemini API key or model not configured")

        start_time = time.time()
        body = self._build_body(prompt, reference_image, seed)
        url = f"{self.base_url}/models/{self.model_id}:streamGenerateContent"

        parts: List[Dict[str, Any]] = []
        thinking: List[str] = []

        try:
            async with self._client.stream(
                "POST",
                url,
                params={"alt": "sse"},
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json=body,
            ) as response:
                if response.status_code != 200:
                    text = (await response.aread()).decode("utf-8", errors="replace")
                    self._raise_for_status(response.status_code, text)

                async for payload in _iter_sse_payloads(response.aiter_lines()):
                    for part in _candidate_parts(payload):
                        parts.append(part)
                        if part.get("thought") and part.get("text"):
                            thinking.append(part["text"])
                            if on_thinking:
                                on_thinking("\n".join(thinking))

        except httpx.TimeoutException as e:
            raise TransientImageGenerationError(f"Image model stream timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientImageGenerationError(f"Image model unreachable: {e}") from e

        thinking_text = "\n".join(thinking) if thinking else None
        image_b64, model_text = _extract_image(parts)

        if not image_b64:
            raise ImageGenerationError(
                "Image model returned no image data",
                {"model": self.model_id, "parts": len(parts)},
                thinking_text=thinking_text or model_text,
            )

        image_data = base64.b64decode(image_b64)
        if len(image_data) < MIN_IMAGE_BYTES:
            raise ImageGenerationError(
                f"Generated image is suspiciously small ({len(image_data)} bytes)",
                thinking_text=thinking_text,
            )

        output_path = self._save_image(image_data)
        generation_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Generated image with {self.model_id} in {generation_time_ms}ms")

        return ImageGenerationResult(
            image_handle=str(output_path),
            model_id=self.model_id,
            seed=seed,
            thinking_text=thinking_text or model_text,
            model_text=model_text,
            generation_time_ms=generation_time_ms,
        )

    def _build_body(self, prompt: str, reference_image: Optional[str], seed: Optional[int]) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        text = prompt

        if reference_image:
            ref_path = Path(reference_image)
            if ref_path.exists():
                parts.append({
                    "inline_data": {
                        "mime_type": "image/png",
                        "data": base64.b64encode(ref_path.read_bytes()).decode("ascii"),
                    }
                })
                text = REFERENCE_PREFIX + prompt
            else:
                logger.warning(f"Reference image not found, generating without it: {reference_image}")

        parts.append({"text": text})

        image_config = {"aspectRatio": "16:9"}
        generation_config: Dict[str, Any] = {
            "responseModalities": ["TEXT", "IMAGE"],
            "imageConfig": image_config,
        }
        if seed is not None:
            generation_config["seed"] = seed

        body: Dict[str, Any] = {"contents": [{"parts": parts}], "generationConfig": generation_config}

        if self.is_pro_model:
            image_config["imageSize"] = "2K"
            generation_config["thinkingConfig"] = {"includeThoughts": True}
            body["systemInstruction"] = {"parts": [{"text": SYSTEM_INSTRUCTION}]}

        return body

    def _raise_for_status(self, status_code: int, text: str) -> None:
        message = f"Image model API error {status_code}: {text[:500]}"
        if status_code == 429 or status_code >= 500:
            raise TransientImageGenerationError(message, {"status_code": status_code})
        if status_code in (401, 403, 404):
            raise ImageModelUnavailableError(message, {"status_code": status_code})
        raise ImageGenerationError(message, {"status_code": status_code})

    def _save_image(self, image_data: bytes) -> Path:
        """Save generated image to disk."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = self.output_dir / f"gen_{timestamp}_{uuid.uuid4().hex[:8]}.png"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(image_data)
        logger.debug(f"Saved generated image: {output_path}")
        return output_path


# =============================================================================
# SSE PARSING
# =============================================================================

async def _iter_sse_payloads(lines: AsyncIterator[str]) -> AsyncIterator[Dict[str, Any]]:
    """Yield decoded JSON payloads from ``data:`` lines of an event stream."""
    async for line in lines:
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[5:].strip()
        if not data or data == "[DONE]":
            continue
        try:
            yield json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed SSE chunk: {data[:80]}")


def _candidate_parts(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = payload.get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def _inline_data(part: Dict[str, Any]) -> Optional[str]:
    inline = part.get("inlineData") or part.get("inline_data") or {}
    return inline.get("data")


def _extract_image(parts: List[Dict[str, Any]]):
    """Return (last non-thought image base64, joined non-thought text)."""
    text_parts = [p["text"] for p in parts if p.get("text") and not p.get("thought")]
    model_text = "\n".join(text_parts) if text_parts else None

    for part in reversed(parts):
        data = _inline_data(part)
        if data and not part.get("thought"):
            return data, model_text

    for part in parts:
        data = _inline_data(part)
        if data:
            return data, model_text

    return None, model_text
