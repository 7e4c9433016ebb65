"""
Tests for Image Handler

Tests for firesim/core/image_handler.py (Gemini provider over a mock transport)
"""

import base64
import json
from pathlib import Path

import httpx
import pytest

from firesim.core.exceptions import (
    ImageGenerationError,
    ImageModelUnavailableError,
    TransientImageGenerationError,
)
from firesim.core.image_handler import GeminiImageGenerator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


def sse(*chunks) -> str:
    return "".join(f"data: {json.dumps(chunk)}\r\n\r\n" for chunk in chunks)


def parts_chunk(*parts) -> dict:
    return {"candidates": [{"content": {"parts": list(parts)}}]}


def make_generator(temp_dir: Path, handler, api_key: str = "test-key") -> GeminiImageGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiImageGenerator(
        api_key=api_key,
        model="gemini-3-pro-image-preview",
        base_url="https://example.test/v1beta",
        output_dir=temp_dir,
        client=client,
    )


class TestGeminiImageGenerator:
    """Tests for GeminiImageGenerator."""

    @pytest.mark.asyncio
    async def test_streams_thinking_and_saves_image(self, temp_dir):
        """Test a successful stream with thinking parts and an image."""
        seen_requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_requests.append(request)
            body = sse(
                parts_chunk({"text": "Planning the smoke plume", "thought": True}),
                parts_chunk({"text": "Matching the ridge line", "thought": True}),
                parts_chunk({"inlineData": {"mimeType": "image/png", "data": base64.b64encode(PNG_BYTES).decode()}}),
            )
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        generator = make_generator(temp_dir, handler)
        updates = []

        result = await generator.generate("a bushfire", seed=1234, on_thinking=updates.append)

        assert Path(result.image_handle).read_bytes() == PNG_BYTES
        assert result.model_id == "gemini-3-pro-image-preview"
        assert result.seed == 1234
        assert updates[-1] == "Planning the smoke plume\nMatching the ridge line"
        assert result.thinking_text == updates[-1]

        request = seen_requests[0]
        assert request.url.params["alt"] == "sse"
        assert request.url.path.endswith(":streamGenerateContent")
        assert request.headers["x-goog-api-key"] == "test-key"
        payload = json.loads(request.content)
        assert payload["generationConfig"]["seed"] == 1234
        assert payload["generationConfig"]["thinkingConfig"] == {"includeThoughts": True}

    @pytest.mark.asyncio
    async def test_reference_image_attached(self, temp_dir):
        """Test that an existing reference image is sent as inline data."""
        reference = temp_dir / "anchor.png"
        reference.write_bytes(PNG_BYTES)
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, text=sse(parts_chunk(
                {"inline_data": {"data": base64.b64encode(PNG_BYTES).decode()}}
            )))

        generator = make_generator(temp_dir, handler)
        await generator.generate("a bushfire", reference_image=str(reference))

        parts = captured["payload"]["contents"][0]["parts"]
        assert "inline_data" in parts[0]
        assert parts[-1]["text"].endswith("a bushfire")

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self, temp_dir):
        generator = make_generator(temp_dir, lambda request: httpx.Response(429, text="slow down"))

        with pytest.raises(TransientImageGenerationError):
            await generator.generate("a bushfire")

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, temp_dir):
        generator = make_generator(temp_dir, lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(TransientImageGenerationError):
            await generator.generate("a bushfire")

    @pytest.mark.asyncio
    async def test_bad_request_is_permanent(self, temp_dir):
        generator = make_generator(temp_dir, lambda request: httpx.Response(400, text="bad prompt"))

        with pytest.raises(ImageGenerationError) as exc_info:
            await generator.generate("a bushfire")
        assert not isinstance(exc_info.value, TransientImageGenerationError)

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, temp_dir):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        generator = make_generator(temp_dir, handler)

        with pytest.raises(TransientImageGenerationError):
            await generator.generate("a bushfire")

    @pytest.mark.asyncio
    async def test_no_image_keeps_thinking_text(self, temp_dir):
        def handler(request):
            return httpx.Response(200, text=sse(parts_chunk({"text": "Still thinking", "thought": True})))

        generator = make_generator(temp_dir, handler)

        with pytest.raises(ImageGenerationError) as exc_info:
            await generator.generate("a bushfire")
        assert exc_info.value.thinking_text == "Still thinking"

    @pytest.mark.asyncio
    async def test_missing_key_unavailable(self, temp_dir):
        generator = make_generator(temp_dir, lambda request: httpx.Response(200), api_key="")

        assert await generator.is_available() is False
        with pytest.raises(ImageModelUnavailableError):
            await generator.generate("a bushfire")
