"""Shared fixtures for SellLink tests."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from selllink.capabilities.gemini import GeminiClient
from selllink.models import OriginalImage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def text_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(text=text)


def image_response(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


@pytest.fixture
def genai_client() -> SimpleNamespace:
    """Stand-in for ``genai.Client`` exposing ``aio.models.generate_content``."""
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=AsyncMock())))


@pytest.fixture
def gemini(genai_client) -> GeminiClient:
    return GeminiClient(api_key="test-key", client=genai_client)


@pytest.fixture
def photo() -> OriginalImage:
    return OriginalImage(data=PNG_BYTES, mime_type="image/png", filename="shoe.png")
