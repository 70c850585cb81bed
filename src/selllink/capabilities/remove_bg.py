"""Remove-background capability.

Backends, in priority order:
1. Edge function  - JSON ``{imageBase64, mimeType}``
2. Self-hosted proxy - multipart ``image_file``
3. ClipDrop direct - multipart ``image_file`` with ``x-api-key``
4. Gemini image edit - subject re-rendered on a light grey background

Only the first configured backend is attempted. Any failure resolves to the
original image with ``used_fallback=True``.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ..models import BackendCallResult, OriginalImage
from .base import CapabilityError, ConfigurationError, attempt_backend, select_backend
from .decoders import decode_remove_bg_response
from .gemini import GeminiClient
from .imaging import encode_image

logger = logging.getLogger(__name__)

CLIPDROP_URL = "https://clipdrop-api.co/remove-background/v1"

ENHANCE_PROMPT = (
    "Take the main object in this image, professionally remove the background, "
    "and place it on a clean, bright, neutral light grey background (#F5F5F5). "
    "The object should be well-lit and centered."
)


async def _post(client: httpx.AsyncClient, url: str, **kwargs) -> httpx.Response:
    try:
        return await client.post(url, **kwargs)
    except httpx.HTTPError as e:
        raise CapabilityError(f"Request to {url} failed: {e}") from e


class EdgeFunctionRemover:
    """Serverless function taking a JSON-encoded image."""

    name = "edge_function"

    def __init__(self, url: str | None, client: httpx.AsyncClient):
        self.url = url or ""
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def attempt(self, image: OriginalImage) -> BackendCallResult:
        response = await _post(
            self.client,
            self.url,
            json={"imageBase64": image.base64, "mimeType": image.mime_type},
        )
        return decode_remove_bg_response(response, self.name, base_url=self.url)


class ProxyRemover:
    """Self-hosted proxy taking a multipart upload, answering with a URL."""

    name = "proxy"

    def __init__(self, base_url: str | None, client: httpx.AsyncClient, path: str = "/api/remove-bg"):
        self.base_url = (base_url or "").rstrip("/")
        self.path = path
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def attempt(self, image: OriginalImage) -> BackendCallResult:
        response = await _post(
            self.client,
            f"{self.base_url}{self.path}",
            files={"image_file": (image.filename, image.data, image.mime_type)},
        )
        return decode_remove_bg_response(response, self.name, base_url=self.base_url)


class ClipdropRemover:
    """Direct call to the ClipDrop API; answers with the PNG stream."""

    name = "clipdrop"

    def __init__(self, api_key: str | None, client: httpx.AsyncClient, url: str = CLIPDROP_URL):
        self.api_key = api_key or ""
        self.url = url
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def attempt(self, image: OriginalImage) -> BackendCallResult:
        if not self.api_key:
            raise ConfigurationError("CLIPDROP_API_KEY not configured")
        response = await _post(
            self.client,
            self.url,
            headers={"x-api-key": self.api_key},
            files={"image_file": (image.filename, image.data, image.mime_type)},
        )
        return decode_remove_bg_response(response, self.name)


class GeminiImageRemover:
    """Gemini image generation placing the subject on a neutral background."""

    name = "gemini_image"

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini

    @property
    def is_configured(self) -> bool:
        return self.gemini.is_configured

    async def attempt(self, image: OriginalImage) -> BackendCallResult:
        data, mime = await self.gemini.generate_image(ENHANCE_PROMPT, image.data, image.mime_type)
        return BackendCallResult(payload=encode_image(data), kind="base64", mime_type=mime, backend=self.name)


class BackgroundRemover:
    """Resolves the remove-background capability to one configured backend."""

    capability = "remove_bg"

    def __init__(self, backends: Sequence):
        self.backends = list(backends)
        self.backend = select_backend(self.backends)

    @property
    def backend_name(self) -> str | None:
        return self.backend.name if self.backend else None

    async def remove_background(self, image: OriginalImage) -> BackendCallResult:
        """Remove the background; never raises.

        Returns:
            Result from the backend, or the original image with used_fallback=True
        """
        outcome = await attempt_backend(self.backend, image, self.capability)
        if outcome.ok and outcome.value is not None:
            return outcome.value

        logger.info(f"Background removal fell back to original image ({outcome.error})")
        return BackendCallResult(
            payload=image.base64,
            kind="base64",
            mime_type=image.mime_type,
            used_fallback=True,
            backend=outcome.backend,
        )
