"""Thin async wrapper around the Gemini API used by several capabilities."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from .base import CapabilityError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.0-flash-preview-image-generation"


class GeminiClient:
    """Text and image generation against Gemini via google-genai."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        client: Any = None,
    ):
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key; an empty key leaves the client unconfigured
            model: Model for text/vision prompts
            image_model: Model for image generation
            client: Pre-built genai client (tests inject a fake here)
        """
        self.api_key = api_key or ""
        self.model = model
        self.image_model = image_model
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("Gemini API key not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_text(
        self,
        prompt: str,
        image: bytes | None = None,
        mime_type: str = "image/jpeg",
        json_schema: dict | None = None,
    ) -> str:
        """Generate text, optionally grounded on an image.

        Args:
            prompt: Instruction prompt
            image: Optional image bytes sent inline before the prompt
            mime_type: MIME type of ``image``
            json_schema: When given, request JSON output matching this schema

        Returns:
            Stripped response text

        Raises:
            CapabilityError: On API failure or an empty response
        """
        contents: list[Any] = []
        if image is not None:
            contents.append(types.Part.from_bytes(data=image, mime_type=mime_type))
        contents.append(prompt)

        config = None
        if json_schema is not None:
            config = types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=json_schema,
            )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"Gemini request failed: {e}") from e

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise CapabilityError("Gemini returned an empty response")
        return text

    async def generate_image(
        self,
        prompt: str,
        image: bytes,
        mime_type: str = "image/jpeg",
    ) -> tuple[bytes, str]:
        """Generate an edited image from ``image`` and ``prompt``.

        Returns:
            Tuple of (image bytes, mime type)

        Raises:
            CapabilityError: On API failure or when no image part is returned
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=[types.Part.from_bytes(data=image, mime_type=mime_type), prompt],
                config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
            )
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"Gemini image request failed: {e}") from e

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    return inline.data, inline.mime_type or "image/png"

        raise CapabilityError("No image data in Gemini response")
