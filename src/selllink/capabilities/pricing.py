"""Suggest-price capability: a second-hand TWD price range for a product."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Sequence

import httpx

from ..models import PriceHint
from .base import CapabilityError, ConfigurationError, attempt_backend, select_backend
from .detect import strip_code_fence
from .gemini import GeminiClient

logger = logging.getLogger(__name__)

FALLBACK_PRICE_HINT = PriceHint(min=500, max=1500)

PRICE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "min": {"type": "NUMBER"},
        "max": {"type": "NUMBER"},
    },
    "required": ["min", "max"],
}


def build_price_prompt(label: str) -> str:
    return (
        f'Based on the product "{label}", suggest a reasonable price range in TWD '
        'for selling it second-hand. Reply with JSON only: {"min": number, "max": number}'
    )


def _as_price(value: Any) -> float:
    if isinstance(value, bool):
        raise CapabilityError(f"Invalid price value: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise CapabilityError(f"Invalid price value: {value!r}") from e
    if math.isnan(number) or math.isinf(number) or number < 0:
        raise CapabilityError(f"Invalid price value: {value!r}")
    return number


def price_hint_from_mapping(data: Any) -> PriceHint:
    """Validate a ``{min, max}`` mapping; swapped bounds are reordered.

    Raises:
        CapabilityError: On missing or non-numeric bounds
    """
    if not isinstance(data, dict) or "min" not in data or "max" not in data:
        raise CapabilityError("Price response missing min/max")
    return PriceHint(min=_as_price(data["min"]), max=_as_price(data["max"]))


def parse_price_response(text: str) -> PriceHint:
    """Parse a model reply into a PriceHint.

    Raises:
        CapabilityError: When the reply is not a usable ``{min, max}`` object
    """
    try:
        data = json.loads(strip_code_fence(text or ""))
    except ValueError as e:
        raise CapabilityError(f"Malformed price JSON: {e}") from e
    return price_hint_from_mapping(data)


class PriceFunctionBackend:
    """A ``/api/suggestPrice`` style endpoint answering ``{min, max}``."""

    name = "price_function"

    def __init__(self, url: str | None, client: httpx.AsyncClient):
        self.url = url or ""
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def attempt(self, label: str) -> PriceHint:
        try:
            response = await self.client.post(self.url, json={"itemName": label})
        except httpx.HTTPError as e:
            raise CapabilityError(f"Request to {self.url} failed: {e}") from e

        if not response.is_success:
            raise CapabilityError(f"Price endpoint returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise CapabilityError("Malformed JSON from price endpoint") from e
        return price_hint_from_mapping(body)


class GeminiPriceBackend:
    """Price prompt sent straight to Gemini with a JSON schema."""

    name = "gemini"

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini

    @property
    def is_configured(self) -> bool:
        return self.gemini.is_configured

    async def attempt(self, label: str) -> PriceHint:
        if not self.gemini.is_configured:
            raise ConfigurationError("Gemini API key not configured")
        text = await self.gemini.generate_text(build_price_prompt(label), json_schema=PRICE_SCHEMA)
        return parse_price_response(text)


class PriceAdvisor:
    """Resolves the suggest-price capability to one configured backend."""

    capability = "suggest_price"

    def __init__(self, backends: Sequence):
        self.backends = list(backends)
        self.backend = select_backend(self.backends)

    @property
    def backend_name(self) -> str | None:
        return self.backend.name if self.backend else None

    async def suggest(self, label: str) -> PriceHint:
        """Suggest a price range; falls back to a static range on any failure."""
        outcome = await attempt_backend(self.backend, label, self.capability)
        if outcome.ok and outcome.value is not None:
            return outcome.value

        logger.info(f"Using fallback price range for {label!r}")
        return PriceHint(min=FALLBACK_PRICE_HINT.min, max=FALLBACK_PRICE_HINT.max)
