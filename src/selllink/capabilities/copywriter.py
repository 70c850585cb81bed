"""Generate-copy capability: brand-style and resale-style sale text."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from typing import Sequence

import httpx

from ..models import CopyRequest, ListingCopy
from .base import CapabilityError, ConfigurationError, attempt_backend, select_backend
from .detect import strip_code_fence
from .gemini import GeminiClient

logger = logging.getLogger(__name__)

FALLBACK_COPY = ListingCopy(
    brand_style="這是品牌風格文案範例，請自行調整內容。",
    resale_style="這是轉售風格文案範例，請自行調整內容。",
)


def fallback_copy() -> ListingCopy:
    return replace(FALLBACK_COPY)


_RESALE_KEYS = ("resaleStyle", "resell", "resale")
_BRAND_KEYS = ("brandStyle", "brand")

_SECTION_RE = re.compile(
    r"(?:【\s*(?P<bracket>轉售風格|品牌風格)\s*】|(?P<plain>轉售風格|品牌風格)\s*[：:])"
)


def build_copy_prompt(request: CopyRequest) -> str:
    return f"""你是一位幫台灣二手賣家寫商品文案的中文助手。
請根據以下資訊，輸出兩段文案：
- 商品名稱：{request.item_name or "（未提供）"}
- AI 辨識依據說明：{request.reason or "（未提供）"}
- 官方商品連結：{request.official_url or "（沒有提供）"}

1）「轉售風格」：像一般人賣二手商品的口吻，生活化、誠實說明使用狀況，約 80～120 字，繁體中文。
2）「品牌風格」：偏官方介紹，重點放在材質、設計與特色，約 80～120 字，繁體中文。

請只輸出 JSON，格式如下（不要加反引號、不要加說明文字）：
{{
  "resell": "轉售風格文案",
  "brand": "品牌風格文案"
}}
"""


def _first_text(data: dict, keys: Sequence[str]) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def copy_from_mapping(data: dict) -> ListingCopy | None:
    """Read either the canonical or the legacy field names."""
    resale = _first_text(data, _RESALE_KEYS)
    brand = _first_text(data, _BRAND_KEYS)
    if not resale and not brand:
        return None
    return ListingCopy(
        brand_style=brand or FALLBACK_COPY.brand_style,
        resale_style=resale or FALLBACK_COPY.resale_style,
    )


def _parse_sections(text: str) -> ListingCopy | None:
    matches = list(_SECTION_RE.finditer(text))
    if not matches:
        return None

    sections: dict[str, str] = {}
    for index, match in enumerate(matches):
        label = match.group("bracket") or match.group("plain")
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        body = text[match.end():end].strip()
        if body:
            sections[label] = body

    if not sections:
        return None
    return ListingCopy(
        brand_style=sections.get("品牌風格") or FALLBACK_COPY.brand_style,
        resale_style=sections.get("轉售風格") or FALLBACK_COPY.resale_style,
    )


def parse_copy_response(text: str) -> ListingCopy:
    """Parse a model reply into ListingCopy; never raises.

    Tries strict JSON (canonical or legacy keys), then explicit section
    markers, then a blank-line paragraph split, then static fallback copy.
    """
    text = strip_code_fence(text or "")
    if not text:
        return fallback_copy()

    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        return copy_from_mapping(parsed) or fallback_copy()

    sectioned = _parse_sections(text)
    if sectioned:
        return sectioned

    parts = [part.strip() for part in re.split(r"\n{2,}", text) if part.strip()]
    if parts:
        return ListingCopy(
            brand_style=parts[1] if len(parts) > 1 else parts[0],
            resale_style=parts[0],
        )
    return fallback_copy()


class CopyFunctionBackend:
    """A ``/api/generateCopy`` style endpoint."""

    name = "copy_function"

    def __init__(self, url: str | None, client: httpx.AsyncClient):
        self.url = url or ""
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def attempt(self, request: CopyRequest) -> ListingCopy:
        try:
            response = await self.client.post(self.url, json=request.to_dict())
        except httpx.HTTPError as e:
            raise CapabilityError(f"Request to {self.url} failed: {e}") from e

        if not response.is_success:
            raise CapabilityError(f"Copy endpoint returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise CapabilityError("Malformed JSON from copy endpoint") from e

        copy = copy_from_mapping(body) if isinstance(body, dict) else None
        if copy is None:
            raise CapabilityError("Copy response missing text fields")
        return copy


class GeminiCopyBackend:
    """Copy prompt sent straight to Gemini."""

    name = "gemini"

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini

    @property
    def is_configured(self) -> bool:
        return self.gemini.is_configured

    async def attempt(self, request: CopyRequest) -> ListingCopy:
        if not self.gemini.is_configured:
            raise ConfigurationError("Gemini API key not configured")
        text = await self.gemini.generate_text(build_copy_prompt(request))
        return parse_copy_response(text)


class CopyWriter:
    """Resolves the generate-copy capability to one configured backend."""

    capability = "generate_copy"

    def __init__(self, backends: Sequence):
        self.backends = list(backends)
        self.backend = select_backend(self.backends)

    @property
    def backend_name(self) -> str | None:
        return self.backend.name if self.backend else None

    async def generate(self, request: CopyRequest) -> ListingCopy:
        """Generate dual-style copy; falls back to static text on any failure."""
        outcome = await attempt_backend(self.backend, request, self.capability)
        if outcome.ok and outcome.value is not None:
            return outcome.value

        logger.info(f"Using fallback copy for {request.item_name!r}")
        return fallback_copy()
