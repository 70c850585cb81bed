"""Detect-item capability: photo in, up to three candidate product names out."""

from __future__ import annotations

import json
import logging
import re
from typing import Sequence

import httpx

from ..models import UNRECOGNIZED_ITEM, DetectResult, OriginalImage
from .base import CapabilityError, ConfigurationError, attempt_backend, select_backend
from .gemini import GeminiClient

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 3

DETECT_PROMPT = """請你根據圖片判斷商品的可能名稱，給我三個候選。

輸出格式：
- 儘量用繁體中文
- 不要解釋
- 不要加 Markdown
- 只輸出 JSON，格式如下：
{"items": ["選項一", "選項二", "選項三"]}

重要：每個選項只能是商品名稱，不要包含原因說明、標點符號 ()、/、- 之前的修飾語。"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SPLIT_RE = re.compile(r"[\n,，；;、]")
_ENUM_RE = re.compile(r"^(?:\d+\s*[.)、．]|[-•*·])\s*")
_WRAPPED_RE = re.compile(r"^[(（](.*)[)）]$")
_SLASH_RE = re.compile(r"[／/]")
# Labelled explanation lines are reasons, not names
_EXPLANATION_RE = re.compile(r"^(原因|理由|說明|说明|解釋|解释)\s*[：:]")
_LEAD_IN_RE = re.compile(r"^(根據.*?[，,]\s*|因為.*?[，,]\s*|看起來像\s*)")
# Stray two-letter lowercase fragments; uppercase or digit names ("TV", "3M") are kept
_FRAGMENT_RE = re.compile(r"^[a-z]{2}$")


def strip_code_fence(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_detect_text(text: str) -> list[str]:
    """Extract raw candidate strings from a model reply.

    Strict JSON (an array or an object with ``items``) is preferred; otherwise
    the text is split on line breaks and list separators.
    """
    text = strip_code_fence(text or "")
    if not text:
        return []

    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None

    if isinstance(parsed, list):
        return [str(item) for item in parsed if isinstance(item, (str, int, float))]
    if isinstance(parsed, dict) and isinstance(parsed.get("items"), list):
        return [str(item) for item in parsed["items"] if isinstance(item, (str, int, float))]

    parts = [part.strip() for part in _SPLIT_RE.split(text)]
    parts = [part for part in parts if part]
    return parts or [text]


def _clean_item(raw: str) -> str | None:
    item = raw.strip()
    item = _ENUM_RE.sub("", item).strip()

    wrapped = _WRAPPED_RE.match(item)
    if wrapped:
        item = wrapped.group(1).strip()

    item = _SLASH_RE.split(item, 1)[0].strip()

    if _EXPLANATION_RE.match(item):
        return None
    item = _LEAD_IN_RE.sub("", item).strip()
    item = _ENUM_RE.sub("", item).strip()

    if len(item) < 2:
        return None
    if _FRAGMENT_RE.match(item):
        return None
    return item


def normalize_items(raw_items: Sequence[str]) -> list[str]:
    """Clean raw candidates into at most three distinct product names.

    Returns:
        Cleaned names, or the single "unrecognized" sentinel if none survive
    """
    items: list[str] = []
    for raw in raw_items:
        if not isinstance(raw, str):
            continue
        item = _clean_item(raw)
        if item and item not in items:
            items.append(item)
        if len(items) == MAX_CANDIDATES:
            break

    return items or [UNRECOGNIZED_ITEM]


class DetectFunctionBackend:
    """A ``/api/detect`` style endpoint answering ``{ok, items}``."""

    name = "detect_function"

    def __init__(self, url: str | None, client: httpx.AsyncClient):
        self.url = url or ""
        self.client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    async def attempt(self, image: OriginalImage) -> list[str]:
        try:
            response = await self.client.post(self.url, json={"imageBase64": image.data_uri})
        except httpx.HTTPError as e:
            raise CapabilityError(f"Request to {self.url} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise CapabilityError(f"Malformed JSON from detect endpoint (HTTP {response.status_code})") from e

        if not response.is_success or not isinstance(body, dict) or not body.get("ok"):
            error = body.get("error") if isinstance(body, dict) else None
            raise CapabilityError(f"Detect failed: {error or f'HTTP {response.status_code}'}")

        items = body.get("items")
        if not isinstance(items, list):
            raise CapabilityError("Detect response missing items")
        return normalize_items(items)


class GeminiDetectBackend:
    """Vision prompt sent straight to Gemini."""

    name = "gemini"

    def __init__(self, gemini: GeminiClient):
        self.gemini = gemini

    @property
    def is_configured(self) -> bool:
        return self.gemini.is_configured

    async def attempt(self, image: OriginalImage) -> list[str]:
        if not self.gemini.is_configured:
            raise ConfigurationError("Gemini API key not configured")
        text = await self.gemini.generate_text(DETECT_PROMPT, image=image.data, mime_type=image.mime_type)
        return normalize_items(parse_detect_text(text))


class ItemDetector:
    """Resolves the detect-item capability to one configured backend."""

    capability = "detect"

    def __init__(self, backends: Sequence):
        self.backends = list(backends)
        self.backend = select_backend(self.backends)

    @property
    def backend_name(self) -> str | None:
        return self.backend.name if self.backend else None

    async def detect(self, image: OriginalImage) -> DetectResult:
        """Detect candidate names; never raises.

        Returns:
            DetectResult; on failure ``items`` is empty and ``error`` is set
        """
        outcome = await attempt_backend(self.backend, image, self.capability)
        if outcome.ok:
            return DetectResult(items=list(outcome.value or [UNRECOGNIZED_ITEM]), backend=outcome.backend)

        return DetectResult(items=[], used_fallback=True, error=outcome.error, backend=outcome.backend)
