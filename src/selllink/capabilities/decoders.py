"""Response decoders for the remove-background capability.

Backends answer in one of several wire shapes. Each shape is decoded here,
at the boundary, into a single canonical ``BackendCallResult``:

- ``binary``: an image stream (``image/*`` or ``application/octet-stream``)
- ``url``: ``{"success": true, "url": "..."}``
- ``inline``: ``{"success": true, "base64": "...", "mimeType": "..."}``
- ``failure``: ``{"success": false, "message": "..."}`` or a non-2xx status
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urljoin

import httpx

from ..models import BackendCallResult
from .base import CapabilityError
from .imaging import encode_image, extract_base64_payload, sniff_mime_type

ResponseShape = Literal["binary", "url", "inline", "failure"]


@dataclass
class DecodedResponse:
    """A remove-background response tagged with its wire shape."""

    shape: ResponseShape
    payload: str = ""
    mime_type: str = "image/png"
    message: str = ""


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("message") or body.get("error") or body.get("detail")
        if detail:
            return str(detail)
    return f"HTTP {response.status_code}"


def classify_response(response: httpx.Response, base_url: str = "") -> DecodedResponse:
    """Detect which wire shape a response uses.

    Args:
        response: Backend response
        base_url: Base URL used to absolutize relative ``url`` payloads

    Raises:
        CapabilityError: When the body matches no known shape
    """
    if not response.is_success:
        return DecodedResponse(shape="failure", message=_error_message(response))

    content_type = _content_type(response)
    if content_type.startswith("image/") or content_type == "application/octet-stream":
        if not response.content:
            raise CapabilityError("Empty image stream")
        mime = content_type if content_type.startswith("image/") else sniff_mime_type(
            response.content, default="image/png"
        )
        return DecodedResponse(shape="binary", payload=encode_image(response.content), mime_type=mime)

    try:
        body = json.loads(response.content or b"")
    except ValueError as e:
        raise CapabilityError(f"Malformed JSON response: {e}") from e

    if not isinstance(body, dict):
        raise CapabilityError("Unexpected JSON response shape")

    if body.get("success") is False:
        return DecodedResponse(
            shape="failure",
            message=str(body.get("message") or body.get("error") or "remove-bg failed"),
        )

    if isinstance(body.get("base64"), str) and body["base64"]:
        data, mime = extract_base64_payload(body["base64"], default_mime="image/png")
        return DecodedResponse(shape="inline", payload=data, mime_type=body.get("mimeType") or mime)

    if isinstance(body.get("url"), str) and body["url"]:
        url = body["url"]
        if base_url and not url.startswith(("http://", "https://", "data:")):
            url = urljoin(base_url.rstrip("/") + "/", url.lstrip("/"))
        return DecodedResponse(shape="url", payload=url, mime_type=body.get("mimeType") or "image/png")

    raise CapabilityError("Response missing url or base64 field")


def decode_remove_bg_response(
    response: httpx.Response,
    backend: str,
    base_url: str = "",
) -> BackendCallResult:
    """Map any supported response shape to a BackendCallResult.

    Raises:
        CapabilityError: For failure shapes and malformed payloads
    """
    decoded = classify_response(response, base_url)
    if decoded.shape == "failure":
        raise CapabilityError(decoded.message)

    return BackendCallResult(
        payload=decoded.payload,
        kind="url" if decoded.shape == "url" else "base64",
        mime_type=decoded.mime_type,
        used_fallback=False,
        backend=backend,
    )
