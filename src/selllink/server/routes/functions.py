"""Capability function endpoints backed by the third-party services.

These are the server-side counterparts the wizard's function backends can
point at. Unlike the wizard capabilities they report failures to the caller
instead of substituting fallback content.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...capabilities.base import CapabilityError, ConfigurationError
from ...capabilities.imaging import decode_image, extract_base64_payload, sniff_mime_type
from ...models import CopyRequest, OriginalImage

logger = logging.getLogger(__name__)

router = APIRouter()


class RemoveBgBody(BaseModel):
    imageBase64: Optional[str] = None
    mimeType: str = "image/png"


class CopyBody(BaseModel):
    itemName: str = ""
    reason: str = ""
    officialUrl: str = ""


class PriceBody(BaseModel):
    itemName: str = ""


def _status_for(exc: CapabilityError) -> int:
    return 500 if isinstance(exc, ConfigurationError) else 502


def _backend(request: Request, capability: str) -> Any:
    return request.app.state.function_backends[capability]


def _require_configured(backend: Any) -> None:
    if not backend.is_configured:
        raise ConfigurationError(f"{backend.name} backend is missing its API key")


async def _image_from_request(request: Request) -> OriginalImage | None:
    """Read an image from multipart ``image``/``imageBase64`` or JSON ``imageBase64``."""
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        image = form.get("image")
        if image is not None and hasattr(image, "read"):
            data = await image.read()
            if not data:
                return None
            mime = image.content_type if (image.content_type or "").startswith("image/") else None
            return OriginalImage(
                data=data,
                mime_type=mime or sniff_mime_type(data, image.filename),
                filename=image.filename or "upload",
            )
        value = image if isinstance(image, str) else form.get("imageBase64")
        return _image_from_base64(value if isinstance(value, str) else None)

    try:
        body = await request.json()
    except ValueError:
        return None
    value = body.get("imageBase64") if isinstance(body, dict) else None
    return _image_from_base64(value if isinstance(value, str) else None)


def _image_from_base64(value: str | None, default_mime: str = "image/jpeg") -> OriginalImage | None:
    if not value:
        return None
    encoded, mime = extract_base64_payload(value, default_mime=default_mime)
    if not encoded:
        return None
    return OriginalImage(data=decode_image(encoded), mime_type=mime)


@router.post("/detect")
async def detect(request: Request):
    """Detect up to three product names from an image.

    Returns:
        ``{ok: true, items}`` or ``{ok: false, error}``
    """
    try:
        image = await _image_from_request(request)
    except CapabilityError as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})
    if image is None:
        return JSONResponse(status_code=400, content={"ok": False, "error": "No image provided"})

    backend = _backend(request, "detect")
    try:
        _require_configured(backend)
        items = await backend.attempt(image)
    except CapabilityError as e:
        logger.warning(f"Detect function failed: {e}")
        return JSONResponse(status_code=_status_for(e), content={"ok": False, "error": str(e)})

    return {"ok": True, "items": items}


@router.post("/remove-bg")
async def remove_background(request: Request, body: RemoveBgBody):
    """Remove the background of a base64 image.

    Returns:
        ``{success: true, base64, mimeType}`` or ``{success: false, message}``
    """
    try:
        image = _image_from_base64(body.imageBase64, default_mime=body.mimeType)
    except CapabilityError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    if image is None:
        return JSONResponse(status_code=400, content={"success": False, "message": "缺少 imageBase64"})

    backend = _backend(request, "remove_bg")
    try:
        _require_configured(backend)
        result = await backend.attempt(image)
    except CapabilityError as e:
        logger.warning(f"Remove-bg function failed: {e}")
        return JSONResponse(status_code=_status_for(e), content={"success": False, "message": str(e)})

    if result.kind == "url":
        return {"success": True, "url": result.payload}
    return {"success": True, "base64": result.payload, "mimeType": result.mime_type}


@router.post("/generateCopy")
async def generate_copy(request: Request, body: CopyBody):
    """Generate brand-style and resale-style copy for a product name."""
    if not body.itemName.strip():
        return JSONResponse(status_code=400, content={"error": "缺少商品名稱"})

    backend = _backend(request, "generate_copy")
    copy_request = CopyRequest(item_name=body.itemName.strip(), reason=body.reason, official_url=body.officialUrl)
    try:
        _require_configured(backend)
        copy = await backend.attempt(copy_request)
    except CapabilityError as e:
        logger.warning(f"Copy function failed: {e}")
        return JSONResponse(status_code=_status_for(e), content={"error": "generate_copy_failed", "detail": str(e)})

    return copy.to_dict()


@router.post("/suggestPrice")
async def suggest_price(request: Request, body: PriceBody):
    """Suggest a TWD second-hand price range for a product name."""
    if not body.itemName.strip():
        return JSONResponse(status_code=400, content={"error": "缺少商品名稱"})

    backend = _backend(request, "suggest_price")
    try:
        _require_configured(backend)
        hint = await backend.attempt(body.itemName.strip())
    except CapabilityError as e:
        logger.warning(f"Price function failed: {e}")
        return JSONResponse(status_code=_status_for(e), content={"error": "suggest_price_failed", "detail": str(e)})

    return hint.to_dict()
