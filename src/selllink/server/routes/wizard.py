"""Wizard stage endpoints for the current session's draft."""

from typing import Literal, Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...models import Contact, ListingCopy, Stage, contact_link
from ...share_store import share_text, share_url
from ...stages import Route

router = APIRouter()


class LabelBody(BaseModel):
    label: str
    officialUrl: Optional[str] = None


class CopyConfirmBody(BaseModel):
    brandStyle: Optional[str] = None
    resaleStyle: Optional[str] = None
    style: Literal["brandStyle", "resaleStyle"] = "resaleStyle"


class ContactBody(BaseModel):
    type: Literal["LINE", "IG", "Email", ""] = ""
    value: str = ""


class ShareBody(BaseModel):
    price: float | str | None = None
    nickname: str = ""
    contact: Optional[ContactBody] = None


def _redirect_unless_allowed(request: Request, stage: Stage) -> JSONResponse | None:
    """409 with the redirect target when the stage gate fails."""
    target, decision = request.app.state.wizard.navigate(Route(stage=stage).path)
    if decision.allowed:
        return None
    return JSONResponse(
        status_code=409,
        content={"redirect": target.path, "gate": decision.to_dict()},
    )


@router.get("/draft")
async def get_draft(request: Request):
    """Current draft in its JSON shape."""
    return {"draft": request.app.state.wizard.draft.to_dict()}


@router.get("/status")
async def get_status(request: Request):
    """Loading latches and resolved backends."""
    return request.app.state.wizard.status()


@router.get("/navigate")
async def navigate(request: Request, path: str = "/upload"):
    """Resolve a wizard path, applying stage gates.

    Returns:
        The route landed on and whether a redirect happened
    """
    route, decision = request.app.state.wizard.navigate(path)
    return {
        "route": route.to_dict(),
        "gate": decision.to_dict(),
        "redirected": not decision.allowed,
    }


@router.post("/upload")
async def upload(request: Request, image: UploadFile = File(...)):
    """Upload the product photo."""
    data = await image.read()
    draft = request.app.state.wizard.upload(
        data,
        filename=image.filename or "upload",
        mime_type=image.content_type,
    )
    return {"draft": draft.to_dict(), "next": "/detect"}


@router.post("/detect")
async def detect(request: Request):
    """Run item detection on the uploaded photo."""
    blocked = _redirect_unless_allowed(request, "detect")
    if blocked:
        return blocked

    wizard = request.app.state.wizard
    result = await wizard.run_detect()
    if result is None:
        return {"stale": True}
    return {**result.to_dict(), "selectedLabel": wizard.draft.selected_label}


@router.post("/label")
async def choose_label(request: Request, body: LabelBody):
    """Confirm the product label and optional official URL."""
    blocked = _redirect_unless_allowed(request, "detect")
    if blocked:
        return blocked

    draft = request.app.state.wizard.choose_label(body.label, body.officialUrl)
    return {"selectedLabel": draft.selected_label, "officialUrl": draft.official_url, "next": "/copy"}


@router.post("/remove-bg")
async def remove_background(request: Request):
    """Remove the photo background (falls back to the original photo)."""
    blocked = _redirect_unless_allowed(request, "detect")
    if blocked:
        return blocked

    result = await request.app.state.wizard.remove_background()
    if result is None:
        return {"stale": True}
    return result.to_dict()


@router.post("/copy")
async def generate_copy(request: Request):
    """Generate brand-style and resale-style copy."""
    blocked = _redirect_unless_allowed(request, "copy")
    if blocked:
        return blocked

    copy = await request.app.state.wizard.run_copy()
    if copy is None:
        return {"stale": True}
    return copy.to_dict()


@router.post("/copy/confirm")
async def confirm_copy(request: Request, body: CopyConfirmBody):
    """Store the edited copy and chosen style."""
    blocked = _redirect_unless_allowed(request, "copy")
    if blocked:
        return blocked

    copy = None
    if body.brandStyle is not None or body.resaleStyle is not None:
        copy = ListingCopy(brand_style=body.brandStyle or "", resale_style=body.resaleStyle or "")
    draft = request.app.state.wizard.confirm_copy(copy, body.style)
    return {
        "copy": draft.copy.to_dict(),
        "selectedCopyStyle": draft.selected_copy_style,
        "next": "/price",
    }


@router.post("/price-hint")
async def price_hint(request: Request):
    """Suggest a price range."""
    blocked = _redirect_unless_allowed(request, "price")
    if blocked:
        return blocked

    hint = await request.app.state.wizard.run_price_hint()
    if hint is None:
        return {"stale": True}
    return hint.to_dict()


@router.post("/share")
async def generate_share(request: Request, body: ShareBody):
    """Finish the price stage and create the share slug."""
    blocked = _redirect_unless_allowed(request, "price")
    if blocked:
        return blocked

    contact = Contact(type=body.contact.type, value=body.contact.value) if body.contact else None
    slug = request.app.state.wizard.generate_share(body.price, body.nickname, contact)
    return {"slug": slug, "next": f"/share/{slug}"}


@router.get("/share/{slug}")
async def open_share(request: Request, slug: str):
    """Enter the share stage; stale slugs redirect to upload."""
    wizard = request.app.state.wizard
    draft = wizard.open_share(slug)
    if draft is None:
        return JSONResponse(status_code=409, content={"redirect": "/upload"})

    link = contact_link(draft.contact)
    return {
        "slug": slug,
        "shareUrl": share_url(request.app.state.config.public_url, slug),
        "shareText": share_text(draft.selected_label),
        "displayText": draft.display_text,
        "contact": link.to_dict() if link else None,
        "listing": draft.to_dict(),
    }


@router.post("/reset")
async def new_listing(request: Request):
    """Start a new listing."""
    request.app.state.wizard.new_listing()
    return {"draft": {}, "next": "/upload"}
