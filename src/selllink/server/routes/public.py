"""Public listing endpoints resolved by share slug."""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, JSONResponse

from ...models import contact_link

router = APIRouter()


@router.get("/p/{slug}")
async def public_listing(request: Request, slug: str):
    """Public view of a shared listing.

    An unknown slug is a normal "not found / expired" state, not an error.
    """
    listing = request.app.state.wizard.public_listing(slug)
    if listing is None:
        return {
            "found": False,
            "slug": slug,
            "message": "這個連結可能已經失效，或是沒有對應的商品資料。",
            "createPath": "/upload",
        }

    link = contact_link(listing.contact)
    return {
        "found": True,
        "slug": slug,
        "title": listing.selected_label,
        "image": listing.display_image,
        "displayText": listing.display_text,
        "price": listing.price,
        "nickname": listing.nickname,
        "contact": link.to_dict() if link else None,
        "listing": listing.to_dict(),
    }


@router.get("/p/{slug}/image")
async def public_listing_image(request: Request, slug: str):
    """Download the shared listing's photo as a file.

    Only inline photos are served; remote image URLs are linked directly
    from the listing instead.
    """
    share_store = request.app.state.wizard.share_store
    path = await share_store.export_image(slug, request.app.state.config.export_dir)
    if path is None:
        return JSONResponse(status_code=404, content={"error": f"No image for listing {slug}"})
    return FileResponse(path, filename=path.name)
