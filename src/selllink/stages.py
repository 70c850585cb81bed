"""Stage gating and route resolution for the listing wizard.

Each stage has a required-field precondition on the draft. When it is not
met, navigation lands on the nearest upstream stage that can be satisfied
instead. Gate violations are redirects, never exceptions.
"""

import re
from dataclasses import dataclass
from typing import Any

from .models import ListingDraft, Stage


STAGE_ORDER: tuple[Stage, ...] = ("upload", "detect", "copy", "price", "share", "public")

STAGE_PATHS: dict[Stage, str] = {
    "upload": "/upload",
    "detect": "/detect",
    "copy": "/copy",
    "price": "/price",
    "share": "/share/{slug}",
    "public": "/p/{slug}",
}

_ROUTE_PATTERNS: list[tuple[re.Pattern, Stage]] = [
    (re.compile(r"^/upload/?$"), "upload"),
    (re.compile(r"^/detect/?$"), "detect"),
    (re.compile(r"^/copy/?$"), "copy"),
    (re.compile(r"^/price/?$"), "price"),
    (re.compile(r"^/share/(?P<slug>[^/]+)/?$"), "share"),
    (re.compile(r"^/p/(?P<slug>[^/]+)/?$"), "public"),
]


@dataclass
class Route:
    """A navigable wizard location."""

    stage: Stage
    slug: str | None = None

    @property
    def path(self) -> str:
        if self.stage in ("share", "public"):
            return STAGE_PATHS[self.stage].format(slug=self.slug or "")
        return STAGE_PATHS[self.stage]

    def to_dict(self) -> dict:
        return {"stage": self.stage, "slug": self.slug, "path": self.path}


@dataclass
class GateDecision:
    """Result of checking a stage's precondition."""

    stage: Stage
    allowed: bool
    redirect_to: Stage | None = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "allowed": self.allowed,
            "redirectTo": self.redirect_to,
            "reason": self.reason,
        }


def check_stage(stage: Stage, draft: ListingDraft, slug: str | None = None) -> GateDecision:
    """Check whether ``stage`` may be entered with the current draft.

    Args:
        stage: Stage being navigated to
        draft: Current draft
        slug: Slug taken from the navigation target (share stage only)

    Returns:
        GateDecision with the redirect target when not allowed
    """
    if stage == "detect" and draft.original_image is None:
        return GateDecision(stage, False, "upload", "originalImage missing")

    if stage == "copy" and not (draft.selected_label or "").strip():
        return GateDecision(stage, False, "detect", "selectedLabel missing")

    if stage == "price" and (draft.copy is None or not draft.copy.is_complete()):
        return GateDecision(stage, False, "copy", "copy missing or incomplete")

    if stage == "share":
        # Stale or bookmarked share links from a reset session land on upload
        if not draft.share_slug or slug != draft.share_slug:
            return GateDecision(stage, False, "upload", "shareSlug does not match")

    return GateDecision(stage, True)


def resolve_route(path: str) -> Route:
    """Parse a wizard path; unmatched paths fall back to /upload."""
    clean = path or ""
    # Hash routes ("#/price") carry the path after the marker; elsewhere "#" starts a fragment
    if clean.startswith("#"):
        clean = clean[1:]
    clean = clean.split("#", 1)[0].split("?", 1)[0] or "/"
    if not clean.startswith("/"):
        clean = "/" + clean

    for pattern, stage in _ROUTE_PATTERNS:
        match = pattern.match(clean)
        if match:
            return Route(stage=stage, slug=match.groupdict().get("slug"))

    return Route(stage="upload")


def navigate(path: str, draft: ListingDraft) -> tuple[Route, GateDecision]:
    """Resolve ``path`` and apply the stage gate.

    Returns:
        Tuple of (route actually landed on, gate decision for the requested route)
    """
    requested = resolve_route(path)
    decision = check_stage(requested.stage, draft, requested.slug)
    if decision.allowed:
        return requested, decision

    # Walk upstream until a stage's own precondition holds
    target: Stage = decision.redirect_to or "upload"
    while target != "upload":
        hop = check_stage(target, draft)
        if hop.allowed:
            break
        target = hop.redirect_to or "upload"
    return Route(stage=target), decision


def parse_price(value: Any) -> float | None:
    """Parse a user-entered price; None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def can_generate_share(price: Any, nickname: str | None) -> bool:
    """Whether the price stage's generate action is enabled."""
    parsed = parse_price(price)
    if parsed is None or parsed != parsed or parsed <= 0:
        return False
    return bool((nickname or "").strip())
