"""Listing wizard orchestration.

Ties the draft store, stage gates, capability services and share store
together. Each public method is one stage action. Capability calls never
raise; results from superseded requests are discarded.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from .capabilities import BackgroundRemover, CopyWriter, ItemDetector, PriceAdvisor
from .capabilities.imaging import sniff_mime_type
from .draft_store import DraftStore
from .errors import ListingValidationError
from .models import (
    UNRECOGNIZED_ITEM,
    BackendCallResult,
    Contact,
    CopyRequest,
    CopyStyle,
    DetectResult,
    ListingCopy,
    ListingDraft,
    OriginalImage,
    PriceHint,
)
from .session_state import WizardSessionState
from .share_store import ShareStore, generate_slug
from .stages import GateDecision, Route, can_generate_share, check_stage, navigate, parse_price

logger = logging.getLogger(__name__)

COPY_STYLES: tuple[str, ...] = ("brandStyle", "resaleStyle")
CONTACT_TYPES: tuple[str, ...] = ("LINE", "IG", "Email", "")


class ListingWizard:
    """Drives one session's listing draft through the five stages."""

    def __init__(
        self,
        store: DraftStore,
        share_store: ShareStore,
        detector: ItemDetector,
        remover: BackgroundRemover,
        copywriter: CopyWriter,
        price_advisor: PriceAdvisor,
        session: WizardSessionState | None = None,
    ):
        self.store = store
        self.share_store = share_store
        self.detector = detector
        self.remover = remover
        self.copywriter = copywriter
        self.price_advisor = price_advisor
        self.session = session or WizardSessionState()

    @property
    def draft(self) -> ListingDraft:
        return self.store.read()

    # --- Navigation ---

    def navigate(self, path: str) -> tuple[Route, GateDecision]:
        """Resolve a path against the current draft, applying stage gates."""
        route, decision = navigate(path, self.draft)
        if not decision.allowed:
            logger.info(f"Redirecting {path} -> {route.path} ({decision.reason})")
        return route, decision

    # --- Upload ---

    def upload(self, data: bytes, filename: str = "upload", mime_type: str | None = None) -> ListingDraft:
        """Store the uploaded photo.

        Raises:
            ListingValidationError: If the upload is empty or not an image
        """
        if not data:
            raise ListingValidationError("No image provided")

        mime = mime_type if mime_type and mime_type.startswith("image/") else sniff_mime_type(data, filename, default="")
        if not mime.startswith("image/"):
            raise ListingValidationError(f"Unsupported file type: {mime_type or filename}")

        image = OriginalImage(data=data, mime_type=mime, filename=filename or "upload")
        # A new photo makes every downstream request stale
        self.session.invalidate("detect", "remove_bg", "copy", "price")
        # Product fields belong to the previous photo; seller details carry over
        return self.store.update(lambda d: ListingDraft(
            original_image=image,
            nickname=d.nickname,
            contact=d.contact,
        ))

    # --- Detect ---

    async def run_detect(self) -> DetectResult | None:
        """Detect candidate labels for the current image.

        Returns:
            The detect result, or None if there is no image or the result is stale
        """
        image = self.draft.original_image
        if image is None:
            logger.warning("Detect requested without an uploaded image")
            return None

        token = self.session.begin_request("detect")
        result = await self.detector.detect(image)
        if not self.session.finish_request("detect", token):
            logger.debug("Discarding stale detect result")
            return None

        def apply(d: ListingDraft) -> ListingDraft:
            selected = d.selected_label
            if not selected or selected not in (d.candidates or []):
                real = [item for item in result.items if item != UNRECOGNIZED_ITEM]
                selected = real[0] if real else selected
            return replace(d, candidates=list(result.items), selected_label=selected)

        self.store.update(apply)
        return result

    def choose_label(self, label: str, official_url: str | None = None) -> ListingDraft:
        """Record the user's pick (or manual entry) and optional official URL.

        Raises:
            ListingValidationError: If the label is empty
        """
        label = (label or "").strip()
        if not label:
            raise ListingValidationError("A product name is required")

        url = (official_url or "").strip() or None
        if label != self.draft.selected_label:
            self.session.invalidate("copy", "price")
        return self.store.update(lambda d: replace(d, selected_label=label, official_url=url))

    # --- Copy ---

    async def remove_background(self) -> BackendCallResult | None:
        """Remove the background of the current image.

        Returns:
            The call result (``used_fallback`` tells whether the original was kept),
            or None if there is no image or the result is stale
        """
        image = self.draft.original_image
        if image is None:
            return None

        token = self.session.begin_request("remove_bg")
        result = await self.remover.remove_background(image)
        if not self.session.finish_request("remove_bg", token):
            logger.debug("Discarding stale remove-background result")
            return None

        if result.used_fallback:
            logger.info("Background not removed; keeping original photo")
        self.store.update(lambda d: replace(d, enhanced_image_url=result.image_url))
        return result

    def detection_reason(self) -> str:
        candidates = self.draft.candidates or []
        if not candidates:
            return ""
        return "AI 辨識候選：" + "、".join(candidates[:3])

    async def run_copy(self) -> ListingCopy | None:
        """Generate copy for the selected label.

        Returns:
            Generated (or fallback) copy, or None without a label or when stale
        """
        draft = self.draft
        if not (draft.selected_label or "").strip():
            logger.warning("Copy requested without a selected label")
            return None

        request = CopyRequest(
            item_name=draft.selected_label,
            reason=self.detection_reason(),
            official_url=draft.official_url or "",
        )
        token = self.session.begin_request("copy")
        copy = await self.copywriter.generate(request)
        if not self.session.finish_request("copy", token):
            logger.debug("Discarding stale copy result")
            return None
        return copy

    def confirm_copy(
        self,
        copy: ListingCopy | None = None,
        style: CopyStyle = "resaleStyle",
    ) -> ListingDraft:
        """Store the (possibly edited) copy and chosen style.

        Raises:
            ListingValidationError: If both texts are empty or the style is unknown
        """
        copy = copy or self.draft.copy
        if copy is None or not copy.is_complete():
            raise ListingValidationError("Both copy styles need text")
        if style not in COPY_STYLES:
            raise ListingValidationError(f"Unknown copy style: {style}")

        def apply(d: ListingDraft) -> ListingDraft:
            image_url = d.enhanced_image_url
            if not image_url and d.original_image:
                image_url = d.original_image.data_uri
            return replace(d, copy=copy, selected_copy_style=style, enhanced_image_url=image_url)

        return self.store.update(apply)

    # --- Price ---

    async def run_price_hint(self) -> PriceHint | None:
        """Suggest a price range for the selected label."""
        label = (self.draft.selected_label or "").strip()
        if not label:
            return None

        token = self.session.begin_request("price")
        hint = await self.price_advisor.suggest(label)
        if not self.session.finish_request("price", token):
            logger.debug("Discarding stale price hint")
            return None

        self.store.update(lambda d: replace(d, price_hint=hint))
        return hint

    def generate_share(self, price: Any, nickname: str, contact: Contact | None = None) -> str:
        """Finish the price stage and assign a share slug.

        Raises:
            ListingValidationError: Unless price > 0 and nickname is non-empty
        """
        if not can_generate_share(price, nickname):
            raise ListingValidationError("Price and nickname are required")
        if contact is not None and contact.type not in CONTACT_TYPES:
            raise ListingValidationError(f"Unknown contact type: {contact.type}")

        slug = generate_slug()
        parsed = parse_price(price)
        self.store.update(lambda d: replace(
            d,
            price=parsed,
            nickname=nickname.strip(),
            contact=contact or Contact(),
            price_hint=d.price_hint or PriceHint(min=0, max=0),
            share_slug=slug,
        ))
        return slug

    # --- Share / Public ---

    def open_share(self, slug: str) -> ListingDraft | None:
        """Enter the share stage for ``slug``.

        Returns:
            The draft (now materialized), or None when the gate redirects to upload
        """
        draft = self.draft
        decision = check_stage("share", draft, slug)
        if not decision.allowed:
            logger.info(f"Share link {slug} does not match the current draft")
            return None

        if not self.share_store.exists(slug):
            self.share_store.materialize(draft, slug)
        return draft

    def public_listing(self, slug: str) -> ListingDraft | None:
        """Resolve a shared listing; None means not found or expired."""
        return self.share_store.resolve(slug)

    def new_listing(self) -> None:
        """Discard the draft and every in-flight request."""
        self.session.reset()
        self.store.reset()

    def status(self) -> dict[str, Any]:
        return {
            "loading": self.session.loading_kinds(),
            "backends": {
                "detect": self.detector.backend_name,
                "remove_bg": self.remover.backend_name,
                "generate_copy": self.copywriter.backend_name,
                "suggest_price": self.price_advisor.backend_name,
            },
            "shareSlug": self.draft.share_slug,
        }
