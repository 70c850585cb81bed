"""Data models for the SellLink listing wizard."""

import base64 as b64
from dataclasses import dataclass, field
from typing import Literal


# Type aliases for stages and enumerated fields
Stage = Literal[
    "upload",
    "detect",
    "copy",
    "price",
    "share",
    "public",
]

CopyStyle = Literal["brandStyle", "resaleStyle"]

ContactType = Literal["LINE", "IG", "Email", ""]

ResultKind = Literal["url", "base64"]

UNRECOGNIZED_ITEM = "未辨識到商品"


def to_data_uri(data: str, mime_type: str) -> str:
    """Wrap a bare base64 payload in a data URI."""
    return f"data:{mime_type};base64,{data}"


@dataclass
class OriginalImage:
    """The uploaded photo: binary handle plus its base64 encoding."""

    data: bytes
    base64: str = ""
    mime_type: str = "image/jpeg"
    filename: str = "upload"

    def __post_init__(self) -> None:
        if not self.base64:
            self.base64 = b64.b64encode(self.data).decode("ascii")

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.base64, self.mime_type)

    def to_dict(self) -> dict:
        """Serializable form; the binary handle is replaced by its encoding."""
        return {
            "filename": self.filename,
            "mimeType": self.mime_type,
            "base64": self.base64,
            "dataUri": self.data_uri,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OriginalImage":
        encoded = data["base64"]
        return cls(
            data=b64.b64decode(encoded),
            base64=encoded,
            mime_type=data.get("mimeType", "image/jpeg"),
            filename=data.get("filename", "upload"),
        )


@dataclass
class ListingCopy:
    """Dual-style sale copy."""

    brand_style: str
    resale_style: str

    def is_complete(self) -> bool:
        return bool(self.brand_style.strip()) and bool(self.resale_style.strip())

    def text_for(self, style: CopyStyle | None) -> str:
        if style == "brandStyle":
            return self.brand_style
        return self.resale_style

    def to_dict(self) -> dict:
        return {"brandStyle": self.brand_style, "resaleStyle": self.resale_style}

    @classmethod
    def from_dict(cls, data: dict) -> "ListingCopy":
        return cls(
            brand_style=data.get("brandStyle", ""),
            resale_style=data.get("resaleStyle", ""),
        )


@dataclass
class PriceHint:
    """Suggested second-hand price range."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if self.min > self.max:
            self.min, self.max = self.max, self.min

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, data: dict) -> "PriceHint":
        return cls(min=data["min"], max=data["max"])


@dataclass
class Contact:
    """Seller contact channel."""

    type: ContactType = ""
    value: str = ""

    def to_dict(self) -> dict:
        return {"type": self.type, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Contact":
        return cls(type=data.get("type", ""), value=data.get("value", ""))


@dataclass
class ContactLink:
    """A clickable contact link for the public listing page."""

    href: str
    label: str

    def to_dict(self) -> dict:
        return {"href": self.href, "label": self.label}


def contact_link(contact: Contact | None) -> ContactLink | None:
    """Build the public contact link, or None when there is nothing usable."""
    if not contact or not contact.value:
        return None

    value = contact.value.strip()
    if contact.type == "LINE":
        return ContactLink(href=f"https://line.me/ti/p/~{value}", label=f"LINE：{value}")
    if contact.type == "IG":
        handle = value.lstrip("@")
        return ContactLink(href=f"https://instagram.com/{handle}", label=f"IG：@{handle}")
    if contact.type == "Email":
        return ContactLink(href=f"mailto:{value}", label=f"Email：{value}")
    return None


@dataclass
class ListingDraft:
    """The in-progress listing assembled across wizard stages.

    Every field is optional; an empty draft is ``ListingDraft()``. Stages
    add fields and never remove earlier ones.
    """

    original_image: OriginalImage | None = None
    candidates: list[str] | None = None
    selected_label: str | None = None
    official_url: str | None = None
    enhanced_image_url: str | None = None
    copy: ListingCopy | None = None
    selected_copy_style: CopyStyle | None = None
    price_hint: PriceHint | None = None
    price: float | None = None
    nickname: str | None = None
    contact: Contact | None = None
    share_slug: str | None = None

    def is_empty(self) -> bool:
        return self == ListingDraft()

    @property
    def display_text(self) -> str:
        """Copy text shown downstream, chosen by the selected style."""
        if not self.copy:
            return ""
        return self.copy.text_for(self.selected_copy_style)

    @property
    def display_image(self) -> str | None:
        """Enhanced image if present, otherwise the original's data URI."""
        if self.enhanced_image_url:
            return self.enhanced_image_url
        if self.original_image:
            return self.original_image.data_uri
        return None

    def to_dict(self) -> dict:
        """Convert to the camelCase JSON shape used for share records."""
        data: dict = {}
        if self.original_image is not None:
            data["originalImage"] = self.original_image.to_dict()
        if self.candidates is not None:
            data["candidates"] = list(self.candidates)
        if self.selected_label is not None:
            data["selectedLabel"] = self.selected_label
        if self.official_url is not None:
            data["officialUrl"] = self.official_url
        if self.enhanced_image_url is not None:
            data["enhancedImageUrl"] = self.enhanced_image_url
        if self.copy is not None:
            data["copy"] = self.copy.to_dict()
        if self.selected_copy_style is not None:
            data["selectedCopyStyle"] = self.selected_copy_style
        if self.price_hint is not None:
            data["priceHint"] = self.price_hint.to_dict()
        if self.price is not None:
            data["price"] = self.price
        if self.nickname is not None:
            data["nickname"] = self.nickname
        if self.contact is not None:
            data["contact"] = self.contact.to_dict()
        if self.share_slug is not None:
            data["shareSlug"] = self.share_slug
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ListingDraft":
        """Create from the camelCase JSON shape."""
        image = data.get("originalImage")
        copy = data.get("copy")
        hint = data.get("priceHint")
        contact = data.get("contact")
        candidates = data.get("candidates")
        return cls(
            original_image=OriginalImage.from_dict(image) if image else None,
            candidates=list(candidates) if candidates is not None else None,
            selected_label=data.get("selectedLabel"),
            official_url=data.get("officialUrl"),
            enhanced_image_url=data.get("enhancedImageUrl"),
            copy=ListingCopy.from_dict(copy) if copy else None,
            selected_copy_style=data.get("selectedCopyStyle"),
            price_hint=PriceHint.from_dict(hint) if hint else None,
            price=data.get("price"),
            nickname=data.get("nickname"),
            contact=Contact.from_dict(contact) if contact else None,
            share_slug=data.get("shareSlug"),
        )


@dataclass
class BackendCallResult:
    """Normalized image result of a capability call.

    ``used_fallback`` is True when the configured backend failed (or none
    was configured) and the original input was substituted.
    """

    payload: str
    kind: ResultKind = "base64"
    mime_type: str = "image/png"
    used_fallback: bool = False
    backend: str | None = None

    @property
    def image_url(self) -> str:
        """URL as-is, or a data URI for inline payloads."""
        if self.kind == "url":
            return self.payload
        return to_data_uri(self.payload, self.mime_type)

    def to_dict(self) -> dict:
        return {
            "payload": self.payload,
            "kind": self.kind,
            "mimeType": self.mime_type,
            "usedFallback": self.used_fallback,
            "backend": self.backend,
            "imageUrl": self.image_url,
        }


@dataclass
class DetectResult:
    """Outcome of a detect-item call."""

    items: list[str] = field(default_factory=list)
    used_fallback: bool = False
    error: str | None = None
    backend: str | None = None

    def to_dict(self) -> dict:
        return {
            "items": list(self.items),
            "usedFallback": self.used_fallback,
            "error": self.error,
            "backend": self.backend,
        }


@dataclass
class CopyRequest:
    """Input for the generate-copy capability."""

    item_name: str
    reason: str = ""
    official_url: str = ""

    def to_dict(self) -> dict:
        return {
            "itemName": self.item_name,
            "reason": self.reason,
            "officialUrl": self.official_url,
        }
