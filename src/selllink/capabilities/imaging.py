"""Image encoding helpers shared by capability backends."""

import base64
import binascii
import mimetypes
import re

from .base import CapabilityError

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*);base64,(?P<data>.*)$", re.DOTALL)

# Leading bytes of the formats a phone camera or browser upload produces
_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
]


def sniff_mime_type(data: bytes, filename: str | None = None, default: str = "image/jpeg") -> str:
    """Guess an image MIME type from magic bytes, then the filename."""
    for signature, mime in _SIGNATURES:
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed and guessed.startswith("image/"):
            return guessed
    return default


def encode_image(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def extract_base64_payload(value: str | None, default_mime: str = "image/jpeg") -> tuple[str, str]:
    """Split an optional data URI into (bare base64, mime type)."""
    if not value:
        return "", default_mime
    match = _DATA_URI_RE.match(value.strip())
    if match:
        return match.group("data"), match.group("mime") or default_mime
    return value.strip(), default_mime


def decode_image(value: str) -> bytes:
    """Decode a bare base64 string or data URI to bytes.

    Raises:
        CapabilityError: If the payload is not valid base64
    """
    data, _ = extract_base64_payload(value)
    clean = re.sub(r"\s+", "", data)
    try:
        return base64.b64decode(clean, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CapabilityError(f"Invalid base64 image payload: {e}") from e
