"""Keyed store for shared listing records.

Each record is a point-in-time snapshot of the draft, JSON-serialized and
keyed by ``listing_<slug>``. Records are written once, read any number of
times, and never updated. The default database is in-memory, so records
live only as long as the session.
"""

import base64
import json
import logging
import mimetypes
import random
import re
import sqlite3
import string
import time
from copy import deepcopy
from dataclasses import replace
from datetime import datetime, UTC
from pathlib import Path

import aiofiles

from .models import ListingDraft

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS listings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

KEY_PREFIX = "listing_"

_SLUG_ALPHABET = string.digits + string.ascii_lowercase
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*);base64,(?P<data>.*)$", re.DOTALL)


def generate_slug() -> str:
    """Millisecond timestamp plus a 6-character base-36 suffix.

    Uniqueness is probabilistic only; there is no collision check.
    """
    suffix = "".join(random.choices(_SLUG_ALPHABET, k=6))
    return f"{int(time.time() * 1000)}{suffix}"


def storage_key(slug: str) -> str:
    return f"{KEY_PREFIX}{slug}"


def share_url(base_url: str, slug: str) -> str:
    """Public listing URL for a slug."""
    return f"{base_url.rstrip('/')}/p/{slug}"


def share_text(label: str | None) -> str:
    return f"來看看我用 AI SellLink 賣的「{label or ''}」"


class ShareStore:
    """SQLite-backed keyed storage for shared listing records."""

    def __init__(self, db_path: Path | str = ":memory:"):
        """Initialize the share store.

        Args:
            db_path: SQLite database path, or ":memory:" for session-only storage
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def materialize(self, draft: ListingDraft, slug: str | None = None) -> str:
        """Snapshot the draft into a keyed record.

        Args:
            draft: Current draft
            slug: Slug to key the record by; defaults to the draft's share slug,
                  then to a freshly generated one

        Returns:
            The slug the record is stored under
        """
        slug = slug or draft.share_slug or generate_slug()
        snapshot = replace(deepcopy(draft), share_slug=slug)

        cursor = self.conn.execute(
            "INSERT OR IGNORE INTO listings (key, value, created_at) VALUES (?, ?, ?)",
            (
                storage_key(slug),
                json.dumps(snapshot.to_dict(), ensure_ascii=False),
                datetime.now(UTC).isoformat(),
            ),
        )
        self.conn.commit()

        if cursor.rowcount:
            logger.info(f"Stored shared listing {slug}")
        else:
            logger.debug(f"Shared listing {slug} already stored; keeping original snapshot")
        return slug

    def resolve(self, slug: str) -> ListingDraft | None:
        """Look up a record by exact slug.

        Returns:
            The stored draft, or None if the slug is unknown or unreadable
        """
        row = self.conn.execute(
            "SELECT value FROM listings WHERE key = ?",
            (storage_key(slug),)
        ).fetchone()

        if not row:
            return None

        try:
            return ListingDraft.from_dict(json.loads(row["value"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Unreadable shared listing {slug}: {e}")
            return None

    def exists(self, slug: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM listings WHERE key = ?",
            (storage_key(slug),)
        ).fetchone()
        return row is not None

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]

    async def export_image(self, slug: str, directory: Path | str) -> Path | None:
        """Write the record's inline display image to ``directory``.

        Returns:
            Path of the written file, or None when there is no inline image
        """
        listing = self.resolve(slug)
        if listing is None or not listing.display_image:
            return None

        match = _DATA_URI_RE.match(listing.display_image)
        if not match:
            # Remote URLs are not downloaded
            return None

        mime = match.group("mime") or "image/png"
        extension = mimetypes.guess_extension(mime) or ".png"
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{slug}{extension}"

        async with aiofiles.open(out_path, "wb") as f:
            await f.write(base64.b64decode(match.group("data")))

        return out_path
