"""Session-scoped container for the single listing draft.

The store performs no validation. Every write goes through ``update`` so
mutation points stay auditable; listeners are notified after each
replacement (the presentation layer re-renders from them).
"""

import logging
from typing import Callable

from .models import ListingDraft

logger = logging.getLogger(__name__)

DraftUpdater = Callable[[ListingDraft], ListingDraft]
DraftListener = Callable[[ListingDraft], None]


class DraftStore:
    """Holds the current ListingDraft with read/replace-via-updater semantics."""

    def __init__(self, initial: ListingDraft | None = None):
        self._draft = initial if initial is not None else ListingDraft()
        self._listeners: list[DraftListener] = []

    def add_listener(self, callback: DraftListener) -> None:
        """Add a callback to be notified of every replacement.

        Args:
            callback: Function called with the new draft.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: DraftListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def read(self) -> ListingDraft:
        return self._draft

    def update(self, fn: DraftUpdater) -> ListingDraft:
        """Apply ``fn`` to the current draft and replace it with the result.

        Args:
            fn: Updater receiving the current draft and returning the next one

        Returns:
            The new current draft
        """
        self._draft = fn(self._draft)
        self._notify()
        return self._draft

    def reset(self) -> None:
        """Discard the draft (user started a new listing)."""
        self._draft = ListingDraft()
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._draft)
            except Exception as e:
                logger.warning(f"Draft listener failed: {e}")
