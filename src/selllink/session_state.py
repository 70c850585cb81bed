"""Session-level request state for the listing wizard.

This tracks ephemeral state that lives for the duration of a wizard session
and is never persisted:
- Per-stage request generation tokens (stale responses are discarded)
- Per-stage loading latches
- Background asyncio tasks started on behalf of the session

The listing data itself lives in the DraftStore.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Literal


RequestKind = Literal[
    "detect",
    "remove_bg",
    "copy",
    "price",
]


@dataclass
class WizardSessionState:
    """Ephemeral per-session request bookkeeping."""

    _tokens: dict[str, int] = field(default_factory=dict)
    _loading: set[str] = field(default_factory=set)
    _tasks: set[asyncio.Task] = field(default_factory=set, repr=False)

    def begin_request(self, kind: RequestKind) -> int:
        """Start a request, superseding any outstanding one of the same kind.

        Returns:
            The token the result must present to be applied
        """
        token = self._tokens.get(kind, 0) + 1
        self._tokens[kind] = token
        self._loading.add(kind)
        return token

    def is_current(self, kind: RequestKind, token: int) -> bool:
        return self._tokens.get(kind, 0) == token

    def finish_request(self, kind: RequestKind, token: int) -> bool:
        """Finish a request; clears the latch only for the latest token.

        Returns:
            True if the result may be applied
        """
        if not self.is_current(kind, token):
            return False
        self._loading.discard(kind)
        return True

    def invalidate(self, *kinds: RequestKind) -> None:
        """Make any in-flight result of these kinds stale (input changed)."""
        for kind in kinds:
            self._tokens[kind] = self._tokens.get(kind, 0) + 1
            self._loading.discard(kind)

    def is_loading(self, kind: RequestKind) -> bool:
        return kind in self._loading

    def loading_kinds(self) -> list[str]:
        return sorted(self._loading)

    def track_task(self, task: asyncio.Task) -> None:
        """Track a background task and remove it on completion."""
        self._tasks.add(task)

        def _cleanup(_task: asyncio.Task) -> None:
            self._tasks.discard(_task)

        task.add_done_callback(_cleanup)

    def reset(self) -> None:
        """Invalidate every outstanding request."""
        for kind in list(self._tokens):
            self._tokens[kind] += 1
        self._loading.clear()

    async def cleanup(self) -> None:
        """Cancel tracked tasks and clear state."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.reset()
