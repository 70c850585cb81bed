"""Capability backend protocol and selection.

A capability (detect, remove background, generate copy, suggest price) is
served by an ordered, statically declared list of backends. The first
configured backend is selected once, when the capability service is
built, and is the only one attempted per call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Protocol, Sequence, TypeVar

from ..errors import SellLinkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CapabilityError(SellLinkError):
    """A backend failed: transport error, non-success status, or bad payload."""


class ConfigurationError(CapabilityError):
    """A backend is missing its API key or URL."""


class CapabilityBackend(Protocol):
    """A provider implementing one capability."""

    name: str

    @property
    def is_configured(self) -> bool: ...

    async def attempt(self, value: Any) -> Any:
        """Run the capability; raises CapabilityError on failure."""
        ...


@dataclass
class Attempt(Generic[T]):
    """Outcome of one backend attempt."""

    ok: bool
    value: T | None = None
    error: str | None = None
    backend: str | None = None


def select_backend(backends: Sequence[Any]) -> Any | None:
    """Return the first configured backend, or None."""
    for backend in backends:
        if backend.is_configured:
            return backend
    return None


async def attempt_backend(backend: Any | None, value: Any, capability: str) -> Attempt:
    """Attempt a capability on the selected backend without raising.

    Args:
        backend: Selected backend (None when nothing is configured)
        value: Capability input
        capability: Capability name for log messages

    Returns:
        Attempt with either the output value or an error message
    """
    if backend is None:
        message = f"No {capability} backend configured"
        logger.warning(message)
        return Attempt(ok=False, error=message)

    try:
        result = await backend.attempt(value)
    except CapabilityError as e:
        logger.warning(f"{capability} via {backend.name} failed: {e}")
        return Attempt(ok=False, error=str(e), backend=backend.name)
    except Exception as e:
        logger.exception(f"{capability} via {backend.name} raised unexpectedly")
        return Attempt(ok=False, error=f"{type(e).__name__}: {e}", backend=backend.name)

    return Attempt(ok=True, value=result, backend=backend.name)
