"""Capability services and their ordered backend lists."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..config import SellLinkConfig
from .base import Attempt, CapabilityBackend, CapabilityError, ConfigurationError
from .copywriter import CopyFunctionBackend, CopyWriter, GeminiCopyBackend
from .detect import DetectFunctionBackend, GeminiDetectBackend, ItemDetector
from .gemini import GeminiClient
from .pricing import GeminiPriceBackend, PriceAdvisor, PriceFunctionBackend
from .remove_bg import (
    BackgroundRemover,
    ClipdropRemover,
    EdgeFunctionRemover,
    GeminiImageRemover,
    ProxyRemover,
)


@dataclass
class Capabilities:
    """The four capability services built from one configuration."""

    detector: ItemDetector
    remover: BackgroundRemover
    copywriter: CopyWriter
    price_advisor: PriceAdvisor
    client: httpx.AsyncClient
    gemini: GeminiClient

    def describe(self) -> dict[str, str | None]:
        """Backend each capability resolved to (None = fallback only)."""
        return {
            "detect": self.detector.backend_name,
            "remove_bg": self.remover.backend_name,
            "generate_copy": self.copywriter.backend_name,
            "suggest_price": self.price_advisor.backend_name,
        }

    async def close(self) -> None:
        """Close the shared HTTP client."""
        await self.client.aclose()


def build_capabilities(
    config: SellLinkConfig,
    client: httpx.AsyncClient | None = None,
    gemini: GeminiClient | None = None,
) -> Capabilities:
    """Build every capability with its statically ordered backend list.

    Args:
        config: Loaded configuration
        client: Shared HTTP client (tests pass one with a MockTransport)
        gemini: Gemini client override

    Returns:
        Capabilities with backends resolved once, here
    """
    client = client or httpx.AsyncClient(timeout=config.http_timeout)
    gemini = gemini or GeminiClient(
        api_key=config.gemini.api_key,
        model=config.gemini.model,
        image_model=config.gemini.image_model,
    )
    urls = config.backends

    return Capabilities(
        detector=ItemDetector([
            DetectFunctionBackend(urls.detect_function, client),
            GeminiDetectBackend(gemini),
        ]),
        remover=BackgroundRemover([
            EdgeFunctionRemover(urls.remove_bg_function, client),
            ProxyRemover(urls.remove_bg_proxy, client),
            ClipdropRemover(config.clipdrop_api_key, client, url=config.clipdrop_url),
            GeminiImageRemover(gemini),
        ]),
        copywriter=CopyWriter([
            CopyFunctionBackend(urls.copy_function, client),
            GeminiCopyBackend(gemini),
        ]),
        price_advisor=PriceAdvisor([
            PriceFunctionBackend(urls.price_function, client),
            GeminiPriceBackend(gemini),
        ]),
        client=client,
        gemini=gemini,
    )


__all__ = [
    "Attempt",
    "BackgroundRemover",
    "Capabilities",
    "CapabilityBackend",
    "CapabilityError",
    "ConfigurationError",
    "CopyWriter",
    "GeminiClient",
    "ItemDetector",
    "PriceAdvisor",
    "build_capabilities",
]
