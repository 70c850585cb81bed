"""Main entry point for the SellLink server."""

import argparse
import asyncio
import logging
import sys

from .capabilities import build_capabilities
from .config import SellLinkConfig


async def run_server(config: SellLinkConfig, log_level: str = "info") -> None:
    """Run the SellLink API under uvicorn.

    Args:
        config: Loaded configuration
        log_level: Log level passed to uvicorn
    """
    import uvicorn

    from .server import create_app

    missing = config.missing_keys()
    if missing:
        print(f"Warning: missing {', '.join(missing)}; affected capabilities will use fallbacks")

    app = create_app(config=config)
    print(f"Resolved backends: {app.state.capabilities.describe()}")
    print(f"SellLink listening on http://{config.host}:{config.port}")

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=log_level,
    ))
    await server.serve()


async def check_backends(config: SellLinkConfig) -> dict[str, str | None]:
    """Resolve each capability's backend without serving."""
    capabilities = build_capabilities(config)
    try:
        return capabilities.describe()
    finally:
        await capabilities.close()


def cli() -> None:
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="SellLink - photo to shareable second-hand listing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the wizard API on the configured port
  selllink serve

  # Show which backend each capability resolves to
  selllink check --config .selllink/config.yaml

Environment variables:
  GEMINI_API_KEY          Gemini key for detect, copy, price (and image edit).
  CLIPDROP_API_KEY        ClipDrop key for background removal.
  REMOVE_BG_FUNCTION_URL  Remove-bg edge function (highest priority).
  REMOVE_BG_PROXY_URL     Self-hosted remove-bg proxy base URL.
  DETECT_FUNCTION_URL     Detect endpoint used instead of calling Gemini directly.
"""
    )

    parser.add_argument(
        "command",
        choices=["serve", "check"],
        nargs="?",
        default="serve",
        help="What to run (default: serve)"
    )

    parser.add_argument(
        "--config",
        default=".selllink/config.yaml",
        help="Path to config file (default: .selllink/config.yaml)"
    )

    parser.add_argument("--host", help="Bind address (overrides config)")

    parser.add_argument("--port", type=int, help="Server port (overrides config)")

    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SellLinkConfig.load(args.config)
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    if args.command == "check":
        resolved = asyncio.run(check_backends(config))
        for capability, backend in resolved.items():
            print(f"{capability:15} {backend or 'fallback only'}")
        missing = config.missing_keys()
        if missing:
            print(f"Missing: {', '.join(missing)}")
        sys.exit(0)

    try:
        asyncio.run(run_server(config, log_level=args.log_level))
    except KeyboardInterrupt:
        print("\nShutting down...")


if __name__ == "__main__":
    cli()
