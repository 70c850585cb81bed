"""FastAPI server exposing the listing wizard and capability functions."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..capabilities import Capabilities, build_capabilities
from ..capabilities.copywriter import GeminiCopyBackend
from ..capabilities.detect import GeminiDetectBackend
from ..capabilities.pricing import GeminiPriceBackend
from ..capabilities.remove_bg import ClipdropRemover
from ..config import SellLinkConfig
from ..draft_store import DraftStore
from ..errors import ListingValidationError
from ..models import ListingDraft
from ..share_store import ShareStore
from ..wizard import ListingWizard
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)


def build_wizard(config: SellLinkConfig, capabilities: Capabilities) -> ListingWizard:
    """Wire a wizard session from configuration."""
    return ListingWizard(
        store=DraftStore(),
        share_store=ShareStore(config.share_db_path),
        detector=capabilities.detector,
        remover=capabilities.remover,
        copywriter=capabilities.copywriter,
        price_advisor=capabilities.price_advisor,
    )


def create_app(
    config: SellLinkConfig | None = None,
    wizard: ListingWizard | None = None,
    capabilities: Capabilities | None = None,
) -> FastAPI:
    """Create FastAPI app with injected dependencies.

    Args:
        config: Loaded configuration (defaults are used when None)
        wizard: Wizard session; built from config when None
        capabilities: Capability services; built from config when None

    Returns:
        Configured FastAPI application
    """
    config = config or SellLinkConfig()
    capabilities = capabilities or build_capabilities(config)
    wizard = wizard or build_wizard(config, capabilities)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await wizard.session.cleanup()
        await capabilities.close()
        wizard.share_store.close()

    app = FastAPI(
        title="SellLink",
        description="Photo-to-listing wizard with AI detection, copy and pricing",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.wizard = wizard
    app.state.capabilities = capabilities
    app.state.ws_manager = ConnectionManager()
    # Capability functions call the third-party services directly
    app.state.function_backends = {
        "detect": GeminiDetectBackend(capabilities.gemini),
        "remove_bg": ClipdropRemover(config.clipdrop_api_key, capabilities.client, url=config.clipdrop_url),
        "generate_copy": GeminiCopyBackend(capabilities.gemini),
        "suggest_price": GeminiPriceBackend(capabilities.gemini),
    }

    def broadcast_draft(draft: ListingDraft) -> None:
        """Push draft changes to WebSocket clients."""
        try:
            task = asyncio.get_running_loop().create_task(
                app.state.ws_manager.broadcast_draft(draft)
            )
        except RuntimeError:
            # No running loop (draft changed outside a request)
            return
        wizard.session.track_task(task)

    wizard.store.add_listener(broadcast_draft)

    @app.exception_handler(ListingValidationError)
    async def validation_error_handler(request: Request, exc: ListingValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    from .routes import functions, public, wizard as wizard_routes

    app.include_router(wizard_routes.router, prefix="/api/wizard", tags=["wizard"])
    app.include_router(functions.router, prefix="/api", tags=["functions"])
    app.include_router(public.router, tags=["public"])

    @app.websocket("/ws/draft")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint streaming draft updates."""
        await app.state.ws_manager.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            app.state.ws_manager.disconnect(websocket)

    @app.get("/health")
    async def health():
        """Quick health check."""
        return {
            "status": "ok",
            "service": "selllink",
            "backends": capabilities.describe(),
        }

    return app
