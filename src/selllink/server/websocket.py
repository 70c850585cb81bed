"""WebSocket connection manager for live draft updates."""

import json
from datetime import datetime, UTC
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..models import ListingDraft


def draft_summary(draft: ListingDraft) -> dict[str, Any]:
    """Draft fields without inline image data, for broadcasting."""
    data = draft.to_dict()
    image = data.pop("originalImage", None)
    if image:
        data["originalImage"] = {"filename": image["filename"], "mimeType": image["mimeType"]}
    enhanced = data.get("enhancedImageUrl")
    if enhanced and enhanced.startswith("data:"):
        data["enhancedImageUrl"] = "inline"
    return data


class ConnectionManager:
    """Pushes draft changes to every connected wizard tab."""

    def __init__(self):
        self.clients: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.clients.discard(websocket)

    async def broadcast_draft(self, draft: ListingDraft) -> None:
        """Send a ``draft_updated`` event; clients that fail to receive it are dropped."""
        if not self.clients:
            return

        message = json.dumps(
            {
                "type": "draft_updated",
                "data": draft_summary(draft),
                "timestamp": datetime.now(UTC).isoformat(),
            },
            ensure_ascii=False,
        )
        for client in list(self.clients):
            try:
                await client.send_text(message)
            except (WebSocketDisconnect, RuntimeError, OSError):
                self.disconnect(client)
