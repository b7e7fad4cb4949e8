"""Public feed socket: post created/deleted and engagement changes."""
from __future__ import annotations

from fastapi import APIRouter, WebSocket

from ..services.streams import FEED_CHANNEL, feed_stream, serve_channel

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/feed")
async def feed_socket(websocket: WebSocket) -> None:
    # Anonymous viewers may follow the feed; clients send "hello" to confirm the stream.
    await serve_channel(feed_stream, FEED_CHANNEL, websocket, greet=False)


__all__ = ["router"]
