"""In-memory WebSocket fanout for feed, conversation, inbox and notification events."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ChannelStreamManager:
    """Groups sockets under string channel keys and pushes JSON events to them.

    A socket may only belong to one channel. Sends that fail drop the socket so
    the next broadcast does not retry it.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._channels: dict[str, set[WebSocket]] = {}
        self._membership: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._channels.setdefault(channel, set()).add(websocket)
            self._membership[websocket] = channel

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            channel = self._membership.pop(websocket, None)
            if channel is None:
                return
            sockets = self._channels.get(channel)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                self._channels.pop(channel, None)

    def connection_count(self, channel: str | None = None) -> int:
        if channel is None:
            return len(self._membership)
        return len(self._channels.get(channel, ()))

    async def send(self, channels: str | Iterable[str] | None, payload: dict[str, Any]) -> None:
        if not channels:
            return
        keys = [channels] if isinstance(channels, str) else [key for key in channels if key]
        if not keys:
            return
        async with self._lock:
            targets: list[WebSocket] = []
            for key in dict.fromkeys(keys):
                targets.extend(self._channels.get(key, ()))
        await self._deliver(targets, payload)

    async def send_all(self, payload: dict[str, Any]) -> None:
        async with self._lock:
            targets = list(self._membership)
        await self._deliver(targets, payload)

    async def _deliver(self, targets: list[WebSocket], payload: dict[str, Any]) -> None:
        if not targets:
            return
        serialized = json.dumps(payload, default=str)
        for websocket in targets:
            try:
                await websocket.send_text(serialized)
            except Exception:
                logger.debug("Dropping dead %s socket", self.name)
                await self.disconnect(websocket)


FEED_CHANNEL = "feed"

feed_stream = ChannelStreamManager("feed")
conversation_stream = ChannelStreamManager("conversation")
inbox_stream = ChannelStreamManager("inbox")
notification_stream = ChannelStreamManager("notification")


def schedule_event(manager: ChannelStreamManager, channels: str | Iterable[str] | None, payload: dict[str, Any]) -> None:
    """Queue a broadcast on the running loop; a no-op outside of one."""

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    if channels is None:
        loop.create_task(manager.send_all(payload))
    else:
        loop.create_task(manager.send(channels, payload))


async def publish_feed_event(payload: dict[str, Any]) -> None:
    if not payload:
        return
    try:
        await feed_stream.send(FEED_CHANNEL, payload)
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Failed to broadcast feed update")


def _control_type(raw: str) -> str:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return raw.strip().lower()
    if isinstance(payload, dict):
        return str(payload.get("type") or "").lower()
    return ""


async def serve_channel(
    manager: ChannelStreamManager,
    channel: str,
    websocket: WebSocket,
    *,
    greet: bool = True,
) -> None:
    """Register the socket on ``channel`` and answer control frames until it closes.

    Accepts ``ping`` either as bare text or as ``{"type": "ping"}``; ``hello``
    is answered with ``ready``. Everything else the client sends is ignored.
    """

    await manager.connect(channel, websocket)
    logger.debug("%s socket joined %s", manager.name, channel)
    try:
        if greet:
            await websocket.send_text(json.dumps({"type": "ready"}))
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            kind = _control_type(raw)
            if kind == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif kind == "hello":
                await websocket.send_text(json.dumps({"type": "ready"}))
    finally:
        await manager.disconnect(websocket)
        logger.debug("%s socket left %s", manager.name, channel)


__all__ = [
    "ChannelStreamManager",
    "serve_channel",
    "FEED_CHANNEL",
    "feed_stream",
    "conversation_stream",
    "inbox_stream",
    "notification_stream",
    "schedule_event",
    "publish_feed_event",
]
