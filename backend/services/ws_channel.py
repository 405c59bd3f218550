"""
WebSocket transport for the live preview.

Host callbacks are synchronous but socket writes are not, so every socket
gets an Outbox: a queue drained by one writer task. Sends never block the
caller and keep their order.

WebSocketChannel adapts a preview socket to the engine's Channel: post()
encodes an envelope into the outbox, feed() decodes one incoming frame and
hands it to the listener.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from engine.core.protocol import Channel, Envelope, Handler, ProtocolError, decode, encode

logger = logging.getLogger(__name__)


class Outbox:
    """Ordered, non-blocking writes to one WebSocket."""

    def __init__(self, websocket: WebSocket, name: str = "ws") -> None:
        self.websocket = websocket
        self.name = name
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer = asyncio.get_running_loop().create_task(self._write())
        self._closed = False

    def send_text(self, text: str) -> None:
        if self._closed:
            logger.debug("ws: %s closed, dropping frame", self.name)
            return
        self._queue.put_nowait(text)

    def send_json(self, data: dict[str, Any]) -> None:
        self.send_text(json.dumps(data, ensure_ascii=False))

    async def _write(self) -> None:
        while True:
            text = await self._queue.get()
            if text is None:
                return
            try:
                await self.websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.info("ws: %s send failed, closing outbox: %s", self.name, e)
                self._closed = True
                return

    async def close(self) -> None:
        """Flush what is queued, then stop the writer."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)
        try:
            await asyncio.wait_for(self._writer, timeout=1.0)
        except TimeoutError:
            self._writer.cancel()


class WebSocketChannel(Channel):
    """Channel endpoint backed by a preview WebSocket."""

    def __init__(self, websocket: WebSocket, name: str = "preview") -> None:
        self.name = name
        self.outbox = Outbox(websocket, name)
        self._handler: Handler | None = None

    def post(self, envelope: Envelope) -> None:
        self.outbox.send_text(encode(envelope))

    def listen(self, handler: Handler) -> None:
        self._handler = handler

    def feed(self, raw: str | bytes) -> Envelope | None:
        """Decode one incoming frame and dispatch it. Malformed frames are logged and dropped."""
        try:
            envelope = decode(raw)
        except ProtocolError as e:
            logger.warning("ws: %s dropped malformed envelope: %s", self.name, e)
            return None
        if self._handler is None:
            logger.debug("ws: %s has no listener, dropped %s", self.name, envelope.type)
            return None
        try:
            self._handler(envelope)
        except Exception:
            logger.exception("ws: %s handler failed on %s", self.name, envelope.type)
        return envelope

    async def close(self) -> None:
        self._handler = None
        await self.outbox.close()
