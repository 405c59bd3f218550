"""
Markstyle Core: Messaging Protocol

Envelope format shared by the host and the preview, plus the Channel
abstraction they talk through.

Wire format (JSON text):
    {"type": "<message type>", "payload": <type-specific>, "seq": <int, optional>}

Host -> Preview:   update-state (full Document), editor-scroll (ratio)
Preview -> Host:   preview-ready, preview-scroll (ratio), element-selected (key)

A channel delivers in send order per direction and makes no promise across
directions. Nothing is buffered for an endpoint that is not listening yet.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from engine.core.types import is_element_key

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Message types
# ---------------------------------------------------------------------------

MESSAGE_PREVIEW_READY = "preview-ready"
MESSAGE_UPDATE_STATE = "update-state"
MESSAGE_EDITOR_SCROLL = "editor-scroll"
MESSAGE_PREVIEW_SCROLL = "preview-scroll"
MESSAGE_ELEMENT_SELECTED = "element-selected"

HOST_MESSAGES: frozenset[str] = frozenset({MESSAGE_UPDATE_STATE, MESSAGE_EDITOR_SCROLL})
PREVIEW_MESSAGES: frozenset[str] = frozenset(
    {MESSAGE_PREVIEW_READY, MESSAGE_PREVIEW_SCROLL, MESSAGE_ELEMENT_SELECTED}
)
MESSAGE_TYPES: frozenset[str] = HOST_MESSAGES | PREVIEW_MESSAGES
SCROLL_MESSAGES: frozenset[str] = frozenset({MESSAGE_EDITOR_SCROLL, MESSAGE_PREVIEW_SCROLL})


class ProtocolError(ValueError):
    """An envelope could not be encoded or does not match its type's shape."""
    pass


@dataclass(frozen=True)
class Envelope:
    type: str
    payload: Any = None
    seq: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "payload": self.payload}
        if self.seq is not None:
            d["seq"] = self.seq
        return d


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def encode(envelope: Envelope) -> str:
    """Serialize an envelope. Non-finite numbers are rejected."""
    try:
        return json.dumps(envelope.to_dict(), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Cannot encode {envelope.type} envelope: {e}") from e


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _validate_payload(message_type: str, payload: Any) -> Any:
    if message_type == MESSAGE_PREVIEW_READY:
        return None

    if message_type == MESSAGE_UPDATE_STATE:
        if not isinstance(payload, dict):
            raise ProtocolError("update-state payload must be an object")
        if not isinstance(payload.get("markdown"), str):
            raise ProtocolError("update-state payload.markdown must be a string")
        if not isinstance(payload.get("styles"), dict):
            raise ProtocolError("update-state payload.styles must be an object")
        return payload

    if message_type in SCROLL_MESSAGES:
        if not _is_number(payload):
            raise ProtocolError(f"{message_type} payload must be a finite number")
        return float(payload)

    if message_type == MESSAGE_ELEMENT_SELECTED:
        if not is_element_key(payload):
            raise ProtocolError(f"element-selected payload is not an element key: {payload!r}")
        return payload

    raise ProtocolError(f"Unknown message type: {message_type!r}")


def decode(raw: str | bytes | dict[str, Any]) -> Envelope:
    """
    Parse and validate one envelope.

    Raises ProtocolError for invalid JSON, unknown types, or payloads that do
    not match their type.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Envelope is not UTF-8: {e}") from e
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Envelope is not JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise ProtocolError("Envelope must be a JSON object")
    message_type = data.get("type")
    if not isinstance(message_type, str):
        raise ProtocolError("Envelope type must be a string")

    payload = _validate_payload(message_type, data.get("payload"))

    seq = data.get("seq")
    if seq is not None and (isinstance(seq, bool) or not isinstance(seq, int) or seq < 0):
        raise ProtocolError(f"Envelope seq must be a non-negative integer, got {seq!r}")

    return Envelope(type=message_type, payload=payload, seq=seq)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

Handler = Callable[[Envelope], None]


class Channel:
    """
    One endpoint of a duplex message link.

    post() is fire-and-forget and preserves order. listen() installs the
    handler that receives the peer's envelopes, one at a time, in order.
    """

    def post(self, envelope: Envelope) -> None:
        raise NotImplementedError

    def listen(self, handler: Handler) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class MemoryChannel(Channel):
    """
    In-process endpoint. Envelopes cross as JSON text, never as shared
    objects, so the two sides share no state. Envelopes posted to a peer
    that has not called listen() yet are dropped.
    """

    def __init__(self, name: str = "channel") -> None:
        self.name = name
        self.sent: list[Envelope] = []
        self._peer: MemoryChannel | None = None
        self._handler: Handler | None = None
        self._inbox: asyncio.Queue[str] | None = None
        self._pump: asyncio.Task | None = None

    @classmethod
    def pair(cls, left: str = "host", right: str = "preview") -> tuple[MemoryChannel, MemoryChannel]:
        a, b = cls(left), cls(right)
        a._peer, b._peer = b, a
        return a, b

    @property
    def listening(self) -> bool:
        return self._inbox is not None

    def post(self, envelope: Envelope) -> None:
        text = encode(envelope)
        self.sent.append(envelope)
        peer = self._peer
        if peer is None or peer._inbox is None:
            logger.debug("%s: dropped %s, peer not listening", self.name, envelope.type)
            return
        peer._inbox.put_nowait(text)

    def listen(self, handler: Handler) -> None:
        self._handler = handler
        if self._inbox is None:
            self._inbox = asyncio.Queue()
            self._pump = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        assert self._inbox is not None
        while True:
            text = await self._inbox.get()
            try:
                envelope = decode(text)
                if self._handler is not None:
                    self._handler(envelope)
            except ProtocolError as e:
                logger.warning("%s: dropped malformed envelope: %s", self.name, e)
            except Exception:
                logger.exception("%s: handler failed", self.name)
            finally:
                self._inbox.task_done()

    async def drain(self) -> None:
        """Wait until everything delivered so far has been handled."""
        if self._inbox is not None:
            await self._inbox.join()

    async def close(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
        self._pump = None
        self._inbox = None
        self._handler = None
