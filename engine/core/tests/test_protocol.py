"""
Envelope codec and MemoryChannel tests.
"""

import json

import pytest

from engine.core.protocol import (
    MESSAGE_EDITOR_SCROLL,
    MESSAGE_ELEMENT_SELECTED,
    MESSAGE_PREVIEW_READY,
    MESSAGE_UPDATE_STATE,
    Envelope,
    MemoryChannel,
    ProtocolError,
    decode,
    encode,
)


class TestCodec:
    def test_encode_shape(self):
        data = json.loads(encode(Envelope(MESSAGE_EDITOR_SCROLL, 0.25, seq=3)))
        assert data == {"type": "editor-scroll", "payload": 0.25, "seq": 3}

    def test_encode_without_seq(self):
        data = json.loads(encode(Envelope(MESSAGE_PREVIEW_READY)))
        assert data == {"type": "preview-ready", "payload": None}

    def test_decode_round_trip(self):
        envelope = Envelope(MESSAGE_UPDATE_STATE, {"markdown": "# x", "styles": {}})
        assert decode(encode(envelope)) == envelope

    def test_decode_bytes_and_dict(self):
        assert decode(b'{"type": "preview-ready"}').type == MESSAGE_PREVIEW_READY
        assert decode({"type": "element-selected", "payload": "h2"}).payload == "h2"

    def test_scroll_payload_becomes_float(self):
        envelope = decode('{"type": "editor-scroll", "payload": 1}')
        assert envelope.payload == 1.0
        assert isinstance(envelope.payload, float)

    def test_nan_cannot_be_encoded(self):
        with pytest.raises(ProtocolError):
            encode(Envelope(MESSAGE_EDITOR_SCROLL, float("nan")))

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"payload": 1}',
            '{"type": "toggle-inspect", "payload": true}',
            '{"type": "editor-scroll", "payload": "0.5"}',
            '{"type": "preview-scroll", "payload": true}',
            '{"type": "element-selected", "payload": "marquee"}',
            '{"type": "update-state", "payload": {"markdown": 1, "styles": {}}}',
            '{"type": "update-state", "payload": {"markdown": ""}}',
            '{"type": "editor-scroll", "payload": 0.5, "seq": -1}',
            '{"type": "editor-scroll", "payload": 0.5, "seq": "2"}',
        ],
    )
    def test_decode_rejects(self, raw):
        with pytest.raises(ProtocolError):
            decode(raw)


class TestMemoryChannel:
    @pytest.mark.asyncio
    async def test_delivers_in_order(self, channels, settle):
        host_channel, preview_channel = channels
        received = []
        preview_channel.listen(received.append)

        for i in range(5):
            host_channel.post(Envelope(MESSAGE_EDITOR_SCROLL, i / 10, seq=i + 1))
        await settle(preview_channel)

        assert [e.seq for e in received] == [1, 2, 3, 4, 5]
        assert received[2].payload == 0.2

    @pytest.mark.asyncio
    async def test_dropped_before_listen(self, channels, settle):
        host_channel, preview_channel = channels
        host_channel.post(Envelope(MESSAGE_EDITOR_SCROLL, 0.5))

        received = []
        preview_channel.listen(received.append)
        host_channel.post(Envelope(MESSAGE_EDITOR_SCROLL, 0.7))
        await settle(preview_channel)

        assert [e.payload for e in received] == [0.7]
        assert len(host_channel.sent) == 2

    @pytest.mark.asyncio
    async def test_sides_share_no_objects(self, channels, settle):
        host_channel, preview_channel = channels
        received = []
        preview_channel.listen(received.append)
        payload = {"markdown": "a", "styles": {"p": {"color": "red"}}}
        host_channel.post(Envelope(MESSAGE_UPDATE_STATE, payload))
        await settle(preview_channel)

        payload["styles"]["p"]["color"] = "blue"
        assert received[0].payload["styles"]["p"]["color"] == "red"

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_delivery(self, channels, settle):
        host_channel, preview_channel = channels
        received = []

        def handler(envelope):
            if envelope.payload == "h1":
                raise RuntimeError("boom")
            received.append(envelope.payload)

        host_channel.listen(handler)
        preview_channel.post(Envelope(MESSAGE_ELEMENT_SELECTED, "h1"))
        preview_channel.post(Envelope(MESSAGE_ELEMENT_SELECTED, "h2"))
        await settle(host_channel)

        assert received == ["h2"]

    @pytest.mark.asyncio
    async def test_unencodable_envelope_raises_at_post(self, channels, settle):
        host_channel, _ = channels
        with pytest.raises(ProtocolError):
            host_channel.post(Envelope(MESSAGE_EDITOR_SCROLL, float("inf")))
        assert host_channel.sent == []

    @pytest.mark.asyncio
    async def test_close_stops_listening(self):
        a, b = MemoryChannel.pair()
        b.listen(lambda e: None)
        assert b.listening
        await b.close()
        assert not b.listening
        a.post(Envelope(MESSAGE_PREVIEW_READY))
        await a.close()
