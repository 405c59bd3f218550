"""
Host <-> preview tests over an in-process channel pair.

Covers the readiness handshake, full-state replacement, scroll mirroring
without feedback loops, and inspect-mode selection.
"""

import asyncio

import pytest

from engine.core.css import generate_css
from engine.core.host import HostSession
from engine.core.preview import PreviewSession, PreviewState
from engine.core.protocol import (
    MESSAGE_EDITOR_SCROLL,
    MESSAGE_ELEMENT_SELECTED,
    MESSAGE_PREVIEW_SCROLL,
    MESSAGE_UPDATE_STATE,
    Envelope,
)
from engine.core.scroll import ScrollState
from engine.core.styles import UnknownElementKey

WINDOW = 0.05


def _types(channel):
    return [envelope.type for envelope in channel.sent]


class TestReadiness:
    @pytest.mark.asyncio
    async def test_state_before_ready_never_applied(self, channels, settle):
        host_channel, preview_channel = channels
        host = HostSession(host_channel)
        preview = PreviewSession(preview_channel)

        host.set_markdown("# early")
        assert host_channel.sent == []

        # Even a raw update-state that slips through before start() is lost.
        host_channel.post(Envelope(MESSAGE_UPDATE_STATE, {"markdown": "# stray", "styles": {}}))
        preview.handle(Envelope(MESSAGE_UPDATE_STATE, {"markdown": "# stray", "styles": {}}))
        assert preview.document is None
        assert preview.state is PreviewState.UNINITIALIZED

        preview.start()
        await settle(host_channel, preview_channel)

        assert preview.state is PreviewState.LIVE
        assert host.preview_ready
        assert preview.document.markdown == "# early"
        assert preview.document.styles == host.document.styles
        assert '<h1 data-style-key="h1">early</h1>' in preview.html
        await host.close()

    @pytest.mark.asyncio
    async def test_ready_triggers_immediate_full_state(self, link, channels):
        host, preview = link
        host_channel, _ = channels
        assert _types(host_channel) == [MESSAGE_UPDATE_STATE]
        assert preview.document.to_payload() == host.document.to_payload()

    @pytest.mark.asyncio
    async def test_preview_reload_heals(self, link, channels, settle):
        host, preview = link
        host_channel, preview_channel = channels
        host.set_markdown("before reload")
        await settle(host_channel, preview_channel)

        preview.close()
        await preview_channel.close()
        host.set_markdown("while reloading")

        reloaded = PreviewSession(preview_channel)
        reloaded.start()
        await settle(host_channel, preview_channel)
        assert reloaded.document.markdown == "while reloading"

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, link, channels, settle):
        host, preview = link
        _, preview_channel = channels
        preview.start()
        await settle(*channels)
        assert _types(preview_channel).count("preview-ready") == 1


class TestFullState:
    @pytest.mark.asyncio
    async def test_every_change_sends_whole_document(self, link, channels, settle):
        host, preview = link
        host_channel, preview_channel = channels

        host.set_markdown("# One")
        host.set_style("h1", {"color": "red"})
        host.set_relative_mode(True, reference_width=390)
        await settle(host_channel, preview_channel)

        updates = [e for e in host_channel.sent if e.type == MESSAGE_UPDATE_STATE]
        assert len(updates) == 4
        last = updates[-1].payload
        assert last["markdown"] == "# One"
        assert last["styles"]["h1"] == {"color": "red"}
        assert last["relativeUnitMode"] is True
        assert last["referenceWidth"] == 390
        assert preview.document.to_payload() == host.document.to_payload()

    @pytest.mark.asyncio
    async def test_preview_css_follows_relative_mode(self, link, channels, settle):
        host, preview = link
        host.set_style("p", {"fontSize": "37.5px"})
        host.set_relative_mode(True, reference_width=375)
        await settle(*channels)
        assert '[data-style-key="p"] { font-size: 10.0000vw; }' in preview.css

    @pytest.mark.asyncio
    async def test_reference_width_clamped(self, link, channels, settle):
        host, preview = link
        host.set_relative_mode(True, reference_width=100)
        await settle(*channels)
        assert preview.document.reference_width == 320

    @pytest.mark.asyncio
    async def test_regenerates_only_what_changed(self, link, channels, settle):
        host, preview = link
        renders, restyles = preview.render_count, preview.style_count

        host.set_style("h2", {"color": "green"})
        await settle(*channels)
        assert (preview.render_count, preview.style_count) == (renders, restyles + 1)

        host.set_markdown("new text")
        await settle(*channels)
        assert (preview.render_count, preview.style_count) == (renders + 1, restyles + 1)

        host.set_inspecting(True)
        await settle(*channels)
        assert (preview.render_count, preview.style_count) == (renders + 1, restyles + 1)
        assert preview.body_classes == ["inspect-mode-active"]

    @pytest.mark.asyncio
    async def test_reordered_properties_restyle(self, link, channels, settle):
        host, preview = link
        host.set_style("p", {"margin": "0", "marginTop": "5px"})
        await settle(*channels)
        assert '[data-style-key="p"] { margin: 0; margin-top: 5px; }' in preview.css

        restyles = preview.style_count
        host.set_style("p", {"marginTop": "5px", "margin": "0"})
        await settle(*channels)
        assert preview.style_count == restyles + 1
        assert '[data-style-key="p"] { margin-top: 5px; margin: 0; }' in preview.css
        assert preview.css == generate_css(preview.document.styles)

    @pytest.mark.asyncio
    async def test_unchanged_markdown_sends_nothing(self, link, channels, settle):
        host, _ = link
        host_channel, _ = channels
        before = len(host_channel.sent)
        host.set_markdown(host.document.markdown)
        assert len(host_channel.sent) == before

    @pytest.mark.asyncio
    async def test_malformed_state_dropped_whole(self, link):
        host, preview = link
        before = preview.document
        assert not preview.apply_state({"markdown": "x", "styles": {"blink": {}}})
        assert not preview.apply_state({"markdown": "x", "styles": {}, "selectedElement": "nope"})
        assert preview.document is before

    @pytest.mark.asyncio
    async def test_unknown_key_rejected_by_host(self, link, channels):
        host, _ = link
        host_channel, _ = channels
        before = len(host_channel.sent)
        with pytest.raises(UnknownElementKey):
            host.set_style("marquee", {"color": "red"})
        assert len(host_channel.sent) == before


class TestScrollMirroring:
    @pytest.mark.asyncio
    async def test_editor_scroll_does_not_echo(self, link, channels, settle):
        host, preview = link
        host_channel, preview_channel = channels

        host.editor_surface.scroll_to(750)
        assert host.editor_scrolled() == 0.5
        await settle(host_channel, preview_channel)

        assert preview.surface.scroll_top == 1200
        # Native scroll event caused by the programmatic scroll above.
        assert preview.scrolled() is None
        await settle(host_channel, preview_channel)

        assert MESSAGE_PREVIEW_SCROLL not in _types(preview_channel)
        assert _types(host_channel).count(MESSAGE_EDITOR_SCROLL) == 1

    @pytest.mark.asyncio
    async def test_echo_after_window_still_dropped(self, link, channels, settle):
        host, preview = link
        host.editor_surface.scroll_to(750)
        host.editor_scrolled()
        await settle(*channels)
        await asyncio.sleep(preview.scroll.window * 2)

        assert not preview.scroll.suppressing
        assert preview.scrolled() is None
        assert MESSAGE_PREVIEW_SCROLL not in _types(channels[1])

    @pytest.mark.asyncio
    async def test_preview_scroll_reaches_editor(self, link, channels, settle):
        host, preview = link
        preview.surface.scroll_to(600)
        assert preview.scrolled() == 0.25
        await settle(*channels)

        assert host.editor_surface.scroll_top == 375
        assert host.editor_scrolled() is None
        assert MESSAGE_EDITOR_SCROLL not in _types(channels[0])

    @pytest.mark.asyncio
    async def test_user_scroll_after_window_flows_again(self, link, channels, settle):
        host, preview = link
        host.editor_surface.scroll_to(750)
        host.editor_scrolled()
        await settle(*channels)
        await asyncio.sleep(preview.scroll.window * 2)
        preview.scrolled()

        preview.surface.scroll_to(2400)
        assert preview.scrolled() == 1.0
        await settle(*channels)
        assert host.editor_surface.scroll_top == 1500

    @pytest.mark.asyncio
    async def test_symmetric_easing(self, channels, settle):
        host_channel, preview_channel = channels
        host = HostSession(
            host_channel,
            editor_surface=ScrollState(scroll_height=1100, client_height=100),
            easing_exponent=2,
            suppress_window=WINDOW,
        )
        preview = PreviewSession(
            preview_channel,
            surface=ScrollState(scroll_height=1100, client_height=100),
            easing_exponent=2,
            suppress_window=WINDOW,
        )
        preview.start()
        await settle(host_channel, preview_channel)

        host.editor_surface.scroll_to(500)
        host.editor_scrolled()
        await settle(host_channel, preview_channel)
        assert preview.surface.scroll_top == pytest.approx(250)

        await asyncio.sleep(preview.scroll.window * 2)
        preview.surface.scroll_to(360)
        assert preview.scrolled() == pytest.approx(0.36)
        await settle(host_channel, preview_channel)
        assert host.editor_surface.scroll_top == pytest.approx(600)
        preview.close()
        await host.close()


class TestInspect:
    @pytest.mark.asyncio
    async def test_clicks_ignored_when_not_inspecting(self, link, channels, settle):
        host, preview = link
        host.set_markdown("# Title\n\nSome **bold** text")
        await settle(*channels)

        strong = next(n for n in preview.tree.walk() if n.type == "strong")
        assert preview.click(strong) is False
        await settle(*channels)

        assert MESSAGE_ELEMENT_SELECTED not in _types(channels[1])
        assert host.document.selected_element == "p"

    @pytest.mark.asyncio
    async def test_click_selects_element(self, channels, settle):
        host_channel, preview_channel = channels
        selected = []
        host = HostSession(host_channel, on_select=lambda key, props: selected.append((key, props)))
        preview = PreviewSession(preview_channel)
        preview.start()
        host.set_markdown("Some **bold** text")
        host.set_style("strong", {"fontWeight": 900})
        host.set_inspecting(True)
        await settle(host_channel, preview_channel)

        strong = next(n for n in preview.tree.walk() if n.type == "strong")
        assert preview.click(strong.children[0]) is True
        await settle(host_channel, preview_channel)

        assert host.document.selected_element == "strong"
        assert selected[-1] == ("strong", {"fontWeight": 900})
        assert preview.document.selected_element == "strong"
        await host.close()

    @pytest.mark.asyncio
    async def test_secondary_button_not_intercepted(self, link, channels, settle):
        host, preview = link
        host.set_inspecting(True)
        await settle(*channels)
        assert preview.click(preview.tree, button=2) is False
        assert MESSAGE_ELEMENT_SELECTED not in _types(channels[1])

    @pytest.mark.asyncio
    async def test_click_outside_content_intercepted_without_message(self, link, channels, settle):
        host, preview = link
        host.set_inspecting(True)
        await settle(*channels)
        assert preview.click(None) is True
        assert MESSAGE_ELEMENT_SELECTED not in _types(channels[1])
