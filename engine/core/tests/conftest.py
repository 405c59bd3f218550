"""
Engine core test configuration.

Host/preview tests run over in-process MemoryChannel pairs. `settle` pumps
both directions until every delivered envelope has been handled, including
replies produced while handling.
"""

import asyncio

import pytest

from engine.core.host import HostSession
from engine.core.preview import PreviewSession
from engine.core.protocol import MemoryChannel
from engine.core.scroll import ScrollState

# Short timers keep the timing tests fast.
TEST_WINDOW = 0.05
TEST_AUTOSAVE_DELAY = 0.05


async def _settle(*channels: MemoryChannel, rounds: int = 4) -> None:
    for _ in range(rounds):
        for channel in channels:
            await channel.drain()
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    return _settle


@pytest.fixture
async def channels():
    host_channel, preview_channel = MemoryChannel.pair()
    yield host_channel, preview_channel
    await host_channel.close()
    await preview_channel.close()


@pytest.fixture
async def link(channels):
    """A live host/preview pair: the preview has started and received its first state."""
    host_channel, preview_channel = channels
    host = HostSession(
        host_channel,
        editor_surface=ScrollState(scroll_height=2000, client_height=500),
        suppress_window=TEST_WINDOW,
        autosave_delay=TEST_AUTOSAVE_DELAY,
    )
    preview = PreviewSession(
        preview_channel,
        surface=ScrollState(scroll_height=3000, client_height=600),
        suppress_window=TEST_WINDOW,
    )
    preview.start()
    await _settle(host_channel, preview_channel)
    yield host, preview
    preview.close()
    await host.close()
