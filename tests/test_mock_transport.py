"""
Tests for the mock audio transport.
"""

import asyncio

import pytest

from storyteller.audio.mock_transport import MockAudioTransport
from storyteller.core.errors import AudioTransportError


class TestMockAudioTransport:
    """Test simulated narration playback."""

    @pytest.fixture
    async def transport(self):
        transport = MockAudioTransport(durations={"/a.mp3": 0.2})
        yield transport
        await transport.shutdown()

    async def test_play_requires_load(self, transport):
        with pytest.raises(AudioTransportError):
            transport.play()

    async def test_load_resets_position(self, transport):
        transport.load("/a.mp3")
        transport.seek(0.1)
        transport.load("/a.mp3")

        assert transport.current_time == 0.0
        assert not transport.is_playing
        assert transport.loaded == ["/a.mp3", "/a.mp3"]

    async def test_position_advances_while_playing(self, transport):
        transport.load("/a.mp3")
        transport.play()
        await asyncio.sleep(0.05)

        assert 0.04 <= transport.current_time < 0.2

        transport.pause()
        position = transport.current_time
        await asyncio.sleep(0.05)
        assert transport.current_time == position

    async def test_ended_callback(self, transport):
        ended = []
        transport.set_ended_callback(lambda: ended.append(transport.current_time))
        transport.load("/a.mp3")
        transport.play()

        await asyncio.sleep(0.25)

        assert ended == [0.2]
        assert not transport.is_playing

    async def test_pause_postpones_end(self, transport):
        ended = []
        transport.set_ended_callback(lambda: ended.append(True))
        transport.load("/a.mp3")
        transport.play()
        await asyncio.sleep(0.1)
        transport.pause()

        await asyncio.sleep(0.2)
        assert ended == []

        transport.play()
        await asyncio.sleep(0.15)
        assert ended == [True]

    async def test_seek_clamps_to_duration(self, transport):
        transport.load("/a.mp3")

        transport.seek(5.0)
        assert transport.current_time == 0.2
        transport.seek(-1.0)
        assert transport.current_time == 0.0

    async def test_default_duration(self):
        transport = MockAudioTransport(default_duration=12.0)
        transport.load("/unknown.mp3")

        assert transport.duration == 12.0

    async def test_preview_does_not_touch_narration(self, transport):
        transport.load("/a.mp3")
        transport.play()

        transport.play_preview("/preview.mp3")

        assert transport.previews == ["/preview.mp3"]
        assert transport.is_playing
        assert transport.ref == "/a.mp3"
