"""
Mock audio transport.
Simulates narration playback against the event loop clock when no audio
device is available (headless runs, tests).
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..core.errors import AudioTransportError
from .transport import AudioTransport

logger = logging.getLogger(__name__)


class MockAudioTransport(AudioTransport):
    """Transport whose position advances with ``loop.time()`` while playing."""

    def __init__(self, durations: Optional[Dict[str, float]] = None,
                 default_duration: float = 60.0):
        """
        Args:
            durations: Narration length per reference, in seconds
            default_duration: Length used for references not in ``durations``
        """
        super().__init__()
        self.durations = durations or {}
        self.default_duration = default_duration

        self.ref: Optional[str] = None
        self.loaded: List[str] = []
        self.previews: List[str] = []
        self.prepared: List[str] = []

        self._position = 0.0
        self._started_at: Optional[float] = None
        self._end_handle: Optional[asyncio.TimerHandle] = None

        logger.info("Mock audio transport initialized")

    @property
    def duration(self) -> float:
        return self.durations.get(self.ref, self.default_duration)

    async def prepare(self, ref: str) -> None:
        self.prepared.append(ref)

    def load(self, ref: str) -> None:
        self._cancel_end()
        self.ref = ref
        self.loaded.append(ref)
        self._position = 0.0
        self._started_at = None

    def play(self) -> None:
        if self.ref is None:
            raise AudioTransportError("No narration loaded")
        if self.is_playing:
            return

        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        remaining = max(0.0, self.duration - self._position)
        self._end_handle = loop.call_later(remaining, self.finish)

    def pause(self) -> None:
        if not self.is_playing:
            return
        self._position = self.current_time
        self._started_at = None
        self._cancel_end()

    def seek(self, position: float) -> None:
        """Move the playback position (test helper)."""
        playing = self.is_playing
        self.pause()
        self._position = max(0.0, min(position, self.duration))
        if playing:
            self.play()

    def finish(self) -> None:
        """Jump to the end of the narration and report it ended."""
        self._cancel_end()
        self._position = self.duration
        self._started_at = None
        self._notify_ended()

    def _cancel_end(self) -> None:
        if self._end_handle is not None:
            self._end_handle.cancel()
            self._end_handle = None

    @property
    def current_time(self) -> float:
        if self._started_at is None:
            return self._position
        elapsed = asyncio.get_running_loop().time() - self._started_at
        return min(self.duration, self._position + elapsed)

    @property
    def is_playing(self) -> bool:
        return self._started_at is not None

    def play_preview(self, ref: str) -> None:
        self.previews.append(ref)
        logger.debug(f"Mock preview: {ref}")

    async def shutdown(self) -> None:
        self._cancel_end()
        self._started_at = None
