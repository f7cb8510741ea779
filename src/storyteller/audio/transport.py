"""
Audio Transport Protocol.

Defines the capability set the playback scheduler depends on: load a
narration, play, pause, read the current position, and get told when
the narration ends. Preview clips play on a separate path so they never
disturb the narration state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AudioTransport(ABC):
    """
    Abstract base class for narration audio transports.

    Implementations invoke the ended callback on the event loop thread
    when playback reaches the end of the loaded media.
    """

    def __init__(self):
        self._on_ended: Optional[Callable[[], None]] = None

    def set_ended_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """Register the function called when the narration ends."""
        self._on_ended = callback

    def _notify_ended(self) -> None:
        logger.debug("Narration ended")
        if self._on_ended is not None:
            self._on_ended()

    async def prepare(self, ref: str) -> None:
        """
        Make a media reference ready for ``load``/``play_preview``.

        Transports that fetch or resolve media override this and do the
        blocking work off the event loop, so the synchronous ``load``
        that follows never waits on I/O.

        Raises:
            AudioTransportError: If the media is unavailable
        """
        pass

    @abstractmethod
    def load(self, ref: str) -> None:
        """
        Set the narration source, stopping any current playback.
        Position is reset to zero; playback does not start.

        Raises:
            AudioTransportError: If the media cannot be loaded
        """
        pass

    @abstractmethod
    def play(self) -> None:
        """Start or continue playback from the current position."""
        pass

    @abstractmethod
    def pause(self) -> None:
        """Stop playback, keeping the current position."""
        pass

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Current playback position in seconds."""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        pass

    @abstractmethod
    def play_preview(self, ref: str) -> None:
        """
        Play a short preview clip without affecting the narration.

        Raises:
            AudioTransportError: If the clip cannot be loaded
        """
        pass

    async def shutdown(self) -> None:
        """
        Shutdown the transport and release resources.

        Override this for transports that need cleanup.
        """
        pass
