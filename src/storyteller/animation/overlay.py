"""
Emotion overlay - transient emotion image that preempts the idle face.
"""

import asyncio
import logging
from typing import Dict, Optional

from ..core.event_bus import EventBus, EventType

logger = logging.getLogger(__name__)


class EmotionOverlay:
    """Shows an emotion for a fixed duration, then clears itself.

    Each activation replaces the pending auto-clear of the previous one,
    and every clear timer carries the generation it was armed for, so a
    stale clear can never remove a newer overlay.
    """

    def __init__(self, emotion_images: Dict[str, str], duration: float = 1.0,
                 event_bus: Optional[EventBus] = None):
        """
        Args:
            emotion_images: Emotion key -> face image identifier
            duration: How long an activated emotion stays displayed (seconds)
            event_bus: Optional bus receiving overlay events
        """
        self.emotion_images = emotion_images
        self.duration = duration
        self.event_bus = event_bus

        self._emotion: Optional[str] = None
        self._generation = 0
        self._clear_handle: Optional[asyncio.TimerHandle] = None

    @property
    def emotion(self) -> Optional[str]:
        """Currently displayed emotion, or None."""
        return self._emotion

    @property
    def is_active(self) -> bool:
        return self._emotion is not None

    @property
    def image(self) -> Optional[str]:
        """Image of the active emotion, or None when no overlay is shown."""
        if self._emotion is None:
            return None
        return self.emotion_images.get(self._emotion)

    def activate(self, emotion: str) -> bool:
        """
        Display an emotion, superseding any active one.

        Unknown emotions are ignored and leave the current overlay as is.

        Returns:
            True if the overlay was activated
        """
        if emotion not in self.emotion_images:
            logger.debug(f"Ignoring unknown emotion '{emotion}'")
            return False

        self._cancel_clear()
        self._generation += 1
        self._emotion = emotion

        loop = asyncio.get_running_loop()
        self._clear_handle = loop.call_later(self.duration, self._expire, self._generation)

        logger.debug(f"Emotion overlay: {emotion} (generation {self._generation})")
        self._post(EventType.EMOTION_OVERLAY_STARTED, {"emotion": emotion})
        return True

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._clear_handle = None
        self.clear()

    def clear(self) -> None:
        """Remove the overlay immediately."""
        self._cancel_clear()
        if self._emotion is None:
            return

        emotion = self._emotion
        self._emotion = None
        logger.debug(f"Emotion overlay cleared: {emotion}")
        self._post(EventType.EMOTION_OVERLAY_CLEARED, {"emotion": emotion})

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _post(self, event_type: EventType, data: dict) -> None:
        if self.event_bus:
            self.event_bus.post(event_type, data, source="emotion_overlay")
