"""
Display sinks - surfaces the face image is written to.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class DisplaySink(ABC):
    """A surface that shows one face image at a time."""

    @abstractmethod
    def show(self, image_id: str) -> None:
        """
        Display the image with the given identifier.

        Called on every render tick; implementations should make
        repeated calls with the same identifier cheap.
        """
        pass

    def close(self) -> None:
        """Release the surface. Override if needed."""
        pass


class MemoryDisplaySink(DisplaySink):
    """Headless sink that records image changes (mock display)."""

    def __init__(self, max_history: int = 1000):
        self.current: Optional[str] = None
        self.history: List[Tuple[float, str]] = []
        self.write_count = 0
        self.max_history = max_history

    def show(self, image_id: str) -> None:
        self.write_count += 1
        if image_id == self.current:
            return

        self.current = image_id
        self.history.append((time.monotonic(), image_id))
        if len(self.history) > self.max_history:
            del self.history[0]
        logger.debug(f"Face image: {image_id}")

    def images_shown(self) -> List[str]:
        """Distinct consecutive images shown so far."""
        return [image_id for _, image_id in self.history]
