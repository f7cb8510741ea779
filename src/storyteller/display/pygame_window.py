"""
FaceWindow - pygame window showing the robot face.

Images are loaded from the face directory on first use and scaled to
the window. Input events are pumped from an asyncio task so the window
shares the event loop with the animation clock and the scheduler.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import pygame

from .sink import DisplaySink

logger = logging.getLogger(__name__)


class FaceWindow(DisplaySink):
    """Pygame display sink for the face images."""

    def __init__(self, face_dir: Path, size: Tuple[int, int] = (480, 480),
                 title: str = "QT Storyteller", fullscreen: bool = False,
                 background_color: Tuple[int, int, int] = (20, 20, 25),
                 fps: int = 30):
        """
        Initialize the window (not opened yet).

        Args:
            face_dir: Directory containing the face images
            size: Window size in pixels
            title: Window caption
            fullscreen: Open fullscreen instead of windowed
            background_color: Fill color behind the face image
            fps: Event polling rate
        """
        self.face_dir = Path(face_dir)
        self.size = size
        self.title = title
        self.fullscreen = fullscreen
        self.background_color = background_color
        self.fps = fps

        self.screen = None
        self.current: Optional[str] = None
        self._images: Dict[str, "pygame.Surface"] = {}
        self.is_running = False

    def open(self) -> None:
        """Create the window."""
        if self.screen is not None:
            return

        os.environ.setdefault('SDL_VIDEO_CENTERED', '1')
        pygame.display.init()

        flags = pygame.FULLSCREEN if self.fullscreen else 0
        self.screen = pygame.display.set_mode(self.size, flags)
        pygame.display.set_caption(self.title)
        self.screen.fill(self.background_color)
        pygame.display.flip()
        self.is_running = True
        logger.info(f"Face window opened ({self.size[0]}x{self.size[1]})")

    def _load(self, image_id: str) -> Optional["pygame.Surface"]:
        if image_id in self._images:
            return self._images[image_id]

        path = self.face_dir / image_id
        try:
            image = pygame.image.load(str(path)).convert_alpha()
        except (pygame.error, FileNotFoundError) as e:
            logger.warning(f"Cannot load face image {path}: {e}")
            return None

        # Fit inside the window, keeping aspect ratio
        width, height = image.get_size()
        scale = min(self.size[0] / width, self.size[1] / height)
        image = pygame.transform.smoothscale(image, (int(width * scale), int(height * scale)))
        self._images[image_id] = image
        return image

    def show(self, image_id: str) -> None:
        if self.screen is None or image_id == self.current:
            return

        image = self._load(image_id)
        if image is None:
            return

        self.current = image_id
        self.screen.fill(self.background_color)
        rect = image.get_rect(center=(self.size[0] // 2, self.size[1] // 2))
        self.screen.blit(image, rect)
        pygame.display.flip()

    async def run(self, on_event: Callable[["pygame.event.Event"], None]) -> None:
        """
        Pump window events until the window is closed.

        Args:
            on_event: Called for every key press and for the quit event
        """
        self.open()
        interval = 1.0 / self.fps

        while self.is_running:
            for event in pygame.event.get():
                if event.type in (pygame.QUIT, pygame.KEYDOWN):
                    try:
                        on_event(event)
                    except Exception as e:
                        logger.error(f"Error handling window event: {e}", exc_info=True)
            await asyncio.sleep(interval)

    def close(self) -> None:
        """Close the window."""
        self.is_running = False
        if self.screen is not None:
            pygame.display.quit()
            self.screen = None
            logger.info("Face window closed")
