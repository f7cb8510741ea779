"""
Pygame mixer audio transport.

Narration plays through ``pygame.mixer.music``; preview clips play as
``pygame.mixer.Sound`` objects on their own channel. The end of the
narration is detected by polling the mixer from an asyncio task.

Media references are resolved to files by ``prepare`` in the default
executor; ``load`` and ``play_preview`` then only touch the mixer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

import pygame

from ..core.errors import AudioTransportError
from .transport import AudioTransport

logger = logging.getLogger(__name__)


class PygameAudioTransport(AudioTransport):
    """Narration playback through the pygame mixer."""

    def __init__(self, resolver: Callable[[str], Path], poll_interval: float = 0.1):
        """
        Args:
            resolver: Maps a media reference to a local file
            poll_interval: How often to check whether the narration ended (seconds)
        """
        super().__init__()
        self.resolver = resolver
        self.poll_interval = poll_interval

        self.ref: Optional[str] = None
        self._started = False   # play() called since load (pause resumes with unpause)
        self._playing = False
        self._position = 0.0
        self._watch_task: Optional[asyncio.Task] = None
        self._preview_sound = None
        self._paths: Dict[str, Path] = {}

    def _ensure_mixer(self) -> None:
        if not pygame.mixer.get_init():
            try:
                pygame.mixer.init()
            except pygame.error as e:
                raise AudioTransportError(f"Cannot initialize audio mixer: {e}") from e
            logger.info(f"Audio mixer initialized: {pygame.mixer.get_init()}")

    async def prepare(self, ref: str) -> None:
        """Resolve (and for HTTP sources, download) media in the default executor."""
        if ref in self._paths:
            return
        loop = asyncio.get_running_loop()
        self._paths[ref] = await loop.run_in_executor(None, self.resolver, ref)
        logger.debug(f"Media ready: {ref} -> {self._paths[ref]}")

    def _path(self, ref: str) -> Path:
        if ref not in self._paths:
            # Not prepared: resolve inline (cheap for local files)
            logger.debug(f"Resolving unprepared media on the loop: {ref}")
            self._paths[ref] = self.resolver(ref)
        return self._paths[ref]

    def load(self, ref: str) -> None:
        path = self._path(ref)
        self._ensure_mixer()

        self._playing = False
        self._started = False
        self._position = 0.0
        pygame.mixer.music.stop()

        try:
            pygame.mixer.music.load(str(path))
        except pygame.error as e:
            self.ref = None
            raise AudioTransportError(f"Cannot load narration {ref}: {e}") from e

        self.ref = ref
        logger.debug(f"Narration loaded: {path}")

    def play(self) -> None:
        if self.ref is None:
            raise AudioTransportError("No narration loaded")
        if self._playing:
            return

        if self._started:
            pygame.mixer.music.unpause()
        else:
            pygame.mixer.music.play()
            self._started = True
        self._playing = True

        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.get_running_loop().create_task(self._watch_end())

    def pause(self) -> None:
        if not self._playing:
            return
        self._position = self.current_time
        pygame.mixer.music.pause()
        self._playing = False

    @property
    def current_time(self) -> float:
        if self._playing:
            pos = pygame.mixer.music.get_pos()
            if pos >= 0:
                return pos / 1000
        return self._position

    @property
    def is_playing(self) -> bool:
        return self._playing

    async def _watch_end(self) -> None:
        """Report the end of the narration once the mixer goes idle."""
        while self._playing:
            await asyncio.sleep(self.poll_interval)
            if self._playing and not pygame.mixer.music.get_busy():
                self._position = self.current_time
                self._playing = False
                self._started = False
                self._notify_ended()

    def play_preview(self, ref: str) -> None:
        path = self._path(ref)
        self._ensure_mixer()
        try:
            self._preview_sound = pygame.mixer.Sound(str(path))
        except pygame.error as e:
            raise AudioTransportError(f"Cannot load preview {ref}: {e}") from e
        self._preview_sound.play()

    async def shutdown(self) -> None:
        self._playing = False
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
        if pygame.mixer.get_init():
            pygame.mixer.music.stop()
            pygame.mixer.quit()
        logger.info("Audio transport shut down")
