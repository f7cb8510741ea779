"""
QT Storyteller - application entry point.

Wires configuration, story catalog, face animation, audio and the
playback scheduler together on one asyncio event loop.

Usage:
    storyteller                      # Open the face window, load stories
    storyteller --story 2            # Play the third story right away
    storyteller --list-stories       # Print the catalog and exit
    storyteller --headless --story 0 # Mock audio and display
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, Set

from .animation.clock import AnimationClock
from .animation.overlay import EmotionOverlay
from .audio.mock_transport import MockAudioTransport
from .audio.transport import AudioTransport
from .core.config import ConfigManager, StoryTellerConfig
from .core.errors import CatalogError, StoryTellerError
from .core.event_bus import EventBus, EventType
from .core.types import PlaybackState, StoryEntry
from .display.sink import DisplaySink, MemoryDisplaySink
from .playback.scheduler import PlaybackScheduler
from .stories.catalog import StoryCatalog
from .stories.sources import FileStorySource, HttpStorySource, StorySource

logger = logging.getLogger(__name__)


class StoryTeller:
    """The storyteller application."""

    def __init__(self, config: StoryTellerConfig,
                 source: Optional[StorySource] = None,
                 audio: Optional[AudioTransport] = None,
                 display: Optional[DisplaySink] = None):
        """
        Build every component from the configuration.

        Args:
            config: Loaded configuration
            source: Story source (default: HTTP if base_url is set, else files)
            audio: Narration transport (default: pygame, or mock in mock mode)
            display: Face display (default: pygame window, or memory in mock mode)
        """
        self.config = config
        self.event_bus = EventBus()
        self.is_running = False

        self.source = source or self._create_source()
        self.audio = audio or self._create_audio()
        self.display = display or self._create_display()

        self.catalog = StoryCatalog(self.source, config.stories_index, self.event_bus)
        self.overlay = EmotionOverlay(
            config.faces.emotion_images,
            duration=config.timings.emotion_delay,
            event_bus=self.event_bus,
        )
        self.clock = AnimationClock(config.timings, config.faces, self.display, self.overlay)
        self.scheduler = PlaybackScheduler(
            self.catalog, self.audio, self.overlay, self.clock, self.event_bus
        )

        self._last_preview: Optional[int] = None
        self._selection = 0
        self._tasks: Set[asyncio.Task] = set()
        self._stop_event: Optional[asyncio.Event] = None

    def _create_source(self) -> StorySource:
        if self.config.base_url:
            return HttpStorySource(
                self.config.base_url,
                timeout=self.config.http_timeout,
                cache_dir=self.config.media_cache_dir,
            )
        return FileStorySource(self.config.assets_dir)

    def _create_audio(self) -> AudioTransport:
        if self.config.mock_audio:
            return MockAudioTransport()

        from .audio.pygame_transport import PygameAudioTransport
        return PygameAudioTransport(self.source.resolve_media)

    def _create_display(self) -> DisplaySink:
        if self.config.mock_display:
            return MemoryDisplaySink()

        from .display.pygame_window import FaceWindow
        return FaceWindow(
            self.config.face_dir,
            size=self.config.window_size,
            title=self.config.name,
            fullscreen=self.config.fullscreen,
        )

    async def start(self) -> None:
        """Start the event bus and the face, then load the catalog.

        A catalog failure is logged and leaves the scheduler idle; the
        face keeps animating.
        """
        self._stop_event = asyncio.Event()
        await self.event_bus.start()
        self.clock.start()
        self.is_running = True
        self.event_bus.post(EventType.SYSTEM_STARTED, {"name": self.config.name}, source="storyteller")

        await self.load_stories()

    async def load_stories(self) -> bool:
        """(Re)load the catalog. Returns True on success."""
        try:
            count = await self.catalog.load()
        except CatalogError as e:
            logger.error(f"No stories available: {e}")
            self.event_bus.post(EventType.ERROR_OCCURRED, {
                "error": str(e),
                "error_type": type(e).__name__,
            }, source="storyteller")
            return False

        if count and self.config.autoplay_first and self.scheduler.state == PlaybackState.IDLE:
            await self.select_story(0)
        return True

    def entries(self) -> List[StoryEntry]:
        """Stories available for selection."""
        return self.catalog.entries()

    async def select_story(self, index: int) -> bool:
        """Select a story without starting it.

        The narration is prepared by the audio transport first, so any
        download happens off the event loop.
        """
        self._selection += 1
        selection = self._selection
        try:
            story = self.catalog.get_by_index(index)
            await self.audio.prepare(story.narration_ref)
            if selection != self._selection:
                logger.debug(f"Selection of story {index} superseded")
                return False
            self.scheduler.select_story(index)
        except StoryTellerError as e:
            logger.warning(f"Cannot select story {index}: {e}")
            return False
        return True

    async def play_story(self, index: int) -> bool:
        """Select a story and start narrating it from the beginning."""
        if not await self.select_story(index):
            return False
        return self.resume()

    def resume(self) -> bool:
        try:
            return self.scheduler.resume()
        except StoryTellerError as e:
            logger.warning(f"Cannot resume playback: {e}")
            return False

    def pause(self) -> bool:
        return self.scheduler.pause()

    def toggle(self) -> bool:
        """Pause when playing, otherwise resume."""
        try:
            return self.scheduler.toggle()
        except StoryTellerError as e:
            logger.warning(f"Cannot resume playback: {e}")
            return False

    async def preview(self, index: int) -> bool:
        """Play a story's preview clip; narration state is not touched."""
        try:
            story = self.catalog.get_by_index(index)
            if not story.preview_ref:
                logger.debug(f"Story {index} has no preview clip")
                return False
            await self.audio.prepare(story.preview_ref)
            self.audio.play_preview(story.preview_ref)
        except StoryTellerError as e:
            logger.warning(f"Cannot preview story {index}: {e}")
            return False

        self._last_preview = index
        self.event_bus.post(EventType.PREVIEW_STARTED, {"index": index, "name": story.name},
                            source="storyteller")
        return True

    def _spawn(self, coro) -> asyncio.Task:
        """Run a coroutine from a synchronous callback, keeping a reference."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def handle_window_event(self, event) -> None:
        """Keyboard control for the face window."""
        import pygame

        if event.type == pygame.QUIT:
            self.request_stop()
            return

        if event.key == pygame.K_ESCAPE:
            self.request_stop()
        elif event.key == pygame.K_SPACE:
            self.toggle()
        elif pygame.K_1 <= event.key <= pygame.K_9:
            index = event.key - pygame.K_1
            if event.mod & pygame.KMOD_SHIFT:
                self._spawn(self.preview(index))
            else:
                self._spawn(self.play_story(index))
        elif event.key == pygame.K_p:
            self._spawn(self.preview(self._last_preview if self._last_preview is not None
                                     else (self.scheduler.story_index or 0)))
        elif event.key == pygame.K_r:
            self._spawn(self.load_stories())

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> None:
        """Run until the window is closed or a stop is requested."""
        await self.start()

        window_task = None
        if hasattr(self.display, "run"):
            window_task = asyncio.create_task(self.display.run(self.handle_window_event))

        try:
            await self._stop_event.wait()
        finally:
            if window_task:
                window_task.cancel()
                try:
                    await window_task
                except asyncio.CancelledError:
                    pass
            await self.stop()

    async def stop(self) -> None:
        """Stop playback, the face and the event bus."""
        if not self.is_running:
            return
        self.is_running = False

        for task in list(self._tasks):
            task.cancel()
        self.scheduler.pause()
        self.overlay.clear()
        self.clock.stop()
        await self.audio.shutdown()
        self.display.close()

        self.event_bus.post(EventType.SYSTEM_STOPPED, {}, source="storyteller")
        await self.event_bus.stop()
        logger.info("Storyteller stopped")


def setup_logging(config: StoryTellerConfig, level: Optional[str] = None) -> None:
    """Configure logging."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    config.logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.logs_dir / 'storyteller.log', encoding='utf-8')
        ]
    )


async def list_stories(config: StoryTellerConfig) -> int:
    """Print the catalog. Returns a process exit code."""
    app = StoryTeller(config, audio=MockAudioTransport(), display=MemoryDisplaySink())
    try:
        await app.catalog.load()
    except CatalogError as e:
        print(f"Failed to load stories: {e}")
        return 1

    print("\nAvailable Stories:")
    print("-" * 40)
    for entry in app.entries():
        print(f"  {entry.index + 1}. {entry.name}")
    print()
    return 0


async def async_main(config: StoryTellerConfig, story: Optional[int]) -> None:
    """Async main entry point."""
    app = StoryTeller(config)

    loop = asyncio.get_running_loop()
    if sys.platform != 'win32':
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, app.request_stop)

    if story is not None:
        async def play_when_loaded(event):
            await app.play_story(story)

        app.event_bus.once(EventType.CATALOG_LOADED, play_when_loaded)

    await app.run()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='QT Storyteller - robot face story narration',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Keys (face window):
  SPACE        pause / resume
  1-9          play story n
  SHIFT+1-9    preview story n
  P            replay last preview
  R            reload stories
  ESC          quit
"""
    )
    parser.add_argument(
        '--story',
        type=int,
        default=None,
        help='Play this story (0-based) once the catalog is loaded'
    )
    parser.add_argument(
        '--list-stories',
        action='store_true',
        help='List available stories and exit'
    )
    parser.add_argument(
        '--headless',
        action='store_true',
        help='Use mock audio and display'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from configuration)'
    )

    args = parser.parse_args(argv)

    try:
        config = ConfigManager().load_config()
    except ValueError as e:
        print(e, file=sys.stderr)
        sys.exit(2)

    if args.headless:
        config.mock_audio = True
        config.mock_display = True

    setup_logging(config, args.log_level)

    if args.list_stories:
        sys.exit(asyncio.run(list_stories(config)))

    logger.info("=" * 60)
    logger.info(f"{config.name.upper()} v{config.version}")
    logger.info("=" * 60)

    try:
        asyncio.run(async_main(config, args.story))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
