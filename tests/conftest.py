"""
Shared fixtures for the storyteller tests.

Timings are shortened so timer-driven behavior can be observed within a
few hundred milliseconds on the running event loop.
"""

import copy
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from storyteller.animation.clock import AnimationClock
from storyteller.animation.overlay import EmotionOverlay
from storyteller.audio.mock_transport import MockAudioTransport
from storyteller.core.config import AnimationTimings, FaceAssets
from storyteller.core.errors import AudioTransportError, CatalogError
from storyteller.core.event_bus import EventBus
from storyteller.display.sink import MemoryDisplaySink
from storyteller.playback.scheduler import PlaybackScheduler
from storyteller.stories.catalog import StoryCatalog
from storyteller.stories.sources import StorySource


STORY_DOCUMENTS: Dict[str, Any] = {
    "/stories/index.json": ["/stories/loup.json", "/stories/lune.json"],
    "/stories/loup.json": {
        "name": "Le loup",
        "audio_name": "/audio/loup_preview.mp3",
        "audio": "/audio/loup.mp3",
        "emotions": [
            {"time": 2, "emotion": "joie"},
            {"time": 5, "emotion": "peur"},
        ],
    },
    "/stories/lune.json": {
        "name": "La lune",
        "audio_name": "/audio/lune_preview.mp3",
        "audio": "/audio/lune.mp3",
        "emotions": [
            {"time": 1.5, "emotion": "surprise"},
        ],
    },
}


class DictStorySource(StorySource):
    """In-memory story source keyed by reference."""

    def __init__(self, documents: Dict[str, Any]):
        self.documents = copy.deepcopy(documents)
        self.fetched = []

    @property
    def name(self) -> str:
        return "memory"

    def fetch_json(self, ref: str) -> Any:
        self.fetched.append(ref)
        if ref not in self.documents:
            raise CatalogError(f"Not found: {ref}", ref)
        return copy.deepcopy(self.documents[ref])

    def resolve_media(self, ref: str) -> Path:
        if ref not in {"/audio/loup.mp3", "/audio/lune.mp3"}:
            raise AudioTransportError(f"Media file not found: {ref}")
        return Path("/tmp") / ref.lstrip("/")


@pytest.fixture
def fast_timings() -> AnimationTimings:
    return AnimationTimings(
        render_interval=0.01,
        blink_interval=0.2,
        blink_duration=0.05,
        mouth_interval=0.1,
        mouth_duration=0.03,
        emotion_delay=0.1,
    )


@pytest.fixture
def faces() -> FaceAssets:
    return FaceAssets()


@pytest.fixture
def event_bus() -> EventBus:
    """Bus that records history; not started, so nothing is dispatched."""
    return EventBus()


@pytest.fixture
def source() -> DictStorySource:
    return DictStorySource(STORY_DOCUMENTS)


@pytest.fixture
async def catalog(source, event_bus) -> StoryCatalog:
    catalog = StoryCatalog(source, "/stories/index.json", event_bus)
    await catalog.load()
    return catalog


@pytest.fixture
def display() -> MemoryDisplaySink:
    return MemoryDisplaySink()


@pytest.fixture
def overlay(faces, fast_timings, event_bus) -> EmotionOverlay:
    return EmotionOverlay(faces.emotion_images, fast_timings.emotion_delay, event_bus)


@pytest.fixture
def clock(fast_timings, faces, display, overlay) -> AnimationClock:
    return AnimationClock(fast_timings, faces, display, overlay)


@pytest.fixture
def audio() -> MockAudioTransport:
    return MockAudioTransport(durations={"/audio/loup.mp3": 8.0, "/audio/lune.mp3": 4.0})


@pytest.fixture
async def scheduler(catalog, audio, overlay, clock, event_bus):
    scheduler = PlaybackScheduler(catalog, audio, overlay, clock, event_bus)
    yield scheduler
    scheduler.pause()
    overlay.clear()
    clock.stop()
    await audio.shutdown()
