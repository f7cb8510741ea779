"""
Core Package

Core infrastructure for the storyteller:
- event_bus: Central pub/sub event system
- config: Configuration management
- types: Shared type definitions
- errors: Exception hierarchy
"""

from .event_bus import EventBus, EventType, Event
from .config import ConfigManager, StoryTellerConfig, AnimationTimings, FaceAssets
from .errors import (
    StoryTellerError,
    CatalogError,
    StoryFormatError,
    StoryIndexError,
    AudioTransportError,
)
from .types import (
    PlaybackState,
    Cue,
    Story,
    StoryEntry,
    FaceState,
)

__all__ = [
    # Event bus
    'EventBus',
    'EventType',
    'Event',
    # Config
    'ConfigManager',
    'StoryTellerConfig',
    'AnimationTimings',
    'FaceAssets',
    # Errors
    'StoryTellerError',
    'CatalogError',
    'StoryFormatError',
    'StoryIndexError',
    'AudioTransportError',
    # Types
    'PlaybackState',
    'Cue',
    'Story',
    'StoryEntry',
    'FaceState',
]
