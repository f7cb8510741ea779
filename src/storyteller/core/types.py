"""
Core Types for the QT Storyteller

Shared type definitions used across all modules.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import StoryFormatError


class PlaybackState(Enum):
    """States of the playback scheduler."""
    IDLE = "idle"          # No story selected
    PLAYING = "playing"    # Audio playing, cue triggers armed
    PAUSED = "paused"      # Audio stopped, no pending triggers
    ENDED = "ended"        # Audio reached its end


@dataclass
class Cue:
    """A timed emotion cue within a story's narration.

    ``time`` is the offset in seconds from the start of the narration.
    ``consumed`` is set once the cue has fired during the current
    playback session and reset whenever the story is selected again.
    """
    time: float
    emotion: str
    consumed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert cue to the story document representation."""
        return {"time": self.time, "emotion": self.emotion}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cue":
        """Create a cue from a story document entry."""
        if not isinstance(data, dict) or "time" not in data or "emotion" not in data:
            raise StoryFormatError(f"Cue entry must have 'time' and 'emotion': {data!r}")

        try:
            time = float(data["time"])
        except (TypeError, ValueError):
            raise StoryFormatError(f"Cue time is not a number: {data['time']!r}")

        if not math.isfinite(time):
            raise StoryFormatError(f"Cue time must be finite: {data['time']!r}")

        return cls(time=time, emotion=str(data["emotion"]))


@dataclass(frozen=True)
class Story:
    """A narrated story with its emotion timeline.

    Stories are read-only once loaded; only the ``consumed`` flags of
    their cues change during playback.
    """
    name: str
    narration_ref: str
    preview_ref: str
    cues: Tuple[Cue, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert story to the JSON document layout."""
        return {
            "name": self.name,
            "audio_name": self.preview_ref,
            "audio": self.narration_ref,
            "emotions": [cue.to_dict() for cue in self.cues],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], ref: str = "") -> "Story":
        """Create a story from a parsed story JSON document.

        Raises:
            StoryFormatError: If a required key is missing or a cue is invalid
        """
        if not isinstance(data, dict):
            raise StoryFormatError(f"Story document is not an object: {ref}", ref)

        missing = [key for key in ("name", "audio") if key not in data]
        if missing:
            raise StoryFormatError(
                f"Story document {ref or '<inline>'} is missing {', '.join(missing)}", ref
            )

        emotions = data.get("emotions", [])
        if not isinstance(emotions, list):
            raise StoryFormatError(f"'emotions' must be a list in {ref or '<inline>'}", ref)

        try:
            cues = tuple(Cue.from_dict(entry) for entry in emotions)
        except StoryFormatError as e:
            raise StoryFormatError(f"{ref or '<inline>'}: {e}", ref) from e

        return cls(
            name=str(data["name"]),
            narration_ref=str(data["audio"]),
            preview_ref=str(data.get("audio_name", "")),
            cues=cues,
        )


@dataclass(frozen=True)
class StoryEntry:
    """Selectable projection of a story handed to the presentation layer."""
    index: int
    name: str
    preview_ref: str


@dataclass(frozen=True)
class FaceState:
    """Inputs from which the visible face image is derived."""
    blinking: bool = False
    mouth_closed: bool = False
    force_mouth_shut: bool = True
    overlay_emotion: Optional[str] = None
    paused: bool = False

    @property
    def mouth_shut(self) -> bool:
        """Whether the idle face shows a closed mouth."""
        return self.mouth_closed or self.force_mouth_shut


# Re-export common types
__all__ = [
    'PlaybackState',
    'Cue',
    'Story',
    'StoryEntry',
    'FaceState',
]
