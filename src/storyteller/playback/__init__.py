"""
Playback: the scheduler that keeps emotion cues in step with narration.
"""

from .scheduler import PlaybackScheduler, PendingTrigger

__all__ = [
    'PlaybackScheduler',
    'PendingTrigger',
]
