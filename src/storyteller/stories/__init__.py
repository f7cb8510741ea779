"""
Stories: timelines, story sources and the story catalog.
"""

from .timeline import Timeline
from .sources import StorySource, FileStorySource, HttpStorySource
from .catalog import StoryCatalog

__all__ = [
    'Timeline',
    'StorySource',
    'FileStorySource',
    'HttpStorySource',
    'StoryCatalog',
]
