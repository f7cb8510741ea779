"""
Display sinks for the face image.

The pygame window is imported lazily so headless runs (mock display)
do not need a video driver.
"""

from .sink import DisplaySink, MemoryDisplaySink

__all__ = [
    'DisplaySink',
    'MemoryDisplaySink',
]
