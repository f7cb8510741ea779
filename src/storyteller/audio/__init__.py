"""
Audio transports for narration playback.

- AudioTransport: interface used by the playback scheduler
- MockAudioTransport: simulated playback for headless runs and tests
- PygameAudioTransport: pygame mixer playback (import from
  ``storyteller.audio.pygame_transport``)
"""

from .transport import AudioTransport
from .mock_transport import MockAudioTransport

__all__ = [
    'AudioTransport',
    'MockAudioTransport',
]
