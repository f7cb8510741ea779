"""
QT Storyteller - Source Package

Narrates children's stories through a simulated robot face, keeping
timed emotion cues in step with the narration audio.

Core:
- core: Event bus, configuration, shared types and errors
- stories: Story model, timelines, story sources and the catalog
- playback: The playback scheduler (cue arming, pause/resume)

Face:
- animation: Blink/mouth animation clock and the emotion overlay
- display: Display sinks (in-memory, pygame window)
- audio: Audio transports (pygame mixer, mock)
"""

__version__ = '1.0.0'
