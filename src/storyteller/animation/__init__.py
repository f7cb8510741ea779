"""
Face animation: the idle blink/mouth clock and the emotion overlay.
"""

from .overlay import EmotionOverlay
from .clock import AnimationClock, compose_face

__all__ = [
    'EmotionOverlay',
    'AnimationClock',
    'compose_face',
]
