"""
Animation Clock - idle face animation.

Three independent periodic cycles run on the event loop:
- blink: every ``blink_interval`` the eyes close for ``blink_duration``
- mouth: every ``mouth_interval`` the mouth closes for ``mouth_duration``
- render: every ``render_interval`` the face image is recomputed and
  written to the display sink

The emotion overlay, when active, wins over the blink/mouth composition.
While paused the render tick leaves the displayed image alone.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from ..core.config import AnimationTimings, FaceAssets
from ..core.types import FaceState
from ..display.sink import DisplaySink
from .overlay import EmotionOverlay

logger = logging.getLogger(__name__)


def compose_face(state: FaceState, faces: FaceAssets) -> str:
    """Image identifier for a face state (overlay first, then the 2x2 idle table)."""
    if state.overlay_emotion is not None:
        image = faces.emotion_images.get(state.overlay_emotion)
        if image is not None:
            return image
    return faces.idle_image(state.blinking, state.mouth_shut)


class AnimationClock:
    """Drives the idle face and renders the visible face image."""

    def __init__(self, timings: AnimationTimings, faces: FaceAssets,
                 display: DisplaySink, overlay: EmotionOverlay):
        self.timings = timings
        self.faces = faces
        self.display = display
        self.overlay = overlay

        # Face state
        self.blinking = False
        self.mouth_closed = False
        self.force_mouth_shut = True
        self.paused = False

        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self._loop is not None

    @property
    def state(self) -> FaceState:
        """Snapshot of the inputs the face image is derived from."""
        return FaceState(
            blinking=self.blinking,
            mouth_closed=self.mouth_closed,
            force_mouth_shut=self.force_mouth_shut,
            overlay_emotion=self.overlay.emotion,
            paused=self.paused,
        )

    def face_image(self) -> str:
        """Image the face would show right now."""
        return compose_face(self.state, self.faces)

    def start(self) -> None:
        """Start the blink, mouth and render cycles."""
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._every("render", self.timings.render_interval, self.render)
        self._every("blink", self.timings.blink_interval, self._blink)
        self._every("mouth", self.timings.mouth_interval, self._close_mouth)
        self.render()
        logger.info("Animation clock started")

    def stop(self) -> None:
        """Cancel every cycle."""
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        self._loop = None
        self.blinking = False
        self.mouth_closed = False
        logger.info("Animation clock stopped")

    def _every(self, name: str, period: float, callback: Callable[[], None]) -> None:
        def tick():
            self._handles[name] = self._loop.call_later(period, tick)
            callback()

        self._handles[name] = self._loop.call_later(period, tick)

    def _blink(self) -> None:
        self.blinking = True
        self._handles["blink_end"] = self._loop.call_later(
            self.timings.blink_duration, self._end_blink
        )

    def _end_blink(self) -> None:
        self.blinking = False

    def _close_mouth(self) -> None:
        self.mouth_closed = True
        self._handles["mouth_end"] = self._loop.call_later(
            self.timings.mouth_duration, self._open_mouth
        )

    def _open_mouth(self) -> None:
        self.mouth_closed = False

    def render(self) -> Optional[str]:
        """
        Write the current face image to the display.

        Returns:
            The image shown, or None while paused
        """
        if self.paused:
            return None

        image = self.face_image()
        self.display.show(image)
        return image

    # Playback hooks

    def pause(self) -> None:
        """Snap the mouth shut, then freeze the displayed image."""
        self.paused = False
        self.force_mouth_shut = True
        self.render()
        self.paused = True

    def resume(self) -> None:
        """Unfreeze and let the mouth move with the narration."""
        self.paused = False
        self.force_mouth_shut = False
        self.render()

    def idle(self) -> None:
        """Idle face: eyes keep blinking, mouth stays shut."""
        self.paused = False
        self.force_mouth_shut = True
        self.render()
