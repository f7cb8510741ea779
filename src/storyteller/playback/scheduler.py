"""
Playback Scheduler - keeps emotion cues in step with the narration.

On every resume the scheduler reads the audio position and arms one
cancelable timer per unconsumed cue still ahead of that position. All
pending timers are revoked together before any transition that would
make them stale (pause, story change, re-arm, end of narration).

State Machine:
    IDLE -> (select_story) -> PAUSED
    PAUSED -> (resume) -> PLAYING
    PLAYING -> (pause) -> PAUSED
    PLAYING -> (narration ended) -> ENDED
    Any state -> (select_story) -> PAUSED

Cues already behind the audio position at resume time are skipped for
that resume, not caught up. Cues with equal times are armed separately;
whichever timer runs last owns the visible overlay.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..animation.clock import AnimationClock
from ..animation.overlay import EmotionOverlay
from ..audio.transport import AudioTransport
from ..core.errors import AudioTransportError
from ..core.event_bus import EventBus, EventType
from ..core.types import Cue, PlaybackState, Story
from ..stories.catalog import StoryCatalog
from ..stories.timeline import Timeline

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PendingTrigger:
    """An armed cue: fires ``cue`` at loop time ``fire_at`` unless canceled."""
    cue: Cue
    fire_at: float
    handle: Optional[asyncio.TimerHandle]

    def cancel(self) -> None:
        self.handle.cancel()


class PlaybackScheduler:
    """Orchestrates narration audio, cue triggers and the face."""

    def __init__(self, catalog: StoryCatalog, audio: AudioTransport,
                 overlay: EmotionOverlay, clock: AnimationClock,
                 event_bus: Optional[EventBus] = None):
        """
        Initialize the scheduler.

        Args:
            catalog: Source of selectable stories
            audio: Narration transport (play/pause/current_time/ended)
            overlay: Emotion overlay activated by fired cues
            clock: Animation clock rendering the face
            event_bus: Optional bus receiving playback events
        """
        self.catalog = catalog
        self.audio = audio
        self.overlay = overlay
        self.clock = clock
        self.event_bus = event_bus

        self.state = PlaybackState.IDLE
        self.story: Optional[Story] = None
        self.story_index: Optional[int] = None
        self.timeline: Optional[Timeline] = None

        self._pending: List[PendingTrigger] = []

        self.audio.set_ended_callback(self._on_audio_ended)

    @property
    def pending(self) -> List[PendingTrigger]:
        """Currently armed triggers."""
        return list(self._pending)

    def select_story(self, index: int) -> Story:
        """
        Install a story, ready to play from the start.

        Valid from any state. Pending triggers are revoked, every cue is
        marked unconsumed and the narration is loaded but not started.

        Raises:
            StoryIndexError: If ``index`` is outside the catalog (no state change)
            AudioTransportError: If the narration cannot be loaded (scheduler goes idle)
        """
        story = self.catalog.get_by_index(index)

        self._cancel_pending()
        self.overlay.clear()

        try:
            self.audio.load(story.narration_ref)
        except AudioTransportError:
            self.story = None
            self.story_index = None
            self.timeline = None
            self.clock.idle()
            self._set_state(PlaybackState.IDLE)
            raise

        self.story = story
        self.story_index = index
        self.timeline = Timeline(story)
        self.timeline.reset()

        self.clock.idle()
        self._set_state(PlaybackState.PAUSED)

        logger.info(f"Story selected: [{index}] '{story.name}' ({len(story.cues)} cues)")
        self._post(EventType.STORY_SELECTED, {"index": index, "name": story.name})
        return story

    def resume(self) -> bool:
        """
        Start or continue narration and arm the remaining cues.

        No-op unless paused: an ended story must be selected again, and a
        playing story is never armed twice.

        Returns:
            True if playback started
        """
        if self.state != PlaybackState.PAUSED:
            logger.debug(f"Ignoring resume in state {self.state.value}")
            return False

        self.audio.play()
        self.clock.resume()
        armed = self._arm()
        self._set_state(PlaybackState.PLAYING)

        self._post(EventType.PLAYBACK_RESUMED, {
            "position": self.audio.current_time,
            "armed": armed,
        })
        return True

    def pause(self) -> bool:
        """
        Stop narration and revoke every pending trigger.

        Revoked cues stay unconsumed, so the next resume re-arms them
        relative to the position playback continues from.

        Returns:
            True if playback was paused
        """
        if self.state != PlaybackState.PLAYING:
            logger.debug(f"Ignoring pause in state {self.state.value}")
            return False

        self.audio.pause()
        self.clock.pause()
        self._cancel_pending()
        self._set_state(PlaybackState.PAUSED)

        self._post(EventType.PLAYBACK_PAUSED, {"position": self.audio.current_time})
        return True

    def toggle(self) -> bool:
        """Pause when playing, otherwise resume. Returns True if the state changed."""
        if self.state == PlaybackState.PLAYING:
            return self.pause()
        return self.resume()

    def _arm(self) -> int:
        """Arm one trigger per unconsumed cue still ahead of the audio position."""
        self._cancel_pending()

        loop = asyncio.get_running_loop()
        now = loop.time()
        position = self.audio.current_time

        for cue in self.timeline:
            if cue.consumed:
                continue

            delay = cue.time - position
            if delay <= 0:
                continue

            trigger = PendingTrigger(cue=cue, fire_at=now + delay, handle=None)
            trigger.handle = loop.call_later(delay, self._fire, trigger)
            self._pending.append(trigger)
            logger.debug(f"Armed cue '{cue.emotion}' at {cue.time:.2f}s (in {delay:.2f}s)")

        logger.info(f"Armed {len(self._pending)} cues from position {position:.2f}s")
        return len(self._pending)

    def _fire(self, trigger: PendingTrigger) -> None:
        if trigger in self._pending:
            self._pending.remove(trigger)

        cue = trigger.cue
        cue.consumed = True
        logger.debug(f"Cue fired: '{cue.emotion}' at {cue.time:.2f}s")

        if self.overlay.activate(cue.emotion):
            self.clock.render()

        self._post(EventType.CUE_FIRED, {"time": cue.time, "emotion": cue.emotion})

    def _cancel_pending(self) -> None:
        if not self._pending:
            return
        for trigger in self._pending:
            trigger.cancel()
        logger.debug(f"Canceled {len(self._pending)} pending cues")
        self._pending.clear()

    def _on_audio_ended(self) -> None:
        if self.state != PlaybackState.PLAYING:
            return

        self._cancel_pending()
        self.clock.force_mouth_shut = True
        self._set_state(PlaybackState.ENDED)

        consumed = sum(1 for cue in self.timeline if cue.consumed)
        logger.info(f"Narration ended ({consumed}/{len(self.timeline)} cues shown)")
        self._post(EventType.PLAYBACK_ENDED, {"index": self.story_index, "cues_shown": consumed})

    def _set_state(self, state: PlaybackState) -> None:
        if state != self.state:
            logger.debug(f"Playback state: {self.state.value} -> {state.value}")
        self.state = state

    def _post(self, event_type: EventType, data: dict) -> None:
        if self.event_bus:
            self.event_bus.post(event_type, data, source="playback_scheduler")

    def get_state(self) -> dict:
        """
        Get current playback state.

        Returns:
            Dictionary with current state info
        """
        return {
            "state": self.state.value,
            "story": self.story.name if self.story else None,
            "index": self.story_index,
            "position": self.audio.current_time if self.story else 0.0,
            "pending": len(self._pending),
            "overlay": self.overlay.emotion,
        }
