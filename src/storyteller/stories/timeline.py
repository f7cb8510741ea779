"""
Timeline model: the emotion cues of the selected story and their
per-session consumption state.
"""

import logging
from typing import Iterator, List, Tuple

from ..core.types import Cue, Story

logger = logging.getLogger(__name__)


class Timeline:
    """Cue sequence of one story, in authored order.

    No sorting or filtering is applied; the scheduler decides which cues
    to arm. ``reset`` is called once each time the story is selected.
    """

    def __init__(self, story: Story):
        self.story = story

    @property
    def cues(self) -> Tuple[Cue, ...]:
        return self.story.cues

    def reset(self) -> None:
        """Mark every cue as not yet consumed."""
        for cue in self.story.cues:
            cue.consumed = False
        logger.debug(f"Timeline reset for '{self.story.name}' ({len(self.story.cues)} cues)")

    def unconsumed(self) -> List[Cue]:
        """Cues that have not fired during the current session."""
        return [cue for cue in self.story.cues if not cue.consumed]

    def __iter__(self) -> Iterator[Cue]:
        return iter(self.story.cues)

    def __len__(self) -> int:
        return len(self.story.cues)
