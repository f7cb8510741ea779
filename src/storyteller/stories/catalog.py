"""
Story Catalog - loads the list of available stories.

The index document is an ordered list of story document references.
Documents are fetched one after another so the catalog order always
matches the index order.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from ..core.errors import CatalogError, StoryIndexError
from ..core.event_bus import EventBus, EventType
from ..core.types import Story, StoryEntry
from .sources import StorySource

logger = logging.getLogger(__name__)


class StoryCatalog:
    """Holds the loaded stories and hands them out by index."""

    def __init__(self, source: StorySource, index_ref: str = "stories/index.json",
                 event_bus: Optional[EventBus] = None):
        """
        Initialize the catalog.

        Args:
            source: Where index and story documents are fetched from
            index_ref: Reference of the index document
            event_bus: Optional bus receiving catalog events
        """
        self.source = source
        self.index_ref = index_ref
        self.event_bus = event_bus
        self._stories: List[Story] = []

    async def load(self) -> int:
        """
        Fetch the index and every story it lists.

        The previously loaded stories are replaced only if every
        document was fetched and parsed.

        Returns:
            Number of stories loaded

        Raises:
            CatalogError: If the index or any story document fails
        """
        loop = asyncio.get_running_loop()
        logger.info(f"Loading story index {self.index_ref} from {self.source.name}")

        try:
            index = await loop.run_in_executor(None, self.source.fetch_json, self.index_ref)
            refs = self._parse_index(index)

            stories = []
            for ref in refs:
                data = await loop.run_in_executor(None, self.source.fetch_json, ref)
                story = Story.from_dict(data, ref)
                stories.append(story)
                logger.debug(f"Loaded story '{story.name}' ({len(story.cues)} cues) from {ref}")

        except CatalogError as e:
            logger.error(f"Failed to load story catalog: {e}")
            self._post(EventType.CATALOG_FAILED, {"error": str(e), "ref": e.ref})
            raise

        self._stories = stories
        logger.info(f"Story catalog loaded: {len(stories)} stories")
        self._post(EventType.CATALOG_LOADED, {"count": len(stories)})
        return len(stories)

    def _parse_index(self, index) -> List[str]:
        if not isinstance(index, list) or not all(isinstance(ref, str) for ref in index):
            raise CatalogError(
                f"Story index {self.index_ref} must be a list of references", self.index_ref
            )
        return index

    def _post(self, event_type: EventType, data: dict) -> None:
        if self.event_bus:
            self.event_bus.post(event_type, data, source="story_catalog")

    @property
    def stories(self) -> Tuple[Story, ...]:
        return tuple(self._stories)

    def get_count(self) -> int:
        """Number of loaded stories."""
        return len(self._stories)

    def get_by_index(self, index: int) -> Story:
        """
        Get a story by its position in the index.

        Raises:
            StoryIndexError: If no story exists at that position
        """
        if not 0 <= index < len(self._stories):
            raise StoryIndexError(
                f"Story index {index} out of range (catalog has {len(self._stories)} stories)"
            )
        return self._stories[index]

    def entries(self) -> List[StoryEntry]:
        """Selectable entries (name and preview clip) for presentation."""
        return [
            StoryEntry(index=i, name=story.name, preview_ref=story.preview_ref)
            for i, story in enumerate(self._stories)
        ]

    def __len__(self) -> int:
        return len(self._stories)
