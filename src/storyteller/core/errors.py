"""
Error types shared across the storyteller package.
"""


class StoryTellerError(Exception):
    """Base exception for storyteller errors."""
    pass


class CatalogError(StoryTellerError):
    """A story index or story document could not be fetched or parsed."""

    def __init__(self, message: str, ref: str = ""):
        super().__init__(message)
        self.ref = ref


class StoryFormatError(CatalogError):
    """A story document is missing required fields or has invalid values."""
    pass


class StoryIndexError(StoryTellerError, IndexError):
    """A story was requested by an index outside the loaded catalog."""
    pass


class AudioTransportError(StoryTellerError):
    """Audio media could not be loaded or played."""
    pass
