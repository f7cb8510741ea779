"""
Story sources.

A story source resolves the references found in the story index and in
story documents: JSON documents are fetched and parsed, media references
are turned into local files an audio transport can open.

All methods are blocking; the catalog runs them in the default executor.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

import requests

from ..core.errors import AudioTransportError, CatalogError

logger = logging.getLogger(__name__)


class StorySource(ABC):
    """
    Abstract base class for story sources.

    References are web-style paths (``/stories/index.json``,
    ``/audio/loup.mp3``) relative to the source's root.
    """

    @abstractmethod
    def fetch_json(self, ref: str) -> Any:
        """
        Fetch and parse a JSON document.

        Args:
            ref: Document reference

        Returns:
            The parsed JSON value

        Raises:
            CatalogError: If the document cannot be fetched or parsed
        """
        pass

    @abstractmethod
    def resolve_media(self, ref: str) -> Path:
        """
        Resolve a media reference to a local file.

        Raises:
            AudioTransportError: If the media is unavailable
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get a short description of this source."""
        pass


class FileStorySource(StorySource):
    """Serves references from a directory acting as the web root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def name(self) -> str:
        return f"file:{self.root}"

    def _path(self, ref: str) -> Path:
        root = self.root.resolve()
        path = (root / ref.lstrip('/')).resolve()
        if root != path and root not in path.parents:
            raise CatalogError(f"Reference escapes the assets directory: {ref}", ref)
        return path

    def fetch_json(self, ref: str) -> Any:
        path = self._path(ref)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except OSError as e:
            raise CatalogError(f"Cannot read {ref}: {e}", ref) from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Invalid JSON in {ref}: {e}", ref) from e

    def resolve_media(self, ref: str) -> Path:
        try:
            path = self._path(ref)
        except CatalogError as e:
            raise AudioTransportError(str(e)) from e

        if not path.is_file():
            raise AudioTransportError(f"Media file not found: {ref}")
        return path


class HttpStorySource(StorySource):
    """Fetches references from an HTTP origin.

    Media files are downloaded once into ``cache_dir`` so they can be
    played by file-based transports.
    """

    def __init__(self, base_url: str, timeout: float = 5.0,
                 cache_dir: Path = Path("cache/media"),
                 session: Optional[requests.Session] = None):
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.timeout = timeout
        self.cache_dir = Path(cache_dir)
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        return self.base_url

    def url_for(self, ref: str) -> str:
        """Absolute URL of a reference."""
        return urljoin(self.base_url, ref)

    def fetch_json(self, ref: str) -> Any:
        url = self.url_for(ref)
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise CatalogError(f"Failed to fetch {url}: {e}", ref) from e
        except ValueError as e:
            raise CatalogError(f"Invalid JSON from {url}: {e}", ref) from e

    def resolve_media(self, ref: str) -> Path:
        url = self.url_for(ref)
        digest = hashlib.sha1(url.encode('utf-8')).hexdigest()[:16]
        target = self.cache_dir / f"{digest}{Path(ref).suffix}"

        if target.exists():
            return target

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_suffix(target.suffix + '.part')

        logger.info(f"Downloading media {url}")
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()
                with open(partial, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=65536):
                        f.write(chunk)
        except (requests.RequestException, OSError) as e:
            partial.unlink(missing_ok=True)
            raise AudioTransportError(f"Failed to download {url}: {e}") from e

        partial.replace(target)
        return target
