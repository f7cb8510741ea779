"""
Configuration management for the storyteller.
Supports environment variable configuration plus an optional YAML
file overriding the face image tables.
"""

import os
import math
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field, fields

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


DEFAULT_EMOTION_IMAGES: Dict[str, str] = {
    "affection": "affection.png",
    "colère": "colère.png",
    "confusion": "confusion.png",
    "cri": "cri.png",
    "embarassement": "embarassement.png",
    "joie": "joie.png",
    "neutre": "neutre.png",
    "peur": "peur.png",
    "surprise": "surprise.png",
    "timide": "timide.png",
    "tristesse": "tristesse.png",
}


@dataclass
class AnimationTimings:
    """Periods and durations of the face animation, in seconds."""
    render_interval: float = 0.1    # Recompute face image
    blink_interval: float = 3.0     # Blink every 3s
    blink_duration: float = 0.2     # Eyes stay closed 200ms
    mouth_interval: float = 0.5     # Close mouth briefly every 500ms
    mouth_duration: float = 0.25
    emotion_delay: float = 1.0      # How long an emotion stays displayed


@dataclass
class FaceAssets:
    """Image identifiers for the idle face and the emotion overlays.

    The idle face is a 2x2 table over {blinking, eyes open} x
    {mouth closed, mouth open}.
    """
    image_dir: str = "qt"
    blinking_closed: str = "normal.png"
    blinking_open: str = "normal4.png"
    idle_closed: str = "normal2.png"
    idle_open: str = "normal3.png"
    emotion_images: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_EMOTION_IMAGES)
    )

    def idle_image(self, blinking: bool, mouth_shut: bool) -> str:
        """Look up the idle face image for a blink/mouth combination."""
        if blinking:
            return self.blinking_closed if mouth_shut else self.blinking_open
        return self.idle_closed if mouth_shut else self.idle_open


@dataclass
class StoryTellerConfig:
    """Main configuration for the storyteller.

    Configuration hierarchy:
    1. Defaults below
    2. .env file / environment variables
    3. Optional faces YAML file (image tables only)
    """

    # Core settings
    name: str = "QT Storyteller"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Story sources
    stories_index: str = "stories/index.json"
    assets_dir: str = "public"
    base_url: Optional[str] = None
    http_timeout: float = 5.0
    media_cache_dir: str = "cache/media"
    autoplay_first: bool = True

    # Face
    timings: AnimationTimings = field(default_factory=AnimationTimings)
    faces: FaceAssets = field(default_factory=FaceAssets)
    faces_file: Optional[str] = None

    # Window
    window_size: Any = (480, 480)
    fullscreen: bool = False

    # Mock mode settings
    mock_audio: bool = False
    mock_display: bool = False

    # Paths
    logs_dir: str = "logs"

    def __post_init__(self):
        """Post-initialization processing."""
        self.assets_dir = Path(self.assets_dir)
        self.media_cache_dir = Path(self.media_cache_dir)
        self.logs_dir = Path(self.logs_dir)
        self.window_size = tuple(self.window_size)

    @property
    def face_dir(self) -> Path:
        """Directory holding the face images."""
        return self.assets_dir / self.faces.image_dir


class ConfigManager:
    """Manages configuration loading and validation."""

    ENV_MAPPINGS = {
        "STORYTELLER_DEBUG": "debug",
        "STORYTELLER_LOG_LEVEL": "log_level",
        "STORYTELLER_NAME": "name",
        "STORIES_INDEX": "stories_index",
        "ASSETS_DIR": "assets_dir",
        "STORIES_BASE_URL": "base_url",
        "HTTP_TIMEOUT": "http_timeout",
        "MEDIA_CACHE_DIR": "media_cache_dir",
        "AUTOPLAY_FIRST": "autoplay_first",
        "RENDER_INTERVAL": "timings.render_interval",
        "BLINK_INTERVAL": "timings.blink_interval",
        "BLINK_DURATION": "timings.blink_duration",
        "MOUTH_INTERVAL": "timings.mouth_interval",
        "MOUTH_DURATION": "timings.mouth_duration",
        "EMOTION_DELAY": "timings.emotion_delay",
        "FACE_IMAGE_DIR": "faces.image_dir",
        "FACES_FILE": "faces_file",
        "WINDOW_SIZE": "window_size",
        "WINDOW_FULLSCREEN": "fullscreen",
        "MOCK_AUDIO": "mock_audio",
        "MOCK_DISPLAY": "mock_display",
        "LOGS_DIR": "logs_dir",
    }

    def __init__(self, env_file: Optional[Path] = None):
        # Load environment variables from .env file
        self._load_env_file(env_file)

        self.config: Optional[StoryTellerConfig] = None
        self._env_overrides: Dict[str, str] = {}

    def _load_env_file(self, env_file: Optional[Path] = None):
        """Load environment variables from .env file."""
        if env_file is not None:
            if env_file.exists():
                load_dotenv(env_file)
                logger.info(f"Loaded environment variables from {env_file}")
            return

        # Try to load .env file from project root
        env_file = Path.cwd() / '.env'

        if env_file.exists():
            load_dotenv(env_file)
            logger.info(f"Loaded environment variables from {env_file}")
        else:
            # Also try looking one level up (if running from src/)
            env_file_alt = Path.cwd().parent / '.env'
            if env_file_alt.exists():
                load_dotenv(env_file_alt)
                logger.info(f"Loaded environment variables from {env_file_alt}")
            else:
                logger.info("No .env file found. Using system environment variables or defaults.")

    def load_config(self) -> StoryTellerConfig:
        """Load configuration from environment variables and the faces file."""
        config_data: Dict[str, Any] = {}

        # Apply environment variable overrides
        config_data = self._apply_env_overrides(config_data)

        # Merge face image tables from YAML if configured
        faces_file = config_data.get("faces_file")
        if faces_file:
            config_data = self._apply_faces_file(config_data, Path(faces_file))

        # Create configuration object
        self.config = self._create_config_object(config_data)

        # Validate configuration
        self._validate_config(self.config)

        logger.info("Configuration loaded from environment variables")
        return self.config

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)
                self._env_overrides[env_var] = env_value

        return config_data

    def _apply_faces_file(self, config_data: Dict[str, Any], path: Path) -> Dict[str, Any]:
        """Merge a YAML faces file into the ``faces`` section."""
        if not path.exists():
            raise ValueError(f"Configuration validation failed: faces file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration validation failed: faces file must be a mapping: {path}")

        face_fields = {f.name for f in fields(FaceAssets)}
        faces = config_data.setdefault('faces', {})
        for key, value in data.items():
            if key not in face_fields:
                logger.warning(f"Ignoring unknown key '{key}' in faces file {path}")
            elif key == 'emotion_images':
                # Extend the default table rather than replacing it
                images = dict(DEFAULT_EMOTION_IMAGES)
                images.update({str(k): str(v) for k, v in (value or {}).items()})
                faces['emotion_images'] = images
            else:
                faces[key] = value

        logger.info(f"Loaded face image tables from {path}")
        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested value in a dictionary using dot notation."""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        # Convert string values to appropriate types
        if isinstance(value, str):
            if value.lower() in ('true', 'false'):
                value = value.lower() == 'true'
            elif value.lower() == 'null':
                value = None
            elif self._is_number(value):
                # Signed and exponent forms too, so validation sees a number
                try:
                    value = int(value)
                except ValueError:
                    value = float(value)
            elif ',' in value and not value.startswith('[') and not value.startswith('('):
                # Handle comma-separated values (like window size)
                try:
                    parts = [int(x.strip()) for x in value.split(',')]
                    value = tuple(parts)
                except ValueError:
                    pass

        current[keys[-1]] = value

    @staticmethod
    def _is_number(value: str) -> bool:
        try:
            return math.isfinite(float(value))
        except ValueError:
            return False

    def _create_config_object(self, config_data: Dict[str, Any]) -> StoryTellerConfig:
        """Create StoryTellerConfig object from dictionary data."""
        data = dict(config_data)

        timings = AnimationTimings(**data.pop('timings', {}))
        faces = FaceAssets(**data.pop('faces', {}))

        known = {f.name for f in fields(StoryTellerConfig)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")

        return StoryTellerConfig(
            timings=timings,
            faces=faces,
            **{k: v for k, v in data.items() if k in known},
        )

    def _validate_config(self, config: StoryTellerConfig) -> None:
        """Validate configuration values."""
        errors = []
        timings = config.timings

        numbers = [(f"timings.{f.name}", getattr(timings, f.name)) for f in fields(timings)]
        numbers.append(("http_timeout", config.http_timeout))
        not_numbers = [name for name, value in numbers
                       if isinstance(value, bool) or not isinstance(value, (int, float))]
        if not_numbers:
            raise ValueError(
                f"Configuration validation failed: not a number: {', '.join(not_numbers)}"
            )

        for name in ('render_interval', 'blink_interval', 'mouth_interval', 'emotion_delay'):
            if getattr(timings, name) <= 0:
                errors.append(f"{name} must be positive")

        if not (0 <= timings.blink_duration <= timings.blink_interval):
            errors.append("blink_duration must be between 0 and blink_interval")

        if not (0 <= timings.mouth_duration <= timings.mouth_interval):
            errors.append("mouth_duration must be between 0 and mouth_interval")

        if config.http_timeout <= 0:
            errors.append("http_timeout must be positive")

        if not config.stories_index:
            errors.append("stories_index is required")

        if len(config.window_size) != 2 or min(config.window_size) <= 0:
            errors.append("window_size must be two positive integers")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    def get_env_overrides(self) -> Dict[str, str]:
        """Get environment variable overrides that were applied."""
        return self._env_overrides.copy()


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config() -> StoryTellerConfig:
    """Load the global configuration."""
    return get_config_manager().load_config()


def get_config() -> Optional[StoryTellerConfig]:
    """Get the current configuration."""
    return get_config_manager().config
