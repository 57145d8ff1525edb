"""Simple YAML configuration loader for Live2Text."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "GOOGLE_API_KEY"
PLACEHOLDER_API_KEY = "your_api_key_here"


class LiveSettings(BaseModel):
    """Settings for one live session."""
    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    model: str = "models/gemini-2.0-flash-live-001"
    api_version: str = "v1alpha"
    system_instruction: str = ""
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    voice: Optional[str] = None
    response_modalities: List[str] = Field(default_factory=lambda: ["TEXT"])
    heartbeat_seconds: Optional[float] = None


class Live2TextConfig:
    """Live2Text configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used (plus the API key from the environment).
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given; using defaults")
            self.config: Dict[str, Any] = {}
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}") from e

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        # Resolve log file path
        if isinstance(config.get('logging'), dict) and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'live.model').

        Args:
            key_path: Dot-separated key path (e.g., 'audio.sample_rate')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'live.system_instruction')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_live_settings(self) -> LiveSettings:
        """Typed view of the ``live`` section."""
        return LiveSettings.model_validate(self.get('live', {}) or {})

    def get_api_key(self) -> str:
        """Get API key from config or environment - CRASHES if not found."""
        api_key = self.get('live.api_key') or os.environ.get(API_KEY_ENV_VAR)
        if not api_key or api_key == PLACEHOLDER_API_KEY:
            raise ValueError(
                f"Please configure your Google API key (live.api_key or {API_KEY_ENV_VAR})")
        return api_key
