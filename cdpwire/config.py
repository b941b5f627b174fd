"""Configuration management for cdpwire hosts.

Supports multiple configuration sources with precedence:
CLI flags > Environment variables > Config file > Defaults

The library never reads the environment on its own; hosts opt in by calling
load_from_env() and pass the result to Client.from_config().

Usage:
    >>> config = Configuration()
    >>> config.load_from_file("~/.cdpwirerc")
    >>> config.load_from_env()
    >>> config.merge(target_index=2)  # CLI overrides
    >>> print(config.target_index)
    2
"""

import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "~/.cdpwirerc"


class Configuration:
    """Configuration manager with layered precedence.

    Precedence order (highest to lowest):
    1. CLI arguments (via merge method)
    2. Environment variables (CDP_* prefix)
    3. Config file (~/.cdpwirerc JSON)
    4. Default values

    Attributes:
        base_url: Chrome HTTP endpoint serving /json (default: http://localhost:9222)
        target_index: Position of the target in the /json listing (default: 0)
        timeout: Reply timeout in seconds for execute() (default: 30.0)
        open_timeout: WebSocket handshake timeout in seconds (default: 10.0)
        max_size: Maximum WebSocket message size in bytes (default: 2MB)
        queue_size: Per-subscriber event queue bound, 0 = unbounded (default: 1000)
        log_level: Logging level (default: "INFO")
        log_format: Log output format "text" or "json" (default: "text")
    """

    DEFAULTS = {
        "base_url": "http://localhost:9222",
        "target_index": 0,
        "timeout": 30.0,
        "open_timeout": 10.0,
        "max_size": 2_097_152,  # 2MB
        "queue_size": 1000,
        "log_level": "INFO",
        "log_format": "text",
    }

    ENV_MAPPINGS = {
        "CDP_BASE_URL": ("base_url", str),
        "CDP_TARGET_INDEX": ("target_index", int),
        "CDP_TIMEOUT": ("timeout", float),
        "CDP_OPEN_TIMEOUT": ("open_timeout", float),
        "CDP_MAX_SIZE": ("max_size", int),
        "CDP_QUEUE_SIZE": ("queue_size", int),
        "CDP_LOG_LEVEL": ("log_level", str),
        "CDP_LOG_FORMAT": ("log_format", str),
    }

    def __init__(self):
        """Initialize configuration with default values."""
        self.base_url: str = self.DEFAULTS["base_url"]
        self.target_index: int = self.DEFAULTS["target_index"]
        self.timeout: float = self.DEFAULTS["timeout"]
        self.open_timeout: float = self.DEFAULTS["open_timeout"]
        self.max_size: int = self.DEFAULTS["max_size"]
        self.queue_size: int = self.DEFAULTS["queue_size"]
        self.log_level: str = self.DEFAULTS["log_level"]
        self.log_format: str = self.DEFAULTS["log_format"]

    @classmethod
    def load(cls, file_path: str = DEFAULT_CONFIG_FILE, **overrides) -> "Configuration":
        """Build a configuration from file, environment and overrides in order."""
        config = cls()
        config.load_from_file(file_path)
        config.load_from_env()
        config.merge(**overrides)
        return config

    def load_from_file(self, file_path: str) -> None:
        """Load configuration from JSON file.

        Args:
            file_path: Path to config file (typically ~/.cdpwirerc)

        Note:
            Invalid JSON or missing file is ignored with a log message.
            Partial configs are merged with existing values.
        """
        path = Path(file_path).expanduser()

        if not path.exists():
            logger.debug(f"Config file not found: {path}")
            return

        try:
            with open(path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in config file {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Error loading config file {path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Config file {path} does not contain a JSON object")
            return

        self._merge_dict(data)
        logger.info(f"Loaded configuration from {path}")

    def load_from_env(self) -> None:
        """Load configuration from CDP_* environment variables.

        Invalid values are ignored with a warning log.
        """
        for env_var, (attr_name, type_converter) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    converted_value = type_converter(value)
                    setattr(self, attr_name, converted_value)
                    logger.debug(f"Loaded {attr_name}={converted_value} from {env_var}")
                except (ValueError, TypeError) as e:
                    logger.warning(f"Invalid value for {env_var}: {value} ({e})")

    def merge(self, **kwargs) -> None:
        """Merge CLI arguments into configuration (highest precedence).

        None values are skipped so unset CLI flags do not mask lower layers.
        """
        self._merge_dict(kwargs)

    def _merge_dict(self, data: dict) -> None:
        for key, value in data.items():
            if key in self.DEFAULTS and value is not None:
                setattr(self, key, value)
                logger.debug(f"Set {key}={value}")

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {key: getattr(self, key) for key in self.DEFAULTS}

    def __repr__(self) -> str:
        return f"Configuration({self.to_dict()})"
