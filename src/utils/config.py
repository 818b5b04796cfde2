"""Configuration management for the will allocation engine.

This module provides simple YAML configuration loading and access.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


class Config:
    """Simple configuration loader and accessor.

    Loads YAML configuration files and provides dict-like access to settings.

    Example:
        >>> config = Config.from_file("config/default.yaml")
        >>> epsilon = config.get("allocation.epsilon", 0.1)
    """

    def __init__(self, config_dict: dict[str, Any]) -> None:
        """Initialize with configuration dictionary.

        Args:
            config_dict: Configuration data as nested dictionary
        """
        self._config = config_dict

    @classmethod
    def from_file(cls, filepath: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            filepath: Path to YAML configuration file

        Returns:
            Config instance with loaded configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            config_dict = {}

        return cls(config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Supports nested keys using dot notation (e.g., "allocation.epsilon").

        Args:
            key: Configuration key (supports dot notation for nested keys)
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get("price_feed.timeout")
            10
            >>> config.get("missing.key", "fallback")
            'fallback'
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation.

        Args:
            key: Configuration key (supports dot notation)

        Returns:
            Configuration value

        Raises:
            KeyError: If key not found
        """
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def section(self, key: str) -> dict[str, Any]:
        """Get a nested section as a plain dictionary.

        Missing or non-mapping sections come back as an empty dict, so the
        result can be handed straight to a component constructor.

        Args:
            key: Section key (supports dot notation)

        Returns:
            Copy of the section dictionary
        """
        value = self.get(key, {})
        if not isinstance(value, dict):
            return {}
        return dict(value)

    def to_dict(self) -> dict[str, Any]:
        """Get the full configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return self._config.copy()


def load_config(filepath: str | Path = None) -> Config:
    """Helper function to load configuration.

    Args:
        filepath: Path to YAML configuration file. If None, uses default path.

    Returns:
        Config instance
    """
    if filepath is None:
        # Use absolute path to default config relative to project root
        root_dir = Path(__file__).parent.parent.parent
        filepath = root_dir / "config" / "default.yaml"
    return Config.from_file(filepath)


def load_price_feed_config(
    config_file: str | Path = None,
    env_file: str | Path = None,
) -> tuple[Config, dict[str, str | None]]:
    """Load price feed configuration from YAML and environment variables.

    Unlike a brokerage integration, the public CoinGecko endpoint works
    without credentials, so a missing .env file is not an error. When
    present it may carry COINGECKO_API_KEY for the authenticated tier.

    Args:
        config_file: Path to YAML file. If None, uses config/default.yaml.
        env_file: Path to .env file. If None, uses <project root>/.env.

    Returns:
        Tuple of (Config object, credentials dict) where credentials
        contains ``api_key`` (None when not set).

    Example:
        >>> config, creds = load_price_feed_config()
        >>> timeout = config.get("price_feed.timeout", 10)
    """
    root_dir = Path(__file__).parent.parent.parent

    env_path = Path(env_file) if env_file is not None else root_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config = load_config(config_file)

    credentials = {
        "api_key": os.getenv("COINGECKO_API_KEY") or None,
    }

    return config, credentials
