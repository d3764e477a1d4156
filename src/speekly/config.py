# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Configuration management for Speekly.
Handles loading and saving settings from a YAML config file.
"""

import copy
import logging
from pathlib import Path
from typing import Any, TypedDict

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME: str = ".speekly.yaml"


class TrackingSettings(TypedDict):
    """Type definition for tracking configuration settings."""
    match_threshold: float
    completion_delay_ms: int
    fragment_history: int
    max_phrase_window: int
    min_phrase_window: int
    alignment_window: int
    completion_tail_words: int
    completion_min_word_length: int


class ScriptSettings(TypedDict):
    """Type definition for reference script loading settings."""
    render_markdown: bool
    skip_blank_lines: bool


class Config(TypedDict):
    """Type definition for the complete configuration."""
    # Server settings
    host: str
    port: int
    # Write fragment/navigation logs to ./logs/
    debug_log: bool
    script: ScriptSettings
    tracking: TrackingSettings


# Default configuration values
DEFAULT_CONFIG: Config = {
    # Server settings
    "host": "127.0.0.1",
    "port": 8000,

    "debug_log": False,

    # Reference script loading
    "script": {
        # Strip Markdown formatting before splitting into paragraphs
        "render_markdown": False,
        "skip_blank_lines": True,
    },

    # Tracking thresholds
    "tracking": {
        # Minimum edit-distance similarity (0-100) for two words to match
        "match_threshold": 70.0,
        # Debounce before advancing to the next paragraph
        "completion_delay_ms": 1000,
        # Recent fragments kept for context
        "fragment_history": 5,
        # Phrase lengths (in words) tried when relocating a fragment
        "max_phrase_window": 5,
        "min_phrase_window": 2,
        # +/- recognized words searched per reference word for display
        "alignment_window": 3,
        # Paragraph ending words checked for completion
        "completion_tail_words": 3,
        "completion_min_word_length": 4,
    },
}


def get_config_path() -> Path:
    """Get the path to the config file in the current working directory."""
    return Path.cwd() / CONFIG_FILENAME


def _deep_merge(base, override):
    """
    Deep merge two dictionaries, with override taking precedence.
    Returns a new dictionary without modifying the originals.

    Args:
        base: Base dictionary to merge from.
        override: Dictionary with values that take precedence over base.

    Returns:
        New dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, merged with defaults.

    Args:
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        Configuration dictionary with all values (defaults + overrides from file).
    """
    if config_path is None:
        config_path = get_config_path()

    # Start with defaults
    config: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)  # type: ignore[assignment]

    # Load from file if it exists
    if config_path.exists():
        try:
            with open(config_path, encoding='utf-8') as f:
                file_config: Any = yaml.safe_load(f)
                if isinstance(file_config, dict):
                    config = _deep_merge(config, file_config)
                elif file_config is not None:
                    logger.warning(
                        "Ignoring config %s: expected a mapping, got %s",
                        config_path, type(file_config).__name__)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not load config from %s: %s", config_path, e)

    return config  # type: ignore[return-value]


def save_config(config: Config, config_path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration dictionary to save.
        config_path: Optional path to config file. If None, uses default location.

    Returns:
        True if save was successful, False otherwise.
    """
    if config_path is None:
        config_path = get_config_path()

    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(dict(config), f, default_flow_style=False, sort_keys=False)
        return True
    except (OSError, yaml.YAMLError) as e:
        logger.error("Error saving config to %s: %s", config_path, e)
        return False


def get_tracking_settings(config: Config) -> TrackingSettings:
    """
    Extract tracking settings from config.

    Args:
        config: Configuration dictionary.

    Returns:
        Tracking settings dictionary.
    """
    return config.get("tracking", DEFAULT_CONFIG["tracking"]).copy()  # type: ignore[return-value]


def get_script_settings(config: Config) -> ScriptSettings:
    """Extract script loading settings from config."""
    return config.get("script", DEFAULT_CONFIG["script"]).copy()  # type: ignore[return-value]
