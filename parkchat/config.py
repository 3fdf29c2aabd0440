"""Configuration file management for ParkChat."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

COLOR_SECTIONS = ("user", "messages", "system")
COLOR_KEYS = ("nickname", "text", "date", "background")


def _expand_path(p: str) -> str:
    """Expand ~ and environment variables in path."""
    return os.path.expanduser(os.path.expandvars(p))


def get_config_dir() -> Path:
    """Find existing config directory or return default.

    Searches in order:
    1. /etc/parkchat
    2. ~/.config/parkchat
    3. ~/.parkchat

    Returns:
        Path to config directory (may not exist yet)
    """
    search_paths = [
        Path("/etc/parkchat"),
        Path(_expand_path("~/.config/parkchat")),
        Path(_expand_path("~/.parkchat")),
    ]

    for path in search_paths:
        if path.exists() and path.is_dir():
            logger.debug(f"Found existing config directory: {path}")
            return path

    default_path = Path(_expand_path("~/.parkchat"))
    logger.debug(f"No existing config directory found, using default: {default_path}")
    return default_path


def get_config_path() -> Path:
    """Get path to the client config file."""
    return get_config_dir() / "config.json"


def get_default_config() -> dict[str, Any]:
    """Get default configuration values.

    Returns:
        Dictionary with default configuration
    """
    return {
        "nickname": "",
        "password": "",
        "start_room": "General",
        "server_ip": "chat.astelta.world",
        "websocket_port": "8080",
        "message_prefix": "",
        "timestamp_format": "%H:%M",
        "prompt": "> ",
        "colors": {
            "user": {
                "nickname": "blue",
                "text": "",
                "date": "green",
                "background": "",
            },
            "messages": {
                "nickname": "yellow",
                "text": "",
                "date": "cyan",
                "background": "",
            },
            "system": {
                "nickname": "red",
                "text": "brightCyan",
                "date": "brightGreen",
                "background": "",
            },
        },
        "display_queue_size": 10,
        "ping_interval_seconds": 30,
        "connection_timeout_seconds": 10,
        "history_timeout_seconds": 10,
        "log_level": "INFO",
        "log_to_file": True,
        "log_to_console": False,
        "max_log_size_mb": 10,
        "log_backup_count": 5,
    }


def merge_config(saved: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Overlay saved values on the defaults.

    Empty strings fall back to the default, and the colors tree is merged
    field by field so a partial colors section keeps the other defaults.
    """
    merged = copy.deepcopy(defaults)

    for key, value in saved.items():
        if key == "colors":
            continue
        if isinstance(value, str) and value == "" and key in defaults:
            continue
        merged[key] = value

    saved_colors = saved.get("colors")
    if isinstance(saved_colors, dict):
        for section in COLOR_SECTIONS:
            section_values = saved_colors.get(section)
            if not isinstance(section_values, dict):
                continue
            for key in COLOR_KEYS:
                value = section_values.get(key)
                if isinstance(value, str) and value:
                    merged["colors"][section][key] = value

    return merged


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate and sanitize config values.

    Args:
        config: Configuration dictionary to validate

    Returns:
        Validated and sanitized configuration
    """
    defaults = get_default_config()

    int_fields = [
        "display_queue_size",
        "ping_interval_seconds",
        "connection_timeout_seconds",
        "history_timeout_seconds",
        "max_log_size_mb",
        "log_backup_count",
    ]
    for field in int_fields:
        if field in config:
            try:
                config[field] = int(config[field])
                if config[field] < 0:
                    config[field] = defaults[field]
            except (ValueError, TypeError):
                config[field] = defaults[field]

    positive_fields = ["display_queue_size", "ping_interval_seconds"]
    for field in positive_fields:
        if config.get(field, 0) < 1:
            config[field] = defaults[field]

    if isinstance(config.get("websocket_port"), int) and not isinstance(
        config.get("websocket_port"), bool
    ):
        config["websocket_port"] = str(config["websocket_port"])

    bool_fields = ["log_to_file", "log_to_console"]
    for field in bool_fields:
        if field in config:
            if not isinstance(config[field], bool):
                config[field] = defaults[field]

    str_fields = [
        "nickname",
        "password",
        "start_room",
        "server_ip",
        "websocket_port",
        "message_prefix",
        "timestamp_format",
        "prompt",
        "log_level",
    ]
    for field in str_fields:
        if field in config:
            if not isinstance(config[field], str):
                config[field] = defaults[field]

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.get("log_level", "").upper() not in valid_log_levels:
        config["log_level"] = defaults["log_level"]

    return config


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load saved configuration.

    Args:
        config_path: Explicit config file; defaults to :func:`get_config_path`

    Returns:
        Configuration dictionary with defaults filled in and validated
    """
    config_path = config_path or get_config_path()
    saved_config: dict[str, Any] = {}

    if config_path.exists():
        logger.info(f"Loading config from {config_path}")
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                saved_config = loaded
            else:
                logger.warning(f"Ignoring config at {config_path}: not a JSON object")
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
    else:
        logger.info(f"No config file found at {config_path}, using defaults")

    return validate_config(merge_config(saved_config, get_default_config()))

