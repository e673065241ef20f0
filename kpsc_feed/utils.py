"""
Utility functions for the KPSC notification feed.

This module provides:
- Central logging configuration
- Safe JSON read/write helpers
- Feed configuration loading and validation
- Shared helper utilities used across modules
"""

import json
import logging
import os
import re
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO
from urllib.parse import urljoin, urlparse


# Default configuration paths
DEFAULT_CONFIG_PATH = "config/feed.json"

DEFAULT_ORIGIN = "https://www.keralapsc.gov.in"
DEFAULT_INDEX_PATH = "/notifications"
DEFAULT_TARGET_YEAR = 2025
DEFAULT_MAX_GAZETTES = 4
DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_MAX_RETRIES = 0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; PSC-Guru/1.0)"


class FeedConfig:
    """Settings for one notification feed pipeline."""

    def __init__(
        self,
        origin: str = DEFAULT_ORIGIN,
        index_path: str = DEFAULT_INDEX_PATH,
        target_year: int = DEFAULT_TARGET_YEAR,
        max_gazettes: int = DEFAULT_MAX_GAZETTES,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        self.origin = origin.rstrip("/")
        self.index_path = index_path
        self.target_year = int(target_year)
        self.max_gazettes = max_gazettes
        self.max_workers = max_workers
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent

    def __repr__(self) -> str:
        return f"FeedConfig(origin={self.origin}, target_year={self.target_year})"

    @property
    def index_url(self) -> str:
        """Absolute URL of the notifications index page."""
        return normalize_url(self.index_path, self.origin + "/")


def load_feed_config(config_path: Optional[str] = None) -> FeedConfig:
    """
    Load the feed configuration from JSON or environment.

    Priority:
    1. FEED_CONFIG environment variable (JSON string)
    2. FEED_CONFIG_PATH environment variable (file path)
    3. Provided config_path parameter
    4. Default config file path

    KPSC_TARGET_YEAR and KPSC_ORIGIN environment variables override
    whatever was loaded.

    Args:
        config_path: Optional path to the configuration file.

    Returns:
        FeedConfig object (defaults when nothing usable was found).
    """
    logger = get_logger("utils")

    # Check for JSON config in environment variable
    env_config = os.environ.get("FEED_CONFIG", "").strip()
    if env_config:
        try:
            data = json.loads(env_config)
            logger.info("Loaded feed config from FEED_CONFIG environment variable")
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in FEED_CONFIG: {e}")
            data = None
    else:
        data = None

    # If not in env, try file path
    if data is None:
        env_path = os.environ.get("FEED_CONFIG_PATH", "").strip()
        file_path = env_path or config_path or DEFAULT_CONFIG_PATH

        data = safe_read_json(file_path, default={})
        if data:
            logger.info(f"Loaded feed config from {file_path}")
        else:
            logger.debug(f"No feed config at {file_path}, using defaults")

    if not isinstance(data, dict):
        logger.warning("Feed config is not a JSON object, using defaults")
        data = {}

    overrides = {
        "target_year": os.environ.get("KPSC_TARGET_YEAR", "").strip(),
        "origin": os.environ.get("KPSC_ORIGIN", "").strip(),
    }
    for key, value in overrides.items():
        if value:
            data[key] = value

    config = _parse_config_entry(data)
    logger.info(f"Feed configuration: {config}")
    return config


def _parse_config_entry(entry: Dict[str, Any]) -> FeedConfig:
    """
    Build a FeedConfig from a raw dictionary, keeping defaults for bad fields.

    Args:
        entry: Dictionary with configuration values.

    Returns:
        FeedConfig object.
    """
    logger = get_logger("utils")
    kwargs: Dict[str, Any] = {}

    for key in ("origin", "index_path", "user_agent"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            kwargs[key] = value.strip()

    positive_ints = ("max_gazettes", "max_workers", "timeout")
    for key in ("target_year",) + positive_ints + ("max_retries",):
        if key not in entry:
            continue
        try:
            value = int(entry[key])
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer {key}: {entry[key]!r}")
            continue
        if key in positive_ints and value < 1:
            logger.warning(f"Ignoring non-positive {key}: {value}")
            continue
        if key == "max_retries" and value < 0:
            logger.warning(f"Ignoring negative max_retries: {value}")
            continue
        kwargs[key] = value

    return FeedConfig(**kwargs)


def validate_feed_config(config: FeedConfig) -> List[str]:
    """
    Validate a feed configuration and return any warnings.

    Args:
        config: FeedConfig to validate.

    Returns:
        List of warning messages (empty if all valid).
    """
    warnings = []

    parsed = urlparse(config.origin)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        warnings.append(f"Origin '{config.origin}' is not an HTTP(S) URL")

    if not 1900 <= config.target_year <= 2100:
        warnings.append(f"Target year {config.target_year} looks implausible")

    if config.max_workers < 1:
        warnings.append("max_workers must be at least 1")

    if config.max_gazettes < 1:
        warnings.append("max_gazettes must be at least 1")

    return warnings


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure and return the root logger for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO.
        stream: Where log lines go. Defaults to stdout.

    Returns:
        Configured logger instance.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(stream or sys.stdout)
        ]
    )

    logger = logging.getLogger("kpsc_feed")
    logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name for the logger, typically the module name.

    Returns:
        Logger instance configured as a child of the main application logger.
    """
    return logging.getLogger(f"kpsc_feed.{name}")


def safe_read_json(filepath: str, default: Optional[Any] = None) -> Any:
    """
    Safely read JSON data from a file.

    Args:
        filepath: Path to the JSON file.
        default: Value to return if the file doesn't exist or is invalid.

    Returns:
        Parsed JSON data or the default value on failure.
    """
    logger = get_logger("utils")

    try:
        path = Path(filepath)
        if not path.exists():
            logger.debug(f"File does not exist: {filepath}, returning default")
            return default

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
            logger.debug(f"Successfully read JSON from {filepath}")
            return data

    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON in {filepath}: {e}")
        return default
    except PermissionError as e:
        logger.error(f"Permission denied reading {filepath}: {e}")
        return default
    except OSError as e:
        logger.error(f"Unexpected error reading {filepath}: {e}")
        return default


def safe_write_json(filepath: str, data: Any, indent: int = 2) -> bool:
    """
    Safely write JSON data to a file using atomic write operation.

    Uses a temporary file and atomic rename so readers never see a
    half-written feed.

    Args:
        filepath: Path to the JSON file.
        data: Data to serialize as JSON.
        indent: JSON indentation level. Defaults to 2.

    Returns:
        True if write was successful, False otherwise.
    """
    logger = get_logger("utils")

    try:
        path = Path(filepath)

        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            suffix=".json",
            prefix="feed_",
            dir=path.parent
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=indent, ensure_ascii=False)

            shutil.move(temp_path, filepath)
            logger.debug(f"Successfully wrote JSON to {filepath}")
            return True

        except Exception:
            # Clean up temp file on failure
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    except PermissionError as e:
        logger.error(f"Permission denied writing {filepath}: {e}")
        return False
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Unexpected error writing {filepath}: {e}")
        return False


def get_env_var(name: str, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """
    Get an environment variable with optional requirement enforcement.

    Args:
        name: Name of the environment variable.
        required: If True, raises ValueError when variable is not set.
                  Defaults to True.
        default: Default value if variable is not set and not required.

    Returns:
        Value of the environment variable or default.

    Raises:
        ValueError: If required=True and the variable is not set.
    """
    value = os.environ.get(name)

    if value is None or value.strip() == "":
        if required:
            raise ValueError(f"Required environment variable '{name}' is not set")
        return default

    return value.strip()


def normalize_url(url: str, base_url: str) -> str:
    """
    Normalize a potentially relative URL to an absolute URL.

    Args:
        url: The URL to normalize (may be relative or absolute).
        base_url: The base URL to use for resolving relative URLs.

    Returns:
        Absolute URL string.
    """
    # If already absolute, return as-is
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return url

    # Resolve relative URL against base
    return urljoin(base_url, url)


def sanitize_text(text: Optional[str]) -> str:
    """
    Clean and normalize text content.

    Collapses runs of whitespace (including newlines and non-breaking
    spaces) into single spaces and trims the ends.

    Args:
        text: Raw text to sanitize.

    Returns:
        Cleaned text string.
    """
    if not text:
        return ""

    cleaned = re.sub(r"\s+", " ", text)
    return cleaned.strip()
