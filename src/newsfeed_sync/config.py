"""Configuration loading for the news feed synchronizer."""

import json
import os
from dataclasses import dataclass
from importlib import resources

DEFAULT_CONFIG_PATH = "config/config.json"
DEFAULT_STORAGE_PATH = "./data"
DEFAULT_REFRESH_INTERVAL = 60 * 60 * 1000  # one hour, in ms


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


@dataclass
class Config:
    """Settings for one synchronizer process."""

    drive_id: str
    feeds: list[str]
    storage_path: str = DEFAULT_STORAGE_PATH
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL


def load_config(path: str | None = None) -> Config:
    """Read the JSON config file, applying environment overrides.

    The file uses the keys driveId, feeds, storagePath and refreshInterval.
    NEWSFEED_STORAGE_PATH and NEWSFEED_REFRESH_INTERVAL take precedence.
    """
    path = path or os.environ.get("NEWSFEED_CONFIG", DEFAULT_CONFIG_PATH)
    raw = _read_json(path)

    drive_id = raw.get("driveId")
    if not drive_id:
        raise ConfigError(f"{path}: driveId is required")

    feeds = raw.get("feeds")
    if not feeds or not isinstance(feeds, list):
        raise ConfigError(f"{path}: feeds must be a non-empty list of URLs")

    storage_path = os.environ.get(
        "NEWSFEED_STORAGE_PATH", raw.get("storagePath", DEFAULT_STORAGE_PATH)
    )
    interval = os.environ.get(
        "NEWSFEED_REFRESH_INTERVAL",
        raw.get("refreshInterval", DEFAULT_REFRESH_INTERVAL),
    )
    try:
        refresh_interval = int(interval)
    except (TypeError, ValueError):
        raise ConfigError(f"refreshInterval must be a number of ms, got {interval!r}")
    if refresh_interval <= 0:
        raise ConfigError("refreshInterval must be positive")

    return Config(
        drive_id=drive_id,
        feeds=[str(url) for url in feeds],
        storage_path=storage_path,
        refresh_interval=refresh_interval,
    )


def load_schema(path: str | None = None) -> dict:
    """Load the public schema descriptor for the feed.

    Falls back to the schema bundled with the package.
    """
    path = path or os.environ.get("NEWSFEED_SCHEMA")
    if path:
        schema = _read_json(path)
    else:
        text = (
            resources.files("newsfeed_sync")
            .joinpath("schemas/slashfeed.json")
            .read_text(encoding="utf-8")
        )
        schema = json.loads(text)

    if not schema.get("name"):
        raise ConfigError("Schema descriptor must have a name")
    return schema


def load_logo() -> bytes:
    """The SVG logo published into every drive."""
    return (
        resources.files("newsfeed_sync").joinpath("images/news.svg").read_bytes()
    )


def _read_json(path: str) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data
