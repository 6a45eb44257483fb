"""Global configuration constants and environment settings for the bookmark library."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError

# Number of concurrent in-flight mutations per bulk call.
DEFAULT_CONCURRENCY: int = 3

# Seconds before a single backend request is abandoned.
DEFAULT_TIMEOUT: float = 10.0

DEFAULT_PAGE_SIZE: int = 20

# Recent bookmarks sampled when aggregating tag usage.
TAG_SUMMARY_SAMPLE: int = 100

DEFAULT_API_URL: str = "http://localhost:3000"

# Limits enforced by the backend on list payloads.
LIST_NAME_MAX_LENGTH: int = 40
LIST_DESCRIPTION_MAX_LENGTH: int = 100


@dataclass(slots=True, frozen=True)
class Settings:
    """Connection and concurrency settings resolved from the environment."""

    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``KARAKEEP_*`` / ``BOOKMARK_BULK_*`` variables.

        Call ``dotenv.load_dotenv()`` first when a ``.env`` file should apply.
        """
        api_url = os.getenv("KARAKEEP_API_URL") or DEFAULT_API_URL
        return cls(
            api_url=api_url.rstrip("/"),
            api_key=os.getenv("KARAKEEP_API_KEY", ""),
            concurrency=_int_from_env("BOOKMARK_BULK_CONCURRENCY", DEFAULT_CONCURRENCY),
            timeout=_float_from_env("KARAKEEP_TIMEOUT", DEFAULT_TIMEOUT),
        )


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from exc


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg) from exc
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigurationError(msg)
    return value
