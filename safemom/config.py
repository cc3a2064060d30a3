"""Configuration utilities."""

import os
from pathlib import Path
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:3000"


def get_base_url(origin: Optional[str] = None) -> str:
    """
    Resolve the base URL for same-origin API calls.

    Resolution order:
    1. ``origin`` when running inside a page that knows its own origin
    2. SAFEMOM_DEPLOYMENT_URL (host only, https is assumed)
    3. SAFEMOM_PUBLIC_BASE_URL (full URL override)
    4. http://localhost:3000

    Never fails: always returns a string.

    Example:
        >>> get_base_url("https://safemom.app/")
        'https://safemom.app'
    """
    if origin:
        return origin.rstrip("/")

    deployment_url = os.getenv("SAFEMOM_DEPLOYMENT_URL")
    if deployment_url:
        return f"https://{deployment_url.strip().rstrip('/')}"

    public_base_url = os.getenv("SAFEMOM_PUBLIC_BASE_URL")
    if public_base_url:
        return public_base_url.strip().rstrip("/")

    return DEFAULT_BASE_URL


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_request_timeout_ms() -> int:
    """Per-attempt timeout in milliseconds (SAFEMOM_TIMEOUT_MS, default 30000)."""
    return _get_int("SAFEMOM_TIMEOUT_MS", 30000)


def get_max_retries() -> int:
    """Retry budget per request (SAFEMOM_MAX_RETRIES, default 2)."""
    return max(0, _get_int("SAFEMOM_MAX_RETRIES", 2))


def get_retry_delay_ms() -> int:
    """Base backoff delay in milliseconds (SAFEMOM_RETRY_DELAY_MS, default 1000)."""
    return max(0, _get_int("SAFEMOM_RETRY_DELAY_MS", 1000))


def get_saved_searches_path() -> Path:
    """
    Location of the saved searches file.

    Returns:
        SAFEMOM_SAVED_SEARCHES_PATH, defaults to ~/.safemom/saved_searches.json
    """
    override = os.getenv("SAFEMOM_SAVED_SEARCHES_PATH")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".safemom" / "saved_searches.json"


def get_preview_bypass_token() -> Optional[str]:
    """Protection bypass token for preview deployments, if configured."""
    token = os.getenv("SAFEMOM_PREVIEW_BYPASS_TOKEN")
    return token or None


def get_log_level() -> str:
    """Log level name from LOG_LEVEL, defaults to INFO."""
    return os.getenv("LOG_LEVEL", "INFO").upper()
