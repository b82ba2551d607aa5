"""Utility functions for the sitemap builder."""

import logging
import os
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)


def extract_host(url: str) -> Optional[str]:
    """Extract the lower-cased host from a URL, or None if it has none."""
    if not url:
        return None
    host = urlsplit(url).hostname
    return host.lower() if host else None


def is_valid_url(url: str) -> bool:
    """Check if URL is valid and uses HTTP/HTTPS scheme."""
    try:
        parsed = urlsplit(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def with_base_origin(url: str, base_url: str) -> str:
    """
    Rewrite a URL onto the base URL's scheme and host.

    Path, query and fragment are kept from ``url``.
    """
    base = urlsplit(base_url)
    parsed = urlsplit(url)

    path = parsed.path
    if not path.startswith("/"):
        path = "/" + path

    return urlunsplit((base.scheme, base.netloc, path, parsed.query, parsed.fragment))


def resolve_url(url: str, base_url: str) -> str:
    """Prefix a host-less URL with the base URL."""
    if extract_host(url):
        return url
    return base_url.rstrip("/") + "/" + url.lstrip("/")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Set up logging configuration."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        minutes = seconds / 60
        return f"{minutes:.1f}m"


def format_number(number: int) -> str:
    """Format number with thousands separators."""
    return f"{number:,}"


def create_directory_if_not_exists(directory: str) -> None:
    """Create directory if it doesn't exist."""
    os.makedirs(directory, exist_ok=True)
