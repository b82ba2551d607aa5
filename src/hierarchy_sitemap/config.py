"""Configuration and constants for the sitemap builder."""

import os
from typing import List

from .types import AppConfig

DEFAULT_BASE_URL = "http://localhost:8080/"
DEFAULT_SITEMAP_IDENT = "default"
DEFAULT_LOCALES = ["en"]

# File paths
DEFAULT_DATABASE_PATH = "data/records.db"
DEFAULT_DEFINITION_PATH = "config/sitemap.yaml"

# HTTP configuration
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

# Presentation contexts kept per build
DEFAULT_CACHE_SIZE = 10000


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def get_config_from_env() -> AppConfig:
    """Create configuration from environment variables with defaults."""
    locales = _split_list(os.getenv("SITEMAP_LOCALES", ",".join(DEFAULT_LOCALES))) or DEFAULT_LOCALES

    definition_path = os.getenv("SITEMAP_DEFINITION_PATH", DEFAULT_DEFINITION_PATH)

    return AppConfig(
        base_url=os.getenv("SITEMAP_BASE_URL", DEFAULT_BASE_URL),
        definition_path=definition_path or None,
        database_path=os.getenv("SITEMAP_DATABASE_PATH", DEFAULT_DATABASE_PATH),
        hierarchical_types=_split_list(os.getenv("SITEMAP_HIERARCHICAL_TYPES", "")),
        locales=locales,
        default_locale=os.getenv("SITEMAP_DEFAULT_LOCALE", locales[0]),
        sitemap_ident=os.getenv("SITEMAP_IDENT", DEFAULT_SITEMAP_IDENT),
        host=os.getenv("SITEMAP_HOST", DEFAULT_HOST),
        port=int(os.getenv("SITEMAP_PORT", DEFAULT_PORT)),
        cache_size=int(os.getenv("SITEMAP_CACHE_SIZE", DEFAULT_CACHE_SIZE)),
    )


def validate_config(config: AppConfig) -> None:
    """Validate configuration parameters."""
    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(f"Invalid base URL format: {config.base_url}")

    if not config.locales:
        raise ValueError("At least one locale is required")

    if config.default_locale not in config.locales:
        raise ValueError(f"Default locale {config.default_locale} is not one of {', '.join(config.locales)}")

    if not 0 < config.port < 65536:
        raise ValueError(f"Invalid port: {config.port}")

    if config.cache_size < 1:
        raise ValueError(f"Cache size must be at least 1, got {config.cache_size}")
