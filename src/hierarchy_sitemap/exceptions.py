"""Exceptions raised while building sitemaps."""


class SitemapError(Exception):
    """Base class for sitemap builder errors."""


class ConfigError(SitemapError):
    """Invalid or missing sitemap configuration or dependency."""


class UnsupportedShapeError(SitemapError):
    """A transformer shape that cannot be interpreted."""

    def __init__(self, value):
        self.value = value
        super().__init__(
            "Transformer shape must be callable, a mapping, a sequence, a string, "
            f"a number, a boolean or None. {type(value).__name__!r} given."
        )
