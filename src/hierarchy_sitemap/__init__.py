"""
Hierarchy Sitemap

Builds localized sitemaps from a declarative content hierarchy.

Key Features:
- Expands nested record types into link trees, one link per record and locale
- Cascades l10n, locale, active-route and URL options from parents to children
- Prunes subtrees with per-node conditions rendered against the parent record
- Presents records through memoized, per-type transformers
- Generates sitemaps.org compliant XML with hreflang alternates
- Serves /sitemap.xml with aiohttp from an SQLite record store
"""

__version__ = "1.0.0"

from .builder import SitemapBuilder
from .exceptions import ConfigError, SitemapError, UnsupportedShapeError
from .l10n import LocaleContext, Translation
from .presenter import Presenter
from .record_source import MemoryRecordSource, Record
from .record_store import RecordStore
from .sitemap_writer import SitemapWriter
from .transformers import RoutableTransformer, ShapeTransformer, Transformer, TransformerFactory
from .types import Alternate, AppConfig, Link

__all__ = [
    "SitemapBuilder",
    "SitemapWriter",
    "Presenter",
    "TransformerFactory",
    "Transformer",
    "RoutableTransformer",
    "ShapeTransformer",
    "LocaleContext",
    "Translation",
    "MemoryRecordSource",
    "RecordStore",
    "Record",
    "Link",
    "Alternate",
    "AppConfig",
    "ConfigError",
    "SitemapError",
    "UnsupportedShapeError",
]
