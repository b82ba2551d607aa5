"""Type definitions for the sitemap builder."""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Tuple


@dataclass
class Alternate:
    """Same content rendered in another locale."""
    url: str
    lang: str


@dataclass
class Link:
    """One sitemap location with its nested children."""
    label: str
    url: str
    lang: str
    level: int
    children: List[List["Link"]] = field(default_factory=list)
    data: Any = None
    priority: str = ""
    last_modified: str = ""
    alternates: List[Alternate] = field(default_factory=list)

    def iter_links(self) -> Iterator["Link"]:
        """Yield this link and every descendant, depth first."""
        yield self
        for group in self.children:
            for child in group:
                yield from child.iter_links()


@dataclass(frozen=True)
class NodeOptions:
    """Cascading behaviour flags, resolved once per node."""
    locale: Optional[str] = None
    l10n: bool = True
    check_active_routes: bool = True
    relative_urls: bool = True


@dataclass(frozen=True)
class ObjectNode:
    """A record type to collect and how to render it."""
    record_type: str
    label: str = "{{title}}"
    url: str = "{{url}}"
    filters: Tuple[Mapping[str, Any], ...] = ()
    orders: Tuple[Mapping[str, Any], ...] = ()
    condition: Optional[str] = None
    data: Any = None
    priority: Optional[str] = None
    last_modified: Optional[str] = None
    transformer: Optional[str] = None
    options: NodeOptions = NodeOptions()
    children: Tuple["ObjectNode", ...] = ()


@dataclass(frozen=True)
class SitemapConfig:
    """A named sitemap: top-level nodes plus sitemap-level defaults."""
    ident: str
    objects: Optional[Tuple[ObjectNode, ...]]
    options: NodeOptions = NodeOptions()


@dataclass(frozen=True)
class BuildContext:
    """Per-build values passed down the recursion."""
    ident: str
    base_url: str
    available_locales: Tuple[str, ...]
    default_locale: str


@dataclass
class AppConfig:
    """Configuration for the CLI and HTTP server."""
    base_url: str
    definition_path: Optional[str] = None
    database_path: str = "data/records.db"
    hierarchical_types: List[str] = field(default_factory=list)
    locales: List[str] = field(default_factory=lambda: ["en"])
    default_locale: str = "en"
    sitemap_ident: str = "default"
    host: str = "127.0.0.1"
    port: int = 8080
    cache_size: int = 10000


@dataclass
class SitemapStatistics:
    """Statistics about a serialized sitemap."""
    total_urls: int = 0
    total_alternates: int = 0
    has_lastmod: int = 0
    has_priority: int = 0
    hreflang_distribution: dict = field(default_factory=dict)
