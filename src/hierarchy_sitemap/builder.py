"""Sitemap builder: expands an object hierarchy into localized link trees."""

import logging
import time
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from .definition import normalize_definition
from .exceptions import ConfigError
from .l10n import LocaleContext
from .presenter import Presenter, object_get
from .record_source import MASTER_PROPERTY
from .renderer import TemplateRenderer, is_truthy
from .types import Alternate, BuildContext, Link, ObjectNode, SitemapConfig
from .utils import format_duration, with_base_origin

logger = logging.getLogger(__name__)


class SitemapBuilder:
    """
    Builds sitemap link trees from a declarative object hierarchy.

    For every configured record type the builder loads the matching records,
    presents each of them in every available locale, and recurses into the
    configured children with the record's presentation context as parent.
    The locale being rendered is passed explicitly through every call.
    """

    def __init__(
        self,
        base_url: str,
        record_source: Any,
        locale_context: LocaleContext,
        presenter: Presenter,
        renderer: Optional[TemplateRenderer] = None,
    ):
        if not base_url:
            raise ConfigError("Base URL must be defined for the sitemap builder")
        if record_source is None:
            raise ConfigError("Record source must be defined for the sitemap builder")
        if locale_context is None:
            raise ConfigError("Locale context must be defined for the sitemap builder")
        if presenter is None:
            raise ConfigError("Presenter must be defined for the sitemap builder")

        self.base_url = base_url
        self.record_source = record_source
        self.locale_context = locale_context
        self.presenter = presenter
        self.renderer = renderer or TemplateRenderer()
        self._definition: Optional[Dict[str, SitemapConfig]] = None

    def set_object_hierarchy(self, hierarchy: Any) -> "SitemapBuilder":
        """Set the raw sitemap definition, normalizing it once."""
        self._definition = normalize_definition(hierarchy) if hierarchy else None
        return self

    @property
    def definition(self) -> Optional[Dict[str, SitemapConfig]]:
        return self._definition

    async def build(self, ident: str = "default") -> List[List[Link]]:
        """
        Build the link forest of a sitemap.

        Args:
            ident: Sitemap identifier in the definition

        Returns:
            One list of links per top-level object type, in declaration order
        """
        if not self._definition:
            return []

        sitemap = self._definition.get(ident)
        if sitemap is None:
            raise ConfigError(f"Sitemap {ident} not defined.")

        if sitemap.objects is None:
            raise ConfigError(f"No objects defined in {ident} sitemap.")

        context = BuildContext(
            ident=ident,
            base_url=self.base_url,
            available_locales=tuple(self.locale_context.available_locales()),
            default_locale=self.locale_context.get_current_locale(),
        )

        start_time = time.monotonic()
        forest = []
        for node in sitemap.objects:
            forest.append(await self.build_object(node, context))

        total = sum(1 for links in forest for link in links for _ in link.iter_links())
        logger.info(
            f"Built sitemap {ident}: {total} links "
            f"in {format_duration(time.monotonic() - start_time)}"
        )
        return forest

    async def build_object(
        self,
        node: ObjectNode,
        context: BuildContext,
        parent_context: Any = None,
        parent_record: Any = None,
        parent_locale: Optional[str] = None,
        level: int = 0,
    ) -> List[Link]:
        """
        Build the links of one object node.

        Args:
            node: The node to expand
            context: Values shared by the whole build
            parent_context: Presentation context of the parent record
            parent_record: The parent record itself
            parent_locale: Locale the parent is being rendered in
            level: Depth of the parent (0 for top-level nodes)

        Returns:
            Links for every record in every locale, locale-major
        """
        # A falsy condition prunes the whole subtree before any fetch.
        if parent_context is not None and node.condition:
            rendered = self.renderer.render(node.condition, parent_context, parent_locale)
            if not is_truthy(rendered):
                logger.debug(f"Condition {node.condition} is false, skipping {node.record_type}")
                return []

        records = await self._load_records(node, parent_context, parent_record, parent_locale)

        level += 1
        options = node.options
        if options.l10n:
            locales = context.available_locales
        else:
            locales = (options.locale or context.default_locale,)

        links = []
        for locale in locales:
            for record in records:
                if not self._is_active(node, record, locale):
                    continue

                presented = self.presenter.transform(record, node.transformer, locale)

                children = []
                for child in node.children:
                    children.append(await self.build_object(
                        child,
                        context,
                        parent_context=presented,
                        parent_record=record,
                        parent_locale=locale,
                        level=level,
                    ))

                links.append(Link(
                    label=self.renderer.render(node.label, presented, locale).strip(),
                    url=self._render_url(node, presented, locale, context),
                    lang=locale,
                    level=level,
                    children=children,
                    data=self._render_data(node.data, presented, locale),
                    priority=self._render_optional(node.priority, presented, locale),
                    last_modified=self._render_optional(node.last_modified, presented, locale),
                    alternates=self._alternates(node, record, locale, locales, context),
                ))

        logger.debug(f"Built {len(links)} {node.record_type} links at level {level}")
        return links

    async def _load_records(
        self,
        node: ObjectNode,
        parent_context: Any,
        parent_record: Any,
        parent_locale: Optional[str],
    ) -> List[Any]:
        collection = self.record_source.collection().set_model(node.record_type)

        if node.filters:
            filters = node.filters
            if parent_context is not None:
                filters = self._render_data(filters, parent_context, parent_locale, keep_types=True)
            collection.add_filters(filters)

        if node.orders:
            orders = node.orders
            if parent_context is not None:
                orders = self._render_data(orders, parent_context, parent_locale, keep_types=True)
            collection.add_orders(orders)

        is_hierarchical = getattr(self.record_source, "is_hierarchical", None)
        if is_hierarchical is not None and is_hierarchical(node.record_type):
            if parent_record is not None:
                collection.add_filter(MASTER_PROPERTY, object_get(parent_record, "id"))
            else:
                collection.add_filter(MASTER_PROPERTY, operator="IS NULL")

        return list(await collection.load())

    def _is_active(self, node: ObjectNode, record: Any, locale: str) -> bool:
        if not node.options.check_active_routes:
            return True

        is_active_route = getattr(record, "is_active_route", None)
        if not callable(is_active_route):
            return True

        return bool(is_active_route(locale))

    def _alternates(
        self,
        node: ObjectNode,
        record: Any,
        locale: str,
        locales: Any,
        context: BuildContext,
    ) -> List[Alternate]:
        alternates = []
        for other in locales:
            if other == locale:
                continue
            if not self._is_active(node, record, other):
                continue

            presented = self.presenter.transform(record, node.transformer, other)
            alternates.append(Alternate(
                url=self._render_url(node, presented, other, context),
                lang=other,
            ))
        return alternates

    def _render_url(self, node: ObjectNode, presented: Any, locale: str, context: BuildContext) -> str:
        url = self.renderer.render(node.url, presented, locale).strip()
        if not node.options.relative_urls:
            url = with_base_origin(url, context.base_url)
        return url

    def _render_optional(self, template: Optional[str], presented: Any, locale: str) -> str:
        if not template:
            return ""
        return self.renderer.render(template, presented, locale).strip()

    def _render_data(self, data: Any, presented: Any, locale: Optional[str], keep_types: bool = False) -> Any:
        """Render every string leaf of a nested structure."""
        if isinstance(data, str):
            if keep_types:
                return self.renderer.render_value(data, presented, locale)
            return self.renderer.render(data, presented, locale)

        if isinstance(data, Mapping):
            return {key: self._render_data(value, presented, locale, keep_types) for key, value in data.items()}

        if isinstance(data, (list, tuple)):
            return [self._render_data(value, presented, locale, keep_types) for value in data]

        return data
