"""Sitemap writer for generating XML sitemaps with hreflang alternates."""

import logging
import os
from typing import Iterable, List, Optional

from lxml import etree

from .types import Link, SitemapStatistics
from .utils import create_directory_if_not_exists, extract_host, is_valid_url, resolve_url

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = (
    "http://www.sitemaps.org/schemas/sitemap/0.9 "
    "http://www.sitemaps.org/schemas/sitemap/0.9/sitemap.xsd"
)
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


class SitemapWriter:
    """Serializes link forests into a single sitemaps.org urlset."""

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.base_host = extract_host(base_url)

    def _resolve(self, url: str) -> Optional[str]:
        """Absolute URL for a link, or None when it points off-origin."""
        resolved = resolve_url(url, self.base_url)
        host = extract_host(resolved)

        if host is not None and host != self.base_host:
            return None

        return resolved

    def iter_links(self, forest: Iterable[Iterable[Link]]) -> Iterable[Link]:
        """Flatten a forest depth first."""
        for links in forest:
            for link in links:
                yield from link.iter_links()

    def build_tree(self, forest: Iterable[Iterable[Link]]) -> etree._Element:
        """Build the urlset element tree."""
        root = etree.Element(
            f"{{{SITEMAP_NAMESPACE}}}urlset",
            nsmap={None: SITEMAP_NAMESPACE, "xhtml": XHTML_NAMESPACE, "xsi": XSI_NAMESPACE},
        )
        root.set(f"{{{XSI_NAMESPACE}}}schemaLocation", SCHEMA_LOCATION)

        for link in self.iter_links(forest):
            loc = self._resolve(link.url)
            if loc is None:
                # External links are left out, their children are not
                logger.debug(f"Skipping off-origin link {link.url}")
                continue

            url_element = etree.SubElement(root, f"{{{SITEMAP_NAMESPACE}}}url")

            # Location (required)
            loc_element = etree.SubElement(url_element, f"{{{SITEMAP_NAMESPACE}}}loc")
            loc_element.text = loc

            # Last modified (optional)
            if link.last_modified:
                lastmod_element = etree.SubElement(url_element, f"{{{SITEMAP_NAMESPACE}}}lastmod")
                lastmod_element.text = link.last_modified

            # Priority (optional)
            if link.priority:
                priority_element = etree.SubElement(url_element, f"{{{SITEMAP_NAMESPACE}}}priority")
                priority_element.text = link.priority

            for alternate in link.alternates:
                href = self._resolve(alternate.url)
                if href is None:
                    continue

                etree.SubElement(
                    url_element,
                    f"{{{XHTML_NAMESPACE}}}link",
                    rel="alternate",
                    hreflang=alternate.lang,
                    href=href,
                )

        return root

    def to_xml(self, forest: Iterable[Iterable[Link]]) -> Optional[str]:
        """
        Serialize a link forest.

        Args:
            forest: Lists of link trees, as returned by the builder

        Returns:
            The XML document, or None if it could not be assembled
        """
        try:
            root = self.build_tree(forest)
            body = etree.tostring(root, encoding="unicode", pretty_print=True)
        except (ValueError, TypeError, etree.LxmlError) as e:
            logger.error(f"Error serializing sitemap: {e}")
            return None

        return XML_DECLARATION + body

    def write(self, forest: Iterable[Iterable[Link]], filepath: str) -> Optional[str]:
        """Write the serialized sitemap to a file. Returns the path, or None on failure."""
        xml = self.to_xml(forest)
        if xml is None:
            return None

        directory = os.path.dirname(filepath)
        if directory:
            create_directory_if_not_exists(directory)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(xml)

        logger.info(f"Written sitemap to {filepath}")
        return filepath

    def validate_sitemap(self, xml: str) -> bool:
        """Validate a serialized sitemap's structure."""
        try:
            root = etree.fromstring(xml.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            logger.error(f"Invalid sitemap XML: {e}")
            return False

        if root.tag != f"{{{SITEMAP_NAMESPACE}}}urlset":
            logger.error(f"Invalid root element {root.tag}")
            return False

        for url_elem in root.findall(f"{{{SITEMAP_NAMESPACE}}}url"):
            loc_elem = url_elem.find(f"{{{SITEMAP_NAMESPACE}}}loc")
            if loc_elem is None or not loc_elem.text:
                logger.error("URL missing location")
                return False

            if not is_valid_url(loc_elem.text):
                logger.error(f"Invalid URL format: {loc_elem.text}")
                return False

            for link_elem in url_elem.findall(f"{{{XHTML_NAMESPACE}}}link"):
                if not link_elem.get("hreflang") or not is_valid_url(link_elem.get("href", "")):
                    logger.error(f"Invalid alternate link in {loc_elem.text}")
                    return False

        return True

    def get_sitemap_stats(self, xml: str) -> SitemapStatistics:
        """Get statistics about a serialized sitemap."""
        root = etree.fromstring(xml.encode("utf-8"))
        stats = SitemapStatistics()

        for url_elem in root.findall(f"{{{SITEMAP_NAMESPACE}}}url"):
            stats.total_urls += 1

            if url_elem.find(f"{{{SITEMAP_NAMESPACE}}}lastmod") is not None:
                stats.has_lastmod += 1

            if url_elem.find(f"{{{SITEMAP_NAMESPACE}}}priority") is not None:
                stats.has_priority += 1

            alternates: List[etree._Element] = url_elem.findall(f"{{{XHTML_NAMESPACE}}}link")
            stats.total_alternates += len(alternates)
            for link_elem in alternates:
                lang = link_elem.get("hreflang")
                stats.hreflang_distribution[lang] = stats.hreflang_distribution.get(lang, 0) + 1

        return stats
