"""Sitemap definitions: loading and normalizing the object hierarchy.

A definition maps sitemap identifiers to their configuration::

    default:
      l10n: true
      objects:
        page:
          label: "{{title}}"
          url: "{{url}}"
          children:
            article:
              condition: "{{has_articles}}"
              filters: [{property: page_id, val: "{{id}}"}]

Cascading flags (``locale``, ``l10n``, ``check_active_routes``,
``relative_urls``) are resolved here once: a node's explicit value wins, then
its nearest ancestor's, then the sitemap's, then the built-in default.
"""

import copy
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigError
from .record_source import normalize_filters, normalize_orders
from .types import NodeOptions, ObjectNode, SitemapConfig

logger = logging.getLogger(__name__)

FLAG_KEYS = ("l10n", "check_active_routes", "relative_urls")

NODE_KEYS = {
    "label", "url", "filters", "orders", "children", "condition", "data",
    "priority", "last_modified", "transformer", "locale", *FLAG_KEYS,
}

DEFAULT_LABEL = "{{title}}"
DEFAULT_URL = "{{url}}"


def _resolve_options(raw: Mapping, inherited: NodeOptions, where: str) -> NodeOptions:
    values = {}
    for key in FLAG_KEYS:
        value = raw.get(key)
        if value is None:
            values[key] = getattr(inherited, key)
        elif isinstance(value, bool):
            values[key] = value
        else:
            raise ConfigError(f"{where}: {key} must be a boolean, got {value!r}")

    locale = raw.get("locale")
    if locale is not None and not isinstance(locale, str):
        raise ConfigError(f"{where}: locale must be a string, got {locale!r}")

    return NodeOptions(locale=locale or inherited.locale, **values)


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value is False or value == "":
        return None
    return str(value)


def _optional_attribute(value: Any) -> Optional[str]:
    # Zero and "0" leave priority and lastmod unset
    if isinstance(value, str):
        return None if value.strip() in ("", "0") else value
    if not value:
        return None
    return str(value)


def _criteria(raw: Any, normalize, where: str):
    try:
        return tuple(asdict(item) for item in normalize(raw))
    except ConfigError as e:
        raise ConfigError(f"{where}: {e}") from e


def normalize_node(record_type: str, raw: Any, inherited: NodeOptions, path: str = "") -> ObjectNode:
    """Normalize one node and its children."""
    where = f"{path}/{record_type}" if path else record_type

    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: node options must be a mapping, got {type(raw).__name__}")

    unknown = set(raw) - NODE_KEYS
    if unknown:
        logger.warning(f"{where}: ignoring unknown options {', '.join(sorted(unknown))}")

    options = _resolve_options(raw, inherited, where)

    children_raw = raw.get("children") or {}
    if not isinstance(children_raw, Mapping):
        raise ConfigError(f"{where}: children must be a mapping of record type to options")

    children = tuple(
        normalize_node(child_type, child_raw, options, where)
        for child_type, child_raw in children_raw.items()
    )

    transformer = raw.get("transformer")
    if transformer is not None and not isinstance(transformer, str):
        raise ConfigError(f"{where}: transformer must be a name")

    return ObjectNode(
        record_type=record_type,
        label=str(raw.get("label") or DEFAULT_LABEL),
        url=str(raw.get("url") or DEFAULT_URL),
        filters=_criteria(raw.get("filters"), normalize_filters, where),
        orders=_criteria(raw.get("orders"), normalize_orders, where),
        condition=_optional_text(raw.get("condition")),
        data=copy.deepcopy(raw.get("data")) or {},
        priority=_optional_attribute(raw.get("priority")),
        last_modified=_optional_attribute(raw.get("last_modified")),
        transformer=transformer,
        options=options,
        children=children,
    )


def normalize_sitemap(ident: str, raw: Any) -> SitemapConfig:
    """Normalize one sitemap. A sitemap without objects keeps ``objects=None``."""
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Sitemap {ident} must be a mapping, got {type(raw).__name__}")

    options = _resolve_options(raw, NodeOptions(), ident)

    objects_raw = raw.get("objects")
    if objects_raw is None:
        return SitemapConfig(ident=ident, objects=None, options=options)

    if not isinstance(objects_raw, Mapping):
        raise ConfigError(f"Sitemap {ident}: objects must be a mapping of record type to options")

    objects = tuple(
        normalize_node(record_type, node_raw, options, ident)
        for record_type, node_raw in objects_raw.items()
    )
    return SitemapConfig(ident=ident, objects=objects, options=options)


def normalize_definition(raw: Any) -> Dict[str, SitemapConfig]:
    """Normalize a whole definition: sitemap identifier to configuration."""
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Sitemap definition must be a mapping, got {type(raw).__name__}")

    return {str(ident): normalize_sitemap(str(ident), sitemap) for ident, sitemap in raw.items()}


def _read_definition_file(path: str) -> Any:
    if not os.path.exists(path):
        raise ConfigError(f"Sitemap definition not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            if path.endswith(".json"):
                return json.load(f)
            return yaml.safe_load(f)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not parse sitemap definition {path}: {e}") from e


def _is_wrapped(raw: Any) -> bool:
    return isinstance(raw, Mapping) and "sitemap" in raw and set(raw) <= {"sitemap", "transformers"}


def load_definition(path: str) -> Dict[str, Any]:
    """Load a raw sitemap definition from a YAML or JSON file."""
    raw = _read_definition_file(path)

    # Definitions may be nested under a top-level "sitemap" key
    if _is_wrapped(raw):
        raw = raw["sitemap"]

    if not isinstance(raw, Mapping):
        raise ConfigError(f"Sitemap definition {path} must contain a mapping")

    logger.info(f"Loaded sitemap definition from {path}: {', '.join(map(str, raw))}")
    return dict(raw)


def load_transformers(path: str) -> Dict[str, Any]:
    """
    Load the transformer shapes declared next to a wrapped definition.

    Shapes are keyed by transformer name, which is the record type unless a
    node names its transformer explicitly::

        sitemap:
          default: ...
        transformers:
          page: [id, title, url, has_articles]
    """
    raw = _read_definition_file(path)
    if not _is_wrapped(raw):
        return {}

    shapes = raw.get("transformers") or {}
    if not isinstance(shapes, Mapping):
        raise ConfigError(f"Transformers in {path} must be a mapping of name to shape")

    return {str(name): shape for name, shape in shapes.items()}
