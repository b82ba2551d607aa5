"""Presentation layer: turns records into renderable contexts."""

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Optional

from .cache import MemoryCache
from .l10n import localize
from .shapes import (
    GETTER_PATTERN,
    Literal,
    Nested,
    PropertyRef,
    Shape,
    Template,
    Transform,
    compile_shape,
)
from .transformers import TransformerFactory, transformer_name

logger = logging.getLogger(__name__)


def object_get(record: Any, name: str, locale: Optional[str] = None) -> Any:
    """
    Fetch a named property from any kind of record.

    Tried in order: a ``get_property(name)`` accessor, key access for
    mappings, a zero-argument method, a public attribute, then index access.
    Translated values are resolved to ``locale``. Returns None when nothing
    applies.
    """
    if record is None or not name:
        return None

    accessor = getattr(record, "get_property", None)
    if callable(accessor):
        return localize(accessor(name), locale)

    if isinstance(record, Mapping):
        return localize(record.get(name), locale)

    if not name.startswith("_"):
        attribute = getattr(record, name, None)
        if callable(attribute):
            if _takes_no_arguments(attribute):
                return localize(attribute(), locale)
        elif attribute is not None:
            return localize(attribute, locale)

    if hasattr(record, "__getitem__") and not isinstance(record, (str, bytes)):
        try:
            return localize(record[name], locale)
        except (KeyError, IndexError, TypeError):
            return None

    return None


def _takes_no_arguments(func) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False

    return all(
        param.default is not param.empty
        or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
        for param in signature.parameters.values()
    )


def stringify(value: Any) -> str:
    """Text form of a property value as it appears in rendered templates."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    return str(value)


def record_type_of(record: Any) -> str:
    """Type name of a record, used to pick its default transformer."""
    obj_type = object_get(record, "obj_type")
    if obj_type:
        return str(obj_type)
    return type(record).__name__.lower()


class Presenter:
    """Transforms records into presentation contexts, memoized per locale."""

    def __init__(self, transformer_factory: Optional[TransformerFactory] = None, cache: Optional[MemoryCache] = None):
        self.transformer_factory = transformer_factory or TransformerFactory()
        self.cache = cache if cache is not None else MemoryCache()

    def transform(self, record: Any, transformer: Any = None, locale: Optional[str] = None) -> Any:
        """
        Present a record through a transformer.

        Args:
            record: Domain record (object or mapping)
            transformer: Transformer name, callable, or None to infer from the record type
            locale: Locale the context is rendered in

        Returns:
            The presentation context
        """
        record_type = record_type_of(record)

        if transformer is None or isinstance(transformer, str):
            transformer = self.transformer_factory.create(transformer or record_type)

        key = "{}_{}_{}_{}".format(
            transformer_name(transformer),
            record_type,
            object_get(record, "id"),
            locale,
        )

        return self.cache.get(key, lambda: self.transmogrify(record, transformer(record), locale))

    def transmogrify(self, record: Any, shape: Any, locale: Optional[str] = None) -> Any:
        """Interpret a shape against a record."""
        return self._resolve(record, compile_shape(shape), locale)

    def _resolve(self, record: Any, shape: Shape, locale: Optional[str]) -> Any:
        if isinstance(shape, Transform):
            if shape.with_locale:
                return shape.func(record, locale)
            return shape.func(record)

        if isinstance(shape, Nested):
            return {key: self._resolve(record, value, locale) for key, value in shape.entries}

        if isinstance(shape, PropertyRef):
            return object_get(record, shape.name, locale)

        if isinstance(shape, Template):
            return GETTER_PATTERN.sub(
                lambda match: stringify(object_get(record, match.group(1), locale)),
                shape.text,
            )

        if isinstance(shape, Literal):
            return shape.value

        # compile_shape only produces the variants above
        raise TypeError(f"Unknown shape variant {type(shape).__name__}")
