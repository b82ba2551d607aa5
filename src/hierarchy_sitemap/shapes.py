"""Transformer shapes.

A transformer describes how a record becomes a presentation context. The raw
description is plain data (mappings, lists, strings, scalars and callables);
``compile_shape`` turns it once into the tagged variants below so that
presenting a record never has to inspect raw types again.

Raw shape rules:

- callable: ``Transform``, called with ``record``, plus the locale when it
  accepts a second positional argument
- mapping or list/tuple: ``Nested``. String keys recurse into their value.
  An entry with a non-string key (every list item) whose value is a string is
  a property reference stored under that property's name; any other value
  with a non-string key is kept as a literal under the next integer key.
- string: ``Template``, where every ``{{name}}`` is replaced by the record's
  ``name`` property
- int, float, bool, None: ``Literal``
"""

import inspect
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Union

from .exceptions import UnsupportedShapeError

GETTER_PATTERN = re.compile(r"{{\s*(\w*?)\s*}}")


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Template:
    text: str


@dataclass(frozen=True)
class PropertyRef:
    name: str


@dataclass(frozen=True)
class Transform:
    func: Callable[..., Any]
    with_locale: bool = False


@dataclass(frozen=True)
class Nested:
    entries: Tuple[Tuple[Union[str, int], "Shape"], ...]


Shape = Union[Literal, Template, PropertyRef, Transform, Nested]

SHAPE_TYPES = (Literal, Template, PropertyRef, Transform, Nested)


def compile_shape(value: Any) -> Shape:
    """Compile a raw transformer shape into tagged variants."""
    if isinstance(value, SHAPE_TYPES):
        return value

    if isinstance(value, str):
        return Template(value)

    if callable(value):
        return Transform(value, _accepts_locale(value))

    if isinstance(value, Mapping):
        return _compile_entries(value.items())

    if isinstance(value, (list, tuple)):
        return _compile_entries(enumerate(value))

    if isinstance(value, bool):
        return Literal(bool(value))

    if value is None or isinstance(value, (int, float)):
        return Literal(value)

    raise UnsupportedShapeError(value)


def _accepts_locale(func) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False

    positional = 0
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


def _compile_entries(items) -> Nested:
    entries = []
    next_index = 0

    for key, item in items:
        if isinstance(key, str):
            entries.append((key, compile_shape(item)))
        elif isinstance(item, str):
            entries.append((item, PropertyRef(item)))
        elif isinstance(item, SHAPE_TYPES):
            entries.append((next_index, item))
            next_index += 1
        else:
            entries.append((next_index, Literal(item)))
            next_index += 1

    return Nested(tuple(entries))
