"""Transformers: per record type presentation shapes."""

import logging
import types
from typing import Any, Callable, Dict, Optional, Union

from .shapes import PropertyRef, Shape, Template, compile_shape

logger = logging.getLogger(__name__)


class Transformer:
    """Base transformer with a static shape compiled once."""

    shape: Any = None

    def __init__(self):
        self.compiled: Shape = compile_shape(self.shape)

    def __call__(self, record: Any) -> Shape:
        return self.compiled


class RoutableTransformer(Transformer):
    """Default transformer for routable records."""

    shape = {
        "id": PropertyRef("id"),
        "url": Template("{{url}}"),
        "title": Template("{{title}}"),
    }


class ShapeTransformer(Transformer):
    """Transformer whose shape is declared in a definition file."""

    def __init__(self, name: str, shape: Any):
        self.name = name
        self.shape = shape
        super().__init__()


def transformer_name(transformer: Any) -> str:
    """Stable identity of a transformer, used in cache keys."""
    if isinstance(transformer, ShapeTransformer):
        return f"shape:{transformer.name}"

    if isinstance(transformer, (types.FunctionType, types.MethodType)):
        name = f"{transformer.__module__}.{transformer.__qualname__}"
        if transformer.__name__ == "<lambda>":
            name = f"{name}@{id(transformer):x}"
        return name

    cls = type(transformer)
    return f"{cls.__module__}.{cls.__qualname__}"


TransformerSpec = Union[type, Callable[[Any], Any]]


class TransformerFactory:
    """Creates transformers by name, one per record type by convention."""

    def __init__(
        self,
        transformers: Optional[Dict[str, TransformerSpec]] = None,
        default: TransformerSpec = RoutableTransformer,
    ):
        self.default = default
        self._registry: Dict[str, TransformerSpec] = dict(transformers or {})
        self._instances: Dict[str, Callable[[Any], Any]] = {}

    def register(self, name: str, transformer: TransformerSpec) -> None:
        self._registry[name] = transformer
        self._instances.pop(name, None)

    def create(self, name: str) -> Callable[[Any], Any]:
        """Return the transformer registered under name, or the default one."""
        if name in self._instances:
            return self._instances[name]

        spec = self._registry.get(name)
        if spec is None:
            logger.debug(f"No transformer registered for {name}, using {getattr(self.default, '__name__', self.default)}")
            spec = self.default

        instance = spec() if isinstance(spec, type) else spec
        self._instances[name] = instance
        return instance
