"""Record sources: collections of domain records queried by type."""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .exceptions import ConfigError
from .l10n import Translation
from .presenter import object_get, record_type_of

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ("=", "!=", "<", "<=", ">", ">=", "IN", "NOT IN", "LIKE", "IS NULL", "IS NOT NULL")
ORDER_MODES = ("asc", "desc")

# Filter on the parent record of hierarchical types
MASTER_PROPERTY = "master"


@dataclass
class Record:
    """A generic domain record."""
    obj_type: str
    id: Any
    data: Dict[str, Any] = field(default_factory=dict)
    translations: Dict[str, Dict[str, str]] = field(default_factory=dict)
    master: Any = None
    active_routes: Union[None, bool, Dict[str, bool]] = None

    def get_property(self, name: str) -> Any:
        if name in ("obj_type", "id", "master"):
            return getattr(self, name)
        if name in self.translations:
            return Translation(self.translations[name])
        return self.data.get(name)

    def is_active_route(self, locale: str) -> bool:
        """Whether the record's route is active in a locale."""
        if self.active_routes is None:
            return True
        if isinstance(self.active_routes, bool):
            return self.active_routes
        return bool(self.active_routes.get(locale, True))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Record":
        """Create a record from its serialized form."""
        try:
            return cls(
                obj_type=values["obj_type"],
                id=values["id"],
                data=dict(values.get("data") or {}),
                translations=dict(values.get("translations") or {}),
                master=values.get("master"),
                active_routes=values.get("active"),
            )
        except KeyError as e:
            raise ConfigError(f"Record is missing {e.args[0]!r}: {dict(values)!r}") from e


@dataclass(frozen=True)
class Filter:
    property: str
    val: Any = None
    operator: str = "="


@dataclass(frozen=True)
class Order:
    property: str
    mode: str = "asc"


def _criteria_items(criteria: Any) -> List[Any]:
    if criteria is None:
        return []
    if isinstance(criteria, Mapping):
        # Either a single criterion or named criteria
        if "property" in criteria:
            return [criteria]
        return list(criteria.values())
    if isinstance(criteria, (list, tuple)):
        return list(criteria)
    raise ConfigError(f"Criteria must be a list or a mapping, got {type(criteria).__name__}")


def normalize_filter(criterion: Any) -> Filter:
    if isinstance(criterion, Filter):
        return criterion
    if not isinstance(criterion, Mapping) or not criterion.get("property"):
        raise ConfigError(f"Filter needs a property: {criterion!r}")

    operator = str(criterion.get("operator", "=")).upper()
    if operator not in FILTER_OPERATORS:
        raise ConfigError(f"Unsupported filter operator {operator!r}")

    return Filter(property=str(criterion["property"]), val=criterion.get("val"), operator=operator)


def normalize_order(criterion: Any) -> Order:
    if isinstance(criterion, Order):
        return criterion
    if not isinstance(criterion, Mapping) or not criterion.get("property"):
        raise ConfigError(f"Order needs a property: {criterion!r}")

    mode = str(criterion.get("mode", "asc")).lower()
    if mode not in ORDER_MODES:
        raise ConfigError(f"Unsupported order mode {mode!r}")

    return Order(property=str(criterion["property"]), mode=mode)


def normalize_filters(criteria: Any) -> List[Filter]:
    return [normalize_filter(item) for item in _criteria_items(criteria)]


def normalize_orders(criteria: Any) -> List[Order]:
    return [normalize_order(item) for item in _criteria_items(criteria)]


def _like_to_regex(pattern: str) -> "re.Pattern":
    parts = (re.escape(part) for part in str(pattern).split("%"))
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def matches_filter(record: Any, criterion: Filter) -> bool:
    """Evaluate a filter against a record in memory."""
    value = object_get(record, criterion.property)
    operator = criterion.operator
    expected = criterion.val

    if operator == "IS NULL":
        return value is None
    if operator == "IS NOT NULL":
        return value is not None
    if operator == "IN":
        return value in (expected or ())
    if operator == "NOT IN":
        return value not in (expected or ())
    if operator == "=":
        return value == expected
    if operator == "!=":
        return value != expected
    if operator == "LIKE":
        return value is not None and bool(_like_to_regex(expected).match(str(value)))

    if value is None or expected is None:
        return False
    try:
        if operator == "<":
            return value < expected
        if operator == "<=":
            return value <= expected
        if operator == ">":
            return value > expected
        return value >= expected
    except TypeError:
        return False


class Collection:
    """Query builder for one record type."""

    def __init__(self):
        self.model: Optional[str] = None
        self.filters: List[Filter] = []
        self.orders: List[Order] = []

    def set_model(self, record_type: str) -> "Collection":
        self.model = record_type
        return self

    def add_filters(self, filters: Any) -> "Collection":
        self.filters.extend(normalize_filters(filters))
        return self

    def add_filter(self, property: str, val: Any = None, operator: str = "=") -> "Collection":
        self.filters.append(normalize_filter({"property": property, "val": val, "operator": operator}))
        return self

    def add_orders(self, orders: Any) -> "Collection":
        self.orders.extend(normalize_orders(orders))
        return self

    async def load(self) -> List[Any]:
        raise NotImplementedError


class MemoryCollection(Collection):
    """Collection over records held in memory."""

    def __init__(self, records: List[Any]):
        super().__init__()
        self._records = records

    async def load(self) -> List[Any]:
        if self.model is None:
            raise ConfigError("Collection model must be set before loading")

        result = [
            record for record in self._records
            if record_type_of(record) == self.model
            and all(matches_filter(record, criterion) for criterion in self.filters)
        ]

        # Stable sorts applied last-to-first give multi-key ordering
        for order in reversed(self.orders):
            result.sort(
                key=lambda record: _sort_key(object_get(record, order.property)),
                reverse=order.mode == "desc",
            )

        logger.debug(f"Loaded {len(result)} {self.model} records from memory")
        return result


def _sort_key(value: Any):
    if isinstance(value, Translation):
        value = next(iter(value.values.values()), None)
    return (value is None, value if value is not None else 0)


class MemoryRecordSource:
    """Record source over an in-memory list of records."""

    def __init__(self, records: Optional[Iterable[Any]] = None, hierarchical_types: Iterable[str] = ()):
        self.records: List[Any] = list(records or [])
        self.hierarchical_types = set(hierarchical_types)

    def add(self, record: Any) -> None:
        self.records.append(record)

    def collection(self) -> MemoryCollection:
        return MemoryCollection(self.records)

    def is_hierarchical(self, record_type: str) -> bool:
        return record_type in self.hierarchical_types
