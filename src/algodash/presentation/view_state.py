"""Per-table sort/filter state and the derived view computed from it."""

from __future__ import annotations

import locale
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import isnan
from types import MappingProxyType
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")

Predicate = Callable[[R], bool]
FilterFactory = Callable[[Any], Predicate]

NO_DATA = "no-data"
FILTERED = "filtered"


@dataclass(frozen=True, slots=True)
class SortColumn(Generic[R]):
    """How to read one sort field off a row and which way it sorts first."""

    accessor: Callable[[R], Any]
    ascending_by_default: bool = False


@dataclass(frozen=True)
class TableSchema(Generic[R]):
    """Closed description of a sortable/filterable table.

    ``sort_fields`` is an enum; every member must have a :class:`SortColumn`
    so that a sort key can never name a field the row type lacks.
    """

    name: str
    sort_fields: type[Enum]
    sort_columns: Mapping[Enum, SortColumn[R]]
    default_sort: Enum
    filters: Mapping[str, FilterFactory] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [member.value for member in self.sort_fields
                   if member not in self.sort_columns]
        if missing:
            raise ValueError(
                f"Table {self.name!r} has sort fields without accessors: {missing}")
        if self.default_sort not in self.sort_columns:
            raise ValueError(
                f"Default sort {self.default_sort!r} is not a field of {self.name!r}")

    def resolve_sort_key(self, key: Enum | str) -> Enum | None:
        if isinstance(key, self.sort_fields):
            return key
        try:
            return self.sort_fields(key)
        except ValueError:
            return None


def _sort_value(value: Any) -> Any:
    """Comparable key for a present value; ``None`` means "missing"."""

    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return locale.strxfrm(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and isnan(value):
        return None
    if isinstance(value, datetime):
        return value.timestamp()
    return value


class ViewStateStore(Generic[R]):
    """Holds one table's snapshot plus its sort and filter settings.

    Mutations invalidate the cached derived view; :meth:`derive` rebuilds it
    on demand. Unknown sort keys and filter names are ignored.
    """

    def __init__(self, schema: TableSchema[R], rows: Iterable[R] | None = None) -> None:
        self.schema = schema
        self._rows: tuple[R, ...] = ()
        self._loaded = False
        self._sort_key: Enum = schema.default_sort
        self._sort_ascending = schema.sort_columns[schema.default_sort].ascending_by_default
        self._filter_values: dict[str, Any] = {}
        self._predicates: dict[str, Predicate] = {}
        self._derived: tuple[R, ...] | None = None
        if rows is not None:
            self.replace(rows)

    @property
    def rows(self) -> tuple[R, ...]:
        return self._rows

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def sort_key(self) -> Enum:
        return self._sort_key

    @property
    def sort_ascending(self) -> bool:
        return self._sort_ascending

    @property
    def filters(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self._filter_values))

    def replace(self, rows: Iterable[R]) -> None:
        """Install a new snapshot, keeping the current sort and filters."""

        self._rows = tuple(rows)
        self._loaded = True
        self._derived = None

    def toggle_sort(self, key: Enum | str) -> bool:
        """Flip direction on the active key, or switch to ``key`` with its default direction."""

        resolved = self.schema.resolve_sort_key(key)
        if resolved is None:
            logger.debug("Ignoring unknown sort key %r for table %s",
                         key, self.schema.name)
            return False
        if resolved == self._sort_key:
            self._sort_ascending = not self._sort_ascending
        else:
            self._sort_key = resolved
            self._sort_ascending = self.schema.sort_columns[resolved].ascending_by_default
        self._derived = None
        return True

    def set_filter(self, name: str, value: Any) -> bool:
        """Replace one named filter; ``None`` or a blank string clears it."""

        factory = self.schema.filters.get(name)
        if factory is None:
            logger.debug("Ignoring unknown filter %r for table %s",
                         name, self.schema.name)
            return False
        if value is None or (isinstance(value, str) and not value.strip()):
            self._filter_values.pop(name, None)
            self._predicates.pop(name, None)
        else:
            self._predicates[name] = factory(value)
            self._filter_values[name] = value
        self._derived = None
        return True

    def clear_filters(self) -> None:
        self._filter_values.clear()
        self._predicates.clear()
        self._derived = None

    def derive(self) -> tuple[R, ...]:
        if self._derived is None:
            self._derived = self._compute()
        return self._derived

    def _compute(self) -> tuple[R, ...]:
        predicates = tuple(self._predicates.values())
        if predicates:
            candidates = [row for row in self._rows
                          if all(predicate(row) for predicate in predicates)]
        else:
            candidates = list(self._rows)

        accessor = self.schema.sort_columns[self._sort_key].accessor
        present: list[tuple[Any, R]] = []
        missing: list[R] = []
        for row in candidates:
            key = _sort_value(accessor(row))
            if key is None:
                missing.append(row)
            else:
                present.append((key, row))
        # list.sort is stable, including with reverse=True.
        present.sort(key=lambda item: item[0],
                     reverse=not self._sort_ascending)
        return tuple(row for _, row in present) + tuple(missing)

    def empty_reason(self) -> str | None:
        """``"no-data"``, ``"filtered"`` or ``None`` when the derived view has rows."""

        if self.derive():
            return None
        if not self._rows:
            return NO_DATA
        return FILTERED

    def sort_indicator(self, key: Enum | str) -> str:
        resolved = self.schema.resolve_sort_key(key)
        if resolved is None or resolved != self._sort_key:
            return ""
        return "▲" if self._sort_ascending else "▼"


__all__ = [
    "FILTERED",
    "NO_DATA",
    "SortColumn",
    "TableSchema",
    "ViewStateStore",
]
