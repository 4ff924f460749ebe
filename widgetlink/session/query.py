"""
Resource queries.

A Query is the read request built from a ResourceQueryConnection. Its
steps are always applied in the same order:

    filter -> sort -> load -> limit

Load must see the final filtered/sorted rows, and limit must come last so
rows are not truncated before sorting.

QueryResult is the Result<rows, QueryError> returned by executors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from widgetlink.connections.errors import QueryError

if TYPE_CHECKING:
    from widgetlink.connections.specs import ResourceQueryConnection

logger = logging.getLogger(__name__)

QUERY_STEPS = ("filter", "sort", "load", "limit")


def normalize_sort(sort: Any) -> tuple[tuple[str, bool], ...]:
    """
    Normalise a sort declaration into (field, descending) pairs.

    Accepts "name", "-name", ["-age", "name"] or {"age": "desc"}.

    Raises:
        QueryError: If the declaration cannot be understood
    """
    if sort is None:
        return ()
    if isinstance(sort, str):
        sort = [sort]
    if isinstance(sort, Mapping):
        pairs = []
        for name, direction in sort.items():
            if str(direction).lower() not in ("asc", "desc"):
                raise QueryError(f"Invalid sort direction for '{name}': {direction!r}")
            pairs.append((name, str(direction).lower() == "desc"))
        return tuple(pairs)
    if isinstance(sort, Sequence):
        pairs = []
        for entry in sort:
            if not isinstance(entry, str) or not entry.lstrip("-"):
                raise QueryError(f"Invalid sort field: {entry!r}")
            pairs.append((entry.lstrip("-"), entry.startswith("-")))
        return tuple(pairs)
    raise QueryError(f"Invalid sort declaration: {sort!r}")


@dataclass(frozen=True, slots=True)
class Query:
    """
    Read query against one resource collection.

    Only the steps that were given are recorded in ``steps``, in the fixed
    filter/sort/load/limit order.
    """

    resource_id: str
    filter: Mapping[str, Any] | Callable[[Any], bool] | None = None
    sort: tuple[tuple[str, bool], ...] = ()
    load: tuple[str, ...] = ()
    limit: int | None = None

    @property
    def steps(self) -> tuple[str, ...]:
        present = {
            "filter": self.filter is not None,
            "sort": bool(self.sort),
            "load": bool(self.load),
            "limit": self.limit is not None,
        }
        return tuple(step for step in QUERY_STEPS if present[step])

    @classmethod
    def for_resource(cls, resource_id: str) -> Query:
        return cls(resource_id=resource_id)

    def filtered(self, filter: Mapping[str, Any] | Callable[[Any], bool]) -> Query:
        return _replace(self, filter=filter)

    def sorted(self, sort: Any) -> Query:
        return _replace(self, sort=normalize_sort(sort))

    def loading(self, load: Sequence[str]) -> Query:
        return _replace(self, load=tuple(load))

    def limited(self, limit: int) -> Query:
        return _replace(self, limit=limit)

    @classmethod
    def from_connection(cls, spec: ResourceQueryConnection) -> Query:
        """Build the query for a ResourceQueryConnection, step by step."""
        query = cls.for_resource(spec.resource_id)
        if spec.filter is not None:
            query = query.filtered(spec.filter)
        if spec.sort is not None:
            query = query.sorted(spec.sort)
        if spec.load is not None:
            query = query.loading(spec.load)
        if spec.limit is not None:
            query = query.limited(spec.limit)
        return query

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "filter": self.filter if isinstance(self.filter, Mapping) else repr(self.filter),
            "sort": [f"-{name}" if desc else name for name, desc in self.sort],
            "load": list(self.load),
            "limit": self.limit,
        }


def _replace(query: Query, **changes: Any) -> Query:
    values = {
        "resource_id": query.resource_id,
        "filter": query.filter,
        "sort": query.sort,
        "load": query.load,
        "limit": query.limit,
    }
    values.update(changes)
    return Query(**values)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Outcome of executing a query."""

    ok: bool
    rows: list[Any] = field(default_factory=list)
    error: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, rows: list[Any]) -> QueryResult:
        return cls(ok=True, rows=rows)

    @classmethod
    def failure(cls, error: str, **details: Any) -> QueryResult:
        return cls(ok=False, error=error, details=details)


# =============================================================================
# In-memory executor
# =============================================================================


Loader = Callable[[Any], Any]


def _get_field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        if name not in row:
            raise QueryError(f"Unknown field '{name}'")
        return row[name]
    if not hasattr(row, name):
        raise QueryError(f"Unknown field '{name}'")
    return getattr(row, name)


def _with_field(row: Any, name: str, value: Any) -> Any:
    if isinstance(row, Mapping):
        return {**row, name: value}
    if hasattr(row, "model_copy"):
        return row.model_copy(update={name: value})
    raise QueryError(f"Cannot load '{name}' onto {type(row).__name__}")


class InMemoryQueryExecutor:
    """
    QueryExecutor over in-memory collections.

    Rows are dicts or pydantic models. Related data for ``load`` comes from
    loader callables registered per resource and field.

    Example:
        executor = InMemoryQueryExecutor({"users": [{"id": 1, "active": True}]})
        executor.register_loader("users", "orders", lambda user: orders_for(user["id"]))
        result = executor.execute("users", Query.for_resource("users").limited(5))
    """

    def __init__(self, collections: dict[str, list[Any]] | None = None):
        self._collections: dict[str, list[Any]] = dict(collections or {})
        self._loaders: dict[str, dict[str, Loader]] = {}
        self.executed: list[Query] = []

    def register_collection(self, resource_id: str, rows: list[Any]) -> None:
        self._collections[resource_id] = list(rows)

    def register_loader(self, resource_id: str, field_name: str, loader: Loader) -> None:
        self._loaders.setdefault(resource_id, {})[field_name] = loader

    def execute(self, resource_id: str, query: Query) -> QueryResult:
        self.executed.append(query)

        if resource_id not in self._collections:
            return QueryResult.failure(
                f"Unknown resource '{resource_id}'", resource_id=resource_id
            )

        try:
            rows = self._run(resource_id, query)
        except QueryError as e:
            logger.info(f"[query] {resource_id} failed: {e}")
            return QueryResult.failure(str(e), resource_id=resource_id, query=query.to_dict())

        logger.debug(f"[query] {resource_id} steps={query.steps} rows={len(rows)}")
        return QueryResult.success(rows)

    def _run(self, resource_id: str, query: Query) -> list[Any]:
        rows = list(self._collections[resource_id])

        if query.filter is not None:
            rows = [row for row in rows if self._matches(row, query.filter)]

        # Stable sorts applied from the least significant key
        for name, descending in reversed(query.sort):
            rows.sort(key=lambda row, n=name: _get_field(row, n), reverse=descending)

        for name in query.load:
            loader = self._loaders.get(resource_id, {}).get(name)
            if loader is None:
                raise QueryError(f"No loader for '{name}' on '{resource_id}'")
            rows = [_with_field(row, name, loader(row)) for row in rows]

        if query.limit is not None:
            rows = rows[: query.limit]

        return rows

    def _matches(self, row: Any, filter: Mapping[str, Any] | Callable[[Any], bool]) -> bool:
        if callable(filter) and not isinstance(filter, Mapping):
            return bool(filter(row))
        return all(_get_field(row, name) == value for name, value in filter.items())
