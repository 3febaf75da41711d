from __future__ import annotations

"""Typed query description shared by repositories and statistics."""

from dataclasses import dataclass, replace
from typing import Any, Literal

SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True)
class RangeFilter:
    """Bounds on one field. `gte`/`lte` are inclusive, `lt` is exclusive."""

    field: str
    gte: Any = None
    lte: Any = None
    lt: Any = None


@dataclass(frozen=True)
class Query:
    collection: str
    owner_id: str | None = None
    filters: tuple[tuple[str, Any], ...] = ()
    ids: tuple[str, ...] | None = None
    ranges: tuple[RangeFilter, ...] = ()
    order_by: str | None = None
    order: SortOrder = "desc"
    limit: int | None = None

    def where(self, **equals: Any) -> Query:
        return replace(self, filters=self.filters + tuple(equals.items()))

    def with_ids(self, ids: list[str] | tuple[str, ...]) -> Query:
        return replace(self, ids=tuple(ids))

    def between(self, field_name: str, gte: Any = None, lte: Any = None) -> Query:
        return replace(self, ranges=self.ranges + (RangeFilter(field_name, gte=gte, lte=lte),))

    def before(self, field_name: str, lt: Any) -> Query:
        return replace(self, ranges=self.ranges + (RangeFilter(field_name, lt=lt),))

    def sorted_by(self, field_name: str, order: SortOrder = "desc") -> Query:
        if order not in ("asc", "desc"):
            raise ValueError(f"Unknown sort order: {order}")
        return replace(self, order_by=field_name, order=order)

    def limited(self, limit: int) -> Query:
        return replace(self, limit=limit)


def query(collection: str, owner_id: str) -> Query:
    return Query(collection=collection, owner_id=owner_id)
