"""In-memory record collections.

A :class:`RecordCollection` is an ordered, mutable sequence of records, each a
mapping from field name to value. Filtering, sorting and projection return new
collections and leave the receiver untouched; ``push`` is the only in-place
mutation. Nothing here performs I/O.

Example:
    ```python
    from jsonstore.collection import RecordCollection

    people = RecordCollection([
        {"id": 1, "name": "Alice", "age": 30},
        {"id": 2, "name": "Bob", "age": 25},
    ])

    adults = people.where("age", ">=", 18).sort_by("age", descending=True)
    names = adults.pluck("name")  # ["Alice", "Bob"]
    ```
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any, overload

from .clauses import InClause, Operator, WhereClause, loosely_equal
from .exceptions import AggregationTypeError, InvalidPrimaryKeyError

Record = Mapping[str, Any]


def field_value(record: Any, column: str) -> Any:
    """Read ``column`` from a record; missing fields read as None."""
    if isinstance(record, Mapping):
        return record.get(column)
    return getattr(record, column, None)


def has_field(record: Any, column: str) -> bool:
    if isinstance(record, Mapping):
        return column in record
    return hasattr(record, column)


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)


def sort_key(value: Any) -> tuple:
    """Total ordering over JSON values of mixed types.

    Missing/None sorts first, then booleans and numbers, then strings, then
    nested structures by their canonical JSON text.
    """
    if value is None:
        return (0, 0)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, canonical_json(value))


def distinct_key(value: Any) -> tuple:
    """Hashable identity of a value, consistent with natural-type equality."""
    if value is None:
        return ("null", None)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("num", value)
    if isinstance(value, str):
        return ("str", value)
    return ("json", canonical_json(value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RecordCollection(Sequence):
    """Ordered collection of records with query helpers."""

    def __init__(self, records: Iterable[Any] | None = None):
        self._records: list[Any] = list(records) if records is not None else []

    # ----- Sequence protocol -----

    @overload
    def __getitem__(self, index: int) -> Any: ...

    @overload
    def __getitem__(self, index: slice) -> RecordCollection: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return RecordCollection(self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RecordCollection):
            return self._records == other._records
        if isinstance(other, list):
            return self._records == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"RecordCollection({self._records!r})"

    # ----- Mutation -----

    def push(self, record: Any) -> RecordCollection:
        """Append a record in place."""
        self._records.append(record)
        return self

    def reject_where(self, column: str, value: Any) -> RecordCollection:
        """Records whose ``column`` does not equal ``value``."""
        return RecordCollection(
            r for r in self._records if not loosely_equal(field_value(r, column), value)
        )

    # ----- Filtering -----

    def where(self, column: str, operator: str | Operator, value: Any) -> RecordCollection:
        """Records satisfying ``record[column] operator value``."""
        return self.where_clause(WhereClause(column, Operator.parse(operator), value))

    def where_clause(self, clause: WhereClause) -> RecordCollection:
        return RecordCollection(
            r for r in self._records if clause.matches(field_value(r, clause.column))
        )

    def where_in(self, column: str, values: Iterable[Any]) -> RecordCollection:
        """Records whose ``column`` value is one of ``values``."""
        clause = InClause(column, list(values))
        return RecordCollection(r for r in self._records if clause.contains(field_value(r, column)))

    def where_not_in(self, column: str, values: Iterable[Any]) -> RecordCollection:
        """Records whose ``column`` value is none of ``values``."""
        clause = InClause(column, list(values))
        return RecordCollection(
            r for r in self._records if not clause.contains(field_value(r, column))
        )

    def filter(self, predicate: Callable[[Any], bool]) -> RecordCollection:
        return RecordCollection(r for r in self._records if predicate(r))

    # ----- Ordering and shaping -----

    def sort_by(self, column: str, descending: bool = False) -> RecordCollection:
        """Stable sort on one column.

        Equal keys keep their relative order in both directions.
        """
        return RecordCollection(
            sorted(
                self._records,
                key=lambda r: sort_key(field_value(r, column)),
                reverse=descending,
            )
        )

    def only(self, columns: Sequence[str] | None) -> RecordCollection:
        """Project every record down to ``columns`` (None keeps everything)."""
        if columns is None:
            return RecordCollection(self._records)
        return RecordCollection(
            {c: field_value(r, c) for c in columns if has_field(r, c)} for r in self._records
        )

    def map(self, callback: Callable[[Any], Any]) -> RecordCollection:
        return RecordCollection(callback(r) for r in self._records)

    def values(self) -> RecordCollection:
        """Re-indexed copy of the collection."""
        return RecordCollection(self._records)

    def unique(self, column: str) -> RecordCollection:
        """First-seen record for every distinct value of ``column``."""
        seen: set[tuple] = set()
        kept = []
        for record in self._records:
            key = distinct_key(field_value(record, column))
            if key in seen:
                continue
            seen.add(key)
            kept.append(record)
        return RecordCollection(kept)

    def for_page(self, page: int, per_page: int) -> RecordCollection:
        """The slice ``[(page-1)*per_page, page*per_page)``."""
        offset = max(0, (page - 1) * per_page)
        return RecordCollection(self._records[offset : offset + per_page])

    def chunk(self, size: int) -> list[RecordCollection]:
        """Split into consecutive collections of at most ``size`` records."""
        if size <= 0:
            return []
        return [
            RecordCollection(self._records[i : i + size])
            for i in range(0, len(self._records), size)
        ]

    # ----- Reductions -----

    def count(self) -> int:  # type: ignore[override]
        return len(self._records)

    def first(self, default: Any = None) -> Any:
        """First record, or ``default`` when empty."""
        return self._records[0] if self._records else default

    def last(self, default: Any = None) -> Any:
        return self._records[-1] if self._records else default

    def is_empty(self) -> bool:
        return not self._records

    def pluck(self, column: str, key: str | None = None) -> list[Any] | dict[Any, Any]:
        """Values of ``column``, optionally keyed by the ``key`` column."""
        if key is None:
            return [field_value(r, column) for r in self._records]
        plucked: dict[Any, Any] = {}
        for record in self._records:
            k = field_value(record, key)
            try:
                hash(k)
            except TypeError:
                k = canonical_json(k)
            plucked[k] = field_value(record, column)
        return plucked

    def min(self, column: str) -> Any:
        numbers = self._numeric_values(column, "min")
        return min(numbers) if numbers is not None else None

    def max(self, column: str) -> Any:
        numbers = self._numeric_values(column, "max")
        return max(numbers) if numbers is not None else None

    def avg(self, column: str) -> float | None:
        numbers = self._numeric_values(column, "avg")
        return sum(numbers) / len(numbers) if numbers is not None else None

    def max_key(self, column: str) -> int | None:
        """Largest integer value of ``column``, for auto-increment keys."""
        largest: int | None = None
        for record in self._records:
            value = field_value(record, column)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidPrimaryKeyError(column, value)
            if largest is None or value > largest:
                largest = value
        return largest

    def _numeric_values(self, column: str, aggregate: str) -> list[Any] | None:
        if not self._records:
            return None
        present = [field_value(r, column) for r in self._records if has_field(r, column)]
        if not present:
            raise AggregationTypeError(column, aggregate, "column is not present")
        numbers = [v for v in present if _is_number(v)]
        if not numbers:
            raise AggregationTypeError(column, aggregate, "column holds no numeric values")
        return numbers

    # ----- Conversion -----

    def to_list(self) -> list[dict[str, Any]]:
        """Plain dictionaries for every record (models use ``to_dict()``)."""
        return [r.to_dict() if hasattr(r, "to_dict") else dict(r) for r in self._records]

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_list(), **kwargs)
