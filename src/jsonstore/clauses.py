"""Deferred query clauses.

A :class:`ClauseSet` accumulates the where/whereIn/whereNotIn/orderBy/select
instructions of one query chain without touching any data. The clauses are
applied later, in a fixed order, by the query engine.

Example:
    ```python
    from jsonstore.clauses import ClauseSet

    clauses = (
        ClauseSet()
        .add_where("age", ">", 25)
        .add_where("status", "active")  # operator defaults to "="
        .add_where_in("role", ["admin", "editor"])
        .add_order_by("age", "desc")
        .add_select("id", "name")
    )
    ```
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import InvalidOperatorError, ValidationError


class _Missing:
    """Marker for an omitted clause value."""

    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


class Operator(Enum):
    """Comparison operators supported by where clauses."""

    EQ = "="  # Equal (natural types, no string/number coercion)
    NEQ = "!="  # Not equal
    STRICT_EQ = "==="  # Equal value and type
    STRICT_NEQ = "!=="  # Different value or type
    GT = ">"  # Greater than
    GTE = ">="  # Greater than or equal
    LT = "<"  # Less than
    LTE = "<="  # Less than or equal

    @classmethod
    def parse(cls, operator: str | Operator) -> Operator:
        """Resolve an operator symbol (or enum member) to an Operator."""
        if isinstance(operator, Operator):
            return operator
        if isinstance(operator, str):
            resolved = _ALIASES.get(operator.strip())
            if resolved is not None:
                return resolved
        raise InvalidOperatorError(operator, sorted(_ALIASES))


_ALIASES = {
    "=": Operator.EQ,
    "==": Operator.EQ,
    "!=": Operator.NEQ,
    "<>": Operator.NEQ,
    "===": Operator.STRICT_EQ,
    "!==": Operator.STRICT_NEQ,
    ">": Operator.GT,
    ">=": Operator.GTE,
    "<": Operator.LT,
    "<=": Operator.LTE,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def loosely_equal(a: Any, b: Any) -> bool:
    """Equality on natural types.

    Numbers compare with numbers (``1 == 1.0``) but never with their string
    form, and booleans only equal booleans.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if _is_number(a) or _is_number(b):
        return False
    return a == b


def _compare(a: Any, b: Any, comparator) -> bool:
    """Ordering comparison that is false for incomparable operands."""
    if a is None or b is None:
        return False
    if _is_number(a) and _is_number(b):
        return comparator(a, b)
    if isinstance(a, str) and isinstance(b, str):
        return comparator(a, b)
    if isinstance(a, bool) and isinstance(b, bool):
        return comparator(a, b)
    # Lists compare element-wise; anything else is not ordered
    if isinstance(a, list) and isinstance(b, list):
        try:
            return comparator(a, b)
        except TypeError:
            return False
    return False


@dataclass
class WhereClause:
    """A ``column operator value`` condition."""

    column: str
    operator: Operator
    value: Any = None

    def matches(self, record_value: Any) -> bool:
        """Check whether a record's column value satisfies this clause."""
        op = self.operator
        if op == Operator.EQ:
            return loosely_equal(record_value, self.value)
        elif op == Operator.NEQ:
            return not loosely_equal(record_value, self.value)
        elif op == Operator.STRICT_EQ:
            return type(record_value) is type(self.value) and record_value == self.value
        elif op == Operator.STRICT_NEQ:
            return not (type(record_value) is type(self.value) and record_value == self.value)
        elif op == Operator.GT:
            return _compare(record_value, self.value, lambda a, b: a > b)
        elif op == Operator.GTE:
            return _compare(record_value, self.value, lambda a, b: a >= b)
        elif op == Operator.LT:
            return _compare(record_value, self.value, lambda a, b: a < b)
        elif op == Operator.LTE:
            return _compare(record_value, self.value, lambda a, b: a <= b)
        raise ValueError(f"Unknown operator: {op}")

    def to_dict(self) -> dict[str, Any]:
        """Convert the clause to a dictionary."""
        return {"column": self.column, "operator": self.operator.value, "value": self.value}


@dataclass
class InClause:
    """Membership condition used by whereIn / whereNotIn."""

    column: str
    values: list[Any]

    def contains(self, record_value: Any) -> bool:
        """Check whether a record value is a member of this clause's values."""
        return any(loosely_equal(record_value, v) for v in self.values)

    def to_dict(self) -> dict[str, Any]:
        """Convert the clause to a dictionary."""
        return {"column": self.column, "values": list(self.values)}


@dataclass
class OrderClause:
    """A sort instruction."""

    column: str
    direction: str = "asc"

    @property
    def descending(self) -> bool:
        return self.direction == "desc"

    def to_dict(self) -> dict[str, str]:
        """Convert the clause to a dictionary."""
        return {"column": self.column, "direction": self.direction}


@dataclass
class ClauseSet:
    """Pending clauses for one query.

    Attributes:
        wheres: Ordered where clauses
        where_ins: Ordered whereIn clauses
        where_not_ins: Ordered whereNotIn clauses
        orders: Ordered orderBy clauses
        selects: Selected columns, in the order they were added
    """

    wheres: list[WhereClause] = field(default_factory=list)
    where_ins: list[InClause] = field(default_factory=list)
    where_not_ins: list[InClause] = field(default_factory=list)
    orders: list[OrderClause] = field(default_factory=list)
    selects: list[str] = field(default_factory=list)

    def add_where(self, column: str, operator: Any = MISSING, value: Any = MISSING) -> ClauseSet:
        """Add a where clause.

        With only two arguments the second one is the value and the
        operator defaults to equality: ``add_where("id", 2)`` is
        ``add_where("id", "=", 2)``.
        """
        if value is MISSING:
            if operator is MISSING:
                raise ValidationError(
                    f"where('{column}') requires a value", context={"column": column}
                )
            value, operator = operator, Operator.EQ
        self.wheres.append(WhereClause(column, Operator.parse(operator), value))
        return self

    def add_where_in(self, column: str, values: Iterable[Any]) -> ClauseSet:
        """Add a whereIn clause."""
        self.where_ins.append(InClause(column, _as_value_list(column, values)))
        return self

    def add_where_not_in(self, column: str, values: Iterable[Any]) -> ClauseSet:
        """Add a whereNotIn clause."""
        self.where_not_ins.append(InClause(column, _as_value_list(column, values)))
        return self

    def add_order_by(self, column: str, direction: str = "asc") -> ClauseSet:
        """Add an orderBy clause (``asc`` or ``desc``)."""
        normalized = str(direction).strip().lower()
        if normalized not in ("asc", "desc"):
            raise ValidationError(
                f"Order direction must be 'asc' or 'desc', got {direction!r}",
                context={"column": column, "direction": direction},
            )
        self.orders.append(OrderClause(column, normalized))
        return self

    def add_select(self, *columns: str) -> ClauseSet:
        """Add columns to the selection. Repeated calls accumulate."""
        for column in columns:
            if isinstance(column, (list, tuple)):
                self.selects.extend(column)
            else:
                self.selects.append(column)
        return self

    def replace_select(self, columns: Iterable[str]) -> ClauseSet:
        """Replace the selection with ``columns`` (used by ``get(columns)``)."""
        self.selects = list(columns)
        return self

    def selected_columns(self) -> list[str] | None:
        """De-duplicated selected columns, or None meaning all columns."""
        if not self.selects or "*" in self.selects:
            return None
        return list(dict.fromkeys(self.selects))

    def is_empty(self) -> bool:
        return not (self.wheres or self.where_ins or self.where_not_ins or self.orders or self.selects)

    def clear(self) -> None:
        """Discard every pending clause."""
        self.wheres.clear()
        self.where_ins.clear()
        self.where_not_ins.clear()
        self.orders.clear()
        self.selects.clear()

    def copy(self) -> ClauseSet:
        """Copy the clause lists so the copy can grow independently."""
        return ClauseSet(
            wheres=[copy.copy(c) for c in self.wheres],
            where_ins=[InClause(c.column, list(c.values)) for c in self.where_ins],
            where_not_ins=[InClause(c.column, list(c.values)) for c in self.where_not_ins],
            orders=[copy.copy(c) for c in self.orders],
            selects=list(self.selects),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the clause set to a dictionary."""
        return {
            "wheres": [c.to_dict() for c in self.wheres],
            "where_ins": [c.to_dict() for c in self.where_ins],
            "where_not_ins": [c.to_dict() for c in self.where_not_ins],
            "orders": [c.to_dict() for c in self.orders],
            "selects": list(self.selects),
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def _as_value_list(column: str, values: Iterable[Any]) -> list[Any]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ValidationError(
            f"Values for '{column}' must be a list of values, got {type(values).__name__}",
            context={"column": column},
        )
    return list(values)
