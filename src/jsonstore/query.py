"""Query execution over entity files.

:class:`QueryEngine` runs a :class:`~jsonstore.clauses.ClauseSet` against one
entity: it loads the full collection from the :class:`~jsonstore.storage.FileStore`,
applies the clauses in a fixed order (where, whereIn, whereNotIn, orderBy,
select) and hydrates the survivors through the entity's model class.

:class:`QueryBuilder` is the fluent handle handed to callers. Every chained
call returns a new builder holding its own copy of the clauses, so reusing a
partially built query never leaks clauses into another one.

Example:
    ```python
    query = store.query(User)

    admins = query.where("role", "admin").order_by("name").get()
    newest = query.order_by_desc("id").first()
    emails = query.where_in("id", [1, 2, 3]).pluck("email")
    page = query.where("active", True).paginate(per_page=20, page=2)
    ```
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .clauses import MISSING, ClauseSet
from .collection import RecordCollection, distinct_key
from .exceptions import ModelNotFoundError, ValidationError

if TYPE_CHECKING:
    from .model import Hydratable
    from .storage import FileStore

logger = logging.getLogger(__name__)

PageResolver = Callable[[str], Any]


@dataclass
class Page:
    """One page of a paginated query.

    Attributes:
        items: Records on this page
        total: Number of records matching the query (all pages)
        per_page: Page size
        page: Current page number (1-based)
        page_name: Name of the page parameter used for resolution
    """

    items: RecordCollection
    total: int
    per_page: int
    page: int
    page_name: str = "page"

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more_pages(self) -> bool:
        return self.page < self.last_page

    @property
    def on_first_page(self) -> bool:
        return self.page <= 1

    def to_dict(self) -> dict[str, Any]:
        """Convert the page to a dictionary."""
        return {
            "items": self.items.to_list(),
            "total": self.total,
            "per_page": self.per_page,
            "page": self.page,
            "last_page": self.last_page,
            "page_name": self.page_name,
        }


class QueryEngine:
    """Answers queries for one entity type."""

    def __init__(
        self,
        files: FileStore,
        model_class: type[Hydratable],
        owner: Any = None,
        page_resolver: PageResolver | None = None,
    ):
        self.files = files
        self.model_class = model_class
        self.owner = owner
        self.page_resolver = page_resolver
        self._prototype = model_class.hydrate({}, owner)

    @property
    def entity_name(self) -> str:
        return self.model_class.entity_storage_name()

    @property
    def key_name(self) -> str:
        return self._prototype.get_key_name() or "id"

    def apply(self, clauses: ClauseSet) -> RecordCollection:
        """Load the entity and apply ``clauses``; records stay raw mappings."""
        records = self.files.load(self.entity_name)
        for where in clauses.wheres:
            records = records.where_clause(where)
        for where_in in clauses.where_ins:
            records = records.where_in(where_in.column, where_in.values)
        for where_not_in in clauses.where_not_ins:
            records = records.where_not_in(where_not_in.column, where_not_in.values)
        for order in clauses.orders:
            records = records.sort_by(order.column, order.descending)
        return records.only(clauses.selected_columns())

    def get(self, clauses: ClauseSet, columns: Iterable[str] | None = None) -> RecordCollection:
        """Records matching ``clauses``, hydrated and re-indexed."""
        return self._raw(clauses, columns).map(self._hydrate)

    def first(self, clauses: ClauseSet, columns: Iterable[str] | None = None) -> Any:
        """First matching record, or None."""
        record = self._raw(clauses, columns).first()
        return None if record is None else self._hydrate(record)

    def find(self, clauses: ClauseSet, id: Any, columns: Iterable[str] | None = None) -> Any:
        """Record with primary key ``id``; a list of ids returns a collection."""
        if isinstance(id, (list, tuple, set)):
            return self.get(clauses.copy().add_where_in(self.key_name, list(id)), columns)
        return self.first(clauses.copy().add_where(self.key_name, "=", id), columns)

    def find_or_fail(self, clauses: ClauseSet, id: Any, columns: Iterable[str] | None = None) -> Any:
        """Like ``find`` but raise when nothing (or not every id) matches.

        Raises:
            ModelNotFoundError: If no record matches, or for a list of ids,
                if the number of matches differs from the number of
                distinct ids requested
        """
        result = self.find(clauses, id, columns)
        if isinstance(id, (list, tuple, set)):
            if len(result) == len({distinct_key(i) for i in id}):
                return result
        elif result is not None:
            return result
        raise ModelNotFoundError(self.model_class.__name__, list(id) if isinstance(id, (tuple, set)) else id)

    def count(self, clauses: ClauseSet, columns: Iterable[str] | None = None) -> int:
        return self._raw(clauses, columns).count()

    def min(self, clauses: ClauseSet, column: str) -> Any:
        return self._raw(clauses).min(column)

    def max(self, clauses: ClauseSet, column: str) -> Any:
        return self._raw(clauses).max(column)

    def avg(self, clauses: ClauseSet, column: str) -> float | None:
        return self._raw(clauses).avg(column)

    def pluck(self, clauses: ClauseSet, column: str, key: str | None = None) -> list[Any] | dict[Any, Any]:
        return self._raw(clauses).pluck(column, key)

    def value(self, clauses: ClauseSet, column: str) -> list[Any]:
        """Plucked values of ``column`` over every match (a sequence)."""
        return self._raw(clauses).pluck(column)  # type: ignore[return-value]

    def first_value(self, clauses: ClauseSet, column: str) -> Any:
        """Value of ``column`` on the first match, or None."""
        record = self._raw(clauses).first()
        return None if record is None else record.get(column)

    def distinct(self, clauses: ClauseSet, column: str) -> RecordCollection:
        """First-seen record per distinct value of ``column``."""
        return self._raw(clauses).unique(column).map(self._hydrate)

    def group_by(self, clauses: ClauseSet, column: str) -> RecordCollection:
        """Same reduction as ``distinct``: one record per value of ``column``."""
        return self.distinct(clauses, column)

    def chunk(self, clauses: ClauseSet, size: int) -> list[RecordCollection]:
        return self.get(clauses).chunk(size)

    def paginate(
        self,
        clauses: ClauseSet,
        per_page: int | None = None,
        columns: Iterable[str] | None = None,
        page_name: str = "page",
        page: int | None = None,
    ) -> Page:
        """Slice the matching records into pages.

        ``total`` is the size of the fully filtered collection. When ``page``
        is not given it is taken from the page resolver (if any) and defaults
        to 1. When ``per_page`` is not given it comes from the model, then
        from the store configuration; an explicit value below 1 raises
        ``ValidationError``.
        """
        if per_page is None:
            per_page = getattr(self._prototype, "per_page", None) or self.files.config.per_page
        if isinstance(per_page, bool) or not isinstance(per_page, int) or per_page < 1:
            raise ValidationError(f"per_page must be a positive integer, got {per_page!r}")
        if page is None:
            page = self._resolve_page(page_name)
        elif isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be a positive integer, got {page!r}")

        records = self.get(clauses, columns)
        return Page(
            items=records.for_page(page, per_page),
            total=records.count(),
            per_page=per_page,
            page=page,
            page_name=page_name,
        )

    def _resolve_page(self, page_name: str) -> int:
        if self.page_resolver is None:
            return 1
        resolved = self.page_resolver(page_name)
        try:
            page = int(resolved)
        except (TypeError, ValueError):
            return 1
        return page if page >= 1 else 1

    def _raw(self, clauses: ClauseSet, columns: Iterable[str] | None = None) -> RecordCollection:
        clauses = clauses.copy()
        if columns is not None:
            columns = list(columns)
            if columns != ["*"]:
                clauses.replace_select(columns)
        logger.debug(f"Querying '{self.entity_name}' with {clauses}")
        return self.apply(clauses)

    def _hydrate(self, record: Any) -> Any:
        return self.model_class.hydrate(record, self.owner)


class QueryBuilder:
    """Fluent query handle.

    Clause methods return a new builder. Terminal methods (``get``,
    ``first``, ``count``, ...) run the query and then discard the builder's
    clauses.
    """

    def __init__(self, engine: QueryEngine, clauses: ClauseSet | None = None):
        self.engine = engine
        self.clauses = clauses if clauses is not None else ClauseSet()

    def _with(self, extend: Callable[[ClauseSet], Any]) -> QueryBuilder:
        clauses = self.clauses.copy()
        extend(clauses)
        return QueryBuilder(self.engine, clauses)

    def _consume(self, terminal: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return terminal(self.clauses, *args, **kwargs)
        finally:
            self.clauses = ClauseSet()

    # ----- Clauses -----

    def select(self, *columns: str) -> QueryBuilder:
        return self._with(lambda c: c.add_select(*columns))

    def add_select(self, *columns: str) -> QueryBuilder:
        return self._with(lambda c: c.add_select(*columns))

    def where(self, column: str, operator: Any = MISSING, value: Any = MISSING) -> QueryBuilder:
        """Add a where clause; ``where(col, value)`` means ``where(col, "=", value)``."""
        return self._with(lambda c: c.add_where(column, operator, value))

    def where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self._with(lambda c: c.add_where_in(column, values))

    def where_not_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self._with(lambda c: c.add_where_not_in(column, values))

    def order_by(self, column: str, direction: str = "asc") -> QueryBuilder:
        return self._with(lambda c: c.add_order_by(column, direction))

    def order_by_desc(self, column: str) -> QueryBuilder:
        return self.order_by(column, "desc")

    # ----- Terminals -----

    def get(self, columns: Iterable[str] | None = None) -> RecordCollection:
        return self._consume(self.engine.get, columns)

    def first(self, columns: Iterable[str] | None = None) -> Any:
        return self._consume(self.engine.first, columns)

    def find(self, id: Any, columns: Iterable[str] | None = None) -> Any:
        return self._consume(self.engine.find, id, columns)

    def find_or_fail(self, id: Any, columns: Iterable[str] | None = None) -> Any:
        return self._consume(self.engine.find_or_fail, id, columns)

    def count(self, columns: Iterable[str] | None = None) -> int:
        return self._consume(self.engine.count, columns)

    def min(self, column: str) -> Any:
        return self._consume(self.engine.min, column)

    def max(self, column: str) -> Any:
        return self._consume(self.engine.max, column)

    def avg(self, column: str) -> float | None:
        return self._consume(self.engine.avg, column)

    def pluck(self, column: str, key: str | None = None) -> list[Any] | dict[Any, Any]:
        return self._consume(self.engine.pluck, column, key)

    def value(self, column: str) -> list[Any]:
        return self._consume(self.engine.value, column)

    def first_value(self, column: str) -> Any:
        return self._consume(self.engine.first_value, column)

    def distinct(self, column: str) -> RecordCollection:
        return self._consume(self.engine.distinct, column)

    def group_by(self, column: str) -> RecordCollection:
        return self._consume(self.engine.group_by, column)

    def chunk(self, size: int) -> list[RecordCollection]:
        return self._consume(self.engine.chunk, size)

    def paginate(
        self,
        per_page: int | None = None,
        columns: Iterable[str] | None = None,
        page_name: str = "page",
        page: int | None = None,
    ) -> Page:
        return self._consume(self.engine.paginate, per_page, columns, page_name, page)

    def __repr__(self) -> str:
        return f"QueryBuilder({self.engine.model_class.__name__}, {self.clauses})"
