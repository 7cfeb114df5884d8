"""Host model layer.

The query and mutation engines never construct typed records themselves; they
go through the :class:`Hydratable` protocol. :class:`Model` is the default
implementation: a mapping of attributes with primary-key, timestamp and
hidden-field conventions.

Example:
    ```python
    from jsonstore import JsonStore, Model, StoreConfig

    class User(Model):
        hidden = ["password"]

    store = JsonStore(StoreConfig(storage_root="data"))

    user = store.create(User, {"name": "Alice", "password": "s3cret"})
    user.id            # 1
    user.name          # "Alice"
    user.to_dict()     # password left out

    user.update({"name": "Alicia"})
    User.query(store).where("name", "Alicia").first()
    user.delete()
    ```

Attribute names that clash with model methods or settings (``values``,
``save``, ``hidden``, ...) remain reachable through item access:
``user["values"]``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .collection import RecordCollection
    from .query import QueryBuilder
    from .store import JsonStore


@runtime_checkable
class Hydratable(Protocol):
    """Capabilities the engines need from a record type."""

    @classmethod
    def hydrate(cls, attributes: Mapping[str, Any], store: Any = None) -> Any:
        """Build an instance from raw attributes, without validation."""
        ...

    @classmethod
    def entity_storage_name(cls) -> str:
        """Slug naming the entity's storage file."""
        ...

    def get_key_name(self) -> str | None: ...

    def get_attribute(self, name: str, default: Any = None) -> Any: ...

    def get_attributes(self) -> dict[str, Any]: ...

    def set_raw_attributes(self, attributes: Mapping[str, Any]) -> Any: ...

    def uses_timestamps(self) -> bool: ...

    def fresh_timestamp(self) -> str: ...

    def set_created_at(self, value: str) -> Any: ...

    def set_updated_at(self, value: str) -> Any: ...

    def get_visible_attributes(self, make_visible: Iterable[str] = ()) -> dict[str, Any]: ...


def slugify(name: str) -> str:
    """Lower-case ``name`` and collapse non-alphanumeric runs to ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class Model(Mapping):
    """Attribute container persisted as one object in its entity's file.

    Class attributes:
        primary_key: Name of the primary key field, or None for keyless
            entities (which can be queried but not deleted)
        timestamps: Stamp ``created_at``/``updated_at`` on save
        hidden: Attributes left out of ``to_dict()`` (still persisted)
        per_page: Default page size for ``paginate`` (None uses the
            store configuration)
        storage_name: Explicit storage file name; defaults to the slug of
            the class name
    """

    primary_key: ClassVar[str | None] = "id"
    timestamps: ClassVar[bool] = True
    hidden: ClassVar[list[str]] = []
    per_page: ClassVar[int | None] = None
    storage_name: ClassVar[str | None] = None

    CREATED_AT: ClassVar[str] = "created_at"
    UPDATED_AT: ClassVar[str] = "updated_at"
    TIMESTAMP_FORMAT: ClassVar[str] = "%Y-%m-%d %H:%M:%S"

    def __init__(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any):
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_store", None)
        self.fill(dict(attributes or {}, **kwargs))

    @classmethod
    def hydrate(cls, attributes: Mapping[str, Any], store: JsonStore | None = None) -> Model:
        """Create an instance from stored attributes, bypassing ``fill``."""
        instance = cls.__new__(cls)
        object.__setattr__(instance, "_attributes", {})
        object.__setattr__(instance, "_store", store)
        instance.set_raw_attributes(attributes)
        return instance

    @classmethod
    def entity_storage_name(cls) -> str:
        return cls.storage_name or slugify(cls.__name__)

    # ----- Attribute access -----

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._attributes[name]
        except KeyError:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._attributes[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_"):
            object.__delattr__(self, name)
        else:
            del self._attributes[name]

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._attributes[key] = value

    def __delitem__(self, key: str) -> None:
        del self._attributes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._attributes!r})"

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> Model:
        self._attributes[name] = value
        return self

    def get_attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    def set_raw_attributes(self, attributes: Mapping[str, Any]) -> Model:
        object.__setattr__(self, "_attributes", dict(attributes))
        return self

    def fill(self, attributes: Mapping[str, Any]) -> Model:
        """Merge ``attributes`` into the model."""
        for key, value in attributes.items():
            self._attributes[key] = value
        return self

    def get_visible_attributes(self, make_visible: Iterable[str] = ()) -> dict[str, Any]:
        """Attributes minus hidden ones, except those listed in ``make_visible``."""
        concealed = set(self.hidden) - set(make_visible)
        return {k: v for k, v in self._attributes.items() if k not in concealed}

    def to_dict(self) -> dict[str, Any]:
        """Public representation of the model (hidden attributes removed)."""
        return self.get_visible_attributes()

    # ----- Keys and timestamps -----

    def get_key_name(self) -> str | None:
        return self.primary_key

    def get_key(self) -> Any:
        key_name = self.get_key_name()
        return self._attributes.get(key_name) if key_name else None

    @property
    def is_persisted(self) -> bool:
        """True once a primary key value is assigned."""
        return self.get_key() is not None

    def uses_timestamps(self) -> bool:
        return self.timestamps

    def fresh_timestamp(self) -> str:
        return datetime.now().strftime(self.TIMESTAMP_FORMAT)

    def set_created_at(self, value: str) -> Model:
        self._attributes[self.CREATED_AT] = value
        return self

    def set_updated_at(self, value: str) -> Model:
        self._attributes[self.UPDATED_AT] = value
        return self

    # ----- Persistence through a bound store -----

    def bind(self, store: JsonStore) -> Model:
        """Attach the store used by ``save``/``update``/``delete``."""
        object.__setattr__(self, "_store", store)
        return self

    @property
    def store(self) -> JsonStore:
        if self._store is None:
            raise ConfigurationError(
                f"{type(self).__name__} is not bound to a store; use store.save() or bind() first",
                context={"model": type(self).__name__},
            )
        return self._store

    def save(self) -> Model:
        return self.store.save(self)

    def update(self, attributes: Mapping[str, Any] | None = None) -> Model:
        """Fill ``attributes`` and save."""
        return self.store.update(self, attributes or {})

    def delete(self) -> bool:
        return self.store.delete(self)

    def refresh(self) -> Model:
        """Reload the persisted attributes by primary key."""
        return self.store.refresh(self)

    @classmethod
    def query(cls, store: JsonStore) -> QueryBuilder:
        return store.query(cls)

    @classmethod
    def all(cls, store: JsonStore, columns: list[str] | None = None) -> RecordCollection:
        return store.all(cls, columns)
