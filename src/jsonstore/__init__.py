"""jsonstore - embedded, file-backed document store with a query builder.

Each entity type is persisted as one JSON file holding an array of objects.
The package offers a relational-style query builder (filter, sort, project,
aggregate, paginate) over those collections and persists changes by
rewriting the whole file.

Modules:
    store: JsonStore facade wiring configuration, storage and engines
    model: Hydratable protocol and the default Model implementation
    query: QueryEngine, fluent QueryBuilder and Page results
    mutation: MutationEngine for create/update/delete/save
    collection: RecordCollection with filter/sort/project/aggregate helpers
    clauses: ClauseSet and clause types for deferred queries
    storage: FileStore and FileLock for entity files
    config: StoreConfig loaded from dicts, YAML/JSON files or the environment
    exceptions: Error hierarchy

Quick Example:

    ```python
    from jsonstore import JsonStore, Model

    class User(Model):
        hidden = ["password"]

    store = JsonStore({"storage_root": "storage/app/json"})

    store.create(User, {"name": "Alice", "email": "alice@example.com"})
    store.create(User, {"name": "Bob", "email": "bob@example.com"})

    users = store.query(User).where("name", "!=", "Bob").order_by("id", "desc").get()
    emails = store.query(User).pluck("email", "name")
    page = store.query(User).paginate(per_page=10, page=1)
    ```
"""

from jsonstore.clauses import ClauseSet, InClause, Operator, OrderClause, WhereClause
from jsonstore.collection import RecordCollection
from jsonstore.config import StoreConfig
from jsonstore.exceptions import (
    AggregationTypeError,
    ConfigurationError,
    CorruptStorageError,
    InvalidOperatorError,
    InvalidPrimaryKeyError,
    JsonStoreError,
    MissingPrimaryKeyError,
    ModelNotFoundError,
    NotFoundError,
    OperationError,
    SerializationError,
    StoreConfigurationError,
    ValidationError,
)
from jsonstore.model import Hydratable, Model, slugify
from jsonstore.mutation import MutationEngine
from jsonstore.query import Page, QueryBuilder, QueryEngine
from jsonstore.storage import FileLock, FileStore
from jsonstore.store import JsonStore

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Store
    "JsonStore",
    "StoreConfig",
    # Models
    "Hydratable",
    "Model",
    "slugify",
    # Queries
    "ClauseSet",
    "WhereClause",
    "InClause",
    "OrderClause",
    "Operator",
    "QueryBuilder",
    "QueryEngine",
    "Page",
    "RecordCollection",
    # Persistence
    "MutationEngine",
    "FileStore",
    "FileLock",
    # Exceptions
    "JsonStoreError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
    "OperationError",
    "SerializationError",
    "CorruptStorageError",
    "ModelNotFoundError",
    "MissingPrimaryKeyError",
    "AggregationTypeError",
    "InvalidOperatorError",
    "InvalidPrimaryKeyError",
    "StoreConfigurationError",
]
