"""Exception hierarchy for the jsonstore package.

Every error raised by the store derives from :class:`JsonStoreError`, which
carries an optional context dictionary with structured details about the
failure (entity names, paths, ids, ...).

Example:
    ```python
    from jsonstore.exceptions import JsonStoreError, ModelNotFoundError

    try:
        store.query(User).find_or_fail(42)
    except ModelNotFoundError as e:
        logger.error(f"Lookup failed: {e}")
        logger.error(f"Context: {e.context}")
    except JsonStoreError:
        raise
    ```

Errors coming from the file system itself (permission denied, disk full)
are not wrapped: they propagate as the original ``OSError``.
"""

from __future__ import annotations

from typing import Any, Dict


class JsonStoreError(Exception):
    """Base exception for the jsonstore package.

    Attributes:
        context: Dictionary containing contextual information about the error
        details: Alias for context

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context
        details: Alternative to context (takes precedence when both are given)
    """

    def __init__(
        self,
        message: str,
        context: Dict[str, Any] | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.context = details or context or {}
        self.details = self.context


class ValidationError(JsonStoreError):
    """Raised when a value, clause or argument fails validation."""

    pass


class ConfigurationError(JsonStoreError):
    """Raised when configuration is invalid or missing."""

    pass


class NotFoundError(JsonStoreError):
    """Raised when a requested item is not found."""

    pass


class OperationError(JsonStoreError):
    """Raised when an operation cannot be carried out."""

    pass


class SerializationError(JsonStoreError):
    """Raised when stored data cannot be (de)serialized."""

    pass


class CorruptStorageError(SerializationError):
    """Raised when an entity file exists but is not a JSON array of objects.

    The file is never repaired automatically; the caller decides what to do.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Corrupt storage file '{path}': {reason}",
            context={"path": path, "reason": reason},
        )


class ModelNotFoundError(NotFoundError):
    """Raised by strict lookups when no matching record exists."""

    def __init__(self, model: str, ids: Any):
        self.model = model
        self.ids = ids
        super().__init__(
            f"No query results for model [{model}] {ids}",
            context={"model": model, "ids": ids},
        )


class MissingPrimaryKeyError(OperationError):
    """Raised when deleting a record of an entity without a primary key."""

    def __init__(self, model: str):
        self.model = model
        super().__init__(
            f"No primary key defined on model '{model}'", context={"model": model}
        )


class AggregationTypeError(ValidationError):
    """Raised when min/max/avg run on a non-numeric or absent column."""

    def __init__(self, column: str, aggregate: str, reason: str):
        self.column = column
        self.aggregate = aggregate
        super().__init__(
            f"Cannot compute {aggregate}() over column '{column}': {reason}",
            context={"column": column, "aggregate": aggregate},
        )


class InvalidOperatorError(ValidationError):
    """Raised when a where clause uses an unsupported operator."""

    def __init__(self, operator: Any, supported: list[str]):
        self.operator = operator
        self.supported = supported
        super().__init__(
            f"Unsupported operator {operator!r}. Supported operators: {', '.join(supported)}",
            context={"operator": operator, "supported": supported},
        )


class InvalidPrimaryKeyError(ValidationError):
    """Raised when existing primary keys cannot be auto-incremented."""

    def __init__(self, column: str, value: Any):
        self.column = column
        self.value = value
        super().__init__(
            f"Primary key '{column}' holds non-integer value {value!r}",
            context={"column": column, "value": value},
        )


class StoreConfigurationError(ConfigurationError):
    """Raised when store configuration is invalid."""

    def __init__(self, parameter: str, message: str):
        self.parameter = parameter
        super().__init__(
            f"Configuration error for '{parameter}': {message}",
            context={"parameter": parameter},
        )
