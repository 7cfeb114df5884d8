"""Store configuration.

The storage root and file handling options are always passed explicitly to
the store; nothing is read from ambient global state. A configuration can be
built from a dictionary, a YAML/JSON file, or environment variables
(optionally backed by a dotenv file).

Example:
    ```python
    from jsonstore import JsonStore, StoreConfig

    config = StoreConfig(storage_root="/var/lib/myapp/json")
    config = StoreConfig.from_file("store.yaml")
    config = StoreConfig.from_env(env_file=".env")

    store = JsonStore(config)
    ```
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml  # type: ignore[import-untyped]
from dotenv import dotenv_values

from .exceptions import StoreConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class StoreConfig:
    """Configuration for a file-backed store.

    Attributes:
        storage_root: Directory holding one ``<entity>.json`` file per entity
        use_file_lock: Hold a per-file advisory lock across each mutation
        atomic_writes: Write to a temporary file and rename it into place
        indent: JSON indentation for written files (None for compact output)
        ensure_ascii: Escape non-ASCII characters in written files
        per_page: Default page size when neither caller nor model sets one
        encoding: Text encoding of entity files
    """

    storage_root: str
    use_file_lock: bool = True
    atomic_writes: bool = True
    indent: int | None = 2
    ensure_ascii: bool = False
    per_page: int = 15
    encoding: str = "utf-8"

    ENV_PREFIX = "JSONSTORE_"

    def __post_init__(self) -> None:
        if isinstance(self.storage_root, Path):
            self.storage_root = str(self.storage_root)
        if not isinstance(self.storage_root, str) or not self.storage_root:
            raise StoreConfigurationError("storage_root", "a non-empty path is required")
        if isinstance(self.per_page, bool) or not isinstance(self.per_page, int) or self.per_page < 1:
            raise StoreConfigurationError("per_page", f"must be a positive integer, got {self.per_page!r}")
        if self.indent is not None and (isinstance(self.indent, bool) or not isinstance(self.indent, int)):
            raise StoreConfigurationError("indent", f"must be an integer or None, got {self.indent!r}")
        for flag in ("use_file_lock", "atomic_writes", "ensure_ascii"):
            if not isinstance(getattr(self, flag), bool):
                raise StoreConfigurationError(flag, f"must be a boolean, got {getattr(self, flag)!r}")

    @property
    def root_path(self) -> Path:
        """The storage root as a ``Path``."""
        return Path(self.storage_root)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StoreConfig:
        """Create a configuration from a dictionary.

        Args:
            data: Configuration values keyed by field name

        Returns:
            StoreConfig instance

        Raises:
            StoreConfigurationError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise StoreConfigurationError(unknown[0], f"unknown option (valid: {', '.join(sorted(known))})")
        if "storage_root" not in data:
            raise StoreConfigurationError("storage_root", "option is required")
        return cls(**dict(data))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> StoreConfig:
        """Load a configuration from a YAML or JSON file.

        A relative ``storage_root`` is resolved against the directory holding
        the configuration file.

        Args:
            path: Path to a ``.yaml``, ``.yml`` or ``.json`` file

        Returns:
            StoreConfig instance
        """
        path = Path(path).resolve()
        if not path.exists():
            raise StoreConfigurationError("path", f"configuration file not found: {path}")

        suffix = path.suffix.lower()
        with open(path, encoding="utf-8") as f:
            if suffix in [".yaml", ".yml"]:
                data = yaml.safe_load(f) or {}
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise StoreConfigurationError("path", f"unsupported file format: {suffix}")

        if not isinstance(data, dict):
            raise StoreConfigurationError("path", f"expected a mapping in {path}")

        # Allow the options to be nested under a "jsonstore" section
        if "jsonstore" in data and isinstance(data["jsonstore"], dict):
            data = data["jsonstore"]

        root = data.get("storage_root")
        if isinstance(root, str) and not os.path.isabs(root):
            data = dict(data, storage_root=str((path.parent / root).resolve()))

        logger.debug(f"Loaded store configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        prefix: str | None = None,
        env_file: Union[str, Path, None] = None,
        environ: Mapping[str, str] | None = None,
    ) -> StoreConfig:
        """Build a configuration from environment variables.

        Variables are named ``<PREFIX><FIELD>`` in upper case, for example
        ``JSONSTORE_STORAGE_ROOT`` or ``JSONSTORE_USE_FILE_LOCK``. Values
        from ``env_file`` are read first; real environment variables override
        them.

        Args:
            prefix: Variable prefix (default ``JSONSTORE_``)
            env_file: Optional dotenv file to read
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            StoreConfig instance
        """
        prefix = prefix or cls.ENV_PREFIX
        values: Dict[str, str | None] = {}
        if env_file is not None:
            values.update(dotenv_values(env_file))
        values.update(os.environ if environ is None else environ)

        data: Dict[str, Any] = {}
        for f in fields(cls):
            raw = values.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            data[f.name] = _parse_env_value(f.name, raw)

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Export the configuration as a dictionary."""
        return asdict(self)


_BOOL_FIELDS = {"use_file_lock", "atomic_writes", "ensure_ascii"}
_INT_FIELDS = {"per_page"}


def _parse_env_value(name: str, value: str) -> Any:
    """Parse an environment variable value to the field's type."""
    if name in _BOOL_FIELDS:
        lowered = value.strip().lower()
        if lowered in ["true", "yes", "1", "on"]:
            return True
        if lowered in ["false", "no", "0", "off"]:
            return False
        raise StoreConfigurationError(name, f"expected a boolean, got {value!r}")
    if name in _INT_FIELDS or name == "indent":
        if name == "indent" and value.strip().lower() in ["", "none", "null"]:
            return None
        try:
            return int(value)
        except ValueError as e:
            raise StoreConfigurationError(name, f"expected an integer, got {value!r}") from e
    return value
