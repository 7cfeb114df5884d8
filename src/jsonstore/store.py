"""Store facade wiring configuration, file storage and the engines."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Union

from .collection import RecordCollection
from .config import StoreConfig
from .model import Hydratable
from .mutation import MutationEngine
from .query import PageResolver, QueryBuilder, QueryEngine
from .storage import FileStore

logger = logging.getLogger(__name__)


class JsonStore:
    """Entry point for querying and persisting models.

    Example:
        ```python
        store = JsonStore({"storage_root": "data/json"})

        user = store.create(User, {"name": "Alice"})
        store.query(User).where("name", "Alice").count()  # 1
        store.all(User)
        ```
    """

    def __init__(
        self,
        config: Union[StoreConfig, Mapping[str, Any], str, Path],
        page_resolver: PageResolver | None = None,
    ):
        if isinstance(config, StoreConfig):
            self.config = config
        elif isinstance(config, Mapping):
            self.config = StoreConfig.from_dict(config)
        else:
            self.config = StoreConfig(storage_root=str(config))
        self.files = FileStore(self.config)
        self.mutations = MutationEngine(self.files)
        self.page_resolver = page_resolver
        logger.debug(f"JsonStore rooted at {self.config.storage_root}")

    @classmethod
    def from_config(cls, config: dict) -> JsonStore:
        """Create from config dictionary."""
        return cls(StoreConfig.from_dict(config))

    def engine(self, model_class: type[Hydratable]) -> QueryEngine:
        return QueryEngine(self.files, model_class, owner=self, page_resolver=self.page_resolver)

    def query(self, model_class: type[Hydratable]) -> QueryBuilder:
        """Start a query chain for ``model_class``."""
        return QueryBuilder(self.engine(model_class))

    def all(self, model_class: type[Hydratable], columns: list[str] | None = None) -> RecordCollection:
        """Every stored record of ``model_class``."""
        return self.query(model_class).get(columns)

    def create(self, model_class: type[Hydratable], attributes: Mapping[str, Any]) -> Any:
        """Instantiate ``model_class`` with ``attributes`` and persist it."""
        model = model_class.hydrate({}, self)
        if hasattr(model, "fill"):
            model.fill(attributes)
        else:
            model.set_raw_attributes(attributes)
        return self.mutations.create(self._bind(model))

    def save(self, model: Any) -> Any:
        return self.mutations.save(self._bind(model))

    def update(self, model: Any, attributes: Mapping[str, Any]) -> Any:
        """Merge ``attributes`` into ``model`` and save it."""
        if hasattr(model, "fill"):
            model.fill(attributes)
        else:
            model.set_raw_attributes({**model.get_attributes(), **attributes})
        return self.save(model)

    def delete(self, model: Any) -> bool:
        return self.mutations.delete(model)

    def refresh(self, model: Any) -> Any:
        return self.mutations.refresh(model)

    def _bind(self, model: Any) -> Any:
        if hasattr(model, "bind"):
            model.bind(self)
        return model
