"""Create, update and delete through whole-file rewrites.

Every mutation loads the entity's full collection, changes one record in
memory and writes the entire collection back. With locking enabled the
per-file lock is held for the whole cycle, and the write itself goes through
an atomic rename, so concurrent writers serialize instead of overwriting each
other and a crash never leaves a truncated file.

Primary keys are assigned as ``1 + max(existing keys)``; holes left by
deleted records are never reused.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .collection import RecordCollection
from .exceptions import MissingPrimaryKeyError, ModelNotFoundError, ValidationError

if TYPE_CHECKING:
    from .model import Hydratable
    from .storage import FileStore

logger = logging.getLogger(__name__)


class MutationEngine:
    """Persists records of any :class:`~jsonstore.model.Hydratable` type."""

    def __init__(self, files: FileStore):
        self.files = files

    def save(self, model: Hydratable) -> Hydratable:
        """Update a record holding a primary key value, create it otherwise."""
        key = model.get_key_name()
        if key is not None and model.get_attribute(key) is not None:
            return self.update(model)
        return self.create(model)

    def create(self, model: Hydratable) -> Hydratable:
        """Assign a key and timestamps, append the record and rewrite the file."""
        entity = model.entity_storage_name()
        key = model.get_key_name()

        with self.files.lock(entity):
            records = self.files.load(entity)
            if key is not None:
                if model.get_attribute(key) is None:
                    self._assign_key(model, key, records)
                elif not records.where(key, "=", model.get_attribute(key)).is_empty():
                    raise ValidationError(
                        f"Duplicate primary key {model.get_attribute(key)!r} for '{entity}'",
                        context={"entity": entity, "key": key, "value": model.get_attribute(key)},
                    )

            if model.uses_timestamps():
                now = model.fresh_timestamp()
                model.set_created_at(now)
                model.set_updated_at(now)

            records.push(self._serialize(model))
            self.files.save(entity, records)

        logger.info(f"Created '{entity}' record {key}={model.get_attribute(key) if key else None}")
        return model

    def update(self, model: Hydratable) -> Hydratable:
        """Merge a record into its stored version and rewrite the file.

        The model's attributes are laid over the stored record, so columns
        the model does not carry (for example after a ``select``) survive.
        Only the update timestamp is refreshed; a record whose key is not in
        the file yet is stamped as newly created. After the rewrite the
        model's attributes are reset to what was read back from the file.
        """
        entity = model.entity_storage_name()
        key = model.get_key_name()
        if key is None:
            raise MissingPrimaryKeyError(type(model).__name__)
        key_value = model.get_attribute(key)

        with self.files.lock(entity):
            records = self.files.load(entity)
            previous = records.where(key, "=", key_value).first()
            if model.uses_timestamps():
                now = model.fresh_timestamp()
                if previous is None:
                    model.set_created_at(now)
                model.set_updated_at(now)

            records = (
                records.reject_where(key, key_value)
                .push({**(previous or {}), **self._serialize(model)})
                .sort_by(key)
            )
            self.files.save(entity, records)

            stored = self.files.load(entity).where(key, "=", key_value).first()

        if stored is not None:
            model.set_raw_attributes(stored)
        logger.debug(f"Updated '{entity}' record {key}={key_value}")
        return model

    def delete(self, model: Hydratable) -> bool:
        """Remove a record by primary key; deleting an absent record succeeds.

        Raises:
            MissingPrimaryKeyError: If the entity has no primary key
        """
        entity = model.entity_storage_name()
        key = model.get_key_name()
        if key is None:
            raise MissingPrimaryKeyError(type(model).__name__)
        key_value = model.get_attribute(key)

        with self.files.lock(entity):
            records = self.files.load(entity)
            remaining = records.reject_where(key, key_value)
            if len(remaining) != len(records):
                self.files.save(entity, remaining)
                logger.info(f"Deleted '{entity}' record {key}={key_value}")
            else:
                logger.debug(f"No '{entity}' record with {key}={key_value}; nothing to delete")
        return True

    def refresh(self, model: Hydratable) -> Hydratable:
        """Reset a model's attributes from its stored version.

        Raises:
            ModelNotFoundError: If the record is no longer stored
        """
        key = model.get_key_name()
        if key is None:
            raise MissingPrimaryKeyError(type(model).__name__)
        key_value = model.get_attribute(key)
        stored = self.files.load(model.entity_storage_name()).where(key, "=", key_value).first()
        if stored is None:
            raise ModelNotFoundError(type(model).__name__, key_value)
        model.set_raw_attributes(stored)
        return model

    @staticmethod
    def _assign_key(model: Hydratable, key: str, records: RecordCollection) -> None:
        largest = records.max_key(key)
        next_key = 1 if largest is None else largest + 1
        attributes = {k: v for k, v in model.get_attributes().items() if k != key}
        model.set_raw_attributes({key: next_key, **attributes})

    @staticmethod
    def _serialize(model: Hydratable) -> dict[str, Any]:
        # Hidden attributes are still persisted
        return dict(model.get_visible_attributes(getattr(model, "hidden", ())))
