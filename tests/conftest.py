"""Pytest configuration for jsonstore tests."""

import json
import sys
from pathlib import Path

import pytest

# Add the package source to path for testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from jsonstore import JsonStore, StoreConfig


@pytest.fixture
def storage_root(tmp_path):
    """Directory holding the entity files of one test."""
    root = tmp_path / "json"
    root.mkdir()
    return root


@pytest.fixture
def config(storage_root):
    return StoreConfig(storage_root=str(storage_root))


@pytest.fixture
def store(config):
    return JsonStore(config)


@pytest.fixture
def write_entity(storage_root):
    """Write raw records to ``<root>/<entity>.json``."""

    def _write(entity, records):
        path = storage_root / f"{entity}.json"
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def read_entity(storage_root):
    """Read the raw records of ``<root>/<entity>.json``."""

    def _read(entity):
        path = storage_root / f"{entity}.json"
        return json.loads(path.read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def people():
    return [
        {"id": 1, "name": "Alice", "age": 30, "role": "admin"},
        {"id": 2, "name": "Bob", "age": 25, "role": "editor"},
        {"id": 3, "name": "Carol", "age": 35, "role": "admin"},
        {"id": 4, "name": "Dave", "age": 25, "role": "viewer"},
    ]


@pytest.fixture
def seeded_store(store, write_entity, people):
    """Store whose ``user`` file holds the ``people`` records."""
    write_entity("user", people)
    return store
