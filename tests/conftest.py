"""Common test fixtures for the Synapse knowledge base."""

from pathlib import Path

import pytest

from synapse_kb.config import config
from synapse_kb.observability import metrics
from synapse_kb.services.context import ServiceContext
from synapse_kb.storage.database import Database


@pytest.fixture
def temp_dirs(tmp_path):
    """Create temporary directories for note data and the database."""
    data_dir = tmp_path / "data"
    db_dir = tmp_path / "db"
    data_dir.mkdir()
    db_dir.mkdir()
    yield data_dir, db_dir


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    data_dir, db_dir = temp_dirs
    monkeypatch.setattr(config, "base_dir", Path("/"))
    monkeypatch.setattr(config, "data_dir", data_dir)
    monkeypatch.setattr(config, "database_path", db_dir / "test_synapse.db")
    monkeypatch.setattr(config, "in_memory_db", False)
    monkeypatch.setattr(config, "log_dir", None)
    yield config


@pytest.fixture
def memory_db():
    """A transient store, closed after the test."""
    db = Database.open_in_memory()
    yield db
    db.close()


@pytest.fixture
def file_db(temp_dirs):
    """A store backed by a file in the temporary db directory."""
    _, db_dir = temp_dirs
    db = Database.open(db_dir / "test_synapse.db")
    yield db
    db.close()


@pytest.fixture
def ctx(temp_dirs):
    """Service context over an in-memory store and a temporary data dir."""
    data_dir, _ = temp_dirs
    context = ServiceContext.in_memory(data_dir)
    yield context
    context.close()


@pytest.fixture
def file_ctx(temp_dirs):
    """Service context over a file-backed store."""
    data_dir, db_dir = temp_dirs
    context = ServiceContext(db_dir / "synapse.db", data_dir)
    yield context
    context.close()


@pytest.fixture
def clean_metrics():
    """Reset the global metrics collector around a test."""
    metrics.reset()
    yield metrics
    metrics.reset()
