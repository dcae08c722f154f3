"""Tests for configuration."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from pydantic import ValidationError

from synapse_kb.config import SynapseConfig
from synapse_kb.observability import ROOT_LOGGER_NAME
from synapse_kb.services.context import ServiceContext


class TestSynapseConfig:
    """Tests for SynapseConfig fields and helpers."""

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Fields read their SYNAPSE_* variables at construction."""
        monkeypatch.setenv("SYNAPSE_DATA_DIR", str(tmp_path / "kb"))
        monkeypatch.setenv("SYNAPSE_IN_MEMORY_DB", "yes")
        monkeypatch.setenv("SYNAPSE_LOG_DIR", str(tmp_path / "logs"))
        cfg = SynapseConfig()
        assert cfg.data_dir == tmp_path / "kb"
        assert cfg.in_memory_db is True
        assert cfg.log_dir == tmp_path / "logs"

    def test_journal_mode_normalized(self):
        assert SynapseConfig(sqlite_journal_mode="wal").sqlite_journal_mode == "WAL"

    def test_invalid_journal_mode(self):
        with pytest.raises(ValidationError):
            SynapseConfig(sqlite_journal_mode="fast")

    def test_log_level(self):
        cfg = SynapseConfig(log_level="debug")
        assert cfg.log_level == "DEBUG"
        assert cfg.get_log_level() == logging.DEBUG

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            SynapseConfig(log_level="chatty")

    def test_relative_paths_resolve_against_base_dir(self, tmp_path):
        cfg = SynapseConfig(base_dir=tmp_path, data_dir=Path("data"))
        assert cfg.get_data_dir() == tmp_path / "data"
        assert cfg.get_absolute_path(Path("/abs")) == Path("/abs")

    def test_database_path_creates_parent(self, tmp_path):
        cfg = SynapseConfig(base_dir=tmp_path, database_path=Path("nested/dir/kb.db"))
        db_path = cfg.get_database_path()
        assert db_path == tmp_path / "nested" / "dir" / "kb.db"
        assert db_path.parent.is_dir()

    def test_db_url(self, tmp_path):
        cfg = SynapseConfig(base_dir=tmp_path, database_path=Path("kb.db"))
        assert cfg.get_db_url() == f"sqlite:///{tmp_path / 'kb.db'}"
        cfg.in_memory_db = True
        assert cfg.get_db_url() == "sqlite://"


class TestContextFromConfig:
    """Tests for building a ServiceContext from configuration."""

    def test_file_backed(self, test_config):
        with ServiceContext.from_config(test_config) as ctx:
            assert not ctx.db.in_memory
            assert ctx.db.path == test_config.database_path
            assert (test_config.data_dir / "notes").is_dir()
            assert (test_config.data_dir / "attachments").is_dir()

    def test_in_memory(self, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "in_memory_db", True)
        with ServiceContext.from_config(test_config) as ctx:
            assert ctx.db.in_memory
            assert not test_config.database_path.exists()

    def test_no_log_dir_leaves_logging_alone(self, test_config):
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        before = list(root_logger.handlers)
        with ServiceContext.from_config(test_config):
            pass
        assert root_logger.handlers == before


class TestContextLogging:
    """Tests for log settings applied when building a context."""

    @pytest.fixture(autouse=True)
    def restore_handlers(self):
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        saved_handlers = list(root_logger.handlers)
        saved_level = root_logger.level
        yield
        for handler in list(root_logger.handlers):
            if handler not in saved_handlers:
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(saved_level)

    def test_log_dir_and_level_applied(self, test_config, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setattr(test_config, "log_dir", log_dir)
        monkeypatch.setattr(test_config, "log_level", "DEBUG")

        with ServiceContext.from_config(test_config) as ctx:
            ctx.notes.create("Logged", "body")

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert root_logger.level == logging.DEBUG
        file_handlers = [
            h for h in root_logger.handlers if isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        log_file = log_dir / "synapse_kb.log"
        assert log_file.exists()
        assert "Service context ready" in log_file.read_text(encoding="utf-8")
