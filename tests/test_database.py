"""Tests for schema initialization and the Database handle."""

import threading

import pytest
from sqlalchemy import create_engine, delete, select, text
from sqlalchemy.exc import IntegrityError

from synapse_kb.exceptions import (ConflictError, ErrorCode, InvalidInputError,
                                   StorageError)
from synapse_kb.models.db_models import (SCHEMA_VERSION, DBBlock, DBLink, DBNote,
                                         DBTag, get_schema_version,
                                         initialize_schema)
from synapse_kb.models.schema import Block, Note, Tag, utc_now
from synapse_kb.storage.block_repository import BlockRepository
from synapse_kb.storage.database import Database, translate_integrity_error
from synapse_kb.storage.note_repository import NoteRepository
from synapse_kb.storage.tag_repository import TagRepository


def _names(db, kind):
    with db.connection() as conn:
        rows = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = :kind"), {"kind": kind}
        )
        return {row[0] for row in rows}


def _make_note(db, title="Note"):
    note = Note(title=title, content_path="notes/x.md")
    NoteRepository(db.session).create(note)
    return note


class TestSchema:
    """Tests for schema creation."""

    def test_all_tables_created(self, memory_db):
        tables = _names(memory_db, "table")
        for table in (
            "notes", "blocks", "folders", "tags", "links", "attachments",
            "block_references", "note_folders", "note_tags", "note_attachments",
            "block_attachments", "schema_version", "notes_fts", "blocks_fts",
        ):
            assert table in tables

    def test_secondary_indexes_created(self, memory_db):
        indexes = _names(memory_db, "index")
        for index in (
            "idx_notes_updated_at", "idx_blocks_note_id", "idx_blocks_position",
            "idx_folders_parent_id", "idx_attachments_hash", "idx_links_source_note",
            "idx_links_target_note", "idx_links_target_block",
        ):
            assert index in indexes

    def test_fts_triggers_created(self, memory_db):
        triggers = _names(memory_db, "trigger")
        assert {
            "notes_fts_ai", "notes_fts_au", "notes_fts_ad",
            "blocks_fts_ai", "blocks_fts_au", "blocks_fts_ad",
        } <= triggers

    def test_schema_version_marker(self, memory_db):
        assert memory_db.schema_version == SCHEMA_VERSION

    def test_initialize_is_idempotent(self, memory_db):
        """Running initialization again changes nothing."""
        _make_note(memory_db)
        initialize_schema(memory_db.engine)
        initialize_schema(memory_db.engine)

        with memory_db.connection() as conn:
            versions = conn.execute(text("SELECT COUNT(*) FROM schema_version")).scalar()
            notes = conn.execute(text("SELECT COUNT(*) FROM notes")).scalar()
        assert versions == 1
        assert notes == 1

    def test_version_absent_on_uninitialized_store(self):
        engine = create_engine("sqlite://")
        try:
            assert get_schema_version(engine) is None
        finally:
            engine.dispose()

    def test_foreign_keys_enabled(self, memory_db):
        with memory_db.connection() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_hard_delete_cascades_to_blocks(self, memory_db):
        note = _make_note(memory_db)
        BlockRepository(memory_db.session).create(Block(note_id=note.id, content="x"))

        with memory_db.session() as session:
            session.execute(delete(DBNote).where(DBNote.id == note.id))

        with memory_db.session() as session:
            assert session.scalars(select(DBBlock)).all() == []


class TestDatabaseLifecycle:
    """Tests for opening and closing stores."""

    def test_open_creates_file_and_parents(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "kb.db"
        with Database.open(path) as db:
            assert path.exists()
            assert not db.in_memory
            assert db.schema_version == SCHEMA_VERSION

    def test_wal_journal_mode_for_files(self, file_db):
        with file_db.connection() as conn:
            assert conn.execute(text("PRAGMA journal_mode")).scalar().lower() == "wal"

    def test_configured_journal_mode(self, tmp_path):
        with Database.open(tmp_path / "kb.db", journal_mode="DELETE") as db:
            with db.connection() as conn:
                mode = conn.execute(text("PRAGMA journal_mode")).scalar()
        assert mode.lower() == "delete"

    def test_file_store_persists_across_reopen(self, tmp_path):
        path = tmp_path / "kb.db"
        with Database.open(path) as db:
            TagRepository(db.session).create(Tag(name="kept"))
        with Database.open(path) as db:
            assert TagRepository(db.session).get_by_name("kept") is not None

    def test_in_memory_stores_are_independent(self):
        with Database.open_in_memory() as first, Database.open_in_memory() as second:
            TagRepository(first.session).create(Tag(name="only-here"))
            assert TagRepository(second.session).list() == []
            assert first.in_memory

    def test_close_is_idempotent(self):
        db = Database.open_in_memory()
        db.close()
        db.close()

    def test_session_after_close_raises(self):
        db = Database.open_in_memory()
        db.close()
        with pytest.raises(StorageError) as exc_info:
            with db.session():
                pass
        assert exc_info.value.code is ErrorCode.STORAGE_CONNECTION_FAILED


class TestSessions:
    """Tests for transactional sessions and error translation."""

    def test_rollback_on_exception(self, memory_db):
        with pytest.raises(RuntimeError):
            with memory_db.session() as session:
                session.add(DBTag(id="tag-1", name="temp", created_at=utc_now()))
                session.flush()
                raise RuntimeError("abort")

        assert TagRepository(memory_db.session).get_by_id("tag-1") is None

    def test_unique_violation_is_conflict(self, memory_db):
        repo = TagRepository(memory_db.session)
        repo.create(Tag(name="dup"))
        with pytest.raises(ConflictError) as exc_info:
            repo.create(Tag(name="dup"))
        assert exc_info.value.entity == "tags"
        assert exc_info.value.field == "name"
        assert len(repo.list()) == 1

    def test_duplicate_primary_key_is_conflict(self, memory_db):
        repo = TagRepository(memory_db.session)
        repo.create(Tag(id="tag-same", name="one"))
        with pytest.raises(ConflictError):
            repo.create(Tag(id="tag-same", name="two"))

    def test_foreign_key_violation_is_invalid_input(self, memory_db):
        with pytest.raises(InvalidInputError) as exc_info:
            BlockRepository(memory_db.session).create(Block(note_id="note-missing"))
        assert exc_info.value.code is ErrorCode.CONSTRAINT_VIOLATION

    def test_link_target_check_constraint(self, memory_db):
        """A note_link row without a target note is rejected by the store."""
        note = _make_note(memory_db)
        with pytest.raises(InvalidInputError) as exc_info:
            with memory_db.session() as session:
                session.add(
                    DBLink(
                        id="link-bad",
                        source_note_id=note.id,
                        link_type="note_link",
                        created_at=utc_now(),
                    )
                )
        assert exc_info.value.code is ErrorCode.CONSTRAINT_VIOLATION

    def test_translate_integrity_error(self):
        unique = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: attachments.hash"))
        err = translate_integrity_error(unique)
        assert isinstance(err, ConflictError)
        assert (err.entity, err.field) == ("attachments", "hash")

        other = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: notes.title"))
        assert isinstance(translate_integrity_error(other), InvalidInputError)

    def test_sessions_serialized_across_threads(self, memory_db):
        repo = TagRepository(memory_db.session)
        errors = []

        def worker(n):
            try:
                for i in range(10):
                    repo.create(Tag(name=f"t{n}-{i}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(repo.list()) == 40
