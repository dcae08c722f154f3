"""Tests for the service context."""

import pytest

from synapse_kb.exceptions import ConfigurationError, StorageError
from synapse_kb.services.context import ServiceContext


class TestServiceContext:
    """Tests for context construction and lifecycle."""

    def test_creates_data_subdirectories(self, tmp_path):
        data_dir = tmp_path / "fresh"
        with ServiceContext.in_memory(data_dir) as ctx:
            assert ctx.notes_dir == data_dir / "notes"
            assert ctx.notes_dir.is_dir()
            assert ctx.attachments_dir.is_dir()
            assert ctx.db.in_memory

    def test_data_dir_must_be_a_directory(self, tmp_path):
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("x")
        with pytest.raises(ConfigurationError):
            ServiceContext.in_memory(not_a_dir)

    def test_in_memory_contexts_are_independent(self, tmp_path):
        with ServiceContext.in_memory(tmp_path / "one") as one, ServiceContext.in_memory(
            tmp_path / "two"
        ) as two:
            one.tags.create("only-in-one")
            assert two.tags.list() == []

    def test_file_store_survives_reopen(self, temp_dirs):
        data_dir, db_dir = temp_dirs
        db_path = db_dir / "kb.db"
        with ServiceContext(db_path, data_dir) as ctx:
            a = ctx.notes.create("Intro", "hello world")
            b = ctx.notes.create("Next", "")
            link = ctx.links.create_note_link(a.id, b.id, link_text="see next")
            folder = ctx.folders.create("Inbox")
            ctx.notes.add_to_folder(a.id, folder.id, is_primary=True)

        with ServiceContext(db_path, data_dir) as ctx:
            assert ctx.notes.get_by_id(a.id).content == "hello world"
            assert ctx.links.get_outgoing_links(a.id) == [link]
            assert ctx.notes.get_primary_folder(a.id).id == folder.id
            assert [n.id for n in ctx.search.search_notes("hello")] == [a.id]

    def test_use_after_close_raises(self, temp_dirs):
        data_dir, _ = temp_dirs
        ctx = ServiceContext.in_memory(data_dir)
        ctx.close()
        with pytest.raises(StorageError):
            ctx.notes.list()

    def test_file_context_fixture(self, file_ctx):
        note = file_ctx.notes.create("On disk", "body")
        assert file_ctx.db.path.exists()
        assert file_ctx.notes.get_by_id(note.id).content == "body"
