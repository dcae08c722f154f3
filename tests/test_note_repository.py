"""Tests for the note repository."""

import datetime

import pytest
from sqlalchemy import text

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.schema import Folder, Note
from synapse_kb.storage.folder_repository import FolderRepository
from synapse_kb.storage.note_repository import NoteRepository
from synapse_kb.storage.relation_repository import NoteFolderRepository

T0 = datetime.datetime(2024, 1, 1, 9, 0, tzinfo=datetime.timezone.utc)


def _note(title, minutes=0, **kwargs):
    stamp = T0 + datetime.timedelta(minutes=minutes)
    return Note(
        title=title,
        content_path=f"notes/{title.lower().replace(' ', '-')}.md",
        created_at=stamp,
        updated_at=stamp,
        **kwargs,
    )


@pytest.fixture
def repo(memory_db):
    return NoteRepository(memory_db.session)


class TestNoteCreateAndRead:
    """Tests for inserting and reading note rows."""

    def test_create_and_get(self, repo):
        note = repo.create(_note("Intro", word_count=2))
        fetched = repo.get_by_id(note.id)
        assert fetched == note

    def test_timestamps_round_trip_as_utc(self, repo):
        note = repo.create(_note("Stamp"))
        fetched = repo.get_by_id(note.id)
        assert fetched.created_at == T0
        assert fetched.created_at.tzinfo is not None

    def test_get_missing_returns_none(self, repo):
        assert repo.get_by_id("note-missing") is None

    def test_list_most_recent_first(self, repo):
        older = repo.create(_note("Older", minutes=0))
        newer = repo.create(_note("Newer", minutes=5))
        assert [n.id for n in repo.list()] == [newer.id, older.id]

    def test_ties_list_later_inserts_first(self, repo):
        first = repo.create(_note("First"))
        second = repo.create(_note("Second"))
        assert [n.id for n in repo.list()] == [second.id, first.id]

    def test_get_by_ids(self, repo):
        a = repo.create(_note("A", minutes=1))
        b = repo.create(_note("B", minutes=2))
        repo.create(_note("C", minutes=3))
        assert [n.id for n in repo.get_by_ids([a.id, b.id])] == [b.id, a.id]
        assert repo.get_by_ids([]) == []

    def test_exists(self, repo):
        note = repo.create(_note("Here"))
        assert repo.exists(note.id)
        assert not repo.exists("note-gone")


class TestSearchByTitle:
    """Tests for title substring search."""

    def test_case_insensitive_substring(self, repo):
        note = repo.create(_note("Quarterly Report"))
        repo.create(_note("Shopping"))
        assert [n.id for n in repo.search_by_title("quarter")] == [note.id]

    def test_wildcards_are_literal(self, repo):
        repo.create(_note("Progress 100%"))
        repo.create(_note("Progress 1000"))
        assert [n.title for n in repo.search_by_title("100%")] == ["Progress 100%"]

    def test_underscore_is_literal(self, repo):
        repo.create(_note("file_name"))
        repo.create(_note("fileXname"))
        assert [n.title for n in repo.search_by_title("file_")] == ["file_name"]

    def test_deleted_excluded_unless_asked(self, repo):
        note = repo.create(_note("Archived Plan"))
        repo.soft_delete(note.id)
        assert repo.search_by_title("Plan") == []
        assert [n.id for n in repo.search_by_title("Plan", include_deleted=True)] == [
            note.id
        ]


class TestUpdate:
    """Tests for full-row overwrite."""

    def test_update_overwrites_row(self, repo):
        note = repo.create(_note("Draft"))
        note.title = "Final"
        note.word_count = 7
        repo.update(note)
        fetched = repo.get_by_id(note.id)
        assert fetched.title == "Final"
        assert fetched.word_count == 7

    def test_update_missing_raises(self, repo):
        with pytest.raises(NotFoundError):
            repo.update(_note("Ghost"))

    def test_update_refreshes_indexed_title_and_body(self, repo, memory_db):
        note = repo.create(_note("Alpha"), content="first body")
        note.title = "Beta"
        repo.update(note, content="second body")

        with memory_db.connection() as conn:
            row = conn.execute(
                text("SELECT title, content FROM notes_fts WHERE note_id = :id"),
                {"id": note.id},
            ).one()
        assert tuple(row) == ("Beta", "second body")


class TestSoftDelete:
    """Tests for soft delete and restore."""

    def test_soft_delete_hides_note(self, repo):
        note = repo.create(_note("Temp"))
        assert repo.soft_delete(note.id) is True
        assert repo.get_by_id(note.id) is None

        deleted = repo.get_by_id(note.id, include_deleted=True)
        assert deleted.is_deleted
        assert deleted.deleted_at is not None

    def test_soft_delete_twice_reports_no_change(self, repo):
        note = repo.create(_note("Temp"))
        repo.soft_delete(note.id)
        assert repo.soft_delete(note.id) is False

    def test_restore_clears_flag_and_timestamp(self, repo):
        note = repo.create(_note("Temp"))
        repo.soft_delete(note.id)
        assert repo.restore(note.id) is True
        assert repo.get_by_id(note.id) == note

    def test_restore_active_note_reports_no_change(self, repo):
        note = repo.create(_note("Temp"))
        assert repo.restore(note.id) is False

    def test_list_include_deleted(self, repo):
        keep = repo.create(_note("Keep"))
        gone = repo.create(_note("Gone"))
        repo.soft_delete(gone.id)
        assert [n.id for n in repo.list()] == [keep.id]
        assert {n.id for n in repo.list(include_deleted=True)} == {keep.id, gone.id}


class TestGetByFolder:
    """Tests for listing notes through folder membership."""

    def test_ordered_by_position(self, repo, memory_db):
        folder = FolderRepository(memory_db.session).create(Folder(name="F", path="/F"))
        memberships = NoteFolderRepository(memory_db.session)
        a = repo.create(_note("A", minutes=10))
        b = repo.create(_note("B", minutes=0))
        memberships.add(a.id, folder.id, position=2)
        memberships.add(b.id, folder.id, position=1)

        assert [n.id for n in repo.get_by_folder(folder.id)] == [b.id, a.id]

    def test_deleted_members_hidden(self, repo, memory_db):
        folder = FolderRepository(memory_db.session).create(Folder(name="F", path="/F"))
        note = repo.create(_note("A"))
        NoteFolderRepository(memory_db.session).add(note.id, folder.id)
        repo.soft_delete(note.id)
        assert repo.get_by_folder(folder.id) == []
        assert len(repo.get_by_folder(folder.id, include_deleted=True)) == 1
