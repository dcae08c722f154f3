"""Tests for the tag service."""

import pytest

from synapse_kb.exceptions import (ConflictError, ErrorCode, InvalidInputError,
                                   NotFoundError)


class TestTagCreate:
    """Tests for creating tags."""

    def test_create_with_style(self, ctx):
        tag = ctx.tags.create("project", color="#00ff00", icon="folder")
        assert ctx.tags.get_by_id(tag.id) == tag
        assert ctx.tags.get_by_name("project") == tag

    def test_duplicate_name_conflicts(self, ctx):
        ctx.tags.create("dup")
        with pytest.raises(ConflictError) as exc_info:
            ctx.tags.create("dup")
        assert exc_info.value.code is ErrorCode.TAG_NAME_EXISTS
        assert [t.name for t in ctx.tags.list()] == ["dup"]

    def test_names_are_case_sensitive(self, ctx):
        ctx.tags.create("Idea")
        ctx.tags.create("idea")
        assert len(ctx.tags.list()) == 2

    def test_blank_name(self, ctx):
        with pytest.raises(InvalidInputError):
            ctx.tags.create("")


class TestTagUpdate:
    """Tests for updating tags."""

    def test_rename(self, ctx):
        tag = ctx.tags.create("old")
        tag.name = "new"
        ctx.tags.update(tag)
        assert ctx.tags.get_by_name("new").id == tag.id
        assert ctx.tags.get_by_name("old") is None

    def test_keep_own_name(self, ctx):
        tag = ctx.tags.create("same")
        tag.color = "red"
        ctx.tags.update(tag)
        assert ctx.tags.get_by_id(tag.id).color == "red"

    def test_rename_onto_existing_conflicts(self, ctx):
        ctx.tags.create("taken")
        tag = ctx.tags.create("free")
        tag.name = "taken"
        with pytest.raises(ConflictError):
            ctx.tags.update(tag)

    def test_update_missing(self, ctx):
        tag = ctx.tags.create("x")
        ctx.tags.delete(tag.id)
        with pytest.raises(NotFoundError):
            ctx.tags.update(tag)


class TestTagDelete:
    """Tests for hard-deleting tags."""

    def test_delete_removes_from_notes(self, ctx):
        tag = ctx.tags.create("temp")
        note = ctx.notes.create("Tagged", "")
        ctx.notes.add_tag(note.id, tag.id)

        ctx.tags.delete(tag.id)
        assert ctx.tags.get_by_id(tag.id) is None
        assert ctx.notes.get_tags(note.id) == []

    def test_delete_missing(self, ctx):
        with pytest.raises(NotFoundError) as exc_info:
            ctx.tags.delete("tag-missing")
        assert exc_info.value.code is ErrorCode.TAG_NOT_FOUND


class TestTagNotes:
    """Tests for notes carrying a tag."""

    def test_get_notes_skips_deleted(self, ctx):
        tag = ctx.tags.create("t")
        kept = ctx.notes.create("Kept", "")
        gone = ctx.notes.create("Gone", "")
        ctx.notes.add_tag(kept.id, tag.id)
        ctx.notes.add_tag(gone.id, tag.id)
        ctx.notes.delete(gone.id)
        assert [n.id for n in ctx.tags.get_notes(tag.id)] == [kept.id]

    def test_counts(self, ctx):
        used = ctx.tags.create("used")
        ctx.tags.create("idle")
        for title in ("a", "b"):
            ctx.notes.add_tag(ctx.notes.create(title, "").id, used.id)
        assert ctx.tags.get_with_counts() == {"used": 2, "idle": 0}
