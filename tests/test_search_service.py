"""Tests for full-text search over notes and blocks."""

import pytest
from sqlalchemy import text

from synapse_kb.exceptions import ErrorCode, SearchError
from synapse_kb.models.schema import Note


class TestNoteSearch:
    """Tests for note search."""

    def test_quarterly_report_and_soft_delete(self, ctx):
        note = ctx.notes.create("Quarterly Report", "numbers go here")
        assert [n.id for n in ctx.search.search_notes("Quarterly")] == [note.id]

        ctx.notes.delete(note.id)
        assert ctx.search.search_notes("Quarterly") == []
        found = ctx.search.search_notes("Quarterly", include_deleted=True)
        assert [n.id for n in found] == [note.id]
        assert found[0].is_deleted

    def test_returns_full_records(self, ctx):
        note = ctx.notes.create("Recipe", "flour water salt")
        results = ctx.search.search_notes("flour")
        assert results == [note]
        assert isinstance(results[0], Note)

    def test_body_text_is_indexed(self, ctx):
        note = ctx.notes.create("Walk", "we saw a zebra crossing")
        assert [n.id for n in ctx.search.search_notes("zebra")] == [note.id]

    def test_content_update_reindexes(self, ctx):
        note = ctx.notes.create("Pet", "a quiet cat")
        ctx.notes.update_content(note.id, "a loud parrot")
        assert ctx.search.search_notes("cat") == []
        assert [n.id for n in ctx.search.search_notes("parrot")] == [note.id]

    def test_title_update_reindexes(self, ctx):
        note = ctx.notes.create("Draft", "")
        ctx.notes.update_title(note.id, "Annual Summary")
        assert ctx.search.search_notes("Draft") == []
        assert [n.id for n in ctx.search.search_notes("annual")] == [note.id]

    def test_most_recent_first(self, ctx):
        older = ctx.notes.create("Common one", "")
        newer = ctx.notes.create("Common two", "")
        assert [n.id for n in ctx.search.search_notes("common")] == [newer.id, older.id]

    def test_query_syntax_passed_through(self, ctx):
        note = ctx.notes.create("Quarterly Report", "budget")
        ctx.notes.create("Report card", "grades")
        assert [n.id for n in ctx.search.search_notes("quart*")] == [note.id]
        assert [n.id for n in ctx.search.search_notes('"quarterly report"')] == [note.id]
        assert [n.id for n in ctx.search.search_notes("title:quarterly")] == [note.id]
        assert len(ctx.search.search_notes("report")) == 2

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_raises(self, ctx, query):
        ctx.notes.create("Anything", "")
        with pytest.raises(SearchError) as exc_info:
            ctx.search.search_notes(query)
        assert exc_info.value.code is ErrorCode.SEARCH_INVALID_QUERY
        with pytest.raises(SearchError):
            ctx.search.search_blocks(query)

    def test_malformed_query_raises(self, ctx):
        ctx.notes.create("Anything", "")
        with pytest.raises(SearchError) as exc_info:
            ctx.search.search_notes('"unbalanced')
        assert exc_info.value.code is ErrorCode.SEARCH_INVALID_QUERY
        assert exc_info.value.query == '"unbalanced'


class TestBlockSearch:
    """Tests for block search."""

    def test_position_order_and_soft_delete(self, ctx):
        note = ctx.notes.create("Blocks", "")
        later = ctx.blocks.create(note.id, "paragraph", "needle two", 3)
        earlier = ctx.blocks.create(note.id, "paragraph", "needle one", 1)
        ctx.blocks.create(note.id, "paragraph", "haystack", 2)

        assert [b.id for b in ctx.search.search_blocks("needle")] == [earlier.id, later.id]

        ctx.blocks.delete(earlier.id)
        assert [b.id for b in ctx.search.search_blocks("needle")] == [later.id]
        assert len(ctx.search.search_blocks("needle", include_deleted=True)) == 2

    def test_content_update_reindexes(self, ctx):
        note = ctx.notes.create("Blocks", "")
        block = ctx.blocks.create(note.id, "paragraph", "apples", 0)
        ctx.blocks.update_content(block.id, "oranges")
        assert ctx.search.search_blocks("apples") == []
        assert [b.id for b in ctx.search.search_blocks("oranges")] == [block.id]

    def test_malformed_query_raises(self, ctx):
        with pytest.raises(SearchError):
            ctx.search.search_blocks("AND")


class TestIndexMaintenance:
    """Tests for index rebuild and integrity check."""

    def test_integrity_check(self, ctx):
        note = ctx.notes.create("Checked", "body")
        ctx.blocks.create(note.id, "paragraph", "text", 0)
        assert ctx.search.check_index() is True

    def test_rebuild_restores_lost_entries(self, ctx):
        note = ctx.notes.create("Rebuilt", "from the body file")
        ctx.blocks.create(note.id, "paragraph", "block words", 0)
        with ctx.db.connection() as conn:
            conn.execute(text("DELETE FROM notes_fts"))
        assert ctx.search.search_notes("body") == []

        counts = ctx.search.rebuild_index()
        assert counts == {"notes": 1, "blocks": 1}
        assert [n.id for n in ctx.search.search_notes("body")] == [note.id]
        assert [n.id for n in ctx.search.search_notes("Rebuilt")] == [note.id]
        assert len(ctx.search.search_blocks("words")) == 1

    def test_rebuild_with_missing_body_indexes_title(self, ctx):
        note = ctx.notes.create("Titled", "vanishing text")
        (ctx.data_dir / note.content_path).unlink()
        ctx.search.rebuild_index()
        assert ctx.search.search_notes("vanishing") == []
        assert [n.id for n in ctx.search.search_notes("Titled")] == [note.id]
