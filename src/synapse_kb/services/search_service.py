"""Full-text search over notes and blocks."""

import logging
from typing import TYPE_CHECKING, Dict, List

from synapse_kb.models.schema import Block, Note
from synapse_kb.observability import timed_operation
from synapse_kb.utils import ordered_by_ids

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


class SearchService:
    """Runs FTS5 MATCH queries and returns full records.

    The query string is handed to FTS5 unchanged, so phrase, prefix,
    column and boolean syntax all work; a malformed query raises SearchError.
    """

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.fts = ctx.fts_index

    def search_notes(self, query: str, include_deleted: bool = False) -> List[Note]:
        """Notes whose title or body matches, most recently updated first."""
        with timed_operation("search_notes", query=query[:50]) as op:
            ids = self.fts.search_note_ids(query, include_deleted=include_deleted)
            notes = ordered_by_ids(
                ids, self.ctx.note_repository.get_by_ids(ids, include_deleted=True)
            )
            op["result_count"] = len(notes)
        return notes

    def search_blocks(self, query: str, include_deleted: bool = False) -> List[Block]:
        """Blocks whose content matches, in position order."""
        with timed_operation("search_blocks", query=query[:50]) as op:
            ids = self.fts.search_block_ids(query, include_deleted=include_deleted)
            blocks = ordered_by_ids(
                ids, self.ctx.block_repository.get_by_ids(ids, include_deleted=True)
            )
            op["result_count"] = len(blocks)
        return blocks

    def rebuild_index(self) -> Dict[str, int]:
        """Rebuild both full-text tables from rows and body files."""
        with timed_operation("rebuild_index") as op:
            counts = self.fts.rebuild(self.ctx.data_dir)
            op.update(counts)
        logger.info(f"Rebuilt search index: {counts}")
        return counts

    def check_index(self) -> bool:
        return self.fts.integrity_check()
