"""FTS5 full-text search over notes and blocks.

Queries are passed to FTS5 verbatim; the caller owns the MATCH syntax and
a malformed query surfaces as a SearchError.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, List

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from synapse_kb.exceptions import ErrorCode, SearchError, StorageError
from synapse_kb.models.db_models import rebuild_fts_index

logger = logging.getLogger(__name__)

# Precompiled variants, selected by the include_deleted flag
_NOTE_QUERIES = {
    True: text("""
        SELECT n.id
        FROM notes_fts
        JOIN notes n ON n.id = notes_fts.note_id
        WHERE notes_fts MATCH :query
        ORDER BY n.updated_at DESC, n.rowid DESC
    """),
    False: text("""
        SELECT n.id
        FROM notes_fts
        JOIN notes n ON n.id = notes_fts.note_id
        WHERE notes_fts MATCH :query AND n.is_deleted = 0
        ORDER BY n.updated_at DESC, n.rowid DESC
    """),
}

_BLOCK_QUERIES = {
    True: text("""
        SELECT b.id
        FROM blocks_fts
        JOIN blocks b ON b.rowid = blocks_fts.rowid
        WHERE blocks_fts MATCH :query
        ORDER BY b.position, b.rowid
    """),
    False: text("""
        SELECT b.id
        FROM blocks_fts
        JOIN blocks b ON b.rowid = blocks_fts.rowid
        WHERE blocks_fts MATCH :query AND b.is_deleted = 0
        ORDER BY b.position, b.rowid
    """),
}


class FtsIndex:
    """Queries the notes and blocks FTS5 tables.

    Args:
        session_factory: Callable returning a context-manager session.
        connection_factory: Callable returning a context-manager connection,
            used for index rebuilds.
    """

    def __init__(self, session_factory: Callable, connection_factory: Callable) -> None:
        self._session_factory = session_factory
        self._connection_factory = connection_factory

    def search_note_ids(self, query: str, include_deleted: bool = False) -> List[str]:
        """Ids of notes whose title or body matches, most recently updated first."""
        return self._match(_NOTE_QUERIES[include_deleted], query)

    def search_block_ids(self, query: str, include_deleted: bool = False) -> List[str]:
        """Ids of blocks whose content matches, in position order."""
        return self._match(_BLOCK_QUERIES[include_deleted], query)

    def _match(self, sql, query: str) -> List[str]:
        with self._session_factory() as session:
            try:
                return [row[0] for row in session.execute(sql, {"query": query})]
            except OperationalError as e:
                logger.warning(f"FTS5 rejected query '{query}': {e}")
                raise SearchError(
                    f"Invalid full-text query: {e.orig or e}",
                    query=query,
                    code=ErrorCode.SEARCH_INVALID_QUERY,
                    original_error=e,
                ) from e

    def rebuild(self, data_dir: Path) -> Dict[str, int]:
        """Rebuild both FTS5 tables from the base tables and body files."""
        with self._connection_factory() as conn:
            return rebuild_fts_index(conn, data_dir)

    def integrity_check(self) -> bool:
        """Run FTS5's integrity check on both tables."""
        try:
            with self._session_factory() as session:
                session.execute(
                    text("INSERT INTO notes_fts(notes_fts) VALUES('integrity-check')")
                )
                session.execute(
                    text("INSERT INTO blocks_fts(blocks_fts) VALUES('integrity-check')")
                )
            return True
        except StorageError as e:
            logger.error(f"FTS5 integrity check failed: {e}")
            return False
