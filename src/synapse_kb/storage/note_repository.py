"""Repository for note rows."""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import literal_column, select, text, update

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.db_models import DBNote, note_folders
from synapse_kb.models.schema import Note, utc_now
from synapse_kb.storage.base import SoftDeleteRepository
from synapse_kb.utils import escape_like_pattern

logger = logging.getLogger(__name__)

_SET_FTS_CONTENT = text("UPDATE notes_fts SET content = :content WHERE note_id = :id")


def _visible(stmt, include_deleted: bool):
    """Restrict a note query to active rows unless deleted ones are wanted."""
    if include_deleted:
        return stmt
    return stmt.where(DBNote.is_deleted.is_(False))


# Most recently updated first, later inserts first on ties
_RECENT_FIRST = (DBNote.updated_at.desc(), literal_column("notes.rowid").desc())


class NoteRepository(SoftDeleteRepository[Note]):
    """Note rows and the body text held in the notes full-text index.

    Body text itself lives on disk; the service passes it in whenever it
    changes so the index is updated in the same transaction as the row.
    """

    def __init__(self, session_factory):
        """Initialize the note repository.

        Args:
            session_factory: Callable returning a transactional session context.
        """
        self.session_factory = session_factory

    def create(self, note: Note, content: str = "") -> Note:
        with self.session_factory() as session:
            session.add(
                DBNote(
                    id=note.id,
                    title=note.title,
                    content_path=note.content_path,
                    created_at=note.created_at,
                    updated_at=note.updated_at,
                    word_count=note.word_count,
                    is_deleted=note.is_deleted,
                    deleted_at=note.deleted_at,
                )
            )
            # Flush so the insert trigger has created the index row
            session.flush()
            if content:
                session.execute(_SET_FTS_CONTENT, {"id": note.id, "content": content})
            session.commit()
        logger.debug(f"Created note row {note.id}")
        return note

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Note]:
        with self.session_factory() as session:
            stmt = _visible(select(DBNote).where(DBNote.id == id), include_deleted)
            db_note = session.scalar(stmt)
            return self._db_to_model(db_note) if db_note else None

    def get_by_ids(
        self, ids: Sequence[str], include_deleted: bool = False
    ) -> List[Note]:
        """Fetch several notes, ordered most recently updated first."""
        if not ids:
            return []
        with self.session_factory() as session:
            stmt = _visible(
                select(DBNote).where(DBNote.id.in_(list(ids))), include_deleted
            )
            rows = session.scalars(stmt.order_by(*_RECENT_FIRST)).all()
            return [self._db_to_model(r) for r in rows]

    def exists(self, id: str, include_deleted: bool = False) -> bool:
        with self.session_factory() as session:
            stmt = _visible(select(DBNote.id).where(DBNote.id == id), include_deleted)
            return session.scalar(stmt) is not None

    def list(self, include_deleted: bool = False) -> List[Note]:
        with self.session_factory() as session:
            stmt = _visible(select(DBNote), include_deleted).order_by(*_RECENT_FIRST)
            return [self._db_to_model(r) for r in session.scalars(stmt).all()]

    def search_by_title(self, query: str, include_deleted: bool = False) -> List[Note]:
        """Substring match on title, case-insensitive for ASCII."""
        pattern = f"%{escape_like_pattern(query)}%"
        with self.session_factory() as session:
            stmt = _visible(
                select(DBNote).where(DBNote.title.like(pattern, escape="\\")),
                include_deleted,
            ).order_by(*_RECENT_FIRST)
            return [self._db_to_model(r) for r in session.scalars(stmt).all()]

    def get_by_folder(self, folder_id: str, include_deleted: bool = False) -> List[Note]:
        """Notes in a folder, by membership position then recency."""
        with self.session_factory() as session:
            stmt = (
                select(DBNote)
                .join(note_folders, note_folders.c.note_id == DBNote.id)
                .where(note_folders.c.folder_id == folder_id)
            )
            stmt = _visible(stmt, include_deleted).order_by(
                note_folders.c.position, *_RECENT_FIRST
            )
            return [self._db_to_model(r) for r in session.scalars(stmt).all()]

    def update(self, note: Note, content: Optional[str] = None) -> Note:
        """Overwrite the row; refresh indexed body text when ``content`` is given."""
        with self.session_factory() as session:
            db_note = session.get(DBNote, note.id)
            if db_note is None:
                raise NotFoundError("note", note.id)

            db_note.title = note.title
            db_note.content_path = note.content_path
            db_note.created_at = note.created_at
            db_note.updated_at = note.updated_at
            db_note.word_count = note.word_count
            db_note.is_deleted = note.is_deleted
            db_note.deleted_at = note.deleted_at
            session.flush()

            if content is not None:
                session.execute(_SET_FTS_CONTENT, {"id": note.id, "content": content})
            session.commit()
        logger.debug(f"Updated note row {note.id}")
        return note

    def soft_delete(self, id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(DBNote)
                .where(DBNote.id == id, DBNote.is_deleted.is_(False))
                .values(is_deleted=True, deleted_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount > 0

    def restore(self, id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(DBNote)
                .where(DBNote.id == id, DBNote.is_deleted.is_(True))
                .values(is_deleted=False, deleted_at=None)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_note: DBNote) -> Note:
        """Convert DBNote to Note model."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            content_path=db_note.content_path,
            created_at=db_note.created_at,
            updated_at=db_note.updated_at,
            word_count=db_note.word_count,
            is_deleted=db_note.is_deleted,
            deleted_at=db_note.deleted_at,
        )
