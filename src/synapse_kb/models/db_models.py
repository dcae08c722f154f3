"""SQLAlchemy database models for the Synapse knowledge base."""
import datetime
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from sqlalchemy import (Boolean, CheckConstraint, Column, ForeignKey, Index,
                        Integer, String, Table, Text, create_engine, event, text)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from synapse_kb.exceptions import ErrorCode, StorageError
from synapse_kb.models.schema import ensure_timezone_aware

logger = logging.getLogger(__name__)

# Bumped whenever the table layout changes
SCHEMA_VERSION = 1

# Create base class for SQLAlchemy models
Base = declarative_base()


class UnixTimestamp(TypeDecorator):
    """Timezone-aware UTC datetimes stored as INTEGER unix seconds."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, int):
            return value
        return int(ensure_timezone_aware(value).timestamp())

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return datetime.datetime.fromtimestamp(value, datetime.timezone.utc)


class DBNote(Base):
    """Database model for a note. The body lives on disk at content_path."""
    __tablename__ = "notes"
    id = Column(String(255), primary_key=True)
    title = Column(Text, nullable=False)
    content_path = Column(Text, nullable=False)
    created_at = Column(UnixTimestamp, nullable=False)
    updated_at = Column(UnixTimestamp, nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(UnixTimestamp, nullable=True)

    __table_args__ = (
        Index("idx_notes_updated_at", "updated_at"),
        Index("idx_notes_is_deleted", "is_deleted"),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}')>"


class DBBlock(Base):
    """Database model for a content block."""
    __tablename__ = "blocks"
    id = Column(String(255), primary_key=True)
    note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    block_type = Column(String(50), nullable=False)
    content = Column(Text, nullable=False, default="")
    position = Column(Integer, nullable=False)
    created_at = Column(UnixTimestamp, nullable=False)
    updated_at = Column(UnixTimestamp, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(UnixTimestamp, nullable=True)

    __table_args__ = (
        Index("idx_blocks_note_id", "note_id"),
        Index("idx_blocks_position", "note_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<Block(id='{self.id}', note='{self.note_id}', pos={self.position})>"


class DBFolder(Base):
    """Database model for a folder."""
    __tablename__ = "folders"
    id = Column(String(255), primary_key=True)
    name = Column(Text, nullable=False)
    parent_id = Column(
        String(255), ForeignKey("folders.id", ondelete="CASCADE"), nullable=True
    )
    path = Column(Text, nullable=False)
    created_at = Column(UnixTimestamp, nullable=False)
    updated_at = Column(UnixTimestamp, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_folders_parent_id", "parent_id"),
        Index("idx_folders_path", "path"),
    )

    def __repr__(self) -> str:
        return f"<Folder(id='{self.id}', path='{self.path}')>"


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(String(255), primary_key=True)
    name = Column(Text, unique=True, nullable=False)
    color = Column(Text, nullable=True)
    icon = Column(Text, nullable=True)
    created_at = Column(UnixTimestamp, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id='{self.id}', name='{self.name}')>"


class DBLink(Base):
    """Database model for a link from a note to a note or block."""
    __tablename__ = "links"
    id = Column(String(255), primary_key=True)
    source_note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    target_note_id = Column(
        String(255), ForeignKey("notes.id", ondelete="CASCADE"), nullable=True
    )
    source_block_id = Column(
        String(255), ForeignKey("blocks.id", ondelete="CASCADE"), nullable=True
    )
    target_block_id = Column(
        String(255), ForeignKey("blocks.id", ondelete="CASCADE"), nullable=True
    )
    link_type = Column(String(50), nullable=False)
    link_text = Column(Text, nullable=True)
    created_at = Column(UnixTimestamp, nullable=False)

    # The populated target must agree with the link type
    __table_args__ = (
        CheckConstraint(
            "(link_type = 'note_link' AND target_note_id IS NOT NULL) OR "
            "(link_type = 'block_reference' AND target_block_id IS NOT NULL) OR "
            "(link_type = 'database_relation' AND target_note_id IS NOT NULL)",
            name="ck_links_target",
        ),
        Index("idx_links_source_note", "source_note_id"),
        Index("idx_links_target_note", "target_note_id"),
        Index("idx_links_source_block", "source_block_id"),
        Index("idx_links_target_block", "target_block_id"),
    )

    def __repr__(self) -> str:
        """Return string representation of link."""
        target = self.target_block_id or self.target_note_id
        return (
            f"<Link(id='{self.id}', source='{self.source_note_id}', "
            f"target='{target}', type='{self.link_type}')>"
        )


class DBAttachment(Base):
    """Database model for an attachment payload."""
    __tablename__ = "attachments"
    id = Column(String(255), primary_key=True)
    file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    file_type = Column(String(50), nullable=False)
    mime_type = Column(Text, nullable=True)
    file_size = Column(Integer, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    hash = Column(String(64), unique=True, nullable=False)
    created_at = Column(UnixTimestamp, nullable=False)
    updated_at = Column(UnixTimestamp, nullable=False)

    __table_args__ = (Index("idx_attachments_hash", "hash"),)

    def __repr__(self) -> str:
        return f"<Attachment(id='{self.id}', file='{self.file_name}')>"


class DBBlockReference(Base):
    """Database model for a block-to-block reference."""
    __tablename__ = "block_references"
    id = Column(String(255), primary_key=True)
    source_block_id = Column(
        String(255), ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False
    )
    target_block_id = Column(
        String(255), ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(UnixTimestamp, nullable=False)

    __table_args__ = (
        Index("idx_block_refs_source", "source_block_id"),
        Index("idx_block_refs_target", "target_block_id"),
    )


# Association tables
note_folders = Table(
    "note_folders",
    Base.metadata,
    Column("note_id", String(255), ForeignKey("notes.id", ondelete="CASCADE"),
           primary_key=True),
    Column("folder_id", String(255), ForeignKey("folders.id", ondelete="CASCADE"),
           primary_key=True),
    Column("is_primary", Boolean, nullable=False, default=False),
    Column("position", Integer, nullable=False, default=0),
    Column("created_at", UnixTimestamp, nullable=False),
    Index("idx_note_folders_folder", "folder_id"),
)

note_tags = Table(
    "note_tags",
    Base.metadata,
    Column("note_id", String(255), ForeignKey("notes.id", ondelete="CASCADE"),
           primary_key=True),
    Column("tag_id", String(255), ForeignKey("tags.id", ondelete="CASCADE"),
           primary_key=True),
    Column("created_at", UnixTimestamp, nullable=False),
    Index("idx_note_tags_tag", "tag_id"),
)

note_attachments = Table(
    "note_attachments",
    Base.metadata,
    Column("note_id", String(255), ForeignKey("notes.id", ondelete="CASCADE"),
           primary_key=True),
    Column("attachment_id", String(255),
           ForeignKey("attachments.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, nullable=False, default=0),
    Column("created_at", UnixTimestamp, nullable=False),
    Index("idx_note_attachments_attachment", "attachment_id"),
)

block_attachments = Table(
    "block_attachments",
    Base.metadata,
    Column("block_id", String(255), ForeignKey("blocks.id", ondelete="CASCADE"),
           primary_key=True),
    Column("attachment_id", String(255),
           ForeignKey("attachments.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", UnixTimestamp, nullable=False),
    Index("idx_block_attachments_attachment", "attachment_id"),
)

schema_version = Table(
    "schema_version",
    Base.metadata,
    Column("version", Integer, primary_key=True),
)


# Full-text shadow tables. notes_fts is keyed by note id because the body
# text is not a column of notes; blocks_fts mirrors blocks.content directly.
_FTS_DDL = [
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
        note_id UNINDEXED,
        title,
        content
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS notes_fts_ai AFTER INSERT ON notes BEGIN
        INSERT INTO notes_fts(note_id, title, content)
        VALUES (NEW.id, NEW.title, '');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS notes_fts_au AFTER UPDATE OF title ON notes BEGIN
        UPDATE notes_fts SET title = NEW.title WHERE note_id = NEW.id;
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS notes_fts_ad AFTER DELETE ON notes BEGIN
        DELETE FROM notes_fts WHERE note_id = OLD.id;
    END
    """,
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS blocks_fts USING fts5(
        id UNINDEXED,
        content,
        content='blocks',
        content_rowid='rowid'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS blocks_fts_ai AFTER INSERT ON blocks BEGIN
        INSERT INTO blocks_fts(rowid, id, content)
        VALUES (NEW.rowid, NEW.id, NEW.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS blocks_fts_ad AFTER DELETE ON blocks BEGIN
        INSERT INTO blocks_fts(blocks_fts, rowid, id, content)
        VALUES ('delete', OLD.rowid, OLD.id, OLD.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS blocks_fts_au AFTER UPDATE ON blocks BEGIN
        INSERT INTO blocks_fts(blocks_fts, rowid, id, content)
        VALUES ('delete', OLD.rowid, OLD.id, OLD.content);
        INSERT INTO blocks_fts(rowid, id, content)
        VALUES (NEW.rowid, NEW.id, NEW.content);
    END
    """,
]


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


def create_db_engine(database_url: str, journal_mode: str = "WAL") -> Engine:
    """Create an engine owning exactly one SQLite connection.

    Foreign keys are switched on for the connection lifetime so relation
    rows cascade when their parent is hard-deleted.
    """
    engine = create_engine(
        database_url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    in_memory = _is_memory_url(database_url)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute(f"PRAGMA journal_mode={journal_mode}")
            if journal_mode == "WAL":
                # NORMAL sync: flush WAL to disk at critical moments
                cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def init_db(database_url: str, journal_mode: str = "WAL") -> Engine:
    """Create the engine and bring the schema up to date.

    Args:
        database_url: SQLAlchemy URL, ``sqlite://`` for a transient store.
        journal_mode: SQLite journal mode for file-backed stores.

    Returns:
        The initialized engine.

    Raises:
        StorageError: If the store cannot be opened or any DDL fails.
    """
    try:
        engine = create_db_engine(database_url, journal_mode)
    except SQLAlchemyError as e:
        raise StorageError(
            f"Failed to open database: {e}",
            operation="open",
            code=ErrorCode.STORAGE_CONNECTION_FAILED,
            original_error=e,
        ) from e
    initialize_schema(engine)
    return engine


def initialize_schema(engine: Engine) -> None:
    """Create all tables, indexes, FTS5 tables and triggers.

    Safe to call repeatedly. The schema version marker is written last.
    """
    try:
        Base.metadata.create_all(engine)
        with engine.begin() as conn:
            for ddl in _FTS_DDL:
                conn.execute(text(ddl))
            conn.execute(
                text("INSERT OR REPLACE INTO schema_version (version) VALUES (:v)"),
                {"v": SCHEMA_VERSION},
            )
    except SQLAlchemyError as e:
        logger.error(f"Schema initialization failed: {e}")
        raise StorageError(
            f"Schema initialization failed: {e}",
            operation="initialize_schema",
            code=ErrorCode.SCHEMA_INIT_FAILED,
            original_error=e,
        ) from e
    logger.info(f"Schema initialized (version {SCHEMA_VERSION})")


def get_schema_version(bind: Union[Engine, Connection]) -> Optional[int]:
    """Read the schema version marker, None if the store was never initialized."""
    sql = text("SELECT MAX(version) FROM schema_version")
    try:
        if isinstance(bind, Connection):
            return bind.execute(sql).scalar()
        with bind.connect() as conn:
            return conn.execute(sql).scalar()
    except SQLAlchemyError:
        # Table missing
        return None


def rebuild_fts_index(
    bind: Union[Engine, Connection], data_dir: Path
) -> Dict[str, int]:
    """Rebuild both FTS5 tables from the base tables and note body files.

    Useful after restoring a database copy or when FTS gets out of sync.

    Args:
        bind: Engine or open connection to run on.
        data_dir: Directory that note ``content_path`` values are relative to.

    Returns:
        Number of notes and blocks indexed.
    """
    if isinstance(bind, Connection):
        return _rebuild(bind, Path(data_dir))
    with bind.begin() as conn:
        return _rebuild(conn, Path(data_dir))


def _rebuild(conn: Connection, data_dir: Path) -> Dict[str, int]:
    conn.execute(text("INSERT INTO blocks_fts(blocks_fts) VALUES ('rebuild')"))
    conn.execute(text("DELETE FROM notes_fts"))

    rows = conn.execute(text("SELECT id, title, content_path FROM notes")).all()
    for note_id, title, content_path in rows:
        try:
            with open(data_dir / content_path, "r", encoding="utf-8", newline="") as f:
                content = f.read()
        except FileNotFoundError:
            logger.warning(f"Body file missing for note {note_id}, indexing title only")
            content = ""
        conn.execute(
            text(
                "INSERT INTO notes_fts(note_id, title, content) "
                "VALUES (:id, :title, :content)"
            ),
            {"id": note_id, "title": title, "content": content},
        )

    block_count = conn.execute(text("SELECT COUNT(*) FROM blocks")).scalar()
    logger.info(f"Rebuilt FTS index: {len(rows)} notes, {block_count} blocks")
    return {"notes": len(rows), "blocks": block_count}


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
