"""Connection and lifecycle handle for the relational store."""
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from sqlalchemy import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from synapse_kb.exceptions import (ConflictError, ErrorCode, InvalidInputError,
                                   StorageError, SynapseError)
from synapse_kb.models.db_models import (get_schema_version, get_session_factory,
                                         init_db)

logger = logging.getLogger(__name__)

_UNIQUE_MARKERS = ("UNIQUE constraint failed", "PRIMARY KEY")


def translate_integrity_error(e: IntegrityError) -> SynapseError:
    """Map a constraint failure onto the error taxonomy."""
    message = str(e.orig) if e.orig is not None else str(e)
    if any(marker in message for marker in _UNIQUE_MARKERS):
        # "UNIQUE constraint failed: tags.name" -> entity "tags", field "name"
        target = message.rsplit(":", 1)[-1].strip()
        table, _, column = target.partition(".")
        return ConflictError(
            f"Uniqueness violated: {target}",
            entity=table or None,
            field=column or None,
        )
    return InvalidInputError(
        f"Constraint violated: {message}", code=ErrorCode.CONSTRAINT_VIOLATION
    )


class Database:
    """Owns the single connection to the relational store.

    The schema is initialized before the handle is returned. The underlying
    SQLite connection is not safe for concurrent use, so every session is
    taken under one re-entrant lock.
    """

    def __init__(self, engine: Engine, path: Optional[Path] = None):
        self.engine = engine
        self.path = path
        self.session_factory = get_session_factory(engine)
        self._lock = threading.RLock()
        self._closed = False

    @classmethod
    def open(cls, path: Union[str, Path], journal_mode: str = "WAL") -> "Database":
        """Open or create the store file at ``path`` and initialize the schema."""
        db_path = Path(path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = init_db(f"sqlite:///{db_path}", journal_mode=journal_mode)
        logger.info(f"Opened database at {db_path}")
        return cls(engine, db_path)

    @classmethod
    def open_in_memory(cls) -> "Database":
        """Open a transient store that does not outlive the process."""
        engine = init_db("sqlite://")
        logger.debug("Opened in-memory database")
        return cls(engine)

    @property
    def in_memory(self) -> bool:
        return self.path is None

    @property
    def schema_version(self) -> Optional[int]:
        with self._lock:
            return get_schema_version(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scoped to one transaction.

        Commits on success and rolls back on any error. Store failures are
        translated into the package's exception types.
        """
        if self._closed:
            raise StorageError(
                "Database is closed",
                operation="session",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
            )
        with self._lock:
            session = self.session_factory()
            try:
                yield session
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise translate_integrity_error(e) from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Database operation failed: {e}")
                raise StorageError(
                    f"Database operation failed: {e}",
                    operation="session",
                    original_error=e,
                ) from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Core connection inside a transaction, for bulk statements."""
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    yield conn
            except SQLAlchemyError as e:
                logger.error(f"Database operation failed: {e}")
                raise StorageError(
                    f"Database operation failed: {e}",
                    operation="connection",
                    original_error=e,
                ) from e

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        with self._lock:
            if not self._closed:
                self.engine.dispose()
                self._closed = True
                logger.debug("Database closed")

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
