"""Service context: one store handle, the data directory and every service."""
import logging
from pathlib import Path
from typing import Optional, Union

from synapse_kb.config import SynapseConfig, config
from synapse_kb.exceptions import (ConfigurationError, ContentIOError,
                                   ErrorCode)
from synapse_kb.observability import configure_logging
from synapse_kb.services.attachment_service import AttachmentService
from synapse_kb.services.block_service import BlockService
from synapse_kb.services.folder_service import FolderService
from synapse_kb.services.link_service import LinkService
from synapse_kb.services.note_service import NoteService
from synapse_kb.services.search_service import SearchService
from synapse_kb.services.tag_service import TagService
from synapse_kb.storage.attachment_repository import AttachmentRepository
from synapse_kb.storage.block_repository import BlockRepository
from synapse_kb.storage.database import Database
from synapse_kb.storage.folder_repository import FolderRepository
from synapse_kb.storage.fts_index import FtsIndex
from synapse_kb.storage.link_repository import LinkRepository
from synapse_kb.storage.note_repository import NoteRepository
from synapse_kb.storage.relation_repository import (BlockAttachmentRepository,
                                                    BlockReferenceRepository,
                                                    NoteAttachmentRepository,
                                                    NoteFolderRepository,
                                                    NoteTagRepository)
from synapse_kb.storage.tag_repository import TagRepository
from synapse_kb.utils import DEFAULT_SLUG_LENGTH

logger = logging.getLogger(__name__)

NOTES_SUBDIR = "notes"
ATTACHMENTS_SUBDIR = "attachments"


class ServiceContext:
    """Explicit handle threaded through every service call.

    Owns one ``Database`` and the data directory layout. Independent
    contexts (e.g. one in-memory context per test) never share state.

    Args:
        database_path: Store file location, or None for a transient store.
        data_dir: Directory holding ``notes/`` and ``attachments/``.
        journal_mode: SQLite journal mode for file-backed stores.
        slug_max_length: Cap on the title slug in note file names.
    """

    def __init__(
        self,
        database_path: Optional[Union[str, Path]],
        data_dir: Union[str, Path],
        journal_mode: str = "WAL",
        slug_max_length: int = DEFAULT_SLUG_LENGTH,
    ):
        self.data_dir = Path(data_dir)
        if self.data_dir.exists() and not self.data_dir.is_dir():
            raise ConfigurationError(
                f"Data directory is not a directory: {self.data_dir}",
                config_key="data_dir",
            )
        self.notes_dir = self.data_dir / NOTES_SUBDIR
        self.attachments_dir = self.data_dir / ATTACHMENTS_SUBDIR
        for directory in (self.notes_dir, self.attachments_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ContentIOError(
                    f"Failed to create directory {directory}",
                    operation="init",
                    path=str(directory),
                    code=ErrorCode.CONTENT_WRITE_FAILED,
                    original_error=e,
                ) from e
        self.slug_max_length = slug_max_length

        if database_path is None:
            self.db = Database.open_in_memory()
        else:
            self.db = Database.open(database_path, journal_mode=journal_mode)

        session_factory = self.db.session
        self.note_repository = NoteRepository(session_factory)
        self.block_repository = BlockRepository(session_factory)
        self.folder_repository = FolderRepository(session_factory)
        self.tag_repository = TagRepository(session_factory)
        self.link_repository = LinkRepository(session_factory)
        self.attachment_repository = AttachmentRepository(session_factory)
        self.note_folders = NoteFolderRepository(session_factory)
        self.note_tags = NoteTagRepository(session_factory)
        self.note_attachments = NoteAttachmentRepository(session_factory)
        self.block_attachments = BlockAttachmentRepository(session_factory)
        self.block_references = BlockReferenceRepository(session_factory)
        self.fts_index = FtsIndex(session_factory, self.db.connection)

        self.notes = NoteService(self)
        self.blocks = BlockService(self)
        self.folders = FolderService(self)
        self.tags = TagService(self)
        self.links = LinkService(self)
        self.search = SearchService(self)
        self.attachments = AttachmentService(self)

        logger.info(
            f"Service context ready (data_dir={self.data_dir}, "
            f"database={'memory' if database_path is None else database_path})"
        )

    @classmethod
    def in_memory(cls, data_dir: Union[str, Path], **kwargs) -> "ServiceContext":
        """Context backed by a transient store; files still go to ``data_dir``."""
        return cls(None, data_dir, **kwargs)

    @classmethod
    def from_config(cls, cfg: Optional[SynapseConfig] = None) -> "ServiceContext":
        """Build a context from configuration (the global ``config`` by default).

        Sets up rotating file logging first when ``log_dir`` is configured.
        """
        cfg = cfg or config
        if cfg.log_dir is not None:
            configure_logging(
                cfg.get_absolute_path(cfg.log_dir), level=cfg.get_log_level()
            )
        database_path = None if cfg.in_memory_db else cfg.get_database_path()
        return cls(
            database_path,
            cfg.get_data_dir(),
            journal_mode=cfg.sqlite_journal_mode,
            slug_max_length=cfg.slug_max_length,
        )

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "ServiceContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
