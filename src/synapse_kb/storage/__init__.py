"""Storage layer for the Synapse knowledge base."""

from synapse_kb.storage.attachment_repository import AttachmentRepository
from synapse_kb.storage.base import Repository, SoftDeleteRepository
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

__all__ = [
    "Repository",
    "SoftDeleteRepository",
    "Database",
    "FtsIndex",
    "NoteRepository",
    "BlockRepository",
    "FolderRepository",
    "TagRepository",
    "LinkRepository",
    "AttachmentRepository",
    "NoteFolderRepository",
    "NoteTagRepository",
    "NoteAttachmentRepository",
    "BlockAttachmentRepository",
    "BlockReferenceRepository",
]
