"""Data models for the Synapse knowledge base."""
from synapse_kb.models.schema import (Attachment, Block, BlockAttachment,
                                      BlockReference, BlockType, FileType,
                                      Folder, Link, LinkType, Note,
                                      NoteAttachment, NoteFolder, NoteTag,
                                      NoteWithContent, Tag)

__all__ = [
    "Attachment",
    "Block",
    "BlockAttachment",
    "BlockReference",
    "BlockType",
    "FileType",
    "Folder",
    "Link",
    "LinkType",
    "Note",
    "NoteAttachment",
    "NoteFolder",
    "NoteTag",
    "NoteWithContent",
    "Tag",
]
