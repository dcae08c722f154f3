"""Data models for the Synapse knowledge base."""

import datetime
import re
import uuid
from datetime import timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# Identifiers double as file name components for note bodies
SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Truncated to whole seconds, the resolution timestamps are stored at.
    """
    return datetime.datetime.now(timezone.utc).replace(microsecond=0)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC."""
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id(kind: str) -> str:
    """Generate an opaque identifier of the form ``<kind>-<uuid>``.

    Args:
        kind: Entity kind prefix, e.g. ``note`` or ``block``.

    Returns:
        A new identifier, never reused.
    """
    return f"{kind}-{uuid.uuid4()}"


def id_uuid_part(entity_id: str) -> str:
    """Return the uuid portion of a ``<kind>-<uuid>`` identifier."""
    kind, sep, rest = entity_id.partition("-")
    return rest if sep and rest else entity_id


class BlockType(str, Enum):
    """Kinds of content blocks. Stored as their string token."""

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    HEADING_4 = "heading_4"
    HEADING_5 = "heading_5"
    HEADING_6 = "heading_6"
    CODE_BLOCK = "code_block"
    QUOTE = "quote"
    LIST_ITEM = "list_item"
    ORDERED_LIST_ITEM = "ordered_list_item"
    TASK_ITEM = "task_item"
    TABLE = "table"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"
    HORIZONTAL_RULE = "horizontal_rule"
    IMAGE = "image"

    @classmethod
    def heading(cls, level: int) -> "BlockType":
        """Heading block type for a level between 1 and 6."""
        if not 1 <= level <= 6:
            raise ValueError(f"Heading level must be between 1 and 6, got {level}")
        return cls(f"heading_{level}")


class LinkType(str, Enum):
    """Types of links."""

    NOTE_LINK = "note_link"  # Note to note
    BLOCK_REFERENCE = "block_reference"  # Points at a specific block
    DATABASE_RELATION = "database_relation"  # Structured relation between notes

    @property
    def targets_block(self) -> bool:
        return self is LinkType.BLOCK_REFERENCE


class FileType(str, Enum):
    """Coarse classification of attachment payloads."""

    IMAGE = "image"
    DOCUMENT = "document"
    MEDIA = "media"
    OTHER = "other"


class Note(BaseModel):
    """A note row. The body lives in a Markdown file at ``content_path``."""

    id: str = Field(default_factory=lambda: generate_id("note"))
    title: str = Field(..., description="Title of the note")
    content_path: str = Field(
        ..., description="Body file path relative to the data directory"
    )
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)
    word_count: int = Field(default=0, ge=0)
    is_deleted: bool = False
    deleted_at: Optional[datetime.datetime] = None

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is safe for filesystem use."""
        if not v or not SAFE_ID_PATTERN.match(v):
            raise ValueError(f"Note ID contains invalid characters: {v!r}")
        return v

    def __str__(self) -> str:
        return f"{self.title} ({self.id})"


class NoteWithContent(BaseModel):
    """A note row joined with its body text."""

    note: Note
    content: str = ""

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @property
    def id(self) -> str:
        return self.note.id

    @property
    def title(self) -> str:
        return self.note.title


class Block(BaseModel):
    """An ordered, typed fragment of a note."""

    id: str = Field(default_factory=lambda: generate_id("block"))
    note_id: str
    block_type: BlockType = BlockType.PARAGRAPH
    content: str = ""
    position: int = 0
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)
    is_deleted: bool = False
    deleted_at: Optional[datetime.datetime] = None

    model_config = {"validate_assignment": True, "extra": "forbid"}


class Folder(BaseModel):
    """A folder in the tree. ``path`` is fixed when the folder is created."""

    id: str = Field(default_factory=lambda: generate_id("folder"))
    name: str
    parent_id: Optional[str] = None
    path: str
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)
    position: int = 0

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class Tag(BaseModel):
    """A tag for categorizing notes. Names are unique and case-sensitive."""

    id: str = Field(default_factory=lambda: generate_id("tag"))
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class Link(BaseModel):
    """A link from a note (optionally a block in it) to a note or a block."""

    id: str = Field(default_factory=lambda: generate_id("link"))
    source_note_id: str = Field(..., description="ID of the source note")
    target_note_id: Optional[str] = Field(default=None, description="Target note")
    source_block_id: Optional[str] = Field(default=None, description="Source block")
    target_block_id: Optional[str] = Field(default=None, description="Target block")
    link_type: LinkType = Field(default=LinkType.NOTE_LINK, description="Type of link")
    link_text: Optional[str] = Field(default=None, description="Display text")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the link was created (UTC)"
    )

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "frozen": True,  # Links are immutable
    }

    @model_validator(mode="after")
    def check_target(self) -> "Link":
        """The populated target must match the link type."""
        if self.link_type.targets_block:
            if self.target_block_id is None:
                raise ValueError("block_reference links require target_block_id")
        elif self.target_note_id is None:
            raise ValueError(f"{self.link_type.value} links require target_note_id")
        return self


class Attachment(BaseModel):
    """A stored payload, deduplicated by content hash."""

    id: str = Field(default_factory=lambda: generate_id("attachment"))
    file_name: str
    file_path: str = Field(..., description="Path relative to the data directory")
    file_type: FileType = FileType.OTHER
    mime_type: Optional[str] = None
    file_size: int = Field(default=0, ge=0)
    width: Optional[int] = None
    height: Optional[int] = None
    hash: str = Field(..., description="SHA-256 hex digest of the payload")
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"validate_assignment": True, "extra": "forbid"}


class NoteFolder(BaseModel):
    """Membership of a note in a folder."""

    note_id: str
    folder_id: str
    is_primary: bool = False
    position: int = 0
    created_at: datetime.datetime = Field(default_factory=utc_now)


class NoteTag(BaseModel):
    note_id: str
    tag_id: str
    created_at: datetime.datetime = Field(default_factory=utc_now)


class NoteAttachment(BaseModel):
    note_id: str
    attachment_id: str
    position: int = 0
    created_at: datetime.datetime = Field(default_factory=utc_now)


class BlockAttachment(BaseModel):
    block_id: str
    attachment_id: str
    created_at: datetime.datetime = Field(default_factory=utc_now)


class BlockReference(BaseModel):
    """A directed reference from one block to another."""

    id: str = Field(default_factory=lambda: generate_id("ref"))
    source_block_id: str
    target_block_id: str
    created_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}
