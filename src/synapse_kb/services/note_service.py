"""Service layer for notes.

A note is a row in the relational store plus a Markdown body file under
``data_dir/notes``. Every operation here keeps the two, and the note's
full-text index entry, in step.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from synapse_kb.exceptions import (ContentIOError, ErrorCode, InvalidInputError,
                                   NotFoundError)
from synapse_kb.models.schema import (Attachment, Folder, Note,
                                      NoteAttachment, NoteFolder, NoteTag,
                                      NoteWithContent, Tag, generate_id,
                                      id_uuid_part, utc_now)
from synapse_kb.observability import traced
from synapse_kb.utils import count_words, ordered_by_ids, slugify

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


def _require_title(title: str) -> str:
    if not title or not title.strip():
        raise InvalidInputError("Title is required", field="title", value=title)
    return title


class NoteService:
    """Note lifecycle, body files and membership pass-throughs."""

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.note_repository

    # ------------------------------------------------------------------
    # Body files
    # ------------------------------------------------------------------

    def content_path_for(self, note_id: str, title: str) -> str:
        """Relative body path: ``notes/<uuid>-<slug>.md``."""
        slug = slugify(title, self.ctx.slug_max_length)
        stem = id_uuid_part(note_id)
        filename = f"{stem}-{slug}.md" if slug else f"{stem}.md"
        return f"notes/{filename}"

    def _absolute(self, content_path: str) -> Path:
        return self.ctx.data_dir / content_path

    def _write_content(self, note_id: str, content_path: str, content: str) -> None:
        file_path = self._absolute(content_path)
        try:
            # newline="" keeps the body byte-identical on every platform
            with open(file_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise ContentIOError(
                f"Failed to write note {note_id}",
                operation="write",
                path=str(file_path),
                code=ErrorCode.CONTENT_WRITE_FAILED,
                original_error=e,
            ) from e

    def read_content(self, note: Note) -> str:
        """Read a note body. A missing file reads as empty text."""
        file_path = self._absolute(note.content_path)
        try:
            with open(file_path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            logger.warning(f"Body file missing for note {note.id}: {note.content_path}")
            return ""
        except OSError as e:
            raise ContentIOError(
                f"Failed to read note {note.id}",
                operation="read",
                path=str(file_path),
                code=ErrorCode.CONTENT_READ_FAILED,
                original_error=e,
            ) from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @traced("note_create")
    def create(self, title: str, content: str) -> Note:
        """Create a note: write the body file, then the row.

        Args:
            title: Note title (required, non-blank).
            content: Markdown body, stored byte-for-byte.

        Returns:
            The created Note.
        """
        _require_title(title)
        note_id = generate_id("note")
        content_path = self.content_path_for(note_id, title)

        self._write_content(note_id, content_path, content)

        now = utc_now()
        note = Note(
            id=note_id,
            title=title,
            content_path=content_path,
            created_at=now,
            updated_at=now,
            word_count=count_words(content),
        )
        self.repository.create(note, content=content)
        logger.info(f"Created note {note_id} ('{title}')")
        return note

    def get_by_id(
        self, note_id: str, include_deleted: bool = False
    ) -> Optional[NoteWithContent]:
        """Get a note joined with its body, or None."""
        note = self.repository.get_by_id(note_id, include_deleted=include_deleted)
        if note is None:
            return None
        return NoteWithContent(note=note, content=self.read_content(note))

    def _get_active(self, note_id: str) -> Note:
        note = self.repository.get_by_id(note_id)
        if note is None:
            raise NotFoundError("note", note_id)
        return note

    @traced("note_update")
    def update(
        self,
        note_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Note:
        """Update the title and/or body of a note.

        A body change rewrites the file and recounts words. ``updated_at``
        moves forward whenever either part changes. The body file keeps its
        original name when the title changes.
        """
        note = self._get_active(note_id)
        if title is None and content is None:
            return note

        if title is not None:
            note.title = _require_title(title)
        if content is not None:
            self._write_content(note.id, note.content_path, content)
            note.word_count = count_words(content)

        note.updated_at = max(utc_now(), note.updated_at)
        self.repository.update(note, content=content)
        return note

    def update_title(self, note_id: str, title: str) -> Note:
        return self.update(note_id, title=title)

    def update_content(self, note_id: str, content: str) -> Note:
        return self.update(note_id, content=content)

    @traced("note_delete")
    def delete(self, note_id: str) -> None:
        """Soft-delete a note. The body file stays on disk."""
        note = self.repository.get_by_id(note_id, include_deleted=True)
        if note is None:
            raise NotFoundError("note", note_id)
        if not note.is_deleted:
            self.repository.soft_delete(note_id)
            logger.info(f"Soft-deleted note {note_id}")

    @traced("note_restore")
    def restore(self, note_id: str) -> None:
        note = self.repository.get_by_id(note_id, include_deleted=True)
        if note is None:
            raise NotFoundError("note", note_id)
        if note.is_deleted:
            self.repository.restore(note_id)
            logger.info(f"Restored note {note_id}")

    def list(self, include_deleted: bool = False) -> List[Note]:
        return self.repository.list(include_deleted=include_deleted)

    def search_by_title(self, query: str, include_deleted: bool = False) -> List[Note]:
        return self.repository.search_by_title(query, include_deleted=include_deleted)

    def get_by_folder(self, folder_id: str, include_deleted: bool = False) -> List[Note]:
        return self.repository.get_by_folder(folder_id, include_deleted=include_deleted)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def _require_folder(self, folder_id: str) -> Folder:
        folder = self.ctx.folder_repository.get_by_id(folder_id)
        if folder is None:
            raise NotFoundError("folder", folder_id)
        return folder

    def add_to_folder(
        self,
        note_id: str,
        folder_id: str,
        is_primary: bool = False,
        position: int = 0,
    ) -> NoteFolder:
        """Put a note in a folder; as primary, it replaces any previous primary."""
        self._get_active(note_id)
        self._require_folder(folder_id)
        return self.ctx.note_folders.add(note_id, folder_id, is_primary, position)

    def remove_from_folder(self, note_id: str, folder_id: str) -> None:
        if not self.ctx.note_folders.remove(note_id, folder_id):
            raise NotFoundError("note_folder", f"{note_id}/{folder_id}")

    def set_primary_folder(self, note_id: str, folder_id: str) -> None:
        if not self.ctx.note_folders.set_primary(note_id, folder_id):
            raise NotFoundError(
                "note_folder",
                f"{note_id}/{folder_id}",
                message=f"Note {note_id} is not in folder {folder_id}",
            )

    def update_folder_position(self, note_id: str, folder_id: str, position: int) -> None:
        if not self.ctx.note_folders.update_position(note_id, folder_id, position):
            raise NotFoundError("note_folder", f"{note_id}/{folder_id}")

    def get_folder_memberships(self, note_id: str) -> List[NoteFolder]:
        """Membership rows, primary first, then by position."""
        return self.ctx.note_folders.get_folders_for_note(note_id)

    def get_folders(self, note_id: str) -> List[Folder]:
        """Folders containing the note, primary first, then by position."""
        ids = [m.folder_id for m in self.ctx.note_folders.get_folders_for_note(note_id)]
        return ordered_by_ids(ids, self.ctx.folder_repository.get_by_ids(ids))

    def get_primary_folder(self, note_id: str) -> Optional[Folder]:
        folder_id = self.ctx.note_folders.get_primary_folder(note_id)
        if folder_id is None:
            return None
        return self.ctx.folder_repository.get_by_id(folder_id)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def add_tag(self, note_id: str, tag_id: str) -> NoteTag:
        self._get_active(note_id)
        if self.ctx.tag_repository.get_by_id(tag_id) is None:
            raise NotFoundError("tag", tag_id)
        return self.ctx.note_tags.add(note_id, tag_id)

    def remove_tag(self, note_id: str, tag_id: str) -> None:
        if not self.ctx.note_tags.remove(note_id, tag_id):
            raise NotFoundError("note_tag", f"{note_id}/{tag_id}")

    def get_tags(self, note_id: str) -> List[Tag]:
        """Tags on a note, in the order they were added."""
        tag_ids = self.ctx.note_tags.get_tags_for_note(note_id)
        return ordered_by_ids(tag_ids, self.ctx.tag_repository.get_by_ids(tag_ids))

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment(
        self, note_id: str, attachment_id: str, position: int = 0
    ) -> NoteAttachment:
        self._get_active(note_id)
        if self.ctx.attachment_repository.get_by_id(attachment_id) is None:
            raise NotFoundError("attachment", attachment_id)
        return self.ctx.note_attachments.add(note_id, attachment_id, position)

    def remove_attachment(self, note_id: str, attachment_id: str) -> None:
        if not self.ctx.note_attachments.remove(note_id, attachment_id):
            raise NotFoundError("note_attachment", f"{note_id}/{attachment_id}")

    def update_attachment_position(
        self, note_id: str, attachment_id: str, position: int
    ) -> None:
        if not self.ctx.note_attachments.update_position(note_id, attachment_id, position):
            raise NotFoundError("note_attachment", f"{note_id}/{attachment_id}")

    def get_attachments(self, note_id: str) -> List[Attachment]:
        """Attachments of a note by position."""
        ids = self.ctx.note_attachments.get_attachments_for_note(note_id)
        return ordered_by_ids(ids, self.ctx.attachment_repository.get_by_ids(ids))
