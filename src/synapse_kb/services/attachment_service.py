"""Service layer for attachments.

Payloads are stored once per distinct content: the SHA-256 of the bytes is
looked up before anything is written, and an existing row is reused.
"""

import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

from synapse_kb.exceptions import (ConflictError, ContentIOError, ErrorCode,
                                   NotFoundError)
from synapse_kb.models.schema import (Attachment, Block, FileType, Note,
                                      generate_id, id_uuid_part, utc_now)
from synapse_kb.observability import traced
from synapse_kb.utils import content_hash

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)

_DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/rtf",
    "application/json",
    "application/xml",
    "application/epub+zip",
    "application/vnd.oasis.opendocument.text",
    "application/vnd.oasis.opendocument.spreadsheet",
    "application/vnd.oasis.opendocument.presentation",
    "application/vnd.ms-excel",
    "application/vnd.ms-powerpoint",
}


def classify_file_type(mime_type: Optional[str]) -> FileType:
    """Coarse file type from a MIME type."""
    if not mime_type:
        return FileType.OTHER
    mime_type = mime_type.lower()
    if mime_type.startswith("image/"):
        return FileType.IMAGE
    if mime_type.startswith(("audio/", "video/")):
        return FileType.MEDIA
    if (
        mime_type.startswith("text/")
        or mime_type in _DOCUMENT_MIME_TYPES
        or "officedocument" in mime_type
    ):
        return FileType.DOCUMENT
    return FileType.OTHER


class AttachmentService:
    """Imports, deduplicates and reads attachment payloads."""

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.attachment_repository

    def get_by_id(self, attachment_id: str) -> Optional[Attachment]:
        return self.repository.get_by_id(attachment_id)

    def get_by_hash(self, hash: str) -> Optional[Attachment]:
        return self.repository.get_by_hash(hash)

    def list(self) -> List[Attachment]:
        return self.repository.list()

    def create(self, attachment: Attachment) -> Attachment:
        """Insert a prepared attachment row.

        Raises:
            ConflictError: If a row with the same hash exists.
        """
        if self.repository.get_by_hash(attachment.hash) is not None:
            raise ConflictError(
                f"Attachment with hash {attachment.hash} already exists",
                entity="attachment",
                field="hash",
                value=attachment.hash,
                code=ErrorCode.ATTACHMENT_HASH_EXISTS,
            )
        return self.repository.create(attachment)

    @traced("attachment_import")
    def import_bytes(
        self,
        file_name: str,
        data: bytes,
        mime_type: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Attachment:
        """Store a payload, or return the existing attachment with the same bytes.

        Args:
            file_name: Original file name; its extension is kept on disk.
            data: The payload.
            mime_type: MIME type; guessed from ``file_name`` when omitted.
            width: Pixel width, images only.
            height: Pixel height, images only.
        """
        digest = content_hash(data)
        existing = self.repository.get_by_hash(digest)
        if existing is not None:
            logger.debug(f"Reusing attachment {existing.id} for {file_name}")
            return existing

        mime_type = mime_type or mimetypes.guess_type(file_name)[0]
        attachment_id = generate_id("attachment")
        suffix = Path(file_name).suffix.lower()
        relative_path = f"attachments/{id_uuid_part(attachment_id)}{suffix}"

        target = self.ctx.data_dir / relative_path
        try:
            with open(target, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ContentIOError(
                f"Failed to write attachment {file_name}",
                operation="write",
                path=str(target),
                code=ErrorCode.CONTENT_WRITE_FAILED,
                original_error=e,
            ) from e

        now = utc_now()
        attachment = Attachment(
            id=attachment_id,
            file_name=file_name,
            file_path=relative_path,
            file_type=classify_file_type(mime_type),
            mime_type=mime_type,
            file_size=len(data),
            width=width,
            height=height,
            hash=digest,
            created_at=now,
            updated_at=now,
        )
        self.repository.create(attachment)
        logger.info(f"Stored attachment {attachment_id} ({file_name}, {len(data)} bytes)")
        return attachment

    def import_file(
        self,
        path: Union[str, Path],
        mime_type: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Attachment:
        """Import a file from disk; see ``import_bytes``."""
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as e:
            raise ContentIOError(
                f"Failed to read {source.name}",
                operation="read",
                path=str(source),
                code=ErrorCode.CONTENT_READ_FAILED,
                original_error=e,
            ) from e
        return self.import_bytes(source.name, data, mime_type, width, height)

    def read_bytes(self, attachment_id: str) -> bytes:
        attachment = self.repository.get_by_id(attachment_id)
        if attachment is None:
            raise NotFoundError("attachment", attachment_id)
        file_path = self.ctx.data_dir / attachment.file_path
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise ContentIOError(
                f"Failed to read attachment {attachment_id}",
                operation="read",
                path=str(file_path),
                code=ErrorCode.CONTENT_READ_FAILED,
                original_error=e,
            ) from e

    @traced("attachment_delete")
    def delete(self, attachment_id: str) -> None:
        """Remove the row and its note/block links. The payload file stays."""
        if not self.repository.delete(attachment_id):
            raise NotFoundError("attachment", attachment_id)

    def get_notes(self, attachment_id: str) -> List[Note]:
        note_ids = self.ctx.note_attachments.get_notes_with_attachment(attachment_id)
        return self.ctx.note_repository.get_by_ids(note_ids)

    def get_blocks(self, attachment_id: str) -> List[Block]:
        block_ids = self.ctx.block_attachments.get_blocks_with_attachment(attachment_id)
        return self.ctx.block_repository.get_by_ids(block_ids)
