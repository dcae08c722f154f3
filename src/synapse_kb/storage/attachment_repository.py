"""Repository for attachment rows."""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, select

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.db_models import DBAttachment
from synapse_kb.models.schema import Attachment, FileType
from synapse_kb.storage.base import Repository

logger = logging.getLogger(__name__)


class AttachmentRepository(Repository[Attachment]):
    """Attachment metadata. ``hash`` is unique across all rows."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(self, attachment: Attachment) -> Attachment:
        with self.session_factory() as session:
            session.add(
                DBAttachment(
                    id=attachment.id,
                    file_name=attachment.file_name,
                    file_path=attachment.file_path,
                    file_type=attachment.file_type.value,
                    mime_type=attachment.mime_type,
                    file_size=attachment.file_size,
                    width=attachment.width,
                    height=attachment.height,
                    hash=attachment.hash,
                    created_at=attachment.created_at,
                    updated_at=attachment.updated_at,
                )
            )
            session.commit()
        logger.debug(f"Created attachment {attachment.id} ({attachment.file_name})")
        return attachment

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Attachment]:
        with self.session_factory() as session:
            db_attachment = session.get(DBAttachment, id)
            return self._db_to_model(db_attachment) if db_attachment else None

    def get_by_ids(self, ids: Sequence[str]) -> List[Attachment]:
        if not ids:
            return []
        with self.session_factory() as session:
            stmt = select(DBAttachment).where(DBAttachment.id.in_(list(ids)))
            return [self._db_to_model(a) for a in session.scalars(stmt).all()]

    def get_by_hash(self, hash: str) -> Optional[Attachment]:
        with self.session_factory() as session:
            db_attachment = session.scalar(
                select(DBAttachment).where(DBAttachment.hash == hash)
            )
            return self._db_to_model(db_attachment) if db_attachment else None

    def list(self) -> List[Attachment]:
        """All attachments, newest first."""
        with self.session_factory() as session:
            stmt = select(DBAttachment).order_by(
                DBAttachment.created_at.desc(), DBAttachment.file_name
            )
            return [self._db_to_model(a) for a in session.scalars(stmt).all()]

    def update(self, attachment: Attachment) -> Attachment:
        with self.session_factory() as session:
            db_attachment = session.get(DBAttachment, attachment.id)
            if db_attachment is None:
                raise NotFoundError("attachment", attachment.id)
            db_attachment.file_name = attachment.file_name
            db_attachment.file_path = attachment.file_path
            db_attachment.file_type = attachment.file_type.value
            db_attachment.mime_type = attachment.mime_type
            db_attachment.file_size = attachment.file_size
            db_attachment.width = attachment.width
            db_attachment.height = attachment.height
            db_attachment.hash = attachment.hash
            db_attachment.updated_at = attachment.updated_at
            session.commit()
        return attachment

    def delete(self, id: str) -> bool:
        """Remove the row; note and block attachment rows cascade."""
        with self.session_factory() as session:
            result = session.execute(delete(DBAttachment).where(DBAttachment.id == id))
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_attachment: DBAttachment) -> Attachment:
        return Attachment(
            id=db_attachment.id,
            file_name=db_attachment.file_name,
            file_path=db_attachment.file_path,
            file_type=FileType(db_attachment.file_type),
            mime_type=db_attachment.mime_type,
            file_size=db_attachment.file_size,
            width=db_attachment.width,
            height=db_attachment.height,
            hash=db_attachment.hash,
            created_at=db_attachment.created_at,
            updated_at=db_attachment.updated_at,
        )
