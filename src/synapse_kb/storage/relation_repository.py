"""Repositories for the many-to-many relation tables.

Each repository manages membership rows. Adding returns the membership
record; lookups return ids that services hydrate into full records.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, insert, literal_column, select, update

from synapse_kb.models.db_models import (DBBlockReference, block_attachments,
                                         note_attachments, note_folders,
                                         note_tags)
from synapse_kb.models.schema import (BlockAttachment, BlockReference,
                                      NoteAttachment, NoteFolder, NoteTag)

logger = logging.getLogger(__name__)


class NoteFolderRepository:
    """Note membership in folders, with at most one primary folder per note."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add(
        self,
        note_id: str,
        folder_id: str,
        is_primary: bool = False,
        position: int = 0,
    ) -> NoteFolder:
        """Add a note to a folder.

        Adding as primary demotes any existing primary in the same transaction.
        """
        membership = NoteFolder(
            note_id=note_id, folder_id=folder_id, is_primary=is_primary, position=position
        )
        with self.session_factory() as session:
            if is_primary:
                session.execute(
                    update(note_folders)
                    .where(note_folders.c.note_id == note_id)
                    .values(is_primary=False)
                )
            session.execute(
                insert(note_folders).values(
                    note_id=note_id,
                    folder_id=folder_id,
                    is_primary=is_primary,
                    position=position,
                    created_at=membership.created_at,
                )
            )
            session.commit()
        logger.debug(f"Added note {note_id} to folder {folder_id}")
        return membership

    def remove(self, note_id: str, folder_id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                delete(note_folders).where(
                    note_folders.c.note_id == note_id,
                    note_folders.c.folder_id == folder_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    def set_primary(self, note_id: str, folder_id: str) -> bool:
        """Make ``folder_id`` the note's only primary folder.

        Clearing and setting happen in one transaction, so no reader ever sees
        zero or two primaries. Returns False, changing nothing, if the note is
        not in that folder.
        """
        with self.session_factory() as session:
            member = session.execute(
                select(note_folders.c.note_id).where(
                    note_folders.c.note_id == note_id,
                    note_folders.c.folder_id == folder_id,
                )
            ).first()
            if member is None:
                return False

            session.execute(
                update(note_folders)
                .where(note_folders.c.note_id == note_id)
                .values(is_primary=False)
            )
            session.execute(
                update(note_folders)
                .where(
                    note_folders.c.note_id == note_id,
                    note_folders.c.folder_id == folder_id,
                )
                .values(is_primary=True)
            )
            session.commit()
        logger.debug(f"Primary folder of note {note_id} is now {folder_id}")
        return True

    def get_folders_for_note(self, note_id: str) -> List[NoteFolder]:
        """Memberships of a note, primary first, then by position."""
        with self.session_factory() as session:
            rows = session.execute(
                select(note_folders)
                .where(note_folders.c.note_id == note_id)
                .order_by(note_folders.c.is_primary.desc(), note_folders.c.position)
            ).mappings().all()
            return [NoteFolder(**row) for row in rows]

    def get_primary_folder(self, note_id: str) -> Optional[str]:
        with self.session_factory() as session:
            return session.scalar(
                select(note_folders.c.folder_id).where(
                    note_folders.c.note_id == note_id,
                    note_folders.c.is_primary.is_(True),
                )
            )

    def get_notes_in_folder(self, folder_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(note_folders.c.note_id)
                    .where(note_folders.c.folder_id == folder_id)
                    .order_by(note_folders.c.position)
                ).all()
            )

    def update_position(self, note_id: str, folder_id: str, position: int) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(note_folders)
                .where(
                    note_folders.c.note_id == note_id,
                    note_folders.c.folder_id == folder_id,
                )
                .values(position=position)
            )
            session.commit()
            return result.rowcount > 0


class NoteTagRepository:
    """Tags attached to notes."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add(self, note_id: str, tag_id: str) -> NoteTag:
        note_tag = NoteTag(note_id=note_id, tag_id=tag_id)
        with self.session_factory() as session:
            session.execute(insert(note_tags).values(**note_tag.model_dump()))
            session.commit()
        return note_tag

    def remove(self, note_id: str, tag_id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                delete(note_tags).where(
                    note_tags.c.note_id == note_id, note_tags.c.tag_id == tag_id
                )
            )
            session.commit()
            return result.rowcount > 0

    def get_tags_for_note(self, note_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(note_tags.c.tag_id)
                    .where(note_tags.c.note_id == note_id)
                    .order_by(note_tags.c.created_at, literal_column("note_tags.rowid"))
                ).all()
            )

    def get_notes_with_tag(self, tag_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(note_tags.c.note_id)
                    .where(note_tags.c.tag_id == tag_id)
                    .order_by(note_tags.c.created_at, literal_column("note_tags.rowid"))
                ).all()
            )


class NoteAttachmentRepository:
    """Attachments of notes, ordered by position."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add(
        self, note_id: str, attachment_id: str, position: int = 0
    ) -> NoteAttachment:
        note_attachment = NoteAttachment(
            note_id=note_id, attachment_id=attachment_id, position=position
        )
        with self.session_factory() as session:
            session.execute(
                insert(note_attachments).values(**note_attachment.model_dump())
            )
            session.commit()
        return note_attachment

    def remove(self, note_id: str, attachment_id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                delete(note_attachments).where(
                    note_attachments.c.note_id == note_id,
                    note_attachments.c.attachment_id == attachment_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    def get_attachments_for_note(self, note_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(note_attachments.c.attachment_id)
                    .where(note_attachments.c.note_id == note_id)
                    .order_by(
                        note_attachments.c.position,
                        literal_column("note_attachments.rowid"),
                    )
                ).all()
            )

    def get_notes_with_attachment(self, attachment_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(note_attachments.c.note_id).where(
                        note_attachments.c.attachment_id == attachment_id
                    )
                ).all()
            )

    def update_position(self, note_id: str, attachment_id: str, position: int) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(note_attachments)
                .where(
                    note_attachments.c.note_id == note_id,
                    note_attachments.c.attachment_id == attachment_id,
                )
                .values(position=position)
            )
            session.commit()
            return result.rowcount > 0


class BlockAttachmentRepository:
    """Attachments of blocks."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add(self, block_id: str, attachment_id: str) -> BlockAttachment:
        block_attachment = BlockAttachment(block_id=block_id, attachment_id=attachment_id)
        with self.session_factory() as session:
            session.execute(
                insert(block_attachments).values(**block_attachment.model_dump())
            )
            session.commit()
        return block_attachment

    def remove(self, block_id: str, attachment_id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                delete(block_attachments).where(
                    block_attachments.c.block_id == block_id,
                    block_attachments.c.attachment_id == attachment_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    def get_attachments_for_block(self, block_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(block_attachments.c.attachment_id)
                    .where(block_attachments.c.block_id == block_id)
                    .order_by(literal_column("block_attachments.rowid"))
                ).all()
            )

    def get_blocks_with_attachment(self, attachment_id: str) -> List[str]:
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(block_attachments.c.block_id)
                    .where(block_attachments.c.attachment_id == attachment_id)
                    .order_by(literal_column("block_attachments.rowid"))
                ).all()
            )


class BlockReferenceRepository:
    """Directed block-to-block references, in creation order."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(
        self, ref_id: str, source_block_id: str, target_block_id: str
    ) -> BlockReference:
        reference = BlockReference(
            id=ref_id, source_block_id=source_block_id, target_block_id=target_block_id
        )
        with self.session_factory() as session:
            session.add(
                DBBlockReference(
                    id=reference.id,
                    source_block_id=reference.source_block_id,
                    target_block_id=reference.target_block_id,
                    created_at=reference.created_at,
                )
            )
            session.commit()
        return reference

    def delete(self, source_block_id: str, target_block_id: str) -> int:
        """Remove every reference from source to target; returns rows removed."""
        with self.session_factory() as session:
            result = session.execute(
                delete(DBBlockReference).where(
                    DBBlockReference.source_block_id == source_block_id,
                    DBBlockReference.target_block_id == target_block_id,
                )
            )
            session.commit()
            return result.rowcount

    def get_referenced_blocks(self, source_block_id: str) -> List[str]:
        """Blocks the source block points at."""
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(DBBlockReference.target_block_id)
                    .where(DBBlockReference.source_block_id == source_block_id)
                    .order_by(
                        DBBlockReference.created_at,
                        literal_column("block_references.rowid"),
                    )
                ).all()
            )

    def get_referencing_blocks(self, target_block_id: str) -> List[str]:
        """Blocks pointing at the target block."""
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(DBBlockReference.source_block_id)
                    .where(DBBlockReference.target_block_id == target_block_id)
                    .order_by(
                        DBBlockReference.created_at,
                        literal_column("block_references.rowid"),
                    )
                ).all()
            )
