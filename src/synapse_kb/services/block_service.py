"""Service layer for content blocks."""

import logging
from typing import TYPE_CHECKING, List, Optional, Union

from synapse_kb.exceptions import ErrorCode, InvalidInputError, NotFoundError
from synapse_kb.models.schema import (Attachment, Block, BlockAttachment,
                                      BlockReference, BlockType, generate_id,
                                      utc_now)
from synapse_kb.observability import traced
from synapse_kb.utils import ordered_by_ids

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


def parse_block_type(block_type: Union[BlockType, str]) -> BlockType:
    """Accept a BlockType or its string token."""
    if isinstance(block_type, BlockType):
        return block_type
    try:
        return BlockType(block_type)
    except ValueError:
        raise InvalidInputError(
            f"Unknown block type: {block_type}",
            field="block_type",
            value=block_type,
            code=ErrorCode.INVALID_BLOCK_TYPE,
        ) from None


class BlockService:
    """Blocks of a note, their references and attachments.

    Positions are assigned by the caller; ties render in insertion order.
    """

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.block_repository

    @traced("block_create")
    def create(
        self,
        note_id: str,
        block_type: Union[BlockType, str],
        content: str,
        position: int,
    ) -> Block:
        """Create a block in an existing, non-deleted note."""
        parsed_type = parse_block_type(block_type)
        if not self.ctx.note_repository.exists(note_id):
            raise NotFoundError("note", note_id)

        now = utc_now()
        block = Block(
            id=generate_id("block"),
            note_id=note_id,
            block_type=parsed_type,
            content=content,
            position=position,
            created_at=now,
            updated_at=now,
        )
        return self.repository.create(block)

    def get_by_id(self, block_id: str, include_deleted: bool = False) -> Optional[Block]:
        return self.repository.get_by_id(block_id, include_deleted=include_deleted)

    def get_by_note(self, note_id: str, include_deleted: bool = False) -> List[Block]:
        return self.repository.get_by_note(note_id, include_deleted=include_deleted)

    def _require(self, block_id: str) -> Block:
        block = self.repository.get_by_id(block_id)
        if block is None:
            raise NotFoundError("block", block_id)
        return block

    @traced("block_update")
    def update(self, block: Block) -> Block:
        """Overwrite a block from a read-modify-written record."""
        if not self.repository.exists(block.id, include_deleted=True):
            raise NotFoundError("block", block.id)
        block.updated_at = max(utc_now(), block.updated_at)
        return self.repository.update(block)

    def update_content(self, block_id: str, content: str) -> Block:
        block = self._require(block_id)
        block.content = content
        return self.update(block)

    def update_position(self, block_id: str, position: int) -> Block:
        block = self._require(block_id)
        block.position = position
        return self.update(block)

    def update_type(self, block_id: str, block_type: Union[BlockType, str]) -> Block:
        block = self._require(block_id)
        block.block_type = parse_block_type(block_type)
        return self.update(block)

    @traced("block_delete")
    def delete(self, block_id: str) -> None:
        """Soft-delete a block."""
        block = self.repository.get_by_id(block_id, include_deleted=True)
        if block is None:
            raise NotFoundError("block", block_id)
        if not block.is_deleted:
            self.repository.soft_delete(block_id)

    @traced("block_restore")
    def restore(self, block_id: str) -> None:
        block = self.repository.get_by_id(block_id, include_deleted=True)
        if block is None:
            raise NotFoundError("block", block_id)
        if block.is_deleted:
            self.repository.restore(block_id)

    # ------------------------------------------------------------------
    # Block references
    # ------------------------------------------------------------------

    def create_reference(self, source_block_id: str, target_block_id: str) -> BlockReference:
        """Record that the source block references the target block."""
        if not self.repository.exists(source_block_id):
            raise NotFoundError(
                "block",
                source_block_id,
                message=f"Source block not found: {source_block_id}",
            )
        if not self.repository.exists(target_block_id):
            raise NotFoundError(
                "block",
                target_block_id,
                message=f"Target block not found: {target_block_id}",
            )
        return self.ctx.block_references.create(
            generate_id("ref"), source_block_id, target_block_id
        )

    def delete_reference(self, source_block_id: str, target_block_id: str) -> None:
        if not self.ctx.block_references.delete(source_block_id, target_block_id):
            raise NotFoundError(
                "block_reference", f"{source_block_id}->{target_block_id}"
            )

    def get_referenced_blocks(self, block_id: str) -> List[Block]:
        """Active blocks this block points at, in reference order."""
        ids = self.ctx.block_references.get_referenced_blocks(block_id)
        return ordered_by_ids(ids, self.repository.get_by_ids(ids))

    def get_referencing_blocks(self, block_id: str) -> List[Block]:
        """Active blocks pointing at this block, in reference order."""
        ids = self.ctx.block_references.get_referencing_blocks(block_id)
        return ordered_by_ids(ids, self.repository.get_by_ids(ids))

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment(self, block_id: str, attachment_id: str) -> BlockAttachment:
        self._require(block_id)
        if self.ctx.attachment_repository.get_by_id(attachment_id) is None:
            raise NotFoundError("attachment", attachment_id)
        return self.ctx.block_attachments.add(block_id, attachment_id)

    def remove_attachment(self, block_id: str, attachment_id: str) -> None:
        if not self.ctx.block_attachments.remove(block_id, attachment_id):
            raise NotFoundError("block_attachment", f"{block_id}/{attachment_id}")

    def get_attachments(self, block_id: str) -> List[Attachment]:
        ids = self.ctx.block_attachments.get_attachments_for_block(block_id)
        return ordered_by_ids(ids, self.ctx.attachment_repository.get_by_ids(ids))
