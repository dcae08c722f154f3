"""Service layer for links between notes and blocks."""

import logging
from typing import TYPE_CHECKING, List, Optional, Union

from synapse_kb.exceptions import ErrorCode, InvalidInputError, NotFoundError
from synapse_kb.models.schema import (Block, Link, LinkType, generate_id,
                                      utc_now)
from synapse_kb.observability import traced

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


class LinkService:
    """Creates links only between existing, non-deleted endpoints."""

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.link_repository

    def _require_note(self, note_id: str, side: str) -> None:
        if not self.ctx.note_repository.exists(note_id):
            raise NotFoundError(
                "note", note_id, message=f"{side.capitalize()} note not found: {note_id}"
            )

    def _require_block(self, block_id: str, side: str) -> Block:
        block = self.ctx.block_repository.get_by_id(block_id)
        if block is None:
            raise NotFoundError(
                "block", block_id, message=f"{side.capitalize()} block not found: {block_id}"
            )
        return block

    @staticmethod
    def _check_block_in_note(block: Block, note_id: str) -> None:
        if block.note_id != note_id:
            raise InvalidInputError(
                f"Source block {block.id} belongs to note {block.note_id}, not {note_id}",
                field="source_block_id",
                value=block.id,
            )

    @traced("link_create")
    def create_note_link(
        self,
        source_note_id: str,
        target_note_id: str,
        link_text: Optional[str] = None,
        source_block_id: Optional[str] = None,
        link_type: Union[LinkType, str] = LinkType.NOTE_LINK,
    ) -> Link:
        """Link one note to another.

        Args:
            source_note_id: Note the link starts from.
            target_note_id: Note the link points at.
            link_text: Optional display text.
            source_block_id: Block within the source note holding the link.
            link_type: ``note_link`` or ``database_relation``.

        Raises:
            NotFoundError: Naming the missing side.
            InvalidInputError: For a link type that targets blocks, or a
                source block outside the source note.
        """
        try:
            link_type = LinkType(link_type)
        except ValueError:
            raise InvalidInputError(
                f"Unknown link type: {link_type}",
                field="link_type",
                value=link_type,
                code=ErrorCode.INVALID_LINK_TYPE,
            ) from None
        if link_type.targets_block:
            raise InvalidInputError(
                "Use create_block_reference for links to blocks",
                field="link_type",
                value=link_type.value,
                code=ErrorCode.INVALID_LINK_TYPE,
            )

        self._require_note(source_note_id, "source")
        self._require_note(target_note_id, "target")
        if source_block_id is not None:
            source_block = self._require_block(source_block_id, "source")
            self._check_block_in_note(source_block, source_note_id)

        link = Link(
            id=generate_id("link"),
            source_note_id=source_note_id,
            target_note_id=target_note_id,
            source_block_id=source_block_id,
            link_type=link_type,
            link_text=link_text,
            created_at=utc_now(),
        )
        return self.repository.create(link)

    @traced("block_reference_create")
    def create_block_reference(
        self,
        source_block_id: str,
        target_block_id: str,
        source_note_id: str,
        link_text: Optional[str] = None,
    ) -> Link:
        """Link a block to another block.

        Raises:
            NotFoundError: Naming the missing side.
            InvalidInputError: If the source block is not in the source note.
        """
        source_block = self._require_block(source_block_id, "source")
        self._require_block(target_block_id, "target")
        self._require_note(source_note_id, "source")
        self._check_block_in_note(source_block, source_note_id)

        link = Link(
            id=generate_id("link"),
            source_note_id=source_note_id,
            source_block_id=source_block_id,
            target_block_id=target_block_id,
            link_type=LinkType.BLOCK_REFERENCE,
            link_text=link_text,
            created_at=utc_now(),
        )
        return self.repository.create(link)

    def get_by_id(self, link_id: str) -> Optional[Link]:
        return self.repository.get_by_id(link_id)

    def get_outgoing_links(self, note_id: str) -> List[Link]:
        return self.repository.get_outgoing(note_id)

    def get_incoming_links(self, note_id: str) -> List[Link]:
        return self.repository.get_incoming(note_id)

    def get_links_from_block(self, block_id: str) -> List[Link]:
        return self.repository.get_from_block(block_id)

    def get_links_to_block(self, block_id: str) -> List[Link]:
        return self.repository.get_to_block(block_id)

    @traced("link_delete")
    def delete(self, link_id: str) -> None:
        if not self.repository.delete(link_id):
            raise NotFoundError("link", link_id)
