"""Service layer for tags."""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from synapse_kb.exceptions import (ConflictError, ErrorCode, InvalidInputError,
                                   NotFoundError)
from synapse_kb.models.schema import Note, Tag, generate_id, utc_now
from synapse_kb.observability import traced

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


class TagService:
    """Tags with globally unique, case-sensitive names."""

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.tag_repository

    def _check_name(self, name: str, tag_id: Optional[str] = None) -> None:
        if not name or not name.strip():
            raise InvalidInputError("Tag name is required", field="name", value=name)
        existing = self.repository.get_by_name(name)
        if existing is not None and existing.id != tag_id:
            raise ConflictError(
                f"Tag '{name}' already exists",
                entity="tag",
                field="name",
                value=name,
                code=ErrorCode.TAG_NAME_EXISTS,
            )

    @traced("tag_create")
    def create(
        self, name: str, color: Optional[str] = None, icon: Optional[str] = None
    ) -> Tag:
        """Create a tag.

        Raises:
            ConflictError: If a tag with exactly this name exists.
        """
        self._check_name(name)
        tag = Tag(
            id=generate_id("tag"), name=name, color=color, icon=icon, created_at=utc_now()
        )
        return self.repository.create(tag)

    def get_by_id(self, tag_id: str) -> Optional[Tag]:
        return self.repository.get_by_id(tag_id)

    def get_by_name(self, name: str) -> Optional[Tag]:
        return self.repository.get_by_name(name)

    def list(self) -> List[Tag]:
        return self.repository.list()

    def get_with_counts(self) -> Dict[str, int]:
        return self.repository.get_with_counts()

    @traced("tag_update")
    def update(self, tag: Tag) -> Tag:
        if self.repository.get_by_id(tag.id) is None:
            raise NotFoundError("tag", tag.id)
        self._check_name(tag.name, tag_id=tag.id)
        return self.repository.update(tag)

    @traced("tag_delete")
    def delete(self, tag_id: str) -> None:
        """Hard-delete a tag; it disappears from every note carrying it."""
        if not self.repository.delete(tag_id):
            raise NotFoundError("tag", tag_id)
        logger.info(f"Deleted tag {tag_id}")

    def get_notes(self, tag_id: str) -> List[Note]:
        """Non-deleted notes carrying the tag, most recently updated first."""
        note_ids = self.ctx.note_tags.get_notes_with_tag(tag_id)
        return self.ctx.note_repository.get_by_ids(note_ids)
