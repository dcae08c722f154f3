"""Repository for tag storage and retrieval."""
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.db_models import DBTag, note_tags
from synapse_kb.models.schema import Tag
from synapse_kb.storage.base import Repository

logger = logging.getLogger(__name__)


class TagRepository(Repository[Tag]):
    """Repository for managing tags.

    Provides CRUD operations for tags in the database. Tag names are unique;
    inserting a duplicate surfaces as a ConflictError from the session.
    """

    def __init__(self, session_factory):
        """Initialize the tag repository.

        Args:
            session_factory: Callable returning a transactional session context.
        """
        self.session_factory = session_factory

    def create(self, tag: Tag) -> Tag:
        with self.session_factory() as session:
            session.add(
                DBTag(
                    id=tag.id,
                    name=tag.name,
                    color=tag.color,
                    icon=tag.icon,
                    created_at=tag.created_at,
                )
            )
            session.commit()
        logger.debug(f"Created tag '{tag.name}' ({tag.id})")
        return tag

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Tag]:
        with self.session_factory() as session:
            db_tag = session.get(DBTag, id)
            return self._db_to_model(db_tag) if db_tag else None

    def get_by_ids(self, ids: Sequence[str]) -> List[Tag]:
        if not ids:
            return []
        with self.session_factory() as session:
            stmt = select(DBTag).where(DBTag.id.in_(list(ids))).order_by(DBTag.name)
            return [self._db_to_model(t) for t in session.scalars(stmt).all()]

    def get_by_name(self, name: str) -> Optional[Tag]:
        """Get a tag by its exact (case-sensitive) name.

        Args:
            name: The name of the tag.

        Returns:
            The Tag object if found, None otherwise.
        """
        with self.session_factory() as session:
            db_tag = session.scalar(select(DBTag).where(DBTag.name == name))
            return self._db_to_model(db_tag) if db_tag else None

    def list(self) -> List[Tag]:
        """Get all tags ordered by name."""
        with self.session_factory() as session:
            db_tags = session.scalars(select(DBTag).order_by(DBTag.name)).all()
            return [self._db_to_model(t) for t in db_tags]

    def get_with_counts(self) -> Dict[str, int]:
        """Get all tags with their usage counts.

        Returns:
            Dictionary mapping tag names to their note counts.
        """
        with self.session_factory() as session:
            result = session.execute(
                select(DBTag.name, func.count(note_tags.c.note_id))
                .select_from(DBTag)
                .outerjoin(note_tags, DBTag.id == note_tags.c.tag_id)
                .group_by(DBTag.name)
            ).all()

            return {name: count for name, count in result}

    def update(self, tag: Tag) -> Tag:
        with self.session_factory() as session:
            db_tag = session.get(DBTag, tag.id)
            if db_tag is None:
                raise NotFoundError("tag", tag.id)
            db_tag.name = tag.name
            db_tag.color = tag.color
            db_tag.icon = tag.icon
            session.commit()
        logger.debug(f"Updated tag {tag.id}")
        return tag

    def delete(self, id: str) -> bool:
        """Hard delete. Note-tag rows cascade."""
        with self.session_factory() as session:
            result = session.execute(delete(DBTag).where(DBTag.id == id))
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_tag: DBTag) -> Tag:
        return Tag(
            id=db_tag.id,
            name=db_tag.name,
            color=db_tag.color,
            icon=db_tag.icon,
            created_at=db_tag.created_at,
        )
