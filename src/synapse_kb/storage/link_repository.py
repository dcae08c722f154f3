"""Repository for links between notes and blocks."""
import logging
from typing import List, Optional

from sqlalchemy import delete, literal_column, select

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.db_models import DBLink
from synapse_kb.models.schema import Link, LinkType
from synapse_kb.storage.base import Repository

logger = logging.getLogger(__name__)

_CREATION_ORDER = (DBLink.created_at, literal_column("links.rowid"))


class LinkRepository(Repository[Link]):
    """Repository for link rows.

    Endpoint existence is checked by the service; the store enforces
    foreign keys and the target/type consistency check.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(self, link: Link) -> Link:
        with self.session_factory() as session:
            session.add(
                DBLink(
                    id=link.id,
                    source_note_id=link.source_note_id,
                    target_note_id=link.target_note_id,
                    source_block_id=link.source_block_id,
                    target_block_id=link.target_block_id,
                    link_type=link.link_type.value,
                    link_text=link.link_text,
                    created_at=link.created_at,
                )
            )
            session.commit()
        logger.debug(
            f"Created {link.link_type.value} {link.id} from {link.source_note_id}"
        )
        return link

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Link]:
        with self.session_factory() as session:
            db_link = session.get(DBLink, id)
            return self._db_to_model(db_link) if db_link else None

    def _select_where(self, *criteria) -> List[Link]:
        with self.session_factory() as session:
            stmt = select(DBLink).where(*criteria).order_by(*_CREATION_ORDER)
            return [self._db_to_model(l) for l in session.scalars(stmt).all()]

    def get_outgoing(self, note_id: str) -> List[Link]:
        """Links whose source is the given note."""
        return self._select_where(DBLink.source_note_id == note_id)

    def get_incoming(self, note_id: str) -> List[Link]:
        """Links targeting the given note."""
        return self._select_where(DBLink.target_note_id == note_id)

    def get_from_block(self, block_id: str) -> List[Link]:
        return self._select_where(DBLink.source_block_id == block_id)

    def get_to_block(self, block_id: str) -> List[Link]:
        return self._select_where(DBLink.target_block_id == block_id)

    def list(self) -> List[Link]:
        return self._select_where()

    def update(self, link: Link) -> Link:
        with self.session_factory() as session:
            db_link = session.get(DBLink, link.id)
            if db_link is None:
                raise NotFoundError("link", link.id)
            db_link.source_note_id = link.source_note_id
            db_link.target_note_id = link.target_note_id
            db_link.source_block_id = link.source_block_id
            db_link.target_block_id = link.target_block_id
            db_link.link_type = link.link_type.value
            db_link.link_text = link.link_text
            session.commit()
        return link

    def delete(self, id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(delete(DBLink).where(DBLink.id == id))
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_link: DBLink) -> Link:
        return Link(
            id=db_link.id,
            source_note_id=db_link.source_note_id,
            target_note_id=db_link.target_note_id,
            source_block_id=db_link.source_block_id,
            target_block_id=db_link.target_block_id,
            link_type=LinkType(db_link.link_type),
            link_text=db_link.link_text,
            created_at=db_link.created_at,
        )
