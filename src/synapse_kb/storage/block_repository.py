"""Repository for content blocks."""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import literal_column, select, update

from synapse_kb.exceptions import NotFoundError
from synapse_kb.models.db_models import DBBlock
from synapse_kb.models.schema import Block, BlockType, utc_now
from synapse_kb.storage.base import SoftDeleteRepository

logger = logging.getLogger(__name__)

# Render order: position, then insertion order
_RENDER_ORDER = (DBBlock.position, literal_column("blocks.rowid"))


def _visible(stmt, include_deleted: bool):
    if include_deleted:
        return stmt
    return stmt.where(DBBlock.is_deleted.is_(False))


class BlockRepository(SoftDeleteRepository[Block]):
    """Repository for block rows. The blocks FTS table follows via triggers."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(self, block: Block) -> Block:
        with self.session_factory() as session:
            session.add(
                DBBlock(
                    id=block.id,
                    note_id=block.note_id,
                    block_type=block.block_type.value,
                    content=block.content,
                    position=block.position,
                    created_at=block.created_at,
                    updated_at=block.updated_at,
                    is_deleted=block.is_deleted,
                    deleted_at=block.deleted_at,
                )
            )
            session.commit()
        logger.debug(f"Created block {block.id} in note {block.note_id}")
        return block

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Block]:
        with self.session_factory() as session:
            stmt = _visible(select(DBBlock).where(DBBlock.id == id), include_deleted)
            db_block = session.scalar(stmt)
            return self._db_to_model(db_block) if db_block else None

    def exists(self, id: str, include_deleted: bool = False) -> bool:
        with self.session_factory() as session:
            stmt = _visible(select(DBBlock.id).where(DBBlock.id == id), include_deleted)
            return session.scalar(stmt) is not None

    def get_by_ids(
        self, ids: Sequence[str], include_deleted: bool = False
    ) -> List[Block]:
        if not ids:
            return []
        with self.session_factory() as session:
            stmt = _visible(
                select(DBBlock).where(DBBlock.id.in_(list(ids))), include_deleted
            ).order_by(*_RENDER_ORDER)
            return [self._db_to_model(b) for b in session.scalars(stmt).all()]

    def get_by_note(self, note_id: str, include_deleted: bool = False) -> List[Block]:
        """Blocks of a note in render order."""
        with self.session_factory() as session:
            stmt = _visible(
                select(DBBlock).where(DBBlock.note_id == note_id), include_deleted
            ).order_by(*_RENDER_ORDER)
            return [self._db_to_model(b) for b in session.scalars(stmt).all()]

    def list(self, include_deleted: bool = False) -> List[Block]:
        with self.session_factory() as session:
            stmt = _visible(select(DBBlock), include_deleted).order_by(
                DBBlock.note_id, *_RENDER_ORDER
            )
            return [self._db_to_model(b) for b in session.scalars(stmt).all()]

    def update(self, block: Block) -> Block:
        with self.session_factory() as session:
            db_block = session.get(DBBlock, block.id)
            if db_block is None:
                raise NotFoundError("block", block.id)

            db_block.note_id = block.note_id
            db_block.block_type = block.block_type.value
            db_block.content = block.content
            db_block.position = block.position
            db_block.created_at = block.created_at
            db_block.updated_at = block.updated_at
            db_block.is_deleted = block.is_deleted
            db_block.deleted_at = block.deleted_at
            session.commit()
        logger.debug(f"Updated block {block.id}")
        return block

    def soft_delete(self, id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(DBBlock)
                .where(DBBlock.id == id, DBBlock.is_deleted.is_(False))
                .values(is_deleted=True, deleted_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount > 0

    def restore(self, id: str) -> bool:
        with self.session_factory() as session:
            result = session.execute(
                update(DBBlock)
                .where(DBBlock.id == id, DBBlock.is_deleted.is_(True))
                .values(is_deleted=False, deleted_at=None)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_block: DBBlock) -> Block:
        return Block(
            id=db_block.id,
            note_id=db_block.note_id,
            block_type=BlockType(db_block.block_type),
            content=db_block.content,
            position=db_block.position,
            created_at=db_block.created_at,
            updated_at=db_block.updated_at,
            is_deleted=db_block.is_deleted,
            deleted_at=db_block.deleted_at,
        )
