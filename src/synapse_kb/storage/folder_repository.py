"""Repository for the folder tree."""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select

from synapse_kb.exceptions import ErrorCode, InvalidInputError, NotFoundError
from synapse_kb.models.db_models import DBFolder
from synapse_kb.models.schema import Folder
from synapse_kb.storage.base import Repository

logger = logging.getLogger(__name__)

_SIBLING_ORDER = (DBFolder.position, DBFolder.name)


class FolderRepository(Repository[Folder]):
    """Repository for folders.

    Folders form a tree through ``parent_id``. The materialized ``path`` is
    stored as given and never re-derived here.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def create(self, folder: Folder) -> Folder:
        with self.session_factory() as session:
            session.add(
                DBFolder(
                    id=folder.id,
                    name=folder.name,
                    parent_id=folder.parent_id,
                    path=folder.path,
                    created_at=folder.created_at,
                    updated_at=folder.updated_at,
                    position=folder.position,
                )
            )
            session.commit()
        logger.debug(f"Created folder {folder.id} at {folder.path}")
        return folder

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[Folder]:
        # Folders have no soft-delete state
        with self.session_factory() as session:
            db_folder = session.get(DBFolder, id)
            return self._db_to_model(db_folder) if db_folder else None

    def get_by_ids(self, ids: Sequence[str]) -> List[Folder]:
        if not ids:
            return []
        with self.session_factory() as session:
            stmt = select(DBFolder).where(DBFolder.id.in_(list(ids)))
            return [self._db_to_model(f) for f in session.scalars(stmt).all()]

    def exists(self, id: str) -> bool:
        with self.session_factory() as session:
            return session.scalar(select(DBFolder.id).where(DBFolder.id == id)) is not None

    def get_roots(self) -> List[Folder]:
        with self.session_factory() as session:
            stmt = select(DBFolder).where(DBFolder.parent_id.is_(None)).order_by(
                *_SIBLING_ORDER
            )
            return [self._db_to_model(f) for f in session.scalars(stmt).all()]

    def get_children(self, parent_id: str) -> List[Folder]:
        with self.session_factory() as session:
            stmt = select(DBFolder).where(DBFolder.parent_id == parent_id).order_by(
                *_SIBLING_ORDER
            )
            return [self._db_to_model(f) for f in session.scalars(stmt).all()]

    def count_children(self, parent_id: str) -> int:
        with self.session_factory() as session:
            return session.scalar(
                select(func.count()).select_from(DBFolder).where(
                    DBFolder.parent_id == parent_id
                )
            )

    def get_all(self) -> List[Folder]:
        """All folders ordered by path, so parents precede their children."""
        with self.session_factory() as session:
            stmt = select(DBFolder).order_by(DBFolder.path, DBFolder.position)
            return [self._db_to_model(f) for f in session.scalars(stmt).all()]

    def list(self) -> List[Folder]:
        return self.get_all()

    def update(self, folder: Folder) -> Folder:
        """Overwrite a folder row.

        Raises:
            NotFoundError: If the folder or a newly assigned parent is absent.
            InvalidInputError: If the new parent would create a cycle.
        """
        with self.session_factory() as session:
            db_folder = session.get(DBFolder, folder.id)
            if db_folder is None:
                raise NotFoundError("folder", folder.id)

            # Validate parent exists if changed and check for cycles
            if folder.parent_id and folder.parent_id != db_folder.parent_id:
                if folder.parent_id == folder.id:
                    raise InvalidInputError(
                        f"Folder '{folder.id}' cannot be its own parent",
                        field="parent_id",
                        value=folder.parent_id,
                        code=ErrorCode.FOLDER_CYCLE,
                    )
                parent = session.get(DBFolder, folder.parent_id)
                if parent is None:
                    raise NotFoundError(
                        "folder",
                        folder.parent_id,
                        message=f"Parent folder not found: {folder.parent_id}",
                    )
                # Walk up from the new parent; meeting this folder means a cycle
                current = parent
                while current is not None:
                    if current.parent_id == folder.id:
                        raise InvalidInputError(
                            f"Moving folder '{folder.id}' under "
                            f"'{folder.parent_id}' would create a cycle",
                            field="parent_id",
                            value=folder.parent_id,
                            code=ErrorCode.FOLDER_CYCLE,
                        )
                    current = (
                        session.get(DBFolder, current.parent_id)
                        if current.parent_id
                        else None
                    )

            db_folder.name = folder.name
            db_folder.parent_id = folder.parent_id
            db_folder.path = folder.path
            db_folder.updated_at = folder.updated_at
            db_folder.position = folder.position
            session.commit()
        logger.debug(f"Updated folder {folder.id}")
        return folder

    def delete(self, id: str) -> bool:
        """Hard delete. Membership rows and subfolders cascade."""
        with self.session_factory() as session:
            result = session.execute(delete(DBFolder).where(DBFolder.id == id))
            session.commit()
            return result.rowcount > 0

    def _db_to_model(self, db_folder: DBFolder) -> Folder:
        return Folder(
            id=db_folder.id,
            name=db_folder.name,
            parent_id=db_folder.parent_id,
            path=db_folder.path,
            created_at=db_folder.created_at,
            updated_at=db_folder.updated_at,
            position=db_folder.position,
        )
