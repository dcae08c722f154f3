"""Service layer for folders."""

import logging
from typing import TYPE_CHECKING, List, Optional

from synapse_kb.exceptions import ErrorCode, InvalidInputError, NotFoundError
from synapse_kb.models.schema import Folder, Note, generate_id, utc_now
from synapse_kb.observability import traced

if TYPE_CHECKING:
    from synapse_kb.services.context import ServiceContext

logger = logging.getLogger(__name__)


def _require_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidInputError("Folder name is required", field="name", value=name)
    return name


class FolderService:
    """Folder tree operations.

    A folder's ``path`` is computed once, from its parent's path, when the
    folder is created. Renames and moves leave it untouched.
    """

    def __init__(self, ctx: "ServiceContext"):
        self.ctx = ctx
        self.repository = ctx.folder_repository

    @traced("folder_create")
    def create(
        self, name: str, parent_id: Optional[str] = None, position: int = 0
    ) -> Folder:
        """Create a folder, at the root or under ``parent_id``.

        Raises:
            InvalidInputError: If the name is blank.
            NotFoundError: If ``parent_id`` is given but absent.
        """
        _require_name(name)
        if parent_id is not None:
            parent = self.repository.get_by_id(parent_id)
            if parent is None:
                raise NotFoundError(
                    "folder", parent_id, message=f"Parent folder not found: {parent_id}"
                )
            path = f"{parent.path}/{name}"
        else:
            path = f"/{name}"

        now = utc_now()
        folder = Folder(
            id=generate_id("folder"),
            name=name,
            parent_id=parent_id,
            path=path,
            created_at=now,
            updated_at=now,
            position=position,
        )
        self.repository.create(folder)
        logger.info(f"Created folder {folder.id} at {path}")
        return folder

    def get_by_id(self, folder_id: str) -> Optional[Folder]:
        return self.repository.get_by_id(folder_id)

    def get_roots(self) -> List[Folder]:
        return self.repository.get_roots()

    def get_children(self, parent_id: str) -> List[Folder]:
        return self.repository.get_children(parent_id)

    def get_all(self) -> List[Folder]:
        return self.repository.get_all()

    @traced("folder_update")
    def update(self, folder: Folder) -> Folder:
        """Save a modified folder. ``path`` is stored exactly as given."""
        _require_name(folder.name)
        folder.updated_at = max(utc_now(), folder.updated_at)
        return self.repository.update(folder)

    def rename(self, folder_id: str, name: str) -> Folder:
        folder = self.repository.get_by_id(folder_id)
        if folder is None:
            raise NotFoundError("folder", folder_id)
        folder.name = _require_name(name)
        return self.update(folder)

    @traced("folder_delete")
    def delete(self, folder_id: str) -> None:
        """Hard-delete a folder that has no child folders.

        Note memberships go with it; the notes themselves are untouched.
        """
        if not self.repository.exists(folder_id):
            raise NotFoundError("folder", folder_id)
        children = self.repository.count_children(folder_id)
        if children:
            raise InvalidInputError(
                f"Cannot delete folder '{folder_id}': it has {children} child folder(s)",
                field="folder_id",
                value=folder_id,
                code=ErrorCode.FOLDER_HAS_CHILDREN,
            )
        self.repository.delete(folder_id)
        logger.info(f"Deleted folder {folder_id}")

    def get_notes(self, folder_id: str, include_deleted: bool = False) -> List[Note]:
        if not self.repository.exists(folder_id):
            raise NotFoundError("folder", folder_id)
        return self.ctx.note_repository.get_by_folder(
            folder_id, include_deleted=include_deleted
        )
