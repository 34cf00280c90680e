"""Typed query specifications for FileNode lookups.

A :class:`NodeQuery` describes which rows of the ``files`` table a
caller wants: always scoped to one user, optionally narrowed by parent,
name, trash state, star state and category.  "At the root" and "under
folder X" are both values of :class:`ParentFilter`, so the null/non-null
branch is decided when the query is compiled, not by string assembly.

Example::

    q = NodeQuery.siblings(user_id=1, parent_id=None, name="Docs")
    rows = await session.execute(select(FileNode).where(*q.conditions()))
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from homecloud.models.files import FileCategory, FileNode

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement


@dataclass(frozen=True, slots=True)
class ParentFilter:
    """Restrict a query to the children of one parent.

    Attributes:
        parent_id: Folder id, or ``None`` for the root of the user's tree.
    """

    parent_id: int | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


ROOT = ParentFilter(None)


@dataclass(frozen=True, slots=True)
class NodeQuery:
    """Filter over one user's FileNodes.

    Attributes:
        user_id: Owner; every compiled query is scoped to it.
        parent: Parent restriction, or ``None`` for anywhere in the tree.
        name: Exact (case-sensitive) name match.
        trashed: Trash state to match, or ``None`` for either.
        starred: Star state to match, or ``None`` for either.
        folders: ``True`` for folders only, ``False`` for files only.
        exclude_id: Row to leave out (the node being renamed or moved).
    """

    user_id: int
    parent: ParentFilter | None = None
    name: str | None = None
    trashed: bool | None = False
    starred: bool | None = None
    folders: bool | None = None
    exclude_id: int | None = None

    @classmethod
    def children(cls, user_id: int, parent_id: int | None) -> NodeQuery:
        """Non-trashed children of *parent_id* (root when ``None``)."""
        return cls(user_id=user_id, parent=ParentFilter(parent_id))

    @classmethod
    def siblings(
        cls,
        user_id: int,
        parent_id: int | None,
        name: str,
        *,
        exclude_id: int | None = None,
    ) -> NodeQuery:
        """Non-trashed nodes named *name* under *parent_id*."""
        return cls(
            user_id=user_id,
            parent=ParentFilter(parent_id),
            name=name,
            exclude_id=exclude_id,
        )

    def where(self, **changes: object) -> NodeQuery:
        """Return a copy with *changes* applied."""
        return replace(self, **changes)  # type: ignore[arg-type]

    def conditions(self) -> list[ColumnElement[bool]]:
        """Compile to SQLAlchemy boolean clauses for ``select().where(*...)``."""
        model = FileNode
        clauses: list[ColumnElement[bool]] = [model.user_id == self.user_id]  # type: ignore[list-item]
        if self.parent is not None:
            if self.parent.is_root:
                clauses.append(model.parent_id.is_(None))  # type: ignore[union-attr]
            else:
                clauses.append(model.parent_id == self.parent.parent_id)  # type: ignore[arg-type]
        if self.name is not None:
            clauses.append(model.name == self.name)  # type: ignore[arg-type]
        if self.trashed is not None:
            clauses.append(model.trashed == self.trashed)  # type: ignore[arg-type]
        if self.starred is not None:
            clauses.append(model.starred == self.starred)  # type: ignore[arg-type]
        if self.folders is True:
            clauses.append(model.category == FileCategory.FOLDER.value)  # type: ignore[arg-type]
        elif self.folders is False:
            clauses.append(model.category != FileCategory.FOLDER.value)  # type: ignore[arg-type]
        if self.exclude_id is not None:
            clauses.append(model.id != self.exclude_id)  # type: ignore[arg-type]
        return clauses
