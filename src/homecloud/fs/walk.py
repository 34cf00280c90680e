"""Iterative tree traversal over ``parent -> children`` mappings.

The pure functions here never touch the database; the async loaders
build the mappings they consume from one query per call.  Traversal uses
an explicit worklist, so tree depth is bounded only by memory.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from sqlmodel import select

from homecloud.models.files import FileNode

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

ChildMap = dict[int, list[int]]
ParentMap = dict[int, int | None]


# =============================================================================
# Pure traversal
# =============================================================================


def subtree_preorder(root_id: int, children: Mapping[int, Sequence[int]]) -> list[int]:
    """Return *root_id* and all its descendants, each parent before its children.

    Ids already visited are skipped, so a corrupt mapping cannot loop.
    """
    order: list[int] = []
    seen: set[int] = set()
    stack = [root_id]
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        order.append(node)
        # reversed keeps siblings in mapping order once popped
        stack.extend(reversed(children.get(node, ())))
    return order


def subtree_postorder(root_id: int, children: Mapping[int, Sequence[int]]) -> list[int]:
    """Return *root_id* and all its descendants, each child before its parent."""
    order: list[int] = []
    seen: set[int] = {root_id}
    stack: list[tuple[int, bool]] = [(root_id, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            order.append(node)
            continue
        stack.append((node, True))
        for child in reversed(children.get(node, ())):
            if child not in seen:
                seen.add(child)
                stack.append((child, False))
    return order


def ancestor_chain(start_id: int | None, parents: Mapping[int, int | None]) -> list[int]:
    """Return *start_id* followed by each ancestor up to the root.

    Stops at a ``None`` parent, at an id missing from *parents* (broken
    link; the missing id itself is not included), or at a revisited id.
    """
    chain: list[int] = []
    seen: set[int] = set()
    current = start_id
    while current is not None and current not in seen and current in parents:
        seen.add(current)
        chain.append(current)
        current = parents[current]
    return chain


def would_create_cycle(
    node_id: int, new_parent_id: int | None, parents: Mapping[int, int | None]
) -> bool:
    """True if moving *node_id* under *new_parent_id* makes it its own ancestor."""
    if new_parent_id is None:
        return False
    if new_parent_id == node_id:
        return True
    return node_id in ancestor_chain(new_parent_id, parents)


def invert(parents: Mapping[int, int | None]) -> ChildMap:
    """Build a ``parent -> [children]`` map (children in ascending id order)."""
    children: defaultdict[int, list[int]] = defaultdict(list)
    for node_id in sorted(parents):
        parent = parents[node_id]
        if parent is not None:
            children[parent].append(node_id)
    return dict(children)


# =============================================================================
# Loaders
# =============================================================================


async def load_parent_map(session: AsyncSession, user_id: int) -> ParentMap:
    """Return ``{id: parent_id}`` for every node owned by *user_id*."""
    result = await session.execute(
        select(FileNode.id, FileNode.parent_id).where(FileNode.user_id == user_id)
    )
    return {row[0]: row[1] for row in result.all()}


async def load_subtree(
    session: AsyncSession, user_id: int, root_id: int, *, postorder: bool = False
) -> list[int]:
    """Return the ids of *root_id*'s subtree (root included)."""
    children = invert(await load_parent_map(session, user_id))
    if postorder:
        return subtree_postorder(root_id, children)
    return subtree_preorder(root_id, children)
